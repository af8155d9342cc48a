"""Bot-mitigation detection for static fetch results.

The detector turns a :class:`~adaptive_scraper.scraper.http_fetcher.StaticResponse`
into an escalation signal.  It never raises: a blocked response is a control
signal for the orchestrator, not an error for the caller.

Escalation triggers (any one is sufficient):

1. the status code is in ``escalate_status_codes`` (``403`` by default);
2. a block-indicating header such as ``cf-mitigated`` is present;
3. the body contains a known challenge marker such as ``"Just a moment..."``;
4. optionally, a 2xx body is so short it can only be a JavaScript shell.

Other 4xx/5xx statuses do not escalate; their body is the useful error page.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from adaptive_scraper.config.settings import Settings
from adaptive_scraper.scraper.http_fetcher import StaticResponse


@dataclass(frozen=True)
class BlockDetector:
    """Decides whether a static response must be retried in the browser.

    Build one from settings with :meth:`from_settings`.
    """

    escalate_status_codes: frozenset[int] = frozenset({403})
    block_headers: tuple[str, ...] = ()
    challenge_markers: tuple[str, ...] = ()
    escalate_js_shell: bool = False
    js_shell_body_threshold: int = 500

    @classmethod
    def from_settings(cls, settings: Settings) -> "BlockDetector":
        return cls(
            escalate_status_codes=frozenset(settings.escalate_status_codes),
            block_headers=_lowered(settings.block_headers),
            challenge_markers=tuple(settings.challenge_markers),
            escalate_js_shell=settings.escalate_js_shell,
            js_shell_body_threshold=settings.js_shell_body_threshold,
        )

    def detect(self, response: StaticResponse) -> str | None:
        """Return why *response* must escalate, or ``None`` if it is usable.

        The reason is a short human-readable string used for logging and
        carried on the fetch result.
        """
        if response.status_code in self.escalate_status_codes:
            return f"status {response.status_code}"

        for header in self.block_headers:
            if header in response.headers:
                return f"header {header}"

        body = response.html or ""
        for marker in self.challenge_markers:
            if marker in body:
                return f"challenge marker {marker!r}"

        if (
            self.escalate_js_shell
            and 200 <= response.status_code < 300
            and len(body.strip()) < self.js_shell_body_threshold
        ):
            return "javascript shell"

        return None

    def needs_escalation(self, response: StaticResponse) -> bool:
        """Return ``True`` if *response* shows signs of bot mitigation."""
        return self.detect(response) is not None


def _lowered(values: Iterable[str]) -> tuple[str, ...]:
    return tuple(v.lower() for v in values)
