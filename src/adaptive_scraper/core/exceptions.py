"""Exception hierarchy for the adaptive scraper.

All custom exceptions subclass ``ScraperError``, enabling consistent error
handling and structured logging across the pipeline.  Every class carries a
stable ``kind`` string that batch reports use to tag per-URL failures.

Hierarchy::

    ScraperError
    ├── InvalidUrlError          (kind="invalid_url")
    ├── NetworkError             (kind="network", reason: str)
    ├── FetchTimeoutError        (kind="timeout", stage: str)
    ├── BrowserError             (kind="browser")
    └── ExtractionError          (kind="extraction")

Bot-challenge responses are deliberately absent: escalation to the browser is
a control signal inside the orchestrator, never an exception.
"""

from __future__ import annotations


class ScraperError(Exception):
    """Base class for all scraper exceptions.

    Args:
        message: Human-readable description of the failure.
        url: URL being processed when the failure happened, if known.
    """

    kind: str = "scraper"

    def __init__(self, message: str, url: str | None = None) -> None:
        super().__init__(message)
        self.url = url


# ---------------------------------------------------------------------------
# Input exceptions
# ---------------------------------------------------------------------------


class InvalidUrlError(ScraperError):
    """Raised when a URL does not parse or uses a scheme other than http/https.

    Raised before any network access takes place.
    """

    kind = "invalid_url"

    def __init__(self, url: str) -> None:
        super().__init__(f"Invalid URL provided: {url!r}", url=url)


# ---------------------------------------------------------------------------
# Fetch exceptions
# ---------------------------------------------------------------------------


class NetworkError(ScraperError):
    """Raised when the target host cannot be reached.

    Network failures are terminal for the URL: a browser cannot fix a DNS or
    connection failure, so they never escalate to the rendered path.

    Args:
        message: Human-readable description of the failure.
        url: Target URL.
        reason: Machine-readable cause, one of ``"host_not_found"``,
            ``"connection_refused"``, ``"too_many_redirects"`` or
            ``"request_error"``.
    """

    kind = "network"

    def __init__(self, message: str, url: str | None = None, reason: str = "request_error") -> None:
        super().__init__(message, url=url)
        self.reason = reason


class FetchTimeoutError(ScraperError):
    """Raised when a suspension point exceeds its time bound.

    Args:
        message: Human-readable description of the timeout.
        url: Target URL.
        stage: Where the timeout happened: ``"static"``, ``"navigation"``,
            ``"screenshot"`` or ``"render"`` (any other browser step).
    """

    kind = "timeout"

    def __init__(self, message: str, url: str | None = None, stage: str = "static") -> None:
        super().__init__(message, url=url)
        self.stage = stage


class BrowserError(ScraperError):
    """Raised when the browser cannot be launched or a page cannot be loaded."""

    kind = "browser"


# ---------------------------------------------------------------------------
# Extraction exceptions
# ---------------------------------------------------------------------------


class ExtractionError(ScraperError):
    """Raised when there is no document to extract from.

    Missing elements are never errors; this covers structurally absent input
    such as a binary response or an empty fetch result.
    """

    kind = "extraction"
