"""Scraper settings loaded from environment variables.

Uses Pydantic Settings v2 for validated, type-safe configuration.
Every tunable of the fetch-and-extract pipeline is read through this module;
never call ``os.getenv`` directly elsewhere in the codebase.

Variables are prefixed with ``SCRAPER_``, e.g. ``SCRAPER_LOG_LEVEL=DEBUG`` or
``SCRAPER_ESCALATE_STATUS_CODES='[403, 429]'``.

Usage::

    from adaptive_scraper.config.settings import get_settings

    settings = get_settings()
    timeout_ms = settings.static_timeout_ms
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from adaptive_scraper.scraper.config import (
    BROWSER_LAUNCH_ARGS,
    CHALLENGE_MARKERS,
    BLOCK_HEADERS,
)


class Settings(BaseSettings):
    """Scraper-wide configuration backed by environment variables and an optional .env file.

    Every field has a default, so the library works without any environment
    set up.  Override only what a deployment needs.
    """

    model_config = SettingsConfigDict(
        env_prefix="SCRAPER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Logging
    # ------------------------------------------------------------------

    log_level: str = "INFO"
    """Logging verbosity.  One of: DEBUG, INFO, WARNING, ERROR, CRITICAL."""

    # ------------------------------------------------------------------
    # Static fetch
    # ------------------------------------------------------------------

    static_timeout_ms: int = Field(default=10_000, gt=0)
    """Default timeout of the plain HTTP GET when the caller gives none."""

    max_redirects: int = Field(default=5, ge=0)
    """Default redirect limit of the plain HTTP GET."""

    # ------------------------------------------------------------------
    # Rendered fetch
    # ------------------------------------------------------------------

    rendered_timeout_ms: int = Field(default=30_000, gt=0)
    """Default navigation / screenshot timeout of the browser path."""

    selector_wait_timeout_ms: int = Field(default=10_000, gt=0)
    """Upper bound on waiting for ``waitForSelector``.  Expiry is not fatal."""

    browser_headless: bool = True
    """Launch Chromium headless.  Only set to ``False`` for local debugging."""

    browser_args: list[str] = Field(default_factory=lambda: list(BROWSER_LAUNCH_ARGS))
    """Extra Chromium command-line flags (sandbox-disabling flags by default)."""

    scroll_step_px: int = Field(default=400, gt=0)
    """Pixels scrolled per step when ``scrollToLoad`` is requested."""

    scroll_pause_ms: int = Field(default=100, ge=0)
    """Pause between scroll steps, giving lazy content time to load."""

    scroll_max_steps: int = Field(default=100, gt=0)
    """Hard cap on scroll steps for pages that keep growing."""

    # ------------------------------------------------------------------
    # Block detection / escalation
    # ------------------------------------------------------------------

    escalate_status_codes: list[int] = Field(default_factory=lambda: [403])
    """Static-fetch status codes that trigger a rendered retry.

    Other 4xx/5xx responses are extracted as-is.
    """

    block_headers: list[str] = Field(default_factory=lambda: list(BLOCK_HEADERS))
    """Response headers whose presence marks a bot-mitigation response."""

    challenge_markers: list[str] = Field(default_factory=lambda: list(CHALLENGE_MARKERS))
    """Body substrings identifying a bot-challenge interstitial page."""

    escalate_js_shell: bool = False
    """Also escalate 2xx responses whose body looks like an empty JS shell."""

    js_shell_body_threshold: int = Field(default=500, ge=0)
    """Stripped body length below which a page counts as a JS-only shell."""

    # ------------------------------------------------------------------
    # Batch
    # ------------------------------------------------------------------

    batch_concurrency: int = Field(default=5, gt=0)
    """Number of URLs of one batch processed at the same time."""


@lru_cache
def get_settings() -> Settings:
    """Return the cached settings singleton.

    Uses ``functools.lru_cache`` so that Pydantic Settings reads the environment
    and .env file exactly once per process lifetime.  In tests, call
    ``get_settings.cache_clear()`` after patching environment variables.

    Returns:
        Settings: The validated settings object.
    """
    return Settings()
