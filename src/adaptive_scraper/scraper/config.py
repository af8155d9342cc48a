"""Constants for the fetch-and-extract pipeline.

Values that deployments may want to tune are surfaced through
:class:`adaptive_scraper.config.settings.Settings`; the tuples below are the
defaults it starts from.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------

#: User-agent string sent with every request unless the caller overrides it.
USER_AGENT: str = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

#: Browser-like headers sent with the static fetch.  ``User-Agent`` is added
#: separately so that ``FetchOptions.user_agent`` can replace it.
DEFAULT_HEADERS: dict[str, str] = {
    "Accept": (
        "text/html,application/xhtml+xml,application/xml;q=0.9,"
        "image/avif,image/webp,*/*;q=0.8"
    ),
    "Accept-Language": "en-US,en;q=0.5",
    "Upgrade-Insecure-Requests": "1",
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "none",
}

#: Content-Type prefixes that indicate binary/non-text resources that cannot
#: be parsed as an HTML document.
BINARY_CONTENT_TYPES: frozenset[str] = frozenset(
    {
        "application/pdf",
        "application/zip",
        "application/octet-stream",
        "application/x-executable",
        "application/vnd.",
        "image/",
        "video/",
        "audio/",
        "font/",
    }
)

# ---------------------------------------------------------------------------
# Block detection
# ---------------------------------------------------------------------------

#: Body substrings of bot-challenge interstitials (Cloudflare and friends).
CHALLENGE_MARKERS: tuple[str, ...] = (
    "Just a moment...",
    "cf-browser-verification",
    "_cf_chl_opt",
    "Checking your browser before accessing",
)

#: Response headers set by bot-mitigation layers on challenged requests.
BLOCK_HEADERS: tuple[str, ...] = ("cf-mitigated",)

# ---------------------------------------------------------------------------
# Browser
# ---------------------------------------------------------------------------

#: Chromium flags suited to containers without a user namespace sandbox.
BROWSER_LAUNCH_ARGS: tuple[str, ...] = (
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--no-first-run",
    "--no-zygote",
    "--disable-gpu",
)

#: Default viewport of rendered pages.
DEFAULT_VIEWPORT_WIDTH: int = 1920
DEFAULT_VIEWPORT_HEIGHT: int = 1080

# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------

#: Placeholder text of links without any visible text.
EMPTY_LINK_TEXT: str = "No text"

#: Tags whose text never counts as visible page text.
NON_TEXT_TAGS: frozenset[str] = frozenset(
    {"script", "style", "noscript", "template", "head", "title", "meta", "link"}
)
