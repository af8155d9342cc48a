"""Rendered fetcher for JavaScript-heavy and bot-protected pages.

Drives one page of the shared :class:`~adaptive_scraper.scraper.browser_session.BrowserSession`:
navigate, optionally wait for a selector and/or a fixed delay, optionally
scroll to trigger lazy content, then snapshot the rendered DOM as HTML.  The
page is released before this module returns, so the snapshot is what the
extraction engine works on.

Install the Chromium binary once per environment::

    playwright install chromium
"""

from __future__ import annotations

import asyncio
import base64
import logging
from dataclasses import dataclass

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page, Response
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from adaptive_scraper.config.settings import Settings
from adaptive_scraper.core.exceptions import BrowserError, FetchTimeoutError
from adaptive_scraper.core.schemas.scraping import FetchOptions
from adaptive_scraper.scraper.browser_session import BrowserSession

logger = logging.getLogger(__name__)

_SCROLL_HEIGHT_JS = "() => document.body ? document.body.scrollHeight : 0"
_SCROLL_BY_JS = "(distance) => window.scrollBy(0, distance)"


@dataclass
class RenderedPage:
    """Snapshot of a page after rendering.

    Attributes:
        html: Serialized DOM (``page.content()``).
        final_url: URL of the page after navigation and redirects.
        status_code: Status of the main navigation response, if any.
        screenshot: Base64 full-page PNG, when requested.
    """

    html: str
    final_url: str
    status_code: int | None
    screenshot: str | None = None


# ---------------------------------------------------------------------------
# Page steps
# ---------------------------------------------------------------------------


async def scroll_to_end(
    page: Page,
    *,
    step_px: int,
    pause_ms: int,
    max_steps: int,
) -> int:
    """Scroll down step by step until the bottom of the page is reached.

    The page height is re-read before each step, so content appended by lazy
    loading extends the walk.  ``max_steps`` bounds the walk on pages that
    grow forever.

    Returns:
        The number of scroll steps taken.
    """
    travelled = 0
    for step in range(max_steps):
        height = await page.evaluate(_SCROLL_HEIGHT_JS)
        if travelled >= (height or 0):
            return step
        await page.evaluate(_SCROLL_BY_JS, step_px)
        travelled += step_px
        if pause_ms:
            await asyncio.sleep(pause_ms / 1000)

    logger.info("scraper: scroll cap of %d steps reached", max_steps)
    return max_steps


async def _navigate(page: Page, url: str, options: FetchOptions, timeout_ms: int) -> Response | None:
    try:
        return await page.goto(url, wait_until=options.wait_until, timeout=timeout_ms)
    except PlaywrightTimeoutError as exc:
        raise FetchTimeoutError(
            f"Navigation timeout after {timeout_ms} ms", url=url, stage="navigation"
        ) from exc


async def _wait_for_selector(page: Page, selector: str, timeout_ms: int) -> bool:
    """Wait for *selector*; return ``False`` instead of raising when it never shows up."""
    try:
        await page.wait_for_selector(selector, timeout=timeout_ms)
    except PlaywrightTimeoutError:
        logger.info("scraper: selector %r not found within %d ms, continuing", selector, timeout_ms)
        return False
    except PlaywrightError as exc:
        logger.info("scraper: waiting for selector %r failed: %s", selector, exc)
        return False
    return True


async def _screenshot(page: Page, url: str, timeout_ms: int) -> str:
    try:
        raw = await page.screenshot(full_page=True, type="png", timeout=timeout_ms)
    except PlaywrightTimeoutError as exc:
        raise FetchTimeoutError(
            f"Screenshot timeout after {timeout_ms} ms", url=url, stage="screenshot"
        ) from exc
    return base64.b64encode(raw).decode("ascii")


async def _load(
    page: Page,
    url: str,
    options: FetchOptions,
    settings: Settings,
    timeout_ms: int,
) -> Response | None:
    """Run navigation and every optional post-load step on *page*."""
    page.set_default_timeout(timeout_ms)
    response = await _navigate(page, url, options, timeout_ms)

    if options.wait_for_selector:
        await _wait_for_selector(page, options.wait_for_selector, settings.selector_wait_timeout_ms)

    if options.wait_time_ms:
        await asyncio.sleep(options.wait_time_ms / 1000)

    if options.scroll_to_load:
        steps = await scroll_to_end(
            page,
            step_px=settings.scroll_step_px,
            pause_ms=settings.scroll_pause_ms,
            max_steps=settings.scroll_max_steps,
        )
        logger.debug("scraper: scrolled %d steps on %s", steps, url)

    return response


def _page_kwargs(options: FetchOptions) -> dict:
    return {
        "user_agent": options.user_agent,
        "viewport": {"width": options.viewport.width, "height": options.viewport.height},
        "extra_headers": options.headers or None,
    }


# ---------------------------------------------------------------------------
# Public fetch functions
# ---------------------------------------------------------------------------


async def fetch_url_playwright(
    url: str,
    *,
    session: BrowserSession,
    options: FetchOptions,
    settings: Settings,
) -> RenderedPage:
    """Load *url* in the browser and return the rendered document.

    Args:
        url: Normalized target URL.
        session: Shared browser session; a fresh page is taken from it and
            released before returning.
        options: Fetch options (wait policy, selector, delay, scroll, screenshot).
        settings: Scraper settings (default timeout, selector bound, scroll caps).

    Returns:
        A :class:`RenderedPage` snapshot.

    Raises:
        FetchTimeoutError: If navigation or the screenshot timed out.
        BrowserError: If the browser could not be started or the page failed.
    """
    timeout_ms = options.timeout_ms or settings.rendered_timeout_ms
    try:
        async with session.page(**_page_kwargs(options)) as page:
            response = await _load(page, url, options, settings, timeout_ms)
            screenshot = (
                await _screenshot(page, url, timeout_ms) if options.include_screenshot else None
            )
            html = await page.content()
            final_url = page.url or url
    except PlaywrightTimeoutError as exc:
        raise FetchTimeoutError(
            f"Browser timeout after {timeout_ms} ms", url=url, stage="render"
        ) from exc
    except PlaywrightError as exc:
        logger.warning("scraper: playwright fetch failed for %s: %s", url, exc)
        raise BrowserError(f"Browser error: {exc}", url=url) from exc

    logger.info("scraper: rendered %s (%d chars)", final_url, len(html))
    return RenderedPage(
        html=html,
        final_url=final_url,
        status_code=response.status if response is not None else None,
        screenshot=screenshot,
    )


async def capture_screenshot(
    url: str,
    *,
    session: BrowserSession,
    options: FetchOptions,
    settings: Settings,
) -> str:
    """Load *url* in the browser and return a base64 full-page PNG.

    Same loading semantics and errors as :func:`fetch_url_playwright`.
    """
    timeout_ms = options.timeout_ms or settings.rendered_timeout_ms
    try:
        async with session.page(**_page_kwargs(options)) as page:
            await _load(page, url, options, settings, timeout_ms)
            return await _screenshot(page, url, timeout_ms)
    except PlaywrightTimeoutError as exc:
        raise FetchTimeoutError(
            f"Browser timeout after {timeout_ms} ms", url=url, stage="render"
        ) from exc
    except PlaywrightError as exc:
        logger.warning("scraper: screenshot failed for %s: %s", url, exc)
        raise BrowserError(f"Browser error: {exc}", url=url) from exc
