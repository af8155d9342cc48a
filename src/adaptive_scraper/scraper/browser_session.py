"""Shared headless Chromium process with per-operation page contexts.

One :class:`BrowserSession` owns one Playwright driver and one browser
process.  The process is launched lazily on the first rendered fetch and
lives until :meth:`BrowserSession.shutdown`.  Every fetch gets its own
browser context (cookies, storage and cache isolated) through
:meth:`BrowserSession.page`, which closes that context on every exit path.

Lifecycle::

    uninitialized ──acquire()──▶ running ──shutdown()──▶ closed
                                    ▲                       │
                                    └──────acquire()────────┘

Host code creates the session (usually through
:class:`~adaptive_scraper.scraper.service.ScraperService`) and must call
``shutdown()`` during process teardown.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable

from playwright.async_api import Browser, Page, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError

from adaptive_scraper.config.settings import Settings
from adaptive_scraper.core.exceptions import BrowserError

logger = logging.getLogger(__name__)


class SessionState(str, enum.Enum):
    UNINITIALIZED = "uninitialized"
    RUNNING = "running"
    CLOSED = "closed"


class BrowserSession:
    """Lazily launched, shared browser process.

    Args:
        headless: Launch Chromium without a window.
        args: Extra Chromium command-line flags.
        playwright_factory: Callable returning an object with an async
            ``start()`` method, :func:`playwright.async_api.async_playwright`
            by default.  Tests inject a fake here.
    """

    def __init__(
        self,
        *,
        headless: bool = True,
        args: list[str] | None = None,
        playwright_factory: Callable[[], Any] = async_playwright,
    ) -> None:
        self._headless = headless
        self._args = list(args or [])
        self._playwright_factory = playwright_factory
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._lock = asyncio.Lock()
        self._state = SessionState.UNINITIALIZED
        self._open_pages = 0

    @classmethod
    def from_settings(cls, settings: Settings) -> "BrowserSession":
        return cls(headless=settings.browser_headless, args=settings.browser_args)

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def open_pages(self) -> int:
        """Number of page contexts currently checked out."""
        return self._open_pages

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def acquire(self) -> Browser:
        """Return the running browser, launching it first if needed.

        Concurrent callers during a cold start wait on the same lock, so only
        one browser process is ever launched.  A browser that has crashed or
        disconnected is replaced.

        Raises:
            BrowserError: If the driver or the browser cannot be started.
        """
        browser = self._browser
        if browser is not None and browser.is_connected():
            return browser

        async with self._lock:
            if self._browser is not None and self._browser.is_connected():
                return self._browser
            if self._browser is not None:
                logger.warning("scraper: browser disconnected, relaunching")
                await self._close()
            self._browser = await self._launch()
            self._state = SessionState.RUNNING
            return self._browser

    async def _launch(self) -> Browser:
        try:
            playwright = await self._playwright_factory().start()
        except (PlaywrightError, OSError) as exc:
            raise BrowserError(f"Could not start Playwright: {exc}") from exc

        try:
            browser = await playwright.chromium.launch(
                headless=self._headless,
                args=self._args,
            )
        except PlaywrightError as exc:
            await playwright.stop()
            raise BrowserError(f"Could not launch browser: {exc}") from exc

        self._playwright = playwright
        logger.info("scraper: browser launched (headless=%s)", self._headless)
        return browser

    async def shutdown(self) -> None:
        """Close the browser process.  A no-op when nothing is running."""
        async with self._lock:
            if self._browser is None and self._playwright is None:
                return
            await self._close()
            self._state = SessionState.CLOSED
            logger.info("scraper: browser closed")

    async def _close(self) -> None:
        browser, playwright = self._browser, self._playwright
        self._browser = None
        self._playwright = None
        try:
            if browser is not None:
                await browser.close()
        except PlaywrightError as exc:
            logger.warning("scraper: error while closing browser: %s", exc)
        finally:
            if playwright is not None:
                await playwright.stop()

    async def __aenter__(self) -> "BrowserSession":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.shutdown()

    # ------------------------------------------------------------------
    # Pages
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def page(
        self,
        *,
        user_agent: str | None = None,
        viewport: dict[str, int] | None = None,
        extra_headers: dict[str, str] | None = None,
    ) -> AsyncIterator[Page]:
        """Yield a page in a fresh, isolated browser context.

        The context (and with it the page) is closed exactly once when the
        ``async with`` block exits, whether it completes, raises or is
        cancelled.

        Raises:
            BrowserError: If the context or page cannot be created.
        """
        browser = await self.acquire()

        context_kwargs: dict[str, Any] = {}
        if user_agent:
            context_kwargs["user_agent"] = user_agent
        if viewport:
            context_kwargs["viewport"] = viewport
        if extra_headers:
            context_kwargs["extra_http_headers"] = extra_headers

        try:
            context = await browser.new_context(**context_kwargs)
        except PlaywrightError as exc:
            raise BrowserError(f"Could not open browser context: {exc}") from exc

        self._open_pages += 1
        try:
            try:
                page = await context.new_page()
            except PlaywrightError as exc:
                raise BrowserError(f"Could not open page: {exc}") from exc
            yield page
        finally:
            self._open_pages -= 1
            try:
                await context.close()
            except PlaywrightError as exc:
                # The original failure, if any, is already propagating.
                logger.warning("scraper: error while closing page context: %s", exc)
