"""Unit tests for the shared browser session lifecycle.

Playwright is replaced by the ``fake_browser`` fixture, so no Chromium
process is ever started.
"""

from __future__ import annotations

import asyncio

import pytest
from playwright.async_api import Error as PlaywrightError

from adaptive_scraper.config.settings import Settings
from adaptive_scraper.core.exceptions import BrowserError
from adaptive_scraper.scraper.browser_session import BrowserSession, SessionState


@pytest.mark.asyncio
class TestAcquire:
    async def test_lazy_launch(self, fake_browser, browser_session) -> None:
        assert browser_session.state is SessionState.UNINITIALIZED
        assert fake_browser.launch_count == 0

        browser = await browser_session.acquire()

        assert browser is fake_browser.browser
        assert browser_session.state is SessionState.RUNNING
        assert fake_browser.launch_count == 1

    async def test_concurrent_cold_start_launches_once(self, fake_browser, browser_session) -> None:
        async def _slow_start():
            await asyncio.sleep(0.01)
            return fake_browser.playwright

        fake_browser.factory.return_value.start.side_effect = _slow_start

        browsers = await asyncio.gather(*(browser_session.acquire() for _ in range(10)))

        assert all(b is fake_browser.browser for b in browsers)
        assert fake_browser.factory.call_count == 1
        assert fake_browser.launch_count == 1

    async def test_launch_uses_headless_and_args(self, fake_browser) -> None:
        session = BrowserSession.from_settings(Settings(_env_file=None, browser_args=["--no-sandbox"]))
        session._playwright_factory = fake_browser.factory

        await session.acquire()

        fake_browser.playwright.chromium.launch.assert_awaited_once_with(
            headless=True, args=["--no-sandbox"]
        )
        await session.shutdown()

    async def test_disconnected_browser_is_relaunched(self, fake_browser, browser_session) -> None:
        await browser_session.acquire()
        fake_browser.browser.is_connected.return_value = False

        await browser_session.acquire()

        assert fake_browser.launch_count == 2
        fake_browser.browser.close.assert_awaited_once()

    async def test_launch_failure_raises_browser_error(self, fake_browser, browser_session) -> None:
        fake_browser.playwright.chromium.launch.side_effect = PlaywrightError("Executable doesn't exist")

        with pytest.raises(BrowserError) as exc_info:
            await browser_session.acquire()

        assert exc_info.value.kind == "browser"
        fake_browser.playwright.stop.assert_awaited_once()
        assert browser_session.state is SessionState.UNINITIALIZED


@pytest.mark.asyncio
class TestShutdown:
    async def test_shutdown_closes_browser_and_driver(self, fake_browser, browser_session) -> None:
        await browser_session.acquire()

        await browser_session.shutdown()

        assert browser_session.state is SessionState.CLOSED
        fake_browser.browser.close.assert_awaited_once()
        fake_browser.playwright.stop.assert_awaited_once()

    async def test_shutdown_is_idempotent(self, fake_browser, browser_session) -> None:
        await browser_session.acquire()

        await browser_session.shutdown()
        await browser_session.shutdown()

        fake_browser.browser.close.assert_awaited_once()

    async def test_shutdown_before_launch_is_noop(self, fake_browser, browser_session) -> None:
        await browser_session.shutdown()

        assert browser_session.state is SessionState.UNINITIALIZED
        fake_browser.browser.close.assert_not_awaited()

    async def test_acquire_after_shutdown_relaunches(self, fake_browser, browser_session) -> None:
        await browser_session.acquire()
        await browser_session.shutdown()

        await browser_session.acquire()

        assert browser_session.state is SessionState.RUNNING
        assert fake_browser.launch_count == 2

    async def test_async_context_manager_shuts_down(self, fake_browser) -> None:
        async with BrowserSession(playwright_factory=fake_browser.factory) as session:
            await session.acquire()

        assert session.state is SessionState.CLOSED


@pytest.mark.asyncio
class TestPage:
    async def test_page_context_released_once(self, fake_browser, browser_session) -> None:
        async with browser_session.page(user_agent="bot/1.0", viewport={"width": 800, "height": 600}) as page:
            assert page is fake_browser.page
            assert browser_session.open_pages == 1

        assert browser_session.open_pages == 0
        assert fake_browser.released_count == 1
        fake_browser.browser.new_context.assert_awaited_once_with(
            user_agent="bot/1.0", viewport={"width": 800, "height": 600}
        )

    async def test_page_context_released_once_on_error(self, fake_browser, browser_session) -> None:
        with pytest.raises(RuntimeError):
            async with browser_session.page():
                raise RuntimeError("boom")

        assert browser_session.open_pages == 0
        assert fake_browser.released_count == 1

    async def test_page_context_released_once_on_cancel(self, fake_browser, browser_session) -> None:
        entered = asyncio.Event()

        async def _hold_page() -> None:
            async with browser_session.page():
                entered.set()
                await asyncio.sleep(60)

        task = asyncio.create_task(_hold_page())
        await entered.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert browser_session.open_pages == 0
        assert fake_browser.released_count == 1

    async def test_extra_headers_passed_to_context(self, fake_browser, browser_session) -> None:
        async with browser_session.page(extra_headers={"X-Trace": "1"}):
            pass

        fake_browser.browser.new_context.assert_awaited_once_with(
            extra_http_headers={"X-Trace": "1"}
        )

    async def test_new_page_failure_still_releases_context(self, fake_browser, browser_session) -> None:
        fake_browser.context.new_page.side_effect = PlaywrightError("Target closed")

        with pytest.raises(BrowserError):
            async with browser_session.page():
                pass

        assert fake_browser.released_count == 1
        assert browser_session.open_pages == 0

    async def test_release_failure_is_not_raised(self, fake_browser, browser_session) -> None:
        fake_browser.context.close.side_effect = PlaywrightError("Browser has been closed")

        async with browser_session.page():
            pass

        assert browser_session.open_pages == 0
