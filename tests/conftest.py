"""Shared pytest fixtures for adaptive scraper tests.

Fixture summary
---------------
settings        Settings with test-friendly scroll pauses, isolated from .env.
fake_browser    FakeBrowser bundle of AsyncMock Playwright objects.
browser_session BrowserSession wired to ``fake_browser``; never starts Chromium.

No test launches a real browser or opens a network connection: static
fetches are mocked with respx and the rendered path runs against the fakes
below.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Iterator
from dataclasses import dataclass, field
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

from adaptive_scraper.config.settings import Settings, get_settings
from adaptive_scraper.scraper.browser_session import BrowserSession

_RENDERED_HTML = """
<html>
<head><title>Rendered page</title></head>
<body>
  <h1>Rendered heading</h1>
  <p>Content produced by client-side scripts.</p>
  <a href="/next">Next</a>
</body>
</html>
"""


# ---------------------------------------------------------------------------
# Fake Playwright objects
# ---------------------------------------------------------------------------


@dataclass
class FakeBrowser:
    """Mock Playwright driver, browser, context and page, wired together.

    ``factory`` stands in for :func:`playwright.async_api.async_playwright`.
    """

    html: str = _RENDERED_HTML
    url: str = "https://example.com/"
    status: int = 200
    page: MagicMock = field(init=False)
    context: MagicMock = field(init=False)
    browser: MagicMock = field(init=False)
    playwright: MagicMock = field(init=False)
    factory: MagicMock = field(init=False)

    def __post_init__(self) -> None:
        self.page = MagicMock(name="page")
        self.page.url = self.url
        self.page.set_default_timeout = MagicMock()
        self.page.goto = AsyncMock(return_value=MagicMock(status=self.status))
        self.page.wait_for_selector = AsyncMock(return_value=None)
        self.page.evaluate = AsyncMock(return_value=0)
        self.page.screenshot = AsyncMock(return_value=b"fake-png")
        self.page.content = AsyncMock(return_value=self.html)
        self.page.title = AsyncMock(return_value="Rendered page")

        self.context = MagicMock(name="context")
        self.context.new_page = AsyncMock(return_value=self.page)
        self.context.close = AsyncMock()

        self.browser = MagicMock(name="browser")
        self.browser.is_connected = MagicMock(return_value=True)
        self.browser.new_context = AsyncMock(return_value=self.context)
        self.browser.close = AsyncMock()

        self.playwright = MagicMock(name="playwright")
        self.playwright.chromium.launch = AsyncMock(return_value=self.browser)
        self.playwright.stop = AsyncMock()

        self.factory = MagicMock(name="async_playwright")
        self.factory.return_value.start = AsyncMock(return_value=self.playwright)

    @property
    def launch_count(self) -> int:
        return self.playwright.chromium.launch.await_count

    @property
    def released_count(self) -> int:
        return self.context.close.await_count


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _clear_settings_cache() -> Iterator[None]:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None, scroll_pause_ms=0, batch_concurrency=3)


@pytest.fixture
def fake_browser() -> FakeBrowser:
    return FakeBrowser()


@pytest_asyncio.fixture
async def browser_session(fake_browser: FakeBrowser) -> AsyncGenerator[BrowserSession, None]:
    session = BrowserSession(playwright_factory=fake_browser.factory)
    yield session
    await session.shutdown()
