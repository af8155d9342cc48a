"""Unit tests for the fetch orchestrator state machine.

Static fetches are mocked with respx; the rendered path runs against the
``fake_browser`` fixture so escalations can be counted.
"""

from __future__ import annotations

import httpx
import pytest
import respx
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from adaptive_scraper.core.exceptions import FetchTimeoutError, InvalidUrlError, NetworkError
from adaptive_scraper.core.schemas.scraping import (
    ContentProfile,
    FetchOptions,
    FetchSource,
    RenderMode,
)
from adaptive_scraper.scraper.block_detector import BlockDetector
from adaptive_scraper.scraper.orchestrator import fetch_document, scrape_url

_URL = "https://example.com/"

_STATIC_HTML = """
<html><head><title>Static page</title></head>
<body><h1>Server rendered</h1><p>Plain HTML content.</p></body></html>
"""

_CHALLENGE_HTML = """
<html><head><title>Just a moment...</title></head>
<body><div id="cf-wrapper">Checking your browser before accessing example.com.</div></body></html>
"""


def _html(status: int, body: str, **headers: str) -> httpx.Response:
    return httpx.Response(status, text=body, headers={"content-type": "text/html", **headers})


@pytest.fixture
def detector(settings) -> BlockDetector:
    return BlockDetector.from_settings(settings)


@pytest.mark.asyncio
class TestFetchDocument:
    async def _fetch(self, client, browser_session, settings, detector, options=None):
        return await fetch_document(
            _URL,
            options or FetchOptions(),
            client=client,
            session=browser_session,
            settings=settings,
            detector=detector,
        )

    async def test_usable_static_response_is_not_escalated(
        self, fake_browser, browser_session, settings, detector
    ) -> None:
        with respx.mock:
            route = respx.get(_URL).mock(return_value=_html(200, _STATIC_HTML))
            async with httpx.AsyncClient() as client:
                result = await self._fetch(client, browser_session, settings, detector)

        assert result.source is FetchSource.STATIC
        assert result.html == _STATIC_HTML
        assert result.escalation_reason is None
        assert route.call_count == 1
        assert fake_browser.factory.call_count == 0

    async def test_challenge_marker_escalates_exactly_once(
        self, fake_browser, browser_session, settings, detector
    ) -> None:
        with respx.mock:
            route = respx.get(_URL).mock(return_value=_html(200, _CHALLENGE_HTML))
            async with httpx.AsyncClient() as client:
                result = await self._fetch(client, browser_session, settings, detector)

        assert result.source is FetchSource.RENDERED
        assert "Rendered heading" in result.html
        assert "Just a moment..." in result.escalation_reason
        assert route.call_count == 1
        assert fake_browser.page.goto.await_count == 1
        assert fake_browser.released_count == 1

    async def test_403_escalates_exactly_once(
        self, fake_browser, browser_session, settings, detector
    ) -> None:
        with respx.mock:
            route = respx.get(_URL).mock(return_value=_html(403, "<html><body>Forbidden</body></html>"))
            async with httpx.AsyncClient() as client:
                result = await self._fetch(client, browser_session, settings, detector)

        assert result.source is FetchSource.RENDERED
        assert result.escalation_reason == "status 403"
        assert route.call_count == 1
        assert fake_browser.page.goto.await_count == 1

    async def test_block_header_escalates(
        self, fake_browser, browser_session, settings, detector
    ) -> None:
        with respx.mock:
            respx.get(_URL).mock(return_value=_html(503, "", **{"cf-mitigated": "challenge"}))
            async with httpx.AsyncClient() as client:
                result = await self._fetch(client, browser_session, settings, detector)

        assert result.source is FetchSource.RENDERED

    async def test_500_is_extracted_as_is(
        self, fake_browser, browser_session, settings, detector
    ) -> None:
        error_page = "<html><body><h1>Internal Server Error</h1></body></html>"
        with respx.mock:
            respx.get(_URL).mock(return_value=_html(500, error_page))
            async with httpx.AsyncClient() as client:
                result = await self._fetch(client, browser_session, settings, detector)

        assert result.source is FetchSource.STATIC
        assert result.status_code == 500
        assert result.html == error_page
        assert fake_browser.factory.call_count == 0

    async def test_network_error_is_terminal(
        self, fake_browser, browser_session, settings, detector
    ) -> None:
        with respx.mock:
            respx.get(_URL).mock(side_effect=httpx.ConnectError("Connection refused"))
            async with httpx.AsyncClient() as client:
                with pytest.raises(NetworkError):
                    await self._fetch(client, browser_session, settings, detector)

        assert fake_browser.factory.call_count == 0

    async def test_static_timeout_is_terminal(
        self, fake_browser, browser_session, settings, detector
    ) -> None:
        with respx.mock:
            respx.get(_URL).mock(side_effect=httpx.ConnectTimeout("timed out"))
            async with httpx.AsyncClient() as client:
                with pytest.raises(FetchTimeoutError):
                    await self._fetch(client, browser_session, settings, detector)

        assert fake_browser.factory.call_count == 0

    async def test_rendered_failure_is_not_retried_statically(
        self, fake_browser, browser_session, settings, detector
    ) -> None:
        fake_browser.page.goto.side_effect = PlaywrightTimeoutError("Timeout 30000ms exceeded")
        with respx.mock:
            route = respx.get(_URL).mock(return_value=_html(403, "Forbidden"))
            async with httpx.AsyncClient() as client:
                with pytest.raises(FetchTimeoutError) as exc_info:
                    await self._fetch(client, browser_session, settings, detector)

        assert exc_info.value.stage == "navigation"
        assert route.call_count == 1
        assert fake_browser.released_count == 1

    async def test_render_mode_always_skips_static(
        self, fake_browser, browser_session, settings, detector
    ) -> None:
        with respx.mock:
            async with httpx.AsyncClient() as client:
                result = await self._fetch(
                    client,
                    browser_session,
                    settings,
                    detector,
                    FetchOptions(render_mode=RenderMode.ALWAYS),
                )
            assert respx.calls.call_count == 0

        assert result.source is FetchSource.RENDERED
        assert result.escalation_reason is None

    async def test_render_mode_never_keeps_blocked_response(
        self, fake_browser, browser_session, settings, detector
    ) -> None:
        with respx.mock:
            respx.get(_URL).mock(return_value=_html(403, "<html><body>Forbidden</body></html>"))
            async with httpx.AsyncClient() as client:
                result = await self._fetch(
                    client,
                    browser_session,
                    settings,
                    detector,
                    FetchOptions(render_mode="never"),
                )

        assert result.source is FetchSource.STATIC
        assert result.status_code == 403
        assert result.escalation_reason == "status 403"
        assert fake_browser.factory.call_count == 0

    async def test_screenshot_only_on_rendered_path(
        self, fake_browser, browser_session, settings, detector
    ) -> None:
        with respx.mock:
            respx.get(_URL).mock(return_value=_html(200, _STATIC_HTML))
            async with httpx.AsyncClient() as client:
                result = await self._fetch(
                    client, browser_session, settings, detector, FetchOptions(include_screenshot=True)
                )

        assert result.source is FetchSource.STATIC
        assert result.screenshot is None


@pytest.mark.asyncio
class TestScrapeUrl:
    async def test_normalizes_and_extracts(
        self, fake_browser, browser_session, settings, detector
    ) -> None:
        with respx.mock:
            respx.get("https://example.com/news").mock(return_value=_html(200, _STATIC_HTML))
            async with httpx.AsyncClient() as client:
                result = await scrape_url(
                    "HTTPS://Example.com/news/",
                    FetchOptions(),
                    ContentProfile.PAGE,
                    client=client,
                    session=browser_session,
                    settings=settings,
                    detector=detector,
                )

        assert result.url == "https://example.com/news"
        assert result.source is FetchSource.STATIC
        assert result.status_code == 200
        assert result.data["title"] == "Static page"
        assert result.to_dict()["headings"] == [{"level": 1, "text": "Server rendered"}]

    async def test_escalated_result_is_extracted_from_rendered_dom(
        self, fake_browser, browser_session, settings, detector
    ) -> None:
        with respx.mock:
            respx.get(_URL).mock(return_value=_html(200, _CHALLENGE_HTML))
            async with httpx.AsyncClient() as client:
                result = await scrape_url(
                    _URL,
                    FetchOptions(include_screenshot=True),
                    ContentProfile.LINKS,
                    client=client,
                    session=browser_session,
                    settings=settings,
                    detector=detector,
                )

        assert result.source is FetchSource.RENDERED
        assert result.data == {
            "links": [{"url": "https://example.com/next", "text": "Next", "isExternal": False}]
        }
        assert result.screenshot is not None
        assert result.to_dict()["screenshot"] == result.screenshot

    async def test_invalid_url_fails_before_network(
        self, fake_browser, browser_session, settings, detector
    ) -> None:
        with respx.mock:
            async with httpx.AsyncClient() as client:
                with pytest.raises(InvalidUrlError):
                    await scrape_url(
                        "ftp://example.com/file",
                        FetchOptions(),
                        ContentProfile.PAGE,
                        client=client,
                        session=browser_session,
                        settings=settings,
                        detector=detector,
                    )
            assert respx.calls.call_count == 0

        assert fake_browser.factory.call_count == 0
