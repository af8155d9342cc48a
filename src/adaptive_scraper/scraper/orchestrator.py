"""Fetch orchestration: static fetch, block detection, rendered escalation.

State machine of one fetch::

    Init ──▶ StaticAttempt ──usable──────────────────────────▶ Done
                  │
                  └──blocked──▶ Escalate ──▶ RenderedAttempt ──▶ Done

- Transport failures of the static attempt (DNS, refused connection,
  timeout, redirect loop) are terminal.  A browser cannot fix them.
- A blocked response (403, block header, challenge marker) escalates exactly
  once.  The static path is never retried.
- Other 4xx/5xx responses are *usable*: their body is extracted as-is.

:func:`scrape_url` adds URL normalization in front and extraction behind,
forming the single-URL pipeline that both the service and the batch runner
execute.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from adaptive_scraper.config.settings import Settings
from adaptive_scraper.core.logging_config import scrape_context
from adaptive_scraper.core.schemas.scraping import (
    ExtractionProfile,
    FetchOptions,
    FetchSource,
    RenderMode,
    ScrapeResult,
)
from adaptive_scraper.scraper.block_detector import BlockDetector
from adaptive_scraper.scraper.browser_session import BrowserSession
from adaptive_scraper.scraper.content_extractor import extract
from adaptive_scraper.scraper.http_fetcher import build_headers, fetch_url
from adaptive_scraper.scraper.playwright_fetcher import fetch_url_playwright
from adaptive_scraper.scraper.urls import normalize

logger = logging.getLogger(__name__)


@dataclass
class FetchResult:
    """Document produced by one fetch, tagged with the path that served it.

    Attributes:
        final_url: URL after redirects.
        source: ``FetchSource.STATIC`` or ``FetchSource.RENDERED``.
        html: Document markup (rendered DOM snapshot on the browser path).
        status_code: HTTP status of the served document, if known.
        escalation_reason: Why the static result was abandoned, if it was.
        screenshot: Base64 PNG (rendered path with ``include_screenshot`` only).
    """

    final_url: str
    source: FetchSource
    html: str
    status_code: int | None
    escalation_reason: str | None = None
    screenshot: str | None = None


async def _rendered_attempt(
    url: str,
    options: FetchOptions,
    *,
    session: BrowserSession,
    settings: Settings,
    reason: str | None,
) -> FetchResult:
    rendered = await fetch_url_playwright(url, session=session, options=options, settings=settings)
    return FetchResult(
        final_url=rendered.final_url,
        source=FetchSource.RENDERED,
        html=rendered.html,
        status_code=rendered.status_code,
        escalation_reason=reason,
        screenshot=rendered.screenshot,
    )


async def fetch_document(
    url: str,
    options: FetchOptions,
    *,
    client: httpx.AsyncClient,
    session: BrowserSession,
    settings: Settings,
    detector: BlockDetector,
) -> FetchResult:
    """Fetch *url*, escalating to the browser only when the response is blocked.

    Args:
        url: Normalized target URL.
        options: Fetch options; ``render_mode`` can force or forbid the browser.
        client: HTTP client of the static attempt.
        session: Shared browser session of the rendered attempt.
        settings: Scraper settings (default timeouts).
        detector: Block detector deciding escalation.

    Returns:
        A :class:`FetchResult`.

    Raises:
        NetworkError: If the host cannot be reached (never escalated).
        FetchTimeoutError: If any suspension point timed out.
        BrowserError: If the rendered attempt failed.
        ExtractionError: If the static response is not an HTML document.
    """
    if options.render_mode is RenderMode.ALWAYS:
        logger.info("scraper: rendering %s directly", url)
        return await _rendered_attempt(url, options, session=session, settings=settings, reason=None)

    response = await fetch_url(
        url,
        client=client,
        timeout_ms=options.timeout_ms or settings.static_timeout_ms,
        headers=build_headers(options.user_agent, options.headers),
    )

    reason = detector.detect(response)
    if reason is None:
        return FetchResult(
            final_url=response.final_url,
            source=FetchSource.STATIC,
            html=response.html,
            status_code=response.status_code,
        )

    if options.render_mode is RenderMode.NEVER:
        logger.info("scraper: %s looks blocked (%s); rendering disabled", url, reason)
        return FetchResult(
            final_url=response.final_url,
            source=FetchSource.STATIC,
            html=response.html,
            status_code=response.status_code,
            escalation_reason=reason,
        )

    logger.info("scraper: %s looks blocked (%s); retrying in browser", url, reason)
    return await _rendered_attempt(url, options, session=session, settings=settings, reason=reason)


async def scrape_url(
    url: str,
    options: FetchOptions,
    profile: ExtractionProfile,
    *,
    client: httpx.AsyncClient,
    session: BrowserSession,
    settings: Settings,
    detector: BlockDetector,
) -> ScrapeResult:
    """Run the full single-URL pipeline: normalize, fetch, extract.

    Raises:
        InvalidUrlError: Before any network access, if *url* is not http(s).
        NetworkError, FetchTimeoutError, BrowserError, ExtractionError: See
            :func:`fetch_document` and
            :func:`~adaptive_scraper.scraper.content_extractor.extract`.
    """
    normalized = normalize(url)
    with scrape_context(normalized):
        fetched = await fetch_document(
            normalized,
            options,
            client=client,
            session=session,
            settings=settings,
            detector=detector,
        )
        data = extract(fetched.html, fetched.final_url, profile)
        logger.info(
            "scraper: extracted %d fields from %s via %s",
            len(data),
            normalized,
            fetched.source.value,
        )
        return ScrapeResult(
            url=normalized,
            source=fetched.source,
            status_code=fetched.status_code,
            data=data,
            screenshot=fetched.screenshot,
        )
