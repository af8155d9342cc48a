"""Public entry point of the scraper library.

:class:`ScraperService` wires the pipeline's collaborators together (settings,
the shared browser session, the HTTP client and the block detector) and
exposes the four operations a host application needs::

    async with ScraperService() as scraper:
        page = await scraper.fetch_and_extract("https://example.com")
        report = await scraper.fetch_and_extract_batch(urls, profile="links")
        png_b64 = await scraper.capture_screenshot("https://example.com")

Leaving the ``async with`` block (or calling :meth:`ScraperService.shutdown`)
closes the browser process.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from contextlib import asynccontextmanager
from functools import partial
from typing import Any, AsyncIterator, Sequence, Union

import httpx

from adaptive_scraper.config.settings import Settings, get_settings
from adaptive_scraper.core.schemas.scraping import (
    BatchReport,
    ContentProfile,
    ExtractionProfile,
    FetchOptions,
    ScrapeResult,
    SelectorProfile,
)
from adaptive_scraper.scraper import playwright_fetcher
from adaptive_scraper.scraper.batch import run_batch
from adaptive_scraper.scraper.block_detector import BlockDetector
from adaptive_scraper.scraper.browser_session import BrowserSession
from adaptive_scraper.scraper.orchestrator import scrape_url
from adaptive_scraper.scraper.urls import normalize

logger = logging.getLogger(__name__)

OptionsLike = Union[FetchOptions, Mapping[str, Any], None]
ProfileLike = Union[ExtractionProfile, str, Mapping[str, Any]]


def coerce_options(options: OptionsLike) -> FetchOptions:
    """Accept ``None``, a :class:`FetchOptions` or a (camelCase) mapping."""
    if options is None:
        return FetchOptions()
    if isinstance(options, FetchOptions):
        return options
    return FetchOptions.model_validate(options)


def coerce_profile(profile: ProfileLike) -> ExtractionProfile:
    """Accept a profile, a profile name (``"links"``) or a raw selector mapping.

    A mapping is treated as a selector map and decoded once here, bare strings
    becoming text selectors.

    Raises:
        ValueError: On an unknown profile name.
        pydantic.ValidationError: On a malformed selector map.
    """
    if isinstance(profile, (ContentProfile, SelectorProfile)):
        return profile
    if isinstance(profile, str):
        return ContentProfile(profile)
    return SelectorProfile(selectors=profile)


class ScraperService:
    """Facade over the adaptive fetch-and-extract pipeline.

    Args:
        settings: Scraper settings; :func:`get_settings` by default.
        session: Browser session to use; a new one built from *settings* by
            default.  The service shuts it down in :meth:`shutdown`.
        http_client: Optional injected :class:`httpx.AsyncClient`.  When
            absent, a client honouring ``FetchOptions.max_redirects`` is
            created per call (shared across the URLs of a batch).
    """

    def __init__(
        self,
        *,
        settings: Settings | None = None,
        session: BrowserSession | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._session = session or BrowserSession.from_settings(self._settings)
        self._http_client = http_client
        self._detector = BlockDetector.from_settings(self._settings)

    @property
    def session(self) -> BrowserSession:
        return self._session

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _client(self, options: FetchOptions) -> AsyncIterator[httpx.AsyncClient]:
        if self._http_client is not None:
            yield self._http_client
            return

        max_redirects = (
            options.max_redirects
            if options.max_redirects is not None
            else self._settings.max_redirects
        )
        async with httpx.AsyncClient(
            follow_redirects=True,
            max_redirects=max_redirects,
        ) as client:
            yield client

    def _pipeline(
        self,
        options: FetchOptions,
        profile: ExtractionProfile,
        client: httpx.AsyncClient,
    ) -> partial:
        return partial(
            scrape_url,
            options=options,
            profile=profile,
            client=client,
            session=self._session,
            settings=self._settings,
            detector=self._detector,
        )

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def fetch_and_extract(
        self,
        url: str,
        options: OptionsLike = None,
        profile: ProfileLike = ContentProfile.PAGE,
    ) -> ScrapeResult:
        """Fetch one URL and extract content from it.

        Args:
            url: Absolute http(s) URL.
            options: Fetch options (model or camelCase mapping).
            profile: Built-in profile, profile name, or selector map.

        Returns:
            The :class:`ScrapeResult`.

        Raises:
            InvalidUrlError: If *url* is not an http(s) URL; raised before any
                network access.
            NetworkError: If the host cannot be reached.
            FetchTimeoutError: If a fetch step timed out.
            BrowserError: If the rendered fetch failed.
            ExtractionError: If the response holds no HTML document.
        """
        fetch_options = coerce_options(options)
        extraction_profile = coerce_profile(profile)
        normalized = normalize(url)
        async with self._client(fetch_options) as client:
            return await self._pipeline(fetch_options, extraction_profile, client)(normalized)

    async def fetch_and_extract_batch(
        self,
        urls: Sequence[str],
        options: OptionsLike = None,
        profile: ProfileLike = ContentProfile.PAGE,
    ) -> BatchReport:
        """Fetch and extract every URL of *urls* with per-URL isolation.

        Never raises for individual URL failures; those are listed in
        ``BatchReport.errors``.

        Raises:
            TypeError: If *urls* is not a list or tuple.
        """
        if not isinstance(urls, (list, tuple)):
            raise TypeError(f"URLs must be provided as a list, got {type(urls).__name__}")

        fetch_options = coerce_options(options)
        extraction_profile = coerce_profile(profile)
        logger.info("scraper: batch scraping %d URLs", len(urls))
        async with self._client(fetch_options) as client:
            return await run_batch(
                urls,
                self._pipeline(fetch_options, extraction_profile, client),
                concurrency=self._settings.batch_concurrency,
            )

    async def capture_screenshot(self, url: str, options: OptionsLike = None) -> str:
        """Render *url* in the browser and return a base64 full-page PNG.

        Raises:
            InvalidUrlError, FetchTimeoutError, BrowserError: As for
                :meth:`fetch_and_extract` on the rendered path.
        """
        fetch_options = coerce_options(options)
        normalized = normalize(url)
        logger.info("scraper: taking screenshot of %s", normalized)
        return await playwright_fetcher.capture_screenshot(
            normalized,
            session=self._session,
            options=fetch_options,
            settings=self._settings,
        )

    async def shutdown(self) -> None:
        """Release the browser process.  Safe to call more than once."""
        await self._session.shutdown()

    async def __aenter__(self) -> "ScraperService":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.shutdown()
