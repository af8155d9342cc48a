"""Batch runner with per-URL error isolation.

Runs the single-URL pipeline for every URL of a batch, at most
``concurrency`` at a time.  One URL failing, at any stage, is recorded as a
:class:`~adaptive_scraper.core.schemas.scraping.BatchError` and never stops
the other URLs.  Every input URL ends up in exactly one of
``BatchReport.results`` and ``BatchReport.errors``.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Union

from adaptive_scraper.core.exceptions import ScraperError
from adaptive_scraper.core.schemas.scraping import BatchError, BatchReport, ScrapeResult

logger = logging.getLogger(__name__)

Pipeline = Callable[[str], Awaitable[ScrapeResult]]


async def _run_one(
    url: str,
    pipeline: Pipeline,
    semaphore: asyncio.Semaphore,
) -> Union[ScrapeResult, BatchError]:
    async with semaphore:
        try:
            return await pipeline(url)
        except ScraperError as exc:
            logger.info("scraper: batch item %r failed (%s): %s", url, exc.kind, exc)
            return BatchError(url=str(url), error=str(exc), kind=exc.kind)
        except Exception as exc:  # noqa: BLE001
            logger.exception("scraper: unexpected error for batch item %r", url)
            return BatchError(url=str(url), error=str(exc) or type(exc).__name__, kind="internal")


async def run_batch(
    urls: Sequence[str],
    pipeline: Pipeline,
    *,
    concurrency: int,
) -> BatchReport:
    """Run *pipeline* over *urls* and collect one outcome per URL.

    Args:
        urls: List (or tuple) of URLs.  Individual entries may be invalid;
            they become ``invalid_url`` errors in the report.
        pipeline: Coroutine function scraping one URL.
        concurrency: Maximum number of URLs in flight.

    Returns:
        A :class:`BatchReport`; results and errors follow input order.

    Raises:
        TypeError: If *urls* is not a list or tuple.
    """
    if not isinstance(urls, (list, tuple)):
        raise TypeError(f"URLs must be provided as a list, got {type(urls).__name__}")

    semaphore = asyncio.Semaphore(concurrency)
    outcomes = await asyncio.gather(*(_run_one(url, pipeline, semaphore) for url in urls))

    results = [outcome for outcome in outcomes if isinstance(outcome, ScrapeResult)]
    errors = [outcome for outcome in outcomes if isinstance(outcome, BatchError)]
    report = BatchReport.from_outcomes(results, errors)
    logger.info(
        "scraper: batch done: %d/%d succeeded",
        report.success_count,
        report.total_processed,
    )
    return report
