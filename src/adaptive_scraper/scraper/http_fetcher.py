"""Async static fetcher built on httpx.

Performs a single ``GET`` with browser-like headers, a timeout and a redirect
limit.  Any response that arrives, whatever its status, is returned as a
:class:`StaticResponse`; deciding whether it is usable is the job of
:mod:`adaptive_scraper.scraper.block_detector` and the orchestrator.  Only
transport failures raise.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

import httpx

from adaptive_scraper.core.exceptions import (
    ExtractionError,
    FetchTimeoutError,
    InvalidUrlError,
    NetworkError,
)
from adaptive_scraper.scraper.config import BINARY_CONTENT_TYPES, DEFAULT_HEADERS

logger = logging.getLogger(__name__)

_HOST_NOT_FOUND_HINTS: tuple[str, ...] = (
    "name or service not known",
    "nodename nor servname",
    "getaddrinfo failed",
    "no address associated",
    "temporary failure in name resolution",
    "name resolution",
)


# ---------------------------------------------------------------------------
# Result dataclass
# ---------------------------------------------------------------------------


@dataclass
class StaticResponse:
    """Raw result of a static fetch.

    Attributes:
        status_code: HTTP status code.
        headers: Response headers (case-insensitive mapping).
        html: Decoded response body.
        final_url: URL after following redirects.
    """

    status_code: int
    html: str
    final_url: str
    headers: httpx.Headers = field(default_factory=httpx.Headers)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def build_headers(user_agent: str, extra: dict[str, str] | None = None) -> dict[str, str]:
    """Return the browser-like request headers with caller overrides applied."""
    headers = {**DEFAULT_HEADERS, "User-Agent": user_agent}
    if extra:
        headers.update(extra)
    return headers


def _is_binary_content_type(content_type: str) -> bool:
    """Return ``True`` if the Content-Type indicates a non-text binary resource."""
    ct = content_type.lower().split(";")[0].strip()
    return any(ct.startswith(prefix) for prefix in BINARY_CONTENT_TYPES)


def _classify_connect_error(exc: httpx.ConnectError) -> str:
    """Map a connection failure to ``"host_not_found"`` or ``"connection_refused"``."""
    message = str(exc).lower()
    if any(hint in message for hint in _HOST_NOT_FOUND_HINTS):
        return "host_not_found"
    return "connection_refused"


# ---------------------------------------------------------------------------
# Public fetch function
# ---------------------------------------------------------------------------


async def fetch_url(
    url: str,
    *,
    client: httpx.AsyncClient,
    timeout_ms: int,
    headers: dict[str, str],
) -> StaticResponse:
    """Fetch a single URL with httpx.

    The redirect limit is a property of *client* (``max_redirects``), set by
    whoever builds it.

    Args:
        url: Normalized target URL.
        client: Shared :class:`httpx.AsyncClient` instance.
        timeout_ms: Total deadline in milliseconds for the request, redirects
            and body download included.
        headers: Request headers, see :func:`build_headers`.

    Returns:
        A :class:`StaticResponse` for any HTTP status, including 4xx/5xx.

    Raises:
        FetchTimeoutError: If the request exceeded *timeout_ms*.
        InvalidUrlError: If httpx refuses to build a request for *url*.
        NetworkError: On DNS failure, refused connection, redirect loop or
            any other transport error.
        ExtractionError: If the response is a binary resource.
    """
    timeout_s = timeout_ms / 1000
    logger.debug("scraper: GET %s", url, extra={"request_headers": headers})
    try:
        # httpx bounds each connect/read/write/pool phase separately;
        # wait_for turns timeout_ms into a deadline for the whole request.
        response = await asyncio.wait_for(
            client.get(url, timeout=timeout_s, follow_redirects=True, headers=headers),
            timeout=timeout_s,
        )
    except (httpx.TimeoutException, asyncio.TimeoutError) as exc:
        logger.warning("scraper: timeout fetching %s", url)
        raise FetchTimeoutError(
            f"Request timeout after {timeout_ms} ms", url=url, stage="static"
        ) from exc
    except httpx.TooManyRedirects as exc:
        logger.warning("scraper: too many redirects for %s", url)
        raise NetworkError(
            "Too many redirects", url=url, reason="too_many_redirects"
        ) from exc
    except httpx.ConnectError as exc:
        reason = _classify_connect_error(exc)
        logger.warning("scraper: %s for %s: %s", reason, url, exc)
        raise NetworkError(f"Could not connect: {exc}", url=url, reason=reason) from exc
    except httpx.RequestError as exc:
        logger.warning("scraper: request error for %s: %s", url, exc)
        raise NetworkError(f"Request error: {exc}", url=url) from exc
    except httpx.InvalidURL as exc:
        logger.info("scraper: httpx rejected %r: %s", url, exc)
        raise InvalidUrlError(url) from exc

    final_url = str(response.url)

    content_type = response.headers.get("content-type", "")
    if _is_binary_content_type(content_type):
        logger.info("scraper: binary content-type '%s' for %s", content_type, url)
        raise ExtractionError(f"No HTML document: binary content-type {content_type}", url=url)

    if response.status_code >= 400:
        logger.info("scraper: HTTP %d for %s", response.status_code, url)

    return StaticResponse(
        status_code=response.status_code,
        html=response.text,
        final_url=final_url,
        headers=response.headers,
    )
