"""URL validation, normalization and resolution.

All functions are pure (no I/O).  :func:`normalize` raises on bad input
because a request URL that cannot be parsed must abort the pipeline;
:func:`resolve` returns ``None`` instead because a malformed ``href`` inside
a document must never abort extraction of the rest of the page.
"""

from __future__ import annotations

import urllib.parse

from adaptive_scraper.core.exceptions import InvalidUrlError

_ALLOWED_SCHEMES: frozenset[str] = frozenset({"http", "https"})
_DEFAULT_PORTS: dict[str, int] = {"http": 80, "https": 443}


def _has_control_chars(value: str) -> bool:
    return any(ord(char) < 0x20 or ord(char) == 0x7F for char in value)


def _split(url: str) -> urllib.parse.SplitResult | None:
    """Parse *url* into components, or return ``None`` if it is not a web URL.

    URLs holding ASCII control characters anywhere after trimming are
    rejected; HTTP clients refuse to send them.
    """
    if not isinstance(url, str):
        return None
    url = url.strip()
    if _has_control_chars(url):
        return None
    try:
        parts = urllib.parse.urlsplit(url)
        # Accessing .port validates the port number.
        parts.port  # noqa: B018
    except ValueError:
        return None
    if parts.scheme.lower() not in _ALLOWED_SCHEMES or not parts.hostname:
        return None
    return parts


def validate(url: str) -> bool:
    """Return ``True`` iff *url* is an absolute http(s) URL with a host."""
    return _split(url) is not None


def normalize(url: str) -> str:
    """Return the canonical form of *url*.

    Performs the following transformations:

    1. Lowercase the scheme and hostname; drop the scheme's default port.
    2. Strip trailing slashes from a non-root path (an empty path becomes ``/``).
    3. Keep the query string and fragment untouched.

    The result is a fixed point: ``normalize(normalize(u)) == normalize(u)``.

    Args:
        url: Raw URL string.

    Returns:
        Normalized URL string.

    Raises:
        InvalidUrlError: If *url* is not an absolute http(s) URL.
    """
    parts = _split(url)
    if parts is None:
        raise InvalidUrlError(url)

    scheme = parts.scheme.lower()
    netloc = _canonical_netloc(parts, scheme)
    path = parts.path.rstrip("/") or "/"
    return urllib.parse.urlunsplit((scheme, netloc, path, parts.query, parts.fragment))


def _canonical_netloc(parts: urllib.parse.SplitResult, scheme: str) -> str:
    host = parts.hostname or ""
    if ":" in host:
        # IPv6 literal; urlsplit strips the brackets.
        host = f"[{host}]"
    port = parts.port
    if port is not None and port != _DEFAULT_PORTS[scheme]:
        host = f"{host}:{port}"
    if parts.username is not None:
        userinfo = parts.username
        if parts.password is not None:
            userinfo = f"{userinfo}:{parts.password}"
        host = f"{userinfo}@{host}"
    return host


def resolve(href: str | None, base_url: str) -> str | None:
    """Resolve a possibly relative *href* against *base_url*.

    Args:
        href: Value of an ``href``/``src`` attribute.
        base_url: Absolute URL of the document containing *href*.

    Returns:
        The absolute URL, or ``None`` if *href* is empty or cannot be resolved.
    """
    if not href or not href.strip():
        return None
    try:
        resolved = urllib.parse.urljoin(base_url, href.strip())
        parts = urllib.parse.urlsplit(resolved)
        parts.port  # noqa: B018
    except ValueError:
        return None
    if not parts.scheme:
        return None
    return resolved


def origin(url: str) -> tuple[str, str, int | None] | None:
    """Return the ``(scheme, host, port)`` origin of *url*, or ``None``.

    Default ports are made explicit so that ``https://a.com`` and
    ``https://a.com:443`` share an origin.
    """
    try:
        parts = urllib.parse.urlsplit(url)
        port = parts.port
    except ValueError:
        return None
    if not parts.scheme or not parts.hostname:
        return None
    scheme = parts.scheme.lower()
    return scheme, parts.hostname.lower(), port or _DEFAULT_PORTS.get(scheme)


def is_external(url: str, base_url: str) -> bool:
    """Return ``True`` when *url* and *base_url* have different origins.

    URLs without an origin (``mailto:``, ``javascript:``) or that cannot be
    parsed count as external.
    """
    url_origin = origin(url)
    return url_origin is None or url_origin != origin(base_url)


def get_domain(url: str) -> str | None:
    """Return the lowercase hostname of *url*, or ``None`` on parse failure."""
    try:
        hostname = urllib.parse.urlsplit(url).hostname
    except ValueError:
        return None
    return hostname or None
