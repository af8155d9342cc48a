"""Structured content extraction from HTML.

One engine serves both fetch paths: static responses and rendered DOM
snapshots are parsed the same way with BeautifulSoup (``html.parser``) and
queried with CSS selectors (soupsieve).

Two kinds of profile are supported:

- a built-in :class:`~adaptive_scraper.core.schemas.scraping.ContentProfile`
  (page, links, images, app), and
- a caller-defined :class:`~adaptive_scraper.core.schemas.scraping.SelectorProfile`.

Missing elements are never errors: they come back as ``None``, ``""`` or an
empty list.  Only the absence of a document raises
:class:`~adaptive_scraper.core.exceptions.ExtractionError`.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Callable

from bs4 import BeautifulSoup, Tag
from bs4.element import PreformattedString

from adaptive_scraper.core.exceptions import ExtractionError
from adaptive_scraper.core.schemas.scraping import (
    AttributeSelector,
    ContentProfile,
    ExtractionProfile,
    InnerHtmlSelector,
    SelectorProfile,
    SelectorSpec,
    TextArraySelector,
    TextSelector,
)
from adaptive_scraper.scraper.config import EMPTY_LINK_TEXT, NON_TEXT_TAGS
from adaptive_scraper.scraper.urls import is_external, resolve

logger = logging.getLogger(__name__)

_HEADING_TAGS: list[str] = ["h1", "h2", "h3", "h4", "h5", "h6"]
_WHITESPACE_RE = re.compile(r"\s+")


def parse_html(html: str | None) -> BeautifulSoup:
    """Parse *html* into a document tree.

    Raises:
        ExtractionError: If there is no document at all.
    """
    if html is None:
        raise ExtractionError("No document to extract from")
    return BeautifulSoup(html, "html.parser")


# ---------------------------------------------------------------------------
# Text helpers
# ---------------------------------------------------------------------------


def _text(element: Tag) -> str:
    return element.get_text().strip()


def visible_text(root: Tag) -> str:
    """Return the visible text under *root* with whitespace runs collapsed.

    Text inside ``script``, ``style`` and similar tags is skipped, as are
    comments and the doctype.
    """
    chunks = [
        str(node)
        for node in root.find_all(string=True)
        if not isinstance(node, PreformattedString)
        and not (node.parent is not None and node.parent.name in NON_TEXT_TAGS)
    ]
    return _WHITESPACE_RE.sub(" ", " ".join(chunks)).strip()


def _attribute(element: Tag, name: str) -> str | None:
    value = element.get(name)
    if isinstance(value, list):
        # Multi-valued attributes such as ``class``.
        return " ".join(value)
    return value


# ---------------------------------------------------------------------------
# Fixed fields
# ---------------------------------------------------------------------------


def extract_title(soup: BeautifulSoup) -> str:
    title = soup.find("title")
    return _text(title) if title is not None else ""


def extract_meta_description(soup: BeautifulSoup) -> str:
    meta = soup.find(
        "meta",
        attrs={"name": lambda value: bool(value) and value.lower() == "description"},
    )
    if meta is None:
        return ""
    return (_attribute(meta, "content") or "").strip()


def extract_headings(soup: BeautifulSoup) -> list[dict[str, Any]]:
    return [
        {"level": int(heading.name[1]), "text": _text(heading)}
        for heading in soup.find_all(_HEADING_TAGS)
    ]


def extract_paragraphs(soup: BeautifulSoup) -> list[str]:
    texts = (_text(p) for p in soup.find_all("p"))
    return [text for text in texts if text]


def extract_lists(soup: BeautifulSoup) -> list[dict[str, Any]]:
    """Return ordered and unordered lists in document order.

    Items are the non-empty texts of every ``li`` under the list, nested ones
    included.  Lists without any non-empty item are omitted.
    """
    lists: list[dict[str, Any]] = []
    for element in soup.find_all(["ol", "ul"]):
        items = [text for text in (_text(li) for li in element.find_all("li")) if text]
        if items:
            lists.append(
                {"type": "ordered" if element.name == "ol" else "unordered", "items": items}
            )
    return lists


def extract_links(soup: BeautifulSoup, base_url: str) -> list[dict[str, Any]]:
    """Return ``{url, text, isExternal}`` for every ``a[href]``.

    Hrefs that cannot be resolved are skipped.
    """
    links: list[dict[str, Any]] = []
    for anchor in soup.find_all("a", href=True):
        absolute = resolve(_attribute(anchor, "href"), base_url)
        if absolute is None:
            continue
        links.append(
            {
                "url": absolute,
                "text": _text(anchor) or EMPTY_LINK_TEXT,
                "isExternal": is_external(absolute, base_url),
            }
        )
    return links


def extract_images(soup: BeautifulSoup, base_url: str) -> list[dict[str, Any]]:
    images: list[dict[str, Any]] = []
    for img in soup.find_all("img", src=True):
        absolute = resolve(_attribute(img, "src"), base_url)
        if absolute is None:
            continue
        images.append(
            {
                "src": absolute,
                "alt": _attribute(img, "alt") or "",
                "title": _attribute(img, "title") or "",
            }
        )
    return images


def extract_body_text(soup: BeautifulSoup) -> str:
    root = soup.body if soup.body is not None else soup
    return visible_text(root)


def extract_buttons(soup: BeautifulSoup) -> list[dict[str, str]]:
    return [
        {"text": _text(button), "type": _attribute(button, "type") or "button"}
        for button in soup.find_all("button")
    ]


def extract_forms(soup: BeautifulSoup, base_url: str) -> list[dict[str, str]]:
    """Return ``{action, method}`` per form, resolved the way browsers do.

    A missing action submits to the page itself; a missing method is ``get``.
    """
    forms: list[dict[str, str]] = []
    for form in soup.find_all("form"):
        action = _attribute(form, "action")
        forms.append(
            {
                "action": resolve(action, base_url) or base_url,
                "method": (_attribute(form, "method") or "get").lower(),
            }
        )
    return forms


# ---------------------------------------------------------------------------
# Profiles
# ---------------------------------------------------------------------------


def _page_profile(soup: BeautifulSoup, base_url: str) -> dict[str, Any]:
    return {
        "title": extract_title(soup),
        "metaDescription": extract_meta_description(soup),
        "headings": extract_headings(soup),
        "paragraphs": extract_paragraphs(soup),
        "lists": extract_lists(soup),
        "links": extract_links(soup, base_url),
        "images": extract_images(soup, base_url),
        "bodyText": extract_body_text(soup),
    }


def _app_profile(soup: BeautifulSoup, base_url: str) -> dict[str, Any]:
    return {
        "title": extract_title(soup),
        "bodyText": extract_body_text(soup),
        "links": extract_links(soup, base_url),
        "buttons": extract_buttons(soup),
        "forms": extract_forms(soup, base_url),
    }


_CONTENT_PROFILES: dict[ContentProfile, Callable[[BeautifulSoup, str], dict[str, Any]]] = {
    ContentProfile.PAGE: _page_profile,
    ContentProfile.LINKS: lambda soup, base_url: {"links": extract_links(soup, base_url)},
    ContentProfile.IMAGES: lambda soup, base_url: {"images": extract_images(soup, base_url)},
    ContentProfile.APP: _app_profile,
}


def evaluate_selector(soup: BeautifulSoup, spec: SelectorSpec) -> Any:
    """Evaluate one selector spec against *soup*.

    Returns ``None`` (or ``[]`` for :class:`TextArraySelector`) when nothing
    matches.  Malformed selectors raise; :func:`extract_selectors` turns that
    into ``None`` for the key.
    """
    if isinstance(spec, TextArraySelector):
        return [_text(element) for element in soup.select(spec.selector)]

    element = soup.select_one(spec.selector)
    if element is None:
        return None
    if isinstance(spec, TextSelector):
        return _text(element)
    if isinstance(spec, AttributeSelector):
        return _attribute(element, spec.attribute)
    if isinstance(spec, InnerHtmlSelector):
        return element.decode_contents()
    raise TypeError(f"Unsupported selector spec: {spec!r}")


def extract_selectors(soup: BeautifulSoup, profile: SelectorProfile) -> dict[str, Any]:
    """Evaluate every key of *profile*; one failing key never affects the others."""
    data: dict[str, Any] = {}
    for key, spec in profile.selectors.items():
        try:
            data[key] = evaluate_selector(soup, spec)
        except Exception as exc:  # noqa: BLE001
            logger.debug("scraper: selector %r for key %r failed: %s", spec.selector, key, exc)
            data[key] = None
    return data


# ---------------------------------------------------------------------------
# Public extraction function
# ---------------------------------------------------------------------------


def extract(html: str | None, base_url: str, profile: ExtractionProfile) -> dict[str, Any]:
    """Extract structured content from *html* according to *profile*.

    Args:
        html: Document markup from either fetch path.
        base_url: URL the document was served from; relative links and images
            are resolved against it and link origins compared to it.
        profile: A :class:`ContentProfile` or a :class:`SelectorProfile`.

    Returns:
        Mapping of result key to extracted value.

    Raises:
        ExtractionError: If *html* is ``None``.
    """
    soup = parse_html(html)
    if isinstance(profile, SelectorProfile):
        return extract_selectors(soup, profile)
    return _CONTENT_PROFILES[ContentProfile(profile)](soup, base_url)
