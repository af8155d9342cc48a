"""Pydantic request/response schemas for the fetch-and-extract pipeline.

Models accept and emit camelCase keys (``timeoutMs``, ``totalProcessed``) so
that a request-handling layer can pass JSON bodies straight through, while
Python callers use the snake_case attribute names.
"""

from __future__ import annotations

import enum
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from adaptive_scraper.scraper.config import (
    DEFAULT_VIEWPORT_HEIGHT,
    DEFAULT_VIEWPORT_WIDTH,
    USER_AGENT,
)


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


# ---------------------------------------------------------------------------
# Fetch options
# ---------------------------------------------------------------------------


class RenderMode(str, enum.Enum):
    """How the orchestrator chooses between static and rendered fetching."""

    AUTO = "auto"
    """Static fetch first, rendered fetch only when the response is blocked."""

    ALWAYS = "always"
    """Skip the static fetch and render every page in the browser."""

    NEVER = "never"
    """Static fetch only; blocked responses are extracted as they are."""


class Viewport(_CamelModel):
    width: int = Field(default=DEFAULT_VIEWPORT_WIDTH, gt=0)
    height: int = Field(default=DEFAULT_VIEWPORT_HEIGHT, gt=0)


class FetchOptions(_CamelModel):
    """Per-request fetch configuration.

    Attributes:
        timeout_ms: Timeout of each suspension point.  ``None`` uses the
            configured default of the path that serves the page (10 s static,
            30 s rendered).
        max_redirects: Redirect limit of the static fetch.  ``None`` uses the
            configured default (5).
        user_agent: User-agent sent by both paths.
        headers: Extra request headers merged over the browser-like defaults.
        viewport: Browser viewport (rendered path only).
        wait_until: Navigation-completion policy (rendered path only).
        wait_for_selector: CSS selector awaited after navigation.  Not finding
            it is not an error.
        wait_time_ms: Fixed delay after navigation.
        scroll_to_load: Scroll to the end of the page to trigger lazy content.
        include_screenshot: Attach a base64 full-page PNG to rendered results.
        render_mode: See :class:`RenderMode`.
    """

    timeout_ms: Optional[int] = Field(default=None, gt=0)
    max_redirects: Optional[int] = Field(default=None, ge=0)
    user_agent: str = USER_AGENT
    headers: dict[str, str] = Field(default_factory=dict)
    viewport: Viewport = Field(default_factory=Viewport)
    wait_until: Literal["load", "domcontentloaded", "networkidle", "commit"] = "networkidle"
    wait_for_selector: Optional[str] = None
    wait_time_ms: Optional[int] = Field(default=None, ge=0)
    scroll_to_load: bool = False
    include_screenshot: bool = False
    render_mode: RenderMode = RenderMode.AUTO


class ScrapeRequest(_CamelModel):
    """A single URL to scrape together with its fetch options."""

    url: str
    options: FetchOptions = Field(default_factory=FetchOptions)


# ---------------------------------------------------------------------------
# Extraction profiles
# ---------------------------------------------------------------------------


class ContentProfile(str, enum.Enum):
    """Built-in extraction profiles."""

    PAGE = "page"
    """Title, meta description, headings, paragraphs, lists, links, images, body text."""

    LINKS = "links"
    """Only the page's links."""

    IMAGES = "images"
    """Only the page's images."""

    APP = "app"
    """Single-page-app summary: title, body text, links, buttons and forms."""


class TextSelector(_CamelModel):
    """Trimmed text content of the first match, or ``None``."""

    type: Literal["text"] = "text"
    selector: str


class AttributeSelector(_CamelModel):
    """Named attribute of the first match, or ``None``."""

    type: Literal["attr"] = "attr"
    selector: str
    attribute: str


class InnerHtmlSelector(_CamelModel):
    """Serialized inner markup of the first match, or ``None``."""

    type: Literal["html"] = "html"
    selector: str


class TextArraySelector(_CamelModel):
    """Trimmed text content of every match, in document order."""

    type: Literal["array"] = "array"
    selector: str


SelectorSpec = Annotated[
    Union[TextSelector, AttributeSelector, InnerHtmlSelector, TextArraySelector],
    Field(discriminator="type"),
]


class SelectorProfile(_CamelModel):
    """Caller-defined mapping from result key to :data:`SelectorSpec`.

    A bare string value is shorthand for ``{"type": "text", "selector": value}``.
    Decoding happens once, when the profile is built::

        SelectorProfile(selectors={
            "headline": "h1",
            "logo": {"type": "attr", "selector": "img.logo", "attribute": "src"},
            "tags": {"type": "array", "selector": ".tag"},
        })

    Raises:
        pydantic.ValidationError: On an unknown ``type`` tag or missing field.
    """

    selectors: dict[str, SelectorSpec]

    @field_validator("selectors", mode="before")
    @classmethod
    def _expand_bare_strings(cls, value: Any) -> Any:
        if isinstance(value, Mapping):
            return {
                key: {"type": "text", "selector": spec} if isinstance(spec, str) else spec
                for key, spec in value.items()
            }
        return value


ExtractionProfile = Union[ContentProfile, SelectorProfile]


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


class FetchSource(str, enum.Enum):
    """Which fetch path served a document."""

    STATIC = "static"
    RENDERED = "rendered"


class ScrapeResult(_CamelModel):
    """Outcome of one successful pipeline run.

    Attributes:
        url: Normalized request URL.
        source: Fetch path that served the document.
        status_code: HTTP status of the served document, if known.
        data: Extracted fields keyed per profile.
        screenshot: Base64 PNG when one was requested and the page was rendered.
        scraped_at: UTC time the result was produced.
    """

    url: str
    source: FetchSource
    status_code: Optional[int] = None
    data: dict[str, Any] = Field(default_factory=dict)
    screenshot: Optional[str] = None
    scraped_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        """Return the flat ``{url, ...extracted fields}`` form."""
        flat: dict[str, Any] = {"url": self.url, **self.data}
        if self.screenshot is not None:
            flat["screenshot"] = self.screenshot
        return flat


class BatchError(_CamelModel):
    """A URL of a batch that failed, with the reason."""

    url: str
    error: str
    kind: str


class BatchReport(_CamelModel):
    """Combined outcome of a batch: every input URL is in exactly one list."""

    results: list[ScrapeResult] = Field(default_factory=list)
    errors: list[BatchError] = Field(default_factory=list)
    total_processed: int = 0
    success_count: int = 0
    error_count: int = 0

    @model_validator(mode="after")
    def _check_counts(self) -> "BatchReport":
        if self.success_count != len(self.results) or self.error_count != len(self.errors):
            raise ValueError("success/error counts do not match the collected outcomes")
        if self.total_processed != self.success_count + self.error_count:
            raise ValueError("totalProcessed must equal successCount + errorCount")
        return self

    @classmethod
    def from_outcomes(
        cls, results: list[ScrapeResult], errors: list[BatchError]
    ) -> "BatchReport":
        """Build a report whose counters are derived from the outcome lists."""
        return cls(
            results=results,
            errors=errors,
            total_processed=len(results) + len(errors),
            success_count=len(results),
            error_count=len(errors),
        )
