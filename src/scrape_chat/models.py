"""Pydantic models for records, requests and responses."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

MISSING = "-"

_WHITESPACE = re.compile(r"\s+")


class Record(BaseModel):
    """One breeder row. Blank or absent fields become ``"-"``."""

    model_config = ConfigDict(frozen=True)

    name: str = MISSING
    phone: str = MISSING
    location: str = MISSING

    @field_validator("name", "phone", "location", mode="before")
    @classmethod
    def _normalize(cls, value: Any) -> str:
        if value is None:
            return MISSING
        text = str(value).strip()
        return text or MISSING

    @property
    def key(self) -> str:
        """Content-derived identity used for deduplication."""
        return _WHITESPACE.sub("", f"{self.name}-{self.phone}-{self.location}".lower())


class ExtractResult(BaseModel):
    """What the record extractor returns for one page of HTML."""

    records: list[Record] = Field(default_factory=list)
    total_entries: int | None = Field(
        default=None,
        description="Total entries advertised by the page, when it says so",
    )


class Message(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class _WireModel(BaseModel):
    """Accepts and emits camelCase keys; snake_case is accepted too."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class PageRange(_WireModel):
    start: int
    end: int


class ScrapePayload(_WireModel):
    """Raw body of a scrape request, before classification."""

    url: str | None = None
    pagination: bool | None = None
    page_range: PageRange | None = None
    session_id: str | None = None


class InitialRequest(BaseModel):
    """Scrape page 1 of ``url`` and make it the session's current URL.

    Without ``url`` the session's last URL is scraped again from page 1.
    """

    model_config = ConfigDict(frozen=True)

    url: str | None = None
    session_id: str | None = None


class NextPageRequest(BaseModel):
    """Fetch the page after the session's cursor and add it to the results."""

    model_config = ConfigDict(frozen=True)

    session_id: str | None = None


class PageRangeRequest(BaseModel):
    """Return exactly the records of pages ``start..end`` (inclusive)."""

    model_config = ConfigDict(frozen=True)

    start: int
    end: int
    url: str | None = None
    session_id: str | None = None


ScrapeRequest = InitialRequest | NextPageRequest | PageRangeRequest


class ScrapeResult(_WireModel):
    """Successful outcome of one orchestrator call."""

    message: str
    results: list[Record] = Field(default_factory=list)
    session_id: str
    page: int
    page_range: PageRange | None = None
    total_items: int = 0
    complete: bool = Field(
        default=True,
        description="False when a fetch failed part-way and results are partial",
    )
    has_more: bool = False
    failed_page: int | None = None
    from_cache: bool = False


class ChatRequest(_WireModel):
    message: str
    session_id: str | None = None
    scraped_data: list[Record] | None = None
    is_follow_up: bool = False
    original_query: str | None = None

    @field_validator("message")
    @classmethod
    def _require_message(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("Message is required")
        return value.strip()


class ChatResponse(_WireModel):
    content: str
    results: list[Record] = Field(default_factory=list)
    session_id: str

    def to_wire(self) -> dict[str, Any]:
        body = super().to_wire()
        # Older clients read ``text``, newer ones ``content``.
        body["text"] = self.content
        return body


class CacheEntry(BaseModel):
    """Persisted row of the durable cache, keyed by URL."""

    url: str
    content: list[Record] = Field(default_factory=list)
    scraped_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    page_count: int = 1
    pages: dict[int, list[Record]] = Field(
        default_factory=dict,
        description="Per-page records, so a cache hit can restore the page cache",
    )
