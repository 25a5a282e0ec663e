"""Turn inbound requests and free text into explicit scrape/chat intents."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import ValidationError

from scrape_chat.errors import InvalidRequest
from scrape_chat.fetcher import is_valid_url
from scrape_chat.models import (
    InitialRequest,
    NextPageRequest,
    PageRangeRequest,
    ScrapePayload,
    ScrapeRequest,
)

FILTER_FIELDS = ("name", "phone", "location")

_URL = re.compile(r"https?://[^\s<>\"']+", re.IGNORECASE)
_SCRAPE_VERBS = re.compile(r"\b(get|extract|scrape|find|fetch|pull)\b", re.IGNORECASE)
_NEXT_PAGE = re.compile(r"\b(next\s+page|more\s+results|show\s+more|load\s+more)\b", re.IGNORECASE)
_PAGE_RANGE = re.compile(
    r"\bpages?\s+(\d+)\s*(?:-|–|to|until|till|through|thru)\s*(?:page\s+)?(\d+)\b",
    re.IGNORECASE,
)
_SINGLE_PAGE = re.compile(r"\bpage\s+(\d+)\b", re.IGNORECASE)
_FILTER_WORDS = re.compile(r"\b(filter|only\s+show|show\s+only|narrow|limit\s+to)\b", re.IGNORECASE)
_CRITERION = re.compile(
    r"\b(name|phone|location)\b\s*(?:(?:is|contains|of|in|matching|like)\s+|[=:]\s*)?"
    r"(.+?)\s*(?=,|;|\band\s+(?:name|phone|location)\b|$)",
    re.IGNORECASE,
)


class IntentKind(str, Enum):
    INITIAL = "initial"
    NEXT_PAGE = "next_page"
    PAGE_RANGE = "page_range"
    FILTER = "filter"
    PLAIN_CHAT = "plain_chat"


@dataclass(frozen=True)
class Intent:
    kind: IntentKind
    url: str | None = None
    page_range: tuple[int, int] | None = None
    criteria: dict[str, str] = field(default_factory=dict)

    @property
    def is_scrape(self) -> bool:
        return self.kind in (IntentKind.INITIAL, IntentKind.NEXT_PAGE, IntentKind.PAGE_RANGE)

    def to_scrape_request(self, session_id: str | None) -> ScrapeRequest:
        if self.kind is IntentKind.INITIAL and self.url:
            return InitialRequest(url=self.url, session_id=session_id)
        if self.kind is IntentKind.NEXT_PAGE:
            return NextPageRequest(session_id=session_id)
        if self.kind is IntentKind.PAGE_RANGE and self.page_range:
            start, end = self.page_range
            return PageRangeRequest(start=start, end=end, url=self.url, session_id=session_id)
        raise ValueError(f"{self.kind.value} intent does not describe a scrape")


def parse_scrape_payload(data: Any) -> ScrapeRequest:
    """
    Validate a scrape request body and pick exactly one request variant.

    Ambiguous bodies are rejected rather than resolved by precedence:
    ``pagination`` may not be combined with ``pageRange`` or ``url``.
    """
    if not isinstance(data, dict):
        raise InvalidRequest("Request body must be a JSON object")
    try:
        payload = ScrapePayload.model_validate(data)
    except ValidationError as exc:
        fields = sorted({".".join(str(p) for p in err["loc"]) for err in exc.errors()})
        raise InvalidRequest("Malformed scrape request", fields=fields) from exc

    url = (payload.url or "").strip() or None
    if url is not None and not is_valid_url(url):
        raise InvalidRequest("URL must be an absolute http(s) URL", url=url)

    if payload.pagination:
        if payload.page_range is not None:
            raise InvalidRequest("Send either pagination or pageRange, not both")
        if url is not None:
            raise InvalidRequest("Pagination continues the session's last URL; omit url")
        return NextPageRequest(session_id=payload.session_id)

    if payload.page_range is not None:
        return PageRangeRequest(
            start=payload.page_range.start,
            end=payload.page_range.end,
            url=url,
            session_id=payload.session_id,
        )

    # Without a url, a known session re-scrapes its last URL; the orchestrator
    # rejects sessions that never had one.
    if url is None and not payload.session_id:
        raise InvalidRequest("URL is required for initial scraping")
    return InitialRequest(url=url, session_id=payload.session_id)


def _first_url(text: str) -> str | None:
    match = _URL.search(text)
    if not match:
        return None
    return match.group(0).rstrip(".,;:!?)]}")


def parse_criteria(text: str) -> dict[str, str]:
    """Pull ``name|phone|location <value>`` pairs out of a filter request."""
    criteria: dict[str, str] = {}
    for match in _CRITERION.finditer(text):
        value = match.group(2).strip().strip("\"'").rstrip(".!?").strip()
        if value:
            criteria[match.group(1).lower()] = value
    return criteria


def classify_message(text: str) -> Intent:
    """
    Classify a chat message.

    Precedence: explicit page range, then URL + scrape verb, then "next
    page", then filtering. Anything else is plain conversation.
    """
    url = _first_url(text)
    body = _URL.sub(" ", text)

    match = _PAGE_RANGE.search(body)
    if match:
        return Intent(IntentKind.PAGE_RANGE, url=url, page_range=(int(match.group(1)), int(match.group(2))))
    match = _SINGLE_PAGE.search(body)
    if match and (url or not _NEXT_PAGE.search(body)):
        page = int(match.group(1))
        return Intent(IntentKind.PAGE_RANGE, url=url, page_range=(page, page))

    if url and _SCRAPE_VERBS.search(body):
        return Intent(IntentKind.INITIAL, url=url)

    if _NEXT_PAGE.search(body):
        return Intent(IntentKind.NEXT_PAGE)

    if _FILTER_WORDS.search(body):
        criteria = parse_criteria(body)
        if criteria:
            return Intent(IntentKind.FILTER, criteria=criteria)

    return Intent(IntentKind.PLAIN_CHAT)
