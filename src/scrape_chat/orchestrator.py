"""Pagination-aware scraping over a session.

Three request shapes drive the session's page cursor:

  Initial:   scrape page 1 of a URL and make it the session's URL
  NextPage:  fetch the page after the cursor and merge it in
  PageRange: return exactly pages start..end (at most ``max_range_pages``)

Every call holds the session lock for its whole duration, so two requests
on the same session never interleave their cursor or page-cache updates.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from scrape_chat.aggregator import merge, merge_pages
from scrape_chat.cache import DurableCache
from scrape_chat.config import Settings
from scrape_chat.errors import (
    FetchFailed,
    InvalidRequest,
    NoMoreResults,
    NoPriorUrl,
    NotFound,
    ScrapeChatError,
)
from scrape_chat.extractor import extract_records
from scrape_chat.fetcher import HostThrottle, base_url, fetch_page, is_valid_url, page_url
from scrape_chat.logging_context import set_session_id
from scrape_chat.models import (
    CacheEntry,
    ExtractResult,
    InitialRequest,
    NextPageRequest,
    PageRange,
    PageRangeRequest,
    Record,
    ScrapeRequest,
    ScrapeResult,
)
from scrape_chat.session import Session, SessionStore

logger = logging.getLogger(__name__)

FetchFn = Callable[[str, int, Settings], str]
ExtractFn = Callable[[str], ExtractResult]


def _is_transient(exc: BaseException) -> bool:
    """Transport errors, timeouts, 429 and 5xx are worth another attempt."""
    if not isinstance(exc, FetchFailed):
        return False
    return exc.http_status is None or exc.http_status == 429 or exc.http_status >= 500


def _checked_base_url(url: str) -> str:
    if not is_valid_url(url):
        raise InvalidRequest("URL must be an absolute http(s) URL", url=url)
    return base_url(url)


class ScrapeOrchestrator:
    def __init__(
        self,
        settings: Settings,
        store: SessionStore,
        cache: DurableCache | None = None,
        *,
        fetch: FetchFn = fetch_page,
        extract: ExtractFn = extract_records,
        throttle: HostThrottle | None = None,
    ) -> None:
        self._settings = settings
        self._store = store
        self._cache = cache
        self._fetch = fetch
        self._extract = extract
        self._throttle = throttle or HostThrottle(settings.host_min_interval)

    @property
    def has_cache(self) -> bool:
        return self._cache is not None

    def scrape(self, request: ScrapeRequest) -> ScrapeResult:
        session, session_id = self._store.get_or_create(request.session_id)
        set_session_id(session_id)

        with session.lock:
            if isinstance(request, InitialRequest):
                result = self._initial(session, request)
            elif isinstance(request, NextPageRequest):
                result = self._next_page(session)
            elif isinstance(request, PageRangeRequest):
                result = self._page_range(session, request)
            else:
                raise InvalidRequest(f"Unsupported scrape request: {type(request).__name__}")
            session.touch()
        return result

    # ------------------------------------------------------------------
    # Request variants
    # ------------------------------------------------------------------

    def _initial(self, session: Session, request: InitialRequest) -> ScrapeResult:
        if request.url:
            url = _checked_base_url(request.url)
        elif session.last_url:
            url = session.last_url
        else:
            raise InvalidRequest("URL is required for initial scraping")

        cached = self._lookup_cache(url)
        if cached is not None and cached.content:
            session.reset_for(url)
            session.page_cache = {p: list(r) for p, r in cached.pages.items()} or {1: list(cached.content)}
            session.aggregated_results = merge((), cached.content)
            logger.info("Serving %d cached records for %s", len(session.aggregated_results), url)
            return self._result(
                session,
                f"Loaded {len(session.aggregated_results)} records from cache",
                page=1,
                from_cache=True,
            )

        extracted = self._read_page(url, 1)
        if not extracted.records:
            raise NotFound("No records found at this URL", url=url, page=1)

        session.reset_for(url)
        session.page_cache[1] = list(extracted.records)
        session.aggregated_results = merge((), extracted.records)
        session.total_entries = extracted.total_entries
        self._persist(session)

        return self._result(
            session,
            f"Scraped {len(session.aggregated_results)} records from page 1",
            page=1,
        )

    def _next_page(self, session: Session) -> ScrapeResult:
        if not session.last_url:
            raise NoPriorUrl("No URL has been scraped in this session yet")

        url = session.last_url
        target = session.current_page + 1
        records = session.page_cache.get(target)

        if records is None:
            extracted = self._read_page(url, target)
            if not extracted.records:
                session.empty_page = target
                raise NoMoreResults(
                    "No more results available", url=page_url(url, target), page=target,
                )
            records = list(extracted.records)
            session.page_cache[target] = records
            self._note_total(session, extracted)
        else:
            logger.debug("Page %d served from session cache", target)

        session.current_page = target
        before = len(session.aggregated_results)
        session.aggregated_results = merge(session.aggregated_results, records)
        self._persist(session)

        added = len(session.aggregated_results) - before
        return self._result(
            session,
            f"Loaded page {target}: {added} new records, {len(session.aggregated_results)} total",
            page=target,
        )

    def _page_range(self, session: Session, request: PageRangeRequest) -> ScrapeResult:
        start = max(1, request.start)
        end = min(start + self._settings.max_range_pages - 1, request.end)
        if end < start:
            raise InvalidRequest(
                f"Invalid page range {request.start}-{request.end}",
                start=request.start, end=request.end,
            )

        if request.url:
            url = _checked_base_url(request.url)
        elif session.last_url:
            url = session.last_url
        else:
            raise NoPriorUrl("A URL is required for the first page range of a session")

        # Work on a copy and commit only on success.
        switching = url != session.last_url
        page_cache = {} if switching else dict(session.page_cache)
        total_entries = None if switching else session.total_entries
        empty_page = None if switching else session.empty_page

        reached: int | None = None
        failure: FetchFailed | None = None
        fetched_any = False

        for page in range(start, end + 1):
            records = page_cache.get(page)
            if records is None:
                if fetched_any and self._settings.page_delay > 0:
                    time.sleep(self._settings.page_delay)
                try:
                    extracted = self._read_page(url, page)
                except FetchFailed as exc:
                    logger.warning("Stopping range at page %d: %s", page, exc.message)
                    failure = exc
                    break
                fetched_any = True
                if not extracted.records:
                    logger.info("Page %d is empty; stopping range", page)
                    empty_page = page
                    break
                records = list(extracted.records)
                page_cache[page] = records
                if extracted.total_entries is not None:
                    total_entries = extracted.total_entries
            reached = page

        results = merge_pages(page_cache, range(start, reached + 1)) if reached else []
        if not results:
            if failure is not None:
                raise failure
            raise NotFound(
                f"No records found on pages {start}-{end}", url=url, start=start, end=end,
            )

        if switching:
            session.reset_for(url)
        session.page_cache = page_cache
        session.current_page = reached
        session.aggregated_results = results
        session.total_entries = total_entries
        session.empty_page = empty_page if empty_page is None or empty_page > reached else None
        self._persist(session)

        if failure is not None:
            message = (
                f"Scraped pages {start}-{reached} ({len(results)} records); "
                f"page {failure.page} failed: {failure.message}"
            )
        else:
            message = f"Scraped pages {start}-{reached} ({len(results)} records)"

        return self._result(
            session,
            message,
            page=reached,
            page_range=PageRange(start=start, end=end),
            complete=failure is None,
            failed_page=failure.page if failure is not None else None,
        )

    # ------------------------------------------------------------------
    # Fetch + extract
    # ------------------------------------------------------------------

    def _fetch_html(self, url: str, page: int) -> str:
        retrying = Retrying(
            stop=stop_after_attempt(max(self._settings.fetch_retries, 0) + 1),
            wait=wait_exponential(multiplier=1, min=1, max=10),
            retry=retry_if_exception(_is_transient),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        html = ""
        for attempt in retrying:
            with attempt:
                self._throttle.wait(url)
                html = self._fetch(url, page, self._settings)
        return html

    def _read_page(self, url: str, page: int) -> ExtractResult:
        try:
            html = self._fetch_html(url, page)
        except ScrapeChatError:
            raise
        except Exception as exc:
            logger.error("Fetching page %d of %s failed: %s", page, url, exc)
            raise FetchFailed(
                f"Failed to fetch page {page}: {exc}", url=page_url(url, page), page=page,
            ) from exc

        try:
            extracted = self._extract(html)
        except Exception as exc:
            logger.error("Extracting page %d of %s failed: %s", page, url, exc)
            raise ScrapeChatError(
                f"Could not read records from page {page}", url=page_url(url, page), page=page,
            ) from exc

        logger.info("Page %d of %s: %d records", page, url, len(extracted.records))
        return extracted

    # ------------------------------------------------------------------
    # Durable cache (best effort)
    # ------------------------------------------------------------------

    def _lookup_cache(self, url: str) -> CacheEntry | None:
        if self._cache is None:
            return None
        try:
            return self._cache.lookup(url)
        except Exception as exc:
            logger.warning("Cache lookup failed for %s: %s", url, exc)
            return None

    def _persist(self, session: Session) -> None:
        """Store everything known for the session's URL. Failures are only logged."""
        if self._cache is None or not session.last_url:
            return
        records = merge_pages(session.page_cache, session.page_cache.keys())
        try:
            self._cache.upsert(
                session.last_url,
                records,
                page_count=max(session.page_cache, default=0),
                pages=dict(session.page_cache),
            )
        except Exception as exc:
            logger.warning("Cache write failed for %s: %s", session.last_url, exc)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _note_total(session: Session, extracted: ExtractResult) -> None:
        if extracted.total_entries is not None:
            session.total_entries = extracted.total_entries
        # The site grew since an earlier empty page was seen.
        if session.empty_page is not None and session.empty_page <= max(session.page_cache, default=0):
            session.empty_page = None

    @staticmethod
    def _has_more(session: Session) -> bool:
        if session.empty_page is not None and session.empty_page <= session.current_page + 1:
            return False
        if session.total_entries is not None:
            known = merge_pages(session.page_cache, session.page_cache.keys())
            return len(known) < session.total_entries
        return True

    def _result(self, session: Session, message: str, *, page: int, **extra) -> ScrapeResult:
        results: list[Record] = list(session.aggregated_results)
        return ScrapeResult(
            message=message,
            results=results,
            session_id=session.id,
            page=page,
            total_items=len(results),
            has_more=self._has_more(session),
            **extra,
        )
