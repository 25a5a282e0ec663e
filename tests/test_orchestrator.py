"""Tests for scrape_chat.orchestrator module."""

from __future__ import annotations

import threading
from dataclasses import replace
from unittest.mock import MagicMock, call, patch

import pytest

from scrape_chat.cache import JsonFileCache
from scrape_chat.errors import (
    CacheError,
    FetchFailed,
    InvalidRequest,
    NoMoreResults,
    NoPriorUrl,
    NotFound,
)
from scrape_chat.models import (
    InitialRequest,
    NextPageRequest,
    PageRange,
    PageRangeRequest,
    Record,
)
from scrape_chat.orchestrator import ScrapeOrchestrator
from scrape_chat.session import SessionStore

from .conftest import BASE_URL, FakeSite, make_page, rows_for


@pytest.fixture(autouse=True)
def no_sleep():
    with patch("scrape_chat.orchestrator.time.sleep") as mock_sleep:
        yield mock_sleep


def _site(*pages: int, **kwargs) -> FakeSite:
    return FakeSite({p: make_page(rows_for(p)) for p in pages}, **kwargs)


def _names(result) -> list[str]:
    return [r.name for r in result.results]


class TestInitial:
    def test_scrapes_page_one(self, settings, store):
        site = _site(1)
        orch = ScrapeOrchestrator(settings, store, fetch=site)

        result = orch.scrape(InitialRequest(url=BASE_URL))

        assert len(result.results) == 3
        assert result.page == 1
        assert result.total_items == 3
        assert result.from_cache is False
        assert site.calls == [(BASE_URL, 1)]

        session = store.get(result.session_id)
        assert session.last_url == BASE_URL
        assert session.current_page == 1
        assert list(session.page_cache) == [1]

    def test_page_query_is_stripped(self, settings, store):
        site = _site(1)
        orch = ScrapeOrchestrator(settings, store, fetch=site)

        orch.scrape(InitialRequest(url=f"{BASE_URL}?page=4"))

        assert site.calls == [(BASE_URL, 1)]

    def test_invalid_url_rejected_without_fetch(self, settings, store):
        site = _site(1)
        orch = ScrapeOrchestrator(settings, store, fetch=site)

        with pytest.raises(InvalidRequest):
            orch.scrape(InitialRequest(url="not a url"))
        assert site.calls == []

    def test_empty_page_is_not_found(self, settings, store):
        orch = ScrapeOrchestrator(settings, store, fetch=FakeSite({}))

        with pytest.raises(NotFound):
            orch.scrape(InitialRequest(url=BASE_URL, session_id="s1"))
        assert store.get("s1").last_url is None

    def test_new_url_resets_session(self, settings, store):
        other = "https://other.example.com/list"
        pages = {1: make_page(rows_for(1)), 2: make_page(rows_for(2))}
        orch = ScrapeOrchestrator(settings, store, fetch=FakeSite(pages))

        first = orch.scrape(InitialRequest(url=BASE_URL))
        orch.scrape(NextPageRequest(session_id=first.session_id))
        result = orch.scrape(InitialRequest(url=other, session_id=first.session_id))

        session = store.get(first.session_id)
        assert session.last_url == other
        assert session.current_page == 1
        assert list(session.page_cache) == [1]
        assert len(result.results) == 3

    def test_without_url_rescrapes_last_url(self, settings, store):
        site = _site(1, 2)
        orch = ScrapeOrchestrator(settings, store, fetch=site)

        sid = orch.scrape(InitialRequest(url=BASE_URL)).session_id
        orch.scrape(NextPageRequest(session_id=sid))
        result = orch.scrape(InitialRequest(session_id=sid))

        assert result.page == 1
        assert len(result.results) == 3
        assert site.calls == [(BASE_URL, 1), (BASE_URL, 2), (BASE_URL, 1)]
        session = store.get(sid)
        assert session.last_url == BASE_URL
        assert session.current_page == 1

    def test_without_url_on_fresh_session_rejected(self, settings, store):
        site = _site(1)
        orch = ScrapeOrchestrator(settings, store, fetch=site)

        with pytest.raises(InvalidRequest, match="URL is required"):
            orch.scrape(InitialRequest(session_id="fresh"))
        assert site.calls == []

    def test_fetch_failure_propagates(self, settings, store):
        site = _site(failures={1: FetchFailed("boom", http_status=500, page=1)})
        orch = ScrapeOrchestrator(settings, store, fetch=site)

        with pytest.raises(FetchFailed):
            orch.scrape(InitialRequest(url=BASE_URL))

    def test_unexpected_fetch_error_wrapped(self, settings, store):
        orch = ScrapeOrchestrator(settings, store, fetch=MagicMock(side_effect=RuntimeError("socket gone")))

        with pytest.raises(FetchFailed, match="socket gone") as exc_info:
            orch.scrape(InitialRequest(url=BASE_URL))
        assert exc_info.value.page == 1


class TestNextPage:
    def test_requires_prior_url(self, settings, store):
        orch = ScrapeOrchestrator(settings, store, fetch=_site(1))

        with pytest.raises(NoPriorUrl):
            orch.scrape(NextPageRequest())

    def test_cursor_advances_one_page_at_a_time(self, settings, store):
        site = _site(1, 2, 3)
        orch = ScrapeOrchestrator(settings, store, fetch=site)

        sid = orch.scrape(InitialRequest(url=BASE_URL)).session_id
        second = orch.scrape(NextPageRequest(session_id=sid))
        third = orch.scrape(NextPageRequest(session_id=sid))

        assert second.page == 2
        assert third.page == 3
        assert len(third.results) == 9
        assert site.fetched_pages == [1, 2, 3]
        assert "3 new records, 9 total" in third.message

    def test_empty_next_page_keeps_cursor(self, settings, store):
        site = _site(1)
        orch = ScrapeOrchestrator(settings, store, fetch=site)

        sid = orch.scrape(InitialRequest(url=BASE_URL)).session_id
        with pytest.raises(NoMoreResults) as exc_info:
            orch.scrape(NextPageRequest(session_id=sid))

        session = store.get(sid)
        assert session.current_page == 1
        assert len(session.aggregated_results) == 3
        assert 2 not in session.page_cache
        assert exc_info.value.details["page"] == 2

    def test_duplicates_across_pages_kept_once(self, settings, store):
        jo = ("Jo", "555", "NY")
        pages = {
            1: make_page([jo, ("Ann", "1", "TX")]),
            2: make_page([("Bo", "2", "CA"), jo]),
        }
        orch = ScrapeOrchestrator(settings, store, fetch=FakeSite(pages))

        sid = orch.scrape(InitialRequest(url=BASE_URL)).session_id
        result = orch.scrape(NextPageRequest(session_id=sid))

        assert _names(result) == ["Jo", "Ann", "Bo"]
        assert result.total_items == 3

    def test_uses_session_page_cache(self, settings, store):
        site = _site(1, 2, 3)
        orch = ScrapeOrchestrator(settings, store, fetch=site)

        sid = orch.scrape(PageRangeRequest(start=1, end=3, url=BASE_URL)).session_id
        store.get(sid).current_page = 1
        result = orch.scrape(NextPageRequest(session_id=sid))

        assert result.page == 2
        assert site.fetched_pages == [1, 2, 3]

    def test_has_more_follows_total_entries(self, settings, store):
        pages = {
            1: make_page(rows_for(1), total=6),
            2: make_page(rows_for(2), total=6),
        }
        orch = ScrapeOrchestrator(settings, store, fetch=FakeSite(pages))

        first = orch.scrape(InitialRequest(url=BASE_URL))
        second = orch.scrape(NextPageRequest(session_id=first.session_id))

        assert first.has_more is True
        assert second.has_more is False

    def test_concurrent_next_pages_do_not_interleave(self, settings, store):
        site = _site(1, 2, 3)
        orch = ScrapeOrchestrator(settings, store, fetch=site)
        sid = orch.scrape(InitialRequest(url=BASE_URL)).session_id

        results = []

        def next_page():
            results.append(orch.scrape(NextPageRequest(session_id=sid)).page)

        threads = [threading.Thread(target=next_page) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sorted(results) == [2, 3]
        assert sorted(site.fetched_pages) == [1, 2, 3]
        assert store.get(sid).current_page == 3


class TestPageRange:
    def test_stops_at_first_empty_page(self, settings, store):
        pages = {1: make_page(rows_for(1)), 2: make_page(rows_for(2)), 4: make_page(rows_for(4))}
        site = FakeSite(pages)
        orch = ScrapeOrchestrator(settings, store, fetch=site)

        result = orch.scrape(PageRangeRequest(start=1, end=5, url=BASE_URL))

        assert site.fetched_pages == [1, 2, 3]
        assert result.page == 2
        assert len(result.results) == 6
        assert result.complete is True
        assert result.has_more is False
        assert store.get(result.session_id).current_page == 2

    def test_range_is_clamped(self, settings, store):
        site = _site(*range(1, 10))
        orch = ScrapeOrchestrator(settings, store, fetch=site)

        result = orch.scrape(PageRangeRequest(start=0, end=100, url=BASE_URL))

        assert site.fetched_pages == [1, 2, 3, 4, 5, 6]
        assert result.page_range == PageRange(start=1, end=6)
        assert result.page == 6

    def test_inverted_range_rejected(self, settings, store):
        orch = ScrapeOrchestrator(settings, store, fetch=_site(1))

        with pytest.raises(InvalidRequest):
            orch.scrape(PageRangeRequest(start=4, end=2, url=BASE_URL))

    def test_requires_url_on_fresh_session(self, settings, store):
        orch = ScrapeOrchestrator(settings, store, fetch=_site(1))

        with pytest.raises(NoPriorUrl):
            orch.scrape(PageRangeRequest(start=1, end=2))

    def test_returns_only_requested_pages(self, settings, store):
        site = _site(1, 2, 3)
        orch = ScrapeOrchestrator(settings, store, fetch=site)

        sid = orch.scrape(InitialRequest(url=BASE_URL)).session_id
        orch.scrape(NextPageRequest(session_id=sid))
        result = orch.scrape(PageRangeRequest(start=2, end=2, session_id=sid))

        assert _names(result) == ["Breeder 2-1", "Breeder 2-2", "Breeder 2-3"]
        assert site.fetched_pages == [1, 2]

    def test_reuses_cached_pages(self, settings, store):
        site = _site(1, 2, 3)
        orch = ScrapeOrchestrator(settings, store, fetch=site)

        sid = orch.scrape(InitialRequest(url=BASE_URL)).session_id
        orch.scrape(NextPageRequest(session_id=sid))
        result = orch.scrape(PageRangeRequest(start=1, end=3, session_id=sid))

        assert site.fetched_pages == [1, 2, 3]
        assert len(result.results) == 9

    def test_next_page_continues_after_range(self, settings, store):
        site = _site(1, 2, 3, 4)
        orch = ScrapeOrchestrator(settings, store, fetch=site)

        sid = orch.scrape(PageRangeRequest(start=1, end=3, url=BASE_URL)).session_id
        result = orch.scrape(NextPageRequest(session_id=sid))

        assert result.page == 4
        assert site.fetched_pages == [1, 2, 3, 4]

    def test_partial_failure_returns_collected_pages(self, settings, store):
        site = _site(1, 2, 3, 4, failures={3: FetchFailed("HTTP 500", http_status=500, page=3)})
        orch = ScrapeOrchestrator(settings, store, fetch=site)

        result = orch.scrape(PageRangeRequest(start=1, end=4, url=BASE_URL))

        assert result.complete is False
        assert result.failed_page == 3
        assert result.page == 2
        assert len(result.results) == 6
        assert site.fetched_pages == [1, 2, 3]
        assert store.get(result.session_id).current_page == 2

    def test_failure_on_first_page_raises_and_keeps_state(self, settings, store):
        site = _site(1, 2)
        orch = ScrapeOrchestrator(settings, store, fetch=site)
        sid = orch.scrape(InitialRequest(url=BASE_URL)).session_id

        other = "https://other.example.com/list"
        failing = _site(failures={1: FetchFailed("down", page=1)})
        orch_failing = ScrapeOrchestrator(settings, store, fetch=failing)
        with pytest.raises(FetchFailed):
            orch_failing.scrape(PageRangeRequest(start=1, end=2, url=other, session_id=sid))

        session = store.get(sid)
        assert session.last_url == BASE_URL
        assert list(session.page_cache) == [1]

    def test_all_pages_empty_is_not_found(self, settings, store):
        orch = ScrapeOrchestrator(settings, store, fetch=FakeSite({}))

        with pytest.raises(NotFound):
            orch.scrape(PageRangeRequest(start=1, end=3, url=BASE_URL))

    def test_delay_between_network_fetches(self, settings, store, no_sleep):
        orch = ScrapeOrchestrator(settings, store, fetch=_site(1, 2, 3))

        orch.scrape(PageRangeRequest(start=1, end=3, url=BASE_URL))

        assert no_sleep.call_args_list == [call(0.5), call(0.5)]

    def test_no_delay_before_first_network_fetch(self, settings, store, no_sleep):
        orch = ScrapeOrchestrator(settings, store, fetch=_site(1, 2, 3))
        sid = orch.scrape(InitialRequest(url=BASE_URL)).session_id
        no_sleep.reset_mock()

        orch.scrape(PageRangeRequest(start=1, end=3, session_id=sid))

        assert no_sleep.call_count == 1

    def test_zero_delay_never_sleeps(self, settings, store, no_sleep):
        settings = replace(settings, page_delay=0)
        orch = ScrapeOrchestrator(settings, store, fetch=_site(1, 2, 3))

        orch.scrape(PageRangeRequest(start=1, end=3, url=BASE_URL))

        no_sleep.assert_not_called()


class TestRetries:
    def test_transient_failure_retried(self, settings, store):
        settings = replace(settings, fetch_retries=1)
        fetch = MagicMock(side_effect=[
            FetchFailed("busy", http_status=503, page=1),
            make_page(rows_for(1)),
        ])
        orch = ScrapeOrchestrator(settings, store, fetch=fetch)

        result = orch.scrape(InitialRequest(url=BASE_URL))

        assert len(result.results) == 3
        assert fetch.call_count == 2

    def test_client_error_not_retried(self, settings, store):
        settings = replace(settings, fetch_retries=3)
        fetch = MagicMock(side_effect=FetchFailed("gone", http_status=404, page=1))
        orch = ScrapeOrchestrator(settings, store, fetch=fetch)

        with pytest.raises(FetchFailed):
            orch.scrape(InitialRequest(url=BASE_URL))
        assert fetch.call_count == 1

    def test_no_retries_by_default(self, settings, store):
        fetch = MagicMock(side_effect=FetchFailed("busy", http_status=503, page=1))
        orch = ScrapeOrchestrator(settings, store, fetch=fetch)

        with pytest.raises(FetchFailed):
            orch.scrape(InitialRequest(url=BASE_URL))
        assert fetch.call_count == 1


class TestDurableCache:
    def test_cache_hit_skips_fetch(self, settings, tmp_path):
        cache = JsonFileCache(tmp_path / "cache")
        first = ScrapeOrchestrator(settings, SessionStore(), cache, fetch=_site(1, 2))
        sid = first.scrape(InitialRequest(url=BASE_URL)).session_id
        first.scrape(NextPageRequest(session_id=sid))

        site = _site(1, 2)
        store = SessionStore()
        second = ScrapeOrchestrator(settings, store, cache, fetch=site)
        result = second.scrape(InitialRequest(url=BASE_URL))

        assert result.from_cache is True
        assert result.page == 1
        assert len(result.results) == 6
        assert site.calls == []
        assert sorted(store.get(result.session_id).page_cache) == [1, 2]

        second.scrape(NextPageRequest(session_id=result.session_id))
        assert site.calls == []

    def test_cache_errors_are_swallowed(self, settings, store):
        cache = MagicMock()
        cache.lookup.side_effect = CacheError("read failed")
        cache.upsert.side_effect = CacheError("write failed")
        orch = ScrapeOrchestrator(settings, store, cache, fetch=_site(1))

        result = orch.scrape(InitialRequest(url=BASE_URL))

        assert len(result.results) == 3
        cache.upsert.assert_called_once()

    def test_persists_union_of_pages(self, settings, store):
        cache = MagicMock()
        cache.lookup.return_value = None
        orch = ScrapeOrchestrator(settings, store, cache, fetch=_site(1, 2))

        sid = orch.scrape(InitialRequest(url=BASE_URL)).session_id
        orch.scrape(NextPageRequest(session_id=sid))

        url, records = cache.upsert.call_args.args
        assert url == BASE_URL
        assert len(records) == 6
        assert cache.upsert.call_args.kwargs["page_count"] == 2
        assert sorted(cache.upsert.call_args.kwargs["pages"]) == [1, 2]
        assert all(isinstance(r, Record) for r in records)
