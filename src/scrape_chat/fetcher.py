"""Fetch directory pages over HTTP, optionally routed through ScraperAPI.

The target site paginates with a single convention: page 1 is the base URL
itself, page N is ``<base without query>?page=N``.
"""

from __future__ import annotations

import logging
import threading
import time
from urllib.parse import urlsplit, urlunsplit

import httpx

from scrape_chat.config import Settings
from scrape_chat.errors import FetchFailed

logger = logging.getLogger(__name__)

SCRAPERAPI_ENDPOINT = "https://api.scraperapi.com/"
PAGE_PARAM = "page"


def is_valid_url(url: str | None) -> bool:
    """True for absolute http(s) URLs with a host."""
    if not url:
        return False
    try:
        parts = urlsplit(url.strip())
    except ValueError:
        return False
    return parts.scheme in ("http", "https") and bool(parts.netloc)


def base_url(url: str) -> str:
    """Drop the ``page`` query parameter (and fragment), keep everything else.

    Other query pairs are kept byte for byte, so page 1 is requested exactly
    as the caller wrote it.
    """
    parts = urlsplit(url.strip())
    query = "&".join(
        pair for pair in parts.query.split("&")
        if pair and pair.partition("=")[0] != PAGE_PARAM
    )
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, ""))


def page_url(base: str, page: int) -> str:
    if page < 1:
        raise ValueError(f"page must be >= 1, got {page}")
    if page == 1:
        return base
    parts = urlsplit(base)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", "")) + f"?{PAGE_PARAM}={page}"


def fetch_page(base: str, page: int, settings: Settings) -> str:
    """
    Fetch one page of the directory and return its HTML.

    No retries here: the orchestrator decides whether a failure is worth
    another attempt. Every failure is raised as ``FetchFailed``.
    """
    url = page_url(base, page)

    if settings.scraper_api_key:
        target = SCRAPERAPI_ENDPOINT
        params: dict[str, str] | None = {"url": url}
        headers = {
            "x-sapi-api_key": settings.scraper_api_key,
            "x-sapi-render": str(settings.render_js).lower(),
        }
    else:
        target = url
        params = None  # httpx would re-encode the query if given params
        headers = {"User-Agent": settings.user_agent}

    try:
        with httpx.Client(timeout=settings.fetch_timeout, follow_redirects=True) as client:
            response = client.get(target, params=params, headers=headers)
            response.raise_for_status()
            logger.info("Fetched %d bytes from %s", len(response.text), url)
            return response.text
    except httpx.HTTPStatusError as exc:
        status = exc.response.status_code
        logger.warning("HTTP %d fetching %s", status, url)
        raise FetchFailed(
            f"The site returned HTTP {status} for page {page}",
            http_status=status, url=url, page=page,
        ) from exc
    except httpx.TimeoutException as exc:
        logger.warning("Timed out after %ss fetching %s", settings.fetch_timeout, url)
        raise FetchFailed(
            f"Timed out fetching page {page}", url=url, page=page,
        ) from exc
    except Exception as exc:
        logger.error("Fetch failed for %s: %s", url, exc)
        raise FetchFailed(f"Failed to fetch {url}: {exc}", url=url, page=page) from exc


class HostThrottle:
    """Minimum spacing between any two fetches to the same host.

    Shared by every session in the process. Slots are reserved under the
    lock and slept outside it, so waiting threads do not block each other's
    bookkeeping.
    """

    def __init__(self, min_interval: float) -> None:
        self._min_interval = min_interval
        self._lock = threading.Lock()
        self._next_slot: dict[str, float] = {}

    def wait(self, url: str) -> float:
        """Block until this host may be fetched again. Returns seconds slept."""
        if self._min_interval <= 0:
            return 0.0
        host = urlsplit(url).netloc.lower()
        with self._lock:
            now = time.monotonic()
            slot = max(now, self._next_slot.get(host, 0.0))
            self._next_slot[host] = slot + self._min_interval
        delay = slot - now
        if delay > 0:
            logger.debug("Throttling %s for %.2fs", host, delay)
            time.sleep(delay)
        return delay
