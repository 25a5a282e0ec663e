"""Durable per-URL cache of scraped records, stored as JSON files."""

from __future__ import annotations

import hashlib
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError

from scrape_chat.errors import CacheError
from scrape_chat.models import CacheEntry, Record

logger = logging.getLogger(__name__)

DEFAULT_CACHE_DIR = Path(".scrape_cache")


class DurableCache(Protocol):
    """Best-effort persistence. Implementations raise ``CacheError`` on failure."""

    def lookup(self, url: str) -> CacheEntry | None: ...

    def upsert(
        self,
        url: str,
        records: list[Record],
        page_count: int,
        pages: dict[int, list[Record]] | None = None,
    ) -> None: ...


class JsonFileCache:
    """One JSON row per URL in a cache directory; a later upsert replaces it."""

    def __init__(self, cache_dir: Path | str | None = None) -> None:
        self._dir = Path(cache_dir) if cache_dir else DEFAULT_CACHE_DIR
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise CacheError(f"Cannot create cache directory {self._dir}: {exc}") from exc

    def _key(self, url: str) -> str:
        return hashlib.sha256(url.encode()).hexdigest()[:16]

    def _path(self, url: str) -> Path:
        return self._dir / f"{self._key(url)}.json"

    def lookup(self, url: str) -> CacheEntry | None:
        path = self._path(url)
        if not path.exists():
            return None
        try:
            entry = CacheEntry.model_validate_json(path.read_text(encoding="utf-8"))
        except (ValidationError, OSError) as exc:
            logger.warning("Ignoring unreadable cache row for %s: %s", url, exc)
            return None
        if entry.url != url:
            return None
        return entry

    def upsert(
        self,
        url: str,
        records: list[Record],
        page_count: int,
        pages: dict[int, list[Record]] | None = None,
    ) -> None:
        entry = CacheEntry(
            url=url,
            content=records,
            scraped_at=datetime.now(timezone.utc),
            page_count=page_count,
            pages=pages or {},
        )
        path = self._path(url)
        tmp = path.with_suffix(".tmp")
        try:
            tmp.write_text(entry.model_dump_json(), encoding="utf-8")
            tmp.replace(path)
        except OSError as exc:
            raise CacheError(f"Failed to write cache row for {url}: {exc}") from exc
        logger.debug("Cached %d records (%d pages) for %s", len(records), page_count, url)

    def clear(self) -> int:
        """Remove all cached rows. Returns how many were removed."""
        removed = 0
        for f in self._dir.glob("*.json"):
            f.unlink()
            removed += 1
        logger.info("Cache cleared (%d rows)", removed)
        return removed
