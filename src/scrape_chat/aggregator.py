"""Order-preserving, content-keyed deduplication of records."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from itertools import chain

from scrape_chat.models import Record


def record_key(record: Record) -> str:
    return record.key


def merge(existing: Iterable[Record], incoming: Iterable[Record]) -> list[Record]:
    """
    Append incoming records whose key is not yet present.

    Pure: neither argument is modified. First-seen order wins, so a record
    repeated on a later page keeps its original position and the later copy
    is dropped.
    """
    merged: list[Record] = []
    seen: set[str] = set()
    for record in (*existing, *incoming):
        key = record_key(record)
        if key in seen:
            continue
        seen.add(key)
        merged.append(record)
    return merged


def merge_pages(page_cache: Mapping[int, list[Record]], pages: Iterable[int]) -> list[Record]:
    """Merge the cached records of ``pages`` in ascending page order."""
    ordered = [page_cache[p] for p in sorted(set(pages)) if p in page_cache]
    return merge((), chain.from_iterable(ordered))
