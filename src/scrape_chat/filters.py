"""Follow-up filtering over scraped records."""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from scrape_chat.classifier import FILTER_FIELDS
from scrape_chat.errors import InvalidRequest
from scrape_chat.models import Record


def apply_filters(records: Iterable[Record], criteria: Mapping[str, str]) -> list[Record]:
    """Keep records where every criterion is a case-insensitive substring of its field."""
    if not criteria:
        return list(records)

    unknown = sorted(set(criteria) - set(FILTER_FIELDS))
    if unknown:
        raise InvalidRequest(
            f"Cannot filter on {', '.join(unknown)}",
            allowed=list(FILTER_FIELDS),
        )

    wanted = {field: value.strip().lower() for field, value in criteria.items()}
    return [
        record for record in records
        if all(value in getattr(record, field).lower() for field, value in wanted.items())
    ]
