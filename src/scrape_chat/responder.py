"""Build the language-model context from scraped records and produce a reply."""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence

from scrape_chat.config import Settings
from scrape_chat.models import Message, Record
from scrape_chat.providers.base import AIProvider, ResponderError

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """\
You are an assistant that helps users explore a directory of breeders \
scraped from a website. Each record has a name, a phone number and a \
location; "-" means the value was missing on the page.

{data_section}

Answer using the data above. When the user asks to filter or summarize, \
work from these records and explain what you did. If the data does not \
contain the answer, say so plainly. Do not claim you cannot access the \
data: it has already been provided to you. If no data is available yet, \
suggest sending a URL to scrape."""

NO_DATA = "No data has been scraped in this conversation yet."


def friendly_message(exc: ResponderError) -> str:
    """User-facing text for a provider failure."""
    text = str(exc).lower()
    if exc.status_code == 429 or "rate limit" in text or "quota" in text:
        return "Rate limit exceeded. Please try again later."
    if exc.status_code == 404 or "does not exist" in text or "not found" in text:
        return "The requested AI model is currently unavailable. Please try again later."
    return "The assistant is temporarily unavailable. Please try again later."


class Responder:
    def __init__(self, provider: AIProvider, settings: Settings) -> None:
        self._provider = provider
        self._settings = settings

    @property
    def provider_name(self) -> str:
        return self._provider.name

    def build_system_prompt(self, records: Sequence[Record], original_query: str | None = None) -> str:
        if not records:
            data_section = NO_DATA
        else:
            limit = max(self._settings.context_records, 0)
            sample = [r.model_dump() for r in records[:limit]]
            lines = [f"Scraped data: {len(records)} records in total."]
            if len(sample) < len(records):
                lines.append(f"Showing the first {len(sample)}:")
            lines.append(json.dumps(sample, indent=2, ensure_ascii=False))
            data_section = "\n".join(lines)

        if original_query:
            data_section += f"\n\nThis is a follow-up to the user's earlier request: {original_query!r}"

        return SYSTEM_PROMPT.format(data_section=data_section)

    def reply(
        self,
        history: Sequence[Message],
        records: Sequence[Record],
        original_query: str | None = None,
    ) -> str:
        """Ask the provider for a reply to the latest turns in ``history``."""
        system = self.build_system_prompt(records, original_query)
        recent = list(history)[-self._settings.history_limit:] if self._settings.history_limit > 0 else []
        logger.info(
            "Asking %s with %d message(s) and %d record(s)",
            self._provider.name, len(recent), len(records),
        )
        return self._provider.complete(system, recent)
