"""Abstract base class for chat-completion providers."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence

from scrape_chat.config import Settings
from scrape_chat.models import Message

logger = logging.getLogger(__name__)


class ResponderError(Exception):
    """Raised when a provider cannot produce a reply."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def _status_of(exc: Exception) -> int | None:
    """Best-effort HTTP status from SDK and httpx exceptions."""
    status = getattr(exc, "status_code", None)
    if isinstance(status, int):
        return status
    response = getattr(exc, "response", None)
    status = getattr(response, "status_code", None)
    return status if isinstance(status, int) else None


class AIProvider(ABC):
    """Contract for providers that turn a system prompt + history into a reply."""

    name: str

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    @abstractmethod
    def _chat(self, system: str, messages: list[dict[str, str]]) -> str:
        """
        Send one chat request.

        Args:
            system: System prompt carrying the scraped data context.
            messages: Conversation turns as ``{"role", "content"}`` dicts,
                oldest first, ending with the user's latest message.

        Returns:
            The raw reply text.
        """
        ...

    def complete(self, system: str, messages: Sequence[Message]) -> str:
        """Return the assistant's reply, raising ``ResponderError`` on any failure."""
        payload = [{"role": m.role, "content": m.content} for m in messages]
        try:
            text = self._chat(system, payload)
        except ResponderError:
            raise
        except Exception as exc:
            logger.error("%s request failed: %s", self.name, exc)
            raise ResponderError(
                f"{self.name} request failed: {exc}", status_code=_status_of(exc),
            ) from exc

        text = (text or "").strip()
        if not text:
            raise ResponderError(f"{self.name} returned an empty reply")
        return text
