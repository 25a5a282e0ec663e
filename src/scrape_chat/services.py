"""Construct the long-lived service objects from settings."""

from __future__ import annotations

import logging

from scrape_chat.cache import JsonFileCache
from scrape_chat.chat import ChatService
from scrape_chat.config import Settings
from scrape_chat.errors import CacheError
from scrape_chat.orchestrator import ScrapeOrchestrator
from scrape_chat.providers import get_provider
from scrape_chat.responder import Responder
from scrape_chat.session import SessionStore

logger = logging.getLogger(__name__)


def build_orchestrator(settings: Settings, store: SessionStore) -> ScrapeOrchestrator:
    cache = None
    if settings.cache_enabled:
        try:
            cache = JsonFileCache(settings.cache_dir)
        except CacheError as exc:
            logger.warning("Durable cache disabled: %s", exc)
    return ScrapeOrchestrator(settings, store, cache)


def build_chat_service(
    settings: Settings,
    store: SessionStore,
    orchestrator: ScrapeOrchestrator,
    provider_name: str | None = None,
) -> ChatService:
    """Raises ``ValueError`` when the provider is unknown or missing its API key."""
    provider = get_provider(provider_name or settings.default_provider, settings)
    return ChatService(settings, store, orchestrator, Responder(provider, settings))
