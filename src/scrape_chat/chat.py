"""One conversational turn: classify, scrape or filter if asked, then reply."""

from __future__ import annotations

import logging

from scrape_chat.aggregator import merge
from scrape_chat.classifier import IntentKind, classify_message
from scrape_chat.config import Settings
from scrape_chat.errors import ResponderUnavailable
from scrape_chat.filters import apply_filters
from scrape_chat.logging_context import set_session_id
from scrape_chat.models import ChatRequest, ChatResponse
from scrape_chat.orchestrator import ScrapeOrchestrator
from scrape_chat.providers.base import ResponderError
from scrape_chat.responder import Responder, friendly_message
from scrape_chat.session import SessionStore

logger = logging.getLogger(__name__)


class ChatService:
    def __init__(
        self,
        settings: Settings,
        store: SessionStore,
        orchestrator: ScrapeOrchestrator,
        responder: Responder,
    ) -> None:
        self._settings = settings
        self._store = store
        self._orchestrator = orchestrator
        self._responder = responder

    @property
    def provider_name(self) -> str:
        return self._responder.provider_name

    def handle(self, request: ChatRequest) -> ChatResponse:
        """
        Run one chat turn.

        Scrape errors propagate unchanged. A failing language model raises
        ``ResponderUnavailable`` that still carries the assembled results.
        """
        session, session_id = self._store.get_or_create(request.session_id)
        set_session_id(session_id)

        intent = classify_message(request.message)
        logger.info("Chat turn classified as %s", intent.kind.value)

        if intent.is_scrape:
            self._orchestrator.scrape(intent.to_scrape_request(session_id))

        with session.lock:
            if not session.aggregated_results and request.scraped_data:
                session.aggregated_results = merge((), request.scraped_data)
            records = list(session.aggregated_results)
            if intent.kind is IntentKind.FILTER:
                records = apply_filters(records, intent.criteria)
                logger.info("Filter %s kept %d record(s)", intent.criteria, len(records))
            session.add_message("user", request.message)
            history = session.recent_messages(self._settings.history_limit)

        original_query = request.original_query if request.is_follow_up else None
        try:
            reply = self._responder.reply(history, records, original_query)
        except ResponderError as exc:
            logger.warning("Responder failed: %s", exc)
            raise ResponderUnavailable(
                friendly_message(exc), results=records, session_id=session_id,
            ) from exc

        with session.lock:
            session.add_message("assistant", reply)

        return ChatResponse(content=reply, results=records, session_id=session_id)
