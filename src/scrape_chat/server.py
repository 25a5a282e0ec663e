"""HTTP API: ``/health``, ``/api/diagnose``, ``/api/scrape`` and ``/api/chat``."""

from __future__ import annotations

import logging
from typing import Any

from flask import Flask, jsonify, request
from pydantic import ValidationError
from werkzeug.exceptions import HTTPException

from scrape_chat.chat import ChatService
from scrape_chat.classifier import parse_scrape_payload
from scrape_chat.config import Settings
from scrape_chat.errors import InvalidRequest, ResponderUnavailable, ScrapeChatError
from scrape_chat.logging_context import set_session_id
from scrape_chat.models import ChatRequest
from scrape_chat.orchestrator import ScrapeOrchestrator
from scrape_chat.providers import provider_status
from scrape_chat.services import build_chat_service, build_orchestrator
from scrape_chat.session import SessionStore

logger = logging.getLogger(__name__)


def _json_body() -> dict[str, Any]:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise InvalidRequest("Request body must be a JSON object")
    set_session_id(data.get("sessionId") or data.get("session_id"))
    return data


def create_app(
    settings: Settings | None = None,
    *,
    store: SessionStore | None = None,
    orchestrator: ScrapeOrchestrator | None = None,
    chat_service: ChatService | None = None,
) -> Flask:
    settings = settings or Settings.from_env()
    store = store or SessionStore(settings.session_idle_timeout)
    orchestrator = orchestrator or build_orchestrator(settings, store)

    chat_unavailable = ""
    if chat_service is None:
        try:
            chat_service = build_chat_service(settings, store, orchestrator)
        except ValueError as exc:
            # Scraping still works without a language model.
            logger.warning("Chat disabled: %s", exc)
            chat_unavailable = str(exc)

    app = Flask(__name__)
    app.config["SCRAPE_CHAT_SETTINGS"] = settings

    @app.get("/health")
    def health():
        return jsonify({"status": "ok"})

    @app.get("/api/diagnose")
    def diagnose():
        body: dict[str, Any] = {
            "status": "ok",
            "chatEnabled": chat_service is not None,
            "provider": chat_service.provider_name if chat_service is not None else settings.default_provider,
            "providers": provider_status(settings),
            "cacheEnabled": bool(orchestrator.has_cache),
        }
        if chat_unavailable:
            body["chatError"] = chat_unavailable
        return jsonify(body)

    @app.post("/api/scrape")
    def scrape():
        scrape_request = parse_scrape_payload(_json_body())
        result = orchestrator.scrape(scrape_request)
        return jsonify(result.to_wire())

    @app.route("/api/chat", methods=["GET", "POST"])
    def chat():
        if request.method == "GET":
            return jsonify({"message": "Chat API is ready"})

        data = _json_body()
        try:
            chat_request = ChatRequest.model_validate(data)
        except ValidationError as exc:
            fields = sorted({".".join(str(p) for p in err["loc"]) for err in exc.errors()})
            raise InvalidRequest("Malformed chat request", fields=fields) from exc

        if chat_service is None:
            raise ResponderUnavailable(f"No AI provider is configured: {chat_unavailable}")
        response = chat_service.handle(chat_request)
        return jsonify(response.to_wire())

    @app.errorhandler(ScrapeChatError)
    def handle_domain_error(exc: ScrapeChatError):
        level = logging.WARNING if exc.status_code >= 500 else logging.INFO
        logger.log(level, "%s %s -> %s: %s", request.method, request.path, exc.code, exc.message)
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(Exception)
    def handle_unexpected(exc: Exception):
        if isinstance(exc, HTTPException):
            return exc
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return jsonify({
            "error": "ServiceError",
            "message": "An error occurred while processing your request",
        }), 500

    return app
