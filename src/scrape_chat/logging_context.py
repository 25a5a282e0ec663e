"""Session-aware logging context.

Stamps the current session id on every log record so a single
conversation can be traced across the fetcher, orchestrator and chat
layers.

Usage:
    from scrape_chat.logging_context import configure_logging, set_session_id

    configure_logging(verbose=False)
    set_session_id("3f2a...")
    logging.getLogger(__name__).info("Scraping")  # -> [3f2a...] Scraping
"""

from __future__ import annotations

import logging
from contextvars import ContextVar

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s [%(session_id)s]: %(message)s"

_session_id: ContextVar[str] = ContextVar("session_id", default="-")


def set_session_id(session_id: str | None) -> None:
    """Set the session id for the current thread or async context."""
    _session_id.set(session_id or "-")


class SessionIdFilter(logging.Filter):
    """Injects session_id into every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.session_id = _session_id.get()  # type: ignore[attr-defined]
        return True


def configure_logging(verbose: bool = False) -> None:
    """Configure root logging and attach the session filter to its handlers.

    The filter sits on handlers rather than loggers so third-party records
    (httpx, werkzeug) also carry ``session_id`` and the format never fails.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
    )
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, SessionIdFilter) for f in handler.filters):
            handler.addFilter(SessionIdFilter())
