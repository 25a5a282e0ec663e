"""In-memory conversation sessions with per-session locking and idle eviction."""

from __future__ import annotations

import logging
import threading
import time
import uuid
from dataclasses import dataclass, field

from scrape_chat.models import Message, Record

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class Session:
    """Mutable state of one conversation.

    ``page_cache`` holds the records fetched for each page of ``last_url``;
    ``current_page`` is the highest page aggregated so far and never exceeds
    the highest key of ``page_cache``.
    """

    id: str
    messages: list[Message] = field(default_factory=list)
    last_url: str | None = None
    current_page: int = 0
    page_cache: dict[int, list[Record]] = field(default_factory=dict)
    aggregated_results: list[Record] = field(default_factory=list)
    total_entries: int | None = None
    empty_page: int | None = None  # first page seen to be empty
    created_at: float = field(default_factory=time.monotonic)
    last_active: float = field(default_factory=time.monotonic)
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False)

    def reset_for(self, url: str) -> None:
        """Point the session at a new URL, forgetting everything cached for the old one."""
        self.last_url = url
        self.page_cache = {}
        self.aggregated_results = []
        self.total_entries = None
        self.empty_page = None
        self.current_page = 1

    def touch(self) -> None:
        self.last_active = time.monotonic()

    def add_message(self, role: str, content: str) -> None:
        self.messages.append(Message(role=role, content=content))
        self.touch()

    def recent_messages(self, limit: int) -> list[Message]:
        if limit <= 0:
            return []
        return list(self.messages[-limit:])


class SessionStore:
    """Process-wide session map, constructed once and injected where needed."""

    def __init__(self, idle_timeout: float = 3600.0) -> None:
        self._idle_timeout = idle_timeout
        self._sessions: dict[str, Session] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._sessions

    def get(self, session_id: str | None) -> Session | None:
        if not session_id:
            return None
        with self._lock:
            return self._sessions.get(session_id)

    def get_or_create(self, session_id: str | None = None) -> tuple[Session, str]:
        """Return the session for ``session_id``, creating it when unknown.

        A caller-supplied id is kept so the client can go on using it; an
        absent id gets a fresh random one.
        """
        self.evict_idle()
        with self._lock:
            if session_id and session_id in self._sessions:
                session = self._sessions[session_id]
                session.touch()
                return session, session_id
            new_id = session_id or uuid.uuid4().hex
            session = Session(id=new_id)
            self._sessions[new_id] = session
        logger.info("Created session %s", new_id)
        return session, new_id

    def put(self, session_id: str, session: Session) -> None:
        session.touch()
        with self._lock:
            self._sessions[session_id] = session

    def evict_idle(self, now: float | None = None) -> int:
        """Drop sessions idle for longer than the timeout. Returns how many went."""
        if self._idle_timeout <= 0:
            return 0
        now = time.monotonic() if now is None else now
        with self._lock:
            stale = [
                sid for sid, s in self._sessions.items()
                if now - s.last_active > self._idle_timeout and not _in_use(s)
            ]
            for sid in stale:
                del self._sessions[sid]
        if stale:
            logger.info("Evicted %d idle session(s)", len(stale))
        return len(stale)


def _in_use(session: Session) -> bool:
    """True when another thread currently holds the session lock."""
    acquired = session.lock.acquire(blocking=False)
    if acquired:
        session.lock.release()
    return not acquired
