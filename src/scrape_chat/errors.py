"""Error taxonomy shared by the orchestrator, chat service and HTTP layer.

Every error a caller can see is a ``ScrapeChatError``. Each subclass fixes
the HTTP status and the short ``code`` used in JSON error bodies, so a
client can tell "no more data" apart from "the fetch broke".
"""

from __future__ import annotations

from typing import Any


class ScrapeChatError(Exception):
    """Base class for errors that are reported to the caller."""

    status_code: int = 500
    code: str = "ServiceError"

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = {k: v for k, v in details.items() if v is not None}

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.code, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class InvalidRequest(ScrapeChatError):
    """The request body is malformed or ambiguous."""

    status_code = 400
    code = "InvalidRequest"


class NoPriorUrl(InvalidRequest):
    """Pagination was requested but the session never scraped a URL."""

    code = "NoPriorUrl"


class NotFound(ScrapeChatError):
    """The request produced zero records."""

    status_code = 404
    code = "NotFound"


class NoMoreResults(ScrapeChatError):
    """The next page exists in name only: pagination is exhausted."""

    status_code = 404
    code = "NoMoreResults"


class FetchFailed(ScrapeChatError):
    """The target site could not be fetched (HTTP error, timeout, transport)."""

    status_code = 502
    code = "ServiceError"

    def __init__(
        self,
        message: str,
        *,
        http_status: int | None = None,
        url: str | None = None,
        page: int | None = None,
    ) -> None:
        super().__init__(message, http_status=http_status, url=url, page=page)
        self.http_status = http_status
        self.url = url
        self.page = page


class CacheError(ScrapeChatError):
    """Durable cache read or write failed. Never surfaced to callers."""


class ResponderUnavailable(ScrapeChatError):
    """The language model could not produce a reply.

    Carries whatever results were already assembled so they are still
    deliverable to the client.
    """

    status_code = 503
    code = "ServiceUnavailable"

    def __init__(self, message: str, *, results: list | None = None, session_id: str | None = None) -> None:
        super().__init__(message)
        self.results = results or []
        self.session_id = session_id

    def to_dict(self) -> dict[str, Any]:
        body = super().to_dict()
        body["results"] = [r.model_dump() if hasattr(r, "model_dump") else r for r in self.results]
        if self.session_id:
            body["sessionId"] = self.session_id
        return body
