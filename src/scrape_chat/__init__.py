"""scrape-chat - Conversational access to a paginated breeder directory."""

__version__ = "0.1.0"

from scrape_chat.models import Record, ScrapeResult
from scrape_chat.orchestrator import ScrapeOrchestrator
from scrape_chat.session import SessionStore

__all__ = ["Record", "ScrapeOrchestrator", "ScrapeResult", "SessionStore"]
