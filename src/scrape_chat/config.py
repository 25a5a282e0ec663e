"""Centralized configuration loaded from .env."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)


def _load_env() -> None:
    env_path = Path.cwd() / ".env"
    if env_path.exists():
        load_dotenv(dotenv_path=env_path)
    else:
        load_dotenv()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "")
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "")
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name, "")
    if not raw:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    # AI provider keys
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    anthropic_api_key: str = ""
    claude_model: str = "claude-haiku-4-5-20251001"

    # Ollama config
    ollama_base_url: str = "http://localhost:11434"
    ollama_model: str = "phi4-mini"

    default_provider: str = "openai"
    temperature: float = 0.2

    # Fetching. ScraperAPI is only used when a key is configured.
    scraper_api_key: str = ""
    render_js: bool = False
    fetch_timeout: int = 30
    fetch_retries: int = 0
    page_delay: float = 0.5  # between network fetches inside one range request
    host_min_interval: float = 0.5  # between any two fetches to the same host
    max_range_pages: int = 6
    user_agent: str = DEFAULT_USER_AGENT

    # Sessions and chat
    history_limit: int = 5
    context_records: int = 50
    session_idle_timeout: float = 3600.0

    # Durable cache
    cache_enabled: bool = False
    cache_dir: str = ".scrape_cache"

    # HTTP server
    host: str = "0.0.0.0"
    port: int = 8080

    @classmethod
    def from_env(cls) -> Settings:
        _load_env()
        return cls(
            openai_api_key=os.getenv("OPENAI_API_KEY", ""),
            openai_model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
            anthropic_api_key=os.getenv("ANTHROPIC_API_KEY", ""),
            claude_model=os.getenv("CLAUDE_MODEL", "claude-haiku-4-5-20251001"),
            ollama_base_url=os.getenv("OLLAMA_BASE_URL", "http://localhost:11434"),
            ollama_model=os.getenv("OLLAMA_MODEL", "phi4-mini"),
            default_provider=os.getenv("DEFAULT_PROVIDER", "openai"),
            temperature=_env_float("TEMPERATURE", 0.2),
            scraper_api_key=os.getenv("SCRAPER_API_KEY", ""),
            render_js=_env_bool("RENDER_JS", False),
            fetch_timeout=_env_int("FETCH_TIMEOUT", 30),
            fetch_retries=_env_int("FETCH_RETRIES", 0),
            page_delay=_env_float("PAGE_DELAY", 0.5),
            host_min_interval=_env_float("HOST_MIN_INTERVAL", 0.5),
            max_range_pages=_env_int("MAX_RANGE_PAGES", 6),
            user_agent=os.getenv("USER_AGENT", DEFAULT_USER_AGENT),
            history_limit=_env_int("HISTORY_LIMIT", 5),
            context_records=_env_int("CONTEXT_RECORDS", 50),
            session_idle_timeout=_env_float("SESSION_IDLE_TIMEOUT", 3600.0),
            cache_enabled=_env_bool("SCRAPER_CACHE", False),
            cache_dir=os.getenv("SCRAPER_CACHE_DIR", ".scrape_cache"),
            host=os.getenv("HOST", "0.0.0.0"),
            port=_env_int("PORT", 8080),
        )
