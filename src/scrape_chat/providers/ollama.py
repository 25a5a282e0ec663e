"""Ollama provider for local models."""

from __future__ import annotations

import httpx

from scrape_chat.config import Settings
from scrape_chat.providers.base import AIProvider


class OllamaProvider(AIProvider):
    name = "ollama"

    def __init__(self, settings: Settings) -> None:
        super().__init__(settings)
        self._base_url = settings.ollama_base_url.rstrip("/")
        self._model = settings.ollama_model

    def _chat(self, system: str, messages: list[dict[str, str]]) -> str:
        payload: dict = {
            "model": self._model,
            "messages": [{"role": "system", "content": system}, *messages],
            "stream": False,
            "options": {
                "temperature": self.settings.temperature,
                "num_ctx": 8192,
            },
        }

        with httpx.Client(timeout=120) as client:
            response = client.post(f"{self._base_url}/api/chat", json=payload)
            response.raise_for_status()

        return response.json().get("message", {}).get("content", "")
