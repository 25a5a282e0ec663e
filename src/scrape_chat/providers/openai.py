"""OpenAI chat-completions provider."""

from __future__ import annotations

from openai import OpenAI

from scrape_chat.config import Settings
from scrape_chat.providers.base import AIProvider


class OpenAIProvider(AIProvider):
    name = "openai"

    def __init__(self, settings: Settings) -> None:
        super().__init__(settings)
        if not settings.openai_api_key:
            raise ValueError("OPENAI_API_KEY is required for the OpenAI provider")
        self._client = OpenAI(api_key=settings.openai_api_key)

    def _chat(self, system: str, messages: list[dict[str, str]]) -> str:
        response = self._client.chat.completions.create(
            model=self.settings.openai_model,
            messages=[{"role": "system", "content": system}, *messages],
            temperature=self.settings.temperature,
        )
        return response.choices[0].message.content or ""
