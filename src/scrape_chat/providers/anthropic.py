"""Anthropic Claude provider."""

from __future__ import annotations

import anthropic

from scrape_chat.config import Settings
from scrape_chat.providers.base import AIProvider


class AnthropicProvider(AIProvider):
    name = "anthropic"

    def __init__(self, settings: Settings) -> None:
        super().__init__(settings)
        if not settings.anthropic_api_key:
            raise ValueError("ANTHROPIC_API_KEY is required for the Anthropic provider")
        self._client = anthropic.Anthropic(api_key=settings.anthropic_api_key)

    def _chat(self, system: str, messages: list[dict[str, str]]) -> str:
        # The Messages API requires the conversation to open with a user turn.
        while messages and messages[0]["role"] != "user":
            messages = messages[1:]
        response = self._client.messages.create(
            model=self.settings.claude_model,
            max_tokens=1024,
            system=system,
            messages=messages,
            temperature=self.settings.temperature,
        )
        return "".join(block.text for block in response.content if block.type == "text")
