"""Chat-completion providers, looked up by name.

Each entry names where the provider class lives and which ``Settings``
field holds its API key. Provider modules are imported on first use so a
missing SDK only matters for the provider that needs it.
"""

from __future__ import annotations

import importlib
from typing import NamedTuple

from scrape_chat.config import Settings
from scrape_chat.providers.base import AIProvider


class ProviderSpec(NamedTuple):
    module: str
    class_name: str
    key_field: str | None  # None: no key needed (local server)


PROVIDERS: dict[str, ProviderSpec] = {
    "openai": ProviderSpec("scrape_chat.providers.openai", "OpenAIProvider", "openai_api_key"),
    "anthropic": ProviderSpec("scrape_chat.providers.anthropic", "AnthropicProvider", "anthropic_api_key"),
    "ollama": ProviderSpec("scrape_chat.providers.ollama", "OllamaProvider", None),
}


def list_providers() -> list[str]:
    return sorted(PROVIDERS)


def _spec_for(name: str) -> ProviderSpec:
    try:
        return PROVIDERS[name]
    except KeyError:
        raise ValueError(
            f"Unknown provider '{name}'. Available: {', '.join(list_providers())}"
        ) from None


def is_configured(name: str, settings: Settings) -> bool:
    """True when the provider's API key (if it needs one) is set."""
    spec = _spec_for(name)
    return spec.key_field is None or bool(getattr(settings, spec.key_field))


def provider_status(settings: Settings) -> dict[str, bool]:
    return {name: is_configured(name, settings) for name in list_providers()}


def get_provider(name: str, settings: Settings) -> AIProvider:
    spec = _spec_for(name)
    provider_class = getattr(importlib.import_module(spec.module), spec.class_name)
    return provider_class(settings)
