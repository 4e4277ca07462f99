"""Command-generation backends for Chitin.

Backends are selected by name from the provider configuration. Remote
backends import their HTTP stack lazily so that picking ``noop`` stays
cheap.
"""

from typing import TYPE_CHECKING

from chitin.providers.base import CommandGenerator, GenerationContext, GenerationError
from chitin.providers.noop import NoopProvider

if TYPE_CHECKING:
    from chitin.config import ProviderConfig

PROVIDER_NAMES = ("openai", "openai-compatible", "mistralai", "mistral", "noop")


def build_provider(provider_config: "ProviderConfig") -> CommandGenerator:
    """
    Create the backend described by a ProviderConfig.

    Raises:
        ValueError: If the provider name is unknown or its settings are incomplete
    """
    provider = provider_config.provider.strip().lower()

    if provider in ("openai", "openai-compatible"):
        from chitin.providers.openai import OpenAICompatibleProvider
        return OpenAICompatibleProvider(
            api_key=provider_config.api_key,
            model=provider_config.model,
            api_base=provider_config.api_base,
            temperature=provider_config.temperature,
            timeout=provider_config.timeout,
        )

    if provider in ("mistralai", "mistral"):
        from chitin.providers.mistral import MistralProvider
        return MistralProvider(
            api_key=provider_config.api_key,
            model=provider_config.model,
            temperature=provider_config.temperature,
            timeout=provider_config.timeout,
        )

    if provider == "noop":
        return NoopProvider()

    raise ValueError(f"unknown provider: {provider_config.provider}")


__all__ = [
    "CommandGenerator",
    "GenerationContext",
    "GenerationError",
    "NoopProvider",
    "PROVIDER_NAMES",
    "build_provider",
]
