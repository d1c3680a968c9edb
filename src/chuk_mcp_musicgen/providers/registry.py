"""
Provider registry - picks a provider variant by configured name.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from chuk_mcp_musicgen.config import GenerationSettings, ProviderSettings
from chuk_mcp_musicgen.providers.base import GenerationProvider
from chuk_mcp_musicgen.providers.fallback import FallbackProvider
from chuk_mcp_musicgen.providers.openai_provider import OpenAIProvider
from chuk_mcp_musicgen.providers.rule_based import RuleBasedProvider

logger = logging.getLogger(__name__)

ProviderFactory = Callable[[ProviderSettings, GenerationSettings], GenerationProvider]

# Share of the generation timeout given to the primary when a fallback is configured
PRIMARY_TIMEOUT_SHARE = 0.6


def _openai(settings: ProviderSettings, generation: GenerationSettings) -> GenerationProvider:
    return OpenAIProvider(
        model=settings.model,
        temperature=settings.temperature,
        timeout=generation.timeout,
        api_key=settings.api_key,
        base_url=settings.base_url,
    )


def _rule_based(settings: ProviderSettings, generation: GenerationSettings) -> GenerationProvider:
    return RuleBasedProvider(latency=settings.latency)


PROVIDERS: dict[str, ProviderFactory] = {
    "openai": _openai,
    "rule_based": _rule_based,
}


def available_providers() -> list[str]:
    return sorted(PROVIDERS)


def _build(name: str, settings: ProviderSettings, generation: GenerationSettings) -> GenerationProvider:
    factory = PROVIDERS.get(name)
    if factory is None:
        raise ValueError(f"Unknown provider: {name}. Available: {', '.join(available_providers())}")
    return factory(settings, generation)


def create_provider(
    settings: ProviderSettings, generation: GenerationSettings | None = None
) -> GenerationProvider:
    """
    Create the configured provider, wrapped in a fallback when one is set.

    Raises:
        ValueError: If a provider name is not registered
    """
    generation = generation or GenerationSettings()
    if not settings.fallback or settings.fallback == settings.name:
        provider = _build(settings.name, settings, generation)
        logger.info(f"Using provider: {provider.name}")
        return provider

    # The primary gets a share of the overall wait so the secondary can still answer
    primary_timeout = generation.timeout * PRIMARY_TIMEOUT_SHARE
    primary = _build(
        settings.name, settings, generation.model_copy(update={"timeout": primary_timeout})
    )
    provider = FallbackProvider(
        primary, _build(settings.fallback, settings, generation), primary_timeout=primary_timeout
    )
    logger.info(f"Using provider: {provider.name}")
    return provider
