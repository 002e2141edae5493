"""LLM Provider Factory for runtime provider selection.

Adapters are immutable with respect to their configuration: switching model,
backend or credentials means building a new adapter from a new LlmConfig.
This factory is the single place that maps a configuration to the adapter
class that serves it.

Design Pattern:
- Factory Pattern: Creates the adapter matching ``LlmConfig.provider``
- Strategy Pattern: Each adapter implements the same LlmProvider interface

Usage:
    provider = LlmProviderFactory.create_provider(settings.to_llm_config())
"""

import logging
from typing import TYPE_CHECKING

import httpx

from bookcrafter_agent.application.agents.llm_provider import LlmConfig, LlmProvider, LlmProviderError, LlmProviderType
from bookcrafter_agent.infrastructure.adapters.anthropic_llm_provider import AnthropicLlmProvider
from bookcrafter_agent.infrastructure.adapters.http_llm_provider import HttpLlmProvider
from bookcrafter_agent.infrastructure.adapters.ollama_llm_provider import OllamaLlmProvider
from bookcrafter_agent.infrastructure.adapters.openai_llm_provider import OpenAiLlmProvider

if TYPE_CHECKING:
    from neuroglia.hosting.abstractions import ApplicationBuilderBase

logger = logging.getLogger(__name__)


class LlmProviderFactory:
    """Factory for creating LLM provider adapters from configuration.

    Example:
        factory = LlmProviderFactory()
        provider = factory.create_provider(LlmConfig(provider=LlmProviderType.OPENAI, model="gpt-4o-mini", api_key="..."))
        response = await provider.complete(LlmRequest(prompt="Hello"))
    """

    _PROVIDERS: dict[LlmProviderType, type[HttpLlmProvider]] = {
        LlmProviderType.OLLAMA: OllamaLlmProvider,
        LlmProviderType.OPENAI: OpenAiLlmProvider,
        LlmProviderType.ANTHROPIC: AnthropicLlmProvider,
    }

    @property
    def available_providers(self) -> list[LlmProviderType]:
        """Get list of supported provider types."""
        return list(self._PROVIDERS.keys())

    @classmethod
    def create_provider(cls, config: LlmConfig, client: httpx.AsyncClient | None = None) -> LlmProvider:
        """Create a new adapter for the given configuration.

        Args:
            config: Provider configuration
            client: Optional HTTP client to share with the adapter

        Returns:
            A fresh adapter instance

        Raises:
            LlmProviderError: If the provider type is not supported
        """
        provider_class = cls._PROVIDERS.get(config.provider)
        if provider_class is None:
            raise LlmProviderError(
                message=f"Provider '{config.provider}' is not available",
                error_code="provider_not_available",
                provider="factory",
                is_retryable=False,
                details={"requested_provider": str(config.provider), "available": [p.value for p in cls._PROVIDERS]},
            )
        logger.info(f"Creating {config.provider.display_name} provider: model={config.model}")
        return provider_class(config, client=client)

    def __call__(self, config: LlmConfig) -> LlmProvider:
        return self.create_provider(config)

    @staticmethod
    def configure(builder: "ApplicationBuilderBase") -> "LlmProviderFactory":
        """Configure LlmProviderFactory and the default LlmProvider in the service collection.

        Args:
            builder: The application builder

        Returns:
            Configured factory instance
        """
        from bookcrafter_agent.application.settings import resolve_settings

        settings = resolve_settings(builder)
        factory = LlmProviderFactory()
        builder.services.add_singleton(LlmProviderFactory, singleton=factory)

        try:
            default = factory.create_provider(settings.to_llm_config())
        except ValueError:
            logger.warning(f"Unknown ai_provider '{settings.ai_provider}', using ollama")
            default = factory.create_provider(settings.to_llm_config(LlmProviderType.OLLAMA))

        builder.services.add_singleton(LlmProvider, singleton=default)
        logger.info(f"Configured LlmProviderFactory: default={default.provider_type.value}, model={default.model}")
        return factory
