"""
LLM Provider Factory.

Creates and configures LLM provider instances based on application settings.
Follows the Factory Method pattern for provider creation.
"""

from typing import Callable

import httpx

from pinesmith.core.config import LLMProvider as LLMProviderEnum
from pinesmith.core.config import Settings
from pinesmith.providers.llm.anthropic_adapter import AnthropicAdapter
from pinesmith.providers.llm.base import LLMProvider, LLMProviderError
from pinesmith.providers.llm.langchain_adapter import LangChainAdapter
from pinesmith.providers.llm.openrouter import OpenRouterAdapter

# Type alias for provider factory functions
ProviderFactory = Callable[[Settings, "httpx.AsyncClient | None"], LLMProvider]

# Registry of provider factories
_PROVIDER_REGISTRY: dict[LLMProviderEnum, ProviderFactory] = {
    LLMProviderEnum.OPENROUTER: OpenRouterAdapter.from_settings,
    LLMProviderEnum.LANGCHAIN: LangChainAdapter.from_settings,
    LLMProviderEnum.ANTHROPIC: AnthropicAdapter.from_settings,
}


class LLMProviderFactory:
    """
    Factory for creating LLM provider instances.

    Uses the configured provider setting to instantiate the appropriate
    adapter class. Supports extensibility through a registry pattern.

    Example:
        provider = LLMProviderFactory.create(settings, http_client)
        result = await provider.generate("Hello, world!")
    """

    @staticmethod
    def create(
        settings: Settings,
        http_client: httpx.AsyncClient | None = None,
    ) -> LLMProvider:
        """
        Create an LLM provider based on settings.

        Args:
            settings: Application settings containing LLM configuration
            http_client: Optional shared HTTP client handed to the adapter

        Returns:
            Configured LLMProvider instance

        Raises:
            ValueError: If the configured provider is not supported
            LLMProviderError: If provider creation fails
        """
        provider_type = settings.llm.provider

        factory_func = _PROVIDER_REGISTRY.get(provider_type)
        if factory_func is None:
            supported = [p.value for p in _PROVIDER_REGISTRY.keys()]
            raise ValueError(
                f"Unsupported LLM provider: '{provider_type.value}'. "
                f"Supported providers: {supported}"
            )

        try:
            return factory_func(settings, http_client)
        except Exception as e:
            raise LLMProviderError(
                f"Failed to create LLM provider '{provider_type.value}': {e}",
                provider=provider_type.value,
            ) from e

    @staticmethod
    def register(
        provider_type: LLMProviderEnum,
        factory_func: ProviderFactory,
    ) -> None:
        """
        Register a new provider factory.

        Args:
            provider_type: Provider enum value to register
            factory_func: Callable taking (settings, http_client) and returning a provider
        """
        _PROVIDER_REGISTRY[provider_type] = factory_func

    @staticmethod
    def unregister(provider_type: LLMProviderEnum) -> bool:
        """
        Unregister a provider factory.

        Returns:
            True if provider was unregistered, False if not found
        """
        if provider_type in _PROVIDER_REGISTRY:
            del _PROVIDER_REGISTRY[provider_type]
            return True
        return False

    @staticmethod
    def get_supported_providers() -> list[str]:
        """Get list of supported provider names."""
        return [p.value for p in _PROVIDER_REGISTRY.keys()]
