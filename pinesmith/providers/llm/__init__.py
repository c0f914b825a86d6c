"""
LLM Provider abstraction layer.

Provides provider-agnostic interfaces for the completion service following SOLID DIP.

Exports:
    - ModelInfo, GenerationConfig, Attachment, CompletionResult: core types
    - LLMProvider: Abstract base class for LLM providers
    - LLMProviderFactory: Factory for creating LLM provider instances
    - OpenRouterAdapter, LangChainAdapter, AnthropicAdapter: concrete adapters
    - Exceptions: LLMProviderError, RateLimitError, AuthenticationError, ModelNotFoundError
"""

from pinesmith.providers.llm.base import (
    Attachment,
    AuthenticationError,
    CompletionResult,
    GenerationConfig,
    LLMProvider,
    LLMProviderError,
    ModelInfo,
    ModelNotFoundError,
    RateLimitError,
)
from pinesmith.providers.llm.anthropic_adapter import AnthropicAdapter
from pinesmith.providers.llm.factory import LLMProviderFactory
from pinesmith.providers.llm.langchain_adapter import LangChainAdapter
from pinesmith.providers.llm.openrouter import OpenRouterAdapter

__all__ = [
    # Core types
    "ModelInfo",
    "GenerationConfig",
    "Attachment",
    "CompletionResult",
    "LLMProvider",
    # Factory
    "LLMProviderFactory",
    # Adapters
    "OpenRouterAdapter",
    "LangChainAdapter",
    "AnthropicAdapter",
    # Exceptions
    "LLMProviderError",
    "RateLimitError",
    "AuthenticationError",
    "ModelNotFoundError",
]
