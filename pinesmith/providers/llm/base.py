"""
LLM Provider base abstractions.

Defines provider-agnostic interfaces following SOLID Dependency Inversion Principle.
All concrete adapters must implement the LLMProvider abstract base class.
"""

import base64
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any


@dataclass(frozen=True)
class ModelInfo:
    """
    Metadata about an LLM model.

    Attributes:
        model_id: Full model identifier (e.g., "google/gemini-2.5-pro")
        provider: Provider name (e.g., "openrouter", "anthropic")
        display_name: Human-readable model name
        max_context_tokens: Maximum context window size
        max_output_tokens: Maximum tokens the model can generate
        cost_per_1k_input: Cost per 1000 input tokens (in USD)
        cost_per_1k_output: Cost per 1000 output tokens (in USD)
        supports_system_prompt: Whether the model supports system prompts
        supports_attachments: Whether binary document/image parts are accepted
        extra: Additional provider-specific metadata
    """

    model_id: str
    provider: str
    display_name: str = ""
    max_context_tokens: int = 128000
    max_output_tokens: int = 8000
    cost_per_1k_input: Decimal = Decimal("0")
    cost_per_1k_output: Decimal = Decimal("0")
    supports_system_prompt: bool = True
    supports_attachments: bool = True
    extra: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Set display_name to model_id if not provided."""
        if not self.display_name:
            object.__setattr__(self, "display_name", self.model_id)


@dataclass
class GenerationConfig:
    """
    Configuration for a single completion call.

    Attributes:
        temperature: Sampling temperature (0.0 = deterministic, 2.0 = creative)
        max_tokens: Maximum number of tokens to generate
        model: Per-call model override (None = adapter's configured model)
        json_mode: Ask the provider for a JSON object response
        reasoning_budget: Thinking-token budget for reasoning models (None = off)
        top_p: Nucleus sampling parameter (0.0-1.0)
        stop_sequences: List of strings that stop generation
        seed: Random seed for reproducible outputs (None = random)
        extra: Additional provider-specific parameters
    """

    temperature: float = 0.1
    max_tokens: int = 8000
    model: str | None = None
    json_mode: bool = False
    reasoning_budget: int | None = None
    top_p: float = 1.0
    stop_sequences: list[str] = field(default_factory=list)
    seed: int | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        if not 0.0 <= self.temperature <= 2.0:
            raise ValueError(f"temperature must be between 0.0 and 2.0, got {self.temperature}")
        if self.max_tokens <= 0:
            raise ValueError(f"max_tokens must be positive, got {self.max_tokens}")
        if not 0.0 <= self.top_p <= 1.0:
            raise ValueError(f"top_p must be between 0.0 and 1.0, got {self.top_p}")
        if self.reasoning_budget is not None and self.reasoning_budget <= 0:
            raise ValueError(
                f"reasoning_budget must be positive or None, got {self.reasoning_budget}"
            )


@dataclass(frozen=True)
class Attachment:
    """
    Binary content part sent alongside the text prompt (e.g. a PDF).

    Attributes:
        data: Raw bytes
        mime_type: MIME type of the content (e.g., "application/pdf")
        filename: Original file name, forwarded where the provider accepts one
    """

    data: bytes
    mime_type: str
    filename: str = ""

    def to_base64(self) -> str:
        """Return the payload as a base64 string."""
        return base64.b64encode(self.data).decode("ascii")

    def to_data_url(self) -> str:
        """Return the payload as a data: URL."""
        return f"data:{self.mime_type};base64,{self.to_base64()}"

    @property
    def is_image(self) -> bool:
        return self.mime_type.startswith("image/")


@dataclass
class CompletionResult:
    """
    Result of an LLM completion request.

    Attributes:
        content: Generated text content (a JSON string in json_mode)
        model_info: Information about the model used
        usage: Token usage statistics
        finish_reason: Why generation stopped (e.g., "stop", "length")
        raw_response: Raw response metadata from the provider (for debugging)
    """

    content: str
    model_info: ModelInfo
    usage: dict[str, int] = field(default_factory=dict)
    finish_reason: str = "stop"
    raw_response: dict[str, Any] | None = None


class LLMProvider(ABC):
    """
    Abstract base class for LLM providers.

    Concrete adapters (OpenRouter, Anthropic, LangChain) implement this
    interface so the pipeline only ever depends on the abstraction and tests
    can substitute a double.

    Example:
        class OpenRouterAdapter(LLMProvider):
            async def generate(self, prompt: str, ...) -> CompletionResult:
                ...

            def get_model_info(self) -> ModelInfo:
                return self._model_info
    """

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        config: GenerationConfig | None = None,
        system_prompt: str | None = None,
        attachments: list[Attachment] | None = None,
    ) -> CompletionResult:
        """
        Generate text from the LLM.

        Args:
            prompt: The user prompt/message to send to the LLM
            config: Generation configuration. If None, uses provider defaults.
            system_prompt: Optional system prompt for models that support it
            attachments: Optional binary parts sent after the text prompt

        Returns:
            CompletionResult containing the generated text and metadata

        Raises:
            LLMProviderError: If generation fails
            RateLimitError: If rate limit is exceeded
            AuthenticationError: If API key is invalid
        """
        ...

    @abstractmethod
    def get_model_info(self) -> ModelInfo:
        """
        Get metadata about the configured model.

        Returns:
            ModelInfo containing model metadata for UI display and auditing
        """
        ...

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """
        Get the provider name.

        Returns:
            Provider identifier string (e.g., "openrouter", "anthropic")
        """
        ...

    async def health_check(self) -> bool:
        """
        Check if the provider is healthy and accessible.

        Default implementation returns True. Override for custom health checks.
        """
        return True

    async def close(self) -> None:
        """
        Clean up provider resources.

        Called during application shutdown. Override if the provider
        holds resources that need cleanup (e.g., HTTP connections).
        """
        pass


class LLMProviderError(Exception):
    """Base exception for LLM provider errors."""

    def __init__(self, message: str, provider: str | None = None):
        self.provider = provider
        super().__init__(message)


class RateLimitError(LLMProviderError):
    """Raised when API rate limit is exceeded."""

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        retry_after: float | None = None,
    ):
        self.retry_after = retry_after
        super().__init__(message, provider)


class AuthenticationError(LLMProviderError):
    """Raised when API authentication fails."""

    pass


class ModelNotFoundError(LLMProviderError):
    """Raised when the requested model is not available."""

    pass
