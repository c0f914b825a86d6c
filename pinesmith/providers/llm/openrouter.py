"""
OpenRouter LLM Provider Adapter.

Implements the LLMProvider interface for OpenRouter API using OpenAI SDK.
OpenRouter provides unified access to multiple LLM models from different providers,
which lets a request pick its model per call (e.g. a "pro" or a "flash" tier).

API Documentation: https://openrouter.ai/docs
"""

from decimal import Decimal
from typing import Any

import httpx
from openai import AsyncOpenAI, APIConnectionError, APIStatusError, RateLimitError as OpenAIRateLimitError

from pinesmith.core.config import LLMConfig, Settings
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

# OpenRouter API base URL
OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"

# Default model costs (per 1k tokens, in USD)
DEFAULT_MODEL_COSTS: dict[str, tuple[Decimal, Decimal]] = {
    "google/gemini-2.5-pro": (Decimal("0.00125"), Decimal("0.01")),
    "google/gemini-2.5-flash": (Decimal("0.0003"), Decimal("0.0025")),
    "anthropic/claude-sonnet-4": (Decimal("0.003"), Decimal("0.015")),
    "anthropic/claude-3.5-sonnet": (Decimal("0.003"), Decimal("0.015")),
    "openai/gpt-4o": (Decimal("0.005"), Decimal("0.015")),
    "openai/gpt-4o-mini": (Decimal("0.00015"), Decimal("0.0006")),
}


def build_openai_content(
    prompt: str,
    attachments: list[Attachment] | None = None,
) -> str | list[dict[str, Any]]:
    """
    Build the user message content in OpenAI chat format.

    Plain text stays a string; with attachments the content becomes a list of
    parts: the text first, then one image_url or file part per attachment.
    """
    if not attachments:
        return prompt

    parts: list[dict[str, Any]] = [{"type": "text", "text": prompt}]
    for attachment in attachments:
        if attachment.is_image:
            parts.append(
                {"type": "image_url", "image_url": {"url": attachment.to_data_url()}}
            )
        else:
            parts.append(
                {
                    "type": "file",
                    "file": {
                        "filename": attachment.filename or "document",
                        "file_data": attachment.to_data_url(),
                    },
                }
            )
    return parts


class OpenRouterAdapter(LLMProvider):
    """
    OpenRouter LLM Provider implementation using OpenAI SDK.

    Attributes:
        _client: AsyncOpenAI client configured for OpenRouter
        _llm_config: LLM configuration from settings
        _model_info: Cached model metadata for the default model

    Example:
        adapter = OpenRouterAdapter(
            api_key="sk-or-v1-...",
            llm_config=settings.llm,
        )
        result = await adapter.generate("Write an RSI indicator")
    """

    def __init__(
        self,
        api_key: str,
        llm_config: LLMConfig,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize the OpenRouter adapter.

        Args:
            api_key: OpenRouter API key
            llm_config: LLM configuration containing model and generation params
            http_client: Optional shared HTTP client (connection pooling)

        Raises:
            ValueError: If api_key is empty
        """
        if not api_key:
            raise ValueError("OpenRouter API key is required")

        self._api_key = api_key
        self._llm_config = llm_config
        self._model_info = self._build_model_info(llm_config.model)

        default_headers: dict[str, str] = {}
        if llm_config.site_url:
            default_headers["HTTP-Referer"] = llm_config.site_url
        if llm_config.site_name:
            default_headers["X-Title"] = llm_config.site_name

        self._client = AsyncOpenAI(
            api_key=api_key,
            base_url=OPENROUTER_BASE_URL,
            default_headers=default_headers if default_headers else None,
            timeout=llm_config.request_timeout_seconds,
            http_client=http_client,
        )

    def _build_model_info(self, model_id: str) -> ModelInfo:
        """Build ModelInfo for a model identifier."""
        costs = DEFAULT_MODEL_COSTS.get(
            model_id, (Decimal("0"), Decimal("0"))
        )

        return ModelInfo(
            model_id=model_id,
            provider="openrouter",
            display_name=model_id.split("/")[-1] if "/" in model_id else model_id,
            max_context_tokens=self._llm_config.max_context_tokens,
            max_output_tokens=self._llm_config.max_tokens,
            cost_per_1k_input=costs[0],
            cost_per_1k_output=costs[1],
            supports_system_prompt=True,
            supports_attachments=True,
        )

    def _build_messages(
        self,
        prompt: str,
        system_prompt: str | None = None,
        attachments: list[Attachment] | None = None,
    ) -> list[dict[str, Any]]:
        """
        Build messages list for the API request.

        Args:
            prompt: User prompt/message
            system_prompt: Optional system prompt
            attachments: Optional binary parts

        Returns:
            List of message dicts
        """
        messages: list[dict[str, Any]] = []

        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})

        messages.append({"role": "user", "content": build_openai_content(prompt, attachments)})

        return messages

    def _build_extra_body(self, config: GenerationConfig) -> dict[str, Any] | None:
        """
        Build extra_body for OpenRouter-specific parameters.

        Args:
            config: Generation configuration

        Returns:
            Extra body dict or None if no extra parameters
        """
        extra: dict[str, Any] = dict(config.extra)

        # See: https://openrouter.ai/docs/guides/best-practices/reasoning-tokens
        if self._llm_config.reasoning_enabled and config.reasoning_budget:
            extra["reasoning"] = {
                "enabled": True,
                "max_tokens": config.reasoning_budget,
            }

        return extra if extra else None

    async def generate(
        self,
        prompt: str,
        config: GenerationConfig | None = None,
        system_prompt: str | None = None,
        attachments: list[Attachment] | None = None,
    ) -> CompletionResult:
        """
        Generate text using OpenRouter API via OpenAI SDK.

        Args:
            prompt: The user prompt/message
            config: Generation configuration. Uses settings defaults if None.
            system_prompt: Optional system prompt
            attachments: Optional binary parts (PDF, images)

        Returns:
            CompletionResult containing the generated text and metadata

        Raises:
            LLMProviderError: If generation fails
            RateLimitError: If rate limit is exceeded
            AuthenticationError: If API key is invalid
        """
        if config is None:
            config = GenerationConfig(
                temperature=self._llm_config.temperature,
                max_tokens=self._llm_config.max_tokens,
            )

        model_id = config.model or self._llm_config.model
        messages = self._build_messages(prompt, system_prompt, attachments)
        extra_body = self._build_extra_body(config)

        try:
            request_params: dict[str, Any] = {
                "model": model_id,
                "messages": messages,
                "temperature": config.temperature,
                "max_tokens": config.max_tokens,
                "top_p": config.top_p,
            }

            if config.stop_sequences:
                request_params["stop"] = config.stop_sequences

            if config.seed is not None:
                request_params["seed"] = config.seed

            if config.json_mode:
                request_params["response_format"] = {"type": "json_object"}

            if extra_body:
                request_params["extra_body"] = extra_body

            response = await self._client.chat.completions.create(**request_params)

            choice = response.choices[0]
            content = choice.message.content or ""
            finish_reason = choice.finish_reason or "stop"

            usage_dict: dict[str, int] = {}
            if response.usage:
                usage_dict = {
                    "prompt_tokens": response.usage.prompt_tokens,
                    "completion_tokens": response.usage.completion_tokens,
                    "total_tokens": response.usage.total_tokens,
                }

            raw_response: dict[str, Any] = {
                "id": response.id,
                "model": response.model,
                "created": response.created,
            }

            model_info = (
                self._model_info
                if model_id == self._llm_config.model
                else self._build_model_info(model_id)
            )

            return CompletionResult(
                content=content,
                model_info=model_info,
                usage=usage_dict,
                finish_reason=finish_reason,
                raw_response=raw_response,
            )

        except OpenAIRateLimitError as e:
            raise RateLimitError(
                f"Rate limit exceeded: {e}",
                provider="openrouter",
                retry_after=None,
            ) from e
        except APIStatusError as e:
            if e.status_code == 401 or e.status_code == 403:
                raise AuthenticationError(
                    f"Authentication failed: {e.message}",
                    provider="openrouter",
                ) from e
            if e.status_code == 404:
                raise ModelNotFoundError(
                    f"Model not found: {e.message}",
                    provider="openrouter",
                ) from e
            raise LLMProviderError(
                f"API error ({e.status_code}): {e.message}",
                provider="openrouter",
            ) from e
        except APIConnectionError as e:
            raise LLMProviderError(
                f"Connection failed: {e}",
                provider="openrouter",
            ) from e
        except Exception as e:
            raise LLMProviderError(
                f"Unexpected error: {e}",
                provider="openrouter",
            ) from e

    def get_model_info(self) -> ModelInfo:
        """Get metadata about the configured model."""
        return self._model_info

    @property
    def provider_name(self) -> str:
        """Get the provider name."""
        return "openrouter"

    async def health_check(self) -> bool:
        """
        Check if OpenRouter API is accessible.

        Returns:
            True if API is accessible, False otherwise
        """
        try:
            await self._client.models.list()
            return True
        except Exception:
            return False

    async def close(self) -> None:
        """Close the OpenAI client."""
        await self._client.close()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        http_client: httpx.AsyncClient | None = None,
    ) -> "OpenRouterAdapter":
        """
        Create adapter from application settings.

        Args:
            settings: Application settings
            http_client: Optional shared HTTP client

        Returns:
            Configured OpenRouterAdapter instance

        Raises:
            ValueError: If OpenRouter API key is not configured
        """
        api_key = settings.get_llm_api_key()
        return cls(
            api_key=api_key,
            llm_config=settings.llm,
            http_client=http_client,
        )
