"""
Anthropic (Claude) Native LLM Provider Adapter.

Implements the LLMProvider interface using the native Anthropic SDK.
Provides direct access to Claude models without going through OpenRouter.

API Documentation: https://docs.anthropic.com/en/api
"""

from decimal import Decimal
from typing import Any

import httpx
from anthropic import (
    AsyncAnthropic,
    APIConnectionError,
    APIStatusError,
    RateLimitError as AnthropicRateLimitError,
    AuthenticationError as AnthropicAuthenticationError,
    NotFoundError as AnthropicNotFoundError,
)

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

# Default model costs (per 1k tokens, in USD)
DEFAULT_MODEL_COSTS: dict[str, tuple[Decimal, Decimal]] = {
    "claude-sonnet-4-20250514": (Decimal("0.003"), Decimal("0.015")),
    "claude-opus-4-20250514": (Decimal("0.015"), Decimal("0.075")),
    "claude-3-5-sonnet-latest": (Decimal("0.003"), Decimal("0.015")),
    "claude-3-5-haiku-latest": (Decimal("0.001"), Decimal("0.005")),
}

# Anthropic rejects thinking budgets below this value
MIN_THINKING_BUDGET = 1024

# Appended to the system prompt in json_mode; the Messages API has no JSON switch
JSON_ONLY_INSTRUCTION = "Respond with a single JSON object only. No prose, no code fences."


def strip_provider_prefix(model_id: str) -> str:
    """'anthropic/claude-sonnet-4' -> 'claude-sonnet-4'."""
    if "/" in model_id:
        return model_id.split("/")[-1]
    return model_id


class AnthropicAdapter(LLMProvider):
    """
    Native Anthropic (Claude) LLM Provider implementation.

    Attributes:
        _client: AsyncAnthropic client
        _llm_config: LLM configuration from settings
        _model_info: Cached model metadata

    Example:
        adapter = AnthropicAdapter(
            api_key="sk-ant-...",
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
        Initialize the Anthropic adapter.

        Args:
            api_key: Anthropic API key
            llm_config: LLM configuration containing model and generation params
            http_client: Optional shared HTTP client

        Raises:
            ValueError: If api_key is empty
        """
        if not api_key:
            raise ValueError("Anthropic API key is required")

        self._api_key = api_key
        self._llm_config = llm_config
        self._model_info = self._build_model_info(strip_provider_prefix(llm_config.model))

        self._client = AsyncAnthropic(
            api_key=api_key,
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
            provider="anthropic",
            display_name=model_id,
            max_context_tokens=200000,
            max_output_tokens=self._llm_config.max_tokens,
            cost_per_1k_input=costs[0],
            cost_per_1k_output=costs[1],
            supports_system_prompt=True,
            supports_attachments=True,
        )

    def _build_content(
        self,
        prompt: str,
        attachments: list[Attachment] | None = None,
    ) -> str | list[dict[str, Any]]:
        """
        Build the user message content.

        Attachments become base64 ``document`` or ``image`` blocks placed before
        the text block, as Anthropic recommends for long documents.
        """
        if not attachments:
            return prompt

        blocks: list[dict[str, Any]] = []
        for attachment in attachments:
            block_type = "image" if attachment.is_image else "document"
            blocks.append(
                {
                    "type": block_type,
                    "source": {
                        "type": "base64",
                        "media_type": attachment.mime_type,
                        "data": attachment.to_base64(),
                    },
                }
            )
        blocks.append({"type": "text", "text": prompt})
        return blocks

    async def generate(
        self,
        prompt: str,
        config: GenerationConfig | None = None,
        system_prompt: str | None = None,
        attachments: list[Attachment] | None = None,
    ) -> CompletionResult:
        """
        Generate text using Anthropic API.

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

        model_id = strip_provider_prefix(config.model or self._llm_config.model)

        if config.json_mode:
            system_prompt = (
                f"{system_prompt}\n\n{JSON_ONLY_INSTRUCTION}" if system_prompt else JSON_ONLY_INSTRUCTION
            )

        try:
            request_params: dict[str, Any] = {
                "model": model_id,
                "max_tokens": config.max_tokens,
                "messages": [{"role": "user", "content": self._build_content(prompt, attachments)}],
            }

            if system_prompt:
                request_params["system"] = system_prompt

            if self._llm_config.reasoning_enabled and config.reasoning_budget:
                budget = max(config.reasoning_budget, MIN_THINKING_BUDGET)
                request_params["thinking"] = {"type": "enabled", "budget_tokens": budget}
                # max_tokens must exceed the thinking budget; temperature must stay at default
                request_params["max_tokens"] = max(config.max_tokens, budget + 1)
            else:
                # Anthropic supports 0.0-1.0
                request_params["temperature"] = min(config.temperature, 1.0)
                if config.top_p != 1.0:
                    request_params["top_p"] = config.top_p

            if config.stop_sequences:
                request_params["stop_sequences"] = config.stop_sequences

            response = await self._client.messages.create(**request_params)

            content = ""
            for block in response.content:
                if block.type == "text":
                    content += block.text

            finish_reason = response.stop_reason or "stop"
            if finish_reason == "end_turn":
                finish_reason = "stop"
            elif finish_reason == "max_tokens":
                finish_reason = "length"

            usage_dict: dict[str, int] = {}
            if response.usage:
                usage_dict = {
                    "prompt_tokens": response.usage.input_tokens,
                    "completion_tokens": response.usage.output_tokens,
                    "total_tokens": response.usage.input_tokens + response.usage.output_tokens,
                }

            raw_response: dict[str, Any] = {
                "id": response.id,
                "model": response.model,
                "type": response.type,
                "stop_reason": response.stop_reason,
            }

            model_info = (
                self._model_info
                if model_id == self._model_info.model_id
                else self._build_model_info(model_id)
            )

            return CompletionResult(
                content=content,
                model_info=model_info,
                usage=usage_dict,
                finish_reason=finish_reason,
                raw_response=raw_response,
            )

        except AnthropicRateLimitError as e:
            raise RateLimitError(
                f"Rate limit exceeded: {e}",
                provider="anthropic",
                retry_after=None,
            ) from e
        except AnthropicAuthenticationError as e:
            raise AuthenticationError(
                f"Authentication failed: {e}",
                provider="anthropic",
            ) from e
        except AnthropicNotFoundError as e:
            raise ModelNotFoundError(
                f"Model not found: {e}",
                provider="anthropic",
            ) from e
        except APIStatusError as e:
            raise LLMProviderError(
                f"API error ({e.status_code}): {e.message}",
                provider="anthropic",
            ) from e
        except APIConnectionError as e:
            raise LLMProviderError(
                f"Connection failed: {e}",
                provider="anthropic",
            ) from e
        except Exception as e:
            raise LLMProviderError(
                f"Unexpected error: {e}",
                provider="anthropic",
            ) from e

    def get_model_info(self) -> ModelInfo:
        """Get metadata about the configured model."""
        return self._model_info

    @property
    def provider_name(self) -> str:
        """Get the provider name."""
        return "anthropic"

    async def close(self) -> None:
        """Close the Anthropic client."""
        await self._client.close()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        http_client: httpx.AsyncClient | None = None,
    ) -> "AnthropicAdapter":
        """
        Create adapter from application settings.

        Raises:
            ValueError: If Anthropic API key is not configured
        """
        api_key = settings.get_llm_api_key()
        return cls(
            api_key=api_key,
            llm_config=settings.llm,
            http_client=http_client,
        )
