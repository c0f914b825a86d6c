"""
LangChain LLM Provider Adapter.

Implements the LLMProvider interface using LangChain's ChatOpenAI with OpenRouter.
Provides an alternative integration path for those already using LangChain ecosystem.

API Documentation: https://openrouter.ai/docs
LangChain Documentation: https://python.langchain.com/docs/integrations/chat/openai
"""

from decimal import Decimal
from typing import Any

import httpx
from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI
from openai import APIConnectionError, APIStatusError, RateLimitError as OpenAIRateLimitError

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
from pinesmith.providers.llm.openrouter import (
    DEFAULT_MODEL_COSTS,
    OPENROUTER_BASE_URL,
    build_openai_content,
)


class LangChainAdapter(LLMProvider):
    """
    LangChain-based LLM Provider implementation using OpenRouter.

    Per-call settings (model, temperature, max_tokens, JSON response format)
    are applied with ``ChatOpenAI.bind`` so the configured client is never mutated.

    Attributes:
        _client: LangChain ChatOpenAI client configured for OpenRouter
        _llm_config: LLM configuration from settings
        _model_info: Cached model metadata
    """

    def __init__(
        self,
        api_key: str,
        llm_config: LLMConfig,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize the LangChain adapter.

        Args:
            api_key: OpenRouter API key
            llm_config: LLM configuration containing model and generation params
            http_client: Optional shared async HTTP client

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

        self._client = ChatOpenAI(
            api_key=api_key,
            base_url=OPENROUTER_BASE_URL,
            model=llm_config.model,
            temperature=llm_config.temperature,
            max_tokens=llm_config.max_tokens,
            timeout=llm_config.request_timeout_seconds,
            default_headers=default_headers if default_headers else None,
            http_async_client=http_client,
        )

    def _build_model_info(self, model_id: str) -> ModelInfo:
        """Build ModelInfo for a model identifier."""
        costs = DEFAULT_MODEL_COSTS.get(
            model_id, (Decimal("0"), Decimal("0"))
        )

        return ModelInfo(
            model_id=model_id,
            provider="langchain",
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
    ) -> list[SystemMessage | HumanMessage]:
        """
        Build LangChain messages list for the API request.

        Attachments use the OpenAI content-part format, which ChatOpenAI
        forwards unchanged.
        """
        messages: list[SystemMessage | HumanMessage] = []

        if system_prompt:
            messages.append(SystemMessage(content=system_prompt))

        messages.append(HumanMessage(content=build_openai_content(prompt, attachments)))

        return messages

    def _build_bind_kwargs(self, config: GenerationConfig) -> dict[str, Any]:
        """
        Collect per-call parameters to bind onto the client.

        Args:
            config: Generation configuration

        Returns:
            Keyword arguments for ``ChatOpenAI.bind``
        """
        kwargs: dict[str, Any] = {
            "temperature": config.temperature,
            "max_tokens": config.max_tokens,
        }

        if config.model and config.model != self._llm_config.model:
            kwargs["model"] = config.model

        if config.top_p != 1.0:
            kwargs["top_p"] = config.top_p

        if config.stop_sequences:
            kwargs["stop"] = config.stop_sequences

        if config.seed is not None:
            kwargs["seed"] = config.seed

        if config.json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        extra_body: dict[str, Any] = dict(config.extra)
        if self._llm_config.reasoning_enabled and config.reasoning_budget:
            extra_body["reasoning"] = {
                "enabled": True,
                "max_tokens": config.reasoning_budget,
            }
        if extra_body:
            kwargs["extra_body"] = extra_body

        return kwargs

    @staticmethod
    def _content_to_text(content: Any) -> str:
        """Flatten a LangChain message content (str or list of parts) to text."""
        if not content:
            return ""
        if isinstance(content, str):
            return content
        parts: list[str] = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and part.get("type") == "text":
                parts.append(str(part.get("text", "")))
        return "".join(parts)

    async def generate(
        self,
        prompt: str,
        config: GenerationConfig | None = None,
        system_prompt: str | None = None,
        attachments: list[Attachment] | None = None,
    ) -> CompletionResult:
        """
        Generate text using LangChain ChatOpenAI with OpenRouter.

        Args:
            prompt: The user prompt/message
            config: Generation configuration. Uses settings defaults if None.
            system_prompt: Optional system prompt
            attachments: Optional binary parts

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

        messages = self._build_messages(prompt, system_prompt, attachments)
        model_id = config.model or self._llm_config.model

        try:
            client = self._client.bind(**self._build_bind_kwargs(config))
            response = await client.ainvoke(messages)

            content = self._content_to_text(response.content)

            usage_dict: dict[str, int] = {}
            finish_reason = "stop"
            raw_response: dict[str, Any] = {}
            if hasattr(response, "response_metadata"):
                token_usage = response.response_metadata.get("token_usage", {})
                if token_usage:
                    usage_dict = {
                        "prompt_tokens": token_usage.get("prompt_tokens", 0),
                        "completion_tokens": token_usage.get("completion_tokens", 0),
                        "total_tokens": token_usage.get("total_tokens", 0),
                    }
                finish_reason = response.response_metadata.get("finish_reason") or "stop"
                raw_response = dict(response.response_metadata)
            if getattr(response, "id", None):
                raw_response["id"] = response.id

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
                provider="langchain",
                retry_after=None,
            ) from e
        except APIStatusError as e:
            if e.status_code == 401 or e.status_code == 403:
                raise AuthenticationError(
                    f"Authentication failed: {e.message}",
                    provider="langchain",
                ) from e
            if e.status_code == 404:
                raise ModelNotFoundError(
                    f"Model not found: {e.message}",
                    provider="langchain",
                ) from e
            raise LLMProviderError(
                f"API error ({e.status_code}): {e.message}",
                provider="langchain",
            ) from e
        except APIConnectionError as e:
            raise LLMProviderError(
                f"Connection failed: {e}",
                provider="langchain",
            ) from e
        except Exception as e:
            raise LLMProviderError(
                f"LangChain generation failed: {e}",
                provider="langchain",
            ) from e

    def get_model_info(self) -> ModelInfo:
        """Get metadata about the configured model."""
        return self._model_info

    @property
    def provider_name(self) -> str:
        """Get the provider name."""
        return "langchain"

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        http_client: httpx.AsyncClient | None = None,
    ) -> "LangChainAdapter":
        """
        Create adapter from application settings.

        Raises:
            ValueError: If OpenRouter API key is not configured
        """
        api_key = settings.get_llm_api_key()
        return cls(
            api_key=api_key,
            llm_config=settings.llm,
            http_client=http_client,
        )
