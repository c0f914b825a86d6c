"""
Tests for LLM provider factory.

Tests:
- Factory creates correct adapter based on settings
- Factory wraps creation failures
- Factory registration/unregistration
"""

from unittest.mock import MagicMock

import httpx
import pytest

from pinesmith.core.config import LLMConfig, LLMProvider as LLMProviderEnum, Settings
from pinesmith.providers.llm.anthropic_adapter import AnthropicAdapter
from pinesmith.providers.llm.base import LLMProvider, LLMProviderError
from pinesmith.providers.llm.factory import LLMProviderFactory
from pinesmith.providers.llm.langchain_adapter import LangChainAdapter
from pinesmith.providers.llm.openrouter import OpenRouterAdapter


def _settings(provider: LLMProviderEnum, model: str, api_key: str = "test-key") -> Settings:
    settings = MagicMock(spec=Settings)
    settings.llm = LLMConfig(provider=provider, model=model, temperature=0.2, max_tokens=8000)
    settings.get_llm_api_key.return_value = api_key
    return settings


class TestLLMProviderFactory:
    """Tests for LLMProviderFactory."""

    @pytest.mark.parametrize(
        "provider,model,expected",
        [
            (LLMProviderEnum.OPENROUTER, "google/gemini-2.5-pro", OpenRouterAdapter),
            (LLMProviderEnum.LANGCHAIN, "google/gemini-2.5-pro", LangChainAdapter),
            (LLMProviderEnum.ANTHROPIC, "claude-sonnet-4-20250514", AnthropicAdapter),
        ],
    )
    def test_create_adapter(
        self, provider: LLMProviderEnum, model: str, expected: type
    ) -> None:
        adapter = LLMProviderFactory.create(_settings(provider, model))

        assert isinstance(adapter, expected)
        assert adapter.provider_name == provider.value

    def test_create_with_shared_http_client(self) -> None:
        """Test that the shared HTTP client is accepted by the adapter."""
        http_client = httpx.AsyncClient()
        adapter = LLMProviderFactory.create(
            _settings(LLMProviderEnum.OPENROUTER, "google/gemini-2.5-pro"),
            http_client,
        )

        assert isinstance(adapter, OpenRouterAdapter)

    def test_create_missing_api_key_raises(self) -> None:
        """Test that adapter construction errors are wrapped."""
        settings = _settings(LLMProviderEnum.OPENROUTER, "google/gemini-2.5-pro")
        settings.get_llm_api_key.side_effect = ValueError("OPENROUTER_API_KEY is not set")

        with pytest.raises(LLMProviderError, match="Failed to create LLM provider 'openrouter'"):
            LLMProviderFactory.create(settings)

    def test_get_supported_providers(self) -> None:
        supported = LLMProviderFactory.get_supported_providers()
        assert set(supported) == {"openrouter", "langchain", "anthropic"}


class TestRegistry:
    """Tests for registering custom providers."""

    def test_register_and_unregister(self) -> None:
        custom = MagicMock(spec=LLMProvider)
        original = LLMProviderFactory.unregister(LLMProviderEnum.LANGCHAIN)
        assert original is True

        try:
            assert "langchain" not in LLMProviderFactory.get_supported_providers()
            with pytest.raises(ValueError, match="Unsupported LLM provider"):
                LLMProviderFactory.create(
                    _settings(LLMProviderEnum.LANGCHAIN, "google/gemini-2.5-pro")
                )

            LLMProviderFactory.register(LLMProviderEnum.LANGCHAIN, lambda s, c: custom)
            created = LLMProviderFactory.create(
                _settings(LLMProviderEnum.LANGCHAIN, "google/gemini-2.5-pro")
            )
            assert created is custom
        finally:
            LLMProviderFactory.register(
                LLMProviderEnum.LANGCHAIN, LangChainAdapter.from_settings
            )

    def test_unregister_unknown_returns_false(self) -> None:
        LLMProviderFactory.unregister(LLMProviderEnum.ANTHROPIC)
        try:
            assert LLMProviderFactory.unregister(LLMProviderEnum.ANTHROPIC) is False
        finally:
            LLMProviderFactory.register(
                LLMProviderEnum.ANTHROPIC, AnthropicAdapter.from_settings
            )
