"""
Tests for the native Anthropic (Claude) LLM adapter.

Tests:
- Model id handling
- Document blocks and JSON-only instruction
- Extended thinking parameters
- Error mapping
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from anthropic import APIConnectionError

from pinesmith.core.config import LLMConfig, LLMProvider as LLMProviderEnum, PipelineConfig
from pinesmith.providers.llm.anthropic_adapter import (
    JSON_ONLY_INSTRUCTION,
    MIN_THINKING_BUDGET,
    AnthropicAdapter,
    strip_provider_prefix,
)
from pinesmith.providers.llm.base import Attachment, GenerationConfig, LLMProviderError
from pinesmith.services.script_generator import PineScriptGenerator


@pytest.fixture
def llm_config() -> LLMConfig:
    """Create a test LLM config with a provider prefix."""
    return LLMConfig(
        provider=LLMProviderEnum.ANTHROPIC,
        model="anthropic/claude-sonnet-4-20250514",
        temperature=0.2,
        max_tokens=8000,
    )


@pytest.fixture
def adapter(llm_config: LLMConfig) -> AnthropicAdapter:
    return AnthropicAdapter(api_key="sk-ant-test-key", llm_config=llm_config)


def _message_response(text: str = "Generated text", stop_reason: str = "end_turn") -> MagicMock:
    thinking = MagicMock(type="thinking")
    text_block = MagicMock(type="text", text=text)
    response = MagicMock()
    response.content = [thinking, text_block]
    response.stop_reason = stop_reason
    response.usage = MagicMock(input_tokens=12, output_tokens=8)
    response.id = "msg_123"
    response.model = "claude-sonnet-4-20250514"
    response.type = "message"
    return response


class TestInit:
    """Tests for initialization and model info."""

    def test_init_empty_api_key_raises(self, llm_config: LLMConfig) -> None:
        with pytest.raises(ValueError, match="Anthropic API key is required"):
            AnthropicAdapter(api_key="", llm_config=llm_config)

    def test_prefix_stripped(self, adapter: AnthropicAdapter) -> None:
        assert adapter.get_model_info().model_id == "claude-sonnet-4-20250514"
        assert adapter.provider_name == "anthropic"

    @pytest.mark.parametrize(
        "model_id,expected",
        [("anthropic/claude-3-5-haiku-latest", "claude-3-5-haiku-latest"), ("claude-x", "claude-x")],
    )
    def test_strip_provider_prefix(self, model_id: str, expected: str) -> None:
        assert strip_provider_prefix(model_id) == expected


class TestContent:
    """Tests for content block building."""

    def test_plain_prompt(self, adapter: AnthropicAdapter) -> None:
        assert adapter._build_content("Hello") == "Hello"

    def test_document_block_before_text(self, adapter: AnthropicAdapter) -> None:
        blocks = adapter._build_content(
            "Analyze", [Attachment(data=b"%PDF", mime_type="application/pdf")]
        )

        assert blocks[0] == {
            "type": "document",
            "source": {"type": "base64", "media_type": "application/pdf", "data": "JVBERg=="},
        }
        assert blocks[-1] == {"type": "text", "text": "Analyze"}


class TestGenerate:
    """Tests for generate method."""

    @pytest.mark.asyncio
    async def test_generate_success(self, adapter: AnthropicAdapter) -> None:
        """Test text blocks are joined and stop reasons normalized."""
        with patch.object(
            adapter._client.messages,
            "create",
            new_callable=AsyncMock,
            return_value=_message_response(stop_reason="max_tokens"),
        ) as mock_create:
            result = await adapter.generate("Test", system_prompt="System")

        assert result.content == "Generated text"
        assert result.finish_reason == "length"
        assert result.usage["total_tokens"] == 20
        call_kwargs = mock_create.call_args.kwargs
        assert call_kwargs["system"] == "System"
        assert call_kwargs["temperature"] == 0.2
        assert "thinking" not in call_kwargs

    @pytest.mark.asyncio
    async def test_thinking_budget(self, adapter: AnthropicAdapter) -> None:
        """Test reasoning budgets map to extended thinking without temperature."""
        with patch.object(
            adapter._client.messages,
            "create",
            new_callable=AsyncMock,
            return_value=_message_response(),
        ) as mock_create:
            await adapter.generate(
                "Test", config=GenerationConfig(max_tokens=500, reasoning_budget=512)
            )

        call_kwargs = mock_create.call_args.kwargs
        assert call_kwargs["thinking"] == {
            "type": "enabled",
            "budget_tokens": MIN_THINKING_BUDGET,
        }
        assert call_kwargs["max_tokens"] > MIN_THINKING_BUDGET
        assert "temperature" not in call_kwargs

    @pytest.mark.asyncio
    async def test_json_mode_instruction(self, adapter: AnthropicAdapter) -> None:
        with patch.object(
            adapter._client.messages,
            "create",
            new_callable=AsyncMock,
            return_value=_message_response("{}"),
        ) as mock_create:
            await adapter.generate(
                "Analyze",
                config=GenerationConfig(json_mode=True, model="anthropic/claude-3-5-haiku-latest"),
                system_prompt="Classify",
            )

        call_kwargs = mock_create.call_args.kwargs
        assert call_kwargs["system"] == f"Classify\n\n{JSON_ONLY_INSTRUCTION}"
        assert call_kwargs["model"] == "claude-3-5-haiku-latest"

    @pytest.mark.asyncio
    async def test_document_analysis_uses_configured_model(
        self, adapter: AnthropicAdapter
    ) -> None:
        """Test that default pipeline settings route analysis to llm.model."""
        generator = PineScriptGenerator(llm_provider=adapter, pipeline_config=PipelineConfig())

        with patch.object(
            adapter._client.messages,
            "create",
            new_callable=AsyncMock,
            return_value=_message_response('{"scriptType": "indicator"}'),
        ) as mock_create:
            await generator.analyze_document(b"%PDF-1.4 plan", filename="plan.pdf")

        assert mock_create.call_args.kwargs["model"] == "claude-sonnet-4-20250514"

    @pytest.mark.asyncio
    async def test_connection_error(self, adapter: AnthropicAdapter) -> None:
        with patch.object(
            adapter._client.messages,
            "create",
            new_callable=AsyncMock,
            side_effect=APIConnectionError(request=MagicMock()),
        ):
            with pytest.raises(LLMProviderError, match="Connection failed"):
                await adapter.generate("Test")
