"""
Pytest configuration and fixtures for the Pine Script generation service tests.
"""

from decimal import Decimal
from pathlib import Path
from typing import Generator
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from pinesmith.core.config import PipelineConfig, Settings
from pinesmith.core.container import Container, clear_container_cache
from pinesmith.main import app
from pinesmith.models.script import ArtifactKind, GenerationRequest
from pinesmith.providers.llm.base import CompletionResult, LLMProvider, ModelInfo


@pytest.fixture(autouse=True)
def clear_caches() -> Generator[None, None, None]:
    """
    Clear all caches before and after each test.

    This ensures test isolation by resetting singleton state.
    """
    clear_container_cache()
    yield
    clear_container_cache()


@pytest.fixture
def temp_config_file(tmp_path: Path) -> Path:
    """
    Create a temporary config.yaml file for testing.

    Args:
        tmp_path: Pytest tmp_path fixture.

    Returns:
        Path to the temporary config file.
    """
    config_content = """
llm:
  provider: "openrouter"
  model: "google/gemini-2.5-flash"
  temperature: 0.2
  max_tokens: 8000

pipeline:
  default_version: "v5"
  expert_model_markers: ["PRO", "opus"]
  max_sessions: 8
"""
    config_path = tmp_path / "config.yaml"
    config_path.write_text(config_content)
    return config_path


@pytest.fixture
def test_settings(temp_config_file: Path) -> Settings:
    """Create test settings from temporary config file."""
    return Settings.from_yaml(temp_config_file)


@pytest.fixture
def test_container(test_settings: Settings) -> Container:
    """Create a test container with test settings."""
    return Container(settings=test_settings)


@pytest.fixture
def client() -> Generator[TestClient, None, None]:
    """
    Create a test client for the FastAPI application.

    Yields:
        TestClient instance.
    """
    with TestClient(app) as test_client:
        yield test_client


# =============================================================================
# Pipeline fixtures
# =============================================================================


@pytest.fixture
def model_info() -> ModelInfo:
    return ModelInfo(
        model_id="test/model-pro",
        provider="test_provider",
        display_name="Test Model",
        max_context_tokens=128000,
        max_output_tokens=8000,
        cost_per_1k_input=Decimal("0.01"),
        cost_per_1k_output=Decimal("0.03"),
    )


@pytest.fixture
def mock_llm_provider(model_info: ModelInfo) -> MagicMock:
    """Create a mock LLM provider with an AsyncMock generate()."""
    mock = MagicMock(spec=LLMProvider)
    mock.provider_name = "test_provider"
    mock.get_model_info.return_value = model_info
    mock.generate = AsyncMock()
    return mock


@pytest.fixture
def make_completion(model_info: ModelInfo):
    """Factory building a CompletionResult with the given text."""

    def _make(content: str) -> CompletionResult:
        return CompletionResult(content=content, model_info=model_info)

    return _make


@pytest.fixture
def pipeline_config() -> PipelineConfig:
    return PipelineConfig()


@pytest.fixture
def indicator_request() -> GenerationRequest:
    return GenerationRequest(
        description="Plot RSI(14) with 30/70 bands",
        artifact_kind=ArtifactKind.INDICATOR,
        overlay=False,
        target_version="v6",
        model="google/gemini-2.5-flash",
    )


@pytest.fixture
def strategy_request() -> GenerationRequest:
    return GenerationRequest(
        description="Golden cross strategy with ATR stops",
        artifact_kind=ArtifactKind.STRATEGY,
        overlay=True,
        target_version="v6",
        model="google/gemini-2.5-pro",
        supplemental_context="Use SMA 50 and SMA 200 only.",
    )


@pytest.fixture
def sample_response() -> str:
    """Well-formed model response with analysis and a fenced code block."""
    return (
        "[ANALYSIS]\n"
        "RSI oscillator with overbought and oversold bands.\n\n"
        "[CODE]\n"
        "```pinescript\n"
        "//@version=6\n"
        'indicator("RSI Bands", shorttitle="RSI_B", overlay=false)\n'
        "len = input.int(14, \"Length\")\n"
        "plot(ta.rsi(close, len))\n"
        "```\n"
    )
