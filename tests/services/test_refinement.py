"""
Tests for RefinementSession.

Covers:
- Seeding and history
- Successful turns
- Extraction failure keeps prior code
- Transport failure keeps prior code and reports the error
- State guards and clearing
"""

from unittest.mock import MagicMock

import pytest

from pinesmith.core.config import PipelineConfig
from pinesmith.models.script import (
    ChatRole,
    GenerationRequest,
    GenerationResult,
    PipelineStage,
)
from pinesmith.providers.llm.base import LLMProviderError
from pinesmith.services.errors import RefinementError, SessionStateError
from pinesmith.services.refinement import (
    REFINEMENT_FAILURE_EXPLANATION,
    REFINEMENT_FAILURE_MARKER,
    REFINEMENT_TRANSPORT_NOTICE,
    RefinementSession,
)

INITIAL_CODE = '//@version=6\nindicator("RSI", overlay=false)\nplot(ta.rsi(close, 14))'


@pytest.fixture
def session(
    mock_llm_provider: MagicMock,
    indicator_request: GenerationRequest,
    pipeline_config: PipelineConfig,
) -> RefinementSession:
    session = RefinementSession(
        llm_provider=mock_llm_provider,
        request=indicator_request,
        pipeline_config=pipeline_config,
    )
    session.seed(GenerationResult(code=INITIAL_CODE, explanation="Initial analysis"))
    return session


class TestSeed:
    """Tests for seeding a session."""

    def test_seed_sets_code_and_history(self, session: RefinementSession) -> None:
        """Test that the initial analysis is the first model message."""
        assert session.current_code == INITIAL_CODE
        assert session.stage == PipelineStage.SUCCESS
        assert len(session.history) == 1
        assert session.history[0].role == ChatRole.MODEL
        assert session.history[0].content == "Initial analysis"

    def test_seed_twice_raises(self, session: RefinementSession) -> None:
        """Test that a seeded session cannot be seeded again."""
        with pytest.raises(SessionStateError):
            session.seed(GenerationResult(code="x"))

    def test_session_ids_unique(
        self, mock_llm_provider: MagicMock, indicator_request: GenerationRequest
    ) -> None:
        first = RefinementSession(mock_llm_provider, indicator_request)
        second = RefinementSession(mock_llm_provider, indicator_request)
        assert first.session_id != second.session_id


class TestSubmitTurn:
    """Tests for successful refinement turns."""

    @pytest.mark.asyncio
    async def test_successful_turn(
        self, session: RefinementSession, mock_llm_provider: MagicMock, make_completion
    ) -> None:
        """Test that new code replaces the old and history grows by two."""
        mock_llm_provider.generate.return_value = make_completion(
            "[ANALYSIS]\nChanged color.\n[CODE]\n```pinescript\n//@version=5\n"
            'indicator("RSI", overlay=false)\nplot(ta.rsi(close, 14), color=color.red)\n```'
        )

        result = await session.submit_turn("Make it red")

        assert result.code == (
            '//@version=6\nindicator("RSI", overlay=false)\n'
            "plot(ta.rsi(close, 14), color=color.red)"
        )
        assert result.explanation == "Changed color."
        assert not result.extraction_failed
        assert session.current_code == result.code
        assert session.result is result
        assert [m.role for m in session.history] == [
            ChatRole.MODEL,
            ChatRole.USER,
            ChatRole.MODEL,
        ]
        assert session.history[1].content == "Make it red"
        assert session.stage == PipelineStage.SUCCESS

    @pytest.mark.asyncio
    async def test_turn_sends_current_code(
        self, session: RefinementSession, mock_llm_provider: MagicMock, make_completion
    ) -> None:
        """Test the prompt carries the current code and standard-tier config."""
        mock_llm_provider.generate.return_value = make_completion("```pine\nplot(close)\n```")

        await session.submit_turn("Simplify")

        call = mock_llm_provider.generate.call_args
        assert INITIAL_CODE in call.args[0]
        assert "Refinement Specialist" in call.kwargs["system_prompt"]
        config = call.kwargs["config"]
        assert config.temperature == 0.1
        assert config.model == "google/gemini-2.5-flash"
        assert config.reasoning_budget is None

    @pytest.mark.asyncio
    async def test_expert_turn_uses_reasoning_budget(
        self,
        mock_llm_provider: MagicMock,
        strategy_request: GenerationRequest,
        make_completion,
    ) -> None:
        """Test expert requests get the refinement reasoning budget."""
        session = RefinementSession(mock_llm_provider, strategy_request)
        session.seed(GenerationResult(code=INITIAL_CODE))
        mock_llm_provider.generate.return_value = make_completion("```pine\nplot(close)\n```")

        await session.submit_turn("Add a trailing stop")

        config = mock_llm_provider.generate.call_args.kwargs["config"]
        assert config.reasoning_budget == 1024
        system_prompt = mock_llm_provider.generate.call_args.kwargs["system_prompt"]
        assert "Use SMA 50 and SMA 200 only." in system_prompt

    @pytest.mark.asyncio
    async def test_stage_callback(
        self,
        mock_llm_provider: MagicMock,
        indicator_request: GenerationRequest,
        make_completion,
    ) -> None:
        """Test that a turn announces Refining then Success."""
        seen: list[PipelineStage] = []
        session = RefinementSession(mock_llm_provider, indicator_request, on_stage=seen.append)
        session.seed(GenerationResult(code=INITIAL_CODE))
        mock_llm_provider.generate.return_value = make_completion("```pine\nplot(close)\n```")

        await session.submit_turn("x")

        assert seen == [PipelineStage.REFINING, PipelineStage.SUCCESS]


class TestFailures:
    """Tests for the non-erasure guarantees."""

    @pytest.mark.asyncio
    async def test_extraction_failure_keeps_prior_code(
        self, session: RefinementSession, mock_llm_provider: MagicMock, make_completion
    ) -> None:
        """Test that a response without code appends a marker to the old code."""
        mock_llm_provider.generate.return_value = make_completion("Sure, I will do that!")

        result = await session.submit_turn("Add alerts")

        assert result.extraction_failed
        assert result.code.startswith(INITIAL_CODE)
        assert result.code.endswith(REFINEMENT_FAILURE_MARKER)
        assert result.explanation == REFINEMENT_FAILURE_EXPLANATION
        assert session.current_code == result.code
        assert session.history[-1].content == REFINEMENT_FAILURE_EXPLANATION
        assert session.stage == PipelineStage.SUCCESS

    @pytest.mark.asyncio
    async def test_transport_failure_keeps_code(
        self, session: RefinementSession, mock_llm_provider: MagicMock
    ) -> None:
        """Test that a failed call raises, keeps code and notes the error."""
        mock_llm_provider.generate.side_effect = LLMProviderError("boom", "test_provider")

        with pytest.raises(RefinementError) as exc_info:
            await session.submit_turn("Add alerts")

        assert isinstance(exc_info.value.__cause__, LLMProviderError)
        assert session.current_code == INITIAL_CODE
        assert session.history[-1].role == ChatRole.MODEL
        assert session.history[-1].content == REFINEMENT_TRANSPORT_NOTICE
        assert session.history[-2].content == "Add alerts"
        assert session.stage == PipelineStage.SUCCESS

    @pytest.mark.asyncio
    async def test_retry_after_transport_failure(
        self, session: RefinementSession, mock_llm_provider: MagicMock, make_completion
    ) -> None:
        """Test that the session stays usable after a failed call."""
        mock_llm_provider.generate.side_effect = [
            LLMProviderError("boom"),
            make_completion("```pine\nplot(open)\n```"),
        ]

        with pytest.raises(RefinementError):
            await session.submit_turn("first")
        result = await session.submit_turn("second")

        assert result.code == "//@version=6\nplot(open)"


class TestStateGuards:
    """Tests for invalid operations."""

    @pytest.mark.asyncio
    async def test_turn_without_code_raises(
        self, mock_llm_provider: MagicMock, indicator_request: GenerationRequest
    ) -> None:
        """Test that an unseeded session rejects turns."""
        session = RefinementSession(mock_llm_provider, indicator_request)

        with pytest.raises(SessionStateError):
            await session.submit_turn("anything")
        mock_llm_provider.generate.assert_not_called()

    @pytest.mark.asyncio
    async def test_busy_session_rejects_turn(self, session: RefinementSession) -> None:
        """Test that overlapping turns are rejected."""
        session.stages.advance(PipelineStage.REFINING)

        with pytest.raises(SessionStateError):
            await session.submit_turn("anything")

    @pytest.mark.asyncio
    async def test_generation_in_flight_rejects_turn(
        self, session: RefinementSession, mock_llm_provider: MagicMock
    ) -> None:
        session.stages.advance(PipelineStage.NORMALIZING)

        with pytest.raises(SessionStateError, match="in progress"):
            await session.submit_turn("anything")
        mock_llm_provider.generate.assert_not_called()

    def test_clear_discards_everything(self, session: RefinementSession) -> None:
        """Test that clear() empties code and history and goes idle."""
        session.clear()

        assert session.current_code is None
        assert session.result is None
        assert session.history == []
        assert session.stage == PipelineStage.IDLE

    def test_clear_while_busy_raises(self, session: RefinementSession) -> None:
        session.stages.advance(PipelineStage.REFINING)
        with pytest.raises(SessionStateError):
            session.clear()
