"""
Tests for StageOrchestrator.
"""

import pytest

from pinesmith.models.script import PipelineStage
from pinesmith.services.errors import StageTransitionError
from pinesmith.services.stages import STAGE_LABELS, StageOrchestrator

GENERATION_ORDER = [
    PipelineStage.NORMALIZING,
    PipelineStage.OPTIMIZING,
    PipelineStage.GENERATING,
    PipelineStage.VALIDATING,
    PipelineStage.SUCCESS,
]


class TestGenerationOrder:
    """Tests for the generation stage sequence."""

    def test_full_run_notifies_in_order(self) -> None:
        """Test that every stage reaches the callback in order."""
        seen: list[PipelineStage] = []
        stages = StageOrchestrator(on_stage=seen.append)

        for stage in GENERATION_ORDER:
            stages.advance(stage)

        assert seen == GENERATION_ORDER
        assert stages.history == GENERATION_ORDER
        assert stages.current == PipelineStage.SUCCESS
        assert not stages.is_busy

    def test_skipping_a_stage_raises(self) -> None:
        """Test that jumping ahead is rejected."""
        stages = StageOrchestrator()
        stages.advance(PipelineStage.NORMALIZING)

        with pytest.raises(StageTransitionError) as exc_info:
            stages.advance(PipelineStage.GENERATING)

        assert exc_info.value.current == "normalizing"
        assert exc_info.value.target == "generating"
        assert stages.current == PipelineStage.NORMALIZING

    def test_backwards_transition_raises(self) -> None:
        """Test that moving backwards within a run is rejected."""
        stages = StageOrchestrator()
        stages.advance(PipelineStage.NORMALIZING)
        stages.advance(PipelineStage.OPTIMIZING)

        with pytest.raises(StageTransitionError):
            stages.advance(PipelineStage.NORMALIZING)

    def test_idle_cannot_refine(self) -> None:
        """Test that refinement needs a completed run first."""
        with pytest.raises(StageTransitionError):
            StageOrchestrator().advance(PipelineStage.REFINING)

    def test_new_run_resets_history(self) -> None:
        """Test that starting again clears the previous run's history."""
        stages = StageOrchestrator()
        for stage in GENERATION_ORDER:
            stages.advance(stage)
        stages.advance(PipelineStage.NORMALIZING)

        assert stages.history == [PipelineStage.NORMALIZING]


class TestFailureAndRefinement:
    """Tests for error and refinement transitions."""

    @pytest.mark.parametrize("steps", [1, 2, 3, 4])
    def test_fail_from_any_in_flight_stage(self, steps: int) -> None:
        """Test that any in-flight stage can move to Error."""
        stages = StageOrchestrator()
        for stage in GENERATION_ORDER[:steps]:
            stages.advance(stage)

        stages.fail()

        assert stages.current == PipelineStage.ERROR
        assert not stages.is_busy

    def test_fail_at_rest_is_noop(self) -> None:
        """Test that fail() leaves a rest state alone."""
        stages = StageOrchestrator()
        stages.fail()
        assert stages.current == PipelineStage.IDLE

    def test_refine_after_success_and_error(self) -> None:
        """Test Success -> Refining -> Success and Error -> Refining."""
        stages = StageOrchestrator()
        for stage in GENERATION_ORDER:
            stages.advance(stage)

        stages.advance(PipelineStage.REFINING)
        assert stages.is_busy
        stages.advance(PipelineStage.SUCCESS)

        stages.advance(PipelineStage.REFINING)
        stages.advance(PipelineStage.ERROR)
        stages.advance(PipelineStage.REFINING)
        assert stages.history == [PipelineStage.REFINING]

    def test_reset_to_rest_stage(self) -> None:
        """Test reset() jumps to a rest stage and rejects in-flight targets."""
        stages = StageOrchestrator()
        stages.reset(PipelineStage.SUCCESS)
        assert stages.current == PipelineStage.SUCCESS

        with pytest.raises(StageTransitionError):
            stages.reset(PipelineStage.GENERATING)

        stages.reset()
        assert stages.current == PipelineStage.IDLE
        assert stages.history == []


class TestCallback:
    """Tests for the observer callback."""

    def test_callback_exception_is_swallowed(self) -> None:
        """Test that a failing observer does not break the pipeline."""

        def broken(stage: PipelineStage) -> None:
            raise RuntimeError("observer failed")

        stages = StageOrchestrator(on_stage=broken)
        for stage in GENERATION_ORDER:
            stages.advance(stage)

        assert stages.current == PipelineStage.SUCCESS

    def test_set_callback(self) -> None:
        """Test replacing the callback mid-way."""
        seen: list[PipelineStage] = []
        stages = StageOrchestrator()
        stages.advance(PipelineStage.NORMALIZING)
        stages.set_callback(seen.append)
        stages.advance(PipelineStage.OPTIMIZING)

        assert seen == [PipelineStage.OPTIMIZING]

    def test_labels_for_in_flight_stages(self) -> None:
        """Test that every in-flight stage has a progress label."""
        for stage in PipelineStage:
            assert (stage in STAGE_LABELS) == (not stage.is_rest)
