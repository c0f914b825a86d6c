"""
Pipeline stage tracking.

The orchestrator owns the stage of one pipeline (a generation run or a
refinement session), rejects out-of-order transitions and notifies an
observer on every change.
"""

import logging
from typing import Callable, Optional

from pinesmith.models.script import PipelineStage
from pinesmith.services.errors import StageTransitionError

logger = logging.getLogger(__name__)

StageCallback = Callable[[PipelineStage], None]

# Progress text shown to users while a stage is active.
STAGE_LABELS: dict[PipelineStage, str] = {
    PipelineStage.NORMALIZING: "Normalizing Request...",
    PipelineStage.OPTIMIZING: "Optimizing Logic & Defaults...",
    PipelineStage.GENERATING: "Writing Pine Script...",
    PipelineStage.VALIDATING: "Validating & Post-processing...",
    PipelineStage.REFINING: "Refining Code...",
}

_IN_FLIGHT = (
    PipelineStage.NORMALIZING,
    PipelineStage.OPTIMIZING,
    PipelineStage.GENERATING,
    PipelineStage.VALIDATING,
    PipelineStage.REFINING,
)

# Allowed targets per current stage.
ALLOWED_TRANSITIONS: dict[PipelineStage, frozenset[PipelineStage]] = {
    PipelineStage.IDLE: frozenset({PipelineStage.NORMALIZING}),
    PipelineStage.NORMALIZING: frozenset({PipelineStage.OPTIMIZING, PipelineStage.ERROR}),
    PipelineStage.OPTIMIZING: frozenset({PipelineStage.GENERATING, PipelineStage.ERROR}),
    PipelineStage.GENERATING: frozenset({PipelineStage.VALIDATING, PipelineStage.ERROR}),
    PipelineStage.VALIDATING: frozenset({PipelineStage.SUCCESS, PipelineStage.ERROR}),
    PipelineStage.REFINING: frozenset({PipelineStage.SUCCESS, PipelineStage.ERROR}),
    PipelineStage.SUCCESS: frozenset({PipelineStage.NORMALIZING, PipelineStage.REFINING}),
    PipelineStage.ERROR: frozenset({PipelineStage.NORMALIZING, PipelineStage.REFINING}),
}


class StageOrchestrator:
    """
    Tracks and announces pipeline stages.

    Generation runs go Normalizing -> Optimizing -> Generating -> Validating
    -> Success; refinement turns go Refining -> Success. Any in-flight stage
    may move to Error. Starting a new run (Normalizing or Refining) clears
    the recorded history.

    The callback is an observer only: an exception raised by it is logged
    and does not affect the pipeline.

    Example:
        stages = StageOrchestrator(on_stage=lambda s: print(s.value))
        stages.advance(PipelineStage.NORMALIZING)
    """

    def __init__(self, on_stage: Optional[StageCallback] = None):
        self._on_stage = on_stage
        self._current = PipelineStage.IDLE
        self._history: list[PipelineStage] = []

    @property
    def current(self) -> PipelineStage:
        return self._current

    @property
    def history(self) -> list[PipelineStage]:
        """Stages observed during the current (or last) run."""
        return list(self._history)

    @property
    def is_busy(self) -> bool:
        return not self._current.is_rest

    def set_callback(self, on_stage: Optional[StageCallback]) -> None:
        self._on_stage = on_stage

    def can_advance(self, target: PipelineStage) -> bool:
        return target in ALLOWED_TRANSITIONS[self._current]

    def advance(self, target: PipelineStage) -> None:
        """
        Move to ``target`` and notify the observer.

        Raises:
            StageTransitionError: If the transition is not allowed
        """
        if not self.can_advance(target):
            raise StageTransitionError(self._current.value, target.value)

        if target in (PipelineStage.NORMALIZING, PipelineStage.REFINING):
            self._history = []

        logger.debug(f"Stage transition: {self._current.value} -> {target.value}")
        self._current = target
        self._history.append(target)
        self._notify(target)

    def fail(self) -> None:
        """Move an in-flight run to Error. No-op when already at rest."""
        if self._current in _IN_FLIGHT:
            self.advance(PipelineStage.ERROR)

    def reset(self, stage: PipelineStage = PipelineStage.IDLE) -> None:
        """
        Jump to a rest stage without notifying.

        Used when a session is cleared (Idle) or seeded with a result produced
        elsewhere (Success).
        """
        if not stage.is_rest:
            raise StageTransitionError(self._current.value, stage.value)
        self._current = stage
        self._history = []

    def _notify(self, stage: PipelineStage) -> None:
        if self._on_stage is None:
            return
        try:
            self._on_stage(stage)
        except Exception as e:
            logger.warning(f"Stage callback raised for '{stage.value}': {e}")
