"""
Pipeline exceptions.

Transport failures are wrapped into stage-agnostic pipeline errors and never
retried. Extraction and structured-parse failures are not exceptions: they
degrade to sentinel values and defaults.
"""


class PipelineError(Exception):
    """Base exception for generation pipeline errors."""

    def __init__(self, message: str, details: dict | None = None):
        self.details = details or {}
        super().__init__(message)


class GenerationError(PipelineError):
    """Raised when the completion call of a generation run fails."""

    pass


class RefinementError(PipelineError):
    """Raised when the completion call of a refinement turn fails."""

    pass


class DocumentAnalysisError(PipelineError):
    """Raised when a document cannot be analyzed."""

    pass


class StageTransitionError(PipelineError):
    """Raised on a stage transition outside the allowed order."""

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(
            f"Invalid stage transition: {current} -> {target}",
            {"current": current, "target": target},
        )


class SessionStateError(PipelineError):
    """Raised when a session operation is not valid in its current state."""

    pass
