"""
Pine Script domain models and request validation.

Defines Pydantic models for generation requests, results, the refinement chat
and the pipeline stage enum.
"""

import re
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# =============================================================================
# Enums
# =============================================================================


class ArtifactKind(str, Enum):
    """
    Kind of script to generate.

    The value doubles as the Pine Script declaration keyword.
    """

    INDICATOR = "indicator"  # passive visual overlay / signal plot
    STRATEGY = "strategy"  # backtestable, places orders


class CapabilityTier(str, Enum):
    """
    Instruction tier for a request.

    EXPERT adds the institutional trading guidelines and a reasoning budget.
    """

    STANDARD = "standard"
    EXPERT = "expert"


class ChatRole(str, Enum):
    """Author of a refinement chat message."""

    USER = "user"
    MODEL = "model"


class PipelineStage(str, Enum):
    """
    Progress stages of a pipeline run, in order.

    IDLE, SUCCESS and ERROR are rest states; every other stage means a run is
    in flight.
    """

    IDLE = "idle"
    NORMALIZING = "normalizing"
    OPTIMIZING = "optimizing"
    GENERATING = "generating"
    VALIDATING = "validating"
    REFINING = "refining"
    SUCCESS = "success"
    ERROR = "error"

    @property
    def is_rest(self) -> bool:
        return self in (PipelineStage.IDLE, PipelineStage.SUCCESS, PipelineStage.ERROR)


# =============================================================================
# Request / Result
# =============================================================================


def version_number(version: str) -> str:
    """
    Digits of a version identifier.

    >>> version_number("v6")
    '6'
    """
    return re.sub(r"[^0-9]", "", version)


class GenerationRequest(BaseModel):
    """
    A single script generation request.

    Attributes:
        description: Natural-language description, passed to the model verbatim.
        artifact_kind: indicator or strategy.
        overlay: Draw on the price pane (True) or in a separate pane.
        target_version: Pine Script version identifier (e.g. "v6").
        model: Model selector; the provider's configured model when omitted.
        capability_tier: Explicit tier. When omitted it is resolved from the model
            selector using the configured expert markers.
        supplemental_context: User knowledge base (e.g. text from a PDF). Takes
            precedence over the expert guidelines on conflict.
    """

    model_config = ConfigDict(frozen=True)

    description: str = Field(
        ...,
        description="Natural-language description of the indicator or strategy",
    )
    artifact_kind: ArtifactKind = Field(
        default=ArtifactKind.INDICATOR,
        description="Script declaration to generate",
    )
    overlay: bool = Field(
        default=True,
        description="Overlay the script on the price chart",
    )
    target_version: str = Field(
        default="v6",
        description="Pine Script version identifier, e.g. 'v6'",
    )
    model: Optional[str] = Field(
        default=None,
        description="Model selector (uses provider default if not specified)",
    )
    capability_tier: Optional[CapabilityTier] = Field(
        default=None,
        description="Explicit instruction tier (derived from the model selector if omitted)",
    )
    supplemental_context: Optional[str] = Field(
        default=None,
        description="Additional rules or document text the script must follow",
    )

    @field_validator("target_version")
    @classmethod
    def validate_target_version(cls, v: str) -> str:
        """Require a numeric portion so a version tag can be built."""
        v = v.strip()
        if not version_number(v):
            raise ValueError(f"target_version must contain a version number, got '{v}'")
        return v

    @field_validator("supplemental_context", "model", mode="after")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        """Treat whitespace-only optional strings as absent."""
        if v is not None and not v.strip():
            return None
        return v

    @property
    def version_number(self) -> str:
        return version_number(self.target_version)

    @property
    def version_tag(self) -> str:
        """The version declaration line, e.g. '//@version=6'."""
        return f"//@version={self.version_number}"


class GenerationResult(BaseModel):
    """
    Output of one generation run or refinement turn.

    Attributes:
        code: Normalized Pine Script. Never empty.
        explanation: Model's analysis text (or a failure notice).
        extraction_failed: No code could be located in the model response; code
            holds a sentinel (generation) or the prior code plus a failure
            marker (refinement).
    """

    model_config = ConfigDict(frozen=True)

    code: str = Field(..., min_length=1, description="Normalized Pine Script source")
    explanation: str = Field(default="", description="Analysis of the generated script")
    extraction_failed: bool = Field(
        default=False,
        description="True when the response contained no recognizable code",
    )


class ChatMessage(BaseModel):
    """One message in the refinement conversation."""

    model_config = ConfigDict(frozen=True)

    role: ChatRole
    content: str


class DocumentAnalysisResult(BaseModel):
    """
    Structured result of analyzing a strategy document.

    Every field has a default, so a garbled analysis still yields a usable result.
    """

    model_config = ConfigDict(frozen=True)

    artifact_kind: ArtifactKind = Field(default=ArtifactKind.INDICATOR)
    overlay: bool = Field(default=True)
    generated_prompt: str = Field(default="")

    def to_generation_request(
        self,
        target_version: str = "v6",
        model: Optional[str] = None,
        capability_tier: Optional[CapabilityTier] = None,
    ) -> GenerationRequest:
        """
        Build a generation request pre-filled from this analysis.

        The drafted prompt becomes the description and is also carried as
        supplemental context so refinements stay compliant with the document.
        """
        return GenerationRequest(
            description=self.generated_prompt,
            artifact_kind=self.artifact_kind,
            overlay=self.overlay,
            target_version=target_version,
            model=model,
            capability_tier=capability_tier,
            supplemental_context=f"[Source Document Analysis]: {self.generated_prompt}",
        )
