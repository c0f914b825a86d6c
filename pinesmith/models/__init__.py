"""
Pydantic models for the Pine Script generation service.

This module exports all domain models used by the pipeline and the API.
"""

from pinesmith.models.script import (
    # Enums
    ArtifactKind,
    CapabilityTier,
    ChatRole,
    PipelineStage,
    # Models
    ChatMessage,
    DocumentAnalysisResult,
    GenerationRequest,
    GenerationResult,
    # Helpers
    version_number,
)

__all__ = [
    "ArtifactKind",
    "CapabilityTier",
    "ChatRole",
    "PipelineStage",
    "ChatMessage",
    "DocumentAnalysisResult",
    "GenerationRequest",
    "GenerationResult",
    "version_number",
]
