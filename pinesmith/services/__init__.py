"""
Generation pipeline services.

Exports:
    - PineScriptGenerator: session-facing pipeline entry point
    - RefinementSession, SessionStore: conversational refinement
    - PromptAssembler, ResponseExtractor, CodeNormalizer, StageOrchestrator,
      DocumentAnalysisParser: pipeline components
    - Exceptions rooted at PipelineError
"""

from pinesmith.services.code_normalizer import CodeNormalizer
from pinesmith.services.document_analysis import DocumentAnalysisParser
from pinesmith.services.errors import (
    DocumentAnalysisError,
    GenerationError,
    PipelineError,
    RefinementError,
    SessionStateError,
    StageTransitionError,
)
from pinesmith.services.prompt_assembler import AssembledPrompt, PromptAssembler
from pinesmith.services.refinement import RefinementSession
from pinesmith.services.response_extractor import (
    ExtractionMethod,
    ExtractionResult,
    ResponseExtractor,
)
from pinesmith.services.script_generator import PineScriptGenerator
from pinesmith.services.session_store import SessionStore
from pinesmith.services.stages import StageOrchestrator

__all__ = [
    "PineScriptGenerator",
    "RefinementSession",
    "SessionStore",
    "PromptAssembler",
    "AssembledPrompt",
    "ResponseExtractor",
    "ExtractionResult",
    "ExtractionMethod",
    "CodeNormalizer",
    "StageOrchestrator",
    "DocumentAnalysisParser",
    "PipelineError",
    "GenerationError",
    "RefinementError",
    "DocumentAnalysisError",
    "StageTransitionError",
    "SessionStateError",
]
