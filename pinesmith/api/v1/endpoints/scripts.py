"""
Pine Script API Endpoints.

Provides endpoints for generating scripts, refining them through a chat
session, enhancing raw prompts and analyzing strategy documents.
"""

import base64
import binascii
import logging
import time
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from pinesmith.core.config import Settings
from pinesmith.core.container import (
    get_script_generator_dep,
    get_session_store_dep,
    get_settings_dep,
)
from pinesmith.models.script import (
    ArtifactKind,
    CapabilityTier,
    ChatMessage,
    GenerationRequest,
    PipelineStage,
)
from pinesmith.services.errors import (
    DocumentAnalysisError,
    GenerationError,
    RefinementError,
    SessionStateError,
)
from pinesmith.services.refinement import RefinementSession
from pinesmith.services.script_generator import PineScriptGenerator
from pinesmith.services.session_store import SessionStore
from pinesmith.services.stages import STAGE_LABELS
from pinesmith.services.templates import EXAMPLE_TEMPLATES, PromptTemplate, get_template

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/scripts", tags=["Scripts"])


# =============================================================================
# Request/Response Models
# =============================================================================


class GenerateScriptRequest(BaseModel):
    """
    Request model for script generation.

    target_version falls back to the configured default version.
    """

    description: str = Field(
        ...,
        min_length=1,
        max_length=50000,
        description="Natural-language description of the indicator or strategy",
    )
    artifact_kind: ArtifactKind = Field(default=ArtifactKind.INDICATOR)
    overlay: bool = Field(default=True)
    target_version: Optional[str] = Field(
        default=None,
        description="Pine Script version, e.g. 'v6'",
    )
    model: Optional[str] = Field(default=None, description="Model selector")
    capability_tier: Optional[CapabilityTier] = Field(default=None)
    supplemental_context: Optional[str] = Field(
        default=None,
        max_length=200000,
        description="Rules or document text the script must follow",
    )

    def to_generation_request(self, default_version: str) -> GenerationRequest:
        return GenerationRequest(
            description=self.description,
            artifact_kind=self.artifact_kind,
            overlay=self.overlay,
            target_version=self.target_version or default_version,
            model=self.model,
            capability_tier=self.capability_tier,
            supplemental_context=self.supplemental_context,
        )


class GenerateScriptResponse(BaseModel):
    """Result of a generation run plus the session opened for refinement."""

    session_id: str
    code: str
    explanation: str
    extraction_failed: bool
    stages: list[PipelineStage] = Field(
        description="Stages observed during the run, in order",
    )
    stage_labels: list[str] = Field(
        description="Progress text for each in-flight stage of the run",
    )
    duration_seconds: float


class RefineScriptRequest(BaseModel):
    """Request model for one refinement turn."""

    instruction: str = Field(..., min_length=1, max_length=20000)


class RefineScriptResponse(BaseModel):
    """Result of a refinement turn."""

    session_id: str
    code: str
    explanation: str
    extraction_failed: bool
    stage: PipelineStage
    history: list[ChatMessage]


class SessionResponse(BaseModel):
    """Current state of a refinement session."""

    session_id: str
    stage: PipelineStage
    stage_label: Optional[str] = Field(
        default=None,
        description="Progress text while a run is in flight",
    )
    code: Optional[str]
    explanation: Optional[str]
    extraction_failed: bool
    history: list[ChatMessage]
    request: GenerationRequest
    created_at: datetime
    updated_at: datetime


class EnhancePromptRequest(BaseModel):
    """Request model for prompt enhancement."""

    text: str = Field(..., min_length=1, max_length=50000)


class EnhancePromptResponse(BaseModel):
    """Enhanced prompt; ``enhanced`` is False when the original text came back."""

    text: str
    enhanced: bool


class AnalyzeDocumentRequest(BaseModel):
    """Request model for document analysis (content is base64-encoded)."""

    filename: str = Field(default="", max_length=512)
    content_base64: str = Field(..., min_length=1)
    mime_type: Optional[str] = Field(default=None, max_length=128)


class AnalyzeDocumentResponse(BaseModel):
    """Document classification and the drafted generation prompt."""

    artifact_kind: ArtifactKind
    overlay: bool
    generated_prompt: str
    supplemental_context: str = Field(
        description="Context to attach to the follow-up generation request",
    )


class TemplateResponse(BaseModel):
    """Built-in example prompt."""

    label: str
    artifact_kind: ArtifactKind
    overlay: bool
    summary: str
    text: str


# =============================================================================
# Helpers
# =============================================================================


def _get_session_or_404(store: SessionStore, session_id: str) -> RefinementSession:
    session = store.get(session_id)
    if session is None:
        logger.warning(f"Session not found: {session_id}")
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Session not found: {session_id}",
        )
    return session


def _template_response(template: PromptTemplate) -> TemplateResponse:
    return TemplateResponse(
        label=template.label,
        artifact_kind=template.artifact_kind,
        overlay=template.overlay,
        summary=template.summary,
        text=template.text,
    )


def _session_response(session: RefinementSession) -> SessionResponse:
    result = session.result
    return SessionResponse(
        session_id=session.session_id,
        stage=session.stage,
        stage_label=STAGE_LABELS.get(session.stage),
        code=session.current_code,
        explanation=result.explanation if result else None,
        extraction_failed=result.extraction_failed if result else False,
        history=session.history,
        request=session.request,
        created_at=session.created_at,
        updated_at=session.updated_at,
    )


# =============================================================================
# Endpoints
# =============================================================================


@router.post(
    "/generate",
    response_model=GenerateScriptResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Generate Pine Script",
    description=(
        "Generate a Pine Script indicator or strategy from a natural-language "
        "description. Opens a refinement session seeded with the result."
    ),
    responses={
        201: {"description": "Script generated and session created"},
        422: {"description": "Invalid request"},
        502: {"description": "Completion service failed"},
    },
)
async def generate_script(
    body: GenerateScriptRequest,
    generator: PineScriptGenerator = Depends(get_script_generator_dep),
    store: SessionStore = Depends(get_session_store_dep),
    settings: Settings = Depends(get_settings_dep),
) -> GenerateScriptResponse:
    """
    Generate a script and open a refinement session.

    Raises:
        HTTPException 422: If the target version has no version number.
        HTTPException 502: If the completion call fails.
    """
    try:
        request = body.to_generation_request(settings.pipeline.default_version)
    except ValueError as e:
        logger.warning(f"Invalid generation request: {e}")
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e),
        )

    started = time.perf_counter()
    try:
        session = await generator.start_session(request)
    except GenerationError as e:
        logger.error(f"Script generation failed: {e} {e.details}")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=str(e),
        )
    duration = time.perf_counter() - started

    store.add(session)
    result = session.result
    logger.info(
        f"Created session {session.session_id} in {duration:.2f}s "
        f"(extraction_failed={result.extraction_failed})"
    )

    return GenerateScriptResponse(
        session_id=session.session_id,
        code=result.code,
        explanation=result.explanation,
        extraction_failed=result.extraction_failed,
        stages=session.stages.history,
        stage_labels=[STAGE_LABELS[s] for s in session.stages.history if s in STAGE_LABELS],
        duration_seconds=round(duration, 3),
    )


@router.get(
    "/sessions/{session_id}",
    response_model=SessionResponse,
    summary="Get Session",
    description="Get the current code, chat history and stage of a refinement session.",
    responses={404: {"description": "Session not found"}},
)
async def get_session(
    session_id: str,
    store: SessionStore = Depends(get_session_store_dep),
) -> SessionResponse:
    session = _get_session_or_404(store, session_id)
    return _session_response(session)


@router.post(
    "/sessions/{session_id}/refine",
    response_model=RefineScriptResponse,
    summary="Refine Script",
    description="Apply a natural-language change to the session's current code.",
    responses={
        400: {"description": "Session has no code to refine"},
        404: {"description": "Session not found"},
        409: {"description": "A run is already in progress for this session"},
        502: {"description": "Completion service failed; prior code kept"},
    },
)
async def refine_script(
    session_id: str,
    body: RefineScriptRequest,
    generator: PineScriptGenerator = Depends(get_script_generator_dep),
    store: SessionStore = Depends(get_session_store_dep),
) -> RefineScriptResponse:
    """
    Run one refinement turn.

    Raises:
        HTTPException 400: If the session has no code.
        HTTPException 404: If the session does not exist.
        HTTPException 409: If the session is busy.
        HTTPException 502: If the completion call fails.
    """
    session = _get_session_or_404(store, session_id)

    if session.is_busy:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Session is busy (stage: {session.stage.value})",
        )
    if not session.has_code:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Session has no code to refine",
        )

    try:
        result = await generator.refine(session, body.instruction)
    except SessionStateError as e:
        logger.warning(f"Refinement rejected for session {session_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e),
        )
    except RefinementError as e:
        logger.error(f"Refinement failed for session {session_id}: {e} {e.details}")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=str(e),
        )

    return RefineScriptResponse(
        session_id=session.session_id,
        code=result.code,
        explanation=result.explanation,
        extraction_failed=result.extraction_failed,
        stage=session.stage,
        history=session.history,
    )


@router.delete(
    "/sessions/{session_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete Session",
    description="Clear a session's code and history and discard it.",
    responses={
        404: {"description": "Session not found"},
        409: {"description": "A run is in progress for this session"},
    },
)
async def delete_session(
    session_id: str,
    store: SessionStore = Depends(get_session_store_dep),
) -> None:
    session = _get_session_or_404(store, session_id)
    try:
        session.clear()
    except SessionStateError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e),
        )
    store.remove(session_id)


@router.post(
    "/enhance",
    response_model=EnhancePromptResponse,
    summary="Enhance Prompt",
    description=(
        "Rewrite a raw idea into a structured requirement spec. "
        "Returns the input unchanged if the completion service fails."
    ),
)
async def enhance_prompt(
    body: EnhancePromptRequest,
    generator: PineScriptGenerator = Depends(get_script_generator_dep),
) -> EnhancePromptResponse:
    text = await generator.enhance_text(body.text)
    return EnhancePromptResponse(text=text, enhanced=text != body.text)


@router.post(
    "/analyze-document",
    response_model=AnalyzeDocumentResponse,
    summary="Analyze Strategy Document",
    description=(
        "Classify a strategy document (e.g. a PDF) as indicator or strategy, "
        "decide the overlay and draft a generation prompt from it."
    ),
    responses={
        400: {"description": "Invalid base64 content or document too large"},
        502: {"description": "Completion service failed"},
    },
)
async def analyze_document(
    body: AnalyzeDocumentRequest,
    generator: PineScriptGenerator = Depends(get_script_generator_dep),
    settings: Settings = Depends(get_settings_dep),
) -> AnalyzeDocumentResponse:
    """
    Analyze an uploaded document.

    Raises:
        HTTPException 400: If the content is not valid base64, empty or too large.
        HTTPException 502: If the completion call fails.
    """
    try:
        data = base64.b64decode(body.content_base64, validate=True)
    except (binascii.Error, ValueError) as e:
        logger.warning(f"Invalid document content for '{body.filename}': {e}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="content_base64 is not valid base64",
        )

    limit = settings.pipeline.max_document_bytes
    if not data or len(data) > limit:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Document must be between 1 and {limit} bytes",
        )

    try:
        analysis = await generator.analyze_document(data, body.filename, body.mime_type)
    except DocumentAnalysisError as e:
        logger.error(f"Document analysis failed: {e} {e.details}")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=str(e),
        )

    request = analysis.to_generation_request(settings.pipeline.default_version)
    return AnalyzeDocumentResponse(
        artifact_kind=analysis.artifact_kind,
        overlay=analysis.overlay,
        generated_prompt=analysis.generated_prompt,
        supplemental_context=request.supplemental_context or "",
    )


@router.get(
    "/templates",
    response_model=list[TemplateResponse],
    summary="List Example Prompts",
    description="Built-in example requests users can start from.",
)
async def list_templates() -> list[TemplateResponse]:
    return [_template_response(t) for t in EXAMPLE_TEMPLATES]


@router.get(
    "/templates/{label}",
    response_model=TemplateResponse,
    summary="Get Example Prompt",
    description="Look up a built-in example by label (case-insensitive).",
    responses={404: {"description": "Template not found"}},
)
async def get_example_template(label: str) -> TemplateResponse:
    try:
        template = get_template(label)
    except KeyError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Template not found: {label}",
        )
    return _template_response(template)
