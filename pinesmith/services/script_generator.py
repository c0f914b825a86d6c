"""
Pine Script generation service.

Runs the staged generation pipeline (prompt assembly, completion call,
extraction, normalization), opens refinement sessions, enhances raw prompts
and analyzes strategy documents.

Example:
    generator = PineScriptGenerator(llm_provider=provider, pipeline_config=settings.pipeline)
    session = await generator.start_session(request)
    result = await generator.refine(session, "Add a trailing stop")
"""

import logging
import mimetypes
from typing import Optional

from pinesmith.core.config import PipelineConfig
from pinesmith.models.script import (
    DocumentAnalysisResult,
    GenerationRequest,
    GenerationResult,
    PipelineStage,
)
from pinesmith.providers.llm.base import Attachment, GenerationConfig, LLMProvider
from pinesmith.services.code_normalizer import CodeNormalizer
from pinesmith.services.document_analysis import DocumentAnalysisParser
from pinesmith.services.errors import DocumentAnalysisError, GenerationError
from pinesmith.services.prompt_assembler import PromptAssembler
from pinesmith.services.refinement import RefinementSession
from pinesmith.services.response_extractor import ResponseExtractor
from pinesmith.services.stages import StageCallback, StageOrchestrator

logger = logging.getLogger(__name__)

GENERATION_FAILURE_MESSAGE = "Pipeline Error: Failed to generate valid script."
DEFAULT_DOCUMENT_MIME_TYPE = "application/pdf"


class PineScriptGenerator:
    """
    Session-facing entry point of the generation pipeline.

    Holds no per-request state: sessions carry their own code, history and
    stage tracker, so one generator serves any number of sessions.

    Attributes:
        llm_provider: Completion service adapter
        pipeline_config: Per-call sampling settings and expert markers
        default_model: Model serving requests that name none; decides their
            tier. Defaults to the provider's configured model.
    """

    def __init__(
        self,
        llm_provider: LLMProvider,
        pipeline_config: Optional[PipelineConfig] = None,
        assembler: Optional[PromptAssembler] = None,
        extractor: Optional[ResponseExtractor] = None,
        normalizer: Optional[CodeNormalizer] = None,
        analysis_parser: Optional[DocumentAnalysisParser] = None,
        default_model: Optional[str] = None,
    ):
        self.llm_provider = llm_provider
        self.pipeline_config = pipeline_config or PipelineConfig()
        self.default_model = default_model or llm_provider.get_model_info().model_id
        self.assembler = assembler or PromptAssembler(
            self.pipeline_config.expert_model_markers,
            default_model=self.default_model,
        )
        self.extractor = extractor or ResponseExtractor()
        self.normalizer = normalizer or CodeNormalizer(self.pipeline_config.default_version)
        self.analysis_parser = analysis_parser or DocumentAnalysisParser()

    # =========================================================================
    # Generation
    # =========================================================================

    def _generation_config(self, request: GenerationRequest) -> GenerationConfig:
        cfg = self.pipeline_config
        budget = cfg.generation_reasoning_budget
        expert = self.assembler.is_expert(request)
        return GenerationConfig(
            temperature=cfg.generation_temperature,
            max_tokens=cfg.generation_max_tokens,
            model=request.model,
            reasoning_budget=budget if expert and budget > 0 else None,
        )

    async def generate(
        self,
        request: GenerationRequest,
        on_stage: Optional[StageCallback] = None,
        stages: Optional[StageOrchestrator] = None,
    ) -> GenerationResult:
        """
        Run the generation pipeline for one request.

        Stages announced in order: normalizing, optimizing, generating,
        validating, success. On a failed completion call the run ends in
        error instead.

        Args:
            request: The generation request
            on_stage: Observer for stage changes (ignored if ``stages`` is given)
            stages: Existing tracker to drive, e.g. a session's

        Returns:
            GenerationResult; ``extraction_failed`` is set and the code holds
            the version-tagged sentinel when the response contained no code

        Raises:
            GenerationError: If the completion call fails
            StageTransitionError: If ``stages`` is already running
        """
        stages = stages or StageOrchestrator(on_stage)

        stages.advance(PipelineStage.NORMALIZING)
        expert = self.assembler.is_expert(request)
        logger.info(
            f"Generating {request.artifact_kind.value} script "
            f"(version: {request.target_version}, expert: {expert}, "
            f"model: {request.model or 'default'})"
        )

        stages.advance(PipelineStage.OPTIMIZING)
        prompt = self.assembler.build_generation_prompt(request)
        config = self._generation_config(request)

        stages.advance(PipelineStage.GENERATING)
        try:
            completion = await self.llm_provider.generate(
                prompt.user_prompt,
                config=config,
                system_prompt=prompt.system_prompt,
            )
        except Exception as e:
            logger.error(f"Generation call failed: {e}")
            stages.fail()
            raise GenerationError(
                GENERATION_FAILURE_MESSAGE,
                {"error": str(e), "model": request.model},
            ) from e

        stages.advance(PipelineStage.VALIDATING)
        extraction = self.extractor.extract(completion.content)
        result = GenerationResult(
            code=self.normalizer.normalize(extraction.code, request.target_version),
            explanation=extraction.explanation,
            extraction_failed=extraction.failed,
        )
        logger.info(
            f"Generation complete (code length: {len(result.code)}, "
            f"method: {extraction.method.value})"
        )

        stages.advance(PipelineStage.SUCCESS)
        return result

    # =========================================================================
    # Refinement sessions
    # =========================================================================

    def create_session(
        self,
        request: GenerationRequest,
        on_stage: Optional[StageCallback] = None,
    ) -> RefinementSession:
        """Create an empty session sharing this generator's collaborators."""
        return RefinementSession(
            llm_provider=self.llm_provider,
            request=request,
            assembler=self.assembler,
            extractor=self.extractor,
            normalizer=self.normalizer,
            pipeline_config=self.pipeline_config,
            on_stage=on_stage,
        )

    async def start_session(
        self,
        request: GenerationRequest,
        on_stage: Optional[StageCallback] = None,
    ) -> RefinementSession:
        """
        Generate a script and open a refinement session seeded with it.

        Raises:
            GenerationError: If the completion call fails
        """
        session = self.create_session(request, on_stage)
        result = await self.generate(request, stages=session.stages)
        session.seed(result)
        return session

    async def refine(self, session: RefinementSession, instruction: str) -> GenerationResult:
        """
        Run one refinement turn on a session.

        Raises:
            SessionStateError: If the session has no code or is busy
            RefinementError: If the completion call fails
        """
        return await session.submit_turn(instruction)

    # =========================================================================
    # Enhancement
    # =========================================================================

    async def enhance_text(self, text: str) -> str:
        """
        Rewrite raw user input into a structured requirement spec.

        Best effort: returns ``text`` unchanged when the call fails or the
        model returns nothing.
        """
        if not text.strip():
            return text

        cfg = self.pipeline_config
        prompt = self.assembler.build_enhancement_prompt(text)
        config = GenerationConfig(
            temperature=cfg.enhance_temperature,
            max_tokens=cfg.enhance_max_tokens,
            model=cfg.enhance_model,
        )
        try:
            completion = await self.llm_provider.generate(
                prompt.user_prompt,
                config=config,
                system_prompt=prompt.system_prompt,
            )
        except Exception as e:
            logger.warning(f"Prompt enhancement failed, keeping original text: {e}")
            return text

        enhanced = (completion.content or "").strip()
        return enhanced or text

    # =========================================================================
    # Document analysis
    # =========================================================================

    async def analyze_document(
        self,
        data: bytes,
        filename: str = "",
        mime_type: Optional[str] = None,
    ) -> DocumentAnalysisResult:
        """
        Classify a strategy document and draft a generation prompt from it.

        Args:
            data: Raw document bytes
            filename: Used to guess the MIME type when none is given
            mime_type: Explicit MIME type

        Returns:
            DocumentAnalysisResult; malformed responses yield defaults

        Raises:
            DocumentAnalysisError: If the document is empty or the call fails
        """
        if not data:
            raise DocumentAnalysisError("Document is empty", {"filename": filename})

        cfg = self.pipeline_config
        if len(data) > cfg.max_document_bytes:
            raise DocumentAnalysisError(
                "Document exceeds the maximum size",
                {"filename": filename, "size": len(data), "limit": cfg.max_document_bytes},
            )

        if mime_type is None:
            guessed, _ = mimetypes.guess_type(filename) if filename else (None, None)
            mime_type = guessed or DEFAULT_DOCUMENT_MIME_TYPE

        prompt = self.assembler.build_document_analysis_prompt(filename)
        config = GenerationConfig(
            temperature=cfg.analysis_temperature,
            max_tokens=cfg.analysis_max_tokens,
            model=cfg.analysis_model,
            json_mode=True,
        )
        logger.info(f"Analyzing document '{filename}' ({mime_type}, {len(data)} bytes)")

        try:
            completion = await self.llm_provider.generate(
                prompt.user_prompt,
                config=config,
                system_prompt=prompt.system_prompt,
                attachments=[Attachment(data=data, mime_type=mime_type, filename=filename)],
            )
        except Exception as e:
            logger.error(f"Document analysis call failed: {e}")
            raise DocumentAnalysisError(
                "Failed to analyze document.",
                {"filename": filename, "error": str(e)},
            ) from e

        return self.analysis_parser.parse(completion.content or "")
