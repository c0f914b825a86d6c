"""
Conversational refinement of a generated script.

A session keeps the latest code and the chat history for one generated
script. Each turn sends the current code plus an instruction to the model and
replaces the code only with a complete new version: a response without code
keeps the prior code (with a visible marker) instead of erasing it.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from pinesmith.core.config import PipelineConfig
from pinesmith.models.script import (
    ChatMessage,
    ChatRole,
    GenerationRequest,
    GenerationResult,
    PipelineStage,
)
from pinesmith.providers.llm.base import GenerationConfig, LLMProvider
from pinesmith.services.code_normalizer import CodeNormalizer
from pinesmith.services.errors import RefinementError, SessionStateError
from pinesmith.services.prompt_assembler import PromptAssembler
from pinesmith.services.response_extractor import ResponseExtractor
from pinesmith.services.stages import StageCallback, StageOrchestrator

logger = logging.getLogger(__name__)

REFINEMENT_FAILURE_MARKER = (
    "// ERROR: AI failed to generate the updated code block. Please try refining again."
)
REFINEMENT_FAILURE_EXPLANATION = (
    "I understood your request but failed to generate the full code structure. "
    "Please try again."
)
REFINEMENT_TRANSPORT_NOTICE = "Error: Failed to refine code. Please try again."


class RefinementSession:
    """
    Stateful refinement loop for one generated script.

    Attributes:
        session_id: Identifier used by the session store and the HTTP API
        request: The generation request the session was created from;
            every turn reuses its tier, version and supplemental context
        stages: Stage tracker for this session

    Turns must not overlap: a session runs at most one completion call at a
    time, and submit_turn rejects a turn while the session is busy.
    """

    def __init__(
        self,
        llm_provider: LLMProvider,
        request: GenerationRequest,
        assembler: Optional[PromptAssembler] = None,
        extractor: Optional[ResponseExtractor] = None,
        normalizer: Optional[CodeNormalizer] = None,
        pipeline_config: Optional[PipelineConfig] = None,
        on_stage: Optional[StageCallback] = None,
        session_id: Optional[str] = None,
    ):
        self.llm_provider = llm_provider
        self.request = request
        self.pipeline_config = pipeline_config or PipelineConfig()
        self.assembler = assembler or PromptAssembler(
            self.pipeline_config.expert_model_markers,
            default_model=llm_provider.get_model_info().model_id,
        )
        self.extractor = extractor or ResponseExtractor()
        self.normalizer = normalizer or CodeNormalizer(self.pipeline_config.default_version)
        self.stages = StageOrchestrator(on_stage)
        self.session_id = session_id or uuid.uuid4().hex
        self.created_at = datetime.now(timezone.utc)
        self.updated_at = self.created_at

        self._current_code: Optional[str] = None
        self._result: Optional[GenerationResult] = None
        self._history: list[ChatMessage] = []

    # =========================================================================
    # State
    # =========================================================================

    @property
    def current_code(self) -> Optional[str]:
        return self._current_code

    @property
    def result(self) -> Optional[GenerationResult]:
        """Latest result (initial generation or last refinement)."""
        return self._result

    @property
    def history(self) -> list[ChatMessage]:
        return list(self._history)

    @property
    def stage(self) -> PipelineStage:
        return self.stages.current

    @property
    def is_busy(self) -> bool:
        return self.stages.is_busy

    @property
    def has_code(self) -> bool:
        return self._current_code is not None

    def _touch(self) -> None:
        self.updated_at = datetime.now(timezone.utc)

    def seed(self, result: GenerationResult) -> None:
        """
        Install the result of the initial generation run.

        The explanation becomes the first model message (the initial analysis).

        Raises:
            SessionStateError: If the session already holds code
        """
        if self._current_code is not None:
            raise SessionStateError(
                "Session already seeded",
                {"session_id": self.session_id},
            )
        self._current_code = result.code
        self._result = result
        self._history.append(ChatMessage(role=ChatRole.MODEL, content=result.explanation))
        if self.stage == PipelineStage.IDLE:
            self.stages.reset(PipelineStage.SUCCESS)
        self._touch()

    def clear(self) -> None:
        """Discard code and history; the session returns to Idle."""
        if self.is_busy:
            raise SessionStateError(
                "Cannot clear a session while a run is in progress",
                {"session_id": self.session_id, "stage": self.stage.value},
            )
        self._current_code = None
        self._result = None
        self._history = []
        self.stages.reset()
        self._touch()
        logger.info(f"Cleared refinement session {self.session_id}")

    # =========================================================================
    # Turns
    # =========================================================================

    def _build_config(self) -> GenerationConfig:
        cfg = self.pipeline_config
        budget = cfg.refinement_reasoning_budget
        expert = self.assembler.is_expert(self.request)
        return GenerationConfig(
            temperature=cfg.refinement_temperature,
            max_tokens=cfg.refinement_max_tokens,
            model=self.request.model,
            reasoning_budget=budget if expert and budget > 0 else None,
        )

    async def submit_turn(self, instruction: str) -> GenerationResult:
        """
        Run one refinement turn.

        Args:
            instruction: Natural-language change request, sent verbatim

        Returns:
            The new GenerationResult; also installed as the session's result

        Raises:
            SessionStateError: If the session has no code or a run is in progress
            RefinementError: If the completion call fails. The failure notice is
                appended to the history and the prior code is kept.
        """
        if self._current_code is None:
            raise SessionStateError(
                "Session has no code to refine",
                {"session_id": self.session_id},
            )
        if not self.stages.can_advance(PipelineStage.REFINING):
            raise SessionStateError(
                "A run is already in progress for this session",
                {"session_id": self.session_id, "stage": self.stage.value},
            )

        prior_code = self._current_code
        self._history.append(ChatMessage(role=ChatRole.USER, content=instruction))
        self.stages.advance(PipelineStage.REFINING)
        self._touch()

        prompt = self.assembler.build_refinement_prompt(self.request, prior_code, instruction)
        logger.info(
            f"Refining session {self.session_id} "
            f"(instruction length: {len(instruction)}, code length: {len(prior_code)})"
        )

        try:
            completion = await self.llm_provider.generate(
                prompt.user_prompt,
                config=self._build_config(),
                system_prompt=prompt.system_prompt,
            )
        except Exception as e:
            logger.error(f"Refinement call failed for session {self.session_id}: {e}")
            self._history.append(
                ChatMessage(role=ChatRole.MODEL, content=REFINEMENT_TRANSPORT_NOTICE)
            )
            # Back to a rest state so the user can retry
            self.stages.advance(PipelineStage.SUCCESS)
            self._touch()
            raise RefinementError(
                "Failed to refine script.",
                {"session_id": self.session_id, "error": str(e)},
            ) from e

        extraction = self.extractor.extract(completion.content)
        version = self.request.target_version
        if extraction.failed:
            logger.warning(f"Refinement response for session {self.session_id} had no code")
            result = GenerationResult(
                code=self.normalizer.normalize(
                    f"{prior_code}\n\n{REFINEMENT_FAILURE_MARKER}", version
                ),
                explanation=REFINEMENT_FAILURE_EXPLANATION,
                extraction_failed=True,
            )
        else:
            result = GenerationResult(
                code=self.normalizer.normalize(extraction.code, version),
                explanation=extraction.explanation,
            )

        self._current_code = result.code
        self._result = result
        self._history.append(ChatMessage(role=ChatRole.MODEL, content=result.explanation))
        self.stages.advance(PipelineStage.SUCCESS)
        self._touch()
        return result
