"""
Prompt assembly.

Composes the system instruction and the user content for each completion call
from the policy fragments in ``pinesmith.services.policies``. Pure functions of
their inputs: no I/O and no validation of the user's text.
"""

from dataclasses import dataclass
from typing import Sequence

from pinesmith.models.script import CapabilityTier, GenerationRequest
from pinesmith.services import policies

DEFAULT_EXPERT_MARKERS: tuple[str, ...] = ("pro",)


@dataclass(frozen=True)
class AssembledPrompt:
    """System instruction plus user content for one completion call."""

    system_prompt: str
    user_prompt: str


def _join(blocks: Sequence[str]) -> str:
    return "\n\n".join(block.strip() for block in blocks if block and block.strip())


class PromptAssembler:
    """
    Builds prompts for generation, refinement, enhancement and document analysis.

    The system instruction concatenates, in this order: domain guidelines
    (expert tier only), quality checklist, syntax-safety rules, architecture
    rules, and the supplemental-context block when the request carries one.
    It always embeds the target version tag and the artifact-kind keyword.

    Example:
        assembler = PromptAssembler(expert_markers=["pro"])
        prompt = assembler.build_generation_prompt(request)
        await llm.generate(prompt.user_prompt, system_prompt=prompt.system_prompt)
    """

    def __init__(
        self,
        expert_markers: Sequence[str] | None = None,
        default_model: str | None = None,
    ):
        markers = DEFAULT_EXPERT_MARKERS if expert_markers is None else expert_markers
        self.expert_markers = tuple(m.lower() for m in markers if m)
        self.default_model = default_model

    # =========================================================================
    # Tier resolution
    # =========================================================================

    def resolve_tier(self, request: GenerationRequest) -> CapabilityTier:
        """
        Capability tier of a request.

        An explicit ``capability_tier`` wins. Otherwise the model that will serve
        the call (the request's selector, else ``default_model``) selects the
        expert tier when it contains any expert marker (case-insensitive).
        """
        if request.capability_tier is not None:
            return request.capability_tier

        selector = (request.model or self.default_model or "").lower()
        if any(marker in selector for marker in self.expert_markers):
            return CapabilityTier.EXPERT
        return CapabilityTier.STANDARD

    def is_expert(self, request: GenerationRequest) -> bool:
        return self.resolve_tier(request) == CapabilityTier.EXPERT

    # =========================================================================
    # Generation
    # =========================================================================

    def _policy_blocks(self, request: GenerationRequest, expert: bool) -> list[str]:
        blocks: list[str] = []
        if expert:
            blocks.append(policies.INSTITUTIONAL_GUIDELINES)
        blocks.append(policies.QUALITY_CHECKLIST.format(version_tag=request.version_tag))
        blocks.append(policies.SYNTAX_SAFETY_RULES)
        blocks.append(
            policies.ARCHITECTURE_RULES.format(artifact_kind=request.artifact_kind.value)
        )
        return blocks

    def build_generation_prompt(self, request: GenerationRequest) -> AssembledPrompt:
        """
        Build the prompt for a fresh generation run.

        Args:
            request: The generation request

        Returns:
            AssembledPrompt with the composite system instruction and user content
        """
        expert = self.is_expert(request)
        kind = request.artifact_kind.value
        overlay = "true" if request.overlay else "false"

        blocks = [
            'You are "PineArchitect", an Elite Quantitative Developer for TradingView.\n'
            f"Current Task: Generate Production-Ready Pine Script {request.target_version}.",
            *self._policy_blocks(request, expert),
        ]
        if request.supplemental_context:
            blocks.append(
                policies.SUPPLEMENTAL_CONTEXT_BLOCK.format(context=request.supplemental_context)
            )
        blocks.append(
            policies.GENERATION_OUTPUT_FORMAT.format(
                version_tag=request.version_tag,
                artifact_kind=kind,
                overlay=overlay,
            )
        )

        if expert:
            step_two = (
                '2. "Pro-Upgrade": Even if the user asked for something simple, wrap it in a '
                "professional framework (Dashboard, Trend Filter, ATR Stops) unless they "
                'explicitly said "simple" OR unless the Knowledge Base forbids it.'
            )
        else:
            step_two = "2. Implement the logic as requested."

        user_prompt = (
            "SCRIPT CONFIGURATION:\n"
            f"- Type: {kind.upper()}\n"
            f"- Overlay: {overlay}\n"
            f"- Mode: {'INSTITUTIONAL / EXPERT' if expert else 'STANDARD'}\n"
            "\n"
            "USER REQUEST:\n"
            f'"{request.description}"\n'
            "\n"
            "EXECUTION INSTRUCTIONS:\n"
            "1. Analyze the user request.\n"
            f"{step_two}\n"
            "3. Generate the code following Strict Coding Rules.\n"
            "4. Validate against Quality Control Pipeline (Check ShortTitle length & Single Declaration)."
        )

        return AssembledPrompt(system_prompt=_join(blocks), user_prompt=user_prompt)

    # =========================================================================
    # Refinement
    # =========================================================================

    def build_refinement_prompt(
        self,
        request: GenerationRequest,
        current_code: str,
        instruction: str,
    ) -> AssembledPrompt:
        """
        Build the prompt for one refinement turn.

        Uses the tier, version and artifact kind of the original request. The
        original supplemental context is carried under a "maintain compliance"
        directive instead of the precedence block.

        Args:
            request: The request that produced the session
            current_code: Code to edit
            instruction: Natural-language change request, passed verbatim
        """
        expert = self.is_expert(request)

        blocks = [
            "You are a Pine Script Refinement Specialist (Expert Level).\n"
            "Your task is to EDIT the provided Pine Script based on the user's instruction.",
            *self._policy_blocks(request, expert),
            policies.REFINEMENT_RULES.format(artifact_kind=request.artifact_kind.value),
        ]
        if request.supplemental_context:
            blocks.append(
                policies.COMPLIANCE_CONTEXT_BLOCK.format(context=request.supplemental_context)
            )
        blocks.append(policies.REFINEMENT_OUTPUT_FORMAT.format(version_tag=request.version_tag))

        user_prompt = (
            "CURRENT CODE:\n"
            "```pinescript\n"
            f"{current_code}\n"
            "```\n"
            "\n"
            "USER INSTRUCTION:\n"
            f'"{instruction}"\n'
            "\n"
            "Output the [ANALYSIS] and the [CODE] blocks."
        )

        return AssembledPrompt(system_prompt=_join(blocks), user_prompt=user_prompt)

    # =========================================================================
    # Enhancement / document analysis
    # =========================================================================

    def build_enhancement_prompt(self, text: str) -> AssembledPrompt:
        """Prompt that rewrites raw user input into a structured requirement spec."""
        return AssembledPrompt(
            system_prompt=policies.ENHANCEMENT_INSTRUCTIONS.strip(),
            user_prompt=f'RAW INPUT: "{text}"\n\nREFINED SPECIFICATION:',
        )

    def build_document_analysis_prompt(self, filename: str = "") -> AssembledPrompt:
        """Prompt sent with an attached strategy document."""
        user_prompt = "Analyze the attached document and return the JSON object."
        if filename:
            user_prompt = f"Analyze the attached document ({filename}) and return the JSON object."
        return AssembledPrompt(
            system_prompt=policies.DOCUMENT_ANALYSIS_INSTRUCTIONS.strip(),
            user_prompt=user_prompt,
        )
