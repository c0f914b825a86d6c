"""
Tests for PromptAssembler.

Covers:
- Capability tier resolution
- Fragment order in the system instruction
- Version tag and declaration keyword embedding
- Supplemental context handling
- Refinement, enhancement and document-analysis prompts
"""

import pytest

from pinesmith.models.script import ArtifactKind, CapabilityTier, GenerationRequest
from pinesmith.services import policies
from pinesmith.services.prompt_assembler import PromptAssembler


@pytest.fixture
def assembler() -> PromptAssembler:
    return PromptAssembler(expert_markers=["pro"])


def _request(**overrides) -> GenerationRequest:
    values = {
        "description": "RSI indicator",
        "artifact_kind": ArtifactKind.INDICATOR,
        "overlay": False,
        "target_version": "v6",
    }
    values.update(overrides)
    return GenerationRequest(**values)


class TestTierResolution:
    """Tests for expert-mode detection."""

    @pytest.mark.parametrize(
        "model,expected",
        [
            ("google/gemini-2.5-pro", CapabilityTier.EXPERT),
            ("GEMINI-PRO-PREVIEW", CapabilityTier.EXPERT),
            ("google/gemini-2.5-flash", CapabilityTier.STANDARD),
        ],
    )
    def test_tier_from_model_selector(
        self, assembler: PromptAssembler, model, expected: CapabilityTier
    ) -> None:
        """Test case-insensitive marker matching on the model selector."""
        assert assembler.resolve_tier(_request(model=model)) == expected

    @pytest.mark.parametrize(
        "default_model,expected",
        [
            ("google/gemini-2.5-pro", CapabilityTier.EXPERT),
            ("google/gemini-2.5-flash", CapabilityTier.STANDARD),
            (None, CapabilityTier.STANDARD),
        ],
    )
    def test_default_model_applies_without_selector(
        self, default_model, expected: CapabilityTier
    ) -> None:
        """Test that a request without a model uses the configured default."""
        assembler = PromptAssembler(expert_markers=["pro"], default_model=default_model)
        assert assembler.resolve_tier(_request(model=None)) == expected

    def test_request_model_beats_default(self) -> None:
        assembler = PromptAssembler(expert_markers=["pro"], default_model="gemini-pro")
        assert not assembler.is_expert(_request(model="google/gemini-2.5-flash"))

    def test_explicit_tier_wins(self, assembler: PromptAssembler) -> None:
        """Test that an explicit tier overrides the selector."""
        request = _request(model="gemini-pro", capability_tier=CapabilityTier.STANDARD)
        assert assembler.resolve_tier(request) == CapabilityTier.STANDARD

        request = _request(model="flash", capability_tier=CapabilityTier.EXPERT)
        assert assembler.is_expert(request)

    def test_custom_markers(self) -> None:
        """Test configurable markers."""
        assembler = PromptAssembler(expert_markers=["Opus"])
        assert assembler.is_expert(_request(model="anthropic/claude-opus-4"))
        assert not assembler.is_expert(_request(model="gemini-pro"))


class TestGenerationPrompt:
    """Tests for build_generation_prompt."""

    def test_standard_tier_omits_guidelines(self, assembler: PromptAssembler) -> None:
        """Test that standard requests carry no institutional guidelines."""
        prompt = assembler.build_generation_prompt(_request(model="flash"))

        assert "EXPERT TRADING PHILOSOPHY" not in prompt.system_prompt
        assert "QUALITY CONTROL PIPELINE" in prompt.system_prompt
        assert "Mode: STANDARD" in prompt.user_prompt

    def test_fragment_order(self, assembler: PromptAssembler) -> None:
        """Test domain -> quality -> syntax -> architecture -> context -> format."""
        request = _request(model="gemini-pro", supplemental_context="Use EMA 21.")
        system = assembler.build_generation_prompt(request).system_prompt

        markers = [
            "EXPERT TRADING PHILOSOPHY",
            "QUALITY CONTROL PIPELINE",
            "SYNTAX SAFETY GUARD",
            "ARCHITECTURE RULES",
            "USER KNOWLEDGE BASE",
            "OUTPUT FORMAT",
        ]
        positions = [system.index(marker) for marker in markers]
        assert positions == sorted(positions)

    def test_embeds_version_and_keyword(self, assembler: PromptAssembler) -> None:
        """Test the version tag and declaration keyword are present."""
        request = _request(artifact_kind=ArtifactKind.STRATEGY, target_version="v5")
        prompt = assembler.build_generation_prompt(request)

        assert "//@version=5" in prompt.system_prompt
        assert "Use ONLY 'strategy' declaration" in prompt.system_prompt
        assert 'strategy("Title", shorttitle="Title<10", overlay=false)' in prompt.system_prompt
        assert "Type: STRATEGY" in prompt.user_prompt

    def test_supplemental_context_precedence(self, assembler: PromptAssembler) -> None:
        """Test that the context block is present and marked as taking priority."""
        request = _request(supplemental_context="Only trade Mondays {weird braces}")
        system = assembler.build_generation_prompt(request).system_prompt

        assert "Only trade Mondays {weird braces}" in system
        assert "follow the document context" in system

    def test_no_context_block_without_context(self, assembler: PromptAssembler) -> None:
        """Test that the context block is omitted when there is no context."""
        system = assembler.build_generation_prompt(_request()).system_prompt
        assert "USER KNOWLEDGE BASE" not in system

    def test_description_passed_verbatim(self, assembler: PromptAssembler) -> None:
        """Test that odd user text is not altered."""
        text = '  weird "quotes" {braces} \n and newlines  '
        prompt = assembler.build_generation_prompt(_request(description=text))
        assert text in prompt.user_prompt

    def test_expert_execution_step(self, assembler: PromptAssembler) -> None:
        """Test that expert requests ask for the professional upgrade."""
        prompt = assembler.build_generation_prompt(_request(model="gemini-pro"))
        assert "Pro-Upgrade" in prompt.user_prompt
        assert "INSTITUTIONAL / EXPERT" in prompt.user_prompt


class TestRefinementPrompt:
    """Tests for build_refinement_prompt."""

    def test_contains_code_and_instruction(self, assembler: PromptAssembler) -> None:
        """Test the user prompt carries current code and instruction."""
        prompt = assembler.build_refinement_prompt(
            _request(), "//@version=6\nplot(close)", "Make the line red"
        )

        assert "//@version=6\nplot(close)" in prompt.user_prompt
        assert '"Make the line red"' in prompt.user_prompt
        assert "FULL CODE REQUIRED" in prompt.system_prompt
        assert "//@version=6" in prompt.system_prompt

    def test_context_under_compliance_directive(self, assembler: PromptAssembler) -> None:
        """Test supplemental context is carried as a compliance directive."""
        request = _request(supplemental_context="Use SMA 50.")
        system = assembler.build_refinement_prompt(request, "plot(close)", "x").system_prompt

        assert "MAINTAIN COMPLIANCE" in system
        assert "Use SMA 50." in system
        assert "USER KNOWLEDGE BASE" not in system

    def test_expert_guidelines_follow_original_request(
        self, assembler: PromptAssembler
    ) -> None:
        """Test the tier of the original request applies to refinements."""
        expert = assembler.build_refinement_prompt(_request(model="pro"), "c", "i")
        standard = assembler.build_refinement_prompt(_request(model="flash"), "c", "i")

        assert "EXPERT TRADING PHILOSOPHY" in expert.system_prompt
        assert "EXPERT TRADING PHILOSOPHY" not in standard.system_prompt


class TestAuxiliaryPrompts:
    """Tests for enhancement and document-analysis prompts."""

    def test_enhancement_prompt(self, assembler: PromptAssembler) -> None:
        prompt = assembler.build_enhancement_prompt("rsi al sat")

        assert prompt.system_prompt == policies.ENHANCEMENT_INSTRUCTIONS.strip()
        assert 'RAW INPUT: "rsi al sat"' in prompt.user_prompt

    def test_document_analysis_prompt(self, assembler: PromptAssembler) -> None:
        prompt = assembler.build_document_analysis_prompt("strategy.pdf")

        assert '"artifactKind"' in prompt.system_prompt
        assert "strategy.pdf" in prompt.user_prompt
