"""
Parsing of document-analysis responses.

The analysis call asks for a JSON object {artifactKind, overlay,
generatedPrompt}. Models wrap it in prose or fences often enough that the
object is recovered leniently, and every missing or malformed field falls
back to a default so callers always get a usable result.
"""

import json
import logging
import re
from typing import Any

from pinesmith.models.script import ArtifactKind, DocumentAnalysisResult

logger = logging.getLogger(__name__)

MISSING_PROMPT_NOTICE = "Failed to extract prompt from document."
INVALID_JSON_NOTICE = (
    "Error parsing document analysis. The AI processed the file but returned invalid JSON."
)

_JSON_FENCE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```", re.IGNORECASE)

# Accepted spellings for each field, preferred first.
_KIND_KEYS = ("artifactKind", "scriptType", "artifact_kind", "script_type")
_OVERLAY_KEYS = ("overlay",)
_PROMPT_KEYS = ("generatedPrompt", "generated_prompt", "prompt")


def _balanced_object(text: str) -> str | None:
    """Return the first balanced {...} span, skipping braces inside strings."""
    start_idx = text.find("{")
    if start_idx < 0:
        return None

    depth = 0
    in_string = False
    escape_next = False
    for i, char in enumerate(text[start_idx:], start_idx):
        if escape_next:
            escape_next = False
            continue
        if char == "\\" and in_string:
            escape_next = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if not in_string:
            if char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return text[start_idx : i + 1]
    return None


def parse_json_object(text: str) -> dict[str, Any] | None:
    """
    Recover a JSON object from a model response.

    Tries, in order: the whole text, the first balanced brace span, the
    first fenced block.

    Returns:
        The parsed dict, or None when no object could be recovered
    """
    try:
        result = json.loads(text.strip())
        if isinstance(result, dict):
            return result
    except json.JSONDecodeError as e:
        logger.debug(f"Direct JSON parse failed at position {e.pos}: {e.msg}")

    candidate = _balanced_object(text)
    if candidate is not None:
        try:
            result = json.loads(candidate)
            if isinstance(result, dict):
                logger.debug("JSON parsed successfully (brace matching)")
                return result
        except json.JSONDecodeError as e:
            logger.debug(f"Brace-matched JSON parse failed at pos {e.pos}: {e.msg}")

    match = _JSON_FENCE.search(text)
    if match:
        try:
            result = json.loads(match.group(1))
            if isinstance(result, dict):
                logger.debug("JSON parsed successfully (code fence)")
                return result
        except json.JSONDecodeError as e:
            logger.debug(f"Code fence JSON parse failed: {e}")

    return None


def _first(data: dict[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return None


def _coerce_kind(value: Any) -> ArtifactKind:
    if isinstance(value, str):
        try:
            return ArtifactKind(value.strip().lower())
        except ValueError:
            logger.warning(f"Unknown artifact kind in analysis: {value!r}")
    return ArtifactKind.INDICATOR


def _coerce_overlay(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "yes", "1"):
            return True
        if lowered in ("false", "no", "0"):
            return False
    return True


class DocumentAnalysisParser:
    """
    Turns a document-analysis response into a DocumentAnalysisResult.

    Never raises: an unparseable response yields the defaults (indicator,
    overlay) with INVALID_JSON_NOTICE as the prompt, and a parseable object
    with a missing prompt yields MISSING_PROMPT_NOTICE.
    """

    def parse(self, text: str) -> DocumentAnalysisResult:
        data = parse_json_object(text)
        if data is None:
            logger.warning(f"Document analysis returned invalid JSON (length: {len(text)})")
            return DocumentAnalysisResult(generated_prompt=INVALID_JSON_NOTICE)

        prompt = _first(data, _PROMPT_KEYS)
        if not isinstance(prompt, str) or not prompt.strip():
            logger.warning("Document analysis JSON has no generated prompt")
            prompt = MISSING_PROMPT_NOTICE

        return DocumentAnalysisResult(
            artifact_kind=_coerce_kind(_first(data, _KIND_KEYS)),
            overlay=_coerce_overlay(_first(data, _OVERLAY_KEYS)),
            generated_prompt=prompt,
        )
