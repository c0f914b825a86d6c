"""
Code and explanation extraction from model responses.

Responses are loosely structured ("[ANALYSIS] ... [CODE] ```pinescript ...```"),
so extraction scans for anchor tokens in a fixed order and degrades to a
sentinel instead of raising.
"""

import logging
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)

FENCE = "```"
FENCE_HINTS = ("pinescript", "pine")  # longest first
VERSION_MARKER = "//@version="
SECTION_MARKERS = ("[ANALYSIS]", "[CODE]")

SENTINEL_CODE = "// Error: Could not parse code block."


class ExtractionMethod(str, Enum):
    """How the code was located."""

    FENCED = "fenced"
    VERSION_MARKER = "version_marker"
    FAILED = "failed"


@dataclass(frozen=True)
class ExtractionResult:
    """Code and explanation split out of one response."""

    code: str
    explanation: str
    method: ExtractionMethod

    @property
    def failed(self) -> bool:
        return self.method == ExtractionMethod.FAILED


class ResponseExtractor:
    """
    Splits a model response into code and explanation.

    Order of attempts:
    1. First fenced block (optional ``pinescript``/``pine`` hint, any case).
       The code is the trimmed interior; the explanation is the text with the
       block and the section markers removed.
    2. First version marker: everything from it is code, everything before it
       is explanation.
    3. Sentinel code, with the whole response as explanation.
    """

    def extract(self, text: str) -> ExtractionResult:
        fenced = self._scan_fenced_block(text)
        if fenced is not None:
            start, end, interior = fenced
            explanation = text[:start] + text[end:]
            for marker in SECTION_MARKERS:
                explanation = explanation.replace(marker, "")
            return ExtractionResult(
                code=interior.strip(),
                explanation=explanation.strip(),
                method=ExtractionMethod.FENCED,
            )

        index = text.find(VERSION_MARKER)
        if index >= 0:
            logger.warning("No fenced code block found, falling back to version marker")
            return ExtractionResult(
                code=text[index:],
                explanation=text[:index],
                method=ExtractionMethod.VERSION_MARKER,
            )

        logger.warning(f"No code found in response (length: {len(text)})")
        return ExtractionResult(
            code=SENTINEL_CODE,
            explanation=text,
            method=ExtractionMethod.FAILED,
        )

    @staticmethod
    def _scan_fenced_block(text: str) -> tuple[int, int, str] | None:
        """
        Locate the first complete fenced block.

        Returns:
            (block start, block end, interior) or None when there is no
            opening fence with a matching closing fence
        """
        start = text.find(FENCE)
        if start < 0:
            return None

        cursor = start + len(FENCE)
        lowered = text.lower()
        for hint in FENCE_HINTS:
            if lowered.startswith(hint, cursor):
                cursor += len(hint)
                break

        close = text.find(FENCE, cursor)
        if close < 0:
            return None

        return start, close + len(FENCE), text[cursor:close]
