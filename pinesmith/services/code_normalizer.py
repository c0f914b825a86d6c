"""
Code normalization.

Rewrites extracted code so it carries exactly one version declaration, on the
first line, for the requested version, and has no runs of blank lines.
"""

import re

from pinesmith.models.script import version_number

VERSION_MARKER = "//@version="

# A version declaration at the start of a line, optionally indented or spaced
# ("// @version = 5"). Only the declaration itself is matched; anything after
# it on the same line is kept.
_VERSION_DECLARATION = re.compile(r"^[ \t]*//[ \t]*@version[ \t]*=[ \t]*\d*", re.IGNORECASE)
_BLANK_RUNS = re.compile(r"\n{3,}")
_LINE_BREAKS = re.compile(r"\r\n?")


class CodeNormalizer:
    """
    Idempotent post-processor for generated Pine Script.

    normalize(normalize(c, v), v) == normalize(c, v) for any text c, and the
    output is never empty: at minimum it is the version declaration.
    """

    def __init__(self, default_version: str = "v6"):
        self.default_version = default_version

    @staticmethod
    def version_tag(target_version: str) -> str:
        return f"{VERSION_MARKER}{version_number(target_version)}"

    def normalize(self, code: str, target_version: str | None = None) -> str:
        """
        Normalize a block of code.

        Args:
            code: Arbitrary text, possibly empty
            target_version: Version identifier such as "v6"; defaults to the
                normalizer's configured version

        Returns:
            The code with a single leading version declaration
        """
        tag = self.version_tag(target_version or self.default_version)

        kept: list[str] = []
        # CRLF and lone CR both count as a single line break
        for line in _LINE_BREAKS.sub("\n", code).split("\n"):
            match = _VERSION_DECLARATION.match(line)
            if match is None:
                kept.append(line)
                continue
            remainder = line[match.end():].strip()
            # "//@version=5 //@version=6" declares twice on one line
            while (match := _VERSION_DECLARATION.match(remainder)) is not None:
                remainder = remainder[match.end():].strip()
            if remainder:
                kept.append(remainder)

        body = "\n".join(kept).strip("\n")
        result = f"{tag}\n{body}" if body else tag
        return _BLANK_RUNS.sub("\n\n", result).rstrip()
