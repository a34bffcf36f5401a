from __future__ import annotations

import re
from dataclasses import dataclass

DEFAULT_MIN_CHANGE_CHARS = 50

# Text blocks, strings and chars are matched first so comment markers inside them survive.
_LITERAL_OR_COMMENT_RE = re.compile(
    r'"""[\s\S]*?"""|'
    r'"(?:[^"\\\n]|\\.)*"|'
    r"'(?:[^'\\\n]|\\.)*'|"
    r"//[^\n]*|"
    r"/\*[\s\S]*?\*/"
)
_WHITESPACE_RE = re.compile(r"\s+")


@dataclass(frozen=True)
class ChangeVerdict:
    accepted: bool
    reason: str | None
    delta: int


def strip_comments(code: str) -> str:
    def replace(match: re.Match[str]) -> str:
        token = match.group(0)
        if token.startswith(("//", "/*")):
            return " "
        return token

    return _LITERAL_OR_COMMENT_RE.sub(replace, code)


def normalize_code(code: str) -> str:
    """Drop comments and collapse insignificant whitespace."""
    return _WHITESPACE_RE.sub(" ", strip_comments(code)).strip()


def validate_change(
    before: str,
    after: str,
    min_delta: int = DEFAULT_MIN_CHANGE_CHARS,
) -> ChangeVerdict:
    """Accept a before/after pair only if the normalized texts differ substantially.

    The size check is a coarse proxy: two edits of equal length are rejected
    even when their content differs.
    """
    norm_before = normalize_code(before)
    norm_after = normalize_code(after)
    delta = abs(len(norm_before) - len(norm_after))
    if norm_before == norm_after:
        return ChangeVerdict(accepted=False, reason="identical", delta=0)
    if delta < min_delta:
        return ChangeVerdict(accepted=False, reason="too_small", delta=delta)
    return ChangeVerdict(accepted=True, reason=None, delta=delta)
