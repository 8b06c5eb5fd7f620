"""Guarded regex compilation for user-supplied query filters.

Patterns run on the stdlib ``re`` engine, which backtracks.  Before
compiling, a pattern is checked against a restricted subset:

- length is capped (``max_length``);
- backreferences (``\\1``, ``(?P=name)``) are rejected;
- a quantified group that itself contains ``*``, ``+`` or ``{m,n}``
  (``(a+)+``, ``(\\w*)*``, ``(x{2,})+``) is rejected;
- a quantified group that contains ``|`` (``(a|aa)+``, ``(\\w|\\d)*``)
  is rejected.

INVARIANT: a bad pattern fails loudly with InvalidPatternError, never
silently matches nothing.
"""

from __future__ import annotations

import functools
import re

DEFAULT_MAX_PATTERN_LENGTH = 256

_BOUNDED_REPEAT = re.compile(r"\{\d+(?:,\d*)?\}|\{,\d+\}")


class InvalidPatternError(ValueError):
    """A ``$regex`` filter could not be compiled or is unsafe to run."""

    def __init__(self, pattern: str, reason: str) -> None:
        super().__init__(f"Invalid regex pattern {pattern!r}: {reason}")
        self.pattern = pattern
        self.reason = reason


def _is_quantifier_at(pattern: str, i: int) -> bool:
    if i >= len(pattern):
        return False
    if pattern[i] in "*+":
        return True
    return pattern[i] == "{" and _BOUNDED_REPEAT.match(pattern, i) is not None


def _skip_class(pattern: str, i: int) -> int:
    """Return the index just past the character class opening at *i*."""
    j = i + 1
    if j < len(pattern) and pattern[j] == "^":
        j += 1
    if j < len(pattern) and pattern[j] == "]":
        j += 1
    while j < len(pattern) and pattern[j] != "]":
        if pattern[j] == "\\":
            j += 1
        j += 1
    return j + 1


def check_pattern_structure(pattern: str) -> str | None:
    """Return the reason *pattern* is unsafe, or None if it is acceptable."""
    # Per open group: [contains a repeat, contains an alternation].
    groups: list[list[bool]] = []
    i = 0
    n = len(pattern)
    while i < n:
        ch = pattern[i]
        if ch == "\\":
            nxt = pattern[i + 1 : i + 2]
            if nxt.isdigit() and nxt != "0":
                return "backreferences are not supported"
            i += 2
            continue
        if ch == "[":
            i = _skip_class(pattern, i)
            continue
        if ch == "(":
            if pattern.startswith("(?P=", i):
                return "backreferences are not supported"
            groups.append([False, False])
            i += 1
            continue
        if ch == ")":
            repeats, alternates = groups.pop() if groups else (False, False)
            quantified = _is_quantifier_at(pattern, i + 1)
            if quantified and repeats:
                return "nested quantifiers can backtrack catastrophically"
            if quantified and alternates:
                return "quantified alternation can backtrack catastrophically"
            if groups:
                groups[-1][0] = groups[-1][0] or repeats or quantified
                groups[-1][1] = groups[-1][1] or alternates
            i += 1
            continue
        if groups and ch == "|":
            groups[-1][1] = True
        elif groups and _is_quantifier_at(pattern, i):
            groups[-1][0] = True
        i += 1
    return None


@functools.lru_cache(maxsize=256)
def compile_pattern(
    pattern: str,
    *,
    max_length: int = DEFAULT_MAX_PATTERN_LENGTH,
) -> re.Pattern[str]:
    """Validate and compile a user-supplied pattern.

    Raises:
        InvalidPatternError: If the pattern is too long, unsafe, or does
            not compile.
    """
    if not isinstance(pattern, str):
        raise InvalidPatternError(repr(pattern), "pattern must be a string")
    if len(pattern) > max_length:
        raise InvalidPatternError(pattern, f"longer than {max_length} characters")

    reason = check_pattern_structure(pattern)
    if reason is not None:
        raise InvalidPatternError(pattern, reason)

    try:
        return re.compile(pattern)
    except re.error as exc:
        raise InvalidPatternError(pattern, str(exc)) from exc
