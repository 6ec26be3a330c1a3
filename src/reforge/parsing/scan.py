"""Low-level scanning helpers shared by the extraction strategies."""

import json
from collections.abc import Iterator
from typing import Any

CLOSERS = {"{": "}", "[": "]"}


def _reject_constant(name: str) -> Any:
    raise ValueError(f"Invalid JSON constant: {name}")


def loads_strict(candidate: str) -> Any:
    """Parse JSON, rejecting the non-standard NaN and Infinity tokens."""
    return json.loads(candidate, parse_constant=_reject_constant)


def parse_structure(candidate: str) -> tuple[bool, Any]:
    """
    Parse ``candidate`` as JSON, accepting only objects and arrays.

    Returns:
        ``(True, value)`` on success, ``(False, None)`` otherwise
    """
    try:
        value = loads_strict(candidate)
    except (ValueError, RecursionError):
        return False, None
    if isinstance(value, (dict, list)):
        return True, value
    return False, None


def scan_balance(text: str) -> tuple[list[str], bool]:
    """
    Scan ``text`` once and report what it would take to close it.

    Bracket characters inside string literals are ignored and a backslash
    inside a string escapes the character after it.

    Returns:
        The closing characters still owed (innermost last) and whether the
        text ends inside a string literal
    """
    pending: list[str] = []
    in_string = False
    escaped = False

    for char in text:
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char in CLOSERS:
            pending.append(CLOSERS[char])
        elif pending and char == pending[-1]:
            pending.pop()

    return pending, in_string


def balanced_span(text: str, start: int) -> str | None:
    """
    Return the bracketed span opening at ``start``, or None if it never closes.

    Nesting is tracked per bracket type, so ``{"a": [1}`` is rejected
    rather than closed early.
    """
    pending: list[str] = []
    in_string = False
    escaped = False

    for i in range(start, len(text)):
        char = text[i]

        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char in CLOSERS:
            pending.append(CLOSERS[char])
        elif char in ("}", "]"):
            if not pending or char != pending[-1]:
                return None
            pending.pop()
            if not pending:
                return text[start : i + 1]

    return None


def iter_balanced_spans(text: str) -> Iterator[str]:
    """Yield the balanced span starting at every ``{`` or ``[`` in ``text``."""
    for i, char in enumerate(text):
        if char in CLOSERS:
            span = balanced_span(text, i)
            if span is not None:
                yield span


def unclosed_start(text: str) -> int | None:
    """
    Return the index of the outermost bracket that is never closed.

    Bracket pairs that open and close earlier in the text (``[v2]`` in a
    sentence, say) are skipped. Returns None if every bracket is matched.
    """
    pending: list[tuple[str, int]] = []
    in_string = False
    escaped = False

    for i, char in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char in CLOSERS:
            pending.append((CLOSERS[char], i))
        elif pending and char == pending[-1][0]:
            pending.pop()

    return pending[0][1] if pending else None
