"""Recovery of JSON output that was cut off mid-structure.

Models stop writing when they hit an output-token ceiling, which leaves
objects and arrays unterminated. The helpers here close what was left open,
trimming trailing characters when the tail is too mangled to close as-is.
Recovered values are plausible rather than exact: trimming can drop the
last partially written member.

Recovery is the last step of the extraction chain. When a reply is cut off
after an inner element has already closed, the structural scan finds that
element first and returns it as a complete value, without the recovered
flag. Callers that need the outer structure should validate its shape.
"""

import logging
from typing import Any

from .scan import CLOSERS, parse_structure, scan_balance, unclosed_start

logger = logging.getLogger(__name__)

DEFAULT_MAX_TRIM_ATTEMPTS = 100

# Closers are only appended to trimmed text after this many trims
CLOSE_AFTER_TRIMS = 5


def close_structure(text: str, pending: list[str], in_string: bool) -> str:
    """Append a closing quote (if needed) and the owed closers in LIFO order."""
    suffix = '"' if in_string else ""
    return text + suffix + "".join(reversed(pending))


def recover_truncated(
    text: str,
    max_trim_attempts: int = DEFAULT_MAX_TRIM_ATTEMPTS,
) -> tuple[bool, Any]:
    """
    Try to recover an object or array from truncated JSON text.

    Recovery starts at the outermost bracket that is never closed, so
    leading prose (including bracketed asides such as ``[v2]``) or an
    unterminated code fence does not get in the way. Text where every
    bracket is matched starts at its first ``{`` or ``[``.

    Args:
        text: The raw text
        max_trim_attempts: Maximum number of trailing characters to trim

    Returns:
        ``(True, value)`` if a candidate parsed, ``(False, None)`` otherwise
    """
    start = unclosed_start(text)
    if start is None:
        starts = [i for i in (text.find(c) for c in CLOSERS) if i != -1]
        if not starts:
            return False, None
        start = min(starts)
    body = text[start:].rstrip()

    pending, in_string = scan_balance(body)
    if pending or in_string:
        ok, value = parse_structure(close_structure(body, pending, in_string))
        if ok:
            logger.debug(f"Closed {len(pending)} open bracket(s) without trimming")
            return True, value

    for trims in range(1, min(max_trim_attempts, len(body) - 1) + 1):
        candidate = body[:-trims]
        pending, in_string = scan_balance(candidate)

        if not pending and not in_string:
            ok, value = parse_structure(candidate)
            if ok:
                logger.debug(f"Recovered balanced prefix after trimming {trims} char(s)")
                return True, value

        if trims > CLOSE_AFTER_TRIMS:
            ok, value = parse_structure(close_structure(candidate, pending, in_string))
            if ok:
                logger.debug(f"Recovered by trimming {trims} char(s) and closing brackets")
                return True, value

    return False, None
