"""Extraction of structured values from raw model output."""

import logging
import re
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import Any

from ..types import ExtractionError
from .recovery import DEFAULT_MAX_TRIM_ATTEMPTS, recover_truncated
from .scan import iter_balanced_spans, loads_strict, parse_structure

logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 200

# Match ```json ... ``` or ``` ... ```
_FENCE_PATTERN = re.compile(r"```(?:json)?[ \t]*\n?([\s\S]*?)\n?\s*```", re.IGNORECASE)

_GREEDY_PATTERNS = (
    re.compile(r"\{[\s\S]*\}"),
    re.compile(r"\[[\s\S]*\]"),
)

# Conversational lead-ins, anchored at the start of the text
_PREAMBLE_PATTERNS = (
    re.compile(r"^\s*Sure,?\s*here\s+is\s+your?\s+.*?[:\n]", re.IGNORECASE),
    re.compile(r"^\s*Here\s+is\s+the\s+.*?[:\n]", re.IGNORECASE),
    re.compile(r"^\s*The\s+.*?is\s*[:\n]", re.IGNORECASE),
)

_BLOCK_COMMENT = re.compile(r"/\*[\s\S]*?\*/")
_LINE_COMMENT = re.compile(r"//.*$", re.MULTILINE)


@dataclass
class ExtractionResult:
    """The outcome of a successful extraction."""

    value: Any
    strategy: str
    # True when the value came from truncation recovery
    recovered: bool = False


def _fenced(text: str) -> Iterator[str]:
    for match in _FENCE_PATTERN.finditer(text):
        yield match.group(1).strip()


def _greedy(text: str) -> Iterator[str]:
    for pattern in _GREEDY_PATTERNS:
        match = pattern.search(text)
        if match:
            yield match.group(0).strip()


def _structural(text: str) -> Iterator[str]:
    yield from iter_balanced_spans(text)


def _cleaned(text: str) -> Iterator[str]:
    cleaned = text
    for pattern in _PREAMBLE_PATTERNS:
        cleaned = pattern.sub("", cleaned)
    cleaned = _BLOCK_COMMENT.sub("", cleaned)
    cleaned = _LINE_COMMENT.sub("", cleaned)
    yield cleaned.strip()


# Tried in order; the first candidate that parses wins
STRATEGIES: tuple[tuple[str, Callable[[str], Iterator[str]]], ...] = (
    ("fenced", _fenced),
    ("greedy", _greedy),
    ("structural", _structural),
    ("cleaned", _cleaned),
)


def extract_with_details(
    text: str,
    *,
    max_trim_attempts: int = DEFAULT_MAX_TRIM_ATTEMPTS,
) -> ExtractionResult:
    """
    Extract a structured value from model output and report how it was found.

    Strategies run in order: direct parse, fenced code blocks, greedy
    bracket spans, a depth-aware structural scan, preamble and comment
    stripping, and finally truncation recovery.

    Args:
        text: The raw response content from the model
        max_trim_attempts: Bound on characters trimmed during truncation recovery

    Returns:
        An ExtractionResult with the value and the winning strategy

    Raises:
        ExtractionError: If no strategy produces a JSON object or array
    """
    if not isinstance(text, str) or not text.strip():
        raise ExtractionError("No text provided for JSON extraction", raw_content=None)

    stripped = text.strip()

    # A complete JSON document of any kind is taken as-is (NaN and Infinity are not JSON)
    try:
        return ExtractionResult(value=loads_strict(stripped), strategy="direct")
    except (ValueError, RecursionError):
        pass

    for name, strategy in STRATEGIES:
        for candidate in strategy(stripped):
            ok, value = parse_structure(candidate)
            if ok:
                logger.debug(f"Extracted JSON using {name} strategy")
                return ExtractionResult(value=value, strategy=name)

    ok, value = recover_truncated(stripped, max_trim_attempts=max_trim_attempts)
    if ok:
        logger.warning(
            "Recovered JSON from truncated model output; the response was likely cut off"
        )
        return ExtractionResult(value=value, strategy="truncation", recovered=True)

    raise ExtractionError(
        "Could not extract valid JSON from model response. "
        f"Response preview: {text[:PREVIEW_LENGTH]}...",
        raw_content=text,
    )


def extract(text: str, *, max_trim_attempts: int = DEFAULT_MAX_TRIM_ATTEMPTS) -> Any:
    """
    Extract a structured value from model output.

    Handles markdown code fences, conversational preambles, comments and
    output that was cut off mid-structure.

    Args:
        text: The raw response content from the model
        max_trim_attempts: Bound on characters trimmed during truncation recovery

    Returns:
        The parsed JSON value

    Raises:
        ExtractionError: If no JSON could be extracted
    """
    return extract_with_details(text, max_trim_attempts=max_trim_attempts).value


def parse_json_response(content: str) -> Any:
    """Parse JSON from an LLM response; alias of :func:`extract`."""
    return extract(content)
