"""Response parsing: raw model text to structured values."""

from .extract import (
    PREVIEW_LENGTH,
    STRATEGIES,
    ExtractionResult,
    extract,
    extract_with_details,
    parse_json_response,
)
from .recovery import DEFAULT_MAX_TRIM_ATTEMPTS, close_structure, recover_truncated
from .scan import (
    balanced_span,
    iter_balanced_spans,
    loads_strict,
    parse_structure,
    scan_balance,
    unclosed_start,
)

__all__ = [
    # Extraction
    "extract",
    "extract_with_details",
    "parse_json_response",
    "ExtractionResult",
    "STRATEGIES",
    "PREVIEW_LENGTH",
    # Truncation recovery
    "recover_truncated",
    "close_structure",
    "DEFAULT_MAX_TRIM_ATTEMPTS",
    # Scanning
    "parse_structure",
    "scan_balance",
    "balanced_span",
    "iter_balanced_spans",
    "unclosed_start",
    "loads_strict",
]
