"""
Reforge - self-healing structured output for LLM transformations.

Features:
- Robust JSON extraction from decorated or truncated model output
- Validator-driven retries that feed errors back to the model
- Exponential backoff with per-call usage accounting
- litellm-backed chat sessions with few-shot example seeding
- Structured JSONL attempt logging
"""

from .config import ReforgeConfig, load_env_files
from .observability import StructuredLogger
from .orchestrator import TransformationReport, Transformer, serialize_payload
from .parsing import ExtractionResult, extract, extract_with_details, parse_json_response
from .prompts import DEFAULT_SYSTEM_INSTRUCTIONS, REBUILD_TEMPLATE, rebuild_prompt
from .session import ChatSession
from .types import (
    AttemptRecord,
    CompletionError,
    CompletionRequest,
    CompletionResponse,
    ConfigError,
    ExtractionError,
    InvalidPayloadError,
    Message,
    Messages,
    ModelReply,
    ModelSession,
    RebuildError,
    ReforgeError,
    TemplateError,
    TransformationError,
    TransformOptions,
    UsageInfo,
    ValidationError,
    Validator,
)
from .usage import UsageAccumulator, UsageSnapshot
from .validators import model_validator

__version__ = "0.1.0"

__all__ = [
    # Orchestration
    "Transformer",
    "TransformOptions",
    "TransformationReport",
    "serialize_payload",
    # Parsing
    "extract",
    "extract_with_details",
    "parse_json_response",
    "ExtractionResult",
    # Usage
    "UsageAccumulator",
    "UsageSnapshot",
    "UsageInfo",
    # Sessions
    "ModelSession",
    "ModelReply",
    "ChatSession",
    "CompletionRequest",
    "CompletionResponse",
    "Message",
    "Messages",
    # Prompts
    "DEFAULT_SYSTEM_INSTRUCTIONS",
    "REBUILD_TEMPLATE",
    "rebuild_prompt",
    # Validation
    "Validator",
    "model_validator",
    "AttemptRecord",
    # Configuration
    "ReforgeConfig",
    "load_env_files",
    # Observability
    "StructuredLogger",
    # Exceptions
    "ReforgeError",
    "InvalidPayloadError",
    "ExtractionError",
    "ValidationError",
    "CompletionError",
    "RebuildError",
    "TransformationError",
    "TemplateError",
    "ConfigError",
]
