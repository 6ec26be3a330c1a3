"""Structured logging for reforge transformations."""

import json
import sys
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, TextIO

from ..types import AttemptRecord
from ..usage import UsageSnapshot


@dataclass
class AttemptLogEntry:
    """A structured log entry for one attempt."""

    transform_id: str
    timestamp: str
    attempt: int
    succeeded: bool
    value: Any
    error: str | None
    recovered: bool
    prompt_tokens: int
    response_tokens: int
    total_tokens: int

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "type": "attempt",
            "transform_id": self.transform_id,
            "timestamp": self.timestamp,
            "attempt": self.attempt,
            "succeeded": self.succeeded,
            "value": self.value,
            "error": self.error,
            "recovered": self.recovered,
            "usage": {
                "prompt_tokens": self.prompt_tokens,
                "response_tokens": self.response_tokens,
                "total_tokens": self.total_tokens,
            },
        }


class StructuredLogger:
    """
    A structured logger that outputs JSON-formatted log entries.

    Writes one line per attempt and one per finished transformation, to a
    file, stdout, or both.

    Example:
        logger = StructuredLogger(
            log_file="./logs/transforms.jsonl",
            include_values=True,
        )
        transformer = Transformer(session, structured_logger=logger)
    """

    def __init__(
        self,
        log_file: str | Path | None = None,
        include_values: bool = True,
        max_content_length: int | None = None,
        redact_patterns: list[str] | None = None,
        stdout: bool = False,
    ):
        """
        Initialize the structured logger.

        Args:
            log_file: Path to log file (JSONL format). None disables file logging.
            include_values: Whether to include extracted values in logs
            max_content_length: Max length of logged values and errors (None = unlimited)
            redact_patterns: Patterns to redact from logs (e.g., API keys)
            stdout: Whether to also log to stdout
        """
        self._log_file: Path | None = Path(log_file) if log_file else None
        self._include_values = include_values
        self._max_content_length = max_content_length
        self._redact_patterns = redact_patterns or []
        self._stdout = stdout
        self._file_handle: TextIO | None = None

        if self._log_file:
            self._log_file.parent.mkdir(parents=True, exist_ok=True)
            self._file_handle = open(self._log_file, "a")

    def _get_timestamp(self) -> str:
        """Get current timestamp in ISO format."""
        return datetime.now(UTC).isoformat()

    def _redact(self, text: str) -> str:
        """Redact sensitive patterns from text."""
        for pattern in self._redact_patterns:
            text = text.replace(pattern, "[REDACTED]")
        return text

    def _truncate(self, text: str) -> str:
        """Truncate text if max length is set."""
        if self._max_content_length and len(text) > self._max_content_length:
            return text[: self._max_content_length] + "... [truncated]"
        return text

    def _clean(self, text: str | None) -> str | None:
        if text is None:
            return None
        return self._truncate(self._redact(text))

    def _write_entry(self, entry: dict[str, Any]) -> None:
        """Write a log entry."""
        json_str = json.dumps(entry, default=str)

        if self._file_handle:
            self._file_handle.write(json_str + "\n")
            self._file_handle.flush()

        if self._stdout:
            print(json_str, file=sys.stdout)

    def log_attempt(self, record: AttemptRecord, transform_id: str) -> None:
        """
        Log one attempt of a transformation.

        Args:
            record: The attempt record
            transform_id: ID shared by all attempts of one transform() call
        """
        value = None
        if self._include_values and record.value is not None:
            value = self._clean(json.dumps(record.value, default=str))

        usage = record.usage
        entry = AttemptLogEntry(
            transform_id=transform_id,
            timestamp=self._get_timestamp(),
            attempt=record.index,
            succeeded=record.succeeded,
            value=value,
            error=self._clean(record.error),
            recovered=record.recovered,
            prompt_tokens=usage.prompt_tokens if usage else 0,
            response_tokens=usage.response_tokens if usage else 0,
            total_tokens=usage.total_tokens if usage else 0,
        )

        self._write_entry(entry.to_dict())

    def log_outcome(
        self,
        transform_id: str,
        usage: UsageSnapshot,
        latency_ms: float,
        error: Exception | None = None,
    ) -> None:
        """
        Log the end of a transformation.

        Args:
            transform_id: The transformation ID
            usage: Cumulative usage for the call
            latency_ms: Wall-clock time of the whole call in milliseconds
            error: The aggregate error if the call failed
        """
        entry = {
            "type": "outcome",
            "transform_id": transform_id,
            "timestamp": self._get_timestamp(),
            "succeeded": error is None,
            "error": self._clean(str(error)) if error else None,
            "error_type": type(error).__name__ if error else None,
            "usage": usage.to_dict(),
            "latency_ms": latency_ms,
        }

        self._write_entry(entry)

    def close(self) -> None:
        """Close the log file."""
        if self._file_handle:
            self._file_handle.close()
            self._file_handle = None
