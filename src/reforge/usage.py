"""Per-call usage accounting for transformations."""

from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from typing import Any

from .types import AttemptRecord, ModelReply


@dataclass
class UsageSnapshot:
    """Cumulative token and attempt counts for one transformation."""

    prompt_tokens: int = 0
    response_tokens: int = 0
    total_tokens: int = 0
    attempts: int = 0
    # Metadata from the most recent attempt
    model_version: str | None = None
    requested_model: str | None = None
    timestamp: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)


@dataclass
class UsageAccumulator:
    """
    Accumulates usage across the attempts of a single transformation.

    One accumulator belongs to exactly one ``transform()`` call, so
    concurrent calls never add to each other's totals.

    Example:
        usage = UsageAccumulator()
        usage.record(reply)
        print(usage.snapshot().total_tokens)
    """

    prompt_tokens: int = 0
    response_tokens: int = 0
    total_tokens: int = 0
    attempts: int = 0
    model_version: str | None = None
    requested_model: str | None = None
    timestamp: str | None = None
    records: list[AttemptRecord] = field(default_factory=list)

    def record(self, reply: ModelReply | None, attempt: AttemptRecord | None = None) -> None:
        """
        Count one attempt.

        Args:
            reply: The model reply for the attempt, or None if the call failed
            attempt: Optional attempt record to keep alongside the totals
        """
        self.attempts += 1
        self.timestamp = datetime.now(UTC).isoformat()

        if attempt is not None:
            self.records.append(attempt)

        if reply is None:
            return

        if reply.usage is not None:
            self.prompt_tokens += reply.usage.prompt_tokens
            self.response_tokens += reply.usage.response_tokens
            self.total_tokens += reply.usage.total_tokens
        if reply.model_version is not None:
            self.model_version = reply.model_version
        if reply.requested_model is not None:
            self.requested_model = reply.requested_model

    def snapshot(self) -> UsageSnapshot:
        """Get a copy of the current totals."""
        return UsageSnapshot(
            prompt_tokens=self.prompt_tokens,
            response_tokens=self.response_tokens,
            total_tokens=self.total_tokens,
            attempts=self.attempts,
            model_version=self.model_version,
            requested_model=self.requested_model,
            timestamp=self.timestamp,
        )
