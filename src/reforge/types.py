"""Shared types and protocols for reforge."""

from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Literal, Protocol, TypedDict

# Type aliases for messages
Role = Literal["system", "user", "assistant"]


class MessageDict(TypedDict, total=False):
    """A chat message in dictionary form."""

    role: Role
    content: str
    name: str


Message = MessageDict | dict[str, Any]
Messages = Sequence[Message]

# A validator accepts a value by returning and rejects it by raising.
Validator = Callable[[Any], Awaitable[None] | None]


@dataclass
class CompletionRequest:
    """A request to complete a chat conversation."""

    model: str
    messages: Messages = ()
    temperature: float | None = None
    max_tokens: int | None = None
    top_p: float | None = None
    stop: str | list[str] | None = None
    timeout: float | None = None
    # Additional kwargs passed through to litellm
    extra_kwargs: dict[str, Any] = field(default_factory=dict)

    def to_litellm_kwargs(self) -> dict[str, Any]:
        """Convert to kwargs dict for litellm.acompletion()."""
        kwargs: dict[str, Any] = {
            "model": self.model,
            "messages": list(self.messages),
        }

        if self.temperature is not None:
            kwargs["temperature"] = self.temperature
        if self.max_tokens is not None:
            kwargs["max_tokens"] = self.max_tokens
        if self.top_p is not None:
            kwargs["top_p"] = self.top_p
        if self.stop is not None:
            kwargs["stop"] = self.stop
        if self.timeout is not None:
            kwargs["timeout"] = self.timeout

        kwargs.update(self.extra_kwargs)

        return kwargs


@dataclass
class UsageInfo:
    """Token usage information for a single model call."""

    prompt_tokens: int = 0
    response_tokens: int = 0
    total_tokens: int = 0

    @classmethod
    def from_litellm(cls, usage: dict[str, Any] | None) -> "UsageInfo":
        """Create from litellm usage dict."""
        if not usage:
            return cls()
        prompt = usage.get("prompt_tokens") or 0
        response = usage.get("completion_tokens") or 0
        return cls(
            prompt_tokens=prompt,
            response_tokens=response,
            total_tokens=usage.get("total_tokens") or prompt + response,
        )


@dataclass
class CompletionResponse:
    """A response from a completion request."""

    content: str
    model: str
    finish_reason: str | None = None
    usage: UsageInfo | None = None
    raw_response: Any = None


@dataclass
class ModelReply:
    """
    What a session hands back for one send or rebuild call.

    ``text`` is the raw model output, untouched. Usage and model metadata
    are optional because not every transport reports them.
    """

    text: str
    usage: UsageInfo | None = None
    model_version: str | None = None
    requested_model: str | None = None
    finish_reason: str | None = None

    @property
    def truncated(self) -> bool:
        """Whether the transport reported the output was cut off."""
        return self.finish_reason == "length"


@dataclass
class AttemptRecord:
    """Bookkeeping for one attempt of a transformation."""

    index: int
    feedback: tuple[Any, str] | None = None
    value: Any = None
    error: str | None = None
    usage: UsageInfo | None = None
    recovered: bool = False
    timestamp: str = field(default_factory=lambda: datetime.now(UTC).isoformat())

    @property
    def succeeded(self) -> bool:
        return self.error is None


# Session protocol
class ModelSession(Protocol):
    """
    A live conversation with a model.

    The orchestrator only ever calls these two methods. Sessions own their
    own history and are responsible for ordering concurrent calls.
    """

    async def send(self, prompt: str) -> ModelReply:
        """Send one prompt and return the raw reply."""
        ...

    async def rebuild(self, last_value: Any, error_message: str) -> ModelReply:
        """Ask the model to correct ``last_value`` given ``error_message``."""
        ...


# Configuration types
@dataclass
class TransformOptions:
    """Per-call overrides for a transformation."""

    max_retries: int | None = None
    # Seconds before the first retry; doubles after every failure
    retry_delay: float | None = None

    @classmethod
    def coerce(cls, options: "TransformOptions | dict[str, Any] | None") -> "TransformOptions":
        """Accept an options object, a plain mapping, or nothing."""
        if options is None:
            return cls()
        if isinstance(options, cls):
            return options
        if isinstance(options, dict):
            unknown = set(options) - {"max_retries", "retry_delay"}
            if unknown:
                raise ValueError(f"Unknown transform options: {', '.join(sorted(unknown))}")
            return cls(
                max_retries=options.get("max_retries"),
                retry_delay=options.get("retry_delay"),
            )
        raise TypeError(f"options must be TransformOptions or dict, got {type(options).__name__}")


# Exceptions
class ReforgeError(Exception):
    """Base exception for reforge errors."""

    pass


class InvalidPayloadError(ReforgeError, ValueError):
    """The caller passed a payload that cannot be sent to the model."""

    pass


class ExtractionError(ReforgeError):
    """No structured value could be extracted from model output."""

    def __init__(self, message: str, raw_content: str | None = None):
        super().__init__(message)
        self.raw_content = raw_content


class ValidationError(ReforgeError):
    """An extracted value was rejected by the validator."""

    def __init__(self, message: str, errors: list[Any] | None = None):
        super().__init__(message)
        self.errors = errors or []


class CompletionError(ReforgeError):
    """Error during a completion request."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response: Any = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response = response


class RebuildError(ReforgeError):
    """The request asking the model for a corrected value failed."""

    pass


class TransformationError(ReforgeError):
    """Every attempt of a transformation failed."""

    def __init__(
        self,
        message: str,
        attempts: int,
        last_error: BaseException | None = None,
    ):
        super().__init__(message)
        self.attempts = attempts
        self.last_error = last_error


class TemplateError(ReforgeError):
    """Prompt template rendering error."""

    pass


class ConfigError(ReforgeError):
    """Configuration error."""

    pass
