"""Self-healing transformation loop."""

import asyncio
import json
import logging
import time
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .config import ReforgeConfig
from .observability.logging import StructuredLogger
from .parsing import extract_with_details
from .types import (
    AttemptRecord,
    CompletionError,
    ExtractionError,
    InvalidPayloadError,
    ModelReply,
    ModelSession,
    RebuildError,
    ReforgeError,
    TransformationError,
    TransformOptions,
    Validator,
)
from .usage import UsageAccumulator, UsageSnapshot
from .validators import ensure_validator, run_validator

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


@dataclass
class TransformationReport:
    """The value of a successful transformation plus how it was reached."""

    value: Any
    usage: UsageSnapshot
    attempts: list[AttemptRecord] = field(default_factory=list)


def serialize_payload(payload: Any) -> tuple[Any, str]:
    """
    Normalize a caller payload and render the prompt text for it.

    ``None`` becomes an empty object, strings are sent verbatim, scalars are
    stringified and containers are pretty-printed as JSON.

    Returns:
        The normalized payload and its prompt text

    Raises:
        InvalidPayloadError: If the payload has an unsupported type or cannot
            be serialized
    """
    if payload is None:
        payload = {}
    if isinstance(payload, BaseModel):
        payload = payload.model_dump(mode="json")

    if isinstance(payload, str):
        return payload, payload
    if isinstance(payload, (bool, int, float)):
        return payload, json.dumps(payload)
    if isinstance(payload, (dict, list, tuple)):
        try:
            return payload, json.dumps(payload, indent=2, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise InvalidPayloadError(f"Payload is not JSON-serializable: {e}") from e

    raise InvalidPayloadError(
        "Invalid source payload. Must be a JSON object or string, "
        f"got {type(payload).__name__}"
    )


def _log_before_sleep(retry_state: RetryCallState) -> None:
    delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
    logger.info(f"Retrying transformation in {delay:.2f}s (attempt {retry_state.attempt_number + 1})")


class Transformer:
    """
    Turns payloads into validated structured values using a model session.

    Each call sends the payload, extracts JSON from the reply, unwraps a
    ``{"data": ...}`` envelope and runs the optional validator. Failures are
    fed back to the model through ``session.rebuild()`` with exponential
    backoff until the value passes or the retry budget runs out.

    Example:
        session = ChatSession(model="gpt-4o-mini")
        transformer = Transformer(session, max_retries=2)

        async def has_name(value):
            if "name" not in value:
                raise ValueError("missing 'name'")

        result = await transformer.transform({"id": 7}, validator=has_name)
        print(transformer.get_usage())
    """

    def __init__(
        self,
        session: ModelSession | None = None,
        *,
        config: ReforgeConfig | None = None,
        max_retries: int | None = None,
        retry_delay: float | None = None,
        validator: Validator | None = None,
        unwrap_envelope: bool = True,
        envelope_key: str = "data",
        explanation_key: str = "explanation",
        structured_logger: StructuredLogger | None = None,
        sleep: Sleep = asyncio.sleep,
    ):
        """
        Initialize the transformer.

        Args:
            session: Default session for transform() calls
            config: Configuration; read from the environment when omitted
            max_retries: Retries after the first attempt (defaults to config)
            retry_delay: Seconds before the first retry, doubled each time (defaults to config)
            validator: Default validator for calls that do not pass one
            unwrap_envelope: Whether to unwrap ``{"data": ..., "explanation": ...}`` replies
            envelope_key: Key holding the wrapped value
            explanation_key: Optional key allowed next to the wrapped value
            structured_logger: Structured logger for JSONL attempt logs
            sleep: Awaitable used for backoff delays
        """
        self._config = config or ReforgeConfig.from_env()
        self._session = session
        self.max_retries = max_retries if max_retries is not None else self._config.max_retries
        self.retry_delay = retry_delay if retry_delay is not None else self._config.retry_delay
        _check_budget(self.max_retries, self.retry_delay)
        self.validator = ensure_validator(validator)

        self.unwrap_envelope = unwrap_envelope
        self.envelope_key = envelope_key
        self.explanation_key = explanation_key
        self._structured_logger = structured_logger
        self._sleep = sleep

        # Accumulator of the most recently started transform() call
        self._last_usage: UsageAccumulator | None = None

        logging.basicConfig(level=getattr(logging, self._config.log_level))

    @property
    def config(self) -> ReforgeConfig:
        """Get the current configuration."""
        return self._config

    @property
    def session(self) -> ModelSession | None:
        """Get the default session."""
        return self._session

    def get_usage(self) -> UsageSnapshot | None:
        """
        Get usage for the most recent transform() call.

        Returns:
            Cumulative token and attempt counts, or None if transform() was never called
        """
        if self._last_usage is None:
            return None
        return self._last_usage.snapshot()

    def _unwrap(self, value: Any) -> Any:
        if not self.unwrap_envelope or not isinstance(value, dict):
            return value
        if self.envelope_key not in value:
            return value
        if set(value) - {self.envelope_key, self.explanation_key}:
            return value

        explanation = value.get(self.explanation_key)
        if explanation:
            logger.debug(f"Model explanation: {explanation}")
        if value[self.envelope_key] is None:
            raise ExtractionError(
                f"Model reply wrapped no value: '{self.envelope_key}' is null",
                raw_content=json.dumps(value, default=str),
            )
        return value[self.envelope_key]

    async def _send(self, session: ModelSession, prompt: str) -> ModelReply:
        try:
            reply = await session.send(prompt)
        except ReforgeError:
            raise
        except Exception as e:
            raise CompletionError(f"Transformation request failed: {e}") from e
        return _as_reply(reply)

    async def _rebuild(self, session: ModelSession, last_value: Any, error_message: str) -> ModelReply:
        try:
            reply = await session.rebuild(last_value, error_message)
        except Exception as e:
            raise RebuildError(f"Model call failed while repairing payload: {e}") from e
        return _as_reply(reply)

    async def transform(
        self,
        payload: Any = None,
        options: TransformOptions | dict[str, Any] | None = None,
        validator: Validator | None = None,
        *,
        session: ModelSession | None = None,
    ) -> Any:
        """
        Transform a payload into a structured value.

        Args:
            payload: Dict/list (sent as JSON), string (sent as-is), number or
                bool (stringified), Pydantic model, or None (empty object)
            options: Per-call ``max_retries`` / ``retry_delay`` overrides
            validator: Sync or async callable that raises to reject a value;
                defaults to the validator given at construction
            session: Session to use instead of the default one

        Returns:
            The extracted (and validated) value

        Raises:
            InvalidPayloadError: If the payload cannot be sent (never retried)
            TransformationError: If every attempt failed
        """
        report = await self.transform_detailed(payload, options, validator, session=session)
        return report.value

    async def transform_detailed(
        self,
        payload: Any = None,
        options: TransformOptions | dict[str, Any] | None = None,
        validator: Validator | None = None,
        *,
        session: ModelSession | None = None,
    ) -> TransformationReport:
        """
        Same as transform(), but also return usage and per-attempt records.

        See transform() for full parameter documentation.
        """
        active = session or self._session
        if active is None:
            raise ValueError("No session provided and no default session configured")

        opts = TransformOptions.coerce(options)
        max_retries = opts.max_retries if opts.max_retries is not None else self.max_retries
        retry_delay = opts.retry_delay if opts.retry_delay is not None else self.retry_delay
        _check_budget(max_retries, retry_delay)

        validator = ensure_validator(validator) if validator is not None else self.validator
        original, prompt = serialize_payload(payload)

        usage = UsageAccumulator()
        self._last_usage = usage
        transform_id = str(uuid.uuid4())
        start_time = time.perf_counter()
        total_attempts = max_retries + 1

        last_value: Any = original
        last_error: Exception | None = None

        try:
            async for attempt_state in AsyncRetrying(
                stop=stop_after_attempt(total_attempts),
                wait=wait_exponential(multiplier=retry_delay, exp_base=2),
                retry=retry_if_exception_type(Exception),
                sleep=self._sleep,
                before_sleep=_log_before_sleep,
                reraise=True,
            ):
                with attempt_state:
                    index = attempt_state.retry_state.attempt_number - 1
                    record = AttemptRecord(index=index)
                    reply: ModelReply | None = None

                    try:
                        if index == 0:
                            reply = await self._send(active, prompt)
                        else:
                            feedback = str(last_error)
                            record.feedback = (last_value, feedback)
                            reply = await self._rebuild(active, last_value, feedback)
                        record.usage = reply.usage

                        result = extract_with_details(
                            reply.text,
                            max_trim_attempts=self._config.max_trim_attempts,
                        )
                        value = self._unwrap(result.value)
                        record.value = value
                        record.recovered = result.recovered
                        last_value = value

                        if validator is not None:
                            await run_validator(validator, value)
                    except Exception as e:
                        last_error = e
                        record.error = str(e) or type(e).__name__
                        logger.warning(f"Attempt {index + 1} failed: {record.error}")
                        raise
                    finally:
                        usage.record(reply, record)
                        if self._structured_logger:
                            self._structured_logger.log_attempt(record, transform_id)

                    logger.debug(f"Transformation succeeded on attempt {index + 1}")
                    break

        except Exception as e:
            attempts = usage.attempts
            logger.error(f"All {attempts} attempts failed.")
            error = TransformationError(
                f"Transformation failed after {attempts} attempts. Last error: {e}",
                attempts=attempts,
                last_error=e,
            )
            if self._structured_logger:
                self._structured_logger.log_outcome(
                    transform_id, usage.snapshot(), _elapsed_ms(start_time), error=error
                )
            raise error from e

        report = TransformationReport(
            value=last_value,
            usage=usage.snapshot(),
            attempts=list(usage.records),
        )
        if self._structured_logger:
            self._structured_logger.log_outcome(transform_id, report.usage, _elapsed_ms(start_time))
        return report

    async def transform_once(
        self,
        payload: Any = None,
        *,
        session: ModelSession | None = None,
    ) -> Any:
        """
        Send a payload once and return the extracted value.

        No validator runs and nothing is retried; errors from the session or
        the parser propagate as they are. Usage is recorded as for transform().

        Raises:
            InvalidPayloadError: If the payload cannot be sent
            CompletionError: If the model call fails
            ExtractionError: If the reply holds no usable JSON
        """
        active = session or self._session
        if active is None:
            raise ValueError("No session provided and no default session configured")

        _, prompt = serialize_payload(payload)
        usage = UsageAccumulator()
        self._last_usage = usage

        record = AttemptRecord(index=0)
        reply: ModelReply | None = None
        try:
            reply = await self._send(active, prompt)
            record.usage = reply.usage
            result = extract_with_details(reply.text, max_trim_attempts=self._config.max_trim_attempts)
            record.value = self._unwrap(result.value)
            record.recovered = result.recovered
        except Exception as e:
            record.error = str(e) or type(e).__name__
            raise
        finally:
            usage.record(reply, record)

        return record.value

    def transform_sync(
        self,
        payload: Any = None,
        options: TransformOptions | dict[str, Any] | None = None,
        validator: Validator | None = None,
        **kwargs: Any,
    ) -> Any:
        """
        Synchronous version of transform().

        See transform() for full parameter documentation.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        coro = self.transform(payload, options, validator, **kwargs)
        if loop and loop.is_running():
            # We're in an async context - use thread
            import concurrent.futures

            with concurrent.futures.ThreadPoolExecutor() as executor:
                future = executor.submit(asyncio.run, coro)
                return future.result()
        else:
            return asyncio.run(coro)


def _check_budget(max_retries: int, retry_delay: float) -> None:
    if max_retries < 0:
        raise ValueError(f"max_retries must be >= 0, got {max_retries}")
    if retry_delay < 0:
        raise ValueError(f"retry_delay must be >= 0, got {retry_delay}")


def _as_reply(reply: ModelReply | str) -> ModelReply:
    """Accept sessions that hand back bare text."""
    if isinstance(reply, str):
        return ModelReply(text=reply)
    return reply


def _elapsed_ms(start_time: float) -> float:
    return (time.perf_counter() - start_time) * 1000
