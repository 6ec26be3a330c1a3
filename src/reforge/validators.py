"""Validator helpers."""

import inspect
from typing import Any

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from .types import ValidationError, Validator


def ensure_validator(validator: Any) -> Validator | None:
    """
    Check a validator at the API boundary.

    Raises:
        TypeError: If ``validator`` is given but not callable
    """
    if validator is None:
        return None
    if not callable(validator):
        raise TypeError(
            f"validator must be a callable, got {type(validator).__name__}"
        )
    return validator


async def run_validator(validator: Validator, value: Any) -> None:
    """
    Run a validator against a value, awaiting it if it is async.

    Whatever the validator returns is ignored; only raising rejects the value.

    Raises:
        ValidationError: If the validator rejects the value. Other exceptions
            are wrapped with their message preserved.
    """
    try:
        result = validator(value)
        if inspect.isawaitable(result):
            await result
    except ValidationError:
        raise
    except Exception as e:
        raise ValidationError(str(e) or type(e).__name__, errors=[e]) from e


def model_validator(model: type[BaseModel]) -> Validator:
    """
    Build a validator that checks values against a Pydantic model.

    Args:
        model: The Pydantic model class to validate against

    Returns:
        An async validator raising ValidationError with one line per field error
    """

    async def validate(value: Any) -> None:
        try:
            model.model_validate(value)
        except PydanticValidationError as e:
            errors = e.errors()
            error_messages = []
            for err in errors:
                loc = ".".join(str(x) for x in err["loc"])
                msg = err["msg"]
                if loc:
                    error_messages.append(f"  - {loc}: {msg}")
                else:
                    error_messages.append(f"  - {msg}")

            raise ValidationError(
                "Validation failed:\n" + "\n".join(error_messages),
                errors=[dict(err) for err in errors],
            ) from e

    validate.__name__ = f"validate_{model.__name__}"
    return validate
