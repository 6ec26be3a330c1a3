"""Core completion logic using litellm."""

import litellm

from ..types import (
    CompletionError,
    CompletionRequest,
    CompletionResponse,
    UsageInfo,
)


async def complete(request: CompletionRequest) -> CompletionResponse:
    """
    Execute a completion request using litellm.

    This is the lowest-level async completion function.
    It handles the litellm API call and response parsing.

    Args:
        request: The completion request

    Returns:
        CompletionResponse with the model's response

    Raises:
        CompletionError: If the API call fails
    """
    kwargs = request.to_litellm_kwargs()

    try:
        response = await litellm.acompletion(**kwargs)
    except litellm.exceptions.APIConnectionError as e:
        raise CompletionError(f"API connection error: {e}", response=e) from e
    except litellm.exceptions.RateLimitError as e:
        raise CompletionError(
            f"Rate limit exceeded: {e}",
            status_code=429,
            response=e,
        ) from e
    except litellm.exceptions.APIError as e:
        raise CompletionError(
            f"API error: {e}",
            status_code=getattr(e, "status_code", None),
            response=e,
        ) from e
    except Exception as e:
        raise CompletionError(f"Completion failed: {e}", response=e) from e

    content = ""
    finish_reason = None

    if response.choices:
        choice = response.choices[0]
        if choice.message and choice.message.content:
            content = choice.message.content
        finish_reason = getattr(choice, "finish_reason", None)

    usage = getattr(response, "usage", None)
    return CompletionResponse(
        content=content,
        model=response.model or request.model,
        finish_reason=finish_reason,
        usage=UsageInfo.from_litellm(usage.model_dump() if usage else None),
        raw_response=response,
    )
