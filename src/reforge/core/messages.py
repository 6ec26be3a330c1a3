"""Message formatting utilities."""

from ..types import Message


def user_message(content: str) -> Message:
    """Create a user message."""
    return {"role": "user", "content": content}


def system_message(content: str) -> Message:
    """Create a system message."""
    return {"role": "system", "content": content}


def assistant_message(content: str) -> Message:
    """Create an assistant message."""
    return {"role": "assistant", "content": content}
