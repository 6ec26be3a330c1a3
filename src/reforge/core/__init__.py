"""Core completion functionality."""

from .completion import complete
from .messages import assistant_message, system_message, user_message

__all__ = [
    "complete",
    "user_message",
    "system_message",
    "assistant_message",
]
