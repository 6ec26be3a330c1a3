"""Pytest configuration and fixtures."""

import json
import os
from pathlib import Path
from typing import Any

import pytest

from reforge.types import ModelReply, UsageInfo


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Clean environment variables before each test."""
    # Remove any REFORGE_ env vars that might interfere
    for key in list(os.environ.keys()):
        if key.startswith("REFORGE_"):
            monkeypatch.delenv(key, raising=False)


def make_reply(value: Any, tokens: int = 10, **kwargs: Any) -> ModelReply:
    """Build a reply whose text is ``value`` (JSON-encoded unless already a string)."""
    text = value if isinstance(value, str) else json.dumps(value)
    return ModelReply(
        text=text,
        usage=UsageInfo(prompt_tokens=tokens, response_tokens=tokens, total_tokens=2 * tokens),
        model_version=kwargs.pop("model_version", "fake-model-001"),
        requested_model=kwargs.pop("requested_model", "fake-model"),
        **kwargs,
    )


class FakeSession:
    """
    A scripted session.

    Replies are consumed in order by both send() and rebuild(); the last one
    repeats once the script runs out. Exceptions in the script are raised.
    """

    def __init__(self, *replies: Any):
        self._replies = list(replies)
        self.sent: list[str] = []
        self.rebuilds: list[tuple[Any, str]] = []

    def _next(self) -> Any:
        item = self._replies.pop(0) if len(self._replies) > 1 else self._replies[0]
        if isinstance(item, Exception):
            raise item
        return item

    async def send(self, prompt: str) -> Any:
        self.sent.append(prompt)
        return self._next()

    async def rebuild(self, last_value: Any, error_message: str) -> Any:
        self.rebuilds.append((last_value, error_message))
        return self._next()


class RecordingSleep:
    """Stand-in for asyncio.sleep that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def examples_file(tmp_path: Path) -> Path:
    """Create a temporary examples file."""
    path = tmp_path / "examples.json"
    path.write_text(
        json.dumps(
            [
                {
                    "PROMPT": {"name": "Alice"},
                    "ANSWER": {"profession": "data scientist"},
                    "EXPLANATION": "Alice works with data",
                },
                {
                    "CONTEXT": "Tech company staff",
                    "PROMPT": {"name": "Bob"},
                    "ANSWER": {"profession": "product manager"},
                },
            ]
        )
    )
    return path


@pytest.fixture
def mock_env_file(tmp_path: Path) -> Path:
    """Create a temporary .env file."""
    env_file = tmp_path / ".env"
    env_file.write_text(
        """
REFORGE_DEFAULT_MODEL=gpt-4o-mini
REFORGE_LOG_LEVEL=DEBUG
REFORGE_MAX_RETRIES=5
REFORGE_RETRY_DELAY=0.25
"""
    )
    return env_file
