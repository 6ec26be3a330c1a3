"""Tests for the litellm-backed chat session."""

import json
import logging
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from reforge import ChatSession, CompletionError, ConfigError, ReforgeConfig
from reforge.prompts import DEFAULT_SYSTEM_INSTRUCTIONS
from reforge.types import CompletionResponse, UsageInfo


@pytest.fixture
def session() -> ChatSession:
    return ChatSession(model="gpt-4o-mini", config=ReforgeConfig())


@pytest.fixture
def mock_response() -> CompletionResponse:
    return CompletionResponse(
        content='{"profession": "engineer"}',
        model="gpt-4o-mini-2024-07-18",
        finish_reason="stop",
        usage=UsageInfo(prompt_tokens=12, response_tokens=8, total_tokens=20),
    )


class TestChatSessionInit:
    """Tests for session construction."""

    def test_defaults_from_config(self):
        config = ReforgeConfig(default_model="claude-3-haiku", temperature=0.0, top_p=0.5)
        session = ChatSession(config=config)
        assert session.model == "claude-3-haiku"
        assert session.temperature == 0.0
        assert session.top_p == 0.5
        assert session.system_instructions == DEFAULT_SYSTEM_INSTRUCTIONS

    def test_explicit_values_win(self):
        session = ChatSession("gpt-4o", "Be terse.", config=ReforgeConfig(), temperature=0.9)
        assert session.model == "gpt-4o"
        assert session.system_instructions == "Be terse."
        assert session.temperature == 0.9

    def test_same_prompt_and_answer_key(self):
        with pytest.raises(ConfigError, match="cannot be the same"):
            ChatSession(config=ReforgeConfig(), prompt_key="IN", answer_key="IN")


class TestSend:
    """Tests for send() and rebuild()."""

    async def test_send_builds_request_and_records_history(
        self, session: ChatSession, mock_response: CompletionResponse
    ):
        with patch.object(session, "_complete", new_callable=AsyncMock) as mock_complete:
            mock_complete.return_value = mock_response

            reply = await session.send('{"name": "Ada"}')

            request = mock_complete.call_args.args[0]
            assert request.model == "gpt-4o-mini"
            assert request.messages[0]["role"] == "system"
            assert request.messages[-1] == {"role": "user", "content": '{"name": "Ada"}'}
            assert request.temperature == 0.2

        assert reply.text == '{"profession": "engineer"}'
        assert reply.usage.total_tokens == 20
        assert reply.model_version == "gpt-4o-mini-2024-07-18"
        assert reply.requested_model == "gpt-4o-mini"
        assert [m["role"] for m in session.history] == ["user", "assistant"]

    async def test_history_is_sent_with_later_prompts(
        self, session: ChatSession, mock_response: CompletionResponse
    ):
        with patch.object(session, "_complete", new_callable=AsyncMock) as mock_complete:
            mock_complete.return_value = mock_response
            await session.send("first")
            await session.send("second")

            request = mock_complete.call_args.args[0]
            assert [m["content"] for m in request.messages[1:]] == [
                "first",
                mock_response.content,
                "second",
            ]

    async def test_failed_send_leaves_history_unchanged(self, session: ChatSession):
        with patch.object(session, "_complete", new_callable=AsyncMock) as mock_complete:
            mock_complete.side_effect = CompletionError("API error: overloaded", status_code=529)
            with pytest.raises(CompletionError):
                await session.send("hello")
        assert session.history == []

    async def test_length_finish_reason_warns(self, session: ChatSession, caplog):
        caplog.set_level(logging.WARNING)
        response = CompletionResponse(content='{"a": [1', model="gpt-4o-mini", finish_reason="length")
        with patch.object(session, "_complete", new_callable=AsyncMock, return_value=response):
            reply = await session.send("go")
        assert reply.truncated is True
        assert any("truncated" in record.message for record in caplog.records)

    async def test_rebuild_quotes_value_and_error(
        self, session: ChatSession, mock_response: CompletionResponse
    ):
        with patch.object(session, "_complete", new_callable=AsyncMock) as mock_complete:
            mock_complete.return_value = mock_response
            await session.rebuild({"profession": 42}, "profession must be a string")

            prompt = mock_complete.call_args.args[0].messages[-1]["content"]

        assert "BAD PAYLOAD" in prompt
        assert json.dumps({"profession": 42}, indent=2) in prompt
        assert "profession must be a string" in prompt
        assert "Respond with JSON only" in prompt

    async def test_custom_rebuild_template(self, mock_response: CompletionResponse):
        session = ChatSession(
            config=ReforgeConfig(),
            rebuild_template="Fix {{ payload | json_pretty }} because {{ error }}",
        )
        with patch.object(session, "_complete", new_callable=AsyncMock) as mock_complete:
            mock_complete.return_value = mock_response
            await session.rebuild([1], "too short")
            prompt = mock_complete.call_args.args[0].messages[-1]["content"]

        assert prompt == "Fix [\n  1\n] because too short"


class TestSeeding:
    """Tests for few-shot example seeding."""

    async def test_seed_examples(self, session: ChatSession):
        history = await session.seed(
            [
                {
                    "PROMPT": {"name": "Alice"},
                    "ANSWER": {"profession": "data scientist"},
                    "EXPLANATION": "inferred from role",
                },
                {"CONTEXT": "Startup staff", "PROMPT": "Bob", "ANSWER": {"profession": "PM"}},
            ]
        )

        assert [m["role"] for m in history] == ["user", "assistant", "user", "assistant"]
        assert json.loads(history[0]["content"]) == {"name": "Alice"}
        assert json.loads(history[1]["content"]) == {
            "data": {"profession": "data scientist"},
            "explanation": "inferred from role",
        }
        assert history[2]["content"] == "CONTEXT:\nStartup staff\n\nBob"
        assert json.loads(history[3]["content"]) == {"data": {"profession": "PM"}}

    async def test_incomplete_examples_are_skipped(self, session: ChatSession):
        history = await session.seed([{"PROMPT": "only a prompt"}, {"ANSWER": {"a": 1}}])
        assert history == []

    async def test_system_key_on_last_example(self, session: ChatSession):
        await session.seed(
            [{"PROMPT": "a", "ANSWER": "b", "SYSTEM": "You are a translator."}]
        )
        assert session.system_instructions == "You are a translator."

    async def test_custom_keys(self):
        session = ChatSession(config=ReforgeConfig(), prompt_key="INPUT", answer_key="OUTPUT")
        history = await session.seed([{"INPUT": "x", "OUTPUT": "y"}])
        assert history[0]["content"] == "x"
        assert json.loads(history[1]["content"]) == {"data": "y"}

    async def test_seed_from_file(self, examples_file: Path):
        session = ChatSession(config=ReforgeConfig(), examples_file=examples_file)
        history = await session.seed()
        assert len(history) == 4
        assert history[2]["content"].startswith("CONTEXT:\nTech company staff")

    async def test_seed_from_wrapped_file(self, tmp_path: Path):
        path = tmp_path / "wrapped.json"
        path.write_text(json.dumps({"examples": [{"PROMPT": "p", "ANSWER": "a"}]}))
        session = ChatSession(config=ReforgeConfig(), examples_file=path)
        assert len(await session.seed()) == 2

    async def test_missing_examples_file(self, tmp_path: Path):
        session = ChatSession(config=ReforgeConfig(), examples_file=tmp_path / "missing.json")
        with pytest.raises(ConfigError, match="Could not load examples"):
            await session.seed()

    async def test_nothing_to_seed(self, session: ChatSession):
        assert await session.seed() == []

    async def test_reset_clears_history(self, session: ChatSession):
        await session.seed([{"PROMPT": "a", "ANSWER": "b"}])
        await session.reset()
        assert session.history == []
        assert session.system_instructions == DEFAULT_SYSTEM_INSTRUCTIONS
