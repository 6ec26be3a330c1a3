"""Default model session backed by litellm."""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any

from .config import ReforgeConfig
from .core.completion import complete as core_complete
from .core.messages import assistant_message, system_message, user_message
from .prompts import DEFAULT_SYSTEM_INSTRUCTIONS, REBUILD_TEMPLATE, rebuild_prompt
from .types import (
    CompletionRequest,
    CompletionResponse,
    ConfigError,
    Message,
    ModelReply,
)

logger = logging.getLogger(__name__)


def _as_text(value: Any) -> str:
    """Pretty-print containers as JSON; pass everything else through str()."""
    if isinstance(value, (dict, list)):
        return json.dumps(value, indent=2, ensure_ascii=False)
    return str(value)


class ChatSession:
    """
    A multi-turn chat with a model, usable as a transformer session.

    Keeps its own message history and serializes calls with a lock, so one
    session can be shared by concurrent transformations without interleaving
    a prompt with someone else's reply.

    Example:
        session = ChatSession(model="gpt-4o-mini")
        await session.seed([
            {"PROMPT": {"name": "Alice"}, "ANSWER": {"role": "data scientist"}},
        ])
        transformer = Transformer(session)
        result = await transformer.transform({"name": "Bob"})
    """

    def __init__(
        self,
        model: str | None = None,
        system_instructions: str | None = None,
        *,
        config: ReforgeConfig | None = None,
        examples_file: str | Path | None = None,
        prompt_key: str = "PROMPT",
        answer_key: str = "ANSWER",
        context_key: str = "CONTEXT",
        explanation_key: str = "EXPLANATION",
        system_key: str = "SYSTEM",
        rebuild_template: str = REBUILD_TEMPLATE,
        temperature: float | None = None,
        top_p: float | None = None,
        max_tokens: int | None = None,
        **kwargs: Any,
    ):
        """
        Initialize the session.

        Args:
            model: litellm model identifier (defaults to config.default_model)
            system_instructions: System prompt (defaults to a JSON transformation prompt)
            config: Configuration; read from the environment when omitted
            examples_file: JSON file with examples, used by seed() when none are passed
            prompt_key: Example key holding the input payload
            answer_key: Example key holding the expected output
            context_key: Example key holding optional context
            explanation_key: Example key holding an optional explanation
            system_key: Key on the last example that replaces the system instructions
            rebuild_template: Jinja template for correction prompts
            temperature: Sampling temperature (defaults to config)
            top_p: Nucleus sampling parameter (defaults to config)
            max_tokens: Maximum tokens in each response
            **kwargs: Additional provider-specific parameters for litellm
        """
        if prompt_key == answer_key:
            raise ConfigError(
                "Source and target keys cannot be the same. Please provide distinct keys."
            )

        self._config = config or ReforgeConfig.from_env()
        self.model = model or self._config.default_model
        self.system_instructions = system_instructions or DEFAULT_SYSTEM_INSTRUCTIONS
        self.examples_file = Path(examples_file) if examples_file else None
        self.prompt_key = prompt_key
        self.answer_key = answer_key
        self.context_key = context_key
        self.explanation_key = explanation_key
        self.system_key = system_key
        self.rebuild_template = rebuild_template
        self.temperature = temperature if temperature is not None else self._config.temperature
        self.top_p = top_p if top_p is not None else self._config.top_p
        self.max_tokens = max_tokens
        self._extra_kwargs = {**self._config.default_kwargs, **kwargs}

        self._history: list[Message] = []
        self._lock = asyncio.Lock()

        logger.debug(f"Created chat session with model: {self.model}")

    @property
    def history(self) -> list[Message]:
        """Get a copy of the conversation history (system prompt excluded)."""
        return list(self._history)

    def _build_messages(self, prompt: str) -> list[Message]:
        messages: list[Message] = []
        if self.system_instructions:
            messages.append(system_message(self.system_instructions))
        messages.extend(self._history)
        messages.append(user_message(prompt))
        return messages

    async def _complete(self, request: CompletionRequest) -> CompletionResponse:
        """Core completion handler - calls litellm."""
        return await core_complete(request)

    async def send(self, prompt: str) -> ModelReply:
        """
        Send one user turn and record the exchange in the history.

        Args:
            prompt: The user message content

        Returns:
            The raw model reply

        Raises:
            CompletionError: If the model call fails (history is left unchanged)
        """
        async with self._lock:
            request = CompletionRequest(
                model=self.model,
                messages=self._build_messages(prompt),
                temperature=self.temperature,
                top_p=self.top_p,
                max_tokens=self.max_tokens,
                timeout=self._config.timeout,
                extra_kwargs=dict(self._extra_kwargs),
            )
            response = await self._complete(request)

            self._history.append(user_message(prompt))
            self._history.append(assistant_message(response.content))

        if response.finish_reason == "length":
            logger.warning(
                f"Response from {response.model} stopped at the output token limit; "
                "it is probably truncated"
            )

        return ModelReply(
            text=response.content,
            usage=response.usage,
            model_version=response.model,
            requested_model=self.model,
            finish_reason=response.finish_reason,
        )

    async def rebuild(self, last_value: Any, error_message: str) -> ModelReply:
        """Ask the model for a corrected payload, quoting the bad one and its error."""
        prompt = rebuild_prompt(last_value, error_message, template=self.rebuild_template)
        return await self.send(prompt)

    def load_examples(self) -> list[dict[str, Any]]:
        """
        Load examples from ``examples_file``.

        The file may hold a list of examples or ``{"examples": [...]}``.

        Raises:
            ConfigError: If no file is configured or it cannot be read
        """
        if self.examples_file is None:
            raise ConfigError("No examples_file configured")
        try:
            data = json.loads(self.examples_file.read_text())
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigError(
                f"Could not load examples from file: {self.examples_file}. "
                "Please check the file path and format."
            ) from e

        if isinstance(data, dict):
            data = data.get("examples", [])
        if not isinstance(data, list):
            raise ConfigError(f"Examples file must contain a list: {self.examples_file}")
        return data

    async def seed(self, examples: list[dict[str, Any]] | None = None) -> list[Message]:
        """
        Seed the history with example transformations.

        Each example becomes a user turn (optional context plus the prompt)
        and an assistant turn holding a ``{"data", "explanation"}`` envelope.
        If the last example carries the system key, its value replaces the
        system instructions.

        Args:
            examples: Examples to add; falls back to ``examples_file``

        Returns:
            The history after seeding
        """
        if not examples:
            if self.examples_file is None:
                logger.debug("No examples provided and no examples file specified. Skipping seeding.")
                return self.history
            logger.debug(f"No examples provided, loading from file: {self.examples_file}")
            examples = self.load_examples()

        if examples and examples[-1].get(self.system_key):
            logger.debug("Found system instructions in examples; replacing system instructions.")
            self.system_instructions = examples[-1][self.system_key]

        logger.debug(f"Seeding chat with {len(examples)} transformation examples...")
        seeded: list[Message] = []
        for example in examples:
            context = example.get(self.context_key)
            prompt = example.get(self.prompt_key)
            answer = example.get(self.answer_key)
            explanation = example.get(self.explanation_key)

            user_text = ""
            if context:
                user_text += f"CONTEXT:\n{_as_text(context)}\n\n"
            if prompt:
                user_text += _as_text(prompt)

            envelope: dict[str, Any] = {}
            if answer:
                envelope["data"] = answer
            if explanation:
                envelope["explanation"] = explanation

            if user_text.strip() and envelope:
                seeded.append(user_message(user_text.strip()))
                seeded.append(assistant_message(json.dumps(envelope, indent=2, ensure_ascii=False)))

        async with self._lock:
            self._history.extend(seeded)

        logger.debug("Transformation examples seeded successfully.")
        return self.history

    async def reset(self) -> None:
        """Clear the conversation history, keeping the system instructions."""
        async with self._lock:
            self._history.clear()
        logger.debug("Chat session reset.")
