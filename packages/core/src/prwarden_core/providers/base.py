"""Base agent implementing the Template Method pattern.

All providers share the same tool-calling loop:
    generate() → _add_user_text()
               → _call_with_retry() → _call_api()        ← differs per provider
               → ToolRegistry.invoke() for each tool use
               → _add_tool_results()                     ← differs per provider
               → repeat until the model stops asking for tools

Subclasses implement the provider's message format only:
  - _call_api: one raw model call returning a ModelTurn
  - _add_user_text / _add_tool_results: append to the provider-native history

Conversation history is kept per session id, so a second generate() call in
the same session (description enhancement after the review) continues the
conversation the model already has.
"""

from __future__ import annotations

import json
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from prwarden_core.errors import AgentError, ToolError
from prwarden_core.tools.base import ToolSpec
from prwarden_core.tools.registry import Recorder, ToolRegistry

logger = logging.getLogger(__name__)

_MAX_RETRIES = 3
_MAX_TOKENS = 8192
MAX_TOOL_ROUNDS = 200


@dataclass
class ToolUse:
    id: str
    name: str
    arguments: dict


@dataclass
class ModelTurn:
    """One model reply: its text, the tools it asked for and the tokens it cost."""

    text: str
    tool_uses: list[ToolUse] = field(default_factory=list)
    input_tokens: int = 0
    output_tokens: int = 0
    message: Any = None  # provider-native assistant message for the history


@dataclass
class AgentContext:
    session_id: str
    operation: str = "review"


@dataclass
class AgentResponse:
    content: str
    usage: dict  # input_tokens / output_tokens / total_tokens
    tool_rounds: int = 0


class BaseAgent(ABC):
    PROVIDER: str = ""
    MODEL: str = ""
    TEMPERATURE: float = 0.3
    MAX_RETRIES: int = _MAX_RETRIES
    MAX_TOKENS: int = _MAX_TOKENS

    def __init__(
        self,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        retry_attempts: int | None = None,
        max_tool_rounds: int = MAX_TOOL_ROUNDS,
    ):
        self.model = model or self.MODEL
        self.temperature = self.TEMPERATURE if temperature is None else temperature
        self.max_tokens = max_tokens or self.MAX_TOKENS
        self.max_retries = retry_attempts or self.MAX_RETRIES
        self.max_tool_rounds = max_tool_rounds
        self._histories: dict[str, list] = {}

    # ------------------------------------------------------------------ #
    # Public interface                                                     #
    # ------------------------------------------------------------------ #

    def generate(
        self,
        instructions: str,
        context: AgentContext,
        tools: ToolRegistry,
        recorder: Recorder | None = None,
    ) -> AgentResponse:
        """Run the agent until it answers without asking for more tools.

        Raises AgentError when the model call keeps failing after retries.
        Tool failures are not fatal: the error text goes back to the model.
        """
        history = self._histories.setdefault(context.session_id, [])
        self._add_user_text(history, instructions)
        specs = tools.specs()

        input_tokens = output_tokens = 0
        texts: list[str] = []
        rounds = 0
        turn = None

        while True:
            turn = self._call_with_retry(history, specs)
            input_tokens += turn.input_tokens
            output_tokens += turn.output_tokens
            history.append(turn.message)
            if turn.text:
                texts.append(turn.text)

            if not turn.tool_uses:
                break

            rounds += 1
            results = [self._run_tool(tools, tool_use, recorder) for tool_use in turn.tool_uses]
            self._add_tool_results(history, results)

            if rounds >= self.max_tool_rounds:
                logger.warning(
                    "%s: stopped after %d tool rounds in session %s",
                    self.__class__.__name__,
                    rounds,
                    context.session_id,
                )
                break

        # The last turn carries the final answer; earlier text was narration.
        content = turn.text if turn is not None and turn.text else "\n\n".join(texts)
        return AgentResponse(
            content=content,
            usage={
                "input_tokens": input_tokens,
                "output_tokens": output_tokens,
                "total_tokens": input_tokens + output_tokens,
            },
            tool_rounds=rounds,
        )

    def forget(self, session_id: str) -> None:
        self._histories.pop(session_id, None)

    # ------------------------------------------------------------------ #
    # Abstract: implement in each provider                                #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def _call_api(self, history: list, tools: list[ToolSpec]) -> ModelTurn:
        """Make a single model call on ``history`` and return its turn.

        Should raise on failure; _call_with_retry handles retries and logging.
        """

    @abstractmethod
    def _add_user_text(self, history: list, text: str) -> None:
        """Append a user message carrying ``text``."""

    @abstractmethod
    def _add_tool_results(self, history: list, results: list[tuple[ToolUse, str, bool]]) -> None:
        """Append (tool_use, content, is_error) results in the provider's format."""

    # ------------------------------------------------------------------ #
    # Shared implementations                                               #
    # ------------------------------------------------------------------ #

    def _call_with_retry(self, history: list, tools: list[ToolSpec]) -> ModelTurn:
        """Retry _call_api up to max_retries times with exponential backoff."""
        for attempt in range(self.max_retries):
            try:
                return self._call_api(history, tools)
            except Exception as e:
                if attempt == self.max_retries - 1:
                    logger.error(
                        "%s API failed after %d attempts: %s",
                        self.__class__.__name__,
                        self.max_retries,
                        e,
                    )
                    raise AgentError(
                        f"{self.PROVIDER or self.__class__.__name__} request failed after "
                        f"{self.max_retries} attempts: {e}",
                        context={"model": self.model},
                    ) from e
                delay = 2**attempt
                logger.warning(
                    "%s API error (attempt %d/%d): %s. Retrying in %ds...",
                    self.__class__.__name__,
                    attempt + 1,
                    self.max_retries,
                    e,
                    delay,
                )
                time.sleep(delay)
        raise AgentError("max_retries must be at least 1")

    def _run_tool(
        self,
        tools: ToolRegistry,
        tool_use: ToolUse,
        recorder: Recorder | None,
    ) -> tuple[ToolUse, str, bool]:
        try:
            result = tools.invoke(tool_use.name, tool_use.arguments, recorder)
        except ToolError as e:
            return tool_use, f"Error: {e}", True
        if isinstance(result, str):
            return tool_use, result, False
        return tool_use, json.dumps(result, default=str), False
