from __future__ import annotations

import json

try:
    from openai import OpenAI as _OpenAI
except ImportError:
    _OpenAI = None  # type: ignore[assignment,misc]

from prwarden_core.providers.base import BaseAgent, ModelTurn, ToolUse
from prwarden_core.tools.base import ToolSpec


class OpenAIAgent(BaseAgent):
    PROVIDER = "openai"
    MODEL = "gpt-4o"
    # Lower than Anthropic's default; GPT-4o follows the report layouts more
    # consistently at 0.2.
    TEMPERATURE = 0.2

    def __init__(self, api_key: str, **kwargs):
        super().__init__(**kwargs)
        if _OpenAI is None:
            raise ImportError(
                "The 'openai' package is required for this provider. " "Install it with: pip install 'prwarden[openai]'"
            )
        self.client = _OpenAI(api_key=api_key)

    def _call_api(self, history: list, tools: list[ToolSpec]) -> ModelTurn:
        kwargs = {
            "model": self.model,
            "messages": history,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        if tools:
            kwargs["tools"] = [
                {
                    "type": "function",
                    "function": {"name": t.name, "description": t.description, "parameters": t.parameters},
                }
                for t in tools
            ]
        response = self.client.chat.completions.create(**kwargs)
        message = response.choices[0].message

        tool_uses = []
        raw_calls = []
        for call in message.tool_calls or []:
            try:
                arguments = json.loads(call.function.arguments or "{}")
            except ValueError:
                arguments = {}
            tool_uses.append(ToolUse(id=call.id, name=call.function.name, arguments=arguments))
            raw_calls.append(
                {
                    "id": call.id,
                    "type": "function",
                    "function": {"name": call.function.name, "arguments": call.function.arguments or "{}"},
                }
            )

        assistant = {"role": "assistant", "content": message.content or ""}
        if raw_calls:
            assistant["tool_calls"] = raw_calls

        usage = response.usage
        return ModelTurn(
            text=(message.content or "").strip(),
            tool_uses=tool_uses,
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
            message=assistant,
        )

    def _add_user_text(self, history: list, text: str) -> None:
        history.append({"role": "user", "content": text})

    def _add_tool_results(self, history: list, results: list[tuple[ToolUse, str, bool]]) -> None:
        for tool_use, content, _is_error in results:
            history.append({"role": "tool", "tool_call_id": tool_use.id, "content": content})
