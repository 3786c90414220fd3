from __future__ import annotations

from prwarden_core.providers.base import BaseAgent, ModelTurn, ToolUse
from prwarden_core.tools.base import ToolSpec


class AnthropicAgent(BaseAgent):
    PROVIDER = "anthropic"
    MODEL = "claude-sonnet-4-20250514"
    TEMPERATURE = 0.3

    def __init__(self, api_key: str, **kwargs):
        super().__init__(**kwargs)
        try:
            from anthropic import Anthropic
        except ImportError:
            raise ImportError(
                "The 'anthropic' package is required for this provider. "
                "Install it with: pip install 'prwarden[anthropic]'"
            )
        self.client = Anthropic(api_key=api_key)

    def _call_api(self, history: list, tools: list[ToolSpec]) -> ModelTurn:
        kwargs = {
            "model": self.model,
            "messages": history,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        if tools:
            kwargs["tools"] = [
                {"name": t.name, "description": t.description, "input_schema": t.parameters} for t in tools
            ]
        response = self.client.messages.create(**kwargs)

        texts = []
        tool_uses = []
        content = []
        for block in response.content:
            if block.type == "text":
                texts.append(block.text)
                content.append({"type": "text", "text": block.text})
            elif block.type == "tool_use":
                tool_uses.append(ToolUse(id=block.id, name=block.name, arguments=dict(block.input or {})))
                content.append({"type": "tool_use", "id": block.id, "name": block.name, "input": block.input})

        return ModelTurn(
            text="".join(texts).strip(),
            tool_uses=tool_uses,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            message={"role": "assistant", "content": content},
        )

    def _add_user_text(self, history: list, text: str) -> None:
        # Tool results are user turns; the API wants consecutive user content merged.
        if history and history[-1]["role"] == "user":
            history[-1]["content"].append({"type": "text", "text": text})
        else:
            history.append({"role": "user", "content": [{"type": "text", "text": text}]})

    def _add_tool_results(self, history: list, results: list[tuple[ToolUse, str, bool]]) -> None:
        history.append(
            {
                "role": "user",
                "content": [
                    {"type": "tool_result", "tool_use_id": tool_use.id, "content": content, "is_error": is_error}
                    for tool_use, content, is_error in results
                ],
            }
        )
