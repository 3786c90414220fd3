from __future__ import annotations

from prwarden_core.errors import ConfigurationError
from prwarden_core.providers.base import MAX_TOOL_ROUNDS, BaseAgent


def get_agent(config: dict) -> BaseAgent:
    ai = config["ai"]
    provider = ai["provider"]
    kwargs = {
        "model": ai.get("model"),
        "temperature": ai.get("temperature"),
        "max_tokens": ai.get("max_tokens"),
        "retry_attempts": ai.get("retry_attempts"),
        "max_tool_rounds": ai.get("max_tool_rounds") or MAX_TOOL_ROUNDS,
    }
    if provider == "anthropic":
        from prwarden_core.providers.anthropic import AnthropicAgent

        return AnthropicAgent(api_key=config["anthropic_api_key"], **kwargs)
    if provider == "openai":
        from prwarden_core.providers.openai import OpenAIAgent

        return OpenAIAgent(api_key=config["openai_api_key"], **kwargs)
    raise ConfigurationError(f"Unknown AI provider: {provider!r}. Choose 'anthropic' or 'openai'.")
