"""Exception hierarchy shared by every prwarden layer.

Each error carries a short machine-readable ``code`` so the CLI can report
failures consistently without matching on message text.
"""

from __future__ import annotations


class PRWardenError(Exception):
    code = "PRWARDEN_ERROR"

    def __init__(self, message: str, context: dict | None = None):
        super().__init__(message)
        self.context = context or {}


class ConfigurationError(PRWardenError):
    """Missing credentials or an invalid configuration value. Always fatal."""

    code = "CONFIGURATION_ERROR"


class ToolServerError(PRWardenError):
    """A tool server (GitHub, Jira) could not be set up."""

    code = "TOOL_SERVER_ERROR"


class ToolError(PRWardenError):
    """A single tool invocation failed, or the tool is blocked/unknown."""

    code = "TOOL_ERROR"


class AgentError(PRWardenError):
    """The AI engine failed after exhausting its retries."""

    code = "AGENT_ERROR"


class PRNotFoundError(PRWardenError):
    code = "PR_NOT_FOUND"


class SessionNotFoundError(PRWardenError, KeyError):
    code = "SESSION_NOT_FOUND"

    def __str__(self) -> str:
        # KeyError.__str__ would repr() the message.
        return str(self.args[0]) if self.args else ""


class SessionStateError(PRWardenError):
    """A terminal (completed/failed) session was asked to change."""

    code = "SESSION_STATE_ERROR"
