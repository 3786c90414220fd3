"""Single entry point through which every tool call passes.

The registry routes a tool name to the toolset that owns it, enforces the
blocked list and turns each call into a ``ToolCallRecord`` handed to the
caller's recorder.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Iterable

from prwarden_core.errors import ConfigurationError, ToolError, ToolServerError
from prwarden_core.models import ToolCallRecord
from prwarden_core.prompts.templates import REPORT_MODE_BLOCKED_TOOLS
from prwarden_core.tools.base import Toolset, ToolSpec

logger = logging.getLogger(__name__)

Recorder = Callable[[ToolCallRecord], None]


class ToolRegistry:
    def __init__(self, blocked: Iterable[str] = ()):
        self.blocked = frozenset(blocked)
        self._owners: dict[str, Toolset] = {}
        self._specs: dict[str, ToolSpec] = {}

    def register(self, toolset: Toolset) -> None:
        for spec in toolset.specs():
            if spec.name in self._owners:
                raise ToolServerError(
                    f"Tool {spec.name!r} is provided by both {self._owners[spec.name].name} and {toolset.name}"
                )
            self._owners[spec.name] = toolset
            self._specs[spec.name] = spec
        logger.debug("Registered %s toolset (%d tools)", toolset.name, len(toolset.specs()))

    def specs(self) -> list[ToolSpec]:
        """Specs the agent is allowed to see; blocked tools are hidden."""
        return [spec for name, spec in self._specs.items() if name not in self.blocked]

    def names(self) -> list[str]:
        return [spec.name for spec in self.specs()]

    def invoke(self, name: str, arguments: dict | None = None, recorder: Recorder | None = None) -> Any:
        """Run one tool call and report it to ``recorder``.

        Blocked, unknown and failing calls are recorded with their error and
        then raised as ToolError.
        """
        arguments = dict(arguments or {})
        started = time.perf_counter()
        result = None
        error = None
        try:
            if name in self.blocked:
                raise ToolError(f"Tool {name!r} is not available in this mode", context={"tool": name})
            owner = self._owners.get(name)
            if owner is None:
                raise ToolError(f"Unknown tool {name!r}", context={"tool": name})
            result = owner.call(name, arguments)
            return result
        except ToolError as e:
            error = str(e)
            raise
        except Exception as e:
            error = f"{type(e).__name__}: {e}"
            raise ToolError(f"Tool {name!r} failed: {e}", context={"tool": name}) from e
        finally:
            duration_ms = (time.perf_counter() - started) * 1000
            if error:
                logger.debug("Tool %s failed after %.0fms: %s", name, duration_ms, error)
            if recorder is not None:
                recorder(
                    ToolCallRecord(
                        tool_name=name,
                        arguments=arguments,
                        result=result,
                        error=error,
                        duration_ms=round(duration_ms, 3),
                    )
                )


def blocked_tools(config: dict, report_mode: bool) -> list[str]:
    tools_config = config.get("tools") or {}
    prefs = (config.get("review") or {}).get("tool_preferences") or {}
    blocked = list(tools_config.get("blocked") or [])
    if prefs.get("enable_code_search") is False:
        blocked.append("search_code")
    if prefs.get("enable_directory_listing") is False:
        blocked.append("list_directory_content")
    if report_mode:
        blocked.extend(REPORT_MODE_BLOCKED_TOOLS)
    return sorted(set(blocked))


def build_registry(config: dict, report_mode: bool = False, dry_run: bool = False) -> ToolRegistry:
    """Register GitHub (mandatory) and Jira (optional) tools.

    Raises ConfigurationError when no GitHub token is configured and
    ToolServerError when the GitHub client cannot be created. A Jira setup
    failure is only a warning.
    """
    # Imported here so the registry itself does not require PyGithub or requests.
    from prwarden_core.tools.github import GitHubToolset
    from prwarden_core.tools.jira import JiraToolset

    token = config.get("github_token")
    if not token:
        raise ConfigurationError("GITHUB_TOKEN is not set and no gh CLI session was found.")

    registry = ToolRegistry(blocked=blocked_tools(config, report_mode))
    tools_config = config.get("tools") or {}
    try:
        registry.register(GitHubToolset(token, base_url=tools_config.get("github_base_url"), dry_run=dry_run))
    except ToolServerError:
        raise
    except Exception as e:
        raise ToolServerError(f"Could not initialize GitHub tools: {e}") from e

    if (tools_config.get("jira") or {}).get("enabled"):
        try:
            registry.register(
                JiraToolset(
                    base_url=config.get("jira_base_url"),
                    email=config.get("jira_email"),
                    api_token=config.get("jira_api_token"),
                )
            )
        except Exception as e:
            logger.warning("Jira tools unavailable, continuing without them: %s", e)

    return registry
