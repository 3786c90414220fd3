"""Tool sets the agent can call.

A ``Toolset`` groups the operations of one external system (GitHub, Jira).
Each operation is a public method named after the tool; ``specs()``
describes them to the model with a JSON-schema parameter block.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from prwarden_core.errors import ToolError


@dataclass
class ToolSpec:
    name: str
    description: str
    parameters: dict  # JSON schema of the arguments object


def schema(properties: dict, required: list[str] | None = None) -> dict:
    return {"type": "object", "properties": properties, "required": required or []}


class Toolset(ABC):
    name: str = ""

    @abstractmethod
    def specs(self) -> list[ToolSpec]:
        """Describe every operation this toolset exposes."""

    def call(self, name: str, arguments: dict) -> Any:
        """Invoke operation ``name`` with keyword ``arguments``."""
        if name not in {spec.name for spec in self.specs()}:
            raise ToolError(f"{self.name} has no tool named {name!r}")
        try:
            return getattr(self, name)(**(arguments or {}))
        except TypeError as e:
            # Wrong or missing argument names from the model.
            raise ToolError(f"Invalid arguments for {name}: {e}", context={"arguments": arguments}) from e
