"""Review history data models.

Decoupled from prwarden_core so the store layer can be used independently
and prwarden_core has no knowledge of persistence concerns.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class ToolCallEntry:
    """One tool call made by the agent during the session."""

    tool_name: str
    duration_ms: float = 0.0
    error: str | None = None


@dataclass
class ReviewRecord:
    """A finished review session persisted to the store.

    Built by the CLI from the ReviewResult and the exported session.
    """

    session_id: str
    repo: str  # "workspace/repository"
    pr_number: int
    decision: str  # "APPROVED" | "CHANGES_REQUESTED" | "BLOCKED"
    reviewed_at: str  # ISO-8601 UTC timestamp
    ai_provider: str = ""
    ai_model: str = ""
    files_reviewed: int = 0
    critical: int = 0
    major: int = 0
    minor: int = 0
    suggestions: int = 0
    comments_posted: int = 0
    duration: int = 0
    total_tokens: int = 0
    cost_estimate: float = 0.0
    report_path: str | None = None
    description_enhanced: bool = False
    tool_calls: list[ToolCallEntry] = field(default_factory=list)

    @property
    def total_issues(self) -> int:
        return self.critical + self.major + self.minor + self.suggestions
