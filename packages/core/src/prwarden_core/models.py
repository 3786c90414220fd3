"""Data models shared by the composer, tracker, interpreter and resolver.

Kept free of any SDK imports so every layer (and the store package) can use
them without pulling in GitHub or AI provider dependencies.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

APPROVED = "APPROVED"
CHANGES_REQUESTED = "CHANGES_REQUESTED"
BLOCKED = "BLOCKED"
DECISIONS = (APPROVED, CHANGES_REQUESTED, BLOCKED)

STATUS_RUNNING = "running"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"

PR_STATES = ("OPEN", "MERGED", "DECLINED")

REPORT_FORMATS = ("md", "json")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ReviewRequest:
    """What to review and how.

    At least one of ``pull_request_id`` / ``branch`` is required; the CLI
    enforces that, not this model.
    """

    workspace: str
    repository: str
    pull_request_id: int | None = None
    branch: str | None = None
    dry_run: bool = False
    verbose: bool = False
    report_mode: bool = False
    report_format: str = "md"  # "md" | "json"
    report_path: str | None = None  # "-" means stdout
    review_only: bool = False
    config_path: str | None = None


@dataclass
class IssuesBySeverity:
    critical: int = 0
    major: int = 0
    minor: int = 0
    suggestions: int = 0

    @property
    def total(self) -> int:
        return self.critical + self.major + self.minor + self.suggestions


@dataclass
class TokenUsage:
    input: int = 0
    output: int = 0
    total: int = 0


@dataclass
class ReviewStatistics:
    files_reviewed: int = 0
    issues_found: IssuesBySeverity = field(default_factory=IssuesBySeverity)
    tool_calls_made: int = 0
    comments_posted: int = 0  # add_comment calls actually made by the agent

    @property
    def total_comments(self) -> int:
        # Derived from the severity counters on every access so it can never
        # drift from them.
        return self.issues_found.total


@dataclass
class ReviewResult:
    pr_id: int
    decision: str  # one of DECISIONS
    statistics: ReviewStatistics
    summary: str
    duration: int  # seconds
    token_usage: TokenUsage
    cost_estimate: float
    session_id: str
    description_enhanced: bool | None = None
    report_path: str | None = None
    enhanced_description: str | None = None


@dataclass
class EnhancementResult:
    """Outcome of a description-only run (no code review)."""

    pr_id: int
    session_id: str
    duration: int
    token_usage: TokenUsage
    cost_estimate: float
    enhanced_description: str | None = None


@dataclass
class ToolCallRecord:
    tool_name: str
    arguments: dict
    result: Any = None
    error: str | None = None
    duration_ms: float = 0.0
    token_usage: TokenUsage | None = None
    timestamp: datetime = field(default_factory=_utcnow)


@dataclass
class SessionMetadata:
    tool_version: str = ""
    ai_provider: str = ""
    ai_model: str = ""
    total_tokens: int = 0
    total_cost: float = 0.0


@dataclass
class Session:
    session_id: str
    request: ReviewRequest
    start_time: datetime
    status: str = STATUS_RUNNING
    tool_calls: list[ToolCallRecord] = field(default_factory=list)
    metadata: SessionMetadata = field(default_factory=SessionMetadata)
    end_time: datetime | None = None
    result: ReviewResult | EnhancementResult | None = None
    error: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status != STATUS_RUNNING


@dataclass
class PRAuthor:
    name: str
    display_name: str


@dataclass
class PRDisplayInfo:
    """Canonical PR shape every upstream response variant is mapped into."""

    id: int
    title: str
    author: PRAuthor
    state: str  # one of PR_STATES
    source_branch: str
    destination_branch: str
    # datetime when parseable, otherwise the upstream value unchanged.
    created_date: datetime | str | None = None
    updated_date: datetime | str | None = None
