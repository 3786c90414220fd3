"""Turn the agent's free-form output into a structured review result.

The agent follows no enforced schema, so every extractor here is a chain of
progressively weaker signals ending in a documented default. Nothing in this
module raises on malformed text: absence of structure is represented as the
zero/default value and higher layers decide whether that is acceptable.
"""

from __future__ import annotations

import json
import logging
import re
import time

from prwarden_core.models import (
    APPROVED,
    BLOCKED,
    CHANGES_REQUESTED,
    DECISIONS,
    IssuesBySeverity,
    ReviewResult,
    ReviewStatistics,
    Session,
    TokenUsage,
)

logger = logging.getLogger(__name__)

# Tool names whose invocation carries meaning for the result.
APPROVE_TOOL = "approve_pull_request"
REQUEST_CHANGES_TOOL = "request_changes"
DIFF_TOOL = "get_pull_request_diff"
COMMENT_TOOL = "add_comment"

# Markers used on the "Issues Found" line, left to right:
# critical, major, minor, suggestion.
SEVERITY_MARKERS = ("🔒", "⚠️", "💡", "💬")

# "Decision: X", "**Decision**: X", "**Decision:** X"
_DECISION_LABEL_RE = re.compile(r"\*{0,2}\s*Decision\s*\*{0,2}\s*:\s*\*{0,2}\s*(\w+)", re.IGNORECASE)
_DECISION_JSON_RE = re.compile(r'"decision"\s*:\s*"(\w+)"', re.IGNORECASE)
_FILES_REVIEWED_RE = re.compile(r"\*{0,2}Files Reviewed\*{0,2}\s*:\s*\*{0,2}\s*(\d+)", re.IGNORECASE)
_ISSUES_FOUND_RE = re.compile(
    r"\*{0,2}Issues Found\*{0,2}\s*:\s*\*{0,2}\s*"
    # the variation selector after ⚠ is optional
    + r"\s*\|\s*".join(re.escape(marker).replace("\ufe0f", "\ufe0f?") + r"\s*(\d+)" for marker in SEVERITY_MARKERS),
    re.IGNORECASE,
)
_MD_FENCE_RE = re.compile(r"```(?:markdown|md)[ \t]*\n(.*?)\n[ \t]*```", re.DOTALL | re.IGNORECASE)
_H2_LINE_RE = re.compile(r"^##\s+", re.MULTILINE)
_JSON_FENCE_RE = re.compile(r"```json\s*(.*?)\s*```", re.DOTALL)

_DECISION_SYNONYMS = {
    **{decision: decision for decision in DECISIONS},
    "APPROVE": APPROVED,
    "BLOCK": BLOCKED,
    "CHANGES": CHANGES_REQUESTED,
}


def normalize_decision(token: str) -> str | None:
    """Map a decision token (any case) onto a canonical decision, or None."""
    return _DECISION_SYNONYMS.get(token.strip().upper())


def extract_decision(text: str, session: Session) -> str:
    """Derive the review decision.

    Report mode reads the decision out of the report text. Normal mode reads
    it from which decision tool the agent actually invoked: approve maps to
    APPROVED and request_changes maps to BLOCKED. Both modes fall back to
    CHANGES_REQUESTED, never to APPROVED.
    """
    if session.request.report_mode:
        for match in _DECISION_LABEL_RE.finditer(text or ""):
            decision = normalize_decision(match.group(1))
            if decision:
                return decision
        match = _DECISION_JSON_RE.search(text or "")
        if match:
            decision = normalize_decision(match.group(1))
            if decision:
                return decision
        logger.info("No decision found in report output; defaulting to %s", CHANGES_REQUESTED)
        return CHANGES_REQUESTED

    called = {tc.tool_name for tc in session.tool_calls if tc.error is None}
    if APPROVE_TOOL in called:
        return APPROVED
    if REQUEST_CHANGES_TOOL in called:
        return BLOCKED

    logger.warning(
        "Session %s: the agent called neither %s nor %s; reporting %s as an inferred, not a confirmed, decision.",
        session.session_id,
        APPROVE_TOOL,
        REQUEST_CHANGES_TOOL,
        CHANGES_REQUESTED,
    )
    return CHANGES_REQUESTED


def extract_statistics(text: str) -> tuple[int, IssuesBySeverity]:
    """Return (files_reviewed, issues) as reported in the agent's Statistics section.

    Either value is zero when its line is missing.
    """
    files_reviewed = 0
    issues = IssuesBySeverity()
    if not text:
        return files_reviewed, issues

    files_match = _FILES_REVIEWED_RE.search(text)
    if files_match:
        files_reviewed = int(files_match.group(1))

    issues_match = _ISSUES_FOUND_RE.search(text)
    if issues_match:
        critical, major, minor, suggestions = (int(g) for g in issues_match.groups())
        issues = IssuesBySeverity(critical=critical, major=major, minor=minor, suggestions=suggestions)

    return files_reviewed, issues


def calculate_statistics(session: Session, text: str) -> ReviewStatistics:
    """Merge AI-reported statistics with what the tool-call log shows.

    AI-reported values win; tool-call counts only fill in when the text
    yields nothing.
    """
    tool_calls = session.tool_calls
    diff_calls = sum(1 for tc in tool_calls if tc.tool_name == DIFF_TOOL)
    comment_calls = sum(1 for tc in tool_calls if tc.tool_name == COMMENT_TOOL and tc.error is None)

    files_reviewed, issues = extract_statistics(text)
    return ReviewStatistics(
        files_reviewed=files_reviewed or diff_calls,
        issues_found=issues,
        tool_calls_made=len(tool_calls),
        comments_posted=comment_calls,
    )


def extract_summary(text: str) -> str:
    return text.strip() if text and text.strip() else "Review completed"


def extract_enhanced_description(text: str) -> str:
    """Pull the enhanced PR description out of the agent's reply.

    Tried in order: the reply already starts with a heading; a ```markdown
    fence whose body starts with a heading; everything from the first "## "
    line; the whole reply. Only clearly identified preamble is dropped.
    """
    trimmed = (text or "").strip()
    if trimmed.startswith("#"):
        return trimmed

    fence = _MD_FENCE_RE.search(trimmed)
    if fence:
        content = fence.group(1).strip()
        if content.startswith("#"):
            return content

    heading = _H2_LINE_RE.search(trimmed)
    if heading:
        return trimmed[heading.start() :].strip()

    return trimmed


def extract_report(text: str, fmt: str) -> str:
    """Return the report payload for ``fmt`` ("md" or "json").

    For JSON the interior of the first ```json fence wins; otherwise the text
    is returned as is, whether or not it parses, and the caller surfaces any
    parse failure.
    """
    text = text or ""
    if fmt != "json":
        return text.strip()

    fence = _JSON_FENCE_RE.search(text)
    if fence:
        return fence.group(1).strip()

    try:
        json.loads(text)
    except ValueError:
        logger.warning("Report output is not valid JSON and has no ```json block; writing it unchanged.")
    return text


def _usage_value(usage, *names: str) -> int:
    for name in names:
        value = usage.get(name) if isinstance(usage, dict) else getattr(usage, name, None)
        if value:
            return int(value)
    return 0


def parse_token_usage(usage) -> TokenUsage:
    """Read token counts under either naming convention (camelCase or snake_case)."""
    if not usage:
        return TokenUsage()
    input_tokens = _usage_value(usage, "inputTokens", "input_tokens", "prompt_tokens")
    output_tokens = _usage_value(usage, "outputTokens", "output_tokens", "completion_tokens")
    total = _usage_value(usage, "totalTokens", "total_tokens") or input_tokens + output_tokens
    return TokenUsage(input=input_tokens, output=output_tokens, total=total)


def estimate_cost(usage: TokenUsage, input_per_million: float = 0.25, output_per_million: float = 1.0) -> float:
    if usage.input == 0 and usage.output == 0:
        return 0.0
    cost = usage.input / 1_000_000 * input_per_million + usage.output / 1_000_000 * output_per_million
    return round(cost, 4)


def interpret_review(
    text: str,
    usage,
    session: Session,
    pr_id: int | None,
    started_at: float,
    rates: tuple[float, float] = (0.25, 1.0),
) -> ReviewResult:
    """Build a ReviewResult from one agent reply and the session it belongs to.

    ``started_at`` is a ``time.monotonic()`` reading taken when the run began.
    """
    token_usage = parse_token_usage(usage)
    return ReviewResult(
        pr_id=pr_id or 0,
        decision=extract_decision(text, session),
        statistics=calculate_statistics(session, text),
        summary=extract_summary(text),
        duration=round(time.monotonic() - started_at),
        token_usage=token_usage,
        cost_estimate=estimate_cost(token_usage, *rates),
        session_id=session.session_id,
    )
