"""Resolve the pull request under review and normalize it for display.

Tool responses reach us in several shapes: already-decoded dicts, or the
tool-protocol envelope ``{"content": [{"type": "text", "text": "<json>"}]}``;
flattened snake_case fields (``source_branch``) or nested API objects
(``fromRef.displayId``, ``source.branch.name``). Every variant goes through
``unwrap_tool_response`` and ``map_to_pr_display_info`` exactly once so the
rest of the code only ever sees ``PRDisplayInfo``.
"""

from __future__ import annotations

import json
import logging
import re
from datetime import datetime, timezone
from typing import Any, Callable

from rich.console import Console

from prwarden_core.errors import PRNotFoundError
from prwarden_core.models import PR_STATES, PRAuthor, PRDisplayInfo, ReviewRequest

console = Console()
logger = logging.getLogger(__name__)

PAGE_SIZE = 50
_REF_PREFIX = "refs/heads/"

# "22/01/2026, 12:16:32" (DD/MM/YYYY, HH:mm:ss), comma optional
_LOCALIZED_DATE_RE = re.compile(r"^(\d{2})/(\d{2})/(\d{4}),?\s+(\d{2}):(\d{2}):(\d{2})$")

ToolInvoker = Callable[[str, dict], Any]


def unwrap_tool_response(response: Any) -> Any:
    """Strip the tool-protocol envelope if present.

    The first text item is parsed as JSON; if it is not JSON the text itself
    is returned. Anything not in envelope form is returned unchanged.
    """
    content = response.get("content") if isinstance(response, dict) else None
    if isinstance(content, list) and content:
        item = content[0]
        if isinstance(item, dict) and item.get("type") == "text" and isinstance(item.get("text"), str):
            try:
                return json.loads(item["text"])
            except ValueError:
                return item["text"]
    return response


def _dig(data: Any, *path: str) -> Any:
    for key in path:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


def _first(*values: Any, default: Any = None) -> Any:
    for value in values:
        if value not in (None, ""):
            return value
    return default


def parse_pr_date(value: Any) -> Any:
    """Parse ISO-8601, "DD/MM/YYYY, HH:mm:ss" or epoch-millisecond dates.

    Unparseable values come back unchanged rather than being dropped.
    """
    if isinstance(value, datetime):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return value
    if not isinstance(value, str):
        return value

    text = value.strip()
    match = _LOCALIZED_DATE_RE.match(text)
    if match:
        day, month, year, hour, minute, second = (int(g) for g in match.groups())
        try:
            return datetime(year, month, day, hour, minute, second)
        except ValueError:
            return value
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return value


def _source_branch(pr: dict) -> str | None:
    return _first(
        pr.get("source_branch"),
        _dig(pr, "fromRef", "displayId"),
        _dig(pr, "fromRef", "id"),
        _dig(pr, "source", "branch", "name"),
        _dig(pr, "head", "ref"),
    )


def _author(pr: dict) -> PRAuthor:
    author = pr.get("author")
    if isinstance(author, str):
        return PRAuthor(name=_first(pr.get("author_username"), author), display_name=author)
    if isinstance(author, dict):
        user = author.get("user") if isinstance(author.get("user"), dict) else author
        return PRAuthor(
            name=_first(user.get("name"), user.get("login"), user.get("username"), default="unknown"),
            display_name=_first(user.get("displayName"), user.get("display_name"), default="Unknown"),
        )
    user = pr.get("user")
    if isinstance(user, dict):
        login = user.get("login") or "unknown"
        return PRAuthor(name=login, display_name=_first(user.get("name"), login))
    return PRAuthor(name="unknown", display_name="Unknown")


def _state(pr: dict) -> str:
    state = str(_first(pr.get("state"), default="OPEN")).upper()
    if state in PR_STATES:
        return state
    # GitHub only says "closed"; the merge flag tells merged from declined.
    if state == "CLOSED":
        return "MERGED" if pr.get("merged") or pr.get("merged_at") else "DECLINED"
    return state


def map_to_pr_display_info(pr: dict) -> PRDisplayInfo:
    """Map any supported upstream PR shape onto ``PRDisplayInfo``."""
    return PRDisplayInfo(
        # GitHub payloads carry both; "id" there is the database id, not the PR number.
        id=_first(pr.get("number"), pr.get("id"), default=0),
        title=pr.get("title") or "",
        author=_author(pr),
        state=_state(pr),
        source_branch=_source_branch(pr) or "unknown",
        destination_branch=_first(
            pr.get("destination_branch"),
            _dig(pr, "toRef", "displayId"),
            _dig(pr, "destination", "branch", "name"),
            _dig(pr, "base", "ref"),
            default="unknown",
        ),
        created_date=parse_pr_date(_first(pr.get("created_on"), pr.get("createdDate"), pr.get("created_at"))),
        updated_date=parse_pr_date(_first(pr.get("updated_on"), pr.get("updatedDate"), pr.get("updated_at"))),
    )


def branch_matches(source_branch: str, wanted: str) -> bool:
    """True if the two names refer to the same branch, short or fully qualified."""
    if not source_branch or not wanted:
        return False
    return (
        source_branch == wanted
        or source_branch == f"{_REF_PREFIX}{wanted}"
        or f"{_REF_PREFIX}{source_branch}" == wanted
    )


def find_pull_request_by_branch(request: ReviewRequest, invoke: ToolInvoker) -> PRDisplayInfo:
    """Page through open PRs until one has ``request.branch`` as its source."""
    console.print(f"[cyan]Searching for PR from branch: {request.branch}[/cyan]")
    start = 0
    searched = 0
    page = 0

    while True:
        page += 1
        if page > 1:
            console.print(f"  [dim]Fetching page {page} (searched {searched} PRs so far)...[/dim]")

        result = unwrap_tool_response(
            invoke(
                "list_pull_requests",
                {
                    "workspace": request.workspace,
                    "repository": request.repository,
                    "state": "OPEN",
                    "limit": PAGE_SIZE,
                    "start": start,
                },
            )
        )
        values = result.get("values") if isinstance(result, dict) else None
        if not values:
            break
        searched += len(values)

        for pr in values:
            if isinstance(pr, dict) and branch_matches(_source_branch(pr) or "", request.branch or ""):
                info = map_to_pr_display_info(pr)
                console.print(f"  [green]Found PR #{info.id} after searching {searched} PRs[/green]")
                return info

        if result.get("isLastPage") is False or len(values) == PAGE_SIZE:
            start += PAGE_SIZE
        else:
            break

    raise PRNotFoundError(
        f"No open PR found for branch: {request.branch} (searched {searched} PRs)",
        context={"branch": request.branch, "searched": searched},
    )


def resolve_pull_request(request: ReviewRequest, invoke: ToolInvoker) -> PRDisplayInfo | None:
    """Resolve by explicit id, else by branch; None when neither is given.

    Raises PRNotFoundError when a branch lookup exhausts every page.
    """
    if request.pull_request_id:
        data = unwrap_tool_response(
            invoke(
                "get_pull_request",
                {
                    "workspace": request.workspace,
                    "repository": request.repository,
                    "pull_request_id": request.pull_request_id,
                },
            )
        )
        if not isinstance(data, dict):
            logger.warning("Could not parse get_pull_request response for PR #%s", request.pull_request_id)
            return None
        return map_to_pr_display_info(data)

    if request.branch:
        return find_pull_request_by_branch(request, invoke)

    return None
