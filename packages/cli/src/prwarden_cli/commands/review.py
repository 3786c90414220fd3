"""review command: run the AI review on a pull request."""

from __future__ import annotations

import json
from datetime import datetime, timezone

import click
from rich.console import Console

from prwarden_cli.commands.common import fail, prepare_config, require_target
from prwarden_core.errors import PRWardenError
from prwarden_core.models import BLOCKED, REPORT_FORMATS, ReviewRequest, ReviewResult
from prwarden_core.reviewer import ReviewOrchestrator
from prwarden_store.models import ReviewRecord, ToolCallEntry

console = Console()


def _result_to_record(result: ReviewResult, session: dict, repo: str) -> ReviewRecord:
    """Map a ReviewResult plus its exported session to a ReviewRecord for the store.

    The CLI owns this mapping: prwarden_core has no store knowledge and
    prwarden_store has no core knowledge.
    """
    metadata = session.get("metadata") or {}
    issues = result.statistics.issues_found
    return ReviewRecord(
        session_id=result.session_id,
        repo=repo,
        pr_number=result.pr_id,
        decision=result.decision,
        reviewed_at=session.get("end_time") or datetime.now(timezone.utc).isoformat(),
        ai_provider=metadata.get("ai_provider", ""),
        ai_model=metadata.get("ai_model", ""),
        files_reviewed=result.statistics.files_reviewed,
        critical=issues.critical,
        major=issues.major,
        minor=issues.minor,
        suggestions=issues.suggestions,
        comments_posted=result.statistics.comments_posted,
        duration=result.duration,
        total_tokens=result.token_usage.total,
        cost_estimate=result.cost_estimate,
        report_path=result.report_path,
        description_enhanced=bool(result.description_enhanced),
        tool_calls=[
            ToolCallEntry(tool_name=c["tool_name"], duration_ms=c.get("duration_ms", 0.0), error=c.get("error"))
            for c in session.get("tool_calls", [])
        ],
    )


@click.command("review")
@click.option("--workspace", "-w", required=True, help="Repository owner (user or organization).")
@click.option("--repository", "-r", required=True, help="Repository name.")
@click.option("--pr", "pr_number", type=int, default=None, help="Pull request number.")
@click.option("--branch", default=None, help="Source branch; its open PR is looked up.")
@click.option(
    "--provider",
    type=click.Choice(["anthropic", "openai"]),
    default=None,
    help="AI provider. Overrides config file.",
)
@click.option("--model", default=None, help="Model name. Overrides config file.")
@click.option("--review-only", is_flag=True, help="Skip description enhancement.")
@click.option("--report", "report_mode", is_flag=True, help="Write a report file instead of posting to the PR.")
@click.option(
    "--report-format",
    type=click.Choice(REPORT_FORMATS),
    default="md",
    show_default=True,
    help="Report file format.",
)
@click.option("--report-path", default=None, help="Report file path; '-' writes to stdout.")
@click.option("--dry-run", is_flag=True, help="Simulate write actions; nothing is posted.")
@click.option(
    "--export-session",
    "export_path",
    default=None,
    type=click.Path(dir_okay=False, writable=True),
    help="Write the full session (tool calls, metadata, result) as JSON.",
)
@click.pass_context
def review_cmd(
    ctx,
    workspace: str,
    repository: str,
    pr_number: int | None,
    branch: str | None,
    provider: str | None,
    model: str | None,
    review_only: bool,
    report_mode: bool,
    report_format: str,
    report_path: str | None,
    dry_run: bool,
    export_path: str | None,
):
    """Review a pull request with an autonomous AI agent.

    The agent reads the PR through GitHub tools, posts inline comments and
    approves or requests changes. With --report it only analyzes and writes
    a report file. Exits with status 1 when the decision is BLOCKED.

    \b
    Required environment variables:
      GITHUB_TOKEN         GitHub personal access token (or use gh CLI)
      ANTHROPIC_API_KEY    Required for --provider anthropic
      OPENAI_API_KEY       Required for --provider openai
    """
    require_target(pr_number, branch)
    config = prepare_config(ctx, provider, model, report_format)

    request = ReviewRequest(
        workspace=workspace,
        repository=repository,
        pull_request_id=pr_number,
        branch=branch,
        dry_run=dry_run,
        verbose=bool((ctx.obj or {}).get("verbose")),
        report_mode=report_mode,
        report_format=report_format,
        report_path=report_path,
        review_only=review_only,
        config_path=(ctx.obj or {}).get("config_path"),
    )

    try:
        orchestrator = ReviewOrchestrator(config)
        if review_only:
            result = orchestrator.start_review(request)
        else:
            result = orchestrator.start_review_and_enhance(request)
    except PRWardenError as e:
        raise fail(e)

    session = orchestrator.export_session(result.session_id)

    store = ctx.obj.get("store") if ctx.obj else None
    if store is not None:
        store.save(_result_to_record(result, session, f"{workspace}/{repository}"))

    if export_path:
        with open(export_path, "w", encoding="utf-8") as f:
            json.dump(session, f, indent=2)
        console.print(f"[dim]Session exported to {export_path}[/dim]")

    if result.decision == BLOCKED:
        ctx.exit(1)
