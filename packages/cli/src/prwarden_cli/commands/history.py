"""history command: display past review sessions from the store."""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

console = Console()

_DECISION_STYLE = {
    "APPROVED": "green",
    "CHANGES_REQUESTED": "yellow",
    "BLOCKED": "red",
}


def require_store(ctx):
    from prwarden_store.noop import NoOpStore

    store = ctx.obj.get("store") if ctx.obj else None
    if store is None or isinstance(store, NoOpStore):
        raise click.UsageError(
            "No store configured. Add 'store: sqlite' to .prwarden.yml, or run `prwarden init` to set one up."
        )
    return store


@click.command("history")
@click.option("--repo", default=None, help="Repository (owner/name).")
@click.option("--pr", "pr_number", type=int, default=None, help="Filter by PR number.")
@click.option("--limit", default=20, show_default=True, help="Maximum number of records to show.")
@click.option("--session", "session_id", default=None, help="Show one session with its tool calls.")
@click.pass_context
def history_cmd(ctx, repo: str | None, pr_number: int | None, limit: int, session_id: str | None):
    """Show past review sessions for a repository, or one session in detail."""
    store = require_store(ctx)
    if session_id:
        _show_session(store, session_id)
        return
    if not repo:
        raise click.UsageError("Pass --repo, or --session to show a single session.")

    records = store.list_reviews(repo, pr_number=pr_number)
    if not records:
        console.print("[yellow]No review records found.[/yellow]")
        return

    # Most recent first, capped at --limit.
    records = list(reversed(records))[:limit]

    table = Table(title=f"Review History: {repo}", show_header=True, header_style="bold cyan")
    table.add_column("PR", style="bold", width=6)
    table.add_column("Decision", width=18)
    table.add_column("🔒", justify="right")
    table.add_column("⚠️", justify="right")
    table.add_column("💡", justify="right")
    table.add_column("💬", justify="right")
    table.add_column("Files", justify="right")
    table.add_column("Tokens", justify="right")
    table.add_column("Cost", justify="right")
    table.add_column("Reviewed At", width=20)

    for r in records:
        style = _DECISION_STYLE.get(r.decision, "white")
        table.add_row(
            f"#{r.pr_number}",
            f"[{style}]{r.decision}[/{style}]",
            str(r.critical),
            str(r.major),
            str(r.minor),
            str(r.suggestions),
            str(r.files_reviewed),
            f"{r.total_tokens:,}",
            f"${r.cost_estimate:.4f}",
            r.reviewed_at[:19].replace("T", " "),
        )

    console.print(table)


def _show_session(store, session_id: str) -> None:
    record = store.get_review(session_id)
    if record is None:
        raise click.ClickException(f"No stored session {session_id}.")

    style = _DECISION_STYLE.get(record.decision, "white")
    console.print(f"\n[bold]{record.session_id}[/bold]  {record.repo}#{record.pr_number}")
    console.print(f"  Decision:  [{style}]{record.decision}[/{style}]")
    console.print(f"  Model:     {record.ai_provider}/{record.ai_model}")
    console.print(
        f"  Issues:    🔒 {record.critical}  ⚠️  {record.major}  💡 {record.minor}  💬 {record.suggestions}"
        f"  ({record.comments_posted} comment(s) posted)"
    )
    console.print(f"  Duration:  {record.duration}s  Tokens: {record.total_tokens:,}  Cost: ${record.cost_estimate:.4f}")
    if record.report_path:
        console.print(f"  Report:    {record.report_path}")
    if record.description_enhanced:
        console.print("  Description enhanced")

    if not record.tool_calls:
        return
    table = Table(title="Tool Calls", show_header=True, header_style="bold cyan")
    table.add_column("#", justify="right")
    table.add_column("Tool")
    table.add_column("ms", justify="right")
    table.add_column("Error")
    for i, call in enumerate(record.tool_calls, start=1):
        table.add_row(str(i), call.tool_name, f"{call.duration_ms:.0f}", f"[red]{call.error}[/red]" if call.error else "")
    console.print(table)
