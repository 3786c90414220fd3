"""stats command: aggregate patterns across review history."""

from __future__ import annotations

from collections import Counter

import click
from rich.console import Console
from rich.table import Table

from prwarden_cli.commands.history import require_store

console = Console()

_SEVERITIES = (
    ("critical", "🔒 critical", "red"),
    ("major", "⚠️  major", "yellow"),
    ("minor", "💡 minor", "blue"),
    ("suggestions", "💬 suggestion", "dim"),
)


@click.command("stats")
@click.option("--repo", required=True, help="Repository (owner/name).")
@click.option("--top", default=10, show_default=True, help="Number of tools to show.")
@click.pass_context
def stats_cmd(ctx, repo: str, top: int):
    """Show aggregated review statistics for a repository.

    Reports the decision mix, the severity distribution of issues, token
    spend, and which tools the agent leans on most.
    """
    store = require_store(ctx)

    records = store.list_reviews(repo)
    if not records:
        console.print("[yellow]No review records found for this repository.[/yellow]")
        return

    total_reviews = len(records)
    total_issues = sum(r.total_issues for r in records)
    decisions = Counter(r.decision for r in records)
    tools: Counter[str] = Counter()
    failed_tools: Counter[str] = Counter()
    for record in records:
        for call in record.tool_calls:
            tools[call.tool_name] += 1
            if call.error:
                failed_tools[call.tool_name] += 1

    # --- Summary ---
    console.print(f"\n[bold]Review stats for [cyan]{repo}[/cyan][/bold]")
    console.print(f"  Total reviews:  {total_reviews}")
    console.print(f"  Total issues:   {total_issues}")
    console.print(f"  Avg per review: {total_issues / total_reviews:.1f}")
    console.print(f"  Avg duration:   {sum(r.duration for r in records) / total_reviews:.0f}s")
    console.print(f"  Total tokens:   {sum(r.total_tokens for r in records):,}")
    console.print(f"  Total cost:     ${sum(r.cost_estimate for r in records):.4f}")

    # --- Decisions ---
    decision_table = Table(title="Decisions", show_header=True)
    decision_table.add_column("Decision", style="bold")
    decision_table.add_column("Count", justify="right")
    for decision in ("APPROVED", "CHANGES_REQUESTED", "BLOCKED"):
        decision_table.add_row(decision, str(decisions.get(decision, 0)))
    console.print(decision_table)

    # --- Severity breakdown ---
    if total_issues:
        sev_table = Table(title="Severity Breakdown", show_header=True)
        sev_table.add_column("Severity", style="bold")
        sev_table.add_column("Count", justify="right")
        sev_table.add_column("% of total", justify="right")
        for attr, label, style in _SEVERITIES:
            count = sum(getattr(r, attr) for r in records)
            sev_table.add_row(f"[{style}]{label}[/{style}]", str(count), f"{count / total_issues * 100:.1f}%")
        console.print(sev_table)

    # --- Tool usage ---
    if tools:
        tool_table = Table(title=f"Top {top} Tools", show_header=True)
        tool_table.add_column("Tool")
        tool_table.add_column("Calls", justify="right")
        tool_table.add_column("Failed", justify="right")
        for name, count in tools.most_common(top):
            tool_table.add_row(name, str(count), str(failed_tools.get(name, 0)))
        console.print(tool_table)
