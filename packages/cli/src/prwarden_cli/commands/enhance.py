"""enhance command: rewrite a pull request description only."""

from __future__ import annotations

import click
from rich.console import Console
from rich.markdown import Markdown

from prwarden_cli.commands.common import fail, prepare_config, require_target
from prwarden_core.errors import PRWardenError
from prwarden_core.models import ReviewRequest
from prwarden_core.reviewer import ReviewOrchestrator

console = Console()


@click.command("enhance")
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
@click.option("--print", "print_only", is_flag=True, help="Print the new description instead of updating the PR.")
@click.option("--dry-run", is_flag=True, help="Simulate the PR update.")
@click.pass_context
def enhance_cmd(
    ctx,
    workspace: str,
    repository: str,
    pr_number: int | None,
    branch: str | None,
    provider: str | None,
    model: str | None,
    print_only: bool,
    dry_run: bool,
):
    """Rewrite a pull request description from its code changes.

    The original description is backed up under .prwarden/backups before the
    PR is updated.
    """
    require_target(pr_number, branch)
    config = prepare_config(ctx, provider, model)

    request = ReviewRequest(
        workspace=workspace,
        repository=repository,
        pull_request_id=pr_number,
        branch=branch,
        dry_run=dry_run,
        verbose=bool((ctx.obj or {}).get("verbose")),
        report_mode=print_only,
        config_path=(ctx.obj or {}).get("config_path"),
    )

    try:
        result = ReviewOrchestrator(config).enhance_description(request)
    except PRWardenError as e:
        raise fail(e)

    if print_only and result.enhanced_description:
        console.print(Markdown(result.enhanced_description))
