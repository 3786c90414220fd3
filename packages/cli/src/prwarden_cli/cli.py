"""CLI entry point for prwarden.

Commands:
  review   review a pull request, then optionally rewrite its description
  enhance  rewrite a pull request description without reviewing the code
  init     write a starter .prwarden.yml (and optionally a CI workflow)
  history  display past review sessions from the configured store
  stats    aggregate decisions, issues and cost across review history
"""

from __future__ import annotations

import importlib.metadata
import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from prwarden_cli.commands.enhance import enhance_cmd
from prwarden_cli.commands.history import history_cmd
from prwarden_cli.commands.init import init_cmd
from prwarden_cli.commands.review import review_cmd
from prwarden_cli.commands.stats import stats_cmd

console = Console()


def setup_logging(verbose: bool = False) -> None:
    """Route library logging through rich; DEBUG with --verbose, WARNING otherwise."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )
    # Reduce noise from third-party libraries
    for noisy in ("urllib3", "httpx", "httpcore", "github", "anthropic", "openai"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def _build_store(config: dict):
    """Pick the session store named by `store:` in .prwarden.yml.

    Only `sqlite` persists anything (at `store_path`). The stores themselves
    never read configuration.
    """
    from prwarden_store.noop import NoOpStore

    store_type = config.get("store", "noop")

    if store_type == "sqlite":
        from prwarden_store.sqlite import SQLiteStore

        return SQLiteStore(db_path=config.get("store_path", ".prwarden.db"))

    if store_type not in ("noop", None):
        console.print(f"[yellow]Unknown store {store_type!r}. Falling back to no store.[/yellow]")
    return NoOpStore()


@click.group()
@click.version_option(
    version=importlib.metadata.version("prwarden"),
    prog_name="prwarden",
)
@click.option(
    "--config",
    "config_path",
    default=".prwarden.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="PRWARDEN_CONFIG",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.pass_context
def main(ctx: click.Context, config_path: str, verbose: bool):
    """Autonomous AI pull request reviewer."""
    from prwarden_cli.auth import resolve_github_token
    from prwarden_core.config import load_config
    from prwarden_core.errors import ConfigurationError

    setup_logging(verbose)
    ctx.ensure_object(dict)

    try:
        config = load_config(config_path)
    except ConfigurationError as e:
        raise click.UsageError(str(e))

    # Resolve token early so all subcommands share the same resolution.
    token = resolve_github_token((config.get("tools") or {}).get("github_base_url"))
    if token:
        config["github_token"] = token

    store = _build_store(config)
    ctx.obj["store"] = store
    ctx.obj["config"] = config
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose
    ctx.call_on_close(store.close)


main.add_command(review_cmd)
main.add_command(enhance_cmd)
main.add_command(init_cmd)
main.add_command(history_cmd)
main.add_command(stats_cmd)
