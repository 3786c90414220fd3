"""init command: write a starter configuration for a repository."""

from __future__ import annotations

import importlib.metadata
import re
import subprocess
from pathlib import Path

import click
import yaml
from rich.console import Console

console = Console()

CONFIG_FILE = ".prwarden.yml"
STANDARDS_DIR = ".prwarden/standards"
WORKFLOW_FILE = ".github/workflows/prwarden.yml"

# https://host/owner/repo(.git) or git@host:owner/repo(.git)
_REMOTE_RE = re.compile(r"^(?:[\w.+-]+://(?:[^@/]+@)?|[\w.-]+@)(?P<host>[^/:]+)(?::\d+)?[/:](?P<slug>[^/]+/[^/]+?)(?:\.git)?/?$")

_WORKFLOW = """\
name: prwarden

on:
  pull_request:
    types: [opened, synchronize, reopened, ready_for_review]

concurrency:
  group: prwarden-${{{{ github.event.pull_request.number }}}}
  cancel-in-progress: true

permissions:
  contents: read
  pull-requests: write

jobs:
  review:
    if: ${{{{ !github.event.pull_request.draft }}}}
    runs-on: ubuntu-latest
    steps:
      - uses: actions/checkout@v4
      - uses: actions/setup-python@v5
        with:
          python-version: "3.12"
      - run: pip install "prwarden[{provider}]=={version}"
      - name: Review pull request
        env:
{env}        run: >-
          prwarden review
          -w "${{{{ github.repository_owner }}}}"
          -r "${{{{ github.event.repository.name }}}}"
          --pr "${{{{ github.event.pull_request.number }}}}"{flags}
"""

_JIRA_SECRETS = ("JIRA_BASE_URL", "JIRA_EMAIL", "JIRA_API_TOKEN")

_STANDARDS_STUB = """\
# {title}

<!-- prwarden adds this file to every review. Replace with your team's rules. -->
"""


@click.command("init")
@click.option("--repo", default=None, help="Repository (owner/name). Read from the origin remote when omitted.")
def init_cmd(repo: str | None):
    """Write .prwarden.yml and, on request, standards files and a CI workflow."""
    console.print("\n[bold cyan]prwarden init[/bold cyan]\n")

    if repo is None:
        repo = detect_repo()
        if repo:
            console.print(f"[dim]origin remote: {repo}[/dim]")
        else:
            repo = click.prompt("Repository (owner/name)")

    provider = click.prompt("AI provider", type=click.Choice(["anthropic", "openai"]), default="anthropic")
    config: dict = {"ai": {"provider": provider}}

    store = click.prompt(
        "Keep review history (none: nothing persisted, sqlite: local database file)",
        type=click.Choice(["none", "sqlite"]),
        default="none",
    )
    if store == "sqlite":
        config["store"] = "sqlite"
        db_path = click.prompt("SQLite database path", default=".prwarden.db")
        if db_path != ".prwarden.db":
            config["store_path"] = db_path

    enhance = click.confirm("Rewrite PR descriptions after each review?", default=True)
    config["description_enhancement"] = {"enabled": enhance}

    if click.confirm(f"Create {STANDARDS_DIR} for project review rules?", default=False):
        created = _write_standards(Path(STANDARDS_DIR))
        config["project_standards"] = {"custom_prompts_path": STANDARDS_DIR}
        console.print(f"[green]Wrote {created} standards file(s) to {STANDARDS_DIR}[/green]")

    _write_config(Path(CONFIG_FILE), config)
    console.print(f"[green]Wrote {CONFIG_FILE}[/green]")

    if click.confirm(f"\nAdd {WORKFLOW_FILE}?", default=True):
        secrets = _write_workflow(Path(WORKFLOW_FILE), provider, review_only=not enhance)
        console.print(f"[green]Wrote {WORKFLOW_FILE}[/green]")
        console.print(f"[yellow]Repository secrets it reads: {', '.join(secrets)}[/yellow]")

    owner, _, name = repo.partition("/")
    console.print(f"\nNext: [bold]prwarden review -w {owner} -r {name} --pr <number>[/bold]")


def parse_remote(url: str) -> str | None:
    """owner/name from an HTTPS or SSH remote URL on any GitHub host."""
    match = _REMOTE_RE.match(url.strip())
    return match.group("slug") if match else None


def detect_repo() -> str | None:
    try:
        result = subprocess.run(["git", "remote", "get-url", "origin"], capture_output=True, text=True, timeout=5)
    except (FileNotFoundError, subprocess.TimeoutExpired):
        return None
    if result.returncode != 0:
        return None
    return parse_remote(result.stdout)


def _write_config(path: Path, config: dict) -> None:
    # Sections merge key by key so a re-run keeps hand-edited settings.
    merged: dict = {}
    if path.exists():
        merged = yaml.safe_load(path.read_text()) or {}
    for section, value in config.items():
        current = merged.get(section)
        merged[section] = {**current, **value} if isinstance(value, dict) and isinstance(current, dict) else value
    path.write_text(yaml.safe_dump(merged, sort_keys=False, allow_unicode=True))


def _write_standards(directory: Path) -> int:
    from prwarden_core.prompts.composer import STANDARDS_FILES

    directory.mkdir(parents=True, exist_ok=True)
    created = 0
    for name in STANDARDS_FILES:
        target = directory / name
        if target.exists():
            continue
        target.write_text(_STANDARDS_STUB.format(title=name.removesuffix(".md").replace("-", " ").title()))
        created += 1
    return created


def _write_workflow(path: Path, provider: str, review_only: bool = False) -> list[str]:
    """Write the Actions workflow; returns the repository secrets it references."""
    key_secret = "ANTHROPIC_API_KEY" if provider == "anthropic" else "OPENAI_API_KEY"
    env = {"GITHUB_TOKEN": "${{ secrets.GITHUB_TOKEN }}", key_secret: f"${{{{ secrets.{key_secret} }}}}"}
    # Read only when tools.jira.enabled is set in .prwarden.yml.
    env.update({name: f"${{{{ secrets.{name} }}}}" for name in _JIRA_SECRETS})

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        _WORKFLOW.format(
            provider=provider,
            version=importlib.metadata.version("prwarden"),
            env="".join(f"          {name}: {value}\n" for name, value in env.items()),
            flags="\n          --review-only" if review_only else "",
        )
    )
    return [name for name in env if name != "GITHUB_TOKEN"]
