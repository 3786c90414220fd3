"""Helpers shared by the review and enhance commands."""

from __future__ import annotations

import click


def prepare_config(ctx: click.Context, provider: str | None, model: str | None, report_format: str | None = None):
    """Reload the config with CLI overrides and fail early on missing credentials."""
    from prwarden_cli.auth import resolve_github_token
    from prwarden_core.config import load_config, validate_config
    from prwarden_core.errors import ConfigurationError

    config_path = (ctx.obj or {}).get("config_path", ".prwarden.yml")
    try:
        config = load_config(config_path, cli_overrides={"ai.provider": provider, "ai.model": model})
    except ConfigurationError as e:
        raise click.UsageError(str(e))

    token = resolve_github_token((config.get("tools") or {}).get("github_base_url"))
    if not token:
        raise click.UsageError(
            "No GitHub token found. Set GITHUB_TOKEN or run `gh auth login` first.\n"
            "Create a token at https://github.com/settings/tokens"
        )
    config["github_token"] = token

    try:
        validate_config(config, report_format=report_format)
    except ConfigurationError as e:
        raise click.UsageError(str(e))
    return config


def require_target(pr_number: int | None, branch: str | None) -> None:
    if pr_number is None and not branch:
        raise click.UsageError("Pass --pr or --branch to select the pull request.")


def fail(error: Exception) -> click.ClickException:
    code = getattr(error, "code", None)
    return click.ClickException(f"[{code}] {error}" if code else str(error))
