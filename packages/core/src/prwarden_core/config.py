import copy
import os
from pathlib import Path
from typing import Optional

import yaml

from prwarden_core.errors import ConfigurationError
from prwarden_core.models import REPORT_FORMATS

TOOL_VERSION = "0.1.0"

PROVIDERS = ("anthropic", "openai")

DEFAULT_CONFIG: dict = {
    "ai": {
        "provider": "anthropic",
        "model": None,  # None = provider default
        "temperature": 0.3,
        "max_tokens": 8192,
        "retry_attempts": 3,
        "max_tool_rounds": 200,
        # USD per 1M tokens, used for the cost estimate only.
        "input_cost_per_million": 0.25,
        "output_cost_per_million": 1.0,
    },
    "review": {
        "workflow_instructions": "Review the pull request file by file and report concrete, actionable issues.",
        "focus_areas": [
            {
                "name": "Security",
                "priority": "CRITICAL",
                "description": "Injection, authentication bypass, leaked secrets, unsafe deserialization.",
            },
            {
                "name": "Correctness",
                "priority": "MAJOR",
                "description": "Logic errors, unhandled failures on critical paths, broken contracts.",
            },
            {
                "name": "Maintainability",
                "priority": "MINOR",
                "description": "Duplication, unclear naming, needless complexity.",
            },
        ],
        "blocking_criteria": [
            {"condition": "Any CRITICAL issue", "action": "BLOCK", "reason": "Security or data-loss risk"},
            {"condition": "Any MAJOR issue", "action": "REQUEST_CHANGES", "reason": "Functional defect"},
        ],
        "exclude_patterns": ["*.lock", "*.min.js", "dist/**"],
        "tool_preferences": {
            "lazy_loading": True,
            "cache_tool_results": True,
            "enable_code_search": True,
            "enable_directory_listing": True,
            "max_tool_calls_per_file": 5,
        },
        "context_lines": 3,
        "max_files_per_review": 100,
    },
    "description_enhancement": {
        "enabled": True,
        "instructions": "Rewrite the PR description so a reviewer understands what changed and why.",
        "required_sections": [
            {"key": "summary", "name": "Summary", "required": True, "description": "What the change does and why."},
            {"key": "changes", "name": "Changes", "required": True, "description": "Notable code changes by area."},
            {"key": "testing", "name": "Testing", "required": True, "description": "How the change was verified."},
        ],
        "preserve_content": True,
        "auto_format": True,
    },
    "project_standards": {"custom_prompts_path": None},
    "knowledge_base": {"enabled": False, "path": ".prwarden/knowledge-base.md"},
    "tools": {
        "blocked": [],
        "github_base_url": None,  # GitHub Enterprise API root, e.g. https://ghe.example.com/api/v3
        "jira": {"enabled": False},
    },
    "display": {"show_banner": True, "verbose_tool_calls": False},
    "store": "noop",
}


def _deep_merge(base: dict, override: dict) -> dict:
    """Merge ``override`` into ``base`` recursively; lists and scalars replace."""
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def load_config(config_path: str = ".prwarden.yml", cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .prwarden.yml in the current directory (nested sections merge key by key)
      3. CLI argument overrides (dotted keys such as "ai.provider" are allowed)
    """
    config = copy.deepcopy(DEFAULT_CONFIG)

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
        if not isinstance(file_config, dict):
            raise ConfigurationError(f"Configuration file {config_path} must contain a mapping.")
        _deep_merge(config, file_config)

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is None:
                continue
            *parents, leaf = key.split(".")
            target = config
            for parent in parents:
                target = target.setdefault(parent, {})
            target[leaf] = value

    # Resolve credentials from environment variables
    config["github_token"] = os.environ.get("GITHUB_TOKEN")
    config["anthropic_api_key"] = os.environ.get("ANTHROPIC_API_KEY")
    config["openai_api_key"] = os.environ.get("OPENAI_API_KEY")
    config["jira_email"] = os.environ.get("JIRA_EMAIL")
    config["jira_api_token"] = os.environ.get("JIRA_API_TOKEN")
    config["jira_base_url"] = os.environ.get("JIRA_BASE_URL")

    return config


def validate_config(config: dict, report_format: str | None = None) -> None:
    """Raise ConfigurationError for settings that would make a run fail later."""
    provider = config["ai"]["provider"]
    if provider not in PROVIDERS:
        raise ConfigurationError(f"Unknown AI provider: {provider!r}. Choose one of: {', '.join(PROVIDERS)}.")
    key_name = f"{provider}_api_key"
    if not config.get(key_name):
        raise ConfigurationError(f"{key_name.upper()} environment variable is not set.")
    if report_format is not None and report_format not in REPORT_FORMATS:
        raise ConfigurationError(f"Invalid report format {report_format!r} (must be md or json).")
    if not isinstance(config["review"].get("focus_areas", []), list):
        raise ConfigurationError("review.focus_areas must be a list.")
