"""GitHub token lookup for the CLI.

Checked in order, first hit wins:
  1. GITHUB_TOKEN, then GH_TOKEN (CI secrets, explicit override)
  2. `gh auth token`, scoped to the Enterprise host when tools.github_base_url
     points at one
"""

from __future__ import annotations

import logging
import os
import subprocess
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

TOKEN_ENV_VARS = ("GITHUB_TOKEN", "GH_TOKEN")


def github_host(base_url: str | None) -> str | None:
    """Hostname of a GitHub Enterprise API root; None for github.com."""
    if not base_url:
        return None
    host = urlparse(base_url).hostname
    if not host or host in ("github.com", "api.github.com"):
        return None
    return host


def resolve_github_token(base_url: str | None = None) -> str | None:
    """Return a token, or None when neither the environment nor gh has one."""
    for name in TOKEN_ENV_VARS:
        token = os.environ.get(name)
        if token:
            return token

    command = ["gh", "auth", "token"]
    host = github_host(base_url)
    if host:
        command += ["--hostname", host]
    try:
        result = subprocess.run(command, capture_output=True, text=True, timeout=5)
    except (FileNotFoundError, subprocess.TimeoutExpired):
        return None

    token = result.stdout.strip()
    if result.returncode != 0 or not token:
        return None
    logger.debug("Using the gh CLI token for %s", host or "github.com")
    return token
