"""Report and description-backup files.

In report mode the agent writes the report itself; this module only picks
the payload out of its reply and puts it on disk (or stdout).
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from pathlib import Path

from prwarden_core.interpreter import extract_report

logger = logging.getLogger(__name__)

REPORTS_DIR = ".prwarden/reports"
BACKUPS_DIR = ".prwarden/backups"
STDOUT_PATH = "-"


def enhanced_description_section(description: str) -> str:
    return (
        "\n\n---\n\n"
        "## Enhanced Description\n\n"
        "The following is an AI-generated enhanced PR description based on the code changes:\n\n"
        f"{description}\n"
    )


class ReportWriter:
    def __init__(self, reports_dir: str = REPORTS_DIR, backups_dir: str = BACKUPS_DIR):
        self.reports_dir = reports_dir
        self.backups_dir = backups_dir

    def default_report_path(
        self,
        pr_id: int | str,
        fmt: str,
        timestamp: datetime | None = None,
        repository: str | None = None,
    ) -> str:
        """``<reports_dir>/[<repo>-]pr-<id>-<YYYY-MM-DDTHH-mm-ss>.<md|json>`` in local time."""
        ts = (timestamp or datetime.now()).strftime("%Y-%m-%dT%H-%M-%S")
        ext = "json" if fmt == "json" else "md"
        prefix = f"{repository}-" if repository else ""
        return f"{self.reports_dir}/{prefix}pr-{pr_id}-{ts}.{ext}"

    def write_report(self, response_text: str, fmt: str, path: str) -> str:
        """Write the report payload to ``path`` (``-`` for stdout) and return the path."""
        content = extract_report(response_text, fmt).strip()

        if path == STDOUT_PATH:
            print(content)
            return path

        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
        logger.debug("Wrote %s report (%d chars) to %s", fmt, len(content), path)
        return path

    def append_enhanced_description(self, report_path: str, description: str) -> None:
        section = enhanced_description_section(description)
        if report_path == STDOUT_PATH:
            print(section)
            return
        with open(report_path, "a", encoding="utf-8") as f:
            f.write(section)

    def write_description_backup(self, pr_id: int | str, description: str, timestamp: datetime | None = None) -> str:
        """Save the pre-enhancement description verbatim and return the file path."""
        ts = (timestamp or datetime.now(timezone.utc)).isoformat()
        # 2026-01-22T12:16:32.123456+00:00 -> 2026-01-22T12-16-32
        safe_ts = re.sub(r"[:.]", "-", ts)[:19]
        target = Path(self.backups_dir) / f"pr-{pr_id}-description-{safe_ts}.md"
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(description, encoding="utf-8")
        return str(target)
