"""SQLiteStore: local file-based review history.

Schema:
  reviews  one row per finished review session; the session's tool calls
           are kept as a JSON column so read paths need no JOINs.
"""

from __future__ import annotations

import json
import logging
import sqlite3

from prwarden_store.base import BaseStore
from prwarden_store.models import ReviewRecord, ToolCallEntry

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS reviews (
    id                   INTEGER PRIMARY KEY AUTOINCREMENT,
    session_id           TEXT NOT NULL UNIQUE,
    repo                 TEXT NOT NULL,
    pr_number            INTEGER NOT NULL,
    decision             TEXT,
    reviewed_at          TEXT,
    ai_provider          TEXT,
    ai_model             TEXT,
    files_reviewed       INTEGER DEFAULT 0,
    critical             INTEGER DEFAULT 0,
    major                INTEGER DEFAULT 0,
    minor                INTEGER DEFAULT 0,
    suggestions          INTEGER DEFAULT 0,
    comments_posted      INTEGER DEFAULT 0,
    duration             INTEGER DEFAULT 0,
    total_tokens         INTEGER DEFAULT 0,
    cost_estimate        REAL DEFAULT 0,
    report_path          TEXT,
    description_enhanced INTEGER DEFAULT 0,
    tool_calls_json      TEXT DEFAULT '[]'
);
CREATE INDEX IF NOT EXISTS idx_reviews_repo ON reviews (repo);
CREATE INDEX IF NOT EXISTS idx_reviews_pr   ON reviews (repo, pr_number);
"""


class SQLiteStore(BaseStore):
    """Stores review history in a local SQLite database file.

    The path defaults to `.prwarden.db` in the current working directory.
    Configure it in .prwarden.yml with `store_path: /path/to/prwarden.db`.
    """

    def __init__(self, db_path: str = ".prwarden.db"):
        self._conn = sqlite3.connect(db_path)
        self._conn.row_factory = sqlite3.Row
        self._conn.executescript(_SCHEMA)
        self._conn.commit()

    def save(self, record: ReviewRecord) -> None:
        tool_calls_json = json.dumps(
            [{"tool_name": t.tool_name, "duration_ms": t.duration_ms, "error": t.error} for t in record.tool_calls]
        )
        # A session is saved once; re-saving the same session replaces it.
        self._conn.execute(
            """
            INSERT OR REPLACE INTO reviews
              (session_id, repo, pr_number, decision, reviewed_at, ai_provider, ai_model,
               files_reviewed, critical, major, minor, suggestions, comments_posted,
               duration, total_tokens, cost_estimate, report_path, description_enhanced,
               tool_calls_json)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record.session_id,
                record.repo,
                record.pr_number,
                record.decision,
                record.reviewed_at,
                record.ai_provider,
                record.ai_model,
                record.files_reviewed,
                record.critical,
                record.major,
                record.minor,
                record.suggestions,
                record.comments_posted,
                record.duration,
                record.total_tokens,
                record.cost_estimate,
                record.report_path,
                int(record.description_enhanced),
                tool_calls_json,
            ),
        )
        self._conn.commit()
        logger.debug("Saved review %s for %s#%d", record.session_id, record.repo, record.pr_number)

    def list_reviews(self, repo: str, pr_number: int | None = None) -> list[ReviewRecord]:
        if pr_number is not None:
            rows = self._conn.execute(
                "SELECT * FROM reviews WHERE repo=? AND pr_number=? ORDER BY reviewed_at",
                (repo, pr_number),
            ).fetchall()
        else:
            rows = self._conn.execute(
                "SELECT * FROM reviews WHERE repo=? ORDER BY reviewed_at",
                (repo,),
            ).fetchall()

        return [self._row_to_record(r) for r in rows]

    def get_review(self, session_id: str) -> ReviewRecord | None:
        row = self._conn.execute("SELECT * FROM reviews WHERE session_id=?", (session_id,)).fetchone()
        return self._row_to_record(row) if row is not None else None

    def close(self) -> None:
        self._conn.close()

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> ReviewRecord:
        tool_calls = [
            ToolCallEntry(
                tool_name=t.get("tool_name", ""),
                duration_ms=t.get("duration_ms", 0.0),
                error=t.get("error"),
            )
            for t in json.loads(row["tool_calls_json"] or "[]")
        ]
        return ReviewRecord(
            session_id=row["session_id"],
            repo=row["repo"],
            pr_number=row["pr_number"],
            decision=row["decision"] or "",
            reviewed_at=row["reviewed_at"] or "",
            ai_provider=row["ai_provider"] or "",
            ai_model=row["ai_model"] or "",
            files_reviewed=row["files_reviewed"],
            critical=row["critical"],
            major=row["major"],
            minor=row["minor"],
            suggestions=row["suggestions"],
            comments_posted=row["comments_posted"],
            duration=row["duration"],
            total_tokens=row["total_tokens"],
            cost_estimate=row["cost_estimate"],
            report_path=row["report_path"],
            description_enhanced=bool(row["description_enhanced"]),
            tool_calls=tool_calls,
        )
