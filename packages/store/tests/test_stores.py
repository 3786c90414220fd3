"""Tests for prwarden-store implementations."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from prwarden_store.models import ReviewRecord, ToolCallEntry
from prwarden_store.noop import NoOpStore
from prwarden_store.sqlite import SQLiteStore

_BASE_TIME = datetime(2026, 1, 22, 12, 0, tzinfo=timezone.utc)


def _make_record(session_id="review-1", repo="owner/repo", pr_number=1, decision="APPROVED", minutes=0):
    return ReviewRecord(
        session_id=session_id,
        repo=repo,
        pr_number=pr_number,
        decision=decision,
        reviewed_at=(_BASE_TIME + timedelta(minutes=minutes)).isoformat(),
        ai_provider="anthropic",
        ai_model="claude-sonnet-4-20250514",
        files_reviewed=3,
        critical=1,
        major=2,
        minor=0,
        suggestions=4,
        comments_posted=5,
        duration=42,
        total_tokens=12000,
        cost_estimate=0.0123,
        report_path=None,
        description_enhanced=True,
        tool_calls=[
            ToolCallEntry(tool_name="get_pull_request", duration_ms=120.5),
            ToolCallEntry(tool_name="add_comment", duration_ms=80.0, error="422 Unprocessable"),
        ],
    )


# ---------------------------------------------------------------------------
# ReviewRecord
# ---------------------------------------------------------------------------


def test_total_issues():
    assert _make_record().total_issues == 7


# ---------------------------------------------------------------------------
# NoOpStore
# ---------------------------------------------------------------------------


class TestNoOpStore:
    def test_save_does_not_raise(self):
        store = NoOpStore()
        store.save(_make_record())

    def test_list_reviews_returns_empty(self):
        store = NoOpStore()
        store.save(_make_record())
        assert store.list_reviews("owner/repo") == []

    def test_close_is_safe(self):
        NoOpStore().close()


# ---------------------------------------------------------------------------
# SQLiteStore
# ---------------------------------------------------------------------------


class TestSQLiteStore:
    def test_save_and_list_round_trip(self, tmp_path):
        store = SQLiteStore(str(tmp_path / "test.db"))
        store.save(_make_record())

        records = store.list_reviews("owner/repo")
        assert len(records) == 1
        r = records[0]
        assert r.session_id == "review-1"
        assert r.decision == "APPROVED"
        assert (r.critical, r.major, r.minor, r.suggestions) == (1, 2, 0, 4)
        assert r.description_enhanced is True
        assert r.report_path is None
        assert r.cost_estimate == 0.0123
        assert [t.tool_name for t in r.tool_calls] == ["get_pull_request", "add_comment"]
        assert r.tool_calls[1].error == "422 Unprocessable"
        store.close()

    def test_filter_by_pr_number(self, tmp_path):
        store = SQLiteStore(str(tmp_path / "test.db"))
        store.save(_make_record(session_id="a", pr_number=1))
        store.save(_make_record(session_id="b", pr_number=2))

        assert [r.session_id for r in store.list_reviews("owner/repo", pr_number=2)] == ["b"]
        store.close()

    def test_repos_are_isolated(self, tmp_path):
        store = SQLiteStore(str(tmp_path / "test.db"))
        store.save(_make_record(session_id="a", repo="owner/one"))
        store.save(_make_record(session_id="b", repo="owner/two"))

        assert [r.session_id for r in store.list_reviews("owner/one")] == ["a"]
        assert store.list_reviews("owner/none") == []
        store.close()

    def test_oldest_first(self, tmp_path):
        store = SQLiteStore(str(tmp_path / "test.db"))
        store.save(_make_record(session_id="late", minutes=30))
        store.save(_make_record(session_id="early", minutes=0))

        assert [r.session_id for r in store.list_reviews("owner/repo")] == ["early", "late"]
        store.close()

    def test_resaving_a_session_replaces_it(self, tmp_path):
        store = SQLiteStore(str(tmp_path / "test.db"))
        store.save(_make_record(decision="CHANGES_REQUESTED"))
        store.save(_make_record(decision="BLOCKED"))

        records = store.list_reviews("owner/repo")
        assert len(records) == 1
        assert records[0].decision == "BLOCKED"
        store.close()

    def test_persists_across_connections(self, tmp_path):
        db = str(tmp_path / "test.db")
        store = SQLiteStore(db)
        store.save(_make_record())
        store.close()

        reopened = SQLiteStore(db)
        assert len(reopened.list_reviews("owner/repo")) == 1
        reopened.close()

    def test_record_without_tool_calls(self, tmp_path):
        store = SQLiteStore(str(tmp_path / "test.db"))
        record = _make_record()
        record.tool_calls = []
        store.save(record)
        assert store.list_reviews("owner/repo")[0].tool_calls == []
        store.close()

    def test_get_review_by_session_id(self, tmp_path):
        store = SQLiteStore(str(tmp_path / "test.db"))
        store.save(_make_record(session_id="review-x", pr_number=9))

        record = store.get_review("review-x")
        assert record.pr_number == 9
        assert len(record.tool_calls) == 2
        assert store.get_review("review-missing") is None
        store.close()


def test_noop_get_review():
    assert NoOpStore().get_review("review-1") is None
