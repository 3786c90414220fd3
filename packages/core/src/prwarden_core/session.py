"""In-memory session tracking for review and enhancement runs.

A session spans every agent invocation of one run (review, then optionally
description enhancement). The tracker owns the session records: callers only
ever see deep copies, and every mutation goes through a method that refuses
to touch a session once it has completed or failed.
"""

from __future__ import annotations

import copy
import dataclasses
import logging
import threading
import uuid
from collections import Counter
from datetime import datetime, timezone

from prwarden_core.config import TOOL_VERSION
from prwarden_core.errors import SessionNotFoundError, SessionStateError
from prwarden_core.models import (
    STATUS_COMPLETED,
    STATUS_FAILED,
    EnhancementResult,
    ReviewRequest,
    ReviewResult,
    Session,
    SessionMetadata,
    TokenUsage,
    ToolCallRecord,
)

logger = logging.getLogger(__name__)


class SessionTracker:
    """Thread-safe registry of sessions keyed by session id.

    Sessions never share mutable state; the lock only protects the table and
    the individual record being mutated, so independent reviews can run in
    parallel threads against one tracker.
    """

    def __init__(self):
        self._sessions: dict[str, Session] = {}
        self._lock = threading.Lock()

    def create_session(self, request: ReviewRequest, ai_provider: str = "", ai_model: str = "") -> str:
        session_id = f"review-{uuid.uuid4().hex}"
        session = Session(
            session_id=session_id,
            request=copy.deepcopy(request),
            start_time=datetime.now(timezone.utc),
            metadata=SessionMetadata(tool_version=TOOL_VERSION, ai_provider=ai_provider, ai_model=ai_model),
        )
        with self._lock:
            self._sessions[session_id] = session
        logger.debug("Created session %s for %s/%s", session_id, request.workspace, request.repository)
        return session_id

    def record_tool_call(self, session_id: str, record: ToolCallRecord) -> None:
        with self._lock:
            session = self._running(session_id, "record a tool call on")
            session.tool_calls.append(record)

    def update_metadata(self, session_id: str, **partial) -> None:
        with self._lock:
            session = self._running(session_id, "update metadata of")
            for key, value in partial.items():
                if not hasattr(session.metadata, key):
                    raise ValueError(f"Unknown session metadata field: {key!r}")
                setattr(session.metadata, key, value)

    def add_usage(self, session_id: str, usage: TokenUsage, cost: float) -> None:
        """Accumulate token and cost totals across every agent invocation."""
        with self._lock:
            session = self._running(session_id, "add usage to")
            session.metadata.total_tokens += usage.total
            session.metadata.total_cost = round(session.metadata.total_cost + cost, 4)

    def complete_session(self, session_id: str, result: ReviewResult | EnhancementResult) -> None:
        with self._lock:
            session = self._running(session_id, "complete")
            session.status = STATUS_COMPLETED
            session.end_time = datetime.now(timezone.utc)
            session.result = copy.deepcopy(result)

    def fail_session(self, session_id: str, error: BaseException | str) -> None:
        with self._lock:
            session = self._running(session_id, "fail")
            session.status = STATUS_FAILED
            session.end_time = datetime.now(timezone.utc)
            session.error = error if isinstance(error, str) else f"{type(error).__name__}: {error}"

    def get_session(self, session_id: str) -> Session:
        with self._lock:
            return copy.deepcopy(self._get(session_id))

    def list_sessions(self) -> list[str]:
        with self._lock:
            return list(self._sessions)

    def get_stats(self, session_id: str) -> dict:
        session = self.get_session(session_id)
        by_tool = Counter(tc.tool_name for tc in session.tool_calls)
        total_ms = sum(tc.duration_ms for tc in session.tool_calls)
        end = session.end_time or datetime.now(timezone.utc)
        return {
            "session_id": session.session_id,
            "status": session.status,
            "duration_seconds": round((end - session.start_time).total_seconds(), 3),
            "total_tool_calls": len(session.tool_calls),
            "failed_tool_calls": sum(1 for tc in session.tool_calls if tc.error is not None),
            "tool_calls_by_name": dict(by_tool),
            "total_tool_duration_ms": round(total_ms, 3),
            "average_tool_duration_ms": round(total_ms / len(session.tool_calls), 3) if session.tool_calls else 0.0,
            "total_tokens": session.metadata.total_tokens,
            "total_cost": session.metadata.total_cost,
        }

    def export_session(self, session_id: str) -> dict:
        """Return the whole session as JSON-serializable data."""
        session = self.get_session(session_id)
        data = dataclasses.asdict(session)
        return _jsonable(data)

    # ------------------------------------------------------------------ #
    # Internal helpers (caller holds the lock)                             #
    # ------------------------------------------------------------------ #

    def _get(self, session_id: str) -> Session:
        try:
            return self._sessions[session_id]
        except KeyError:
            raise SessionNotFoundError(f"Session not found: {session_id}")

    def _running(self, session_id: str, action: str) -> Session:
        session = self._get(session_id)
        if session.is_terminal:
            raise SessionStateError(
                f"Cannot {action} session {session_id}: it is already {session.status}.",
                context={"session_id": session_id, "status": session.status},
            )
        return session


def _jsonable(value):
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    return str(value)
