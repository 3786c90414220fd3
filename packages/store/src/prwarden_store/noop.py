from __future__ import annotations

from typing import TYPE_CHECKING

from prwarden_store.base import BaseStore

if TYPE_CHECKING:
    from prwarden_store.models import ReviewRecord


class NoOpStore(BaseStore):
    """Used when ``store`` is unset: sessions only live for the run that made them."""

    def save(self, record: ReviewRecord) -> None:
        return None

    def list_reviews(self, repo: str, pr_number: int | None = None) -> list[ReviewRecord]:
        return []

    def get_review(self, session_id: str) -> ReviewRecord | None:
        return None
