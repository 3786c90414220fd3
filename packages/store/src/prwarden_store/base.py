"""Abstract store interface for review session history."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from prwarden_store.models import ReviewRecord


class BaseStore(ABC):
    """Where finished review sessions are kept between runs.

    The CLI talks to this interface only. A backend gets everything it needs
    through its constructor, since it must also run unattended in CI.
    """

    @abstractmethod
    def save(self, record: ReviewRecord) -> None:
        """Persist one finished session. Saving the same session id again replaces it."""

    @abstractmethod
    def list_reviews(self, repo: str, pr_number: int | None = None) -> list[ReviewRecord]:
        """Sessions for ``repo`` ("workspace/repository"), oldest first; [] when none."""

    @abstractmethod
    def get_review(self, session_id: str) -> ReviewRecord | None:
        """The session saved under ``session_id``, or None."""

    def close(self) -> None:
        pass
