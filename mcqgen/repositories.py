"""Repository interfaces for persistent MCQ state."""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterable, List, Optional

from .models import LeaderboardEntry, StoredQuestion


class StoreUnavailableError(RuntimeError):
    """Raised when the backing store cannot be reached."""


class QuestionRepository(ABC):
    """Cache of validated questions."""

    @abstractmethod
    async def save_questions(self, questions: Iterable[StoredQuestion]) -> None:
        """Persist a batch of validated questions."""

    @abstractmethod
    async def sample_questions(
        self,
        size: int,
        category: Optional[str] = None,
        chapter: Optional[str] = None,
    ) -> List[StoredQuestion]:
        """Return up to ``size`` random questions matching the filter.

        ``None`` filters are not applied, so ``sample_questions(n)`` draws from
        every category.
        """


class ThemeRepository(ABC):
    """Theme catalog per (category, chapter)."""

    @abstractmethod
    async def load_themes(self, category: str, chapter: Optional[str]) -> Optional[List[str]]:
        """Return the stored themes, or ``None`` when none were stored yet."""

    @abstractmethod
    async def save_themes(self, category: str, chapter: Optional[str], themes: List[str]) -> None:
        """Persist the themes for the chapter."""


class LeaderboardRepository(ABC):
    """Append-only leaderboard."""

    @abstractmethod
    async def add_entry(self, entry: LeaderboardEntry) -> None:
        """Persist a score."""

    @abstractmethod
    async def top_entries(self, limit: int = 50) -> List[LeaderboardEntry]:
        """Return entries ordered by score descending, then date ascending."""


__all__ = [
    "LeaderboardRepository",
    "QuestionRepository",
    "StoreUnavailableError",
    "ThemeRepository",
]
