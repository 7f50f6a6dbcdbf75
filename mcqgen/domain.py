"""Domain state shared across the session trackers."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Sequence


@dataclass
class ThemeUsage:
    """Themes already presented for one (session, chapter) key."""

    used: List[str] = field(default_factory=list)

    def remaining(self, themes: Sequence[str]) -> List[str]:
        used = set(self.used)
        return [theme for theme in themes if theme not in used]

    def record(self, theme: str) -> None:
        self.used.append(theme)

    def reset(self) -> None:
        self.used.clear()


@dataclass
class SessionProgress:
    """Number of questions generated for one (session, chapter) key."""

    question_count: int = 0

    @property
    def next_number(self) -> int:
        return self.question_count + 1

    def advance(self, count: int = 1) -> None:
        """Count questions that were actually delivered."""

        self.question_count += count


__all__ = ["SessionProgress", "ThemeUsage"]
