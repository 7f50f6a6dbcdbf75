"""Theme catalog loading and per-session theme rotation."""
from __future__ import annotations

import asyncio
import logging
import random
import re
from typing import Dict, List, Optional, Tuple

from .assistant import AssistantClient, PollPolicy, complete_turn
from .catalog import BookInfo
from .domain import ThemeUsage
from .prompts import build_theme_prompt
from .repositories import StoreUnavailableError, ThemeRepository


logger = logging.getLogger(__name__)

MAX_THEMES = 15
LIST_PREFIX = re.compile(r"^\s*(?:[-*•]+|\d+[.)]|\(\d+\)|[A-Za-z][.)])\s+")


def parse_theme_list(text: str, limit: int = MAX_THEMES) -> List[str]:
    """Read one theme per line, dropping bullets, numbering and duplicates."""

    themes: List[str] = []
    seen = set()
    for raw in (text or "").splitlines():
        line = LIST_PREFIX.sub("", raw).strip().strip("*_").strip()
        if not line or line.endswith(":"):
            continue
        key = line.lower()
        if key in seen:
            continue
        seen.add(key)
        themes.append(line)
        if len(themes) >= limit:
            break
    return themes


class ThemeExtractor:
    """Asks the assistant to enumerate the themes of a chapter."""

    def __init__(self, client: AssistantClient, policy: PollPolicy) -> None:
        self._client = client
        self._policy = policy

    async def extract(self, book: BookInfo, category: str, chapter: Optional[str]) -> List[str]:
        conversation_id = await self._client.create_conversation()
        reply = await complete_turn(
            self._client,
            conversation_id,
            build_theme_prompt(book, category, chapter),
            self._policy,
        )
        themes = parse_theme_list(reply)
        logger.info(
            "Extracted %d theme(s) for %s / %s", len(themes), category, chapter or "entire book"
        )
        return themes


class ThemeRotationTracker:
    """Chooses an unused theme per category and session key, resetting on exhaustion."""

    def __init__(
        self,
        repository: ThemeRepository,
        extractor: ThemeExtractor,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._repository = repository
        self._extractor = extractor
        self._rng = rng or random.Random()
        self._catalog: Dict[Tuple[str, Optional[str]], List[str]] = {}
        self._loading: Dict[Tuple[str, Optional[str]], asyncio.Lock] = {}
        self._usage: Dict[Tuple[str, str], ThemeUsage] = {}

    def used_themes(self, category: str, session_key: str) -> List[str]:
        usage = self._usage.get((category, session_key))
        return list(usage.used) if usage else []

    async def themes_for(self, book: BookInfo, category: str, chapter: Optional[str]) -> List[str]:
        key = (category, chapter)
        if key in self._catalog:
            return self._catalog[key]
        lock = self._loading.setdefault(key, asyncio.Lock())
        async with lock:
            if key not in self._catalog:
                self._catalog[key] = await self._load(book, category, chapter)
        return self._catalog[key]

    async def _load(self, book: BookInfo, category: str, chapter: Optional[str]) -> List[str]:
        try:
            themes = await self._repository.load_themes(category, chapter)
        except StoreUnavailableError as exc:
            logger.warning("Theme store unavailable for %s / %s: %s", category, chapter, exc)
            themes = None
        if themes:
            return themes

        themes = await self._extractor.extract(book, category, chapter)
        if not themes:
            return [chapter or "entire book"]
        try:
            await self._repository.save_themes(category, chapter, themes)
        except StoreUnavailableError as exc:
            logger.warning("Could not persist themes for %s / %s: %s", category, chapter, exc)
        return themes

    async def select_theme(
        self, book: BookInfo, category: str, chapter: Optional[str], session_key: str
    ) -> str:
        themes = await self.themes_for(book, category, chapter)
        usage = self._usage.setdefault((category, session_key), ThemeUsage())
        eligible = usage.remaining(themes)
        if not eligible:
            logger.info(
                "All %d %s themes used for %s; starting over", len(themes), category, session_key
            )
            usage.reset()
            eligible = list(themes)
        theme = self._rng.choice(eligible)
        usage.record(theme)
        return theme


__all__ = ["ThemeExtractor", "ThemeRotationTracker", "parse_theme_list"]
