"""Concrete repository implementations backed by MongoDB or process memory."""
from __future__ import annotations

import random
from typing import Dict, Iterable, List, Optional, Tuple

from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import PyMongoError

from .catalog import ENTIRE_BOOK
from .models import LeaderboardEntry, StoredQuestion
from .repositories import (
    LeaderboardRepository,
    QuestionRepository,
    StoreUnavailableError,
    ThemeRepository,
)


def _chapter_key(chapter: Optional[str]) -> str:
    return chapter or ENTIRE_BOOK


def _question_filter(category: Optional[str], chapter: Optional[str]) -> dict:
    query = {}
    if category is not None:
        query["category"] = category
    if chapter is not None:
        query["chapter"] = chapter
    return query


class MongoStore(QuestionRepository, ThemeRepository, LeaderboardRepository):
    """Stores questions, theme catalogs and leaderboard scores in MongoDB."""

    def __init__(self, uri: str, database: str) -> None:
        self._client = AsyncIOMotorClient(uri)
        self._db = self._client[database]
        self._questions = self._db.mcqs
        self._themes = self._db.themes
        self._leaderboard = self._db.leaderboard

    async def ensure_indexes(self) -> None:
        try:
            await self._questions.create_index("category")
            await self._questions.create_index("chapter")
            await self._questions.create_index("book")
            await self._questions.create_index([("category", ASCENDING), ("chapter", ASCENDING)])
            await self._themes.create_index(
                [("category", ASCENDING), ("chapter", ASCENDING)], unique=True
            )
            await self._leaderboard.create_index([("score", DESCENDING), ("date", ASCENDING)])
        except PyMongoError as exc:
            raise StoreUnavailableError(f"Could not create indexes: {exc}") from exc

    def close(self) -> None:
        self._client.close()

    # QuestionRepository -------------------------------------------------
    async def save_questions(self, questions: Iterable[StoredQuestion]) -> None:
        documents = [question.model_dump(by_alias=True) for question in questions]
        if not documents:
            return
        try:
            await self._questions.insert_many(documents)
        except PyMongoError as exc:
            raise StoreUnavailableError(f"Could not save questions: {exc}") from exc

    async def sample_questions(
        self,
        size: int,
        category: Optional[str] = None,
        chapter: Optional[str] = None,
    ) -> List[StoredQuestion]:
        if size <= 0:
            return []
        pipeline = [
            {"$match": _question_filter(category, chapter)},
            {"$sample": {"size": size}},
            {"$project": {"_id": 0}},
        ]
        try:
            documents = await self._questions.aggregate(pipeline).to_list(size)
        except PyMongoError as exc:
            raise StoreUnavailableError(f"Could not sample questions: {exc}") from exc
        return [StoredQuestion.model_validate(document) for document in documents]

    # ThemeRepository ----------------------------------------------------
    async def load_themes(self, category: str, chapter: Optional[str]) -> Optional[List[str]]:
        try:
            document = await self._themes.find_one(
                {"category": category, "chapter": _chapter_key(chapter)}
            )
        except PyMongoError as exc:
            raise StoreUnavailableError(f"Could not load themes: {exc}") from exc
        if not document:
            return None
        return list(document.get("themes") or [])

    async def save_themes(self, category: str, chapter: Optional[str], themes: List[str]) -> None:
        try:
            await self._themes.update_one(
                {"category": category, "chapter": _chapter_key(chapter)},
                {"$set": {"themes": list(themes)}},
                upsert=True,
            )
        except PyMongoError as exc:
            raise StoreUnavailableError(f"Could not save themes: {exc}") from exc

    # LeaderboardRepository ----------------------------------------------
    async def add_entry(self, entry: LeaderboardEntry) -> None:
        try:
            await self._leaderboard.insert_one(entry.model_dump())
        except PyMongoError as exc:
            raise StoreUnavailableError(f"Could not save score: {exc}") from exc

    async def top_entries(self, limit: int = 50) -> List[LeaderboardEntry]:
        cursor = (
            self._leaderboard.find({}, {"_id": 0})
            .sort([("score", DESCENDING), ("date", ASCENDING)])
            .limit(limit)
        )
        try:
            documents = await cursor.to_list(limit)
        except PyMongoError as exc:
            raise StoreUnavailableError(f"Could not load leaderboard: {exc}") from exc
        return [LeaderboardEntry.model_validate(document) for document in documents]


class InMemoryStore(QuestionRepository, ThemeRepository, LeaderboardRepository):
    """Process-local store used for development and tests."""

    def __init__(self, rng: Optional[random.Random] = None) -> None:
        self._rng = rng or random.Random()
        self._questions: List[StoredQuestion] = []
        self._themes: Dict[Tuple[str, str], List[str]] = {}
        self._leaderboard: List[LeaderboardEntry] = []

    def close(self) -> None:
        """Nothing to release."""

    async def save_questions(self, questions: Iterable[StoredQuestion]) -> None:
        self._questions.extend(questions)

    async def sample_questions(
        self,
        size: int,
        category: Optional[str] = None,
        chapter: Optional[str] = None,
    ) -> List[StoredQuestion]:
        matches = [
            question
            for question in self._questions
            if (category is None or question.category == category)
            and (chapter is None or question.chapter == chapter)
        ]
        return self._rng.sample(matches, min(max(size, 0), len(matches)))

    async def load_themes(self, category: str, chapter: Optional[str]) -> Optional[List[str]]:
        themes = self._themes.get((category, _chapter_key(chapter)))
        return list(themes) if themes is not None else None

    async def save_themes(self, category: str, chapter: Optional[str], themes: List[str]) -> None:
        self._themes[(category, _chapter_key(chapter))] = list(themes)

    async def add_entry(self, entry: LeaderboardEntry) -> None:
        self._leaderboard.append(entry)

    async def top_entries(self, limit: int = 50) -> List[LeaderboardEntry]:
        ordered = sorted(self._leaderboard, key=lambda entry: (-entry.score, entry.date))
        return ordered[:limit]


__all__ = ["InMemoryStore", "MongoStore"]
