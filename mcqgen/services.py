"""Core services: MCQ generation with cache fallback, and the leaderboard."""
from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from .assistant import (
    AssistantClient,
    AssistantError,
    PollPolicy,
    complete_turn,
    drain_conversation,
)
from .catalog import ENTIRE_BOOK, BookInfo, chapter_from_query, get_book, normalize_chapter
from .config import Settings
from .domain import SessionProgress
from .metrics import METRICS, MetricsRegistry
from .models import AskRequest, LeaderboardEntry, QuestionRecord, ScoreSubmission, StoredQuestion
from .parser import parse_question_record, split_blocks
from .prompts import build_generation_prompt
from .repositories import (
    LeaderboardRepository,
    QuestionRepository,
    StoreUnavailableError,
    ThemeRepository,
)
from .sessions import ConversationLocks, LockTimeoutError, SessionRegistry, split_session_id
from .structures import StructureSelector, detect_structure
from .themes import ThemeExtractor, ThemeRotationTracker
from .validators import ValidationError, is_valid, validate_record


logger = logging.getLogger(__name__)

RETRYABLE_ERRORS = (AssistantError, LockTimeoutError)


class GenerationError(Exception):
    """Base class for errors surfaced to callers of :class:`QuestionService`."""

    def __init__(
        self,
        message: str,
        *,
        category: Optional[str] = None,
        session_id: Optional[str] = None,
        retry_count: int = 0,
    ) -> None:
        super().__init__(message)
        self.category = category
        self.session_id = session_id
        self.retry_count = retry_count


class ConfigurationError(GenerationError):
    """Unknown category or unavailable reference material; never retried."""


class GenerationFailed(GenerationError):
    """Generation and cache fallback were both exhausted."""


@dataclass
class GenerationJob:
    """A resolved request for ``count`` questions."""

    category: str
    book: BookInfo
    chapter: Optional[str]
    session_id: str
    count: int
    query: str = ""

    @property
    def base_session_id(self) -> str:
        return split_session_id(self.session_id)[0]

    @property
    def session_key(self) -> str:
        return f"{self.base_session_id}:{self.chapter or ENTIRE_BOOK}"


@dataclass
class AttemptOutcome:
    valid: List[QuestionRecord] = field(default_factory=list)
    rejected: int = 0
    error: Optional[str] = None


class QuestionService:
    """Serves cached questions and generates new ones through the assistant."""

    def __init__(
        self,
        assistant: AssistantClient,
        questions: QuestionRepository,
        themes: ThemeRepository,
        settings: Optional[Settings] = None,
        metrics: MetricsRegistry = METRICS,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._assistant = assistant
        self._questions = questions
        self._settings = settings or Settings()
        self._metrics = metrics
        self._policy = PollPolicy(
            interval=self._settings.run_poll_interval,
            max_interval=self._settings.run_poll_max_interval,
            timeout=self._settings.run_timeout,
        )
        self.sessions = SessionRegistry(assistant)
        self.locks = ConversationLocks()
        self.themes = ThemeRotationTracker(themes, ThemeExtractor(assistant, self._policy), rng=rng)
        self.structures = StructureSelector(rng=rng)
        self._progress: Dict[str, SessionProgress] = {}

    def resolve(self, request: AskRequest) -> GenerationJob:
        """Validate the category and normalise the chapter of a request."""

        book = get_book(request.category)
        if book is None:
            raise ConfigurationError(
                f"Invalid category: {request.category}. Please provide a valid subject category.",
                category=request.category,
                session_id=request.session_id,
            )
        if not book.is_available:
            raise ConfigurationError(
                f"File for category {request.category} is not available "
                f"(File ID: {book.file_id}). MCQs cannot be generated.",
                category=request.category,
                session_id=request.session_id,
            )
        chapter = normalize_chapter(
            request.category, request.chapter or chapter_from_query(request.query)
        )
        return GenerationJob(
            category=request.category,
            book=book,
            chapter=chapter,
            session_id=request.session_id,
            count=request.count,
            query=request.query,
        )

    async def answer(self, request: AskRequest) -> List[QuestionRecord]:
        """Return ``request.count`` questions, from the cache when possible."""

        job = self.resolve(request)
        logger.info(
            "Request for session %s, category %s, chapter %s, count %d%s",
            job.session_id,
            job.category,
            job.chapter or ENTIRE_BOOK,
            job.count,
            " (forced generation)" if request.force_generate else "",
        )
        if not request.force_generate:
            cached = await self._sample(job.count, category=job.category, chapter=job.chapter)
            if len(cached) >= job.count:
                self._metrics.record_cache_hit()
                logger.info("Serving %d cached MCQ(s) for session %s", job.count, job.session_id)
                return cached[: job.count]
        return await self.generate(job)

    async def generate(self, job: GenerationJob) -> List[QuestionRecord]:
        """Generate questions, falling back to the cache and retrying a bounded number of times."""

        collected: List[QuestionRecord] = []
        retry_count = 0
        while True:
            shortfall = job.count - len(collected)
            self._metrics.record_generation_attempt()
            outcome = await self._attempt(job, shortfall, retry_count)
            collected.extend(outcome.valid)
            if outcome.valid:
                self._metrics.record_generation_success(len(outcome.valid))
            if outcome.error is not None:
                self._metrics.record_generation_failure("assistant_error")
            elif outcome.rejected:
                self._metrics.record_generation_failure("invalid_output")

            if len(collected) >= job.count:
                return collected[: job.count]

            shortfall = job.count - len(collected)
            fallback = await self._fallback(job, shortfall, collected)
            if len(fallback) >= shortfall:
                self._metrics.record_fallback(shortfall)
                logger.info(
                    "Filled %d missing MCQ(s) from cache for session %s, category %s, retry %d",
                    shortfall,
                    job.session_id,
                    job.category,
                    retry_count,
                )
                return collected + fallback[:shortfall]

            retry_count += 1
            if retry_count > self._settings.max_retries:
                self._metrics.record_exhausted()
                reason = outcome.error or f"{outcome.rejected} invalid or missing MCQ(s)"
                logger.error(
                    "Giving up on session %s, category %s after %d retries: %s",
                    job.session_id,
                    job.category,
                    retry_count - 1,
                    reason,
                )
                raise GenerationFailed(
                    f"Unable to generate {shortfall} valid MCQ(s) for {job.category}: {reason}",
                    category=job.category,
                    session_id=job.session_id,
                    retry_count=retry_count - 1,
                )

            self._metrics.record_retry()
            logger.warning(
                "Retrying generation of %d MCQ(s) for session %s, category %s (retry %d of %d)",
                shortfall,
                job.session_id,
                job.category,
                retry_count,
                self._settings.max_retries,
            )
            delay = self._settings.retry_backoff * 2 ** (retry_count - 1)
            if delay > 0:
                await asyncio.sleep(delay)

    async def _attempt(self, job: GenerationJob, shortfall: int, retry_count: int) -> AttemptOutcome:
        try:
            conversation_id = await self.sessions.get_or_create(job.session_id)
            async with self.locks.hold(conversation_id, timeout=self._settings.lock_timeout):
                await drain_conversation(self._assistant, conversation_id, self._policy)
                theme = await self.themes.select_theme(
                    job.book, job.category, job.chapter, job.session_key
                )
                structure = self.structures.select(job.base_session_id)
                progress = self._progress.setdefault(job.session_key, SessionProgress())
                question_number = progress.next_number
                logger.info(
                    "Generating %d MCQ(s) for session %s, category %s, chapter %s: "
                    "theme %r, structure %s, question %d, retry %d",
                    shortfall,
                    job.session_id,
                    job.category,
                    job.chapter or ENTIRE_BOOK,
                    theme,
                    structure.name,
                    question_number,
                    retry_count,
                )
                prompt = build_generation_prompt(
                    job.book,
                    job.category,
                    job.chapter,
                    theme,
                    structure,
                    shortfall,
                    question_number,
                    job.query,
                )
                reply = await complete_turn(self._assistant, conversation_id, prompt, self._policy)
                outcome = self._screen(job, reply, shortfall, retry_count)
                progress.advance(len(outcome.valid))
                await self._persist(job, outcome.valid)
                return outcome
        except RETRYABLE_ERRORS as exc:
            logger.warning(
                "Generation attempt failed for session %s, category %s, retry %d: %s",
                job.session_id,
                job.category,
                retry_count,
                exc,
            )
            return AttemptOutcome(error=str(exc))

    def _screen(
        self, job: GenerationJob, reply: str, shortfall: int, retry_count: int
    ) -> AttemptOutcome:
        """Parse and validate the reply, keeping only valid records."""

        logger.debug("AI response for session %s: %s", job.session_id, reply)
        structure = detect_structure(reply)
        self._metrics.record_structure(structure.name)
        logger.info(
            "Structure used for session %s, chapter %s: %s",
            job.session_id,
            job.chapter or ENTIRE_BOOK,
            structure.name,
        )

        outcome = AttemptOutcome()
        blocks = split_blocks(reply, shortfall)
        for block in blocks:
            record = parse_question_record(block)
            try:
                validate_record(record)
            except ValidationError as exc:
                outcome.rejected += 1
                logger.warning(
                    "Discarding invalid MCQ for session %s, category %s, retry %d: %s; record=%s",
                    job.session_id,
                    job.category,
                    retry_count,
                    exc,
                    record.model_dump_json(by_alias=True),
                )
                continue
            outcome.valid.append(record)

        missing = shortfall - len(blocks)
        if missing > 0:
            outcome.rejected += missing
            logger.warning(
                "Reply for session %s contained %d of %d requested MCQ(s)",
                job.session_id,
                len(blocks),
                shortfall,
            )
        if outcome.rejected:
            self._metrics.record_rejected(outcome.rejected)
        return outcome

    async def _persist(self, job: GenerationJob, records: List[QuestionRecord]) -> None:
        if not records:
            return
        stored = [
            StoredQuestion(
                book=job.book.book_name,
                category=job.category,
                chapter=job.chapter,
                mcq=record,
            )
            for record in records
        ]
        try:
            await self._questions.save_questions(stored)
        except StoreUnavailableError as exc:
            logger.warning(
                "Could not cache %d MCQ(s) for session %s, category %s: %s",
                len(stored),
                job.session_id,
                job.category,
                exc,
            )

    async def _sample(
        self, size: int, category: Optional[str] = None, chapter: Optional[str] = None
    ) -> List[QuestionRecord]:
        try:
            stored = await self._questions.sample_questions(size, category=category, chapter=chapter)
        except StoreUnavailableError as exc:
            logger.warning("Question cache unavailable, continuing without it: %s", exc)
            return []
        return [question.mcq for question in stored if is_valid(question.mcq)]

    async def _fallback(
        self, job: GenerationJob, shortfall: int, collected: List[QuestionRecord]
    ) -> List[QuestionRecord]:
        size = shortfall + len(collected)
        records = [
            record
            for record in await self._sample(size, category=job.category)
            if record not in collected
        ]
        if len(records) < shortfall and self._settings.fallback_any_category:
            records = [record for record in await self._sample(size) if record not in collected]
        return records


class LeaderboardService:
    """Records scores and returns the top of the leaderboard."""

    def __init__(self, repository: LeaderboardRepository, limit: int = 50) -> None:
        self._repository = repository
        self._limit = limit

    async def submit(self, submission: ScoreSubmission) -> LeaderboardEntry:
        entry = LeaderboardEntry(
            username=submission.username, score=submission.score, date=datetime.utcnow()
        )
        await self._repository.add_entry(entry)
        logger.info("Recorded score %d for %s", entry.score, entry.username)
        return entry

    async def top(self) -> List[LeaderboardEntry]:
        return await self._repository.top_entries(self._limit)


__all__ = [
    "ConfigurationError",
    "GenerationError",
    "GenerationFailed",
    "GenerationJob",
    "LeaderboardService",
    "QuestionService",
]
