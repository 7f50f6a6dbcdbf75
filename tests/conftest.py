import asyncio
import random
from typing import Dict, List, Optional, Tuple

import pytest

from mcqgen.assistant import AssistantClient
from mcqgen.config import Settings
from mcqgen.metrics import MetricsRegistry
from mcqgen.models import QuestionRecord, StoredQuestion
from mcqgen.services import QuestionService
from mcqgen.storage import InMemoryStore


WELL_FORMED = (
    "Question: Which one of the following is a tributary of the Brahmaputra?\n\n"
    "Options:\n(a) Gandak\n(b) Kosi\n(c) Subansiri\n(d) Yamuna\n\n"
    "Correct Answer: (c)\n\n"
    "Explanation: Subansiri joins the Brahmaputra in Assam."
)

MALFORMED = "Question: Which river is longest?\n\nOptions:\n(a) Ganga\n(b) Indus\n\nCorrect Answer: (e)"

THEME_REPLY = "1. Writs\n2. Judicial review\n3. Original jurisdiction"

THEME_PROMPT_MARKER = "List the distinct topical themes"


class FakeAssistant(AssistantClient):
    """Scripted assistant. Each generation run consumes one entry of ``replies``.

    An entry may be reply text, an exception raised when the run starts, or
    ``"status:<name>"`` to make the run end with that status.
    """

    def __init__(self, replies=None, theme_reply: str = THEME_REPLY, run_delay: float = 0.0):
        self.replies = list(replies or [])
        self.theme_reply = theme_reply
        self.run_delay = run_delay
        self.events: List[Tuple[str, str]] = []
        self.prompts: List[str] = []
        self.generation_runs = 0
        self.conversations_created = 0
        self.cancelled: List[str] = []
        self._turns: Dict[str, str] = {}
        self._runs: Dict[str, Tuple[str, str, str]] = {}
        self._replies: Dict[str, str] = {}

    async def create_conversation(self) -> str:
        self.conversations_created += 1
        return f"thread-{self.conversations_created}"

    async def active_runs(self, conversation_id: str) -> List[str]:
        self.events.append(("begin", conversation_id))
        await asyncio.sleep(0)
        return []

    async def add_turn(self, conversation_id: str, content: str) -> None:
        self._turns[conversation_id] = content
        self.prompts.append(content)

    async def start_run(self, conversation_id: str) -> str:
        content = self._turns[conversation_id]
        status, reply = "completed", ""
        if THEME_PROMPT_MARKER in content:
            reply = self.theme_reply
        else:
            self.generation_runs += 1
            entry = self.replies.pop(0) if self.replies else ""
            if isinstance(entry, Exception):
                raise entry
            if entry.startswith("status:"):
                status = entry.split(":", 1)[1]
            else:
                reply = entry
        run_id = f"run-{len(self._runs) + 1}"
        self._runs[run_id] = (conversation_id, status, reply)
        await asyncio.sleep(self.run_delay)
        return run_id

    async def run_status(self, conversation_id: str, run_id: str) -> str:
        await asyncio.sleep(0)
        _, status, reply = self._runs[run_id]
        if status == "completed":
            self._replies[conversation_id] = reply
        return status

    async def cancel_run(self, conversation_id: str, run_id: str) -> None:
        self.cancelled.append(run_id)

    async def latest_reply(self, conversation_id: str) -> str:
        await asyncio.sleep(0)
        self.events.append(("end", conversation_id))
        return self._replies.get(conversation_id, "")


def make_record(tag: str = "") -> QuestionRecord:
    return QuestionRecord(
        question_lines=[f"Which article deals with writs{tag}?"],
        options={"A": "Article 14", "B": "Article 19", "C": "Article 32", "D": "Article 368"},
        correct_answer="C",
        explanation="Article 32 empowers the Supreme Court to issue writs.",
    )


def stored(category: str, chapter: Optional[str] = None, tag: str = "") -> StoredQuestion:
    return StoredQuestion(book="Some Book", category=category, chapter=chapter, mcq=make_record(tag))


@pytest.fixture
def settings() -> Settings:
    return Settings(
        retry_backoff=0.0,
        lock_timeout=None,
        run_poll_interval=0.0,
        run_poll_max_interval=0.0,
        run_timeout=None,
    )


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore(rng=random.Random(7))


@pytest.fixture
def metrics() -> MetricsRegistry:
    return MetricsRegistry()


@pytest.fixture
def make_service(store, settings, metrics):
    def factory(assistant: FakeAssistant, **overrides) -> QuestionService:
        for key, value in overrides.items():
            setattr(settings, key, value)
        return QuestionService(
            assistant, store, store, settings=settings, metrics=metrics, rng=random.Random(3)
        )

    return factory
