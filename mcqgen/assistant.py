"""Adapter around the assistant/thread based AI completion service."""
from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterator, List, Optional, Sequence

import openai
from openai import AsyncOpenAI


logger = logging.getLogger(__name__)

ACTIVE_RUN_STATUSES = frozenset({"queued", "in_progress", "cancelling"})
FAILED_RUN_STATUSES = frozenset(
    {"failed", "cancelled", "expired", "incomplete", "requires_action"}
)


class AssistantError(RuntimeError):
    """Failure talking to the AI service; callers may retry."""


class RunFailedError(AssistantError):
    """A run reached a terminal status other than ``completed``."""

    def __init__(self, run_id: str, status: str) -> None:
        super().__init__(f"Run {run_id} finished with status '{status}'")
        self.run_id = run_id
        self.status = status


class RunTimeoutError(AssistantError):
    """A run did not reach a terminal status in time."""


@dataclass(frozen=True)
class PollPolicy:
    """Exponential backoff used while polling run status."""

    interval: float = 1.0
    max_interval: float = 8.0
    factor: float = 2.0
    timeout: Optional[float] = 180.0

    def delays(self) -> Iterator[float]:
        delay = self.interval
        while True:
            yield delay
            delay = min(delay * self.factor, self.max_interval)


class AssistantClient(ABC):
    """Conversation operations consumed by the generation pipeline."""

    @abstractmethod
    async def create_conversation(self) -> str:
        """Create a conversation thread and return its handle."""

    @abstractmethod
    async def add_turn(self, conversation_id: str, content: str) -> None:
        """Append a user turn to the conversation."""

    @abstractmethod
    async def start_run(self, conversation_id: str) -> str:
        """Start an assistant run against the conversation and return its id."""

    @abstractmethod
    async def run_status(self, conversation_id: str, run_id: str) -> str:
        """Return the current status of a run."""

    @abstractmethod
    async def active_runs(self, conversation_id: str) -> List[str]:
        """Return ids of runs that are queued or in progress."""

    @abstractmethod
    async def cancel_run(self, conversation_id: str, run_id: str) -> None:
        """Request cancellation of a run."""

    @abstractmethod
    async def latest_reply(self, conversation_id: str) -> str:
        """Return the text of the newest assistant message, or an empty string."""


class OpenAIAssistantClient(AssistantClient):
    """Assistants API (threads and runs) implementation of :class:`AssistantClient`."""

    def __init__(self, api_key: Optional[str], assistant_id: Optional[str]) -> None:
        if not api_key:
            raise RuntimeError("OPENAI_API_KEY is not set. Add it to your .env file.")
        if not assistant_id:
            raise RuntimeError("ASSISTANT_ID is not set. Add it to your .env file.")
        self._assistant_id = assistant_id
        self._client = AsyncOpenAI(
            api_key=api_key, default_headers={"OpenAI-Beta": "assistants=v2"}
        )

    async def create_conversation(self) -> str:
        try:
            thread = await self._client.beta.threads.create()
        except openai.OpenAIError as exc:
            raise AssistantError(f"Could not create conversation: {exc}") from exc
        return thread.id

    async def add_turn(self, conversation_id: str, content: str) -> None:
        try:
            await self._client.beta.threads.messages.create(
                conversation_id, role="user", content=content
            )
        except openai.OpenAIError as exc:
            raise AssistantError(f"Could not add message to {conversation_id}: {exc}") from exc

    async def start_run(self, conversation_id: str) -> str:
        try:
            run = await self._client.beta.threads.runs.create(
                conversation_id,
                assistant_id=self._assistant_id,
                tools=[{"type": "file_search"}],
            )
        except openai.OpenAIError as exc:
            raise AssistantError(f"Could not start run on {conversation_id}: {exc}") from exc
        if not run or not run.id:
            raise AssistantError("Failed to create AI run")
        return run.id

    async def run_status(self, conversation_id: str, run_id: str) -> str:
        try:
            run = await self._client.beta.threads.runs.retrieve(run_id, thread_id=conversation_id)
        except openai.OpenAIError as exc:
            raise AssistantError(f"Could not retrieve run {run_id}: {exc}") from exc
        return run.status

    async def active_runs(self, conversation_id: str) -> List[str]:
        try:
            page = await self._client.beta.threads.runs.list(conversation_id, limit=20)
        except openai.OpenAIError as exc:
            raise AssistantError(f"Could not list runs of {conversation_id}: {exc}") from exc
        return [run.id for run in page.data if run.status in ACTIVE_RUN_STATUSES]

    async def cancel_run(self, conversation_id: str, run_id: str) -> None:
        try:
            await self._client.beta.threads.runs.cancel(run_id, thread_id=conversation_id)
        except openai.OpenAIError as exc:
            raise AssistantError(f"Could not cancel run {run_id}: {exc}") from exc

    async def latest_reply(self, conversation_id: str) -> str:
        try:
            page = await self._client.beta.threads.messages.list(
                conversation_id, order="desc", limit=20
            )
        except openai.OpenAIError as exc:
            raise AssistantError(f"Could not list messages of {conversation_id}: {exc}") from exc
        for message in page.data:
            if message.role != "assistant":
                continue
            for block in message.content:
                if block.type == "text":
                    return block.text.value
            return ""
        return ""

    async def sync_reference_files(self, file_ids: Sequence[str]) -> Optional[str]:
        """Attach the reference files to the assistant through a vector store.

        Files that cannot be retrieved are skipped. Returns the vector store id,
        or ``None`` when nothing could be attached.
        """

        verified = []
        for file_id in file_ids:
            try:
                file = await self._client.files.retrieve(file_id)
            except openai.OpenAIError as exc:
                logger.error("Error verifying file %s: %s", file_id, exc)
                continue
            logger.info("File %s verified: %s", file_id, file.filename)
            verified.append(file_id)
        if not verified:
            logger.warning("No reference files could be verified; assistant left unchanged")
            return None

        try:
            vector_store = await self._client.vector_stores.create(
                name="UPSC Books Vector Store", file_ids=verified
            )
            await self._client.beta.assistants.update(
                self._assistant_id,
                tools=[{"type": "file_search"}],
                tool_resources={"file_search": {"vector_store_ids": [vector_store.id]}},
            )
        except openai.OpenAIError as exc:
            raise AssistantError(f"Could not attach reference files: {exc}") from exc
        logger.info(
            "Assistant %s updated with file search over vector store %s",
            self._assistant_id,
            vector_store.id,
        )
        return vector_store.id


async def wait_for_run(
    client: AssistantClient, conversation_id: str, run_id: str, policy: PollPolicy
) -> str:
    """Poll a run until it completes; raise on failure or timeout."""

    started = time.monotonic()
    delays = policy.delays()
    while True:
        status = await client.run_status(conversation_id, run_id)
        if status == "completed":
            return status
        if status in FAILED_RUN_STATUSES:
            raise RunFailedError(run_id, status)
        elapsed = time.monotonic() - started
        if policy.timeout is not None and elapsed >= policy.timeout:
            logger.warning(
                "Run %s on %s still '%s' after %.1fs; cancelling",
                run_id,
                conversation_id,
                status,
                elapsed,
            )
            try:
                await client.cancel_run(conversation_id, run_id)
            except AssistantError as exc:
                logger.warning("Cancelling run %s failed: %s", run_id, exc)
            raise RunTimeoutError(f"Run {run_id} did not finish within {policy.timeout}s")
        await asyncio.sleep(next(delays))


async def drain_conversation(
    client: AssistantClient, conversation_id: str, policy: PollPolicy
) -> None:
    """Wait out every queued or in-progress run on the conversation."""

    while True:
        run_ids = await client.active_runs(conversation_id)
        if not run_ids:
            return
        logger.info("Waiting for %d active run(s) on %s", len(run_ids), conversation_id)
        for run_id in run_ids:
            try:
                await wait_for_run(client, conversation_id, run_id, policy)
            except RunFailedError as exc:
                logger.info("Earlier run %s ended as '%s'", exc.run_id, exc.status)


async def complete_turn(
    client: AssistantClient, conversation_id: str, content: str, policy: PollPolicy
) -> str:
    """Submit a turn, run the assistant and return its reply text."""

    await client.add_turn(conversation_id, content)
    run_id = await client.start_run(conversation_id)
    await wait_for_run(client, conversation_id, run_id, policy)
    return await client.latest_reply(conversation_id)


__all__ = [
    "AssistantClient",
    "AssistantError",
    "OpenAIAssistantClient",
    "PollPolicy",
    "RunFailedError",
    "RunTimeoutError",
    "complete_turn",
    "drain_conversation",
    "wait_for_run",
]
