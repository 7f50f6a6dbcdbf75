"""Session to conversation bookkeeping and per-conversation locking."""
from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional, Tuple

from .assistant import AssistantClient


logger = logging.getLogger(__name__)


class LockTimeoutError(RuntimeError):
    """Raised when a conversation lock could not be acquired in time."""


def split_session_id(session_id: str) -> Tuple[str, int]:
    """Split ``base-3`` into ``("base", 3)``; ids without a numeric suffix have index 0."""

    base, sep, suffix = session_id.rpartition("-")
    if sep and base and suffix.isdigit():
        return base, int(suffix)
    return session_id, 0


class SessionRegistry:
    """Maps session ids to conversation handles of the AI service."""

    def __init__(self, client: AssistantClient) -> None:
        self._client = client
        self._conversations: Dict[str, str] = {}
        self._lock = asyncio.Lock()

    def get(self, session_id: str) -> Optional[str]:
        return self._conversations.get(session_id)

    async def get_or_create(self, session_id: str) -> str:
        """Return the conversation for ``session_id``, creating it on first use."""

        conversation_id = self._conversations.get(session_id)
        if conversation_id is not None:
            return conversation_id
        async with self._lock:
            conversation_id = self._conversations.get(session_id)
            if conversation_id is None:
                conversation_id = await self._client.create_conversation()
                self._conversations[session_id] = conversation_id
                logger.info("Created conversation %s for session %s", conversation_id, session_id)
        return conversation_id


class ConversationLocks:
    """One mutual-exclusion lock per conversation handle.

    Entries exist only while the lock is held or awaited.
    """

    def __init__(self) -> None:
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}

    def is_locked(self, handle: str) -> bool:
        lock = self._locks.get(handle)
        return lock is not None and lock.locked()

    def __contains__(self, handle: str) -> bool:
        return handle in self._locks

    @asynccontextmanager
    async def hold(self, handle: str, timeout: Optional[float] = None) -> AsyncIterator[None]:
        lock = self._locks.setdefault(handle, asyncio.Lock())
        self._users[handle] = self._users.get(handle, 0) + 1
        try:
            if timeout is None:
                await lock.acquire()
            else:
                await asyncio.wait_for(lock.acquire(), timeout)
        except asyncio.TimeoutError as exc:
            self._forget(handle)
            raise LockTimeoutError(
                f"Conversation {handle} still busy after {timeout}s"
            ) from exc
        except BaseException:
            self._forget(handle)
            raise
        try:
            yield
        finally:
            lock.release()
            self._forget(handle)

    def _forget(self, handle: str) -> None:
        remaining = self._users.get(handle, 0) - 1
        if remaining > 0:
            self._users[handle] = remaining
        else:
            self._users.pop(handle, None)
            self._locks.pop(handle, None)


__all__ = ["ConversationLocks", "LockTimeoutError", "SessionRegistry", "split_session_id"]
