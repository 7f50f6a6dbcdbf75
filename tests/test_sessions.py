import asyncio

import pytest
from conftest import FakeAssistant

from mcqgen.sessions import ConversationLocks, LockTimeoutError, SessionRegistry, split_session_id


@pytest.mark.parametrize(
    "session_id, expected",
    [
        ("user42-3", ("user42", 3)),
        ("alice-bob-12", ("alice-bob", 12)),
        ("alice-bob", ("alice-bob", 0)),
        ("plain", ("plain", 0)),
        ("-5", ("-5", 0)),
    ],
)
def test_split_session_id(session_id, expected):
    assert split_session_id(session_id) == expected


def test_registry_creates_one_conversation_per_session():
    assistant = FakeAssistant()
    registry = SessionRegistry(assistant)

    async def scenario():
        first, second, other = await asyncio.gather(
            registry.get_or_create("s1"),
            registry.get_or_create("s1"),
            registry.get_or_create("s2"),
        )
        again = await registry.get_or_create("s1")
        return first, second, other, again

    first, second, other, again = asyncio.run(scenario())

    assert first == second == again
    assert other != first
    assert assistant.conversations_created == 2
    assert registry.get("s1") == first


def test_lock_serialises_holders_of_the_same_handle():
    locks = ConversationLocks()
    timeline = []

    async def worker(name):
        async with locks.hold("thread-1"):
            timeline.append(f"{name}:in")
            await asyncio.sleep(0.01)
            timeline.append(f"{name}:out")

    async def scenario():
        await asyncio.gather(worker("a"), worker("b"), worker("c"))

    asyncio.run(scenario())

    assert timeline == [
        "a:in", "a:out",
        "b:in", "b:out",
        "c:in", "c:out",
    ]


def test_different_handles_do_not_block_each_other():
    locks = ConversationLocks()

    async def scenario():
        async with locks.hold("thread-1"):
            async with locks.hold("thread-2", timeout=0.1):
                return locks.is_locked("thread-1") and locks.is_locked("thread-2")

    assert asyncio.run(scenario())


def test_lock_entry_is_removed_after_release_even_on_error():
    locks = ConversationLocks()

    async def scenario():
        with pytest.raises(RuntimeError):
            async with locks.hold("thread-1"):
                assert "thread-1" in locks
                raise RuntimeError("boom")
        return "thread-1" in locks, locks.is_locked("thread-1")

    present, locked = asyncio.run(scenario())

    assert not present
    assert not locked


def test_lock_acquisition_times_out():
    locks = ConversationLocks()

    async def scenario():
        async with locks.hold("thread-1"):
            with pytest.raises(LockTimeoutError):
                async with locks.hold("thread-1", timeout=0.01):
                    pass
            still_held = locks.is_locked("thread-1")
        return still_held, "thread-1" in locks

    still_held, present = asyncio.run(scenario())

    assert still_held
    assert not present
