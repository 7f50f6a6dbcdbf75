import asyncio
from itertools import islice

import pytest

from mcqgen.assistant import (
    AssistantClient,
    OpenAIAssistantClient,
    PollPolicy,
    RunFailedError,
    RunTimeoutError,
    complete_turn,
    drain_conversation,
    wait_for_run,
)


FAST = PollPolicy(interval=0.0, max_interval=0.0, timeout=None)


class ScriptedRuns(AssistantClient):
    """Runs walk through a fixed list of statuses, one per poll."""

    def __init__(self, statuses, active=None, reply="done"):
        self.statuses = {run_id: list(seq) for run_id, seq in statuses.items()}
        self.active = list(active or [])
        self.reply = reply
        self.polls = []
        self.cancelled = []
        self.turns = []

    async def create_conversation(self):
        return "thread-1"

    async def add_turn(self, conversation_id, content):
        self.turns.append(content)

    async def start_run(self, conversation_id):
        return "run-new"

    async def run_status(self, conversation_id, run_id):
        self.polls.append(run_id)
        sequence = self.statuses[run_id]
        return sequence.pop(0) if len(sequence) > 1 else sequence[0]

    async def active_runs(self, conversation_id):
        return [
            run_id
            for run_id in self.active
            if self.statuses[run_id][0] in ("queued", "in_progress")
        ]

    async def cancel_run(self, conversation_id, run_id):
        self.cancelled.append(run_id)

    async def latest_reply(self, conversation_id):
        return self.reply


def test_poll_delays_back_off_to_a_ceiling():
    policy = PollPolicy(interval=1.0, max_interval=8.0, factor=2.0)

    assert list(islice(policy.delays(), 6)) == [1.0, 2.0, 4.0, 8.0, 8.0, 8.0]


def test_wait_for_run_returns_on_completion():
    client = ScriptedRuns({"run-1": ["queued", "in_progress", "completed"]})

    status = asyncio.run(wait_for_run(client, "thread-1", "run-1", FAST))

    assert status == "completed"
    assert client.polls == ["run-1"] * 3


def test_wait_for_run_raises_on_failed_status():
    client = ScriptedRuns({"run-1": ["in_progress", "failed"]})

    with pytest.raises(RunFailedError) as excinfo:
        asyncio.run(wait_for_run(client, "thread-1", "run-1", FAST))

    assert excinfo.value.status == "failed"
    assert excinfo.value.run_id == "run-1"


def test_wait_for_run_cancels_after_timeout():
    client = ScriptedRuns({"run-1": ["in_progress"]})
    policy = PollPolicy(interval=0.0, max_interval=0.0, timeout=0.0)

    with pytest.raises(RunTimeoutError):
        asyncio.run(wait_for_run(client, "thread-1", "run-1", policy))

    assert client.cancelled == ["run-1"]


def test_drain_waits_for_active_runs_and_tolerates_failures():
    client = ScriptedRuns(
        {"run-a": ["in_progress", "completed"], "run-b": ["in_progress", "failed"]},
        active=["run-a", "run-b"],
    )

    asyncio.run(drain_conversation(client, "thread-1", FAST))

    assert "run-a" in client.polls
    assert "run-b" in client.polls


def test_complete_turn_returns_reply():
    client = ScriptedRuns({"run-new": ["completed"]}, reply="Question: ...")

    reply = asyncio.run(complete_turn(client, "thread-1", "Generate 1 MCQ", FAST))

    assert reply == "Question: ..."
    assert client.turns == ["Generate 1 MCQ"]


@pytest.mark.parametrize("api_key, assistant_id", [(None, "asst_1"), ("sk-test", None)])
def test_openai_client_requires_credentials(api_key, assistant_id):
    with pytest.raises(RuntimeError, match="is not set"):
        OpenAIAssistantClient(api_key, assistant_id)
