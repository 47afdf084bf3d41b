import asyncio
from typing import Dict, List, Optional, Tuple

import pytest

from genspecs.core.generation_state import ProjectDetails
from genspecs.llm.adapter import BaseCompletionClient
from genspecs.llm.retry import RetryPolicy


class MemoryStorage:
    def __init__(self, fail_writes: bool = False, write_delay: float = 0.0) -> None:
        self.data: Dict[str, str] = {}
        self.fail_writes = fail_writes
        self.write_delay = write_delay
        self.writes = 0

    async def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    async def set(self, key: str, value: str) -> None:
        self.writes += 1
        if self.write_delay:
            await asyncio.sleep(self.write_delay)
        if self.fail_writes:
            raise OSError("disk full")
        self.data[key] = value

    async def delete(self, key: str) -> None:
        self.data.pop(key, None)


class StaticCredentials:
    def __init__(self, api_key: Optional[str] = "sk-test") -> None:
        self.api_key = api_key


class ScriptedClient(BaseCompletionClient):
    """Replays queued outcomes; text when empty. Exceptions in the queue are raised."""

    def __init__(self, outcomes=None, delay: float = 0.0) -> None:
        self.outcomes = list(outcomes or [])
        self.delay = delay
        self.calls: List[Tuple[str, str]] = []
        self.closed = False

    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        self.calls.append((system_prompt, user_prompt))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.outcomes:
            outcome = self.outcomes.pop(0)
            if isinstance(outcome, BaseException):
                raise outcome
            return outcome
        return f"generated #{len(self.calls)}"

    async def aclose(self) -> None:
        self.closed = True


class RecordingFactory:
    """Hands out one ScriptedClient per call and remembers the keys it was given."""

    def __init__(self, outcomes=None, delay: float = 0.0) -> None:
        self.outcomes = list(outcomes or [])
        self.delay = delay
        self.keys: List[str] = []
        self.clients: List[ScriptedClient] = []

    def __call__(self, api_key: str) -> ScriptedClient:
        self.keys.append(api_key)
        outcome = [self.outcomes.pop(0)] if self.outcomes else []
        client = ScriptedClient(outcome, delay=self.delay)
        self.clients.append(client)
        return client

    @property
    def prompts(self) -> List[Tuple[str, str]]:
        return [call for client in self.clients for call in client.calls]


@pytest.fixture
def fast_policy():
    return RetryPolicy(timeout_seconds=0.5, max_attempts=3, backoff_seconds=0, max_backoff_seconds=0)


@pytest.fixture
def project_details():
    return ProjectDetails(
        name="Plant Tracker",
        description="Tracks watering schedules for house plants",
        user_stories=["As a user I can add a plant", "As a user I get watering reminders"],
    )


@pytest.fixture
def memory_storage():
    return MemoryStorage


@pytest.fixture
def scripted_client():
    return ScriptedClient


@pytest.fixture
def recording_factory():
    return RecordingFactory


@pytest.fixture
def static_credentials():
    return StaticCredentials
