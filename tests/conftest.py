# tests/conftest.py
"""
Shared pytest fixtures and configuration for chuk_ai_coach tests.
"""

import logging
from datetime import datetime, timedelta, timezone

import pytest

from chuk_ai_coach.credits import InMemoryCreditsBackend
from chuk_ai_coach.memory import InMemoryConversationStore
from chuk_ai_coach.shadow import InMemoryShadowStore
from chuk_ai_coach.tracing import InMemoryTraceStore

# Configure logging for tests
logging.basicConfig(level=logging.WARNING)
logging.getLogger("chuk_ai_coach").setLevel(logging.DEBUG)


class FakeClock:
    """Monotonic clock the test advances by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeWallClock:
    """Timezone-aware wall clock the test advances by hand."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def wall_clock():
    return FakeWallClock()


@pytest.fixture
def memory_store():
    return InMemoryConversationStore()


@pytest.fixture
def trace_store():
    return InMemoryTraceStore()


@pytest.fixture
def shadow_store(wall_clock):
    return InMemoryShadowStore(now=wall_clock)


@pytest.fixture
def credits_backend(wall_clock):
    return InMemoryCreditsBackend(monthly_quota=100, now=wall_clock)


@pytest.fixture
def mock_llm_callback():
    """LLM stand-in for summarization: echoes how many lines it was asked about."""

    async def callback(messages):
        conversation = messages[-1]["content"]
        lines = [line for line in conversation.splitlines() if line.startswith(("user:", "assistant:"))]
        return f"Summary of {len(lines)} messages"

    return callback
