# chuk_ai_coach/resilience/concurrency.py
"""Concurrency limiter that waits for a free slot by polling."""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Awaitable, Callable
from typing import TypeVar

from pydantic import BaseModel, Field

from chuk_ai_coach.config import ConcurrencyConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ConcurrencyCounter(BaseModel):
    """In-flight call count. ``active_calls`` never exceeds ``max_concurrent``."""

    active_calls: int = Field(default=0, ge=0)
    max_concurrent: int = Field(default=3, ge=1)
    peak_calls: int = Field(default=0, ge=0)


class ConcurrencyLimiter:
    """
    Caps in-flight invocations.

    Callers over the limit sleep ``poll_interval`` and re-check; the slot check
    and the increment happen without an await in between, so two coroutines
    can never take the last slot together.
    """

    def __init__(self, config: ConcurrencyConfig | None = None):
        config = config or ConcurrencyConfig()
        self.counter = ConcurrencyCounter(max_concurrent=config.max_concurrent)
        self.poll_interval = config.poll_interval
        self._lock = threading.Lock()

    def _try_enter(self) -> bool:
        with self._lock:
            if self.counter.active_calls >= self.counter.max_concurrent:
                return False
            self.counter.active_calls += 1
            self.counter.peak_calls = max(self.counter.peak_calls, self.counter.active_calls)
            return True

    def _leave(self) -> None:
        with self._lock:
            self.counter.active_calls -= 1

    async def run(self, fn: Callable[[], Awaitable[T]]) -> T:
        """Run ``fn`` once a slot is free; always releases the slot."""
        waited = False
        while not self._try_enter():
            if not waited:
                logger.debug("Concurrency limit %d reached, waiting for a slot", self.counter.max_concurrent)
                waited = True
            await asyncio.sleep(self.poll_interval)
        try:
            return await fn()
        finally:
            self._leave()

    @property
    def active_calls(self) -> int:
        return self.counter.active_calls
