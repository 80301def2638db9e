# chuk_ai_coach/resilience/guard.py
"""
ResilienceGuard - fail-fast wrapper for calls to the LLM/tool layer.

Layering, outermost first:

    circuit breaker -> token bucket -> concurrency limiter -> fn()

An open circuit therefore never spends rate budget, and a rate rejection never
occupies a concurrency slot. Only errors raised by ``fn`` itself count toward
the circuit.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from typing import TypeVar

from pydantic import BaseModel

from chuk_ai_coach.config import CircuitBreakerConfig, ConcurrencyConfig, RateLimiterConfig
from chuk_ai_coach.exceptions import ResilienceError

from .circuit_breaker import CircuitBreaker, Clock
from .concurrency import ConcurrencyLimiter
from .rate_limiter import TokenBucket

logger = logging.getLogger(__name__)

T = TypeVar("T")


class GuardStats(BaseModel):
    """Point-in-time view of a guard, for debug panels and logs."""

    failure_count: int
    circuit_open: bool
    remaining_cooldown: float
    tokens: float
    active_calls: int
    peak_calls: int
    total_calls: int
    rejected_calls: int
    failed_calls: int


class ResilienceGuard:
    """
    Circuit breaker + token bucket + concurrency limiter around one upstream.

    Each instance has independent counters, so separate endpoints (chat,
    summarization, classification) can be guarded separately.

    Example:
        ```python
        guard = ResilienceGuard()
        reply = await guard.with_resilience(lambda: llm(prompt, history))
        ```
    """

    def __init__(
        self,
        circuit: CircuitBreakerConfig | None = None,
        rate: RateLimiterConfig | None = None,
        concurrency: ConcurrencyConfig | None = None,
        clock: Clock = time.monotonic,
        name: str = "llm",
    ):
        self.name = name
        self.breaker = CircuitBreaker(circuit, clock=clock)
        self.bucket = TokenBucket(rate, clock=clock)
        self.limiter = ConcurrencyLimiter(concurrency)
        self._total_calls = 0
        self._rejected_calls = 0
        self._failed_calls = 0

    @classmethod
    def from_settings(cls, settings, clock: Clock = time.monotonic, name: str = "llm") -> ResilienceGuard:
        """Build a guard from a CoachSettings instance."""
        return cls(
            circuit=settings.circuit,
            rate=settings.rate,
            concurrency=settings.concurrency,
            clock=clock,
            name=name,
        )

    async def with_resilience(self, fn: Callable[[], Awaitable[T]]) -> T:
        """
        Run ``fn`` through all three guards.

        Raises:
            CircuitOpenError: circuit open, ``fn`` not invoked.
            RateLimitExceededError: bucket empty, ``fn`` not invoked.
            Exception: whatever ``fn`` raised (counted as a failure).
        """
        self._total_calls += 1
        try:
            self.breaker.before_call()
            self.bucket.acquire()
        except ResilienceError as e:
            self._rejected_calls += 1
            logger.debug(f"[{self.name}] call rejected: {e}")
            raise

        try:
            return await self.limiter.run(fn)
        except ResilienceError:
            # A nested guard rejected; not an upstream failure.
            self._rejected_calls += 1
            raise
        except Exception as e:
            self._failed_calls += 1
            self.breaker.record_failure()
            logger.warning(f"[{self.name}] upstream call failed ({self.breaker.failure_count} failures): {e}")
            raise

    __call__ = with_resilience

    def stats(self) -> GuardStats:
        return GuardStats(
            failure_count=self.breaker.failure_count,
            circuit_open=self.breaker.is_open,
            remaining_cooldown=self.breaker.remaining_cooldown(),
            tokens=self.bucket.tokens,
            active_calls=self.limiter.active_calls,
            peak_calls=self.limiter.counter.peak_calls,
            total_calls=self._total_calls,
            rejected_calls=self._rejected_calls,
            failed_calls=self._failed_calls,
        )
