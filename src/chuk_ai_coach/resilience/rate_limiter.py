# chuk_ai_coach/resilience/rate_limiter.py
"""Token bucket rate limiter. Rejects instead of queueing."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable

from pydantic import BaseModel, Field

from chuk_ai_coach.config import RateLimiterConfig
from chuk_ai_coach.exceptions import RateLimitExceededError


class RateBudget(BaseModel):
    """Bucket contents. ``tokens`` stays within [0, max_tokens]."""

    tokens: float = Field(ge=0)
    max_tokens: float = Field(gt=0)
    refill_rate: float = Field(gt=0, description="Tokens per second")
    last_refill: float = Field(description="Monotonic seconds")


class TokenBucket:
    """
    Classic token bucket.

    Refill is purely a function of elapsed time and happens lazily on every
    check. The bucket starts full.
    """

    def __init__(self, config: RateLimiterConfig | None = None, clock: Callable[[], float] = time.monotonic):
        config = config or RateLimiterConfig()
        self._clock = clock
        self._lock = threading.Lock()
        self.budget = RateBudget(
            tokens=config.max_tokens,
            max_tokens=config.max_tokens,
            refill_rate=config.refill_rate,
            last_refill=clock(),
        )

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self.budget.last_refill)
        self.budget.tokens = min(self.budget.max_tokens, self.budget.tokens + elapsed * self.budget.refill_rate)
        self.budget.last_refill = now

    def try_acquire(self) -> bool:
        """Take one token if available."""
        with self._lock:
            self._refill()
            if self.budget.tokens >= 1.0:
                self.budget.tokens -= 1.0
                return True
            return False

    def acquire(self) -> None:
        """
        Take one token or fail.

        Raises:
            RateLimitExceededError: with the time until the next token.
        """
        if not self.try_acquire():
            raise RateLimitExceededError(self.time_until_available())

    def time_until_available(self) -> float:
        with self._lock:
            self._refill()
            missing = 1.0 - self.budget.tokens
            if missing <= 0:
                return 0.0
            return missing / self.budget.refill_rate

    @property
    def tokens(self) -> float:
        with self._lock:
            self._refill()
            return self.budget.tokens
