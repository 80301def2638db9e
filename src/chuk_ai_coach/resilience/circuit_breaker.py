# chuk_ai_coach/resilience/circuit_breaker.py
"""
Circuit breaker with exponential backoff.

The breaker counts failures of the wrapped upstream. Once ``failure_threshold``
failures have accumulated, calls are rejected until the time since the last
failure exceeds the current backoff:

    backoff(n) = min(max_backoff, recovery_timeout * multiplier ** (n - threshold))

Below the threshold the exponent is clamped at zero, so stale failures are
forgotten after ``recovery_timeout``.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable

from pydantic import BaseModel, Field

from chuk_ai_coach.config import CircuitBreakerConfig
from chuk_ai_coach.exceptions import CircuitOpenError

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class CircuitState(BaseModel):
    """Mutable breaker state, owned by one CircuitBreaker instance."""

    failure_count: int = Field(default=0, ge=0)
    last_failure_time: float | None = Field(default=None, description="Monotonic seconds")
    threshold: int = 5
    recovery_timeout: float = 30.0
    max_backoff: float = 300.0
    multiplier: float = 2.0

    def backoff(self, failure_count: int | None = None) -> float:
        """Cooldown in seconds for the given (or current) failure count."""
        n = self.failure_count if failure_count is None else failure_count
        exponent = max(0, n - self.threshold)
        try:
            delay = self.recovery_timeout * self.multiplier**exponent
        except OverflowError:
            return self.max_backoff
        return min(self.max_backoff, delay)

    @property
    def is_open(self) -> bool:
        return self.failure_count >= self.threshold


class CircuitBreaker:
    """Failure counter that fails fast while the upstream is considered down."""

    def __init__(self, config: CircuitBreakerConfig | None = None, clock: Clock = time.monotonic):
        config = config or CircuitBreakerConfig()
        self.state = CircuitState(
            threshold=config.failure_threshold,
            recovery_timeout=config.recovery_timeout,
            max_backoff=config.max_backoff,
            multiplier=config.multiplier,
        )
        self._clock = clock
        self._lock = threading.Lock()

    def before_call(self) -> None:
        """
        Gate a call attempt.

        Raises:
            CircuitOpenError: with the remaining cooldown when open.
        """
        with self._lock:
            state = self.state
            if state.last_failure_time is not None and state.failure_count > 0:
                elapsed = self._clock() - state.last_failure_time
                cooldown = state.backoff()
                if elapsed > cooldown:
                    if state.is_open:
                        logger.info("Circuit closed after %.1fs cooldown", cooldown)
                    state.failure_count = 0
                elif state.is_open:
                    raise CircuitOpenError(cooldown - elapsed)

    def record_failure(self) -> None:
        with self._lock:
            self.state.failure_count += 1
            self.state.last_failure_time = self._clock()
            if self.state.failure_count == self.state.threshold:
                logger.warning(
                    "Circuit opened after %d failures (cooldown %.1fs)",
                    self.state.failure_count,
                    self.state.backoff(),
                )

    @property
    def failure_count(self) -> int:
        return self.state.failure_count

    @property
    def is_open(self) -> bool:
        return self.state.is_open

    def remaining_cooldown(self) -> float:
        """Seconds until the breaker lets a call through (0 when closed)."""
        with self._lock:
            if not self.state.is_open or self.state.last_failure_time is None:
                return 0.0
            elapsed = self._clock() - self.state.last_failure_time
            return max(0.0, self.state.backoff() - elapsed)

    def reset(self) -> None:
        with self._lock:
            self.state.failure_count = 0
            self.state.last_failure_time = None
