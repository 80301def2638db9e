# chuk_ai_coach/resilience/__init__.py
"""
Resilience for outbound LLM/tool calls.

Components:
- ResilienceGuard: circuit breaker + token bucket + concurrency limiter
- CircuitBreaker / TokenBucket / ConcurrencyLimiter: the individual layers
- retry_with_backoff: caller-side retry of transient upstream failures
"""

from chuk_ai_coach.resilience.circuit_breaker import CircuitBreaker, CircuitState
from chuk_ai_coach.resilience.concurrency import ConcurrencyCounter, ConcurrencyLimiter
from chuk_ai_coach.resilience.guard import GuardStats, ResilienceGuard
from chuk_ai_coach.resilience.rate_limiter import RateBudget, TokenBucket
from chuk_ai_coach.resilience.retry import (
    ErrorCategory,
    RetryAttempt,
    RetryReport,
    categorize_error,
    compute_delay,
    retry_with_backoff,
)

__all__ = [
    "ResilienceGuard",
    "GuardStats",
    "CircuitBreaker",
    "CircuitState",
    "TokenBucket",
    "RateBudget",
    "ConcurrencyLimiter",
    "ConcurrencyCounter",
    "ErrorCategory",
    "RetryAttempt",
    "RetryReport",
    "categorize_error",
    "compute_delay",
    "retry_with_backoff",
]
