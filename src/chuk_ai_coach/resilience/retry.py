# chuk_ai_coach/resilience/retry.py
"""
Caller-side retry for transient upstream failures.

The guard never retries on its own; it counts the failure and re-raises. A
caller that wants to try again uses ``retry_with_backoff``. Guard rejections
(circuit open, rate limited) are surfaced immediately so the caller can show
"busy" instead of hammering a tripped breaker.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import TypeVar

from pydantic import BaseModel, Field

from chuk_ai_coach.config import RetryConfig
from chuk_ai_coach.exceptions import ResilienceError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ErrorCategory(str, Enum):
    """Coarse classification of upstream failures."""

    TIMEOUT = "timeout"
    NETWORK = "network"
    AUTH = "auth"
    RATE_LIMIT = "rate_limit"
    CLIENT_ERROR = "client_error"
    SERVER_ERROR = "server_error"
    UNKNOWN = "unknown"


NON_RETRYABLE = {ErrorCategory.AUTH, ErrorCategory.CLIENT_ERROR}


class RetryAttempt(BaseModel):
    attempt: int
    error: str | None = None
    category: ErrorCategory | None = None
    delay: float = 0.0


class RetryReport(BaseModel):
    """What happened across the attempts of one retried operation."""

    attempts: list[RetryAttempt] = Field(default_factory=list)
    succeeded: bool = False

    @property
    def attempt_count(self) -> int:
        return len(self.attempts)


def categorize_error(error: BaseException) -> ErrorCategory:
    """Classify an exception by type, status code attribute, or message."""
    if isinstance(error, (asyncio.TimeoutError, TimeoutError)):
        return ErrorCategory.TIMEOUT
    if isinstance(error, ConnectionError):
        return ErrorCategory.NETWORK

    status = getattr(error, "status_code", None)
    if isinstance(status, int):
        if status in (401, 403):
            return ErrorCategory.AUTH
        if status == 429:
            return ErrorCategory.RATE_LIMIT
        if 400 <= status < 500:
            return ErrorCategory.CLIENT_ERROR
        if status >= 500:
            return ErrorCategory.SERVER_ERROR

    message = str(error).lower()
    if "timeout" in message or "timed out" in message:
        return ErrorCategory.TIMEOUT
    if "network" in message or "connection" in message:
        return ErrorCategory.NETWORK
    if "401" in message or "403" in message:
        return ErrorCategory.AUTH
    if "429" in message:
        return ErrorCategory.RATE_LIMIT
    if "500" in message or "502" in message or "503" in message:
        return ErrorCategory.SERVER_ERROR
    return ErrorCategory.UNKNOWN


def compute_delay(attempt: int, config: RetryConfig, rng: random.Random | None = None) -> float:
    """Backoff before retry number ``attempt`` (1-based), with jitter."""
    base = min(config.max_delay, config.base_delay * config.multiplier ** (attempt - 1))
    if config.jitter <= 0 or base <= 0:
        return base
    rng = rng or random
    jitter = base * config.jitter * (rng.random() - 0.5)
    return max(0.0, base + jitter)


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    config: RetryConfig | None = None,
    report: RetryReport | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Run ``operation``, retrying transient failures.

    Args:
        operation: zero-argument coroutine factory, usually a guarded call
        config: attempt count and backoff shape
        report: optional RetryReport that is filled in as attempts happen
        sleep: injectable sleep for tests

    Raises:
        ResilienceError: immediately, without retrying
        Exception: the last upstream error once attempts are exhausted or the
            error is not retryable
    """
    config = config or RetryConfig()
    report = report if report is not None else RetryReport()

    for attempt in range(1, config.max_attempts + 1):
        try:
            result = await operation()
        except ResilienceError:
            raise
        except Exception as e:
            category = categorize_error(e)
            record = RetryAttempt(attempt=attempt, error=str(e)[:220], category=category)
            report.attempts.append(record)
            if category in NON_RETRYABLE or attempt >= config.max_attempts:
                raise
            record.delay = compute_delay(attempt, config)
            logger.info(
                "Attempt %d/%d failed (%s), retrying in %.2fs",
                attempt,
                config.max_attempts,
                category.value,
                record.delay,
            )
            await sleep(record.delay)
        else:
            report.attempts.append(RetryAttempt(attempt=attempt))
            report.succeeded = True
            return result

    raise RuntimeError("unreachable")  # pragma: no cover
