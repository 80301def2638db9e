# chuk_ai_coach/tracing/polling.py
"""
Generic "poll until terminal or attempt cap" helper.

Transport-agnostic: ``fetch`` can read a database, call an API, or drain a
push subscription buffer. Callers only see the final value.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

from pydantic import BaseModel

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PollOutcome(BaseModel, Generic[T]):
    """Last fetched value and how polling ended."""

    value: T | None = None
    attempts: int = 0
    terminal: bool = False


async def poll_until(
    fetch: Callable[[], Awaitable[T]],
    is_terminal: Callable[[T], bool],
    interval: float = 1.0,
    max_attempts: int = 10,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> PollOutcome[T]:
    """
    Call ``fetch`` until ``is_terminal(value)`` or ``max_attempts`` calls.

    Exceptions from ``fetch`` propagate; wrap ``fetch`` if a failed read
    should count as an empty result instead.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")

    value: T | None = None
    for attempt in range(1, max_attempts + 1):
        value = await fetch()
        if is_terminal(value):
            return PollOutcome(value=value, attempts=attempt, terminal=True)
        if attempt < max_attempts:
            await sleep(interval)

    logger.debug(f"Polling stopped after {max_attempts} attempts without a terminal state")
    return PollOutcome(value=value, attempts=max_attempts, terminal=False)
