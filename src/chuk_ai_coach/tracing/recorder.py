# chuk_ai_coach/tracing/recorder.py
"""
TraceRecorder - emits stage events for one request pipeline.

Usage::

    recorder = TraceRecorder(store, user_id="u1", coach_id="coach-lucy")
    async with recorder.stage("llm_call", model="gpt-4o-mini"):
        reply = await guard.with_resilience(call)

Recording must never break the pipeline it observes: store failures are
logged and swallowed here, unlike errors raised inside the stage body.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from .models import TraceEvent, TraceStatus
from .store import TraceStore

logger = logging.getLogger(__name__)


class StageHandle:
    """Lets the stage body attach payload to its closing event."""

    def __init__(self) -> None:
        self.payload: dict[str, Any] = {}

    def annotate(self, **data: Any) -> None:
        self.payload.update(data)


class TraceRecorder:
    """Writes TraceEvents for a single trace id."""

    def __init__(
        self,
        store: TraceStore,
        trace_id: str | None = None,
        user_id: str | None = None,
        coach_id: str | None = None,
    ):
        self.store = store
        self.trace_id = trace_id or uuid.uuid4().hex
        self.user_id = user_id
        self.coach_id = coach_id

    async def emit(
        self,
        stage: str,
        status: TraceStatus = TraceStatus.OK,
        latency_ms: float | None = None,
        **payload: Any,
    ) -> TraceEvent:
        event = TraceEvent(
            trace_id=self.trace_id,
            stage=stage,
            status=status,
            latency_ms=latency_ms,
            payload=payload,
            user_id=self.user_id,
            coach_id=self.coach_id,
        )
        try:
            await self.store.append(event)
        except Exception as e:
            logger.warning(f"Failed to record trace event {stage} for {self.trace_id}: {e}")
        return event

    @asynccontextmanager
    async def stage(self, name: str, **payload: Any) -> AsyncIterator[StageHandle]:
        """
        Time the body and write one closing event: OK with latency, or ERROR
        (then re-raise). A cancelled stage is closed as ERROR with
        ``error_type="CancelledError"``.

        No RUNNING event is written on entry. Events are never updated, and a
        RUNNING event would keep the whole trace marked as running; use
        ``emit(..., TraceStatus.RUNNING)`` only for work that really outlives
        the request.
        """
        handle = StageHandle()
        started = time.perf_counter()
        try:
            yield handle
        except (Exception, asyncio.CancelledError) as e:
            latency = (time.perf_counter() - started) * 1000
            await self.emit(
                name,
                TraceStatus.ERROR,
                latency_ms=latency,
                **{**payload, **handle.payload},
                error=(str(e) or type(e).__name__)[:500],
                error_type=type(e).__name__,
            )
            raise
        latency = (time.perf_counter() - started) * 1000
        await self.emit(name, TraceStatus.OK, latency_ms=latency, **{**payload, **handle.payload})
