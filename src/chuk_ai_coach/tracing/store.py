# chuk_ai_coach/tracing/store.py
"""Append-only trace event log contract and in-memory reference."""

from __future__ import annotations

from collections import defaultdict
from typing import Protocol, runtime_checkable

from .models import TraceEvent


@runtime_checkable
class TraceStore(Protocol):
    """Event log queryable by trace id."""

    async def append(self, event: TraceEvent) -> None: ...

    async def list_events(self, trace_id: str) -> list[TraceEvent]: ...


class InMemoryTraceStore:
    """Keeps events per trace in arrival order."""

    def __init__(self) -> None:
        self._events: dict[str, list[TraceEvent]] = defaultdict(list)

    async def append(self, event: TraceEvent) -> None:
        self._events[event.trace_id].append(event)

    async def list_events(self, trace_id: str) -> list[TraceEvent]:
        return list(self._events.get(trace_id, []))

    def trace_ids(self) -> list[str]:
        return list(self._events)
