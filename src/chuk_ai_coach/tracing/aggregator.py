# chuk_ai_coach/tracing/aggregator.py
"""
TraceAggregator - folds per-stage events into one TraceBundle.

Pure and order-independent: events are re-sorted by (timestamp, stage,
event_id), so any permutation of the same event set yields the same bundle.
"""

from __future__ import annotations

from collections.abc import Iterable

from chuk_ai_coach.config import DEFAULT_SLA_MS

from .models import BundleStatus, TraceBundle, TraceEvent, TraceStatus

# Stage-name fragments that indicate a prompt inspector has something to show
PROMPT_STAGE_HINTS: tuple[str, ...] = ("prompt", "llm", "context", "rag")


def _sort_key(event: TraceEvent) -> tuple:
    return (event.timestamp, event.stage, event.event_id)


def has_prompt_stage(stages: Iterable[str]) -> bool:
    return any(hint in stage.lower() for stage in stages for hint in PROMPT_STAGE_HINTS)


def rollup_status(has_error: bool, running: bool, max_latency_ms: float, sla_ms: float) -> BundleStatus:
    if has_error:
        return BundleStatus.RED
    if running or max_latency_ms >= sla_ms:
        return BundleStatus.YELLOW
    return BundleStatus.GREEN


def aggregate(events: Iterable[TraceEvent], sla_ms: float = DEFAULT_SLA_MS) -> TraceBundle:
    """
    Build the bundle for a set of events.

    Raises:
        ValueError: if ``events`` is empty.
    """
    ordered = sorted(events, key=_sort_key)
    if not ordered:
        raise ValueError("cannot aggregate an empty trace")

    first, last = ordered[0], ordered[-1]
    max_latency = max(event.latency_ms or 0.0 for event in ordered)
    has_error = any(event.status == TraceStatus.ERROR for event in ordered)
    running = not has_error and any(event.status == TraceStatus.RUNNING for event in ordered)

    return TraceBundle(
        trace_id=first.trace_id,
        user_id=first.user_id,
        coach_id=first.coach_id,
        started_at=first.timestamp,
        last_event_at=last.timestamp,
        stages=ordered,
        status=rollup_status(has_error, running, max_latency, sla_ms),
        max_latency_ms=max_latency,
        has_error=has_error,
        running=running,
        has_prompt_data=has_prompt_stage(event.stage for event in ordered),
    )


class TraceAggregator:
    """Holds the SLA so callers don't thread it through every call."""

    def __init__(self, sla_ms: float = DEFAULT_SLA_MS):
        self.sla_ms = sla_ms

    def aggregate(self, events: Iterable[TraceEvent]) -> TraceBundle:
        return aggregate(events, sla_ms=self.sla_ms)
