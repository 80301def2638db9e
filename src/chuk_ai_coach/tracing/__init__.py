# chuk_ai_coach/tracing/__init__.py
"""
Pipeline tracing.

Components:
- TraceRecorder: writes stage events for one trace id
- aggregate / TraceAggregator: folds events into a TraceBundle against an SLA
- TraceMonitor / poll_until: read side with polling
- TraceStore / InMemoryTraceStore: append-only event log
"""

from chuk_ai_coach.tracing.aggregator import PROMPT_STAGE_HINTS, TraceAggregator, aggregate
from chuk_ai_coach.tracing.models import BundleStatus, TraceBundle, TraceEvent, TraceStatus
from chuk_ai_coach.tracing.monitor import TraceMonitor
from chuk_ai_coach.tracing.polling import PollOutcome, poll_until
from chuk_ai_coach.tracing.recorder import StageHandle, TraceRecorder
from chuk_ai_coach.tracing.store import InMemoryTraceStore, TraceStore

__all__ = [
    "aggregate",
    "TraceAggregator",
    "PROMPT_STAGE_HINTS",
    "TraceEvent",
    "TraceBundle",
    "TraceStatus",
    "BundleStatus",
    "TraceMonitor",
    "PollOutcome",
    "poll_until",
    "TraceRecorder",
    "StageHandle",
    "TraceStore",
    "InMemoryTraceStore",
]
