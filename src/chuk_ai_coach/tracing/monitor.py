# chuk_ai_coach/tracing/monitor.py
"""
TraceMonitor - read side for debug panels.

A trace that cannot be read (store down, no events yet) is reported as
``None`` ("no data") rather than an error, so a debug view never crashes.
"""

from __future__ import annotations

import logging

from chuk_ai_coach.config import TraceConfig
from chuk_ai_coach.exceptions import TraceStoreError

from .aggregator import TraceAggregator
from .models import TraceBundle, TraceEvent
from .polling import PollOutcome, poll_until
from .store import TraceStore

logger = logging.getLogger(__name__)


class TraceMonitor:
    """Loads and watches trace bundles."""

    def __init__(self, store: TraceStore, config: TraceConfig | None = None):
        self.store = store
        self.config = config or TraceConfig()
        self.aggregator = TraceAggregator(sla_ms=self.config.sla_ms)

    async def read_events(self, trace_id: str) -> list[TraceEvent]:
        """
        Raw events for a trace.

        Raises:
            TraceStoreError: if the store cannot be read.
        """
        try:
            return await self.store.list_events(trace_id)
        except Exception as e:
            raise TraceStoreError(f"Failed to read trace {trace_id}: {e}") from e

    async def load_bundle(self, trace_id: str) -> TraceBundle | None:
        try:
            events = await self.read_events(trace_id)
        except TraceStoreError as e:
            logger.warning(f"Trace {trace_id} unreadable: {e}")
            return None
        if not events:
            return None
        return self.aggregator.aggregate(events)

    async def watch(
        self,
        trace_id: str,
        interval: float | None = None,
        max_attempts: int | None = None,
    ) -> PollOutcome[TraceBundle]:
        """Poll until the trace has data and is no longer running, or the cap is hit."""
        return await poll_until(
            lambda: self.load_bundle(trace_id),
            lambda bundle: bundle is not None and not bundle.running,
            interval=self.config.poll_interval if interval is None else interval,
            max_attempts=self.config.max_poll_attempts if max_attempts is None else max_attempts,
        )
