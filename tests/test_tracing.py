# tests/test_tracing.py
"""
Tests for trace recording, aggregation and polling.

Covers:
- aggregate() status rollup against the SLA
- Order independence of the rollup
- Prompt-data detection
- TraceRecorder stage events, including cancelled stages
- poll_until and TraceMonitor
"""

import asyncio
import itertools
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from chuk_ai_coach.config import TraceConfig
from chuk_ai_coach.exceptions import TraceStoreError
from chuk_ai_coach.tracing import (
    BundleStatus,
    TraceAggregator,
    TraceEvent,
    TraceMonitor,
    TraceRecorder,
    TraceStatus,
    aggregate,
    poll_until,
)

TRACE = "trace-1"
T0 = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def _event(stage, latency_ms=None, status=TraceStatus.OK, offset_ms=0, **payload):
    return TraceEvent(
        trace_id=TRACE,
        stage=stage,
        status=status,
        latency_ms=latency_ms,
        timestamp=T0 + timedelta(milliseconds=offset_ms),
        payload=payload,
        user_id="u1",
        coach_id="coach-lucy",
    )


async def _no_sleep(_):
    return None


# ===========================================================================
# aggregate
# ===========================================================================


class TestAggregate:
    def test_green_under_sla(self):
        bundle = aggregate(
            [_event("credit_check", 100), _event("context_building", 200, offset_ms=100), _event("llm_call", 1500, offset_ms=300)]
        )
        assert bundle.status == BundleStatus.GREEN
        assert bundle.max_latency_ms == 1500
        assert bundle.stage_names == ["credit_check", "context_building", "llm_call"]
        assert bundle.duration_ms == pytest.approx(300)

    def test_yellow_over_sla(self):
        bundle = aggregate([_event("credit_check", 100), _event("llm_call", 2500, offset_ms=100)])
        assert bundle.status == BundleStatus.YELLOW

    def test_sla_boundary_is_yellow(self):
        assert aggregate([_event("llm_call", 2000)], sla_ms=2000).status == BundleStatus.YELLOW

    def test_running_is_yellow(self):
        bundle = aggregate([_event("credit_check", 10), _event("classify", status=TraceStatus.RUNNING, offset_ms=5)])
        assert bundle.status == BundleStatus.YELLOW
        assert bundle.running

    def test_error_is_red(self):
        bundle = aggregate(
            [
                _event("credit_check", 100),
                _event("llm_call", 2500, offset_ms=100),
                _event("anti_repeat", 3, status=TraceStatus.ERROR, offset_ms=2600),
            ]
        )
        assert bundle.status == BundleStatus.RED
        assert bundle.has_error
        assert bundle.running is False

    def test_order_independent(self):
        events = [
            _event("credit_check", 100),
            _event("llm_call", 1800, offset_ms=100),
            _event("anti_repeat", 2, offset_ms=100),
            _event("credit_consume", 50, offset_ms=1900),
        ]
        expected = aggregate(events)
        for permutation in itertools.permutations(events):
            assert aggregate(list(permutation)) == expected

    def test_prompt_data_detection(self):
        assert aggregate([_event("LLM_Call", 10)]).has_prompt_data
        assert aggregate([_event("rag_lookup", 10)]).has_prompt_data
        assert not aggregate([_event("credit_check", 10)]).has_prompt_data

    def test_empty_raises(self):
        with pytest.raises(ValueError):
            aggregate([])

    def test_aggregator_uses_its_sla(self):
        bundle = TraceAggregator(sla_ms=100).aggregate([_event("llm_call", 150)])
        assert bundle.status == BundleStatus.YELLOW

    def test_bundle_copies_identity(self):
        bundle = aggregate([_event("llm_call", 10)])
        assert (bundle.trace_id, bundle.user_id, bundle.coach_id) == (TRACE, "u1", "coach-lucy")


# ===========================================================================
# TraceRecorder
# ===========================================================================


class TestTraceRecorder:
    @pytest.mark.asyncio
    async def test_stage_writes_one_ok_event(self, trace_store):
        recorder = TraceRecorder(trace_store, trace_id=TRACE, user_id="u1")
        async with recorder.stage("llm_call", model="small") as stage:
            stage.annotate(reply_chars=42)

        events = await trace_store.list_events(TRACE)
        assert len(events) == 1
        event = events[0]
        assert event.status == TraceStatus.OK
        assert event.latency_ms is not None and event.latency_ms >= 0
        assert event.payload == {"model": "small", "reply_chars": 42}
        assert event.user_id == "u1"

    @pytest.mark.asyncio
    async def test_stage_error_recorded_and_reraised(self, trace_store):
        recorder = TraceRecorder(trace_store, trace_id=TRACE)
        with pytest.raises(KeyError):
            async with recorder.stage("context_building"):
                raise KeyError("missing")

        (event,) = await trace_store.list_events(TRACE)
        assert event.status == TraceStatus.ERROR
        assert event.payload["error_type"] == "KeyError"

    @pytest.mark.asyncio
    async def test_cancelled_stage_is_closed_as_error(self, trace_store):
        recorder = TraceRecorder(trace_store, trace_id=TRACE)
        entered = asyncio.Event()

        async def slow_call():
            async with recorder.stage("llm_call", model="small"):
                entered.set()
                await asyncio.sleep(10)

        task = asyncio.create_task(slow_call())
        await entered.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        (event,) = await trace_store.list_events(TRACE)
        assert event.status == TraceStatus.ERROR
        assert event.payload["error_type"] == "CancelledError"
        assert event.payload["model"] == "small"
        assert aggregate([event]).status == BundleStatus.RED

    @pytest.mark.asyncio
    async def test_store_failure_does_not_break_stage(self):
        store = AsyncMock()
        store.append.side_effect = ConnectionError("down")
        recorder = TraceRecorder(store)

        async with recorder.stage("llm_call"):
            result = "reply"
        assert result == "reply"

    @pytest.mark.asyncio
    async def test_generates_trace_id(self, trace_store):
        first = TraceRecorder(trace_store)
        second = TraceRecorder(trace_store)
        assert first.trace_id and first.trace_id != second.trace_id


# ===========================================================================
# Polling and monitor
# ===========================================================================


class TestPollUntil:
    @pytest.mark.asyncio
    async def test_stops_at_terminal_value(self):
        values = iter([1, 2, 3, 4])
        fetch = AsyncMock(side_effect=lambda: next(values))

        outcome = await poll_until(fetch, lambda v: v >= 3, sleep=_no_sleep)

        assert outcome.value == 3
        assert outcome.attempts == 3
        assert outcome.terminal

    @pytest.mark.asyncio
    async def test_attempt_cap(self):
        fetch = AsyncMock(return_value=None)

        outcome = await poll_until(fetch, lambda v: v is not None, max_attempts=4, sleep=_no_sleep)

        assert outcome.terminal is False
        assert outcome.attempts == 4
        assert fetch.await_count == 4

    @pytest.mark.asyncio
    async def test_invalid_cap(self):
        with pytest.raises(ValueError):
            await poll_until(AsyncMock(), lambda v: True, max_attempts=0)


class TestTraceMonitor:
    @pytest.mark.asyncio
    async def test_no_data(self, trace_store):
        monitor = TraceMonitor(trace_store)
        assert await monitor.load_bundle("missing") is None

    @pytest.mark.asyncio
    async def test_unreadable_store_is_no_data(self):
        store = AsyncMock()
        store.list_events.side_effect = ConnectionError("down")
        monitor = TraceMonitor(store)

        with pytest.raises(TraceStoreError):
            await monitor.read_events(TRACE)
        assert await monitor.load_bundle(TRACE) is None

    @pytest.mark.asyncio
    async def test_load_bundle(self, trace_store):
        await trace_store.append(_event("llm_call", 2100))
        monitor = TraceMonitor(trace_store, TraceConfig(sla_ms=2000))

        bundle = await monitor.load_bundle(TRACE)
        assert bundle.status == BundleStatus.YELLOW

    @pytest.mark.asyncio
    async def test_watch_finishes_when_complete(self, trace_store):
        await trace_store.append(_event("llm_call", 100))
        monitor = TraceMonitor(trace_store)

        outcome = await monitor.watch(TRACE, interval=0.001, max_attempts=3)
        assert outcome.terminal
        assert outcome.attempts == 1
        assert outcome.value.status == BundleStatus.GREEN

    @pytest.mark.asyncio
    async def test_watch_gives_up_while_running(self, trace_store):
        await trace_store.append(_event("classify", status=TraceStatus.RUNNING))
        monitor = TraceMonitor(trace_store)

        outcome = await monitor.watch(TRACE, interval=0.001, max_attempts=2)
        assert outcome.terminal is False
        assert outcome.attempts == 2
        assert outcome.value.running
