# tests/test_orchestrator.py
"""
End-to-end tests for CoachTurnOrchestrator.

Covers:
- A normal turn through every stage
- Insufficient credits and unreachable credits
- Guard rejections surfaced as "busy"
- Anti-repeat replacement
- Background compression and shadow chips
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from chuk_ai_coach.config import CircuitBreakerConfig, MemoryConfig, ShadowConfig
from chuk_ai_coach.credits import CreditMeter
from chuk_ai_coach.exceptions import CreditsUnavailableError
from chuk_ai_coach.memory import ConversationCompressor, ConversationMemoryManager
from chuk_ai_coach.orchestrator import CoachTurnOrchestrator, TurnOutcome
from chuk_ai_coach.resilience import ResilienceGuard
from chuk_ai_coach.shadow import ShadowSignalScheduler
from chuk_ai_coach.tracing import BundleStatus, TraceMonitor, TraceStatus

USER = "u1"
COACH = "coach-lucy"


class FakeLLM:
    """Returns queued replies; an Exception in the queue is raised instead."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.prompts = []

    async def __call__(self, prompt, history):
        self.prompts.append(prompt)
        reply = self.replies.pop(0) if self.replies else "Let's keep going."
        if isinstance(reply, Exception):
            raise reply
        return reply


def _orchestrator(
    llm,
    clock,
    memory_store,
    trace_store,
    shadow_store,
    credits_backend,
    wall_clock,
    threshold=5,
    memory_config=None,
    compressor_fn=None,
    **kwargs,
):
    memory = ConversationMemoryManager(memory_store, memory_config or MemoryConfig())
    guard = ResilienceGuard(
        circuit=CircuitBreakerConfig(failure_threshold=threshold, recovery_timeout=30, max_backoff=300),
        clock=clock,
    )
    return CoachTurnOrchestrator(
        user_id=USER,
        coach_id=COACH,
        llm_call=llm,
        guard=guard,
        memory=memory,
        credits=CreditMeter(credits_backend, USER),
        trace_store=trace_store,
        shadow=ShadowSignalScheduler(shadow_store, ShadowConfig(delay_ms=10), now=wall_clock),
        compressor=ConversationCompressor(memory, compressor_fn) if compressor_fn else None,
        **kwargs,
    )


@pytest.fixture
def build(clock, memory_store, trace_store, shadow_store, credits_backend, wall_clock):
    def _build(llm, **kwargs):
        return _orchestrator(
            llm, clock, memory_store, trace_store, shadow_store, credits_backend, wall_clock, **kwargs
        )

    return _build


# ===========================================================================
# Happy path
# ===========================================================================


class TestHandleTurn:
    @pytest.mark.asyncio
    async def test_ok_turn(self, build, memory_store, trace_store, credits_backend):
        orchestrator = build(FakeLLM("You slept 7 hours on average."))
        await orchestrator.start_session()

        result = await orchestrator.handle_turn("How did I sleep this week?")
        await orchestrator.aclose()

        assert result.ok
        assert result.reply == "You slept 7 hours on average."
        assert result.credits_remaining == 99
        assert result.warnings == []

        window = await memory_store.get_window(USER, COACH)
        assert [m.content for m in window.recent_messages] == [
            "How did I sleep this week?",
            "You slept 7 hours on average.",
        ]

        events = await trace_store.list_events(result.trace_id)
        assert [e.stage for e in events] == [
            "credit_check",
            "context_building",
            "llm_call",
            "anti_repeat",
            "credit_consume",
        ]
        assert all(e.status == TraceStatus.OK for e in events)
        assert (await credits_backend.get_status(USER)).remaining == 99

    @pytest.mark.asyncio
    async def test_prompt_carries_memory(self, build):
        llm = FakeLLM("First answer.", "Second answer about something else.")
        orchestrator = build(llm)

        await orchestrator.handle_turn("First question")
        await orchestrator.handle_turn("Second question")
        await orchestrator.aclose()

        assert llm.prompts[0] == "User: First question"
        second = llm.prompts[1]
        assert "Recent messages:\nUser: First question\nCoach: First answer." in second
        assert second.endswith("User: Second question")

    @pytest.mark.asyncio
    async def test_repeated_reply_replaced(self, build):
        same = "Try going to bed 30 minutes earlier tonight."
        orchestrator = build(FakeLLM(same, same))

        await orchestrator.handle_turn("Any sleep tips?")
        result = await orchestrator.handle_turn("Any other sleep tips?", fallbacks=["Want to review your evening routine?"])
        await orchestrator.aclose()

        assert result.replaced_redundant
        assert result.reply == "Want to review your evening routine?"


# ===========================================================================
# Credits
# ===========================================================================


class TestCredits:
    @pytest.mark.asyncio
    async def test_insufficient_credits_stops_before_llm(self, build, credits_backend, memory_store):
        credits_backend.set_account(USER, remaining=0)
        llm = FakeLLM("never sent")
        orchestrator = build(llm)

        result = await orchestrator.handle_turn("Hello?")

        assert result.outcome == TurnOutcome.INSUFFICIENT_CREDITS
        assert result.notice
        assert llm.prompts == []
        assert await memory_store.get_window(USER, COACH) is None
        assert not orchestrator.shadow.pending

    @pytest.mark.asyncio
    async def test_unreachable_credits_soft_gate(self, build, credits_backend):
        credits_backend.consume_for_feature = AsyncMock(side_effect=ConnectionError("down"))
        orchestrator = build(FakeLLM("Still here."))

        result = await orchestrator.handle_turn("Hello?")
        await orchestrator.aclose()

        assert result.ok
        assert result.credits_remaining is None
        assert result.warnings == ["credits_unavailable", "credits_not_consumed"]

    @pytest.mark.asyncio
    async def test_unreachable_credits_hard_gate(self, build, credits_backend):
        credits_backend.consume_for_feature = AsyncMock(side_effect=ConnectionError("down"))
        llm = FakeLLM("never sent")
        orchestrator = build(llm, hard_gate_credits=True)

        with pytest.raises(CreditsUnavailableError):
            await orchestrator.handle_turn("Hello?")
        assert llm.prompts == []


# ===========================================================================
# Upstream failures
# ===========================================================================


class TestUpstreamFailures:
    @pytest.mark.asyncio
    async def test_failure_then_busy(self, build, credits_backend, trace_store):
        llm = FakeLLM(RuntimeError("model overloaded"), "never sent")
        orchestrator = build(llm, threshold=1)

        failed = await orchestrator.handle_turn("First try")
        busy = await orchestrator.handle_turn("Second try")

        assert failed.outcome == TurnOutcome.UPSTREAM_ERROR
        assert busy.outcome == TurnOutcome.SERVICE_BUSY
        assert busy.retry_after == pytest.approx(30.0)
        assert len(llm.prompts) == 1
        # No credits consumed for either turn
        assert (await credits_backend.get_status(USER)).remaining == 100

        bundle = await TraceMonitor(trace_store).load_bundle(failed.trace_id)
        assert bundle.status == BundleStatus.RED
        assert bundle.has_prompt_data

    @pytest.mark.asyncio
    async def test_user_message_kept_on_failure(self, build, memory_store):
        orchestrator = build(FakeLLM(RuntimeError("boom")))

        await orchestrator.handle_turn("Are you there?")

        window = await memory_store.get_window(USER, COACH)
        assert [m.content for m in window.recent_messages] == ["Are you there?"]


# ===========================================================================
# Background work
# ===========================================================================


class TestBackgroundWork:
    @pytest.mark.asyncio
    async def test_compression_runs_in_background(self, build, memory_store, mock_llm_callback):
        orchestrator = build(
            FakeLLM("Answer one.", "Answer two is different."),
            memory_config=MemoryConfig(compression_threshold=2, keep_recent=1),
            compressor_fn=mock_llm_callback,
        )

        await orchestrator.handle_turn("Question one")
        result = await orchestrator.handle_turn("Question two")
        await orchestrator.aclose()

        assert result.needs_compression
        window = await memory_store.get_window(USER, COACH)
        assert [m.content for m in window.recent_messages] == ["Answer two is different."]
        assert window.rolling_summary == "Summary of 3 messages"
        assert window.message_count == 4

    @pytest.mark.asyncio
    async def test_chips_for_latest_turn(self, build, shadow_store):
        orchestrator = build(FakeLLM("Nice work today."))

        result = await orchestrator.handle_turn("I walked 10k steps")
        await shadow_store.publish(result.trace_id, ["Plan tomorrow", "Log water"])
        await asyncio.sleep(0.05)

        assert orchestrator.shadow.shadow_trace_id == result.trace_id
        assert orchestrator.shadow.chips == ["Plan tomorrow", "Log water"]

        # A new turn hides the old chips straight away
        await orchestrator.handle_turn("And tomorrow?")
        assert orchestrator.shadow.chips == []
        await orchestrator.aclose()
