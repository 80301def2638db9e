# chuk_ai_coach/orchestrator.py
"""
CoachTurnOrchestrator - one coach conversation turn, end to end.

This module ties the reliability components together:
- Credit pre-check and post-call consume
- Rolling memory for the prompt and the transcript
- Guarded LLM call with optional caller-side retry
- Anti-repeat filtering of the reply
- Per-stage trace events
- Delayed shadow chips for the turn's trace id
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from enum import Enum

from pydantic import Field

from chuk_ai_coach.base_models import DictCompatModel
from chuk_ai_coach.config import CoachSettings
from chuk_ai_coach.credits import CreditMeter
from chuk_ai_coach.exceptions import CreditsUnavailableError, MemoryStoreError, ResilienceError
from chuk_ai_coach.guards import AntiRepeatGuard
from chuk_ai_coach.memory import (
    ChatMessage,
    ConversationCompressor,
    ConversationMemoryManager,
    format_prompt_context,
)
from chuk_ai_coach.resilience import ResilienceGuard, retry_with_backoff
from chuk_ai_coach.shadow import ShadowSignalScheduler
from chuk_ai_coach.tracing import TraceRecorder, TraceStore

logger = logging.getLogger(__name__)

# Type for the LLM call: (prompt, history) -> reply text
LLMCallAsync = Callable[[str, list[ChatMessage]], Awaitable[str]]

DEFAULT_FEATURE = "chat"

MESSAGE_SERVICE_BUSY = "The coach is busy right now, please retry shortly."
MESSAGE_UPGRADE = "You've used your AI credits for this month. Upgrade to keep chatting."
MESSAGE_UPSTREAM_ERROR = "Something went wrong while preparing your answer. Please try again."


class TurnOutcome(str, Enum):
    OK = "ok"
    INSUFFICIENT_CREDITS = "insufficient_credits"
    SERVICE_BUSY = "service_busy"
    UPSTREAM_ERROR = "upstream_error"


class TurnResult(DictCompatModel):
    """What the chat surface needs to render one turn."""

    outcome: TurnOutcome
    reply: str | None = None
    trace_id: str
    user_message: str | None = None
    replaced_redundant: bool = False
    needs_compression: bool = False
    credits_remaining: int | None = None
    retry_after: float | None = None
    notice: str | None = None
    warnings: list[str] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.outcome == TurnOutcome.OK


class CoachTurnOrchestrator:
    """
    Runs turns for one (user, coach) session.

    Collaborators are injected so the host decides where state lives; the
    guard in particular may be shared across sessions that hit the same
    upstream.

    Examples:
        ```python
        orchestrator = CoachTurnOrchestrator(
            user_id="u1",
            coach_id="coach-lucy",
            llm_call=my_llm,
            guard=ResilienceGuard(),
            memory=ConversationMemoryManager(store),
            credits=CreditMeter(backend, "u1"),
            trace_store=InMemoryTraceStore(),
            shadow=ShadowSignalScheduler(shadow_store),
        )
        result = await orchestrator.handle_turn("How did I sleep this week?")
        ```
    """

    def __init__(
        self,
        user_id: str,
        coach_id: str,
        llm_call: LLMCallAsync,
        guard: ResilienceGuard,
        memory: ConversationMemoryManager,
        credits: CreditMeter,
        trace_store: TraceStore,
        shadow: ShadowSignalScheduler,
        anti_repeat: AntiRepeatGuard | None = None,
        compressor: ConversationCompressor | None = None,
        settings: CoachSettings | None = None,
        feature: str = DEFAULT_FEATURE,
        hard_gate_credits: bool = False,
        retry: bool = False,
    ):
        self.user_id = user_id
        self.coach_id = coach_id
        self.llm_call = llm_call
        self.guard = guard
        self.memory = memory
        self.credits = credits
        self.trace_store = trace_store
        self.shadow = shadow
        self.settings = settings or CoachSettings()
        self.anti_repeat = anti_repeat or AntiRepeatGuard(self.settings.anti_repeat)
        self.compressor = compressor
        self.feature = feature
        self.hard_gate_credits = hard_gate_credits
        self.retry = retry
        self._background: set[asyncio.Task] = set()

    async def start_session(self) -> None:
        """Refresh the credit copy; a failure here is logged, not fatal."""
        try:
            await self.credits.resync()
        except CreditsUnavailableError as e:
            logger.warning(f"Credit status unavailable at session start: {e}")

    async def handle_turn(self, text: str, fallbacks: Sequence[str] = ()) -> TurnResult:
        # A new turn makes any pending chips stale
        self.shadow.clear_chips()

        recorder = TraceRecorder(self.trace_store, user_id=self.user_id, coach_id=self.coach_id)
        warnings: list[str] = []

        # 1. Credits pre-check
        async with recorder.stage("credit_check", feature=self.feature) as stage:
            try:
                check = await self.credits.check(self.feature)
            except CreditsUnavailableError as e:
                if self.hard_gate_credits:
                    raise
                warnings.append("credits_unavailable")
                stage.annotate(unavailable=True)
                logger.warning(f"Proceeding without credit check: {e}")
            else:
                stage.annotate(success=check.success, remaining=check.credits_remaining)
                if not check.success:
                    return TurnResult(
                        outcome=TurnOutcome.INSUFFICIENT_CREDITS,
                        trace_id=recorder.trace_id,
                        credits_remaining=check.credits_remaining,
                        notice=MESSAGE_UPGRADE,
                    )

        # 2. Memory and prompt context
        async with recorder.stage("context_building") as stage:
            context = await self.memory.get_context(self.user_id, self.coach_id)
            history = list(context.recent_messages)
            prompt_memory = format_prompt_context(context)
            prompt = f"{prompt_memory}\n\nUser: {text}" if prompt_memory else f"User: {text}"
            stage.annotate(history_messages=len(history), has_summary=bool(context.summary))

        user_message = ChatMessage.user(text)
        needs_compression = await self._remember(user_message, warnings)

        # 3. Guarded LLM call
        try:
            async with recorder.stage("llm_call", prompt_chars=len(prompt)) as stage:
                candidate = await self._call_llm(prompt, history)
                stage.annotate(reply_chars=len(candidate))
        except ResilienceError as e:
            logger.info(f"Turn {recorder.trace_id} rejected by guard: {e}")
            return TurnResult(
                outcome=TurnOutcome.SERVICE_BUSY,
                trace_id=recorder.trace_id,
                user_message=text,
                retry_after=e.retry_after,
                notice=MESSAGE_SERVICE_BUSY,
                warnings=warnings,
            )
        except Exception as e:
            logger.warning(f"Turn {recorder.trace_id} failed upstream: {e}")
            return TurnResult(
                outcome=TurnOutcome.UPSTREAM_ERROR,
                trace_id=recorder.trace_id,
                user_message=text,
                notice=MESSAGE_UPSTREAM_ERROR,
                warnings=warnings,
            )

        # 4. Anti-repeat
        async with recorder.stage("anti_repeat") as stage:
            reply = self.anti_repeat.filter_reply(candidate, fallbacks)
            replaced = reply != candidate
            stage.annotate(replaced=replaced)

        needs_compression = await self._remember(ChatMessage.assistant(reply), warnings) or needs_compression
        if needs_compression:
            self._schedule_compression()

        # 5. Consume credits
        credits_remaining = None
        async with recorder.stage("credit_consume", feature=self.feature) as stage:
            try:
                consumed = await self.credits.consume(self.feature)
            except CreditsUnavailableError as e:
                warnings.append("credits_not_consumed")
                stage.annotate(unavailable=True)
                logger.warning(f"Credits not consumed for turn {recorder.trace_id}: {e}")
            else:
                credits_remaining = consumed.credits_remaining
                stage.annotate(success=consumed.success, remaining=consumed.credits_remaining)

        # 6. Shadow chips for this trace
        self.shadow.schedule_chips(recorder.trace_id)

        return TurnResult(
            outcome=TurnOutcome.OK,
            reply=reply,
            trace_id=recorder.trace_id,
            user_message=text,
            replaced_redundant=replaced,
            needs_compression=needs_compression,
            credits_remaining=credits_remaining,
            warnings=warnings,
        )

    async def _call_llm(self, prompt: str, history: list[ChatMessage]) -> str:
        async def attempt() -> str:
            return await self.guard.with_resilience(lambda: self.llm_call(prompt, history))

        if self.retry:
            return await retry_with_backoff(attempt, self.settings.retry)
        return await attempt()

    async def _remember(self, message: ChatMessage, warnings: list[str]) -> bool:
        try:
            result = await self.memory.add_message(self.user_id, self.coach_id, message)
        except MemoryStoreError as e:
            warnings.append("memory_not_saved")
            logger.warning(f"Message not saved to memory: {e}")
            return False
        return result.needs_compression

    def _schedule_compression(self) -> None:
        if self.compressor is None:
            return
        task = asyncio.create_task(self._compress())
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _compress(self) -> None:
        try:
            await self.compressor.compress(self.user_id, self.coach_id)
        except MemoryStoreError as e:
            logger.warning(f"Background compression failed: {e}")

    async def aclose(self) -> None:
        """Cancel pending chips and wait for background compression."""
        await self.shadow.aclose()
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)
