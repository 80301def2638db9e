# chuk_ai_coach/shadow/scheduler.py
"""
ShadowSignalScheduler - delayed, cancellable fetch of suggestion chips.

The soft classification for a turn is computed server-side after the reply
has been delivered. The scheduler waits (6.5s by default), reads the
suggestions for the turn's trace id once, and exposes at most three of them
if they have not expired. Starting a new turn or tearing down the session
cancels the pending read; once cancelled, that schedule can never expose
anything.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from datetime import datetime, timezone

from chuk_ai_coach.config import ShadowConfig

from .store import ShadowStore

logger = logging.getLogger(__name__)

ChipsCallback = Callable[[str, list[str]], None]


class ShadowSignalScheduler:
    """One pending timer per session, owned by this object."""

    def __init__(
        self,
        store: ShadowStore,
        config: ShadowConfig | None = None,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
        on_chips: ChipsCallback | None = None,
    ):
        self.store = store
        self.config = config or ShadowConfig()
        self._now = now
        self._on_chips = on_chips
        self._task: asyncio.Task | None = None
        self._generation = 0
        self.chips: list[str] = []
        self.shadow_trace_id: str | None = None

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def schedule_chips(self, trace_id: str, delay_ms: int | None = None) -> asyncio.Task:
        """
        Arm the timer for ``trace_id``, cancelling any pending one.

        Must be called from a running event loop.
        """
        self._cancel_pending()
        self.chips = []
        self.shadow_trace_id = trace_id
        delay = self.config.delay_ms if delay_ms is None else delay_ms
        self._generation += 1
        self._task = asyncio.create_task(
            self._fire(trace_id, delay / 1000, self._generation),
            name=f"shadow-chips-{trace_id}",
        )
        logger.debug(f"Scheduled shadow chips for {trace_id} in {delay}ms")
        return self._task

    def clear_chips(self) -> None:
        """Cancel the pending read and hide any exposed chips."""
        self._cancel_pending()
        self.chips = []

    def clear_shadow_trace_id(self) -> None:
        """Like ``clear_chips`` and also forget the trace id."""
        self.clear_chips()
        self.shadow_trace_id = None

    async def aclose(self) -> None:
        """Tear down: cancel and wait for the pending task to finish."""
        task = self._task
        self.clear_shadow_trace_id()
        if task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await task

    def _cancel_pending(self) -> None:
        # Bumping the generation also invalidates a task that already finished
        # its sleep but has not been scheduled again yet.
        self._generation += 1
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def _fire(self, trace_id: str, delay: float, generation: int) -> None:
        await asyncio.sleep(delay)
        if generation != self._generation:
            return

        try:
            suggestion = await self.store.get(trace_id)
        except Exception as e:
            logger.warning(f"Shadow suggestions for {trace_id} unavailable: {e}")
            return

        if generation != self._generation:
            return
        if suggestion is None or not suggestion.is_live(self._now()):
            logger.debug(f"No live shadow suggestions for {trace_id}")
            return

        chips = [s for s in suggestion.suggestions if s][: self.config.max_suggestions]
        if not chips:
            return

        self.chips = chips
        logger.debug(f"Exposed {len(chips)} shadow chips for {trace_id}")
        if self._on_chips is not None:
            self._on_chips(trace_id, list(chips))
