# chuk_ai_coach/shadow/store.py
"""Shadow-state store keyed by trace id."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Protocol, runtime_checkable

from chuk_ai_coach.config import ShadowConfig

from .models import ShadowSuggestion


@runtime_checkable
class ShadowStore(Protocol):
    async def get(self, trace_id: str) -> ShadowSuggestion | None: ...


class InMemoryShadowStore:
    """
    Reference store; ``publish`` stands in for the server-side classifier.

    Suggestions live for ``config.suggestion_ttl_seconds`` unless ``publish``
    is given an explicit TTL.
    """

    def __init__(
        self,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
        config: ShadowConfig | None = None,
    ):
        self._now = now
        self.config = config or ShadowConfig()
        self._rows: dict[str, ShadowSuggestion] = {}

    async def get(self, trace_id: str) -> ShadowSuggestion | None:
        return self._rows.get(trace_id)

    async def put(self, suggestion: ShadowSuggestion) -> None:
        self._rows[suggestion.trace_id] = suggestion

    async def publish(
        self,
        trace_id: str,
        suggestions: list[str],
        ttl_seconds: float | None = None,
    ) -> ShadowSuggestion:
        ttl = self.config.suggestion_ttl_seconds if ttl_seconds is None else ttl_seconds
        suggestion = ShadowSuggestion(
            trace_id=trace_id,
            suggestions=list(suggestions),
            expires_at=self._now() + timedelta(seconds=ttl),
        )
        await self.put(suggestion)
        return suggestion

    def purge_expired(self) -> int:
        now = self._now()
        expired = [trace_id for trace_id, row in self._rows.items() if not row.is_live(now)]
        for trace_id in expired:
            del self._rows[trace_id]
        return len(expired)
