# chuk_ai_coach/shadow/models.py
"""Shadow suggestion model."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class ShadowSuggestion(BaseModel):
    """Soft follow-up suggestions computed after a reply was delivered."""

    trace_id: str
    suggestions: list[str] = Field(default_factory=list)
    expires_at: datetime

    def is_live(self, now: datetime) -> bool:
        return self.expires_at > now
