# chuk_ai_coach/credits/models.py
"""Models for AI credit metering."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from chuk_ai_coach.base_models import DictCompatModel

# Result reasons
REASON_INSUFFICIENT_CREDITS = "insufficient_credits"
REASON_TESTER = "tester"

# Feature costs used by the reference backend
DEFAULT_FEATURE_COSTS: dict[str, int] = {
    "chat": 1,
    "chat_advanced": 2,
    "meal_analysis": 2,
    "daily_summary": 1,
    "training_plan": 5,
}
DEFAULT_FEATURE_COST = 1


def month_key(moment: datetime) -> str:
    """Reset period identifier, e.g. ``2026-10``."""
    return moment.strftime("%Y-%m")


class CreditStatus(DictCompatModel):
    """A user's credit account as reported by the remote store."""

    user_id: str
    remaining: int = Field(ge=0)
    monthly_quota: int = Field(ge=0)
    reset_month: str = ""
    tester: bool = False

    @property
    def used(self) -> int:
        return max(0, self.monthly_quota - self.remaining)


class ConsumeResult(DictCompatModel):
    """
    Shared result of ``check`` and ``consume``.

    Insufficient credits is ``success=False`` with
    ``reason="insufficient_credits"``; it is data, not an error.
    """

    success: bool
    reason: str | None = None
    cost: int = Field(default=0, ge=0)
    credits_remaining: int = Field(default=0, ge=0)

    @property
    def insufficient(self) -> bool:
        return not self.success and self.reason == REASON_INSUFFICIENT_CREDITS


class CreditAccount(BaseModel):
    """Row kept by the reference backend."""

    user_id: str
    remaining: int = Field(ge=0)
    monthly_quota: int = Field(ge=0)
    reset_month: str
    tester: bool = False

    def to_status(self) -> CreditStatus:
        return CreditStatus(
            user_id=self.user_id,
            remaining=self.remaining,
            monthly_quota=self.monthly_quota,
            reset_month=self.reset_month,
            tester=self.tester,
        )
