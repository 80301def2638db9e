# chuk_ai_coach/credits/backend.py
"""
Remote side of credit metering.

``CreditsBackend`` is the RPC contract (status + consume-for-feature).
``InMemoryCreditsBackend`` mirrors what the database function does: one
check-then-deduct under a lock, never below zero, monthly reset on the first
call of a new month.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Protocol, runtime_checkable

from .models import (
    DEFAULT_FEATURE_COST,
    DEFAULT_FEATURE_COSTS,
    REASON_INSUFFICIENT_CREDITS,
    REASON_TESTER,
    ConsumeResult,
    CreditAccount,
    CreditStatus,
    month_key,
)

logger = logging.getLogger(__name__)


@runtime_checkable
class CreditsBackend(Protocol):
    """Authoritative credits store."""

    async def get_status(self, user_id: str) -> CreditStatus: ...

    async def consume_for_feature(self, user_id: str, feature: str, deduct: bool) -> ConsumeResult:
        """Check (``deduct=False``) or atomically check-and-deduct (``deduct=True``)."""
        ...


class InMemoryCreditsBackend:
    """Reference backend with lazily created accounts."""

    def __init__(
        self,
        monthly_quota: int = 100,
        feature_costs: dict[str, int] | None = None,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.monthly_quota = monthly_quota
        self.feature_costs = dict(DEFAULT_FEATURE_COSTS if feature_costs is None else feature_costs)
        self._now = now
        self._accounts: dict[str, CreditAccount] = {}
        self._lock = asyncio.Lock()

    def cost_of(self, feature: str) -> int:
        return self.feature_costs.get(feature, DEFAULT_FEATURE_COST)

    def set_account(self, user_id: str, remaining: int, monthly_quota: int | None = None, tester: bool = False) -> None:
        """Seed an account (tests and admin tooling)."""
        self._accounts[user_id] = CreditAccount(
            user_id=user_id,
            remaining=remaining,
            monthly_quota=self.monthly_quota if monthly_quota is None else monthly_quota,
            reset_month=month_key(self._now()),
            tester=tester,
        )

    def _account(self, user_id: str) -> CreditAccount:
        current_month = month_key(self._now())
        account = self._accounts.get(user_id)
        if account is None:
            account = CreditAccount(
                user_id=user_id,
                remaining=self.monthly_quota,
                monthly_quota=self.monthly_quota,
                reset_month=current_month,
            )
            self._accounts[user_id] = account
        elif account.reset_month != current_month:
            logger.info(f"Monthly credit reset for {user_id} ({account.reset_month} -> {current_month})")
            account.remaining = account.monthly_quota
            account.reset_month = current_month
        return account

    async def get_status(self, user_id: str) -> CreditStatus:
        async with self._lock:
            return self._account(user_id).to_status()

    async def consume_for_feature(self, user_id: str, feature: str, deduct: bool) -> ConsumeResult:
        cost = self.cost_of(feature)
        async with self._lock:
            account = self._account(user_id)
            if account.tester:
                return ConsumeResult(success=True, reason=REASON_TESTER, cost=0, credits_remaining=account.remaining)
            if account.remaining < cost:
                return ConsumeResult(
                    success=False,
                    reason=REASON_INSUFFICIENT_CREDITS,
                    cost=cost,
                    credits_remaining=account.remaining,
                )
            if deduct:
                account.remaining -= cost
            return ConsumeResult(success=True, cost=cost, credits_remaining=account.remaining)
