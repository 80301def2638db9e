# chuk_ai_coach/credits/meter.py
"""
CreditMeter - client side of AI credit metering.

The remote store is the only place a deduction is final. The meter keeps a
read-through copy of the account for display and cheap pre-checks; it is
refreshed at session start and after every consume, and discarded whenever a
remote call ends ambiguously.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from chuk_ai_coach.cache import ReadThroughCache
from chuk_ai_coach.exceptions import CreditsUnavailableError

from .backend import CreditsBackend
from .models import ConsumeResult, CreditStatus

logger = logging.getLogger(__name__)


class CreditMeter:
    """
    Credit checks and deductions for one user.

    Examples:
        ```python
        meter = CreditMeter(backend, user_id="u1")
        result = await meter.check("chat")
        if not result.success:
            show_upgrade_prompt(result.reason)
        ...
        await meter.consume("chat")
        ```
    """

    def __init__(self, backend: CreditsBackend, user_id: str):
        self.backend = backend
        self.user_id = user_id
        self._cache: ReadThroughCache[str, CreditStatus] = ReadThroughCache(self._load_status, max_entries=1)

    async def _load_status(self, user_id: str) -> CreditStatus:
        return await self.backend.get_status(user_id)

    @property
    def cached_status(self) -> CreditStatus | None:
        """Last known account; a hint, never authoritative."""
        return self._cache.peek(self.user_id)

    async def status(self, refresh: bool = False) -> CreditStatus:
        """
        Account status, from cache unless ``refresh`` is set.

        Raises:
            CreditsUnavailableError: if the remote cannot be read.
        """
        try:
            if refresh:
                status = await self._cache.resync(self.user_id)
            else:
                status = await self._cache.get(self.user_id)
        except Exception as e:
            self._cache.invalidate(self.user_id)
            raise CreditsUnavailableError(self.user_id, message=f"Failed to load credit status: {e}") from e
        if status is None:
            raise CreditsUnavailableError(self.user_id, message="Credits service returned no status")
        return status

    async def resync(self) -> CreditStatus:
        return await self.status(refresh=True)

    def invalidate(self) -> None:
        self._cache.invalidate(self.user_id)

    async def check(self, feature: str) -> ConsumeResult:
        """Would ``feature`` be affordable right now? Nothing is deducted."""
        result = await self._call(feature, deduct=False)
        self._sync_remaining(result)
        return result

    async def consume(self, feature: str) -> ConsumeResult:
        """
        Deduct the cost of ``feature`` at the remote store.

        The local copy changes only after the remote answered. On a transport
        error the local copy is discarded and the error re-raised.

        Raises:
            CreditsUnavailableError: the remote could not be reached or answered
                with something unreadable.
        """
        result = await self._call(feature, deduct=True)
        self._sync_remaining(result)
        if result.success:
            logger.debug(f"Consumed {result.cost} credits for {feature}, {result.credits_remaining} left")
        else:
            logger.info(f"Credit consume for {feature} refused: {result.reason}")
        return result

    async def _call(self, feature: str, deduct: bool) -> ConsumeResult:
        try:
            raw: Any = await self.backend.consume_for_feature(self.user_id, feature, deduct)
            return raw if isinstance(raw, ConsumeResult) else ConsumeResult.model_validate(raw)
        except ValidationError as e:
            self._cache.invalidate(self.user_id)
            raise CreditsUnavailableError(
                self.user_id, feature, f"Unreadable credits response for {feature}: {e}"
            ) from e
        except Exception as e:
            self._cache.invalidate(self.user_id)
            logger.warning(f"Credits call for {feature} failed (deduct={deduct}): {e}")
            raise CreditsUnavailableError(self.user_id, feature, f"Credits call failed for {feature}: {e}") from e

    def _sync_remaining(self, result: ConsumeResult) -> None:
        cached = self._cache.peek(self.user_id)
        if cached is not None and cached.remaining != result.credits_remaining:
            self._cache.put(self.user_id, cached.model_copy(update={"remaining": result.credits_remaining}))
