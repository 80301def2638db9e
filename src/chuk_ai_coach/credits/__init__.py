# chuk_ai_coach/credits/__init__.py
"""
AI credit metering.

Components:
- CreditMeter: check/consume contract with a read-through local copy
- CreditsBackend / InMemoryCreditsBackend: remote contract and reference store
"""

from chuk_ai_coach.credits.backend import CreditsBackend, InMemoryCreditsBackend
from chuk_ai_coach.credits.meter import CreditMeter
from chuk_ai_coach.credits.models import (
    DEFAULT_FEATURE_COSTS,
    REASON_INSUFFICIENT_CREDITS,
    ConsumeResult,
    CreditStatus,
)

__all__ = [
    "CreditMeter",
    "CreditsBackend",
    "InMemoryCreditsBackend",
    "ConsumeResult",
    "CreditStatus",
    "DEFAULT_FEATURE_COSTS",
    "REASON_INSUFFICIENT_CREDITS",
]
