# chuk_ai_coach/guards/__init__.py
"""
Reply guards.

Components:
- AntiRepeatGuard: rejects near-duplicate coach replies against recent history
- is_redundant / generate_alternative: the pure functions behind it
"""

from chuk_ai_coach.guards.anti_repeat import (
    AntiRepeatGuard,
    ReplyHistoryEntry,
    first_sentence,
    generate_alternative,
    is_redundant,
    jaccard,
    normalize,
)
from chuk_ai_coach.guards.constants import GENERIC_PROMPTS

__all__ = [
    "AntiRepeatGuard",
    "ReplyHistoryEntry",
    "GENERIC_PROMPTS",
    "first_sentence",
    "generate_alternative",
    "is_redundant",
    "jaccard",
    "normalize",
]
