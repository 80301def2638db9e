# chuk_ai_coach/shadow/__init__.py
"""
Delayed soft suggestions ("shadow chips").

Components:
- ShadowSignalScheduler: cancellable delayed read per session
- ShadowStore / InMemoryShadowStore: suggestions keyed by trace id
"""

from chuk_ai_coach.shadow.models import ShadowSuggestion
from chuk_ai_coach.shadow.scheduler import ShadowSignalScheduler
from chuk_ai_coach.shadow.store import InMemoryShadowStore, ShadowStore

__all__ = [
    "ShadowSignalScheduler",
    "ShadowSuggestion",
    "ShadowStore",
    "InMemoryShadowStore",
]
