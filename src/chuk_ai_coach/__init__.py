# chuk_ai_coach/__init__.py
"""
chuk_ai_coach - reliability core for AI coaching conversations.

Quick start:
    ```python
    from chuk_ai_coach import CoachTurnOrchestrator, ResilienceGuard

    result = await orchestrator.handle_turn("How did I sleep this week?")
    ```
"""

import logging

from chuk_ai_coach.cache import CacheStats, ReadThroughCache
from chuk_ai_coach.config import CoachSettings, load_settings
from chuk_ai_coach.credits import ConsumeResult, CreditMeter, CreditStatus, InMemoryCreditsBackend
from chuk_ai_coach.exceptions import (
    CircuitOpenError,
    CoachCoreError,
    ConfigurationError,
    CreditsUnavailableError,
    MemoryStoreError,
    RateLimitExceededError,
    ResilienceError,
    StorageError,
    TraceStoreError,
)
from chuk_ai_coach.guards import AntiRepeatGuard, generate_alternative, is_redundant
from chuk_ai_coach.memory import (
    ChatMessage,
    ConversationCompressor,
    ConversationMemoryManager,
    InMemoryConversationStore,
)
from chuk_ai_coach.orchestrator import CoachTurnOrchestrator, TurnOutcome, TurnResult
from chuk_ai_coach.resilience import ResilienceGuard, retry_with_backoff
from chuk_ai_coach.shadow import InMemoryShadowStore, ShadowSignalScheduler
from chuk_ai_coach.tracing import InMemoryTraceStore, TraceAggregator, TraceMonitor, TraceRecorder, aggregate

__version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "__version__",
    # Orchestration
    "CoachTurnOrchestrator",
    "TurnOutcome",
    "TurnResult",
    # Configuration
    "CoachSettings",
    "load_settings",
    # Resilience
    "ResilienceGuard",
    "retry_with_backoff",
    # Guards
    "AntiRepeatGuard",
    "is_redundant",
    "generate_alternative",
    # Memory
    "ChatMessage",
    "ConversationMemoryManager",
    "ConversationCompressor",
    "InMemoryConversationStore",
    # Credits
    "CreditMeter",
    "CreditStatus",
    "ConsumeResult",
    "InMemoryCreditsBackend",
    # Tracing
    "aggregate",
    "TraceAggregator",
    "TraceMonitor",
    "TraceRecorder",
    "InMemoryTraceStore",
    # Shadow chips
    "ShadowSignalScheduler",
    "InMemoryShadowStore",
    # Cache
    "ReadThroughCache",
    "CacheStats",
    # Exceptions
    "CoachCoreError",
    "ConfigurationError",
    "ResilienceError",
    "CircuitOpenError",
    "RateLimitExceededError",
    "StorageError",
    "MemoryStoreError",
    "TraceStoreError",
    "CreditsUnavailableError",
]
