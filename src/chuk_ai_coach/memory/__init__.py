# chuk_ai_coach/memory/__init__.py
"""
Rolling conversation memory.

Components:
- ConversationMemoryManager: bounded recent window + rolling summary per (user, coach)
- ConversationCompressor: folds old messages into summaries when signalled
- ConversationMemoryStore / InMemoryConversationStore: storage contract and reference store
"""

from chuk_ai_coach.memory.compressor import (
    CompressionResult,
    ConversationCompressor,
    SummarizationStrategy,
    build_summary_request,
    get_summarization_prompt,
)
from chuk_ai_coach.memory.manager import ConversationMemoryManager, format_prompt_context
from chuk_ai_coach.memory.models import (
    AddMessageResult,
    ChatMessage,
    ConversationContext,
    ConversationWindow,
    MemoryPacket,
    MessageRole,
)
from chuk_ai_coach.memory.store import ConversationMemoryStore, InMemoryConversationStore

__all__ = [
    "ConversationMemoryManager",
    "format_prompt_context",
    "ConversationCompressor",
    "CompressionResult",
    "SummarizationStrategy",
    "build_summary_request",
    "get_summarization_prompt",
    "ConversationMemoryStore",
    "InMemoryConversationStore",
    "AddMessageResult",
    "ChatMessage",
    "ConversationContext",
    "ConversationWindow",
    "MemoryPacket",
    "MessageRole",
]
