# chuk_ai_coach/memory/models.py
"""Models for rolling conversation memory."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from chuk_ai_coach.base_models import DictCompatModel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MessageRole(str, Enum):
    """Message roles in a coach conversation."""

    USER = "user"
    ASSISTANT = "assistant"


class ChatMessage(BaseModel):
    """One turn of a coach conversation."""

    role: MessageRole
    content: str
    timestamp: datetime = Field(default_factory=_utcnow)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def user(cls, content: str, **metadata: Any) -> ChatMessage:
        return cls(role=MessageRole.USER, content=content, metadata=metadata)

    @classmethod
    def assistant(cls, content: str, **metadata: Any) -> ChatMessage:
        return cls(role=MessageRole.ASSISTANT, content=content, metadata=metadata)


class ConversationWindow(BaseModel):
    """
    Recent messages plus rolling summary for one (user, coach) pair.

    ``recent_messages`` is in chronological order. ``message_count`` counts
    every message ever added and never goes down, including across
    compressions.
    """

    convo_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str
    coach_id: str
    recent_messages: list[ChatMessage] = Field(default_factory=list)
    rolling_summary: str | None = None
    message_count: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class MemoryPacket(BaseModel):
    """Summary of a block of messages folded out of the window."""

    convo_id: str
    from_msg: int = Field(ge=1, description="1-based index of the first folded message")
    to_msg: int = Field(ge=1, description="1-based index of the last folded message")
    message_count: int = Field(ge=1)
    packet_summary: str
    created_at: datetime = Field(default_factory=_utcnow)


class ConversationContext(DictCompatModel):
    """What a prompt builder needs from memory."""

    recent_messages: list[ChatMessage] = Field(default_factory=list)
    summary: str | None = None
    count: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.recent_messages and not self.summary and self.count == 0


class AddMessageResult(DictCompatModel):
    """Outcome of appending a message."""

    window: ConversationWindow
    needs_compression: bool = False
