# chuk_ai_coach/memory/compressor.py
"""
Compression job for rolling conversation memory.

Triggered by ``needs_compression``. Everything older than the most recent
``keep_recent`` messages is summarized by an LLM callback, recorded as a
``MemoryPacket`` and replaced by the new rolling summary. The most recent
messages are never folded.

Usage::

    async def summarize(messages: list[dict[str, str]]) -> str:
        return await call_llm(messages)

    compressor = ConversationCompressor(memory, summarize)
    await compressor.compress("u1", "coach-lucy")
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel

from chuk_ai_coach.exceptions import MemoryStoreError

from .manager import ConversationMemoryManager
from .models import ChatMessage, ConversationWindow, MemoryPacket

logger = logging.getLogger(__name__)

# Callback: chat-format messages -> summary text
SummarizeCallback = Callable[[list[dict[str, str]]], Awaitable[str]]


class SummarizationStrategy(str, Enum):
    """Different strategies for summarizing folded messages."""

    BASIC = "basic"  # General overview of the conversation
    KEY_POINTS = "key_points"  # Focus on key information points
    TOPIC_BASED = "topic_based"  # Organize by topics discussed
    QUERY_FOCUSED = "query_focused"  # Focus on user's questions


_STRATEGY_PROMPTS = {
    SummarizationStrategy.BASIC: (
        "Summarize this conversation between a user and their coach. Focus on main topics, "
        "goals, progress and important insights. At most 200 words."
    ),
    SummarizationStrategy.KEY_POINTS: (
        "Summarize this coaching conversation as a list of the key points discussed. "
        "Keep goals, commitments and numbers the user mentioned."
    ),
    SummarizationStrategy.TOPIC_BASED: (
        "Summarize this coaching conversation organized by topic. For each topic give the "
        "key points and any open follow-ups."
    ),
    SummarizationStrategy.QUERY_FOCUSED: (
        "Summarize this coaching conversation by focusing on the user's questions and the "
        "answers the coach gave."
    ),
}


def get_summarization_prompt(strategy: SummarizationStrategy) -> str:
    return _STRATEGY_PROMPTS.get(strategy, "Please provide a brief summary of this conversation.")


def build_summary_request(
    messages: list[ChatMessage],
    strategy: SummarizationStrategy = SummarizationStrategy.BASIC,
    previous_summary: str | None = None,
) -> list[dict[str, str]]:
    """Chat-format request asking the LLM to summarize ``messages``."""
    conversation = "\n".join(f"{m.role.value}: {m.content}" for m in messages)
    if previous_summary:
        conversation = f"Earlier summary:\n{previous_summary}\n\n{conversation}"
    return [
        {"role": "system", "content": get_summarization_prompt(strategy)},
        {"role": "user", "content": f"Summarize this conversation:\n\n{conversation}"},
    ]


class CompressionResult(BaseModel):
    """Outcome of one compression run."""

    compressed: bool = False
    degraded: bool = False
    folded_count: int = 0
    packet: MemoryPacket | None = None
    window: ConversationWindow | None = None


class ConversationCompressor:
    """
    Folds old messages into a rolling summary.

    One run per (user, coach) pair at a time. If summarization fails the window
    is truncated to ``compression_threshold`` messages instead, so it stays
    bounded. Failed runs are not retried here.
    """

    def __init__(
        self,
        manager: ConversationMemoryManager,
        summarize_fn: SummarizeCallback,
        strategy: SummarizationStrategy = SummarizationStrategy.BASIC,
    ):
        self.manager = manager
        self.summarize_fn = summarize_fn
        self.strategy = strategy
        self._locks: dict[tuple[str, str], asyncio.Lock] = {}

    @property
    def keep_recent(self) -> int:
        return self.manager.config.keep_recent

    @property
    def threshold(self) -> int:
        return self.manager.config.compression_threshold

    async def compress(self, user_id: str, coach_id: str) -> CompressionResult:
        """
        Run compression if the window is over the threshold.

        Raises:
            MemoryStoreError: if the window cannot be read or written.
        """
        lock = self._locks.setdefault((user_id, coach_id), asyncio.Lock())
        async with lock:
            return await self._compress(user_id, coach_id)

    async def _compress(self, user_id: str, coach_id: str) -> CompressionResult:
        window = await self.manager.load_window(user_id, coach_id)
        if window is None or len(window.recent_messages) <= self.threshold:
            return CompressionResult(window=window)

        to_fold = window.recent_messages[: -self.keep_recent]
        # Each packet summarizes its own block; get_context joins the newest packets
        request = build_summary_request(to_fold, self.strategy)

        try:
            summary = (await self.summarize_fn(request) or "").strip()
            if not summary:
                raise ValueError("summarizer returned empty text")
        except Exception as e:
            logger.warning(f"Compression of {window.convo_id} failed, truncating instead: {e}")
            return await self._truncate(user_id, coach_id)

        # Messages may have been appended while the summarizer ran; they come
        # after the folded prefix and stay in the window. The fold itself is
        # applied to a fresh copy under the window lock so no append is lost.
        async with self.manager.window_lock(user_id, coach_id):
            current = await self.manager.load_window(user_id, coach_id)
            if (
                current is None
                or current.convo_id != window.convo_id
                or current.recent_messages[: len(to_fold)] != to_fold
            ):
                logger.info(f"Conversation {window.convo_id} changed during compression, discarding summary")
                return CompressionResult(window=current)

            first_index = window.message_count - len(window.recent_messages) + 1
            packet = MemoryPacket(
                convo_id=window.convo_id,
                from_msg=first_index,
                to_msg=first_index + len(to_fold) - 1,
                message_count=len(to_fold),
                packet_summary=summary,
            )
            await self._save_packet(packet)

            current.recent_messages = current.recent_messages[len(to_fold) :]
            current.rolling_summary = summary
            current.updated_at = datetime.now(timezone.utc)
            await self.manager.save_window(current)

        logger.info(f"Compressed {len(to_fold)} messages of {window.convo_id} into summary")
        return CompressionResult(compressed=True, folded_count=len(to_fold), packet=packet, window=current)

    async def _save_packet(self, packet: MemoryPacket) -> None:
        try:
            await self.manager.store.save_packet(packet)
        except Exception as e:
            raise MemoryStoreError(f"Failed to save memory packet for {packet.convo_id}: {e}") from e

    async def _truncate(self, user_id: str, coach_id: str) -> CompressionResult:
        async with self.manager.window_lock(user_id, coach_id):
            current = await self.manager.load_window(user_id, coach_id)
            if current is None or len(current.recent_messages) <= self.threshold:
                return CompressionResult(window=current, degraded=True)
            dropped = len(current.recent_messages) - self.threshold
            current.recent_messages = current.recent_messages[-self.threshold :]
            current.updated_at = datetime.now(timezone.utc)
            await self.manager.save_window(current)
        return CompressionResult(window=current, degraded=True, folded_count=dropped)
