# chuk_ai_coach/memory/manager.py
"""
ConversationMemoryManager - bounded rolling memory per (user, coach) pair.

The manager keeps the most recent messages verbatim and a rolling summary of
everything older. It only *signals* when compression is due; the compression
itself is an LLM call run by ``ConversationCompressor`` (or any external job)
and never happens inside ``add_message``.

Reads degrade: if the store is unavailable ``get_context`` returns an empty
context so the turn can still go ahead without history. Writes raise
``MemoryStoreError`` so a window that could not be read is never overwritten.

Every read-modify-write of a window (``add_message``, ``clear`` and the
compressor's fold) runs under ``window_lock`` for that pair, so a write that
started from an older copy can never replace a newer one.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone

from chuk_ai_coach.cache import ReadThroughCache
from chuk_ai_coach.config import MemoryConfig
from chuk_ai_coach.exceptions import MemoryStoreError

from .models import (
    AddMessageResult,
    ChatMessage,
    ConversationContext,
    ConversationWindow,
    MessageRole,
)
from .store import ConversationMemoryStore

logger = logging.getLogger(__name__)

WindowKey = tuple[str, str]

SUMMARY_HEADER = "Conversation summary:"
RECENT_HEADER = "Recent messages:"
COUNT_LABEL = "Total message count"


def format_prompt_context(
    context: ConversationContext,
    user_label: str = "User",
    assistant_label: str = "Coach",
) -> str:
    """
    Render memory for a prompt.

    Summary first, then recent messages oldest to newest, then the total
    message count. Empty sections are left out; an empty context renders as
    an empty string.
    """
    sections: list[str] = []

    if context.summary:
        sections.append(f"{SUMMARY_HEADER}\n{context.summary.strip()}")

    if context.recent_messages:
        lines = []
        for message in context.recent_messages:
            label = user_label if message.role == MessageRole.USER else assistant_label
            lines.append(f"{label}: {message.content}")
        sections.append(RECENT_HEADER + "\n" + "\n".join(lines))

    if context.count:
        sections.append(f"{COUNT_LABEL}: {context.count}")

    return "\n\n".join(sections)


class ConversationMemoryManager:
    """
    Rolling conversation memory over a ``ConversationMemoryStore``.

    Examples:
        ```python
        memory = ConversationMemoryManager(InMemoryConversationStore())
        result = await memory.add_message("u1", "coach-lucy", ChatMessage.user("Hi"))
        if result.needs_compression:
            asyncio.create_task(compressor.compress("u1", "coach-lucy"))
        prompt_memory = await memory.get_prompt_context("u1", "coach-lucy")
        ```
    """

    def __init__(
        self,
        store: ConversationMemoryStore,
        config: MemoryConfig | None = None,
        cache_size: int = 256,
    ):
        self.store = store
        self.config = config or MemoryConfig()
        self._cache: ReadThroughCache[WindowKey, ConversationWindow] = ReadThroughCache(
            self._load_window, max_entries=cache_size
        )
        self._locks: dict[WindowKey, asyncio.Lock] = {}

    def window_lock(self, user_id: str, coach_id: str) -> asyncio.Lock:
        """Lock guarding read-modify-write of one pair's window. Not reentrant."""
        return self._locks.setdefault((user_id, coach_id), asyncio.Lock())

    async def _load_window(self, key: WindowKey) -> ConversationWindow | None:
        user_id, coach_id = key
        return await self.store.get_window(user_id, coach_id)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def load_window(self, user_id: str, coach_id: str) -> ConversationWindow | None:
        """
        Current window (a copy), or None if the pair has no history yet.

        Raises:
            MemoryStoreError: if the store cannot be read.
        """
        key = (user_id, coach_id)
        try:
            window = await self._cache.get(key)
        except Exception as e:
            self._cache.invalidate(key)
            raise MemoryStoreError(f"Failed to load memory for {user_id}/{coach_id}: {e}") from e
        return window.model_copy(deep=True) if window else None

    async def get_context(self, user_id: str, coach_id: str) -> ConversationContext:
        """Recent messages, historical summary and count. Never raises."""
        try:
            window = await self.load_window(user_id, coach_id)
            if window is None:
                return ConversationContext()
            summary = await self._historical_summary(window)
        except Exception as e:
            logger.warning(f"Memory unavailable for {user_id}/{coach_id}, continuing without history: {e}")
            return ConversationContext()

        return ConversationContext(
            recent_messages=window.recent_messages,
            summary=summary,
            count=window.message_count,
        )

    async def _historical_summary(self, window: ConversationWindow) -> str | None:
        packets = await self.store.list_packets(window.convo_id, limit=self.config.max_packet_summaries)
        if packets:
            # Stored newest first; the prompt reads oldest first
            return "\n\n".join(p.packet_summary for p in reversed(packets))
        return window.rolling_summary

    async def get_prompt_context(
        self,
        user_id: str,
        coach_id: str,
        user_label: str = "User",
        assistant_label: str = "Coach",
    ) -> str:
        context = await self.get_context(user_id, coach_id)
        return format_prompt_context(context, user_label=user_label, assistant_label=assistant_label)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def add_message(self, user_id: str, coach_id: str, message: ChatMessage) -> AddMessageResult:
        """
        Append a message and report whether compression is due.

        Raises:
            MemoryStoreError: if the window cannot be read or written.
        """
        async with self.window_lock(user_id, coach_id):
            window = await self.load_window(user_id, coach_id)
            if window is None:
                window = ConversationWindow(user_id=user_id, coach_id=coach_id)
                logger.debug(f"Created conversation memory {window.convo_id} for {user_id}/{coach_id}")

            window.recent_messages.append(message)
            window.message_count += 1
            window.updated_at = datetime.now(timezone.utc)

            await self.save_window(window)

        needs_compression = len(window.recent_messages) > self.config.compression_threshold
        if needs_compression:
            logger.debug(
                f"Window {window.convo_id} holds {len(window.recent_messages)} messages, compression due"
            )
        return AddMessageResult(window=window.model_copy(deep=True), needs_compression=needs_compression)

    async def save_window(self, window: ConversationWindow) -> None:
        """Persist a window and refresh the cache after the store accepted it."""
        key = (window.user_id, window.coach_id)
        try:
            await self.store.save_window(window)
        except Exception as e:
            self._cache.invalidate(key)
            raise MemoryStoreError(f"Failed to save memory for {key[0]}/{key[1]}: {e}") from e
        self._cache.put(key, window.model_copy(deep=True))

    async def clear(self, user_id: str, coach_id: str) -> bool:
        """
        Delete the window and its packets.

        Returns:
            True if there was anything to delete.
        """
        key = (user_id, coach_id)
        async with self.window_lock(user_id, coach_id):
            self._cache.invalidate(key)
            try:
                window = await self.store.get_window(user_id, coach_id)
                if window is None:
                    return False
                await self.store.delete_packets(window.convo_id)
                await self.store.delete_window(user_id, coach_id)
            except Exception as e:
                raise MemoryStoreError(f"Failed to clear memory for {user_id}/{coach_id}: {e}") from e
        logger.info(f"Cleared conversation memory {window.convo_id}")
        return True

    def invalidate(self, user_id: str, coach_id: str) -> None:
        """Drop the cached window so the next read goes to the store."""
        self._cache.invalidate((user_id, coach_id))
