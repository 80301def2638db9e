# tests/test_compressor.py
"""
Tests for ConversationCompressor and the summary request builder.

Covers:
- Folding everything but the most recent messages into a packet
- Packet index bookkeeping across repeated compressions
- Truncation fallback when summarization fails
- Messages appended while the summarizer runs
- Messages appended while the packet is being written
"""

import asyncio

import pytest

from chuk_ai_coach.config import MemoryConfig
from chuk_ai_coach.memory import (
    ChatMessage,
    ConversationCompressor,
    ConversationMemoryManager,
    InMemoryConversationStore,
    SummarizationStrategy,
    build_summary_request,
    get_summarization_prompt,
)

USER = "u1"
COACH = "coach-lucy"

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _manager(store, threshold=4, keep_recent=2):
    return ConversationMemoryManager(
        store, MemoryConfig(compression_threshold=threshold, keep_recent=keep_recent)
    )


async def _fill(manager, count, start=0):
    for i in range(start, start + count):
        await manager.add_message(USER, COACH, ChatMessage.user(f"message {i}"))


class SlowPacketStore(InMemoryConversationStore):
    """Store whose packet write yields to the event loop, like a network store."""

    def __init__(self):
        super().__init__()
        self.packet_writing = asyncio.Event()

    async def save_packet(self, packet):
        self.packet_writing.set()
        await asyncio.sleep(0.01)
        await super().save_packet(packet)


# ===========================================================================
# Summary request
# ===========================================================================


class TestBuildSummaryRequest:
    def test_shape(self):
        request = build_summary_request([ChatMessage.user("Hi"), ChatMessage.assistant("Hello!")])
        assert [m["role"] for m in request] == ["system", "user"]
        assert "user: Hi\nassistant: Hello!" in request[1]["content"]

    def test_strategy_prompt(self):
        request = build_summary_request([ChatMessage.user("Hi")], SummarizationStrategy.KEY_POINTS)
        assert request[0]["content"] == get_summarization_prompt(SummarizationStrategy.KEY_POINTS)

    def test_previous_summary_included(self):
        request = build_summary_request([ChatMessage.user("Hi")], previous_summary="Earlier stuff")
        assert "Earlier summary:\nEarlier stuff" in request[1]["content"]


# ===========================================================================
# Compression
# ===========================================================================


class TestCompress:
    @pytest.mark.asyncio
    async def test_noop_below_threshold(self, memory_store, mock_llm_callback):
        manager = _manager(memory_store)
        await _fill(manager, 4)

        result = await ConversationCompressor(manager, mock_llm_callback).compress(USER, COACH)

        assert result.compressed is False
        assert len(result.window.recent_messages) == 4

    @pytest.mark.asyncio
    async def test_noop_without_window(self, memory_store, mock_llm_callback):
        manager = _manager(memory_store)
        result = await ConversationCompressor(manager, mock_llm_callback).compress(USER, COACH)
        assert result.compressed is False
        assert result.window is None

    @pytest.mark.asyncio
    async def test_folds_all_but_recent(self, memory_store, mock_llm_callback):
        manager = _manager(memory_store, threshold=4, keep_recent=2)
        await _fill(manager, 5)

        result = await ConversationCompressor(manager, mock_llm_callback).compress(USER, COACH)

        assert result.compressed is True
        assert result.folded_count == 3
        assert [m.content for m in result.window.recent_messages] == ["message 3", "message 4"]
        assert result.window.rolling_summary == "Summary of 3 messages"
        assert result.window.message_count == 5

        packet = result.packet
        assert (packet.from_msg, packet.to_msg, packet.message_count) == (1, 3, 3)

    @pytest.mark.asyncio
    async def test_context_after_compression(self, memory_store, mock_llm_callback):
        manager = _manager(memory_store)
        await _fill(manager, 5)
        await ConversationCompressor(manager, mock_llm_callback).compress(USER, COACH)

        context = await manager.get_context(USER, COACH)
        assert context.summary == "Summary of 3 messages"
        assert context.count == 5
        assert len(context.recent_messages) == 2

    @pytest.mark.asyncio
    async def test_packet_indices_continue(self, memory_store, mock_llm_callback):
        manager = _manager(memory_store)
        compressor = ConversationCompressor(manager, mock_llm_callback)
        await _fill(manager, 5)
        await compressor.compress(USER, COACH)
        await _fill(manager, 3, start=5)

        result = await compressor.compress(USER, COACH)

        assert (result.packet.from_msg, result.packet.to_msg) == (4, 6)
        assert [m.content for m in result.window.recent_messages] == ["message 6", "message 7"]
        packets = await memory_store.list_packets(result.window.convo_id)
        assert len(packets) == 2

    @pytest.mark.asyncio
    async def test_summarizer_failure_truncates(self, memory_store):
        async def broken(messages):
            raise RuntimeError("LLM unavailable")

        manager = _manager(memory_store, threshold=4)
        await _fill(manager, 7)

        result = await ConversationCompressor(manager, broken).compress(USER, COACH)

        assert result.compressed is False
        assert result.degraded is True
        assert result.folded_count == 3
        assert [m.content for m in result.window.recent_messages] == [f"message {i}" for i in range(3, 7)]
        assert result.window.message_count == 7
        assert await memory_store.list_packets(result.window.convo_id) == []

    @pytest.mark.asyncio
    async def test_empty_summary_counts_as_failure(self, memory_store):
        async def blank(messages):
            return "   "

        manager = _manager(memory_store, threshold=4)
        await _fill(manager, 5)

        result = await ConversationCompressor(manager, blank).compress(USER, COACH)
        assert result.degraded is True
        assert len(result.window.recent_messages) == 4

    @pytest.mark.asyncio
    async def test_messages_added_during_summarization_survive(self, memory_store):
        manager = _manager(memory_store, threshold=4)
        await _fill(manager, 5)

        async def slow_summary(messages):
            await manager.add_message(USER, COACH, ChatMessage.user("late arrival"))
            return "folded"

        result = await ConversationCompressor(manager, slow_summary).compress(USER, COACH)

        assert result.compressed is True
        assert [m.content for m in result.window.recent_messages] == ["message 3", "message 4", "late arrival"]
        assert result.window.message_count == 6

    @pytest.mark.asyncio
    async def test_message_added_while_packet_is_written_survives(self, mock_llm_callback):
        store = SlowPacketStore()
        manager = _manager(store, threshold=4, keep_recent=2)
        await _fill(manager, 5)
        compressor = ConversationCompressor(manager, mock_llm_callback)

        task = asyncio.create_task(compressor.compress(USER, COACH))
        await store.packet_writing.wait()
        await manager.add_message(USER, COACH, ChatMessage.user("next turn"))
        result = await task

        assert result.compressed is True
        window = await store.get_window(USER, COACH)
        assert [m.content for m in window.recent_messages] == ["message 3", "message 4", "next turn"]
        assert window.message_count == 6

    @pytest.mark.asyncio
    async def test_appends_wait_for_the_window_lock(self, memory_store):
        manager = _manager(memory_store)

        async with manager.window_lock(USER, COACH):
            pending = asyncio.create_task(manager.add_message(USER, COACH, ChatMessage.user("queued")))
            await asyncio.sleep(0.01)
            assert not pending.done()
            assert await memory_store.get_window(USER, COACH) is None

        result = await pending
        assert result.window.message_count == 1

    @pytest.mark.asyncio
    async def test_cleared_conversation_discards_summary(self, memory_store):
        manager = _manager(memory_store, threshold=4)
        await _fill(manager, 5)

        async def summary_then_clear(messages):
            await manager.clear(USER, COACH)
            return "stale"

        result = await ConversationCompressor(manager, summary_then_clear).compress(USER, COACH)
        assert result.compressed is False
        assert result.window is None
