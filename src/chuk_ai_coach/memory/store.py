# chuk_ai_coach/memory/store.py
"""
Storage contract for conversation memory.

The real store lives in the backend (one row per (user, coach) pair plus a
packet table). ``InMemoryConversationStore`` is the reference implementation
used by tests and local runs.
"""

from __future__ import annotations

import asyncio
from typing import Protocol, runtime_checkable

from .models import ConversationWindow, MemoryPacket


@runtime_checkable
class ConversationMemoryStore(Protocol):
    """Backing store for conversation windows. Last write wins."""

    async def get_window(self, user_id: str, coach_id: str) -> ConversationWindow | None: ...

    async def save_window(self, window: ConversationWindow) -> None: ...

    async def delete_window(self, user_id: str, coach_id: str) -> None: ...

    async def save_packet(self, packet: MemoryPacket) -> None: ...

    async def list_packets(self, convo_id: str, limit: int | None = None) -> list[MemoryPacket]:
        """Packets newest first."""
        ...

    async def delete_packets(self, convo_id: str) -> None: ...


class InMemoryConversationStore:
    """Dict-backed store. Returns copies so callers cannot mutate stored rows."""

    def __init__(self) -> None:
        self._windows: dict[tuple[str, str], ConversationWindow] = {}
        self._packets: dict[str, list[MemoryPacket]] = {}
        self._lock = asyncio.Lock()

    async def get_window(self, user_id: str, coach_id: str) -> ConversationWindow | None:
        window = self._windows.get((user_id, coach_id))
        return window.model_copy(deep=True) if window else None

    async def save_window(self, window: ConversationWindow) -> None:
        async with self._lock:
            self._windows[(window.user_id, window.coach_id)] = window.model_copy(deep=True)

    async def delete_window(self, user_id: str, coach_id: str) -> None:
        async with self._lock:
            self._windows.pop((user_id, coach_id), None)

    async def save_packet(self, packet: MemoryPacket) -> None:
        async with self._lock:
            self._packets.setdefault(packet.convo_id, []).append(packet.model_copy())

    async def list_packets(self, convo_id: str, limit: int | None = None) -> list[MemoryPacket]:
        # Reversed first so packets written in the same instant stay newest first
        packets = sorted(reversed(self._packets.get(convo_id, [])), key=lambda p: p.created_at, reverse=True)
        return packets[:limit] if limit is not None else packets

    async def delete_packets(self, convo_id: str) -> None:
        async with self._lock:
            self._packets.pop(convo_id, None)
