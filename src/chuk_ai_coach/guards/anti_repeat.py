# chuk_ai_coach/guards/anti_repeat.py
"""
Anti-repeat guard for coach replies.

A cheap lexical check (Jaccard over normalized word sets) that catches verbatim
and near-verbatim repeats against the last few replies without an extra
embedding round-trip. Only a short window is consulted, so a topic can come
back later in a long conversation.

Usage::

    guard = AntiRepeatGuard()
    text = guard.filter_reply(candidate, fallbacks=["Shall we look at sleep?"])
"""

from __future__ import annotations

import logging
import random
from collections import deque
from collections.abc import Callable, Iterable, Sequence
from datetime import datetime, timezone

from pydantic import BaseModel, Field

from chuk_ai_coach.config import AntiRepeatConfig

from .constants import (
    DEFAULT_REPEAT_WINDOW,
    DEFAULT_SIMILARITY_THRESHOLD,
    GENERIC_PROMPTS,
    PUNCTUATION_PATTERN,
    REPLY_KIND_ALTERNATIVE,
    REPLY_KIND_REPLY,
    SENTENCE_END_PATTERN,
    WHITESPACE_PATTERN,
)

logger = logging.getLogger(__name__)

SimilarityFn = Callable[[str, str], float]


class ReplyHistoryEntry(BaseModel):
    """A reply that was shown to the user."""

    text: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    kind: str = REPLY_KIND_REPLY


# =============================================================================
# Pure helpers
# =============================================================================


def normalize(text: str) -> str:
    """Lowercase, strip punctuation, collapse whitespace."""
    text = PUNCTUATION_PATTERN.sub(" ", text.lower())
    return WHITESPACE_PATTERN.sub(" ", text).strip()


def jaccard(a: str, b: str) -> float:
    """Jaccard index of the word sets of two normalized strings."""
    set_a = set(a.split())
    set_b = set(b.split())
    if not set_a and not set_b:
        return 1.0
    if not set_a or not set_b:
        return 0.0
    return len(set_a & set_b) / len(set_a | set_b)


def _entry_text(entry: ReplyHistoryEntry | str) -> str:
    return entry.text if isinstance(entry, ReplyHistoryEntry) else str(entry)


def is_redundant(
    candidate: str,
    history: Sequence[ReplyHistoryEntry | str],
    sim_fn: SimilarityFn = jaccard,
    window: int = DEFAULT_REPEAT_WINDOW,
    threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
) -> bool:
    """True iff ``candidate`` is at least ``threshold`` similar to any of the last ``window`` entries."""
    if not history or window <= 0:
        return False
    normalized = normalize(candidate)
    for entry in list(history)[-window:]:
        if sim_fn(normalized, normalize(_entry_text(entry))) >= threshold:
            return True
    return False


def first_sentence(text: str) -> str:
    """The candidate cut after its first sentence terminator."""
    stripped = text.strip()
    match = SENTENCE_END_PATTERN.search(stripped)
    if not match:
        return stripped
    return stripped[: match.start()].strip()


def generate_alternative(
    candidate: str,
    fallbacks: Iterable[str] = (),
    pool: Sequence[str] = GENERIC_PROMPTS,
    rng: random.Random | None = None,
) -> str:
    """
    Replacement for a redundant candidate.

    Tries, in order: the first fallback that differs from the candidate, a
    random generic prompt, the candidate's first sentence.
    """
    normalized = normalize(candidate)
    for fallback in fallbacks:
        if fallback and normalize(fallback) != normalized:
            return fallback

    choices = [p for p in pool if normalize(p) != normalized]
    if choices:
        return (rng or random).choice(choices)

    return first_sentence(candidate)


# =============================================================================
# Stateful guard
# =============================================================================


class AntiRepeatGuard:
    """Keeps the recent reply history for one conversation and filters candidates."""

    def __init__(
        self,
        config: AntiRepeatConfig | None = None,
        sim_fn: SimilarityFn = jaccard,
        pool: Sequence[str] = GENERIC_PROMPTS,
        rng: random.Random | None = None,
    ):
        self.config = config or AntiRepeatConfig()
        self.sim_fn = sim_fn
        self.pool = pool
        self._rng = rng
        # Only the last ``window`` entries are ever consulted
        self._history: deque[ReplyHistoryEntry] = deque(maxlen=self.config.window)

    @property
    def history(self) -> list[ReplyHistoryEntry]:
        return list(self._history)

    def check(self, candidate: str) -> bool:
        return is_redundant(
            candidate,
            self._history,
            sim_fn=self.sim_fn,
            window=self.config.window,
            threshold=self.config.similarity_threshold,
        )

    def record(self, text: str, kind: str = REPLY_KIND_REPLY) -> ReplyHistoryEntry:
        entry = ReplyHistoryEntry(text=text, kind=kind)
        self._history.append(entry)
        return entry

    def filter_reply(self, candidate: str, fallbacks: Iterable[str] = (), kind: str = REPLY_KIND_REPLY) -> str:
        """Return the text to show (candidate or an alternative) and record it."""
        if not self.check(candidate):
            self.record(candidate, kind)
            return candidate

        alternative = generate_alternative(candidate, fallbacks, pool=self.pool, rng=self._rng)
        logger.info("Redundant reply replaced with alternative")
        self.record(alternative, REPLY_KIND_ALTERNATIVE)
        return alternative

    def clear(self) -> None:
        self._history.clear()
