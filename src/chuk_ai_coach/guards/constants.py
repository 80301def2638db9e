# chuk_ai_coach/guards/constants.py
"""Shared constants for the reply guards."""

from __future__ import annotations

import re

# Anything that is not a word character or whitespace
PUNCTUATION_PATTERN = re.compile(r"[^\w\s]+", re.UNICODE)
WHITESPACE_PATTERN = re.compile(r"\s+")

# End of the first sentence: terminal punctuation followed by space or end
SENTENCE_END_PATTERN = re.compile(r"(?<=[.!?])(\s|$)")

DEFAULT_REPEAT_WINDOW = 8
DEFAULT_SIMILARITY_THRESHOLD = 0.75

# Reply kinds recorded in the history
REPLY_KIND_REPLY = "reply"
REPLY_KIND_GREETING = "greeting"
REPLY_KIND_ALTERNATIVE = "alternative"

# Generic prompts used when a reply would repeat itself and no fallback fits
GENERIC_PROMPTS: tuple[str, ...] = (
    "Tell me a bit more about how today went.",
    "What feels like the most important next step for you right now?",
    "Is there something specific you'd like to focus on?",
    "How are you feeling about your progress this week?",
    "What got in the way the last time you tried this?",
    "Which part of this would you like to dig into first?",
)
