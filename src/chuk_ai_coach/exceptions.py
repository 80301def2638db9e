# chuk_ai_coach/exceptions.py
"""
Exception hierarchy for the coaching reliability core.

Guard rejections carry the metadata a caller needs to back off. Business
limits (insufficient credits) are results, not exceptions, and have no class
here.
"""

from __future__ import annotations


class CoachCoreError(Exception):
    """Base class for all errors raised by chuk_ai_coach."""


class ConfigurationError(CoachCoreError):
    """Required configuration is missing or invalid. Fatal at startup."""


# ---------------------------------------------------------------------------
# Resilience
# ---------------------------------------------------------------------------


class ResilienceError(CoachCoreError):
    """An outbound call was rejected before reaching the upstream."""

    retry_after: float = 0.0


class CircuitOpenError(ResilienceError):
    """The circuit is open; the wrapped call was not attempted."""

    def __init__(self, remaining_seconds: float):
        self.remaining_seconds = max(0.0, remaining_seconds)
        self.retry_after = self.remaining_seconds
        super().__init__(f"Circuit open, retry in {self.remaining_seconds:.1f}s")


class RateLimitExceededError(ResilienceError):
    """The token bucket is empty; the call was rejected, not queued."""

    def __init__(self, retry_after: float):
        self.retry_after = max(0.0, retry_after)
        super().__init__(f"Rate limit exceeded, retry in {self.retry_after:.2f}s")


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------


class StorageError(CoachCoreError):
    """A backing store could not be read or written."""


class MemoryStoreError(StorageError):
    """Conversation memory store failure."""


class TraceStoreError(StorageError):
    """Trace event store failure."""


# ---------------------------------------------------------------------------
# Credits
# ---------------------------------------------------------------------------


class CreditsUnavailableError(CoachCoreError):
    """The credits service could not be reached or gave an ambiguous answer."""

    def __init__(self, user_id: str, feature: str | None = None, message: str | None = None):
        self.user_id = user_id
        self.feature = feature
        super().__init__(message or f"Credits service unavailable for user {user_id}")
