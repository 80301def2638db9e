# chuk_ai_coach/config.py
"""
Central configuration for the coaching reliability core.

Every tunable can be overridden by a ``COACH_<SECTION>__<FIELD>`` environment
variable (a ``.env`` file is honoured through python-dotenv). The environment
is only read by ``CoachSettings.from_env``, so a malformed value surfaces as a
``ConfigurationError`` at startup and never at import time. The individual
config models are also injectable directly, so tests and embedding hosts never
depend on the environment.
"""

from __future__ import annotations

import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, model_validator

from chuk_ai_coach.exceptions import ConfigurationError

load_dotenv()

ENV_PREFIX = "COACH_"

# Defaults
DEFAULT_FAILURE_THRESHOLD = 5
DEFAULT_RECOVERY_TIMEOUT = 30.0
DEFAULT_MAX_BACKOFF = 300.0
DEFAULT_SLA_MS = 2000.0
DEFAULT_CHIP_DELAY_MS = 6500
DEFAULT_SUGGESTION_TTL_SECONDS = 120.0


class CircuitBreakerConfig(BaseModel):
    """Circuit breaker thresholds."""

    failure_threshold: int = Field(default=DEFAULT_FAILURE_THRESHOLD, ge=1)
    recovery_timeout: float = Field(default=DEFAULT_RECOVERY_TIMEOUT, gt=0, description="Seconds")
    max_backoff: float = Field(default=DEFAULT_MAX_BACKOFF, gt=0, description="Seconds")
    multiplier: float = Field(default=2.0, ge=1.0)

    @model_validator(mode="after")
    def _check_backoff(self) -> CircuitBreakerConfig:
        if self.max_backoff < self.recovery_timeout:
            raise ValueError("max_backoff must be >= recovery_timeout")
        return self


class RateLimiterConfig(BaseModel):
    """Token bucket sizing."""

    max_tokens: float = Field(default=50.0, gt=0)
    refill_rate: float = Field(default=10.0, gt=0, description="Tokens per second")


class ConcurrencyConfig(BaseModel):
    """Concurrent call limit."""

    max_concurrent: int = Field(default=3, ge=1)
    poll_interval: float = Field(default=0.1, gt=0, description="Seconds between slot checks")


class RetryConfig(BaseModel):
    """Caller-side retry for transient upstream failures."""

    max_attempts: int = Field(default=3, ge=1)
    base_delay: float = Field(default=1.0, ge=0)
    max_delay: float = Field(default=10.0, ge=0)
    multiplier: float = Field(default=2.0, ge=1.0)
    jitter: float = Field(default=0.1, ge=0, le=1.0)


class AntiRepeatConfig(BaseModel):
    """Near-duplicate reply detection."""

    window: int = Field(default=8, ge=1)
    similarity_threshold: float = Field(default=0.75, gt=0, le=1.0)


class MemoryConfig(BaseModel):
    """Rolling conversation memory."""

    compression_threshold: int = Field(default=10, ge=1, description="Window length above which compression is due")
    keep_recent: int = Field(default=2, ge=1, description="Most recent messages never folded into the summary")
    max_packet_summaries: int = Field(default=3, ge=1)

    @model_validator(mode="after")
    def _check_window(self) -> MemoryConfig:
        if self.keep_recent > self.compression_threshold:
            raise ValueError("keep_recent must not exceed compression_threshold")
        return self


class TraceConfig(BaseModel):
    """Trace rollup and polling."""

    sla_ms: float = Field(default=DEFAULT_SLA_MS, gt=0)
    poll_interval: float = Field(default=1.0, gt=0)
    max_poll_attempts: int = Field(default=10, ge=1)


class ShadowConfig(BaseModel):
    """Delayed shadow suggestion chips."""

    delay_ms: int = Field(default=DEFAULT_CHIP_DELAY_MS, ge=0)
    suggestion_ttl_seconds: float = Field(default=DEFAULT_SUGGESTION_TTL_SECONDS, gt=0)
    max_suggestions: int = Field(default=3, ge=1)


class CoachSettings(BaseModel):
    """All tunables of the reliability core in one place."""

    circuit: CircuitBreakerConfig = Field(default_factory=CircuitBreakerConfig)
    rate: RateLimiterConfig = Field(default_factory=RateLimiterConfig)
    concurrency: ConcurrencyConfig = Field(default_factory=ConcurrencyConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    anti_repeat: AntiRepeatConfig = Field(default_factory=AntiRepeatConfig)
    memory: MemoryConfig = Field(default_factory=MemoryConfig)
    trace: TraceConfig = Field(default_factory=TraceConfig)
    shadow: ShadowConfig = Field(default_factory=ShadowConfig)

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> CoachSettings:
        """
        Build settings from ``COACH_<SECTION>__<FIELD>`` variables.

        Example: ``COACH_CIRCUIT__FAILURE_THRESHOLD=3``.

        Raises:
            ConfigurationError: if a value is malformed or out of range.
        """
        env = os.environ if environ is None else environ
        sections: dict[str, dict[str, str]] = {}
        for key, value in env.items():
            if not key.startswith(ENV_PREFIX) or "__" not in key:
                continue
            section, _, field = key[len(ENV_PREFIX) :].partition("__")
            section = section.lower()
            if section not in cls.model_fields:
                continue
            sections.setdefault(section, {})[field.lower()] = value

        try:
            return cls.model_validate(sections)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid coach settings: {e}") from e


def load_settings(environ: dict[str, str] | None = None) -> CoachSettings:
    """Load settings at startup; any problem is fatal."""
    return CoachSettings.from_env(environ)
