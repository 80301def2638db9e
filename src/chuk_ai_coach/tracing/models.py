# chuk_ai_coach/tracing/models.py
"""Trace event and bundle models."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class TraceStatus(str, Enum):
    """Status of a single pipeline stage event."""

    OK = "OK"
    RUNNING = "RUNNING"
    ERROR = "ERROR"


class BundleStatus(str, Enum):
    """Rolled-up health of a whole trace, worst first."""

    RED = "red"
    YELLOW = "yellow"
    GREEN = "green"


class TraceEvent(BaseModel):
    """One append-only record emitted by a pipeline stage."""

    model_config = ConfigDict(frozen=True)

    event_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    trace_id: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    stage: str
    status: TraceStatus = TraceStatus.OK
    latency_ms: float | None = Field(default=None, ge=0)
    payload: dict[str, Any] = Field(default_factory=dict)
    user_id: str | None = None
    coach_id: str | None = None


class TraceBundle(BaseModel):
    """Derived rollup of every event sharing one trace id. Never stored."""

    trace_id: str
    user_id: str | None = None
    coach_id: str | None = None
    started_at: datetime
    last_event_at: datetime
    stages: list[TraceEvent] = Field(default_factory=list)
    status: BundleStatus = BundleStatus.GREEN
    max_latency_ms: float = 0.0
    has_error: bool = False
    running: bool = False
    has_prompt_data: bool = False

    @property
    def duration_ms(self) -> float:
        return (self.last_event_at - self.started_at).total_seconds() * 1000

    @property
    def stage_names(self) -> list[str]:
        return [event.stage for event in self.stages]
