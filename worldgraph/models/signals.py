"""Observability payloads."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class BatchOutcome(str, Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILURE = "failure"


class BatchSignal(BaseModel):
    """Emitted exactly once per expansion attempt."""

    batch_id: str | None
    root_id: str
    outcome: BatchOutcome
    batch_size: int = 0
    accepted_count: int = 0
    rejected_count: int = 0
    warning_count: int = 0
    elapsed_ms: float = 0.0
    reason: str | None = None
    emitted_at: datetime = Field(default_factory=datetime.now)


class ReconnectionSignal(BaseModel):
    """Emitted once per reconnection pass."""

    location_id: str
    candidates_considered: int = 0
    committed_count: int = 0
    discarded_count: int = 0
    hop_counts: list[int] = Field(default_factory=list)
    duration_ratios: list[float] = Field(default_factory=list)
    elapsed_ms: float = 0.0
    emitted_at: datetime = Field(default_factory=datetime.now)
