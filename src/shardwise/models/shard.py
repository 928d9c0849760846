"""Shard, checkpoint, and run statistics models."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, Optional

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

CAMEL = {"alias_generator": to_camel, "populate_by_name": True}


def utcnow() -> datetime:
    return datetime.now(UTC)


class ShardStatus(StrEnum):
    PENDING = "pending"
    RUNNING = "running"
    RETRYING = "retrying"
    COMPLETED = "completed"
    FAILED = "failed"


class BreakerState(StrEnum):
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


class ItemError(BaseModel):
    """Structured record of a single failed item attempt."""

    model_config = CAMEL

    item_id: str
    index: int  # position within the shard
    message: str
    kind: str = "ItemExecutionError"
    timestamp: datetime = Field(default_factory=utcnow)


class Shard(BaseModel):
    """A contiguous partition of the input items, processed as a unit."""

    model_config = CAMEL

    id: str
    index: int
    items: list[Any] = Field(default_factory=list)
    status: ShardStatus = ShardStatus.PENDING
    progress: float = 0.0
    processed_count: int = 0
    error_count: int = 0
    errors: list[ItemError] = Field(default_factory=list)
    checkpoint_path: str = ""
    retry_count: int = 0
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None

    @property
    def size(self) -> int:
        return len(self.items)

    @property
    def error_rate(self) -> float:
        return self.error_count / self.size if self.items else 0.0

    @property
    def is_active(self) -> bool:
        return self.status in (ShardStatus.RUNNING, ShardStatus.RETRYING)

    @property
    def duration_seconds(self) -> float | None:
        if self.start_time is None or self.end_time is None:
            return None
        return (self.end_time - self.start_time).total_seconds()

    def apply_state(self, other: Shard) -> None:
        """Copy mutable progress fields from another copy of this shard."""
        self.status = other.status
        self.progress = other.progress
        self.processed_count = other.processed_count
        self.error_count = other.error_count
        self.errors = list(other.errors)
        self.start_time = other.start_time
        self.end_time = other.end_time


class Checkpoint(BaseModel):
    """Durable resume point for one shard."""

    model_config = CAMEL

    shard_id: str
    last_processed_index: int = Field(ge=0)
    processed_count: int = 0
    error_count: int = 0
    timestamp: datetime = Field(default_factory=utcnow)
    progress: float = 0.0

    @classmethod
    def of(cls, shard: Shard, last_processed_index: int) -> Checkpoint:
        return cls(
            shard_id=shard.id,
            last_processed_index=last_processed_index,
            processed_count=shard.processed_count,
            error_count=shard.error_count,
            progress=shard.progress,
        )

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2)


class CircuitBreakerState(BaseModel):
    model_config = CAMEL

    consecutive_failures: int = 0
    threshold: int
    state: BreakerState = BreakerState.CLOSED
    cooldown_ms: int


class GlobalStats(BaseModel):
    """Run-wide counters, owned by the aggregation role."""

    model_config = CAMEL

    total: int = 0
    processed: int = 0
    failed: int = 0
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None

    def refresh(self, shards: list[Shard]) -> None:
        """Recompute counters from per-shard state."""
        self.processed = sum(s.processed_count for s in shards)
        self.failed = sum(s.error_count for s in shards)

    def elapsed_seconds(self, now: datetime | None = None) -> float:
        if self.start_time is None:
            return 0.0
        end = self.end_time or now or utcnow()
        return max((end - self.start_time).total_seconds(), 0.0)
