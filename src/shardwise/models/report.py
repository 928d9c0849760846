"""Live snapshot, final report, and advisory global snapshot models."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from shardwise.models.shard import (
    CAMEL,
    CircuitBreakerState,
    ItemError,
    Shard,
    ShardStatus,
    utcnow,
)


class ShardView(BaseModel):
    """Per-shard line of a live snapshot."""

    model_config = CAMEL

    id: str
    status: ShardStatus
    progress: float
    processed_count: int
    error_count: int
    error_rate: float
    retry_count: int = 0

    @classmethod
    def of(cls, shard: Shard) -> ShardView:
        return cls(
            id=shard.id,
            status=shard.status,
            progress=shard.progress,
            processed_count=shard.processed_count,
            error_count=shard.error_count,
            error_rate=shard.error_rate,
            retry_count=shard.retry_count,
        )


class RunSnapshot(BaseModel):
    """Periodic view of a run in progress."""

    model_config = CAMEL

    timestamp: datetime = Field(default_factory=utcnow)
    total: int
    processed: int
    failed: int
    overall_progress: float
    elapsed_seconds: float
    throughput: float  # successful items per second
    breaker: CircuitBreakerState
    shards: list[ShardView] = Field(default_factory=list)


class ReportSummary(BaseModel):
    model_config = CAMEL

    total: int
    processed: int
    failed: int
    duration: float  # seconds


class ShardSummary(BaseModel):
    model_config = CAMEL

    id: str
    status: ShardStatus
    progress: float
    processed: int
    errors: int
    retry_count: int
    duration: Optional[float] = None


class RunReport(BaseModel):
    """Final machine-readable report returned to the caller."""

    model_config = CAMEL

    summary: ReportSummary
    shards: list[ShardSummary] = Field(default_factory=list)
    failed_profiles: list[ItemError] = Field(default_factory=list)
    failed_shards: list[str] = Field(default_factory=list)
    checkpoint_location: str = ""


class SnapshotStats(BaseModel):
    total: int
    processed: int
    failed: int


class SnapshotShard(BaseModel):
    model_config = CAMEL

    id: str
    status: ShardStatus
    progress: float
    processed_count: int
    error_count: int


class GlobalSnapshot(BaseModel):
    """Advisory aggregate written for crash diagnosis; never read back to resume."""

    timestamp: datetime = Field(default_factory=utcnow)
    stats: SnapshotStats
    shards: list[SnapshotShard] = Field(default_factory=list)

    @classmethod
    def build(cls, total: int, processed: int, failed: int, shards: list[Shard]) -> GlobalSnapshot:
        return cls(
            stats=SnapshotStats(total=total, processed=processed, failed=failed),
            shards=[
                SnapshotShard(
                    id=s.id,
                    status=s.status,
                    progress=s.progress,
                    processed_count=s.processed_count,
                    error_count=s.error_count,
                )
                for s in shards
            ],
        )
