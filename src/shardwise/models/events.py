"""Typed progress events published by shard processing."""

from __future__ import annotations

from datetime import datetime
from typing import ClassVar, Union

from pydantic import BaseModel, Field

from shardwise.models.shard import Checkpoint, ItemError, ShardStatus, utcnow


class ProgressEvent(BaseModel):
    event_name: ClassVar[str] = "progress"

    shard_id: str
    timestamp: datetime = Field(default_factory=utcnow)


class ShardStarted(ProgressEvent):
    event_name: ClassVar[str] = "shard:start"

    start_index: int
    retry_count: int = 0


class ItemSucceeded(ProgressEvent):
    event_name: ClassVar[str] = "profile:success"

    item_id: str
    index: int


class ItemFailed(ProgressEvent):
    event_name: ClassVar[str] = "profile:error"

    item_id: str
    index: int
    error: ItemError


class CheckpointSaved(ProgressEvent):
    event_name: ClassVar[str] = "checkpoint:saved"

    checkpoint: Checkpoint


class ShardFinished(ProgressEvent):
    event_name: ClassVar[str] = "shard:finish"

    status: ShardStatus
    processed_count: int
    error_count: int


AnyEvent = Union[ShardStarted, ItemSucceeded, ItemFailed, CheckpointSaved, ShardFinished]
