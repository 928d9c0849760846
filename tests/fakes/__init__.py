"""Shared test doubles: memory store, recording sink, scripted executors."""

from __future__ import annotations

import asyncio
import os
from collections import Counter
from typing import Any

from shardwise.core.config import BreakerConfig, OrchestratorSettings
from shardwise.core.exceptions import CheckpointIOError
from shardwise.models.events import ProgressEvent
from shardwise.models.shard import Checkpoint, Shard
from shardwise.persistence.memory_backend import MemoryCheckpointStore


class RecordingSink:
    """IProgressSink that keeps every event it receives."""

    def __init__(self) -> None:
        self.events: list[ProgressEvent] = []

    def emit(self, event: ProgressEvent) -> None:
        self.events.append(event)

    def names(self) -> list[str]:
        return [e.event_name for e in self.events]

    def of_type(self, event_type: type) -> list[Any]:
        return [e for e in self.events if isinstance(e, event_type)]


class FailingWriteStore(MemoryCheckpointStore):
    """Memory store whose checkpoint writes always fail."""

    def save(self, shard: Shard, last_processed_index: int) -> Checkpoint:
        raise CheckpointIOError(f"disk full writing {shard.id}")


def make_settings(**overrides: Any) -> OrchestratorSettings:
    """Fast test settings: breaker effectively disabled unless a test opts in."""
    values: dict[str, Any] = {
        "shard_size": 50,
        "checkpoint_interval": 10,
        "error_threshold": 0.2,
        "timeout_ms": 5_000,
        "monitor_interval_ms": 50,
        "breaker": BreakerConfig(threshold=1_000, cooldown_ms=10),
    }
    values.update(overrides)
    return OrchestratorSettings(**values)


class ScriptedExecutor:
    """Async workflow executor with per-item scripted behaviour.

    ``fail`` items raise, ``hang`` items never finish, ``fail_times`` makes an
    item fail for its first N calls only.
    """

    def __init__(
        self,
        fail: set[Any] | None = None,
        hang: set[Any] | None = None,
        fail_times: dict[Any, int] | None = None,
        delay: float = 0.0,
    ) -> None:
        self.fail = fail or set()
        self.hang = hang or set()
        self.fail_times = fail_times or {}
        self.delay = delay
        self.calls: list[Any] = []
        self.counts: Counter = Counter()

    async def __call__(self, item: Any) -> Any:
        self.calls.append(item)
        self.counts[item] += 1
        await asyncio.sleep(self.delay)
        if item in self.hang:
            await asyncio.Event().wait()
        if item in self.fail or self.counts[item] <= self.fail_times.get(item, 0):
            raise ValueError(f"executor rejected {item}")
        return {"item": item, "ok": True}


# Module-level executors: picklable for process-isolated workers.

def ok_executor(item: Any) -> Any:
    return item


def fail_odd_executor(item: int) -> int:
    if item % 2:
        raise ValueError(f"odd item {item}")
    return item


def fail_all_executor(item: Any) -> Any:
    raise RuntimeError(f"downstream unavailable for {item}")


def crash_executor(item: Any) -> Any:
    os._exit(3)


__all__ = [
    "FailingWriteStore",
    "MemoryCheckpointStore",
    "RecordingSink",
    "ScriptedExecutor",
    "crash_executor",
    "fail_all_executor",
    "fail_odd_executor",
    "make_settings",
    "ok_executor",
]
