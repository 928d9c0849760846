"""Protocol interfaces for all shardwise abstractions.

Components depend on these Protocols rather than concrete classes:
structural typing, no inheritance required, easy to fake in tests.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from shardwise.core.types import ShardId, WorkflowExecutor

if TYPE_CHECKING:
    from shardwise.models.events import ProgressEvent
    from shardwise.models.shard import Checkpoint, GlobalStats, Shard


# ---------------------------------------------------------------------------
# Persistence: Checkpoint Store
# ---------------------------------------------------------------------------

@runtime_checkable
class ICheckpointStore(Protocol):
    """Durable per-shard progress plus an advisory run-wide snapshot."""

    @property
    def location(self) -> str: ...

    def prepare(self) -> None: ...

    def location_for(self, shard_id: ShardId) -> str: ...

    def save(self, shard: Shard, last_processed_index: int) -> Checkpoint: ...

    def load(self, shard_id: ShardId) -> Checkpoint | None: ...

    def save_global_snapshot(self, stats: GlobalStats, shards: list[Shard]) -> None: ...


# ---------------------------------------------------------------------------
# Admission control
# ---------------------------------------------------------------------------

@runtime_checkable
class IAdmissionGate(Protocol):
    """Admission control consulted before every item attempt."""

    async def acquire(self) -> None: ...

    def record_success(self) -> None: ...

    def record_failure(self) -> None: ...


# ---------------------------------------------------------------------------
# Progress reporting
# ---------------------------------------------------------------------------

@runtime_checkable
class IProgressSink(Protocol):
    """Receives typed progress events from shard processing."""

    def emit(self, event: ProgressEvent) -> None: ...


# ---------------------------------------------------------------------------
# Shard execution strategy
# ---------------------------------------------------------------------------

@runtime_checkable
class IShardRunner(Protocol):
    """Runs one shard to a terminal state (in-process task or isolated process).

    Raises ShardAbortError or WorkerCrashError when the shard fails.
    """

    async def run(self, shard: Shard, executor: WorkflowExecutor) -> Shard: ...
