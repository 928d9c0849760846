"""In-memory checkpoint store for unit tests and single-process runs."""

from __future__ import annotations

from shardwise.models.report import GlobalSnapshot
from shardwise.models.shard import Checkpoint, GlobalStats, Shard


class MemoryCheckpointStore:
    """Dict-backed ICheckpointStore. Not visible to process-isolated workers."""

    def __init__(self) -> None:
        self._checkpoints: dict[str, str] = {}
        self.snapshots: list[GlobalSnapshot] = []
        self.writes: list[Checkpoint] = []

    @property
    def location(self) -> str:
        return "memory://"

    def prepare(self) -> None:
        return None

    def location_for(self, shard_id: str) -> str:
        return f"memory://{shard_id}"

    def save(self, shard: Shard, last_processed_index: int) -> Checkpoint:
        checkpoint = Checkpoint.of(shard, last_processed_index)
        self._checkpoints[shard.id] = checkpoint.to_json()
        self.writes.append(checkpoint)
        return checkpoint

    def load(self, shard_id: str) -> Checkpoint | None:
        raw = self._checkpoints.get(shard_id)
        return Checkpoint.model_validate_json(raw) if raw is not None else None

    def save_global_snapshot(self, stats: GlobalStats, shards: list[Shard]) -> None:
        self.snapshots.append(
            GlobalSnapshot.build(stats.total, stats.processed, stats.failed, shards)
        )

    def put(self, checkpoint: Checkpoint) -> None:
        """Seed a checkpoint directly, as if left behind by an earlier run."""
        self._checkpoints[checkpoint.shard_id] = checkpoint.to_json()
