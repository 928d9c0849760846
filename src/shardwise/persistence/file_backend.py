"""Local filesystem checkpoint store implementing ICheckpointStore."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

from pydantic import ValidationError

from shardwise.core.exceptions import CheckpointIOError
from shardwise.core.logging import get_logger
from shardwise.models.report import GlobalSnapshot
from shardwise.models.shard import Checkpoint, GlobalStats, Shard

logger = get_logger(__name__)

GLOBAL_SNAPSHOT_NAME = "global_checkpoint.json"


def _atomic_write(path: Path, text: str) -> None:
    """Write via a sibling temp file so readers never see a torn checkpoint."""
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(text)
        os.replace(tmp, path)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise


class FileCheckpointStore:
    """Production ICheckpointStore writing one JSON file per shard."""

    def __init__(self, directory: str | Path = "./checkpoints") -> None:
        self._dir = Path(directory)

    @property
    def location(self) -> str:
        return str(self._dir)

    def prepare(self) -> None:
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise CheckpointIOError(
                f"Cannot create checkpoint directory {self._dir}: {exc}"
            ) from exc

    def path_for(self, shard_id: str) -> Path:
        return self._dir / f"checkpoint_{shard_id}.json"

    def location_for(self, shard_id: str) -> str:
        return str(self.path_for(shard_id))

    def save(self, shard: Shard, last_processed_index: int) -> Checkpoint:
        checkpoint = Checkpoint.of(shard, last_processed_index)
        try:
            _atomic_write(self.path_for(shard.id), checkpoint.to_json())
        except OSError as exc:
            raise CheckpointIOError(f"Checkpoint write failed for {shard.id}: {exc}") from exc
        return checkpoint

    def load(self, shard_id: str) -> Checkpoint | None:
        path = self.path_for(shard_id)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            logger.warning("checkpoint.unreadable", shard_id=shard_id, path=str(path), error=str(exc))
            return None
        try:
            return Checkpoint.model_validate_json(raw)
        except ValidationError as exc:
            logger.warning("checkpoint.corrupt", shard_id=shard_id, path=str(path), error=str(exc))
            return None

    def save_global_snapshot(self, stats: GlobalStats, shards: list[Shard]) -> None:
        snapshot = GlobalSnapshot.build(stats.total, stats.processed, stats.failed, shards)
        try:
            _atomic_write(self._dir / GLOBAL_SNAPSHOT_NAME, snapshot.model_dump_json(by_alias=True, indent=2))
        except OSError as exc:
            raise CheckpointIOError(f"Global snapshot write failed: {exc}") from exc
