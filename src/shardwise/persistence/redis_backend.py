"""Redis checkpoint store implementing ICheckpointStore."""

from __future__ import annotations

import redis
from pydantic import ValidationError

from shardwise.core.exceptions import CheckpointIOError
from shardwise.core.logging import get_logger
from shardwise.models.report import GlobalSnapshot
from shardwise.models.shard import Checkpoint, GlobalStats, Shard

logger = get_logger(__name__)


class RedisCheckpointStore:
    """ICheckpointStore backed by Redis string keys, reachable from worker processes."""

    def __init__(self, host: str = "localhost", port: int = 6379, db: int = 0,
                 key_prefix: str = "shardwise") -> None:
        self._host = host
        self._port = port
        self._db = db
        self._prefix = key_prefix
        self._client = self._connect()

    def _connect(self) -> redis.Redis:
        return redis.Redis(
            host=self._host, port=self._port, db=self._db, decode_responses=True,
        )

    # Worker processes receive a pickled store and open their own connection
    def __getstate__(self) -> dict:
        state = self.__dict__.copy()
        del state["_client"]
        return state

    def __setstate__(self, state: dict) -> None:
        self.__dict__.update(state)
        self._client = self._connect()

    @property
    def location(self) -> str:
        return f"redis://{self._host}:{self._port}/{self._db}/{self._prefix}"

    def key_for(self, shard_id: str) -> str:
        return f"{self._prefix}:checkpoint:{shard_id}"

    def location_for(self, shard_id: str) -> str:
        return self.key_for(shard_id)

    def prepare(self) -> None:
        try:
            self._client.ping()
        except Exception as exc:
            raise CheckpointIOError(f"Redis unreachable at {self.location}: {exc}") from exc

    def save(self, shard: Shard, last_processed_index: int) -> Checkpoint:
        checkpoint = Checkpoint.of(shard, last_processed_index)
        key = self.key_for(shard.id)
        try:
            self._client.set(key, checkpoint.to_json())
        except Exception as exc:
            raise CheckpointIOError(f"Redis SET failed for key={key!r}: {exc}") from exc
        return checkpoint

    def load(self, shard_id: str) -> Checkpoint | None:
        key = self.key_for(shard_id)
        try:
            raw = self._client.get(key)
        except Exception as exc:
            logger.warning("checkpoint.unreadable", shard_id=shard_id, key=key, error=str(exc))
            return None
        if raw is None:
            return None
        try:
            return Checkpoint.model_validate_json(raw)
        except ValidationError as exc:
            logger.warning("checkpoint.corrupt", shard_id=shard_id, key=key, error=str(exc))
            return None

    def save_global_snapshot(self, stats: GlobalStats, shards: list[Shard]) -> None:
        snapshot = GlobalSnapshot.build(stats.total, stats.processed, stats.failed, shards)
        key = f"{self._prefix}:global"
        try:
            self._client.set(key, snapshot.model_dump_json(by_alias=True))
        except Exception as exc:
            raise CheckpointIOError(f"Redis SET failed for key={key!r}: {exc}") from exc
