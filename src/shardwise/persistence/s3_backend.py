"""S3 checkpoint store implementing ICheckpointStore."""

from __future__ import annotations

import boto3
from botocore.exceptions import ClientError
from pydantic import ValidationError

from shardwise.core.exceptions import CheckpointIOError
from shardwise.core.logging import get_logger
from shardwise.models.report import GlobalSnapshot
from shardwise.models.shard import Checkpoint, GlobalStats, Shard

logger = get_logger(__name__)

_MISSING_CODES = {"NoSuchKey", "404"}


class S3CheckpointStore:
    """ICheckpointStore writing one JSON object per shard under a key prefix."""

    def __init__(self, bucket: str, prefix: str = "checkpoints", region: str = "us-east-1",
                 endpoint_url: str | None = None) -> None:
        self._bucket = bucket
        self._prefix = prefix.rstrip("/")
        self._region = region
        self._endpoint_url = endpoint_url
        self._client = self._connect()

    def _connect(self):
        kwargs: dict = {"region_name": self._region}
        if self._endpoint_url:
            kwargs["endpoint_url"] = self._endpoint_url
        return boto3.client("s3", **kwargs)

    # Worker processes receive a pickled store and build their own client
    def __getstate__(self) -> dict:
        state = self.__dict__.copy()
        del state["_client"]
        return state

    def __setstate__(self, state: dict) -> None:
        self.__dict__.update(state)
        self._client = self._connect()

    @property
    def location(self) -> str:
        return f"s3://{self._bucket}/{self._prefix}"

    def key_for(self, shard_id: str) -> str:
        return f"{self._prefix}/checkpoint_{shard_id}.json"

    def location_for(self, shard_id: str) -> str:
        return f"s3://{self._bucket}/{self.key_for(shard_id)}"

    def prepare(self) -> None:
        try:
            self._client.head_bucket(Bucket=self._bucket)
        except ClientError as exc:
            raise CheckpointIOError(f"S3 bucket {self._bucket!r} not accessible: {exc}") from exc

    def _put(self, key: str, body: str) -> None:
        self._client.put_object(
            Bucket=self._bucket, Key=key, Body=body.encode("utf-8"),
            ContentType="application/json",
        )

    def save(self, shard: Shard, last_processed_index: int) -> Checkpoint:
        checkpoint = Checkpoint.of(shard, last_processed_index)
        key = self.key_for(shard.id)
        try:
            self._put(key, checkpoint.to_json())
        except ClientError as exc:
            raise CheckpointIOError(f"S3 write failed for {key!r}: {exc}") from exc
        return checkpoint

    def load(self, shard_id: str) -> Checkpoint | None:
        key = self.key_for(shard_id)
        try:
            resp = self._client.get_object(Bucket=self._bucket, Key=key)
            raw = resp["Body"].read()
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") not in _MISSING_CODES:
                logger.warning("checkpoint.unreadable", shard_id=shard_id, key=key, error=str(exc))
            return None
        try:
            return Checkpoint.model_validate_json(raw)
        except ValidationError as exc:
            logger.warning("checkpoint.corrupt", shard_id=shard_id, key=key, error=str(exc))
            return None

    def save_global_snapshot(self, stats: GlobalStats, shards: list[Shard]) -> None:
        snapshot = GlobalSnapshot.build(stats.total, stats.processed, stats.failed, shards)
        key = f"{self._prefix}/global_checkpoint.json"
        try:
            self._put(key, snapshot.model_dump_json(by_alias=True, indent=2))
        except ClientError as exc:
            raise CheckpointIOError(f"S3 write failed for {key!r}: {exc}") from exc
