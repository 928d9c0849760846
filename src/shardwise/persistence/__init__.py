"""Pluggable checkpoint stores behind the ICheckpointStore protocol."""

from __future__ import annotations

from shardwise.core.config import OrchestratorSettings
from shardwise.core.protocols import ICheckpointStore
from shardwise.persistence.file_backend import FileCheckpointStore
from shardwise.persistence.memory_backend import MemoryCheckpointStore


def create_checkpoint_store(settings: OrchestratorSettings | None = None) -> ICheckpointStore:
    """Create the checkpoint store selected by ``settings.checkpoint.backend``."""
    if settings is None:
        settings = OrchestratorSettings()

    backend = settings.checkpoint.backend
    if backend == "memory":
        return MemoryCheckpointStore()
    if backend == "redis":
        from shardwise.persistence.redis_backend import RedisCheckpointStore

        return RedisCheckpointStore(
            host=settings.redis.host,
            port=settings.redis.port,
            db=settings.redis.db,
            key_prefix=settings.redis.key_prefix,
        )
    if backend == "s3":
        from shardwise.persistence.s3_backend import S3CheckpointStore

        return S3CheckpointStore(
            bucket=settings.s3.bucket,
            prefix=settings.s3.prefix,
            region=settings.s3.region,
            endpoint_url=settings.s3.endpoint_url,
        )
    return FileCheckpointStore(settings.checkpoint.dir)


__all__ = [
    "FileCheckpointStore",
    "ICheckpointStore",
    "MemoryCheckpointStore",
    "create_checkpoint_store",
]
