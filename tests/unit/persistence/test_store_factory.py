from __future__ import annotations

from unittest.mock import patch

import fakeredis
from moto import mock_aws

from shardwise.core.config import CheckpointConfig, OrchestratorSettings, S3Config
from shardwise.persistence import (
    FileCheckpointStore,
    MemoryCheckpointStore,
    create_checkpoint_store,
)
from shardwise.persistence.redis_backend import RedisCheckpointStore
from shardwise.persistence.s3_backend import S3CheckpointStore


class TestCreateCheckpointStore:
    def test_defaults_to_file(self):
        store = create_checkpoint_store(OrchestratorSettings())
        assert isinstance(store, FileCheckpointStore)
        assert store.location == "checkpoints"

    def test_file_dir_from_settings(self, tmp_path):
        settings = OrchestratorSettings(checkpoint=CheckpointConfig(dir=str(tmp_path)))
        assert create_checkpoint_store(settings).location == str(tmp_path)

    def test_memory(self):
        settings = OrchestratorSettings(checkpoint=CheckpointConfig(backend="memory"))
        assert isinstance(create_checkpoint_store(settings), MemoryCheckpointStore)

    def test_redis(self):
        settings = OrchestratorSettings(checkpoint=CheckpointConfig(backend="redis"))
        with patch("redis.Redis", return_value=fakeredis.FakeRedis(decode_responses=True)):
            store = create_checkpoint_store(settings)
        assert isinstance(store, RedisCheckpointStore)

    def test_s3(self):
        settings = OrchestratorSettings(
            checkpoint=CheckpointConfig(backend="s3"),
            s3=S3Config(bucket="bkt", prefix="cp"),
        )
        with mock_aws():
            store = create_checkpoint_store(settings)
        assert isinstance(store, S3CheckpointStore)
        assert store.location == "s3://bkt/cp"
