"""Unit tests for S3CheckpointStore using moto."""

from __future__ import annotations

import json

import boto3
import pytest
from moto import mock_aws

from shardwise.core.exceptions import CheckpointIOError
from shardwise.engine.planner import create_shards
from shardwise.models.shard import GlobalStats
from shardwise.persistence.s3_backend import S3CheckpointStore

BUCKET = "test-checkpoints"


@pytest.fixture
def s3_client():
    with mock_aws():
        client = boto3.client("s3", region_name="us-east-1")
        client.create_bucket(Bucket=BUCKET)
        yield client


@pytest.fixture
def s3_store(s3_client):
    return S3CheckpointStore(bucket=BUCKET, prefix="runs/42/", region="us-east-1")


@pytest.fixture
def shard():
    shard = create_shards(list(range(30)), 30)[0]
    shard.processed_count = 20
    return shard


class TestSave:
    def test_writes_json_object(self, s3_store, s3_client, shard):
        s3_store.save(shard, 20)
        obj = s3_client.get_object(Bucket=BUCKET, Key="runs/42/checkpoint_shard_001.json")
        body = json.loads(obj["Body"].read())
        assert body["shardId"] == "shard_001"
        assert body["lastProcessedIndex"] == 20
        assert obj["ContentType"] == "application/json"

    def test_missing_bucket_raises(self, s3_client, shard):
        store = S3CheckpointStore(bucket="no-such-bucket", region="us-east-1")
        with pytest.raises(CheckpointIOError):
            store.save(shard, 10)


class TestLoad:
    def test_round_trip(self, s3_store, shard):
        saved = s3_store.save(shard, 20)
        assert s3_store.load("shard_001") == saved

    def test_missing_key_returns_none(self, s3_store):
        assert s3_store.load("shard_404") is None

    def test_corrupt_object_returns_none(self, s3_store, s3_client):
        s3_client.put_object(Bucket=BUCKET, Key="runs/42/checkpoint_shard_001.json", Body=b"[]")
        assert s3_store.load("shard_001") is None


class TestPrepare:
    def test_existing_bucket(self, s3_store):
        s3_store.prepare()

    def test_missing_bucket_raises(self, s3_client):
        with pytest.raises(CheckpointIOError):
            S3CheckpointStore(bucket="absent", region="us-east-1").prepare()


class TestGlobalSnapshot:
    def test_written_next_to_checkpoints(self, s3_store, s3_client):
        shards = create_shards(list(range(4)), 2)
        s3_store.save_global_snapshot(GlobalStats(total=4, processed=4), shards)
        obj = s3_client.get_object(Bucket=BUCKET, Key="runs/42/global_checkpoint.json")
        body = json.loads(obj["Body"].read())
        assert body["stats"]["processed"] == 4
        assert [s["id"] for s in body["shards"]] == ["shard_001", "shard_002"]


class TestLocation:
    def test_uris(self, s3_store):
        assert s3_store.location == f"s3://{BUCKET}/runs/42"
        assert s3_store.location_for("shard_003") == f"s3://{BUCKET}/runs/42/checkpoint_shard_003.json"
