"""Tests for deterministic shard planning."""

from __future__ import annotations

import math

import pytest

from shardwise.core.exceptions import ConfigurationError
from shardwise.engine.planner import create_shards, shard_id_for
from shardwise.models.shard import ShardStatus


@pytest.mark.parametrize("count, size", [(0, 5), (1, 5), (5, 5), (6, 5), (120, 50), (99, 7), (10, 1)])
def test_partition_fidelity(count, size):
    items = [{"id": i} for i in range(count)]
    shards = create_shards(items, size)
    assert [item for s in shards for item in s.items] == items
    assert len(shards) == math.ceil(count / size)


def test_scenario_120_items_in_shards_of_50():
    shards = create_shards(list(range(120)), 50)
    assert [s.size for s in shards] == [50, 50, 20]
    assert [s.id for s in shards] == ["shard_001", "shard_002", "shard_003"]
    assert [s.index for s in shards] == [0, 1, 2]


def test_new_shards_are_pending_and_empty():
    shard = create_shards(["a", "b"], 5)[0]
    assert shard.status is ShardStatus.PENDING
    assert shard.progress == 0
    assert shard.processed_count == shard.error_count == shard.retry_count == 0


def test_planning_is_deterministic():
    items = list(range(37))
    first = create_shards(items, 10)
    second = create_shards(items, 10)
    assert [(s.id, s.items) for s in first] == [(s.id, s.items) for s in second]


def test_shards_do_not_alias_input():
    items = [1, 2, 3]
    shards = create_shards(items, 2)
    items.append(4)
    assert shards[-1].items == [3]


def test_location_for_fills_checkpoint_path():
    shards = create_shards(list(range(3)), 2, location_for=lambda sid: f"/cp/{sid}.json")
    assert shards[1].checkpoint_path == "/cp/shard_002.json"


def test_rejects_non_positive_shard_size():
    with pytest.raises(ConfigurationError):
        create_shards([1], 0)


def test_shard_id_padding():
    assert shard_id_for(0) == "shard_001"
    assert shard_id_for(1233) == "shard_1234"
