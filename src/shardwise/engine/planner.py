"""ShardPlanner: deterministic partitioning of an ordered item list."""

from __future__ import annotations

import math
from collections.abc import Callable, Sequence
from typing import Any

from shardwise.core.exceptions import ConfigurationError
from shardwise.models.shard import Shard


def shard_id_for(index: int) -> str:
    """Stable shard id for a 0-based shard index (``shard_001`` for index 0)."""
    return f"shard_{index + 1:03d}"


def create_shards(
    items: Sequence[Any],
    shard_size: int,
    location_for: Callable[[str], str] | None = None,
) -> list[Shard]:
    """Partition ``items`` into contiguous shards of at most ``shard_size`` items.

    Identical inputs always produce an identical partition, which keeps
    checkpoints keyed by shard index valid across restarts.
    """
    if shard_size < 1:
        raise ConfigurationError(f"shard_size must be >= 1, got {shard_size}")

    shards: list[Shard] = []
    for i in range(math.ceil(len(items) / shard_size)):
        start = i * shard_size
        end = min(start + shard_size, len(items))
        shard_id = shard_id_for(i)
        shards.append(
            Shard(
                id=shard_id,
                index=i,
                items=list(items[start:end]),
                checkpoint_path=location_for(shard_id) if location_for else "",
            )
        )
    return shards
