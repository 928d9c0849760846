"""Type aliases used across shardwise."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

ShardId = str
ItemId = str

# Sync or async callable performing the per-item side effect; raises on failure.
WorkflowExecutor = Callable[[Any], Any] | Callable[[Any], Awaitable[Any]]
ItemIdResolver = Callable[[Any], ItemId]
