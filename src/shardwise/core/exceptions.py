"""Shardwise exception hierarchy."""

from __future__ import annotations


class ShardwiseError(Exception):
    """Base exception for all shardwise errors."""


class ConfigurationError(ShardwiseError):
    """Invalid orchestrator configuration."""


class ItemExecutionError(ShardwiseError):
    """The workflow executor rejected or raised for a single item."""

    kind = "ItemExecutionError"

    def __init__(self, item_id: str, message: str) -> None:
        self.item_id = item_id
        super().__init__(message)


class ItemTimeoutError(ItemExecutionError):
    """The workflow executor did not finish within the per-item timeout."""

    kind = "ItemTimeoutError"

    def __init__(self, item_id: str, timeout_ms: int) -> None:
        self.timeout_ms = timeout_ms
        super().__init__(item_id, f"Item {item_id} timed out after {timeout_ms} ms")


class ShardAbortError(ShardwiseError):
    """Cumulative error ratio exceeded the threshold mid-shard."""

    def __init__(self, shard_id: str, error_count: int, total: int) -> None:
        self.shard_id = shard_id
        self.error_count = error_count
        self.total = total
        super().__init__(
            f"Error threshold exceeded for {shard_id} ({error_count}/{total} items failed)"
        )


class CheckpointIOError(ShardwiseError):
    """Checkpoint store read or write failed."""


class WorkerCrashError(ShardwiseError):
    """A process-isolated shard worker exited abnormally."""

    def __init__(self, shard_id: str, exitcode: int | None) -> None:
        self.shard_id = shard_id
        self.exitcode = exitcode
        super().__init__(f"Worker for {shard_id} exited with code {exitcode}")
