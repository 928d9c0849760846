"""ConcurrencyController: bounded scheduling of shards over a runner strategy."""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Sequence

from shardwise.core.exceptions import ShardAbortError, WorkerCrashError
from shardwise.core.logging import get_logger
from shardwise.core.protocols import IShardRunner
from shardwise.core.types import WorkflowExecutor
from shardwise.models.shard import Shard, ShardStatus, utcnow

logger = get_logger(__name__)


class ConcurrencyController:
    """Keeps at most ``max_concurrent`` shards active at any instant.

    Shard failures (threshold aborts, worker crashes) are recorded on the
    shard and never cascade to siblings. Any other exception cancels the
    remaining shards and propagates to the caller. Queued shards keep their
    status until they get a slot; a retried shard then enters RETRYING.
    """

    def __init__(self, runner: IShardRunner, max_concurrent: int = 3) -> None:
        if max_concurrent < 1:
            raise ValueError(f"max_concurrent must be >= 1, got {max_concurrent}")
        self._runner = runner
        self._max_concurrent = max_concurrent
        self._active: dict[str, Shard] = {}
        self.peak_active = 0

    @property
    def active_count(self) -> int:
        return len(self._active)

    @property
    def active_ids(self) -> list[str]:
        return list(self._active)

    async def _run_one(self, shard: Shard, executor: WorkflowExecutor) -> Shard:
        try:
            return await self._runner.run(shard, executor)
        except (ShardAbortError, WorkerCrashError) as exc:
            shard.status = ShardStatus.FAILED
            if shard.end_time is None:
                shard.end_time = utcnow()
            logger.error("shard.failed", shard_id=shard.id, error=str(exc),
                         retry_count=shard.retry_count)
            return shard
        finally:
            self._active.pop(shard.id, None)

    async def run_pass(self, shards: Sequence[Shard], executor: WorkflowExecutor) -> list[Shard]:
        """Run every shard once, returning them in their original order."""
        pending: deque[Shard] = deque()
        seen: set[str] = set()
        for shard in shards:
            if shard.id in seen or shard.id in self._active:
                logger.warning("shard.duplicate_skipped", shard_id=shard.id)
                continue
            seen.add(shard.id)
            pending.append(shard)

        tasks: set[asyncio.Task[Shard]] = set()
        try:
            while pending or tasks:
                while pending and len(self._active) < self._max_concurrent:
                    shard = pending.popleft()
                    if shard.retry_count:
                        shard.status = ShardStatus.RETRYING
                    self._active[shard.id] = shard
                    self.peak_active = max(self.peak_active, len(self._active))
                    tasks.add(
                        asyncio.create_task(self._run_one(shard, executor), name=f"shard-{shard.id}")
                    )
                done, tasks = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
                for task in done:
                    task.result()
        finally:
            for task in tasks:
                task.cancel()
            if tasks:
                await asyncio.gather(*tasks, return_exceptions=True)
        return list(shards)
