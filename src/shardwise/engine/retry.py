"""RetryCoordinator: shard-level retry rounds after the first full pass."""

from __future__ import annotations

from collections.abc import Sequence

from shardwise.core.logging import get_logger
from shardwise.core.types import WorkflowExecutor
from shardwise.engine.controller import ConcurrencyController
from shardwise.models.shard import Shard, ShardStatus

logger = get_logger(__name__)


class RetryCoordinator:
    """Re-runs failed shards, each at most ``max_retries`` times.

    Retries only start once the first pass has fully drained, and each round
    goes through the same bounded controller. A retried shard resumes from
    its own checkpoint.
    """

    def __init__(self, controller: ConcurrencyController, max_retries: int = 3) -> None:
        self._controller = controller
        self._max_retries = max_retries

    def retryable(self, shards: Sequence[Shard]) -> list[Shard]:
        return [
            s for s in shards
            if s.status is ShardStatus.FAILED and s.retry_count < self._max_retries
        ]

    async def run(self, shards: Sequence[Shard], executor: WorkflowExecutor) -> list[Shard]:
        """Retry until every shard is completed or out of retries.

        Returns the shards left failed.
        """
        round_no = 0
        while candidates := self.retryable(shards):
            round_no += 1
            logger.warning("retry.round", round=round_no, shards=[s.id for s in candidates])
            for shard in candidates:
                shard.retry_count += 1
            await self._controller.run_pass(candidates, executor)

        exhausted = [s for s in shards if s.status is ShardStatus.FAILED]
        for shard in exhausted:
            logger.error("retry.exhausted", shard_id=shard.id, retry_count=shard.retry_count)
        return exhausted
