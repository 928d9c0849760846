"""ShardProcessor: drives item-by-item execution within one shard.

Items run strictly in ascending index order. A checkpoint at index k means
every item in [0, k) has been attempted, so a later pass resumes at k and
never re-invokes the executor for earlier items.
"""

from __future__ import annotations

import asyncio
import functools
import inspect
from collections.abc import Mapping
from typing import Any

from shardwise.core.config import OrchestratorSettings
from shardwise.core.exceptions import (
    CheckpointIOError,
    ItemExecutionError,
    ItemTimeoutError,
    ShardAbortError,
)
from shardwise.core.logging import get_logger
from shardwise.core.protocols import IAdmissionGate, ICheckpointStore, IProgressSink
from shardwise.core.types import ItemIdResolver, WorkflowExecutor
from shardwise.engine.events import NullSink
from shardwise.models.events import (
    CheckpointSaved,
    ItemFailed,
    ItemSucceeded,
    ShardFinished,
    ShardStarted,
)
from shardwise.models.shard import Checkpoint, ItemError, Shard, ShardStatus, utcnow

logger = get_logger(__name__)

_ID_KEYS = ("id", "item_id", "itemId", "profile_id", "profileId")


def default_item_id(item: Any) -> str:
    """Best-effort identifier for an item, used in error entries and events."""
    if isinstance(item, Mapping):
        for key in _ID_KEYS:
            if item.get(key) is not None:
                return str(item[key])
    item_id = getattr(item, "id", None)
    if item_id is not None:
        return str(item_id)
    return str(item)


def is_async_executor(executor: WorkflowExecutor) -> bool:
    if isinstance(executor, functools.partial):
        return is_async_executor(executor.func)
    return inspect.iscoroutinefunction(executor) or inspect.iscoroutinefunction(
        getattr(executor, "__call__", None)
    )


class ShardProcessor:
    """Processes one shard against the workflow executor, in place."""

    def __init__(
        self,
        settings: OrchestratorSettings,
        store: ICheckpointStore,
        gate: IAdmissionGate,
        sink: IProgressSink | None = None,
        item_id: ItemIdResolver | None = None,
    ) -> None:
        self._settings = settings
        self._store = store
        self._gate = gate
        self._sink = sink or NullSink()
        self._item_id = item_id or default_item_id

    async def _call(self, executor: WorkflowExecutor, item: Any) -> Any:
        if is_async_executor(executor):
            return await executor(item)
        result = await asyncio.to_thread(executor, item)
        # Plain callables may return an awaitable, e.g. `lambda item: client.run(item)`
        if inspect.isawaitable(result):
            result = await result
        return result

    async def invoke(self, executor: WorkflowExecutor, item: Any, item_id: str) -> Any:
        """Run the executor for one item under the hard per-item timeout.

        The timeout cancels waiting only: a synchronous executor keeps running
        in its worker thread until it returns on its own.
        """
        try:
            return await asyncio.wait_for(self._call(executor, item), self._settings.timeout_seconds)
        except TimeoutError as exc:
            raise ItemTimeoutError(item_id, self._settings.timeout_ms) from exc
        except Exception as exc:
            raise ItemExecutionError(item_id, str(exc) or type(exc).__name__) from exc

    def _rewind(self, shard: Shard, checkpoint: Checkpoint | None) -> int:
        """Reset shard counters to the checkpoint and return the resume index."""
        if checkpoint is None or checkpoint.last_processed_index > shard.size:
            start = 0
            shard.processed_count = 0
            shard.error_count = 0
        else:
            start = checkpoint.last_processed_index
            shard.processed_count = checkpoint.processed_count
            shard.error_count = checkpoint.error_count
        shard.errors = [e for e in shard.errors if e.index < start]
        shard.progress = start / shard.size * 100 if shard.items else 100.0
        return start

    def _save_checkpoint(self, shard: Shard, index: int) -> bool:
        try:
            checkpoint = self._store.save(shard, index)
        except CheckpointIOError as exc:
            if self._settings.checkpoint.failure_policy == "fail_fast":
                raise
            logger.warning("checkpoint.save_failed", shard_id=shard.id, index=index, error=str(exc))
            return False
        logger.debug("checkpoint.saved", shard_id=shard.id, index=index)
        self._sink.emit(CheckpointSaved(shard_id=shard.id, checkpoint=checkpoint))
        return True

    def _finish(self, shard: Shard, status: ShardStatus) -> None:
        shard.status = status
        shard.end_time = utcnow()
        self._sink.emit(
            ShardFinished(
                shard_id=shard.id,
                status=status,
                processed_count=shard.processed_count,
                error_count=shard.error_count,
            )
        )

    async def process(self, shard: Shard, executor: WorkflowExecutor) -> Shard:
        """Process ``shard`` from its last checkpoint to a terminal state.

        Item failures are recorded on the shard and never raised. Raises
        ShardAbortError once the shard's error ratio exceeds the threshold.
        """
        settings = self._settings
        start_index = self._rewind(shard, self._store.load(shard.id))
        if shard.status is not ShardStatus.RETRYING:
            shard.status = ShardStatus.RUNNING
        shard.start_time = utcnow()
        shard.end_time = None

        log = logger.bind(shard_id=shard.id)
        log.info("shard.started", start_index=start_index, size=shard.size,
                 retry_count=shard.retry_count)
        self._sink.emit(
            ShardStarted(shard_id=shard.id, start_index=start_index, retry_count=shard.retry_count)
        )

        # Counters as of the last durable checkpoint, re-persisted on abort
        resume_index = start_index
        resume_state = {
            "processed_count": shard.processed_count,
            "error_count": shard.error_count,
            "progress": shard.progress,
        }

        for i in range(start_index, shard.size):
            item = shard.items[i]
            item_id = self._item_id(item)
            await self._gate.acquire()

            try:
                await self.invoke(executor, item, item_id)
            except ItemExecutionError as exc:
                shard.error_count += 1
                entry = ItemError(item_id=item_id, index=i, message=str(exc), kind=exc.kind)
                shard.errors.append(entry)
                self._gate.record_failure()
                log.warning("item.failed", item_id=item_id, index=i, kind=exc.kind, error=str(exc))
                self._sink.emit(ItemFailed(shard_id=shard.id, item_id=item_id, index=i, error=entry))

                if shard.error_rate > settings.error_threshold:
                    self._save_checkpoint(shard.model_copy(update=resume_state), resume_index)
                    self._finish(shard, ShardStatus.FAILED)
                    log.error("shard.aborted", error_count=shard.error_count, size=shard.size,
                              resume_index=resume_index)
                    raise ShardAbortError(shard.id, shard.error_count, shard.size) from exc
                continue

            shard.processed_count += 1
            self._gate.record_success()
            shard.progress = (i + 1) / shard.size * 100
            self._sink.emit(ItemSucceeded(shard_id=shard.id, item_id=item_id, index=i))

            if (i + 1) % settings.checkpoint_interval == 0 and self._save_checkpoint(shard, i + 1):
                resume_index = i + 1
                resume_state = {
                    "processed_count": shard.processed_count,
                    "error_count": shard.error_count,
                    "progress": shard.progress,
                }

        shard.progress = 100.0
        self._save_checkpoint(shard, shard.size)
        self._finish(shard, ShardStatus.COMPLETED)
        log.info("shard.completed", processed=shard.processed_count, errors=shard.error_count)
        return shard
