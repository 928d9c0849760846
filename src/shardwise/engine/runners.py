"""Shard runner strategies: cooperative in-process tasks or isolated OS processes.

In process mode the parent is the sole owner of the circuit breaker and the
run statistics. Children report through a pipe and ask the parent for
admission before every item; they never hold breaker state of their own.
"""

from __future__ import annotations

import asyncio
import multiprocessing
import sys
from enum import StrEnum
from multiprocessing.connection import Connection
from typing import Optional

from pydantic import BaseModel

from shardwise.core.config import OrchestratorSettings
from shardwise.core.exceptions import ShardAbortError, WorkerCrashError
from shardwise.core.logging import configure_logging, get_logger
from shardwise.core.protocols import IAdmissionGate, ICheckpointStore, IProgressSink
from shardwise.core.types import ItemIdResolver, WorkflowExecutor
from shardwise.engine.processor import ShardProcessor, default_item_id
from shardwise.models.events import (
    AnyEvent,
    CheckpointSaved,
    ItemFailed,
    ItemSucceeded,
    ProgressEvent,
    ShardFinished,
    ShardStarted,
)
from shardwise.models.shard import Shard, ShardStatus, utcnow

logger = get_logger(__name__)

ADMIT_GRANTED = "GO"


class InProcessRunner:
    """IShardRunner running the processor as a task on the caller's event loop."""

    def __init__(self, processor: ShardProcessor) -> None:
        self._processor = processor

    async def run(self, shard: Shard, executor: WorkflowExecutor) -> Shard:
        return await self._processor.process(shard, executor)


# ---------------------------------------------------------------------------
# Worker <-> parent messages
# ---------------------------------------------------------------------------

class MessageKind(StrEnum):
    PROGRESS = "PROGRESS"
    ERROR = "ERROR"
    CHECKPOINT = "CHECKPOINT"
    COMPLETE = "COMPLETE"
    ABORT = "ABORT"
    ADMIT = "ADMIT"


class WorkerMessage(BaseModel):
    kind: MessageKind
    shard_id: str
    shard: Optional[Shard] = None
    event: Optional[AnyEvent] = None


class PipeSink:
    """Child-side IProgressSink translating events into worker messages."""

    def __init__(self, conn: Connection, shard: Shard) -> None:
        self._conn = conn
        self._shard = shard

    def _kind_for(self, event: ProgressEvent) -> MessageKind:
        if isinstance(event, (ShardStarted, ItemSucceeded)):
            return MessageKind.PROGRESS
        if isinstance(event, ItemFailed):
            return MessageKind.ERROR
        if isinstance(event, CheckpointSaved):
            return MessageKind.CHECKPOINT
        if isinstance(event, ShardFinished) and event.status is ShardStatus.COMPLETED:
            return MessageKind.COMPLETE
        return MessageKind.ABORT

    def emit(self, event: ProgressEvent) -> None:
        self._conn.send(
            WorkerMessage(
                kind=self._kind_for(event),
                shard_id=self._shard.id,
                shard=self._shard.model_copy(deep=True),
                event=event,
            )
        )


class RemoteAdmission:
    """Child-side IAdmissionGate that asks the parent's breaker for permission.

    Success and failure are derived by the parent from PROGRESS and ERROR
    messages, so recording here is a no-op.
    """

    def __init__(self, conn: Connection, shard_id: str) -> None:
        self._conn = conn
        self._shard_id = shard_id

    async def acquire(self) -> None:
        self._conn.send(WorkerMessage(kind=MessageKind.ADMIT, shard_id=self._shard_id))
        reply = await asyncio.to_thread(self._conn.recv)
        if reply != ADMIT_GRANTED:
            raise RuntimeError(f"Unexpected admission reply {reply!r}")

    def record_success(self) -> None:
        return None

    def record_failure(self) -> None:
        return None


def shard_worker_main(
    conn: Connection,
    shard: Shard,
    settings: OrchestratorSettings,
    store: ICheckpointStore,
    executor: WorkflowExecutor,
    item_id: ItemIdResolver,
) -> None:
    """Entry point of a process-isolated shard worker."""
    configure_logging(json_output=settings.json_logs, level=settings.effective_log_level)
    processor = ShardProcessor(
        settings,
        store,
        RemoteAdmission(conn, shard.id),
        PipeSink(conn, shard),
        item_id,
    )
    try:
        asyncio.run(processor.process(shard, executor))
    except ShardAbortError:
        conn.close()
        sys.exit(1)
    conn.close()


# ---------------------------------------------------------------------------
# Parent side
# ---------------------------------------------------------------------------

class ProcessRunner:
    """IShardRunner executing each shard in its own OS process."""

    def __init__(
        self,
        settings: OrchestratorSettings,
        store: ICheckpointStore,
        gate: IAdmissionGate,
        sink: IProgressSink,
        item_id: ItemIdResolver | None = None,
    ) -> None:
        self._settings = settings
        self._store = store
        self._gate = gate
        self._sink = sink
        self._item_id = item_id or default_item_id
        self._ctx = multiprocessing.get_context(settings.start_method)

    async def _handle(self, shard: Shard, message: WorkerMessage, conn: Connection) -> bool | None:
        """Apply one worker message.

        Returns True once an item is admitted, False once that item's outcome
        arrives, None for messages that change neither.
        """
        if message.kind is MessageKind.ADMIT:
            await self._gate.acquire()
            try:
                conn.send(ADMIT_GRANTED)
            except OSError:
                # Child already exited; EOF on the next recv ends the loop
                logger.warning("worker.gone", shard_id=shard.id)
            return True

        outcome: bool | None = None
        if message.shard is not None:
            shard.apply_state(message.shard)
        if message.kind is MessageKind.PROGRESS and isinstance(message.event, ItemSucceeded):
            self._gate.record_success()
            outcome = False
        elif message.kind is MessageKind.ERROR:
            self._gate.record_failure()
            outcome = False
        elif message.kind is MessageKind.CHECKPOINT:
            logger.debug("worker.checkpoint", shard_id=shard.id)
        if message.event is not None:
            self._sink.emit(message.event)
        return outcome

    async def run(self, shard: Shard, executor: WorkflowExecutor) -> Shard:
        parent_conn, child_conn = self._ctx.Pipe()
        proc = self._ctx.Process(
            target=shard_worker_main,
            args=(child_conn, shard, self._settings, self._store, executor, self._item_id),
            name=f"shardwise-{shard.id}",
            daemon=True,
        )
        proc.start()
        child_conn.close()
        logger.info("worker.started", shard_id=shard.id, pid=proc.pid)

        aborted = False
        outcome_pending = False
        try:
            while True:
                try:
                    message: WorkerMessage = await asyncio.to_thread(parent_conn.recv)
                except EOFError:
                    break
                aborted = aborted or message.kind is MessageKind.ABORT
                admitted = await self._handle(shard, message, parent_conn)
                if admitted is not None:
                    outcome_pending = admitted
        except asyncio.CancelledError:
            proc.terminate()
            raise
        finally:
            await asyncio.to_thread(proc.join)
            parent_conn.close()
            if outcome_pending:
                # An admitted item without a reported outcome counts as a failure
                logger.warning("worker.outcome_lost", shard_id=shard.id)
                self._gate.record_failure()

        exitcode = proc.exitcode
        if aborted:
            raise ShardAbortError(shard.id, shard.error_count, shard.size)
        if exitcode != 0 or shard.status is not ShardStatus.COMPLETED:
            shard.status = ShardStatus.FAILED
            shard.end_time = utcnow()
            logger.error("worker.crashed", shard_id=shard.id, exitcode=exitcode)
            raise WorkerCrashError(shard.id, exitcode)
        return shard
