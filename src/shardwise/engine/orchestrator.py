"""ShardOrchestrator: wires planner, store, breaker, runners, retries and reporting."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from typing import Any

from shardwise.core.config import OrchestratorSettings
from shardwise.core.exceptions import ConfigurationError
from shardwise.core.logging import configure_logging, get_logger
from shardwise.core.protocols import ICheckpointStore, IProgressSink, IShardRunner
from shardwise.core.types import ItemIdResolver, WorkflowExecutor
from shardwise.engine.circuit_breaker import CircuitBreaker
from shardwise.engine.controller import ConcurrencyController
from shardwise.engine.events import EventBus
from shardwise.engine.planner import create_shards
from shardwise.engine.processor import ShardProcessor
from shardwise.engine.reporter import Reporter
from shardwise.engine.retry import RetryCoordinator
from shardwise.engine.runners import InProcessRunner, ProcessRunner
from shardwise.models.report import RunReport
from shardwise.models.shard import GlobalStats, Shard, utcnow
from shardwise.persistence import MemoryCheckpointStore, create_checkpoint_store

logger = get_logger(__name__)


class ShardOrchestrator:
    """Runs a workflow executor over a list of items, shard by shard.

    One orchestrator drives one run: a single breaker, a single GlobalStats,
    and the shards created for that run.
    """

    def __init__(
        self,
        settings: OrchestratorSettings | None = None,
        *,
        store: ICheckpointStore | None = None,
        sink: IProgressSink | None = None,
        item_id: ItemIdResolver | None = None,
        breaker: CircuitBreaker | None = None,
    ) -> None:
        self.settings = settings or OrchestratorSettings()
        self.store = store or create_checkpoint_store(self.settings)
        self.breaker = breaker or CircuitBreaker(
            threshold=self.settings.breaker.threshold,
            cooldown_ms=self.settings.breaker.cooldown_ms,
        )
        self.stats = GlobalStats()
        self.reporter = Reporter(
            self.stats, self.breaker, self.store,
            interval_seconds=self.settings.monitor_interval_ms / 1000,
        )
        # Reporter first so stats are current when external sinks see an event
        self.events = EventBus(self.reporter)
        if sink is not None:
            self.events.subscribe(sink)
        self._item_id = item_id

        self.controller = ConcurrencyController(self._build_runner(), self.settings.max_concurrent)
        self.retries = RetryCoordinator(self.controller, self.settings.max_retries)
        self.shards: list[Shard] = []

    def _build_runner(self) -> IShardRunner:
        if self.settings.isolation_mode == "process":
            if isinstance(self.store, MemoryCheckpointStore):
                raise ConfigurationError(
                    "Process isolation needs a checkpoint backend visible to worker processes"
                )
            return ProcessRunner(
                self.settings, self.store, self.breaker, self.events, self._item_id
            )
        processor = ShardProcessor(
            self.settings, self.store, self.breaker, self.events, self._item_id
        )
        return InProcessRunner(processor)

    def plan(self, items: Sequence[Any]) -> list[Shard]:
        self.shards = create_shards(items, self.settings.shard_size, self.store.location_for)
        self.reporter.bind(self.shards)
        logger.info(
            "run.planned", shards=len(self.shards), items=len(items),
            shard_size=self.settings.shard_size,
        )
        return self.shards

    async def run(self, items: Sequence[Any], executor: WorkflowExecutor) -> RunReport:
        """Process every item and return the final report.

        Raises CheckpointIOError before any shard work if the checkpoint
        backend cannot be prepared.
        """
        self.store.prepare()
        shards = self.plan(items)
        self.stats.start_time = utcnow()
        self.stats.end_time = None
        logger.info(
            "run.started",
            isolation_mode=self.settings.isolation_mode,
            max_concurrent=self.settings.max_concurrent,
            checkpoint_location=self.store.location,
        )

        self.reporter.start()
        try:
            await self.controller.run_pass(shards, executor)
            logger.info("run.first_pass_done", failed=len(self.retries.retryable(shards)))
            await self.retries.run(shards, executor)
        finally:
            self.stats.end_time = utcnow()
            await self.reporter.stop()
            self.reporter.persist_snapshot()

        report = self.reporter.final_report()
        logger.info(
            "run.finished",
            total=report.summary.total,
            processed=report.summary.processed,
            failed=report.summary.failed,
            failed_shards=report.failed_shards,
            duration=round(report.summary.duration, 3),
        )
        return report


def run_batch(
    items: Sequence[Any],
    executor: WorkflowExecutor,
    settings: OrchestratorSettings | None = None,
    **kwargs: Any,
) -> RunReport:
    """Synchronous entry point: configure logging, run, return the report."""
    settings = settings or OrchestratorSettings()
    configure_logging(json_output=settings.json_logs, level=settings.effective_log_level)
    orchestrator = ShardOrchestrator(settings, **kwargs)
    return asyncio.run(orchestrator.run(items, executor))
