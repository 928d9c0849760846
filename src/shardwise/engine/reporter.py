"""Reporter: live run statistics, periodic snapshots, and the final report.

The reporter is the aggregation role of a run: it is the only component that
mutates GlobalStats, and it does so from progress events on the run's event
loop.
"""

from __future__ import annotations

import asyncio
import contextlib

from shardwise.core.exceptions import CheckpointIOError
from shardwise.core.logging import get_logger
from shardwise.core.protocols import ICheckpointStore
from shardwise.engine.circuit_breaker import CircuitBreaker
from shardwise.models.events import ProgressEvent
from shardwise.models.report import (
    ReportSummary,
    RunReport,
    RunSnapshot,
    ShardSummary,
    ShardView,
)
from shardwise.models.shard import GlobalStats, Shard, ShardStatus

logger = get_logger(__name__)

BAR_WIDTH = 30


def render_progress_bar(percentage: float, width: int = BAR_WIDTH) -> str:
    clamped = min(max(percentage, 0.0), 100.0)
    filled = int(width * clamped / 100)
    return "█" * filled + "░" * (width - filled)


def format_duration(seconds: float) -> str:
    if seconds < 60:
        return f"{seconds:.1f}s"
    if seconds < 3600:
        return f"{seconds / 60:.1f}m"
    return f"{seconds / 3600:.1f}h"


class Reporter:
    """Aggregates per-shard state into snapshots and the final report."""

    def __init__(
        self,
        stats: GlobalStats,
        breaker: CircuitBreaker,
        store: ICheckpointStore,
        interval_seconds: float = 5.0,
    ) -> None:
        self.stats = stats
        self._breaker = breaker
        self._store = store
        self._interval = interval_seconds
        self._shards: list[Shard] = []
        self._task: asyncio.Task[None] | None = None
        self.latest: RunSnapshot | None = None
        self.report: RunReport | None = None

    def bind(self, shards: list[Shard]) -> None:
        self._shards = shards
        self.stats.total = sum(s.size for s in shards)

    @property
    def shards(self) -> list[Shard]:
        return self._shards

    # ---- IProgressSink ----

    def emit(self, event: ProgressEvent) -> None:
        self.stats.refresh(self._shards)

    # ---- snapshots ----

    def overall_progress(self) -> float:
        if not self._shards:
            return 0.0
        return sum(s.progress for s in self._shards) / len(self._shards)

    def snapshot(self) -> RunSnapshot:
        self.stats.refresh(self._shards)
        elapsed = self.stats.elapsed_seconds()
        return RunSnapshot(
            total=self.stats.total,
            processed=self.stats.processed,
            failed=self.stats.failed,
            overall_progress=self.overall_progress(),
            elapsed_seconds=elapsed,
            throughput=self.stats.processed / elapsed if elapsed > 0 else 0.0,
            breaker=self._breaker.snapshot(),
            shards=[ShardView.of(s) for s in self._shards],
        )

    def persist_snapshot(self) -> None:
        """Write the advisory global snapshot; failures are only logged."""
        try:
            self._store.save_global_snapshot(self.stats, self._shards)
        except CheckpointIOError as exc:
            logger.warning("snapshot.save_failed", error=str(exc))

    def tick(self) -> RunSnapshot:
        snap = self.snapshot()
        self.latest = snap
        logger.info(
            "run.progress",
            progress=round(snap.overall_progress, 1),
            processed=snap.processed,
            failed=snap.failed,
            total=snap.total,
            active=sum(1 for s in self._shards if s.is_active),
            throughput=round(snap.throughput, 2),
            breaker=str(snap.breaker.state),
        )
        for view in snap.shards:
            logger.debug(
                "shard.progress",
                shard_id=view.id,
                status=str(view.status),
                progress=round(view.progress, 1),
                error_rate=round(view.error_rate, 3),
            )
        self.persist_snapshot()
        return snap

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            self.tick()

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._loop(), name="shardwise-reporter")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    # ---- final report ----

    def final_report(self) -> RunReport:
        self.stats.refresh(self._shards)
        self.report = RunReport(
            summary=ReportSummary(
                total=self.stats.total,
                processed=self.stats.processed,
                failed=self.stats.failed,
                duration=self.stats.elapsed_seconds(),
            ),
            shards=[
                ShardSummary(
                    id=s.id,
                    status=s.status,
                    progress=s.progress,
                    processed=s.processed_count,
                    errors=s.error_count,
                    retry_count=s.retry_count,
                    duration=s.duration_seconds,
                )
                for s in self._shards
            ],
            failed_profiles=[e for s in self._shards for e in s.errors],
            failed_shards=[s.id for s in self._shards if s.status is ShardStatus.FAILED],
            checkpoint_location=self._store.location,
        )
        return self.report


def format_summary(report: RunReport) -> str:
    """Human-readable summary of a final report."""
    summary = report.summary
    succeeded = summary.processed
    attempted = summary.processed + summary.failed
    success_rate = succeeded / summary.total * 100 if summary.total else 0.0
    completed = sum(1 for s in report.shards if s.status is ShardStatus.COMPLETED)
    throughput = summary.processed / summary.duration if summary.duration > 0 else 0.0
    coverage = attempted / summary.total * 100 if summary.total else 0.0

    lines = [
        "Run complete",
        f"  {render_progress_bar(coverage)} {coverage:.1f}% attempted",
        "",
        "Results:",
        f"  succeeded:    {succeeded}",
        f"  failed:       {summary.failed}",
        f"  success rate: {success_rate:.1f}%",
        "",
        "Shards:",
        f"  completed: {completed}",
        f"  failed:    {len(report.failed_shards)}",
        f"  total:     {len(report.shards)}",
    ]
    if report.failed_shards:
        lines.append(f"  failed ids: {', '.join(report.failed_shards)}")
    lines += [
        "",
        "Performance:",
        f"  duration:   {format_duration(summary.duration)}",
        f"  throughput: {throughput:.2f} items/sec",
        "",
        f"Checkpoints: {report.checkpoint_location}",
    ]
    return "\n".join(lines)
