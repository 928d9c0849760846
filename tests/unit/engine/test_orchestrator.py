"""End-to-end tests of a sharded run through the orchestrator."""

from __future__ import annotations

import json

import pytest

from shardwise.core.exceptions import CheckpointIOError, ConfigurationError
from shardwise.engine.orchestrator import ShardOrchestrator, run_batch
from shardwise.models.events import ShardFinished
from shardwise.models.shard import ShardStatus
from shardwise.persistence import FileCheckpointStore
from tests.fakes import MemoryCheckpointStore, RecordingSink, ScriptedExecutor, make_settings


class TestRun:
    async def test_full_run_with_file_checkpoints(self, tmp_path):
        store = FileCheckpointStore(tmp_path)
        orchestrator = ShardOrchestrator(make_settings(max_concurrent=2), store=store)
        items = [{"id": f"p-{i}"} for i in range(120)]
        executor = ScriptedExecutor()

        report = await orchestrator.run(items, _by_id(executor))

        assert report.summary.total == 120
        assert report.summary.processed == 120
        assert report.summary.failed == 0
        assert report.failed_shards == []
        assert [s.id for s in report.shards] == ["shard_001", "shard_002", "shard_003"]
        assert all(s.status is ShardStatus.COMPLETED for s in report.shards)
        assert report.checkpoint_location == str(tmp_path)

        on_disk = json.loads((tmp_path / "checkpoint_shard_003.json").read_text())
        assert on_disk["shardId"] == "shard_003"
        assert on_disk["lastProcessedIndex"] == 20
        assert (tmp_path / "global_checkpoint.json").exists()

    async def test_report_serializes_camel_case(self):
        orchestrator = ShardOrchestrator(make_settings(), store=MemoryCheckpointStore())
        report = await orchestrator.run(list(range(10)), ScriptedExecutor(fail={4}))

        dumped = report.model_dump(mode="json", by_alias=True)
        assert dumped["summary"] == {
            "total": 10, "processed": 9, "failed": 1, "duration": dumped["summary"]["duration"],
        }
        assert dumped["failedProfiles"][0]["itemId"] == "4"
        assert dumped["failedShards"] == []

    async def test_external_sink_sees_events(self):
        sink = RecordingSink()
        orchestrator = ShardOrchestrator(make_settings(shard_size=5), store=MemoryCheckpointStore(),
                                         sink=sink)
        await orchestrator.run(list(range(10)), ScriptedExecutor())

        finished = sink.of_type(ShardFinished)
        assert sorted(e.shard_id for e in finished) == ["shard_001", "shard_002"]
        assert sink.names().count("profile:success") == 10

    async def test_custom_item_id(self):
        orchestrator = ShardOrchestrator(
            make_settings(), store=MemoryCheckpointStore(), item_id=lambda item: f"row-{item}"
        )
        report = await orchestrator.run([1, 2, 3], ScriptedExecutor(fail={2}))
        assert [e.item_id for e in report.failed_profiles] == ["row-2"]

    async def test_empty_input(self):
        orchestrator = ShardOrchestrator(make_settings(), store=MemoryCheckpointStore())
        executor = ScriptedExecutor()
        report = await orchestrator.run([], executor)
        assert report.summary.total == 0
        assert report.shards == []
        assert executor.calls == []

    async def test_retries_recover_transient_shard(self):
        store = MemoryCheckpointStore()
        orchestrator = ShardOrchestrator(make_settings(shard_size=10, max_retries=1), store=store)
        executor = ScriptedExecutor(fail_times={10: 1, 11: 1, 12: 1})

        report = await orchestrator.run(list(range(30)), executor)

        assert report.failed_shards == []
        assert report.failed_profiles == []
        assert report.summary.processed == 30
        assert report.shards[1].retry_count == 1

    async def test_exhausted_shard_is_reported(self):
        orchestrator = ShardOrchestrator(
            make_settings(shard_size=10, max_retries=2), store=MemoryCheckpointStore()
        )
        executor = ScriptedExecutor(fail=set(range(10, 20)))

        report = await orchestrator.run(list(range(30)), executor)

        assert report.failed_shards == ["shard_002"]
        assert report.shards[1].retry_count == 2
        assert report.summary.processed == 20
        assert {e.item_id for e in report.failed_profiles} == {"10", "11", "12"}


class TestRestart:
    async def test_second_run_skips_completed_work(self, tmp_path):
        items = list(range(60))
        first = ScriptedExecutor()
        await ShardOrchestrator(make_settings(), store=FileCheckpointStore(tmp_path)).run(items, first)
        assert len(first.calls) == 60

        second = ScriptedExecutor()
        report = await ShardOrchestrator(
            make_settings(), store=FileCheckpointStore(tmp_path)
        ).run(items, second)

        assert second.calls == []
        assert report.summary.processed == 60


class TestFailures:
    async def test_unwritable_checkpoint_dir_fails_before_work(self, tmp_path):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("x")
        executor = ScriptedExecutor()
        orchestrator = ShardOrchestrator(make_settings(), store=FileCheckpointStore(blocker / "cp"))

        with pytest.raises(CheckpointIOError):
            await orchestrator.run(list(range(5)), executor)
        assert executor.calls == []

    def test_process_mode_rejects_memory_store(self):
        with pytest.raises(ConfigurationError):
            ShardOrchestrator(make_settings(isolation_mode="process"), store=MemoryCheckpointStore())


class TestRunBatch:
    def test_sync_entry_point(self):
        report = run_batch(list(range(7)), lambda item: item, make_settings(shard_size=3),
                           store=MemoryCheckpointStore())
        assert report.summary.processed == 7
        assert len(report.shards) == 3


def _by_id(executor: ScriptedExecutor):
    async def call(item):
        return await executor(item["id"])

    return call
