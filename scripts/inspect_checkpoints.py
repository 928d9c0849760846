"""Print resume points and the advisory global snapshot from a checkpoint directory.

Usage:
    python scripts/inspect_checkpoints.py --dir ./checkpoints
"""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Any

from shardwise.models.report import GlobalSnapshot
from shardwise.models.shard import Checkpoint
from shardwise.persistence.file_backend import GLOBAL_SNAPSHOT_NAME


def load_checkpoints(directory: Path) -> list[Checkpoint]:
    """Load every readable shard checkpoint, sorted by shard id. Corrupt files are skipped."""
    checkpoints: list[Checkpoint] = []
    for path in sorted(directory.glob("checkpoint_*.json")):
        try:
            checkpoints.append(Checkpoint.model_validate_json(path.read_text(encoding="utf-8")))
        except ValueError:
            print(f"  Skipping unreadable checkpoint {path.name}")
    return sorted(checkpoints, key=lambda c: c.shard_id)


def load_snapshot(directory: Path) -> GlobalSnapshot | None:
    path = directory / GLOBAL_SNAPSHOT_NAME
    if not path.exists():
        return None
    return GlobalSnapshot.model_validate_json(path.read_text(encoding="utf-8"))


def summarize(directory: Path) -> dict[str, Any]:
    """Build a JSON-friendly summary of a checkpoint directory."""
    snapshot = load_snapshot(directory)
    return {
        "directory": str(directory),
        "checkpoints": [c.model_dump(mode="json", by_alias=True) for c in load_checkpoints(directory)],
        "snapshot": snapshot.model_dump(mode="json", by_alias=True) if snapshot else None,
    }


def main() -> None:
    parser = argparse.ArgumentParser(description="Inspect shardwise checkpoints")
    parser.add_argument("--dir", default="./checkpoints", help="Checkpoint directory")
    parser.add_argument("--json", action="store_true", help="Print raw JSON instead of a table")
    args = parser.parse_args()

    directory = Path(args.dir)
    if not directory.is_dir():
        parser.error(f"{directory} is not a directory")

    summary = summarize(directory)
    if args.json:
        print(json.dumps(summary, indent=2))
        return

    print(f"Checkpoints in {directory}:")
    for cp in summary["checkpoints"]:
        print(
            f"  {cp['shardId']}: resume at {cp['lastProcessedIndex']} "
            f"(ok={cp['processedCount']}, errors={cp['errorCount']}, "
            f"{cp['progress']:.1f}%) @ {cp['timestamp']}"
        )
    snap = summary["snapshot"]
    if snap:
        stats = snap["stats"]
        print(
            f"Last snapshot {snap['timestamp']}: "
            f"{stats['processed']}/{stats['total']} processed, {stats['failed']} failed"
        )
        for shard in snap["shards"]:
            print(f"  {shard['id']}: {shard['status']} {shard['progress']:.1f}%")
    else:
        print("No global snapshot found.")


if __name__ == "__main__":
    main()
