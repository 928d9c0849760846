"""Run status endpoints: live snapshot and final report."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Request

from shardwise.engine.reporter import Reporter

router = APIRouter(tags=["status"])


def _reporter(request: Request) -> Reporter:
    reporter = getattr(request.app.state, "reporter", None)
    if reporter is None or not reporter.shards:
        raise HTTPException(status_code=404, detail="No run in progress")
    return reporter


@router.get("/status")
async def get_status(request: Request) -> dict[str, Any]:
    """Return a live snapshot of the current run."""
    return _reporter(request).snapshot().model_dump(mode="json", by_alias=True)


@router.get("/report")
async def get_report(request: Request) -> dict[str, Any]:
    """Return the final report once the run has finished."""
    report = _reporter(request).report
    if report is None:
        raise HTTPException(status_code=404, detail="Run has not finished")
    return report.model_dump(mode="json", by_alias=True)
