"""Health check endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request

router = APIRouter(tags=["health"])


@router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "healthy"}


@router.get("/ready")
async def ready(request: Request) -> dict[str, Any]:
    settings = request.app.state.settings
    status = "idle" if getattr(request.app.state, "reporter", None) is None else "ready"
    return {
        "status": status,
        "isolationMode": settings.isolation_mode,
        "maxConcurrent": settings.max_concurrent,
    }
