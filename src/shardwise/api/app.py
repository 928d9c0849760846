"""FastAPI application exposing live run status to monitoring collaborators."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from shardwise.api.routes import health, status
from shardwise.core.config import OrchestratorSettings
from shardwise.engine.reporter import Reporter


def create_app(reporter: Reporter | None = None,
               settings: OrchestratorSettings | None = None) -> FastAPI:
    """Create the status application for a run's reporter."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        app.state.settings = settings or OrchestratorSettings()
        yield

    app = FastAPI(
        title="shardwise run status",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.reporter = reporter
    app.include_router(health.router)
    app.include_router(status.router)
    return app
