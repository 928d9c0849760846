"""Engine test fixtures."""

from __future__ import annotations

import pytest

from shardwise.core.config import OrchestratorSettings
from shardwise.engine.circuit_breaker import CircuitBreaker
from shardwise.engine.processor import ShardProcessor
from tests.fakes import MemoryCheckpointStore, RecordingSink, make_settings


@pytest.fixture
def settings() -> OrchestratorSettings:
    return make_settings()


@pytest.fixture
def store() -> MemoryCheckpointStore:
    return MemoryCheckpointStore()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def breaker(settings) -> CircuitBreaker:
    return CircuitBreaker(settings.breaker.threshold, settings.breaker.cooldown_ms)


@pytest.fixture
def processor(settings, store, breaker, sink) -> ShardProcessor:
    return ShardProcessor(settings, store, breaker, sink)
