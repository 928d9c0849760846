"""Orchestrator configuration using pydantic-settings with grouped env prefixes."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import Field
from pydantic_settings import BaseSettings

from shardwise.core.exceptions import ConfigurationError


class BreakerConfig(BaseSettings):
    """Shared circuit breaker configuration."""

    model_config = {"env_prefix": "SHARDWISE_BREAKER_"}

    threshold: int = Field(default=5, ge=1)
    cooldown_ms: int = Field(default=60_000, ge=0)


class CheckpointConfig(BaseSettings):
    """Checkpoint store configuration."""

    model_config = {"env_prefix": "SHARDWISE_CHECKPOINT_"}

    backend: Literal["file", "memory", "redis", "s3"] = "file"
    dir: str = "./checkpoints"
    # best_effort: log and keep going; fail_fast: abort the run on the first write failure
    failure_policy: Literal["best_effort", "fail_fast"] = "best_effort"


class RedisConfig(BaseSettings):
    """Redis checkpoint backend configuration."""

    model_config = {"env_prefix": "SHARDWISE_REDIS_"}

    host: str = "localhost"
    port: int = 6379
    db: int = 0
    key_prefix: str = "shardwise"


class S3Config(BaseSettings):
    """S3 checkpoint backend configuration."""

    model_config = {"env_prefix": "SHARDWISE_S3_"}

    bucket: str = "shardwise-checkpoints"
    prefix: str = "checkpoints"
    region: str = "us-east-1"
    endpoint_url: str | None = None  # LocalStack override


PRESETS: dict[str, dict[str, Any]] = {
    "defensive": {"max_concurrent": 1, "max_retries": 2, "error_threshold": 0.1},
    "balanced": {"max_concurrent": 2, "max_retries": 1, "error_threshold": 0.2},
    "aggressive": {"max_concurrent": 3, "max_retries": 0, "error_threshold": 0.3},
}


class OrchestratorSettings(BaseSettings):
    """Root settings for a sharded run, aggregating all sub-configs."""

    model_config = {"env_prefix": "SHARDWISE_"}

    shard_size: int = Field(default=50, ge=1)
    max_concurrent: int = Field(default=3, ge=1)
    checkpoint_interval: int = Field(default=10, ge=1)
    max_retries: int = Field(default=3, ge=0)
    error_threshold: float = Field(default=0.2, ge=0.0, le=1.0)
    timeout_ms: int = Field(default=300_000, ge=1)
    isolation_mode: Literal["thread", "process"] = "thread"
    start_method: Literal["spawn", "fork", "forkserver"] = "spawn"
    monitor_interval_ms: int = Field(default=5_000, ge=1)

    debug: bool = False
    log_level: str = "INFO"
    json_logs: bool = False

    breaker: BreakerConfig = Field(default_factory=BreakerConfig)
    checkpoint: CheckpointConfig = Field(default_factory=CheckpointConfig)
    redis: RedisConfig = Field(default_factory=RedisConfig)
    s3: S3Config = Field(default_factory=S3Config)

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000

    @property
    def effective_log_level(self) -> str:
        return "DEBUG" if self.debug else self.log_level

    @classmethod
    def from_preset(cls, name: str, **overrides: Any) -> OrchestratorSettings:
        """Build settings from a named preset, with keyword overrides on top."""
        try:
            values = PRESETS[name]
        except KeyError:
            raise ConfigurationError(
                f"Unknown preset {name!r}; expected one of {sorted(PRESETS)}"
            ) from None
        return cls(**{**values, **overrides})
