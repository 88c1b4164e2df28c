"""Configuration for the periodic worker.

Configuration is loaded from:
- environment variables prefixed with `WORKER_`
- and a local `.env` file (if present)

Settings can also be built directly in code, e.g.
`WorkerSettings(initial_delay_seconds=0, period_seconds=60)`.
"""

from __future__ import annotations

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class WorkerSettings(BaseSettings):
    """Settings for one periodic worker.

    Environment variables:
    - WORKER_EXECUTION_MODE        (inline | isolated)
    - WORKER_ISOLATION_BACKEND     (process | thread)
    - WORKER_START_METHOD          (spawn | forkserver | fork)
    - WORKER_INITIAL_DELAY_SECONDS
    - WORKER_PERIOD_SECONDS
    - WORKER_CYCLE_TIMEOUT_SECONDS
    - WORKER_TERMINATE_ON_TIMEOUT
    - WORKER_DATASET_SIZE / WORKER_MAX_VALUE / WORKER_DELIMITER
    - WORKER_LOG_LEVEL
    """

    execution_mode: Literal["inline", "isolated"] = Field(
        default="isolated",
        description="Run cycles on the scheduler thread (inline) or in a fresh context (isolated)",
    )
    isolation_backend: Literal["process", "thread"] = Field(
        default="process",
        description="Kind of context created per cycle in isolated mode",
    )
    start_method: Literal["spawn", "forkserver", "fork"] = Field(
        default="spawn",
        description="multiprocessing start method for the process backend",
    )

    initial_delay_seconds: float = Field(
        default=1.0,
        ge=0.0,
        description="Delay between startup and the first cycle",
    )
    period_seconds: float = Field(
        default=3600.0,
        gt=0.0,
        description="Delay between the end of one cycle and the start of the next",
    )
    cycle_timeout_seconds: float = Field(
        default=10.0,
        gt=0.0,
        description="How long the scheduler waits for an isolated cycle to finish",
    )
    terminate_on_timeout: bool = Field(
        default=True,
        description="Terminate a process worker that exceeded the cycle timeout",
    )

    dataset_size: int = Field(
        default=3_000_001,
        gt=0,
        description="Number of values generated per fetch",
    )
    max_value: int = Field(
        default=1000,
        gt=0,
        description="Upper bound (inclusive) of each generated value",
    )
    delimiter: str = Field(
        default="_",
        min_length=1,
        description="Separator between generated values",
    )

    log_level: str = Field(
        default="INFO",
        description="Root logging level",
    )

    model_config = SettingsConfigDict(
        env_prefix="WORKER_",
        env_file=".env",
        extra="ignore",
    )

    @field_validator("delimiter")
    @classmethod
    def _delimiter_not_numeric(cls, value: str) -> str:
        if any(ch.isdigit() or ch in "+-" for ch in value):
            raise ValueError("delimiter must not contain digits or signs")
        return value
