"""Test configuration and fixtures."""

import os
from collections.abc import Iterator

import pytest

from periodic_worker.config import WorkerSettings
from periodic_worker.scheduler.runner import PeriodicScheduler


@pytest.fixture(autouse=True)
def clean_worker_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep developer WORKER_* variables out of the tests."""
    for key in list(os.environ):
        if key.startswith("WORKER_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def fast_settings() -> WorkerSettings:
    """Settings that fire immediately and never reach a second cycle on their own."""
    return WorkerSettings(
        _env_file=None,
        initial_delay_seconds=0.0,
        period_seconds=3600.0,
        cycle_timeout_seconds=30.0,
        dataset_size=100,
        log_level="DEBUG",
    )


@pytest.fixture
def schedulers() -> Iterator[list[PeriodicScheduler]]:
    """Collect started schedulers and stop them after the test."""
    started: list[PeriodicScheduler] = []
    yield started
    for scheduler in started:
        scheduler.stop(timeout=10.0)
