"""Entry point: run one periodic worker until it stops or fails."""

from __future__ import annotations

import argparse
import logging
import sys

from pydantic import ValidationError

from periodic_worker import __version__
from periodic_worker.config import WorkerSettings
from periodic_worker.logging import configure_logging
from periodic_worker.scheduler.runner import start_worker
from periodic_worker.scheduler.state_machine import SchedulerState

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="periodic-worker",
        description=(
            "Run a periodic fetch/process/emit worker. "
            "Configured through WORKER_* environment variables or a .env file."
        ),
    )
    parser.add_argument("--version", action="version", version=f"periodic-worker {__version__}")
    return parser


def main(argv: list[str] | None = None) -> int:
    build_parser().parse_args(argv)

    try:
        settings = WorkerSettings()
    except ValidationError as e:
        # Logging isn't configured yet; keep it simple and actionable.
        print("Configuration error (check WORKER_* variables or .env):", file=sys.stderr)
        print(e, file=sys.stderr)
        return 2

    configure_logging(settings.log_level)

    scheduler = start_worker(settings)
    try:
        scheduler.join()
    except KeyboardInterrupt:
        logger.info("Interrupted; stopping scheduler", extra={"scheduler_id": scheduler.scheduler_id})
        scheduler.stop(timeout=settings.cycle_timeout_seconds)
        return 130

    if scheduler.state is SchedulerState.FAILED:
        return 1
    return 0
