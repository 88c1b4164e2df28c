#!/usr/bin/env python3
"""Compare scheduler memory in inline and isolated mode.

This runs a few cycles in each mode with a short period and prints the
scheduler process's resident memory after every cycle:

* inline: the payload is built and parsed on the scheduler thread
* isolated: the payload lives in a child process that exits after the cycle

How much the inline footprint grows depends on the platform allocator, so
treat the numbers as an observation rather than a guarantee.
"""

from __future__ import annotations

import argparse
from typing import Sequence

from periodic_worker.config import WorkerSettings
from periodic_worker.logging import configure_logging
from periodic_worker.memory import sample_memory
from periodic_worker.scheduler.runner import start_inline_worker, start_isolated_worker


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Compare inline and isolated cycle memory.")
    parser.add_argument("--cycles", type=int, default=5, help="Cycles to run per mode")
    parser.add_argument("--size", type=int, default=1_000_000, help="Values generated per cycle")
    parser.add_argument(
        "--mode",
        choices=("inline", "isolated", "both"),
        default="both",
        help="Which mode(s) to run",
    )
    return parser.parse_args(argv)


def _run(mode: str, settings: WorkerSettings, cycles: int) -> None:
    start = start_inline_worker if mode == "inline" else start_isolated_worker
    scheduler = start(settings)
    try:
        for cycle in range(1, cycles + 1):
            if not scheduler.wait_for_cycles(cycle, timeout=settings.cycle_timeout_seconds * 2):
                print(f"{mode}: scheduler ended early ({scheduler.state.value})")
                return
            rss_mib = sample_memory().rss_bytes / (1024 * 1024)
            print(f"{mode}: cycle {cycle} scheduler rss={rss_mib:.1f} MiB")
    finally:
        scheduler.stop(timeout=settings.cycle_timeout_seconds)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)

    settings = WorkerSettings(
        initial_delay_seconds=0.0,
        period_seconds=0.5,
        cycle_timeout_seconds=60.0,
        dataset_size=args.size,
    )
    configure_logging(settings.log_level)

    modes = ("inline", "isolated") if args.mode == "both" else (args.mode,)
    for mode in modes:
        _run(mode, settings, args.cycles)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
