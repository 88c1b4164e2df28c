"""Periodic worker.

Runs a fetch -> process -> emit cycle on a timer. Each cycle can run inline
on the scheduler thread or in an isolated execution context (a child process
by default) so that the memory it uses is released when the context exits.
"""

__version__ = "0.1.0"

from periodic_worker.config import WorkerSettings
from periodic_worker.cycle.executor import CycleExecutor, CycleResult
from periodic_worker.errors import CycleError, ParseFailure, TimeoutFailure, WorkerCrash
from periodic_worker.scheduler.runner import (
    PeriodicScheduler,
    SchedulerFailure,
    start_inline_worker,
    start_isolated_worker,
    start_worker,
)
from periodic_worker.scheduler.state_machine import ExecutionMode, SchedulerState

__all__ = [
    "__version__",
    "CycleError",
    "CycleExecutor",
    "CycleResult",
    "ExecutionMode",
    "ParseFailure",
    "PeriodicScheduler",
    "SchedulerFailure",
    "SchedulerState",
    "TimeoutFailure",
    "WorkerCrash",
    "WorkerSettings",
    "start_inline_worker",
    "start_isolated_worker",
    "start_worker",
]
