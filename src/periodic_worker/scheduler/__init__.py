"""Scheduling, state machine and execution contexts for worker cycles."""

from periodic_worker.scheduler.isolation import (
    CycleContext,
    CycleDispatcher,
    DispatcherFactory,
    InlineDispatcher,
    ProcessDispatcher,
    ThreadDispatcher,
)
from periodic_worker.scheduler.runner import (
    PeriodicScheduler,
    SchedulerFailure,
    start_inline_worker,
    start_isolated_worker,
    start_worker,
)
from periodic_worker.scheduler.state_machine import (
    ExecutionMode,
    IllegalTransitionError,
    SchedulerState,
)

__all__ = [
    "CycleContext",
    "CycleDispatcher",
    "DispatcherFactory",
    "ExecutionMode",
    "IllegalTransitionError",
    "InlineDispatcher",
    "PeriodicScheduler",
    "ProcessDispatcher",
    "SchedulerFailure",
    "SchedulerState",
    "ThreadDispatcher",
    "start_inline_worker",
    "start_isolated_worker",
    "start_worker",
]
