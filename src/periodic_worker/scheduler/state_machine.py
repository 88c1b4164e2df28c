from __future__ import annotations

from enum import Enum


class ExecutionMode(str, Enum):
    INLINE = "inline"
    ISOLATED = "isolated"


class SchedulerState(str, Enum):
    IDLE = "idle"
    DISPATCHING = "dispatching"
    AWAITING = "awaiting"
    FAILED = "failed"
    STOPPED = "stopped"


TERMINAL_STATES: frozenset[SchedulerState] = frozenset(
    {SchedulerState.FAILED, SchedulerState.STOPPED}
)

ALLOWED_TRANSITIONS: dict[SchedulerState, set[SchedulerState]] = {
    SchedulerState.IDLE: {SchedulerState.DISPATCHING, SchedulerState.STOPPED},
    SchedulerState.DISPATCHING: {SchedulerState.AWAITING, SchedulerState.FAILED},
    SchedulerState.AWAITING: {SchedulerState.IDLE, SchedulerState.FAILED},
    SchedulerState.FAILED: set(),
    SchedulerState.STOPPED: set(),
}


class IllegalTransitionError(ValueError):
    pass


def transition(*, current: SchedulerState, to: SchedulerState) -> SchedulerState:
    allowed = ALLOWED_TRANSITIONS.get(current, set())
    if to not in allowed:
        raise IllegalTransitionError(f"Illegal transition: {current.value} -> {to.value}")
    return to
