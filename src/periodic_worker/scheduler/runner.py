"""Long-lived scheduler that runs one cycle per timer firing."""

from __future__ import annotations

import logging
import threading
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from periodic_worker.config import WorkerSettings
from periodic_worker.cycle.executor import CycleExecutor, CycleResult
from periodic_worker.errors import CycleError
from periodic_worker.memory import sample_memory
from periodic_worker.scheduler.isolation import (
    CycleContext,
    CycleDispatcher,
    DispatcherFactory,
    InlineDispatcher,
)
from periodic_worker.scheduler.state_machine import (
    TERMINAL_STATES,
    ExecutionMode,
    SchedulerState,
    transition,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SchedulerFailure:
    """Why a scheduler stopped. Handed to the supervising callback."""

    scheduler_id: str
    mode: ExecutionMode
    cycle: int
    error_type: str
    error: str
    failed_at: datetime


FailureCallback = Callable[[SchedulerFailure], None]


class PeriodicScheduler:
    """Fire a cycle after an initial delay, then once per period.

    Cycles never overlap: the next timer is armed only after the previous
    cycle's context has been closed. In isolated mode the scheduler waits at
    most `cycle_timeout_seconds` for a result; inline cycles run on the
    scheduler thread itself and are never timed out.

    Any failed cycle (bad data, timeout, crashed worker) moves the scheduler to
    FAILED, which is terminal. Restarting is left to whoever receives the
    `on_failure` callback.
    """

    def __init__(
        self,
        executor: CycleExecutor,
        *,
        mode: ExecutionMode,
        dispatcher: CycleDispatcher | None = None,
        initial_delay_seconds: float = 1.0,
        period_seconds: float = 3600.0,
        cycle_timeout_seconds: float = 10.0,
        on_failure: FailureCallback | None = None,
    ) -> None:
        if initial_delay_seconds < 0:
            raise ValueError("initial_delay_seconds must be >= 0")
        if period_seconds <= 0:
            raise ValueError("period_seconds must be > 0")
        if cycle_timeout_seconds <= 0:
            raise ValueError("cycle_timeout_seconds must be > 0")

        self.scheduler_id = uuid.uuid4().hex
        self.mode = ExecutionMode(mode)
        self.initial_delay_seconds = initial_delay_seconds
        self.period_seconds = period_seconds
        self.cycle_timeout_seconds = cycle_timeout_seconds

        self._executor = executor
        self._dispatcher = dispatcher or DispatcherFactory.create(self.mode)
        # The wait timeout follows the mode, so the dispatcher must agree with it.
        runs_inline = isinstance(self._dispatcher, InlineDispatcher)
        if runs_inline != (self.mode is ExecutionMode.INLINE):
            raise ValueError(
                f"{self.mode.value} mode cannot use the {self._dispatcher.name} dispatcher"
            )
        self._on_failure = on_failure

        self._changed = threading.Condition()
        self._state = SchedulerState.IDLE
        self._transitions: list[SchedulerState] = [SchedulerState.IDLE]
        self._cycles_run = 0
        self._failure: SchedulerFailure | None = None
        self._next_fire_at: float | None = None
        self._stop_requested = threading.Event()
        self._thread: threading.Thread | None = None

    @classmethod
    def from_settings(
        cls,
        settings: WorkerSettings,
        *,
        executor: CycleExecutor | None = None,
        dispatcher: CycleDispatcher | None = None,
        on_failure: FailureCallback | None = None,
    ) -> PeriodicScheduler:
        mode = ExecutionMode(settings.execution_mode)
        return cls(
            executor or CycleExecutor.from_settings(settings),
            mode=mode,
            dispatcher=dispatcher or DispatcherFactory.create(mode, settings),
            initial_delay_seconds=settings.initial_delay_seconds,
            period_seconds=settings.period_seconds,
            cycle_timeout_seconds=settings.cycle_timeout_seconds,
            on_failure=on_failure,
        )

    # Inspection

    @property
    def state(self) -> SchedulerState:
        with self._changed:
            return self._state

    @property
    def transitions(self) -> tuple[SchedulerState, ...]:
        """Every state entered so far, oldest first."""
        with self._changed:
            return tuple(self._transitions)

    @property
    def cycles_run(self) -> int:
        """Cycles that have been resolved, successfully or not."""
        with self._changed:
            return self._cycles_run

    @property
    def failure(self) -> SchedulerFailure | None:
        with self._changed:
            return self._failure

    @property
    def next_fire_at(self) -> float | None:
        """`time.monotonic()` deadline of the armed timer, if one is armed."""
        with self._changed:
            return self._next_fire_at

    @property
    def dispatcher(self) -> CycleDispatcher:
        return self._dispatcher

    def _log_extra(self, **extra: Any) -> dict[str, Any]:
        return {"scheduler_id": self.scheduler_id, "mode": self.mode.value, **extra}

    # Control

    def start(self) -> PeriodicScheduler:
        with self._changed:
            if self._thread is not None:
                raise RuntimeError("Scheduler has already been started")
            if self._stop_requested.is_set():
                raise RuntimeError("Scheduler was stopped before it started")
            self._thread = threading.Thread(
                target=self._run,
                name=f"periodic-scheduler-{self.scheduler_id[:8]}",
                daemon=True,
            )
        self._thread.start()
        logger.info(
            "Scheduler started",
            extra=self._log_extra(
                initial_delay_seconds=self.initial_delay_seconds,
                period_seconds=self.period_seconds,
                cycle_timeout_seconds=self.cycle_timeout_seconds,
                dispatcher=self._dispatcher.name,
            ),
        )
        return self

    def stop(self, timeout: float | None = None) -> bool:
        """Ask the scheduler to stop once it is idle and wait for it.

        A cycle in flight is allowed to resolve first. Returns True when the
        scheduler thread has exited. Stopping a scheduler that never started
        leaves it IDLE and makes `start()` refuse to run.
        """
        self._stop_requested.set()
        return self.join(timeout)

    def join(self, timeout: float | None = None) -> bool:
        thread = self._thread
        if thread is None:
            return True
        thread.join(timeout)
        return not thread.is_alive()

    def wait_for_state(self, *states: SchedulerState, timeout: float | None = None) -> bool:
        with self._changed:
            return self._changed.wait_for(lambda: self._state in states, timeout)

    def wait_for_cycles(self, count: int, timeout: float | None = None) -> bool:
        """Wait until `count` cycles have resolved. False if the scheduler ended first."""
        with self._changed:
            self._changed.wait_for(
                lambda: self._cycles_run >= count or self._state in TERMINAL_STATES, timeout
            )
            return self._cycles_run >= count

    # Event handling, scheduler thread only

    def _set_state_locked(self, to: SchedulerState) -> None:
        self._state = transition(current=self._state, to=to)
        self._transitions.append(to)
        self._changed.notify_all()

    def _set_state(self, to: SchedulerState) -> None:
        with self._changed:
            self._set_state_locked(to)

    def _run(self) -> None:
        delay = self.initial_delay_seconds
        cycle = 0
        try:
            while True:
                with self._changed:
                    self._next_fire_at = time.monotonic() + delay
                fired = not self._stop_requested.wait(delay)
                with self._changed:
                    self._next_fire_at = None
                    if not fired:
                        self._set_state_locked(SchedulerState.STOPPED)
                        break

                cycle += 1
                if not self._run_cycle(cycle):
                    break
                delay = self.period_seconds
        except Exception as e:
            logger.exception("Scheduler loop crashed", extra=self._log_extra(cycle=cycle))
            self._fail(cycle, CycleResult.failure(e))
        logger.info("Scheduler exited", extra=self._log_extra(state=self.state.value))

    def _run_cycle(self, cycle: int) -> bool:
        self._set_state(SchedulerState.DISPATCHING)
        started = time.monotonic()
        wait_timeout = None if self.mode is ExecutionMode.INLINE else self.cycle_timeout_seconds

        context: CycleContext | None = None
        try:
            context = self._dispatcher.submit(self._executor)
            self._set_state(SchedulerState.AWAITING)
            result = context.wait(wait_timeout)
        except CycleError as e:
            result = CycleResult.failure(e)
        except Exception as e:
            logger.exception("Dispatching cycle failed", extra=self._log_extra(cycle=cycle))
            result = CycleResult.failure(e)
        finally:
            if context is not None:
                context.close()

        if not result.ok:
            self._fail(cycle, result)
            return False

        memory = sample_memory()
        logger.info(
            "Cycle completed",
            extra=self._log_extra(
                cycle=cycle,
                duration_seconds=round(time.monotonic() - started, 3),
                next_run_in_seconds=self.period_seconds,
                **memory.to_log_extra(),
            ),
        )
        with self._changed:
            self._cycles_run += 1
            self._set_state_locked(SchedulerState.IDLE)
        return True

    def _fail(self, cycle: int, result: CycleResult) -> None:
        failure = SchedulerFailure(
            scheduler_id=self.scheduler_id,
            mode=self.mode,
            cycle=cycle,
            error_type=result.error_type or "error",
            error=result.error or "",
            failed_at=datetime.now(tz=UTC),
        )
        logger.error(
            "Cycle failed; scheduler is stopping",
            extra=self._log_extra(
                cycle=cycle,
                error_type=failure.error_type,
                error=failure.error,
                timeout_seconds=self.cycle_timeout_seconds,
                state=SchedulerState.FAILED.value,
            ),
        )
        with self._changed:
            self._failure = failure
            self._cycles_run += 1
            self._set_state_locked(SchedulerState.FAILED)

        if self._on_failure is not None:
            try:
                self._on_failure(failure)
            except Exception:
                logger.exception("Failure callback raised", extra=self._log_extra(cycle=cycle))


def start_worker(
    settings: WorkerSettings | None = None,
    *,
    executor: CycleExecutor | None = None,
    dispatcher: CycleDispatcher | None = None,
    on_failure: FailureCallback | None = None,
) -> PeriodicScheduler:
    """Create and start one scheduler configured by `settings`."""

    scheduler = PeriodicScheduler.from_settings(
        settings or WorkerSettings(),
        executor=executor,
        dispatcher=dispatcher,
        on_failure=on_failure,
    )
    return scheduler.start()


def start_inline_worker(
    settings: WorkerSettings | None = None, **kwargs: Any
) -> PeriodicScheduler:
    """Start a scheduler that runs every cycle on its own thread."""

    settings = (settings or WorkerSettings()).model_copy(update={"execution_mode": "inline"})
    return start_worker(settings, **kwargs)


def start_isolated_worker(
    settings: WorkerSettings | None = None, **kwargs: Any
) -> PeriodicScheduler:
    """Start a scheduler that runs every cycle in a fresh execution context."""

    settings = (settings or WorkerSettings()).model_copy(update={"execution_mode": "isolated"})
    return start_worker(settings, **kwargs)
