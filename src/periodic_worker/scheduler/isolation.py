"""Execution contexts a cycle can be dispatched into.

Each dispatcher hands out at most one live `CycleContext` at a time. A context
that is still running after `close()` keeps that slot until it ends.

- `InlineDispatcher` runs the cycle on the caller's thread before returning.
- `ThreadDispatcher` runs it on a short-lived thread.
- `ProcessDispatcher` runs it in a fresh child process whose memory is returned
  to the OS when the child exits.

Results travel back through a one-shot channel (a queue slot or a pipe); no
other state is shared between the scheduler and the context.
"""

from __future__ import annotations

import logging
import multiprocessing
import queue
import threading
from abc import ABC, abstractmethod
from multiprocessing.connection import Connection
from typing import Literal

from periodic_worker.config import WorkerSettings
from periodic_worker.cycle.executor import CycleExecutor, CycleResult
from periodic_worker.errors import CycleError, TimeoutFailure, WorkerCrash
from periodic_worker.logging import configure_logging
from periodic_worker.scheduler.state_machine import ExecutionMode

logger = logging.getLogger(__name__)

_REAP_SECONDS = 5.0

StartMethod = Literal["spawn", "forkserver", "fork"]


class CycleContext(ABC):
    """Handle on one dispatched cycle."""

    def __init__(self, owner: CycleDispatcher) -> None:
        self._owner = owner
        self._closed = False

    @abstractmethod
    def wait(self, timeout: float | None) -> CycleResult:
        """Block until the cycle reports a result.

        Raises:
            TimeoutFailure: No result arrived within `timeout` seconds.
            WorkerCrash: The context ended without reporting a result.
        """
        pass

    @property
    def running(self) -> bool:
        """Whether the cycle's thread or process is still executing."""
        return False

    def close(self) -> None:
        """Tear the context down. Safe to call more than once.

        A context that is still running after teardown keeps its dispatcher
        slot until it ends on its own.
        """
        if self._closed:
            return
        self._closed = True
        try:
            self._teardown()
        finally:
            if self.running:
                self._owner._adopt(self)
            else:
                self._owner._release()

    def _teardown(self) -> None:
        pass

    def _reap(self) -> None:
        """Free what is left once an adopted context has ended."""
        pass


class CycleDispatcher(ABC):
    """Creates the context a cycle runs in."""

    name: str = "dispatcher"

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._live = 0
        self._dispatched = 0
        self._abandoned: list[CycleContext] = []

    @property
    def live_contexts(self) -> int:
        with self._lock:
            self._reap_abandoned_locked()
            return self._live

    def submit(self, executor: CycleExecutor) -> CycleContext:
        with self._lock:
            self._reap_abandoned_locked()
            if self._live:
                raise RuntimeError(f"{self.name}: previous cycle context is still open")
            self._live += 1
            self._dispatched += 1
            number = self._dispatched
        try:
            return self._open(executor, number)
        except BaseException:
            self._release()
            raise

    def _release(self) -> None:
        with self._lock:
            self._live -= 1

    def _adopt(self, context: CycleContext) -> None:
        with self._lock:
            self._abandoned.append(context)

    def _reap_abandoned_locked(self) -> None:
        finished = [context for context in self._abandoned if not context.running]
        for context in finished:
            self._abandoned.remove(context)
            context._reap()
            self._live -= 1

    @abstractmethod
    def _open(self, executor: CycleExecutor, number: int) -> CycleContext:
        pass


# Inline


class _CompletedContext(CycleContext):
    def __init__(self, result: CycleResult, owner: CycleDispatcher) -> None:
        super().__init__(owner)
        self._result = result

    def wait(self, timeout: float | None) -> CycleResult:
        return self._result


class InlineDispatcher(CycleDispatcher):
    """Run the cycle synchronously inside `submit`; waiting never blocks."""

    name = "inline"

    def _open(self, executor: CycleExecutor, number: int) -> CycleContext:
        return _CompletedContext(executor.execute(), self)


# Thread


class _ThreadContext(CycleContext):
    def __init__(
        self, executor: CycleExecutor, owner: CycleDispatcher, *, name: str
    ) -> None:
        super().__init__(owner)
        self._outcome: queue.Queue[CycleResult | CycleError] = queue.Queue(maxsize=1)
        self._finished = threading.Event()
        self._thread = threading.Thread(target=self._run, args=(executor,), name=name, daemon=True)
        self._thread.start()

    def _run(self, executor: CycleExecutor) -> None:
        outcome: CycleResult | CycleError | None = None
        try:
            outcome = executor.execute()
        except Exception as e:
            logger.exception("Cycle thread raised", extra={"thread_name": self._thread.name})
            # Only the message crosses back; the traceback would pin the cycle's frames.
            outcome = WorkerCrash(f"{type(e).__name__}: {e}")
        finally:
            if outcome is None:
                outcome = WorkerCrash("Cycle thread exited without a result")
            self._outcome.put(outcome)
            self._finished.set()

    def wait(self, timeout: float | None) -> CycleResult:
        try:
            outcome = self._outcome.get(timeout=timeout)
        except queue.Empty:
            raise TimeoutFailure(timeout or 0.0) from None
        if isinstance(outcome, CycleError):
            raise outcome
        return outcome

    @property
    def running(self) -> bool:
        return self._thread.is_alive()

    def _teardown(self) -> None:
        self._thread.join(timeout=_REAP_SECONDS if self._finished.is_set() else 0.0)
        if self._thread.is_alive():
            # Threads cannot be killed; the daemon thread keeps its slot until it returns.
            logger.warning(
                "Abandoning unfinished cycle thread", extra={"thread_name": self._thread.name}
            )


class ThreadDispatcher(CycleDispatcher):
    name = "thread"

    def _open(self, executor: CycleExecutor, number: int) -> CycleContext:
        return _ThreadContext(executor, self, name=f"cycle-thread-{number}")


# Process


def _run_in_child(executor: CycleExecutor, channel: Connection, log_level: str | None) -> None:
    if log_level:
        configure_logging(log_level)
    try:
        channel.send(executor.execute())
    finally:
        channel.close()


class _ProcessContext(CycleContext):
    def __init__(
        self,
        mp_context: multiprocessing.context.BaseContext,
        executor: CycleExecutor,
        owner: CycleDispatcher,
        *,
        name: str,
        log_level: str | None,
        terminate_on_timeout: bool,
    ) -> None:
        super().__init__(owner)
        self._terminate_on_timeout = terminate_on_timeout
        self._timed_out = False
        self._process_closed = False
        self._receiver, sender = mp_context.Pipe(duplex=False)
        self._process = mp_context.Process(
            target=_run_in_child,
            args=(executor, sender, log_level),
            name=name,
            daemon=True,
        )
        try:
            self._process.start()
        except BaseException:
            self._receiver.close()
            raise
        finally:
            # The child owns the write end now; our copy must go so EOF is seen on exit.
            sender.close()

    @property
    def pid(self) -> int | None:
        return self._process.pid

    @property
    def running(self) -> bool:
        return not self._process_closed and self._process.is_alive()

    def wait(self, timeout: float | None) -> CycleResult:
        if not self._receiver.poll(timeout):
            self._timed_out = True
            raise TimeoutFailure(timeout or 0.0)
        try:
            return self._receiver.recv()
        except EOFError:
            self._process.join(_REAP_SECONDS)
            exitcode = self._process.exitcode
            raise WorkerCrash(
                f"Worker process exited with code {exitcode} before reporting a result",
                exitcode=exitcode,
            ) from None

    def _teardown(self) -> None:
        self._receiver.close()
        if not self._timed_out:
            self._process.join(_REAP_SECONDS)
        if self._process.is_alive():
            if not self._terminate_on_timeout:
                logger.warning(
                    "Leaving unfinished worker process running",
                    extra={"pid": self._process.pid, "process_name": self._process.name},
                )
                return
            logger.warning(
                "Terminating unfinished worker process",
                extra={"pid": self._process.pid, "process_name": self._process.name},
            )
            self._process.terminate()
            self._process.join(_REAP_SECONDS)
            if self._process.is_alive():
                self._process.kill()
                self._process.join()
        self._reap()

    def _reap(self) -> None:
        self._process.close()
        self._process_closed = True


class ProcessDispatcher(CycleDispatcher):
    """Run every cycle in its own child process."""

    name = "process"

    def __init__(
        self,
        *,
        start_method: StartMethod = "spawn",
        terminate_on_timeout: bool = True,
        log_level: str | None = None,
    ) -> None:
        super().__init__()
        self._mp_context = multiprocessing.get_context(start_method)
        self.start_method = start_method
        self.terminate_on_timeout = terminate_on_timeout
        self.log_level = log_level

    def _open(self, executor: CycleExecutor, number: int) -> CycleContext:
        return _ProcessContext(
            self._mp_context,
            executor,
            self,
            name=f"cycle-process-{number}",
            log_level=self.log_level,
            terminate_on_timeout=self.terminate_on_timeout,
        )


class DispatcherFactory:
    """Factory for creating cycle dispatchers."""

    @staticmethod
    def create(mode: ExecutionMode, settings: WorkerSettings | None = None) -> CycleDispatcher:
        """Create the dispatcher for an execution mode.

        Args:
            mode: Inline or isolated execution.
            settings: Selects the isolation backend and its options.

        Returns:
            A dispatcher with no live contexts.

        Raises:
            ValueError: If the isolation backend is not supported.
        """
        settings = settings or WorkerSettings()

        if mode is ExecutionMode.INLINE:
            return InlineDispatcher()

        logger.info(f"Creating isolated dispatcher: {settings.isolation_backend}")
        if settings.isolation_backend == "process":
            return ProcessDispatcher(
                start_method=settings.start_method,
                terminate_on_timeout=settings.terminate_on_timeout,
                log_level=settings.log_level,
            )
        elif settings.isolation_backend == "thread":
            return ThreadDispatcher()
        else:
            raise ValueError(f"Unsupported isolation backend: {settings.isolation_backend}")
