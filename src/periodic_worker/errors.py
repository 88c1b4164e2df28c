"""Errors raised while running a worker cycle."""

from __future__ import annotations


class CycleError(Exception):
    """Base class for failures that end a cycle."""

    error_type = "error"


class ParseFailure(CycleError, ValueError):
    """Fetched data is not a delimited sequence of integers."""

    error_type = "parse"

    def __init__(self, message: str, *, index: int | None = None, token: str | None = None) -> None:
        super().__init__(message)
        self.index = index
        self.token = token


class TimeoutFailure(CycleError, TimeoutError):
    """The isolated context produced no result within the wait timeout."""

    error_type = "timeout"

    def __init__(self, timeout_seconds: float) -> None:
        super().__init__(f"Cycle did not complete within {timeout_seconds:g}s")
        self.timeout_seconds = timeout_seconds


class WorkerCrash(CycleError, RuntimeError):
    """The isolated context ended before producing a result."""

    error_type = "crash"

    def __init__(self, message: str, *, exitcode: int | None = None) -> None:
        super().__init__(message)
        self.exitcode = exitcode
