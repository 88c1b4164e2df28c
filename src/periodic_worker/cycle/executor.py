"""The unit of work run once per scheduler firing."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from functools import partial

from periodic_worker.config import WorkerSettings
from periodic_worker.cycle.processing import parse_and_sum
from periodic_worker.cycle.sinks import ResultSink, StdoutSink
from periodic_worker.cycle.sources import DataFetcher, RandomDataFetcher
from periodic_worker.errors import CycleError, ParseFailure

logger = logging.getLogger(__name__)

Processor = Callable[[str], int]


@dataclass(frozen=True, slots=True)
class CycleResult:
    """Outcome of one cycle. Carries no data, only whether it worked."""

    ok: bool
    error_type: str | None = None
    error: str | None = None

    @classmethod
    def success(cls) -> CycleResult:
        return cls(ok=True)

    @classmethod
    def failure(cls, exc: BaseException) -> CycleResult:
        error_type = exc.error_type if isinstance(exc, CycleError) else "error"
        return cls(ok=False, error_type=error_type, error=str(exc) or type(exc).__name__)


class CycleExecutor:
    """Fetch a payload, reduce it to one integer and emit that integer.

    The executor is stateless between calls and knows nothing about
    scheduling. It must stay picklable: the process backend ships it to a
    fresh interpreter for every cycle.
    """

    def __init__(
        self,
        fetcher: DataFetcher,
        sink: ResultSink | None = None,
        *,
        processor: Processor | None = None,
    ) -> None:
        self.fetcher = fetcher
        self.sink = sink or StdoutSink()
        self.processor = processor or parse_and_sum

    @classmethod
    def from_settings(cls, settings: WorkerSettings, sink: ResultSink | None = None) -> CycleExecutor:
        fetcher = RandomDataFetcher(
            size=settings.dataset_size,
            max_value=settings.max_value,
            delimiter=settings.delimiter,
        )
        return cls(
            fetcher,
            sink,
            processor=partial(parse_and_sum, delimiter=settings.delimiter),
        )

    def execute(self) -> CycleResult:
        """Run one fetch -> process -> emit cycle.

        Step failures are logged and reported as a failed result. Nothing is
        emitted unless fetching and processing both succeeded.
        """
        try:
            total = self._fetch_and_process()
        except ParseFailure as e:
            logger.warning(
                "Fetched data could not be parsed",
                extra={"error_type": e.error_type, "index": e.index, "token": e.token},
            )
            return CycleResult.failure(e)
        except Exception as e:
            logger.exception("Cycle step failed")
            return CycleResult.failure(e)

        try:
            self.sink.emit(total)
        except Exception as e:
            logger.exception("Emitting cycle output failed")
            return CycleResult.failure(e)
        return CycleResult.success()

    def _fetch_and_process(self) -> int:
        # The payload only ever lives in this frame; returning drops it.
        return self.processor(self.fetcher.fetch())
