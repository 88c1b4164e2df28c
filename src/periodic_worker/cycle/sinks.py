"""Output sinks for processed cycle results."""

from __future__ import annotations

import logging
import sys
from abc import ABC, abstractmethod

OUTPUT_TEMPLATE = "Processed data: {total}"


class ResultSink(ABC):
    """Abstract base class for cycle output."""

    @abstractmethod
    def emit(self, total: int) -> None:
        pass


class StdoutSink(ResultSink):
    """Write one `Processed data: <n>` line to stdout."""

    def emit(self, total: int) -> None:
        # Process workers exit right after emitting; flush so the line survives.
        print(OUTPUT_TEMPLATE.format(total=total), file=sys.stdout, flush=True)


class LoggingSink(ResultSink):
    """Send the output line to a logger instead of stdout."""

    def __init__(self, logger_name: str = "periodic_worker.output", level: int = logging.INFO) -> None:
        self.logger_name = logger_name
        self.level = level

    def emit(self, total: int) -> None:
        logging.getLogger(self.logger_name).log(
            self.level, OUTPUT_TEMPLATE.format(total=total), extra={"total": total}
        )
