"""One fetch -> process -> emit cycle and its pluggable steps."""

from periodic_worker.cycle.executor import CycleExecutor, CycleResult
from periodic_worker.cycle.processing import parse_and_sum
from periodic_worker.cycle.sinks import LoggingSink, ResultSink, StdoutSink
from periodic_worker.cycle.sources import DataFetcher, RandomDataFetcher, StaticDataFetcher

__all__ = [
    "CycleExecutor",
    "CycleResult",
    "DataFetcher",
    "LoggingSink",
    "RandomDataFetcher",
    "ResultSink",
    "StaticDataFetcher",
    "StdoutSink",
    "parse_and_sum",
]
