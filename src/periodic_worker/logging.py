"""JSON-lines logging for the scheduler and its worker processes.

Records go to stderr so they never interleave with the `Processed data: <n>`
lines a cycle writes to stdout. Anything passed through `extra=` lands under
the record's `context` key; records from a worker process or a cycle thread
also say where they came from.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import IO, Any

# Attribute names every LogRecord carries; anything else arrived via `extra=`.
_STANDARD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


def _context(record: logging.LogRecord) -> dict[str, Any]:
    return {
        key: value
        for key, value in vars(record).items()
        if key not in _STANDARD_ATTRS and not key.startswith("_")
    }


def _origin(record: logging.LogRecord) -> dict[str, str]:
    origin: dict[str, str] = {}
    if record.processName and record.processName != "MainProcess":
        origin["process"] = record.processName
    if record.threadName and record.threadName != "MainThread":
        origin["thread"] = record.threadName
    return origin


class JsonFormatter(logging.Formatter):
    """Render each record as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: A003 (record)
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_origin(record),
        }
        context = _context(record)
        if context:
            payload["context"] = context
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging(level: str, *, stream: IO[str] | None = None) -> logging.Handler:
    """Send all records at `level` and above to `stream` (stderr by default) as JSON.

    Calling it again replaces the previous handler, which is what a freshly
    spawned worker process does on startup.
    """

    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(JsonFormatter())

    root = logging.getLogger()
    for previous in list(root.handlers):
        root.removeHandler(previous)
    root.addHandler(handler)
    root.setLevel(level.upper())
    return handler
