"""Unit tests for structured logging."""

from __future__ import annotations

import io
import json
import logging
import sys

import pytest

from periodic_worker.logging import JsonFormatter, configure_logging


def _record(**extra: object) -> logging.LogRecord:
    record = logging.LogRecord(
        name="periodic_worker.scheduler.runner",
        level=logging.ERROR,
        pathname=__file__,
        lineno=1,
        msg="Cycle failed; %s",
        args=("scheduler is stopping",),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_includes_context() -> None:
    payload = json.loads(JsonFormatter().format(_record(mode="isolated", cycle=3)))

    assert payload["level"] == "ERROR"
    assert payload["logger"] == "periodic_worker.scheduler.runner"
    assert payload["message"] == "Cycle failed; scheduler is stopping"
    assert payload["context"] == {"mode": "isolated", "cycle": 3}
    assert payload["timestamp"].endswith("+00:00")


def test_json_formatter_renders_exceptions() -> None:
    try:
        raise ValueError("bad token")
    except ValueError:
        record = _record()
        record.exc_info = sys.exc_info()

    payload = json.loads(JsonFormatter().format(record))

    assert "ValueError: bad token" in payload["exception"]


def test_configure_logging_replaces_handlers_and_writes_to_stderr(
    capsys: pytest.CaptureFixture[str],
) -> None:
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    try:
        configure_logging("debug")
        configure_logging("info")

        assert len(root.handlers) == 1
        assert root.level == logging.INFO

        logging.getLogger("periodic_worker.test").info("hello", extra={"cycle": 1})
        captured = capsys.readouterr()
    finally:
        for handler in list(root.handlers):
            root.removeHandler(handler)
        for handler in saved_handlers:
            root.addHandler(handler)
        root.setLevel(saved_level)

    assert captured.out == ""
    line = json.loads(captured.err.strip())
    assert line["message"] == "hello"
    assert line["context"] == {"cycle": 1}


def test_json_formatter_omits_context_for_plain_records() -> None:
    payload = json.loads(JsonFormatter().format(_record()))

    assert "context" not in payload
    assert "process" not in payload


def test_json_formatter_names_worker_process_and_thread() -> None:
    record = _record()
    record.processName = "cycle-process-4"
    record.threadName = "cycle-thread-2"

    payload = json.loads(JsonFormatter().format(record))

    assert payload["process"] == "cycle-process-4"
    assert payload["thread"] == "cycle-thread-2"
    assert "context" not in payload


def test_configure_logging_writes_to_given_stream() -> None:
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    stream = io.StringIO()
    try:
        handler = configure_logging("warning", stream=stream)
        logging.getLogger("periodic_worker.test").info("dropped")
        logging.getLogger("periodic_worker.test").warning("kept", extra={"pid": 42})
    finally:
        for existing in list(root.handlers):
            root.removeHandler(existing)
        for existing in saved_handlers:
            root.addHandler(existing)
        root.setLevel(saved_level)

    assert root.handlers == saved_handlers
    assert isinstance(handler.formatter, JsonFormatter)
    lines = [json.loads(line) for line in stream.getvalue().splitlines()]
    assert [line["message"] for line in lines] == ["kept"]
    assert lines[0]["context"] == {"pid": 42}
