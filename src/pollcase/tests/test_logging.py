"""Tests for logging setup."""

from __future__ import annotations

import io
import logging

import orjson
import pytest

from pollcase.runtime.concurrency import TaskSet, noop_waker
from pollcase.runtime.observability import JsonFormatter, configure_logging, get_logger
from pollcase.tests.conftest import Gate


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger("pollcase")
    handlers, level = list(root.handlers), root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


def test_get_logger_namespace() -> None:
    assert get_logger().name == "pollcase"
    assert get_logger("driver").name == "pollcase.driver"


def test_text_output(restore_root_logger: logging.Logger) -> None:
    out = io.StringIO()
    configure_logging(level="info", format="text", output=out)
    get_logger("driver").info("polling root")
    get_logger("driver").debug("hidden")
    assert "[INFO] pollcase.driver: polling root" in out.getvalue()
    assert "hidden" not in out.getvalue()


def test_json_output_includes_extra(restore_root_logger: logging.Logger) -> None:
    out = io.StringIO()
    configure_logging(level="DEBUG", format="json", output=out)
    gate = Gate[int]()
    tasks = TaskSet([gate])
    tasks.poll_next(noop_waker())
    tasks.cancel(tasks.handles()[0])
    line = out.getvalue().strip().splitlines()[-1]
    record = orjson.loads(line)
    assert record["logger"] == "pollcase.task_set"
    assert record["event"] == "member cancelled"
    assert record["index"] == 0
    assert record["level"] == "debug"
    assert "timestamp" in record


def test_reconfigure_replaces_handler(restore_root_logger: logging.Logger) -> None:
    configure_logging(output=io.StringIO())
    configure_logging(output=io.StringIO())
    tagged = [h for h in restore_root_logger.handlers if getattr(h, "_pollcase_handler", False)]
    assert len(tagged) == 1


def test_unknown_format(restore_root_logger: logging.Logger) -> None:
    with pytest.raises(ValueError, match="Unknown format"):
        configure_logging(format="xml")


def test_json_formatter_without_timestamps() -> None:
    record = logging.makeLogRecord({"name": "pollcase.x", "levelname": "INFO", "msg": "hi %s", "args": ("there",)})
    payload = orjson.loads(JsonFormatter(include_timestamps=False).format(record))
    assert payload == {"level": "info", "logger": "pollcase.x", "event": "hi there"}
