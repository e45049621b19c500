# tests/unit/core/test_logging.py
"""Tests for structured logging configuration."""

from __future__ import annotations

import io
import json
import logging
from collections.abc import Iterator

import pytest
from structlog.contextvars import bound_contextvars

from graphloader.core.logging import configure_logging, get_logger


@pytest.fixture
def log_stream() -> Iterator[io.StringIO]:
    stream = io.StringIO()
    configure_logging(json_output=True, stream=stream)
    yield stream
    configure_logging()


def _events(stream: io.StringIO) -> list[dict[str, object]]:
    return [json.loads(line) for line in stream.getvalue().splitlines() if line]


class TestConfigureLogging:
    def test_json_lines(self, log_stream: io.StringIO) -> None:
        get_logger("graphloader.test").info("Partition started", resumed_offset=0)

        (event,) = _events(log_stream)
        assert event["event"] == "Partition started"
        assert event["level"] == "info"
        assert event["logger"] == "graphloader.test"
        assert event["resumed_offset"] == 0
        assert "thread_name" in event

    def test_stdlib_records_share_the_format(self, log_stream: io.StringIO) -> None:
        logging.getLogger("graphloader.stdlib").warning("pool %s exhausted", "graphd")

        (event,) = _events(log_stream)
        assert event["event"] == "pool graphd exhausted"
        assert event["level"] == "warning"

    def test_bound_partition_context(self, log_stream: io.StringIO) -> None:
        with bound_contextvars(stream="follow", partition=2):
            get_logger("graphloader.test").warning("Batch throttled")

        (event,) = _events(log_stream)
        assert (event["stream"], event["partition"]) == ("follow", 2)

    def test_limiter_denials_are_silenced(self, log_stream: io.StringIO) -> None:
        logging.getLogger("pyrate_limiter").error("Required delay too large")
        logging.getLogger("sqlalchemy.engine").info("BEGIN (implicit)")

        assert _events(log_stream) == []

    def test_floors_never_loosen_root_level(self) -> None:
        configure_logging(level="ERROR", stream=io.StringIO())
        try:
            assert logging.getLogger("nebula3").level == logging.ERROR
            assert logging.getLogger("pyrate_limiter").level == logging.CRITICAL
        finally:
            configure_logging()

    def test_console_output_is_plain_off_terminal(self) -> None:
        stream = io.StringIO()
        configure_logging(stream=stream)
        try:
            get_logger("graphloader.test").info("Entity loaded", records=3)
        finally:
            configure_logging()

        output = stream.getvalue()
        assert "Entity loaded" in output
        assert "\x1b[" not in output
        assert not output.startswith("{")
