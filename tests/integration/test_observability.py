"""
Integration tests for replenish/observability.py

Tests correlation IDs, timers and log formatting.
"""
import json
import logging

from replenish.observability import (
    HumanReadableFormatter,
    StructuredFormatter,
    Timer,
    correlation_context,
    generate_correlation_id,
    get_correlation_id,
    get_logger,
)


def make_record(message: str = "Test message", **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="test", level=logging.INFO, pathname="test.py", lineno=1,
        msg=message, args=(), exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestCorrelationId:
    """Tests for correlation ID functions."""

    def test_generate_correlation_id_not_empty(self):
        cid = generate_correlation_id()
        assert cid
        assert len(cid) == 8

    def test_context_binds_and_restores(self):
        assert get_correlation_id() is None
        with correlation_context("run-1") as cid:
            assert cid == "run-1"
            assert get_correlation_id() == "run-1"
        assert get_correlation_id() is None

    def test_nested_contexts(self):
        with correlation_context("outer"):
            with correlation_context("inner"):
                assert get_correlation_id() == "inner"
            assert get_correlation_id() == "outer"


class TestTimer:
    """Tests for Timer context manager."""

    def test_measures_elapsed_time(self):
        with Timer("noop") as timer:
            sum(range(1000))
        assert timer.elapsed_ms >= 0

    def test_logs_completion(self, caplog):
        logger = get_logger("replenish.test_timer")
        with caplog.at_level(logging.DEBUG, logger="replenish.test_timer"):
            with Timer("orders_leg", logger):
                pass
        assert "orders_leg completed" in caplog.text


class TestStructuredFormatter:
    """Tests for StructuredFormatter."""

    def test_formats_as_json(self):
        data = json.loads(StructuredFormatter().format(make_record()))

        assert data["message"] == "Test message"
        assert data["level"] == "INFO"
        assert data["timestamp"].endswith("Z")

    def test_includes_extras(self):
        data = json.loads(StructuredFormatter().format(make_record(external_id="1001")))
        assert data["external_id"] == "1001"

    def test_includes_correlation_id(self):
        with correlation_context("abc12345"):
            data = json.loads(StructuredFormatter().format(make_record()))
        assert data["correlation_id"] == "abc12345"


class TestHumanReadableFormatter:
    """Tests for HumanReadableFormatter."""

    def test_line_contains_correlation_and_extras(self):
        with correlation_context("run-9"):
            line = HumanReadableFormatter().format(make_record("Sync run started", run_id="run-9"))

        assert "[run-9]" in line
        assert "Sync run started" in line
        assert "'run_id': 'run-9'" in line
