"""
Unit Tests: Metrics and Structured Logging

Tests:
    - Counter/Gauge/Histogram label handling
    - Prometheus text export
    - JSON log formatting with extra and context fields
"""

import io
import json
import logging

import pytest

from standbymesh.observability.logging import (
    JsonFormatter,
    LogLevel,
    StructuredLogger,
    setup_logging,
)
from standbymesh.observability.metrics import CoordinatorMetrics, MetricsCollector


class TestMetrics:
    """Tests for the metric primitives."""

    def test_counter_labels(self):
        collector = MetricsCollector()
        counter = collector.counter("hits_total", ["result"])
        counter.inc(result="ok")
        counter.inc(2, result="ok")
        counter.inc(result="unknown")

        assert counter.get(result="ok") == 3
        assert counter.get(result="unknown") == 1
        assert counter.total() == 4

    def test_get_or_create_returns_same_metric(self):
        collector = MetricsCollector()
        assert collector.counter("a") is collector.counter("a")

    def test_gauge_overwrites(self):
        gauge = MetricsCollector().gauge("sessions", ["status"])
        gauge.set(3, status="STANDBY")
        gauge.set(1, status="STANDBY")
        assert gauge.get(status="STANDBY") == 1

    def test_histogram_timer(self):
        histogram = MetricsCollector().histogram("cycle_seconds")
        with histogram.time():
            pass
        assert histogram.count() == 1

    def test_prometheus_export(self):
        metrics = CoordinatorMetrics()
        metrics.heartbeats.inc(result="ok")
        metrics.sessions.set(2, status="WORKING")
        metrics.monitor_cycle.observe(0.002)

        text = metrics.collector.export_prometheus()

        assert '# TYPE standbymesh_heartbeats_total counter' in text
        assert 'standbymesh_heartbeats_total{result="ok"} 1.0' in text
        assert 'standbymesh_sessions{status="WORKING"} 2' in text
        assert 'standbymesh_monitor_cycle_seconds_bucket{le="+Inf"} 1' in text
        assert 'standbymesh_monitor_cycle_seconds_count 1' in text


class TestLogging:
    """Tests for structured logging."""

    @pytest.fixture
    def captured(self):
        stream = io.StringIO()
        handler = logging.StreamHandler(stream)
        handler.setFormatter(JsonFormatter())
        logger = logging.getLogger("standbymesh.tests.json")
        logger.addHandler(handler)
        logger.setLevel(logging.DEBUG)
        logger.propagate = False
        yield stream
        logger.removeHandler(handler)
        logger.propagate = True

    def _lines(self, stream):
        return [json.loads(line) for line in stream.getvalue().splitlines()]

    def test_extra_fields_are_emitted(self, captured):
        StructuredLogger("standbymesh.tests.json").warning("C1 DEAD", client_id="C1")

        (record,) = self._lines(captured)
        assert record["level"] == "WARNING"
        assert record["message"] == "C1 DEAD"
        assert record["client_id"] == "C1"
        assert record["logger"] == "standbymesh.tests.json"

    def test_context_and_default_fields(self, captured):
        logger = StructuredLogger("standbymesh.tests.json").bind(component="monitor")
        with logger.context(cycle=7):
            logger.info("cycle done")
        logger.info("outside")

        inside, outside = self._lines(captured)
        assert inside["component"] == "monitor"
        assert inside["cycle"] == 7
        assert "cycle" not in outside

    def test_level_parse(self):
        assert LogLevel.parse("debug") is LogLevel.DEBUG
        assert LogLevel.parse("nonsense") is LogLevel.INFO

    def test_setup_logging_installs_single_handler(self):
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        stream = io.StringIO()
        try:
            setup_logging(LogLevel.WARNING, json_output=True, stream=stream)
            logging.getLogger("standbymesh.tests.setup").warning("fleet critical")

            assert len(root.handlers) == 1
            assert json.loads(stream.getvalue())["message"] == "fleet critical"
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)
