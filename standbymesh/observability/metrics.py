"""
Metrics: Prometheus-Compatible Coordinator Counters

Counters, gauges and histograms keyed by label values, plus the fixed
set the coordinator reports (registrations, heartbeats, timeouts,
promotions, relays, audit health). All updates happen on the event
loop thread.

Export:
    print(metrics.collector.export_prometheus())
"""

from __future__ import annotations

import time
from bisect import bisect_left
from contextlib import contextmanager
from typing import Iterator, Optional, Sequence

# (suffix, labels, value) as rendered into one exposition line
Sample = tuple[str, dict[str, str], float]


class Metric:
    """Named metric with a fixed label schema."""

    kind = "untyped"

    __slots__ = ("name", "help_text", "label_names", "_series")

    def __init__(self, name: str, label_names: Sequence[str] = (), help_text: str = "") -> None:
        self.name = name
        self.help_text = help_text
        self.label_names = tuple(label_names)
        self._series: dict[tuple[str, ...], object] = {}

    def _key(self, labels: dict[str, str]) -> tuple[str, ...]:
        return tuple(str(labels.get(n, "")) for n in self.label_names)

    def _labels(self, key: tuple[str, ...]) -> dict[str, str]:
        return dict(zip(self.label_names, key))

    def samples(self) -> Iterator[Sample]:
        for key, value in self._series.items():
            yield "", self._labels(key), value


class Counter(Metric):
    """
    Monotonically increasing count.

    Usage:
        heartbeats = Counter("standbymesh_heartbeats_total", ["result"])
        heartbeats.inc(result="ok")
    """

    kind = "counter"
    __slots__ = ()

    def inc(self, value: float = 1.0, **labels: str) -> None:
        key = self._key(labels)
        self._series[key] = self._series.get(key, 0.0) + value

    def get(self, **labels: str) -> float:
        return self._series.get(self._key(labels), 0.0)

    def total(self) -> float:
        return sum(self._series.values())


class Gauge(Metric):
    """Last value set per label combination."""

    kind = "gauge"
    __slots__ = ()

    def set(self, value: float, **labels: str) -> None:
        self._series[self._key(labels)] = value

    def get(self, **labels: str) -> float:
        return self._series.get(self._key(labels), 0.0)


class _Buckets:
    __slots__ = ("counts", "sum", "count")

    def __init__(self, size: int) -> None:
        self.counts = [0] * size
        self.sum = 0.0
        self.count = 0


class Histogram(Metric):
    """
    Cumulative-bucket histogram.

    Usage:
        cycle = Histogram("standbymesh_monitor_cycle_seconds")
        with cycle.time():
            ...
    """

    kind = "histogram"
    __slots__ = ("bounds",)

    DEFAULT_BOUNDS = (0.0005, 0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5)

    def __init__(
        self,
        name: str,
        label_names: Sequence[str] = (),
        help_text: str = "",
        bounds: Optional[Sequence[float]] = None,
    ) -> None:
        super().__init__(name, label_names, help_text)
        finite = sorted(b for b in (bounds or self.DEFAULT_BOUNDS) if b != float("inf"))
        self.bounds = tuple(finite) + (float("inf"),)

    def observe(self, value: float, **labels: str) -> None:
        key = self._key(labels)
        series = self._series.get(key)
        if series is None:
            series = self._series[key] = _Buckets(len(self.bounds))
        # Cumulative: every bucket from the first bound >= value upwards
        for i in range(bisect_left(self.bounds, value), len(self.bounds)):
            series.counts[i] += 1
        series.sum += value
        series.count += 1

    @contextmanager
    def time(self, **labels: str) -> Iterator[None]:
        """Observe the wall time spent inside the block, even if it raises."""
        start = time.perf_counter()
        try:
            yield
        finally:
            self.observe(time.perf_counter() - start, **labels)

    def count(self, **labels: str) -> int:
        series = self._series.get(self._key(labels))
        return series.count if series else 0

    def samples(self) -> Iterator[Sample]:
        for key, series in self._series.items():
            labels = self._labels(key)
            for bound, hits in zip(self.bounds, series.counts):
                le = "+Inf" if bound == float("inf") else str(bound)
                yield "_bucket", {**labels, "le": le}, hits
            yield "_sum", labels, series.sum
            yield "_count", labels, series.count


class MetricsCollector:
    """
    Get-or-create registry of metrics, rendered in registration order.

    Usage:
        collector = MetricsCollector()
        promotions = collector.counter("standbymesh_promotions_total")
        text = collector.export_prometheus()
    """

    __slots__ = ("_metrics",)

    def __init__(self) -> None:
        self._metrics: dict[str, Metric] = {}

    def _get_or_create(self, cls: type, name: str, *args) -> Metric:
        metric = self._metrics.get(name)
        if metric is None:
            metric = self._metrics[name] = cls(name, *args)
        elif not isinstance(metric, cls):
            raise ValueError(f"Metric {name!r} already registered as a {metric.kind}")
        return metric

    def counter(self, name: str, label_names: Sequence[str] = (), help_text: str = "") -> Counter:
        return self._get_or_create(Counter, name, label_names, help_text)

    def gauge(self, name: str, label_names: Sequence[str] = (), help_text: str = "") -> Gauge:
        return self._get_or_create(Gauge, name, label_names, help_text)

    def histogram(
        self,
        name: str,
        label_names: Sequence[str] = (),
        help_text: str = "",
        bounds: Optional[Sequence[float]] = None,
    ) -> Histogram:
        return self._get_or_create(Histogram, name, label_names, help_text, bounds)

    def export_prometheus(self) -> str:
        """Prometheus text exposition format, version 0.0.4."""
        lines: list[str] = []
        for name, metric in self._metrics.items():
            if metric.help_text:
                lines.append(f"# HELP {name} {metric.help_text}")
            lines.append(f"# TYPE {name} {metric.kind}")
            for suffix, labels, value in metric.samples():
                lines.append(f"{name}{suffix}{_render_labels(labels)} {value}")
        return "\n".join(lines)


def _render_labels(labels: dict[str, str]) -> str:
    pairs = ",".join(f'{k}="{v}"' for k, v in sorted(labels.items()) if v != "")
    return "{" + pairs + "}" if pairs else ""


# =============================================================================
# COORDINATOR METRIC SET
# =============================================================================
class CoordinatorMetrics:
    """Named handles to every metric the coordinator reports."""

    __slots__ = (
        "collector", "registrations", "heartbeats", "timeouts",
        "promotions", "redundancy_exhausted", "relays",
        "delivery_failures", "audit_failures", "audit_dropped",
        "sessions", "monitor_cycle",
    )

    def __init__(self, collector: Optional[MetricsCollector] = None) -> None:
        c = collector or MetricsCollector()
        self.collector = c
        self.registrations = c.counter(
            "standbymesh_registrations_total", ["kind"],
            "Registrations by kind (new/reconnect/rejected)",
        )
        self.heartbeats = c.counter(
            "standbymesh_heartbeats_total", ["result"],
            "Heartbeats by result (ok/unknown)",
        )
        self.timeouts = c.counter(
            "standbymesh_timeouts_total", ["role"],
            "Sessions declared dead by heartbeat timeout",
        )
        self.promotions = c.counter(
            "standbymesh_promotions_total", (),
            "Standby sessions promoted to working",
        )
        self.redundancy_exhausted = c.counter(
            "standbymesh_redundancy_exhausted_total", (),
            "Failovers with no standby available",
        )
        self.relays = c.counter(
            "standbymesh_relays_total", ["outcome"],
            "Relayed messages by outcome (delivered/unknown_receiver/failed)",
        )
        self.delivery_failures = c.counter(
            "standbymesh_delivery_failures_total", ["operation"],
            "Failed notifier pushes",
        )
        self.audit_failures = c.counter(
            "standbymesh_audit_failures_total", ["operation"],
            "Audit sink writes that failed or were short-circuited",
        )
        self.audit_dropped = c.counter(
            "standbymesh_audit_dropped_total", (),
            "Audit records dropped because the queue was full",
        )
        self.sessions = c.gauge(
            "standbymesh_sessions", ["status"],
            "Registered sessions by status",
        )
        self.monitor_cycle = c.histogram(
            "standbymesh_monitor_cycle_seconds", (),
            "Duration of heartbeat monitor cycles",
        )
