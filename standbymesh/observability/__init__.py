"""
Observability module: Metrics and structured logging.
"""

from standbymesh.observability.metrics import (
    MetricsCollector,
    CoordinatorMetrics,
    Counter,
    Gauge,
    Histogram,
)
from standbymesh.observability.logging import StructuredLogger, LogLevel, setup_logging

__all__ = [
    "MetricsCollector",
    "CoordinatorMetrics",
    "Counter",
    "Gauge",
    "Histogram",
    "StructuredLogger",
    "LogLevel",
    "setup_logging",
]
