"""
Shared fixtures for the StandbyMesh test suite.
"""

from __future__ import annotations

import pytest

from standbymesh.audit.dispatcher import AuditDispatcher
from standbymesh.audit.sinks import InMemoryAuditSink
from standbymesh.coordination.coordinator import Coordinator
from standbymesh.core.config import StandbyMeshConfig
from standbymesh.observability.metrics import CoordinatorMetrics
from standbymesh.session.registry import SessionRegistry
from standbymesh.tests.fakes import ManualClock


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def registry(clock: ManualClock) -> SessionRegistry:
    return SessionRegistry(clock=clock)


@pytest.fixture
def sink() -> InMemoryAuditSink:
    return InMemoryAuditSink()


@pytest.fixture
def metrics() -> CoordinatorMetrics:
    return CoordinatorMetrics()


@pytest.fixture
def dispatcher(sink: InMemoryAuditSink, metrics: CoordinatorMetrics) -> AuditDispatcher:
    return AuditDispatcher(sink, queue_max_size=1000, metrics=metrics)


@pytest.fixture
def config() -> StandbyMeshConfig:
    return StandbyMeshConfig()


@pytest.fixture
def coordinator(
    config: StandbyMeshConfig,
    sink: InMemoryAuditSink,
    clock: ManualClock,
    metrics: CoordinatorMetrics,
) -> Coordinator:
    """Coordinator with the monitor task not started; cycles are driven by hand."""
    return Coordinator(config, audit_sink=sink, clock=clock, metrics=metrics)
