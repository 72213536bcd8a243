"""
Coordination module: heartbeat monitoring, failover, relay and the
coordinator that composes them.
"""

from standbymesh.coordination.events import (
    CoordinatorEvent,
    CoordinatorEventKind,
    FleetHealth,
    FleetSummary,
    MonitorCycleReport,
)
from standbymesh.coordination.monitor import HeartbeatMonitor, TimedOutSession
from standbymesh.coordination.failover import FailoverController, PromotionDecision
from standbymesh.coordination.relay import MessageRelay
from standbymesh.coordination.coordinator import Coordinator

__all__ = [
    "CoordinatorEvent",
    "CoordinatorEventKind",
    "FleetHealth",
    "FleetSummary",
    "MonitorCycleReport",
    "HeartbeatMonitor",
    "TimedOutSession",
    "FailoverController",
    "PromotionDecision",
    "MessageRelay",
    "Coordinator",
]
