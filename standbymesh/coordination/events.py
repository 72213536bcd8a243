"""
Coordinator events, monitor cycle reports and fleet health summary.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

from standbymesh.core.types import Timestamp


class CoordinatorEventKind(Enum):
    """Alerts pushed to coordinator listeners."""

    CLIENT_TIMEOUT = "CLIENT_TIMEOUT"
    PROMOTED = "PROMOTED"
    REDUNDANCY_EXHAUSTED = "REDUNDANCY_EXHAUSTED"


@dataclass(frozen=True, slots=True)
class CoordinatorEvent:
    """
    One coordinator alert.

    ``related_id`` names the other party: the failed client for
    PROMOTED, the promoted client (if any) for CLIENT_TIMEOUT.
    """

    kind: CoordinatorEventKind
    client_id: str
    related_id: Optional[str] = None
    timestamp: Timestamp = field(default_factory=Timestamp.now)
    details: dict[str, Any] = field(default_factory=dict)


EventListener = Callable[[CoordinatorEvent], Any]


@dataclass(frozen=True, slots=True)
class MonitorCycleReport:
    """What one monitor pass did."""

    timed_out: tuple[str, ...] = ()
    promotions: tuple[tuple[str, str], ...] = ()  # (failed_id, promoted_id)
    exhausted: tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.timed_out


class FleetHealth(Enum):
    NORMAL = "NORMAL"
    LOW_REDUNDANCY = "LOW_REDUNDANCY"
    CRITICAL = "CRITICAL"


@dataclass(frozen=True, slots=True)
class FleetSummary:
    """Counts of live sessions and the derived health level."""

    total: int
    working: int
    standby: int

    @property
    def health(self) -> FleetHealth:
        if self.working == 0:
            return FleetHealth.CRITICAL
        if self.working < 2 and self.standby == 0:
            return FleetHealth.LOW_REDUNDANCY
        return FleetHealth.NORMAL

    def describe(self) -> str:
        return (
            f"Total={self.total} Working={self.working} "
            f"Standby={self.standby} Health={self.health.value}"
        )
