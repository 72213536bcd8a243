"""
Client State Machine: Session Lifecycle FSM

States:
    STANDBY  -> Idle, eligible for promotion
    WORKING  -> Actively performing the fleet's task
    DEAD     -> Terminal; removed from the registry on entry

Transitions:
    (new)    -> WORKING  : Registration without standby intent
    (new)    -> STANDBY  : Registration with standby intent
    WORKING  -> WORKING  : Heartbeat or reconnect (timestamp refresh)
    STANDBY  -> STANDBY  : Heartbeat or reconnect (timestamp refresh)
    WORKING  -> DEAD     : Heartbeat timeout or graceful unregister
    STANDBY  -> DEAD     : Heartbeat timeout or graceful unregister
    STANDBY  -> WORKING  : Promotion by the failover controller

Design:
    - DEAD is absorbing; rejoining is a fresh registration
    - WORKING implies is_standby == False at all times
    - Sessions are mutated only under the registry lock
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from standbymesh.core.types import Result, Ok, Err, Timestamp
from standbymesh.core.errors import CoordinationError
from standbymesh.session.notifier import Notifier


# =============================================================================
# CLIENT STATUS ENUMERATION
# =============================================================================
class ClientStatus(Enum):
    """Client lifecycle states. Values are the persisted/displayed names."""

    STANDBY = "STANDBY"
    WORKING = "WORKING"
    DEAD = "DEAD"


# =============================================================================
# TRANSITION DEFINITIONS
# =============================================================================
TRIGGER_HEARTBEAT = "HEARTBEAT"
TRIGGER_RECONNECT = "RECONNECT"
TRIGGER_TIMEOUT = "TIMEOUT"
TRIGGER_UNREGISTER = "UNREGISTER"
TRIGGER_PROMOTE = "PROMOTE"


@dataclass(frozen=True, slots=True)
class ClientTransition:
    """A valid state transition and the trigger that causes it."""

    from_state: ClientStatus
    to_state: ClientStatus
    trigger: str


VALID_TRANSITIONS: frozenset[ClientTransition] = frozenset({
    # Self-loops (timestamp refresh only)
    ClientTransition(ClientStatus.WORKING, ClientStatus.WORKING, TRIGGER_HEARTBEAT),
    ClientTransition(ClientStatus.STANDBY, ClientStatus.STANDBY, TRIGGER_HEARTBEAT),
    ClientTransition(ClientStatus.WORKING, ClientStatus.WORKING, TRIGGER_RECONNECT),
    ClientTransition(ClientStatus.STANDBY, ClientStatus.STANDBY, TRIGGER_RECONNECT),

    # Death
    ClientTransition(ClientStatus.WORKING, ClientStatus.DEAD, TRIGGER_TIMEOUT),
    ClientTransition(ClientStatus.STANDBY, ClientStatus.DEAD, TRIGGER_TIMEOUT),
    ClientTransition(ClientStatus.WORKING, ClientStatus.DEAD, TRIGGER_UNREGISTER),
    ClientTransition(ClientStatus.STANDBY, ClientStatus.DEAD, TRIGGER_UNREGISTER),

    # Failover
    ClientTransition(ClientStatus.STANDBY, ClientStatus.WORKING, TRIGGER_PROMOTE),
})


def find_transition(
    state: ClientStatus,
    trigger: str,
) -> Optional[ClientTransition]:
    """Look up the transition for ``trigger`` from ``state``, if any."""
    for t in VALID_TRANSITIONS:
        if t.from_state is state and t.trigger == trigger:
            return t
    return None


# =============================================================================
# CLIENT SESSION (MUTABLE, REGISTRY-OWNED)
# =============================================================================
@dataclass(slots=True)
class ClientSession:
    """
    Registry-owned session state for one client identity.

    ``is_standby`` is the role requested at registration; it is kept
    separate from ``status`` so promotion can flip both.
    ``sequence`` records registration order for stable tie-breaks.
    """

    client_id: str
    status: ClientStatus
    is_standby: bool
    last_heartbeat: Timestamp
    registered_at: Timestamp
    sequence: int
    notifier: Notifier

    def apply(self, trigger: str) -> Result[ClientTransition, CoordinationError]:
        """
        Apply a trigger to this session.

        Returns:
            Ok(transition) after mutating ``status`` (and ``is_standby``
            on promotion), Err if the transition is not allowed.
        """
        transition = find_transition(self.status, trigger)
        if transition is None:
            return Err(CoordinationError.invalid_transition(
                client_id=self.client_id,
                from_state=self.status.name,
                trigger=trigger,
            ))

        self.status = transition.to_state
        if transition.trigger == TRIGGER_PROMOTE:
            self.is_standby = False
        return Ok(transition)

    @property
    def failover_key(self) -> tuple[int, int]:
        """Ordering key for standby activation (oldest first)."""
        return (self.registered_at.nanos, self.sequence)

    def info(self, now: Optional[Timestamp] = None) -> ClientInfo:
        """Immutable copy for listing and audit."""
        age = (
            self.last_heartbeat.seconds_until(now)
            if now is not None else 0.0
        )
        return ClientInfo(
            client_id=self.client_id,
            status=self.status,
            last_heartbeat=self.last_heartbeat,
            is_standby=self.is_standby,
            registered_at=self.registered_at,
            heartbeat_age_seconds=max(0.0, age),
        )


# =============================================================================
# CLIENT INFO (IMMUTABLE LISTING RECORD)
# =============================================================================
@dataclass(frozen=True, slots=True)
class ClientInfo:
    """Snapshot of a session as returned by ListClients."""

    client_id: str
    status: ClientStatus
    last_heartbeat: Timestamp
    is_standby: bool
    registered_at: Timestamp
    heartbeat_age_seconds: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "client_id": self.client_id,
            "status": self.status.value,
            "last_heartbeat_nanos": self.last_heartbeat.nanos,
            "is_standby": self.is_standby,
            "registered_at_nanos": self.registered_at.nanos,
            "heartbeat_age_seconds": round(self.heartbeat_age_seconds, 3),
        }
