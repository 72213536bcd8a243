"""
Session Module: Client Lifecycle State

Provides:
- ClientStatus / ClientSession: lifecycle FSM with a fixed transition table
- SessionRegistry: authoritative in-memory map guarded by one lock
- Notifier: per-session push capability (coordinator -> client)
"""

from standbymesh.session.notifier import (
    Notifier,
    invoke_notifier,
)
from standbymesh.session.state_machine import (
    ClientStatus,
    ClientSession,
    ClientInfo,
    ClientTransition,
    VALID_TRANSITIONS,
)
from standbymesh.session.registry import (
    SessionRegistry,
    RegistrationOutcome,
)

__all__ = [
    # Notifier
    "Notifier",
    "invoke_notifier",
    # State Machine
    "ClientStatus",
    "ClientSession",
    "ClientInfo",
    "ClientTransition",
    "VALID_TRANSITIONS",
    # Registry
    "SessionRegistry",
    "RegistrationOutcome",
]
