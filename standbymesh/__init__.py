"""
StandbyMesh: Heartbeat-Driven Failover Coordinator

Keeps exactly one working instance alive in a small fleet of workers:
- Session Registry: authoritative in-memory map of registered clients
- Heartbeat Monitor: declares silent clients dead
- Failover Controller: promotes the oldest standby on a working failure
- Message Relay: forwards AES-encrypted payloads between peers
- Audit Pipeline: best-effort record of the lifecycle (memory/SQLite/Postgres)
- Client Runner: heartbeats, decryption and graceful exit for one client
"""

__version__ = "1.0.0"

# =============================================================================
# PUBLIC API EXPORTS
# =============================================================================
from standbymesh.core.types import (
    Result,
    Ok,
    Err,
    Timestamp,
)
from standbymesh.core.errors import (
    StandbyMeshError,
    CoordinationError,
    DeliveryError,
    FailoverError,
    CodecError,
    PersistenceError,
)
from standbymesh.core.config import StandbyMeshConfig

from standbymesh.session import (
    ClientStatus,
    ClientInfo,
    Notifier,
    SessionRegistry,
)
from standbymesh.security import CryptoCodec
from standbymesh.coordination import (
    Coordinator,
    CoordinatorEvent,
    CoordinatorEventKind,
    FleetHealth,
    FleetSummary,
    MonitorCycleReport,
)
from standbymesh.client import ClientRunner, ReceivedMessage

__all__ = [
    "__version__",
    # Core
    "Result",
    "Ok",
    "Err",
    "Timestamp",
    "StandbyMeshError",
    "CoordinationError",
    "DeliveryError",
    "FailoverError",
    "CodecError",
    "PersistenceError",
    "StandbyMeshConfig",
    # Session
    "ClientStatus",
    "ClientInfo",
    "Notifier",
    "SessionRegistry",
    # Security
    "CryptoCodec",
    # Coordination
    "Coordinator",
    "CoordinatorEvent",
    "CoordinatorEventKind",
    "FleetHealth",
    "FleetSummary",
    "MonitorCycleReport",
    # Client
    "ClientRunner",
    "ReceivedMessage",
]
