"""
System-Wide Constants for the StandbyMesh Coordinator

All magic numbers and configuration defaults centralized here.
"""

from typing import Final

# =============================================================================
# TIME UNITS
# =============================================================================
NS_PER_S: Final[int] = 1_000_000_000

# =============================================================================
# HEARTBEAT PROTOCOL
# =============================================================================
HEARTBEAT_CHECK_INTERVAL_S: Final[float] = 5.0    # monitor scan period
HEARTBEAT_SEND_INTERVAL_S: Final[float] = 10.0    # client send period
HEARTBEAT_TIMEOUT_S: Final[float] = 30.0          # silence before DEAD
SIMULATED_FAILURE_MARGIN_S: Final[float] = 1.0    # backdate beyond timeout

# =============================================================================
# CRYPTO CODEC (AES-256-CBC, PKCS7)
# =============================================================================
AES_KEY_BYTES: Final[int] = 32
AES_IV_BYTES: Final[int] = 16
AES_BLOCK_BYTES: Final[int] = 16

# Legacy fixed key material shared by every peer; no key exchange exists
DEFAULT_CRYPTO_KEY: Final[bytes] = b"ThisIsASecretKey1234567890123456"
DEFAULT_CRYPTO_IV: Final[bytes] = b"ThisIsAnIV123456"

# =============================================================================
# AUDIT PIPELINE
# =============================================================================
AUDIT_QUEUE_MAX_SIZE: Final[int] = 10_000
AUDIT_BREAKER_FAILURE_THRESHOLD: Final[int] = 5
AUDIT_BREAKER_RESET_S: Final[float] = 30.0
AUDIT_DRAIN_TIMEOUT_S: Final[float] = 5.0          # bound on shutdown flush
AUDIT_SQLITE_PATH: Final[str] = "./data/standbymesh_audit.db"
AUDIT_BACKENDS: Final[tuple[str, ...]] = ("memory", "sqlite", "postgres")

# =============================================================================
# AUDIT EVENT TYPES
# =============================================================================
EVENT_CLIENT_REGISTERED: Final[str] = "CLIENT_REGISTERED"
EVENT_CLIENT_RECONNECTED: Final[str] = "CLIENT_RECONNECTED"
EVENT_CLIENT_UNREGISTERED: Final[str] = "CLIENT_UNREGISTERED"
EVENT_CLIENT_TIMEOUT: Final[str] = "CLIENT_TIMEOUT"
EVENT_STATUS_CHANGED: Final[str] = "STATUS_CHANGED"
EVENT_ACTIVATED_FROM_STANDBY: Final[str] = "ACTIVATED_FROM_STANDBY"
EVENT_REDUNDANCY_EXHAUSTED: Final[str] = "REDUNDANCY_EXHAUSTED"
EVENT_FAILURE_SIMULATED: Final[str] = "FAILURE_SIMULATED"
EVENT_MESSAGE_SENT: Final[str] = "MESSAGE_SENT"
EVENT_MESSAGE_RECEIVED: Final[str] = "MESSAGE_RECEIVED"
EVENT_MESSAGE_UNDELIVERED: Final[str] = "MESSAGE_UNDELIVERED"
