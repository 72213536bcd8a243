"""
Error Hierarchy for the StandbyMesh Coordinator

Design Principles:
- Forbid exceptions for control flow (use Result types)
- Every failure is absorbed and logged; none is fatal to the coordinator
- Carry full error context for debugging and audit trails

Taxonomy:
    ProtocolMiss          heartbeat/message/unregister for an unknown id
    DeliveryFailure       a notifier call raised or was unreachable
    RedundancyExhausted   no standby available at promotion time
    CodecError            malformed ciphertext (surfaced to decrypt callers)
    PersistenceFailure    audit sink unavailable (logged, never retried)

Usage:
    result = await registry.register("C1", False, notifier)
    match result:
        case Ok(outcome):
            print(outcome.message)
        case Err(error):
            logger.warning(str(error))
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from standbymesh.core.types import Timestamp


# =============================================================================
# ERROR CODE ENUMERATION
# =============================================================================
class ErrorCode(Enum):
    """
    Unique error codes for programmatic error handling.

    Codes are grouped by subsystem:
    - 1xxx: Protocol errors
    - 2xxx: Delivery errors
    - 3xxx: Failover errors
    - 4xxx: Codec errors
    - 5xxx: Persistence errors
    - 6xxx: Reliability errors
    """

    # Protocol errors (1xxx)
    PROTOCOL_UNKNOWN_CLIENT = 1001
    PROTOCOL_INVALID_REGISTRATION = 1002
    PROTOCOL_INVALID_TRANSITION = 1003

    # Delivery errors (2xxx)
    DELIVERY_FAILED = 2001

    # Failover errors (3xxx)
    FAILOVER_REDUNDANCY_EXHAUSTED = 3001

    # Codec errors (4xxx)
    CODEC_MALFORMED_INPUT = 4001
    CODEC_PADDING_MISMATCH = 4002
    CODEC_INVALID_KEY_MATERIAL = 4003
    CODEC_INVALID_ENCODING = 4004

    # Persistence errors (5xxx)
    PERSISTENCE_UNAVAILABLE = 5001
    PERSISTENCE_QUEUE_FULL = 5002

    # Reliability errors (6xxx)
    RELIABILITY_CIRCUIT_OPEN = 6001
    RELIABILITY_CALL_FAILED = 6002


# =============================================================================
# BASE ERROR CLASS
# =============================================================================
@dataclass
class StandbyMeshError(Exception):
    """
    Root of every coordinator error.

    ``error_id`` ties a log line to the audit row written for the same
    failure; ``context`` holds the ids involved (client, circuit, sink).
    """

    code: ErrorCode
    message: str
    error_id: str = field(default_factory=lambda: uuid4().hex)
    raised_at: Timestamp = field(default_factory=Timestamp.now)
    cause: Optional[BaseException] = None
    context: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        super().__init__(self.message)
        if self.cause is not None:
            self.__cause__ = self.cause

    def to_dict(self) -> dict[str, Any]:
        """Flat mapping suitable for ``extra=`` or an audit details column."""
        data: dict[str, Any] = {
            "error_id": self.error_id,
            "code": self.code.name,
            "message": self.message,
            **self.context,
        }
        if self.cause is not None:
            data["cause"] = f"{type(self.cause).__name__}: {self.cause}"
        return data

    def __str__(self) -> str:
        return f"[{self.code.name}] {self.message} (id={self.error_id[:8]})"


# =============================================================================
# PROTOCOL ERRORS (REGISTRATION, HEARTBEATS, STATE TRANSITIONS)
# =============================================================================
@dataclass
class CoordinationError(StandbyMeshError):
    """
    Errors from the registration/heartbeat protocol.

    Unknown-client misses are logged by callers and never surfaced;
    only invalid registrations reach the RegisterClient caller.
    """

    @classmethod
    def unknown_client(cls, client_id: str, operation: str) -> CoordinationError:
        """Operation referenced a client id that is not registered."""
        return cls(
            code=ErrorCode.PROTOCOL_UNKNOWN_CLIENT,
            message=f"{operation} for unregistered client '{client_id}'",
            context={"client_id": client_id, "operation": operation},
        )

    @classmethod
    def invalid_registration(cls, client_id: Any, reason: str) -> CoordinationError:
        """Registration request was malformed."""
        return cls(
            code=ErrorCode.PROTOCOL_INVALID_REGISTRATION,
            message=reason,
            context={"client_id": str(client_id)[:100], "reason": reason},
        )

    @classmethod
    def invalid_transition(
        cls,
        client_id: str,
        from_state: str,
        trigger: str,
    ) -> CoordinationError:
        """Requested transition is not in the transition table."""
        return cls(
            code=ErrorCode.PROTOCOL_INVALID_TRANSITION,
            message=f"No transition from {from_state} with trigger '{trigger}'",
            context={
                "client_id": client_id,
                "from_state": from_state,
                "trigger": trigger,
            },
        )


# =============================================================================
# DELIVERY ERRORS (COORDINATOR -> CLIENT PUSH)
# =============================================================================
@dataclass
class DeliveryError(StandbyMeshError):
    """A notifier invocation failed. The session is left as-is."""

    @classmethod
    def failed(
        cls,
        client_id: str,
        operation: str,
        cause: Optional[Exception] = None,
    ) -> DeliveryError:
        return cls(
            code=ErrorCode.DELIVERY_FAILED,
            message=f"{operation} to '{client_id}' failed: {cause}",
            cause=cause,
            context={"client_id": client_id, "operation": operation},
        )


# =============================================================================
# FAILOVER ERRORS
# =============================================================================
@dataclass
class FailoverError(StandbyMeshError):
    """Failover could not restore a working instance."""

    @classmethod
    def redundancy_exhausted(cls, failed_id: str) -> FailoverError:
        """No standby is available to replace a failed working client."""
        return cls(
            code=ErrorCode.FAILOVER_REDUNDANCY_EXHAUSTED,
            message=(
                f"No standby clients available to replace '{failed_id}'; "
                "system redundancy compromised"
            ),
            context={"failed_id": failed_id},
        )


# =============================================================================
# CODEC ERRORS
# =============================================================================
@dataclass
class CodecError(StandbyMeshError):
    """
    Errors from the symmetric message codec.

    Raised (not returned) by CryptoCodec; callers of decrypt handle it.
    """

    @classmethod
    def malformed_input(cls, length: int, reason: str) -> CodecError:
        """Ciphertext is empty, truncated, or not block aligned."""
        return cls(
            code=ErrorCode.CODEC_MALFORMED_INPUT,
            message=f"Malformed ciphertext ({length} bytes): {reason}",
            context={"length": length, "reason": reason},
        )

    @classmethod
    def padding_mismatch(cls, cause: Optional[Exception] = None) -> CodecError:
        """Decrypted block carried invalid PKCS7 padding."""
        return cls(
            code=ErrorCode.CODEC_PADDING_MISMATCH,
            message="Invalid padding after decryption (wrong key or corrupted data)",
            cause=cause,
        )

    @classmethod
    def invalid_key_material(cls, name: str, expected: int, actual: int) -> CodecError:
        return cls(
            code=ErrorCode.CODEC_INVALID_KEY_MATERIAL,
            message=f"{name} must be {expected} bytes, got {actual}",
            context={"name": name, "expected": expected, "actual": actual},
        )

    @classmethod
    def invalid_encoding(cls, cause: Optional[Exception] = None) -> CodecError:
        return cls(
            code=ErrorCode.CODEC_INVALID_ENCODING,
            message="Decrypted payload is not valid UTF-8",
            cause=cause,
        )


# =============================================================================
# PERSISTENCE ERRORS (AUDIT SINK)
# =============================================================================
@dataclass
class PersistenceError(StandbyMeshError):
    """
    Audit sink failures.

    The in-memory registry is the durability boundary; these are
    logged locally and never propagated to RPC callers.
    """

    @classmethod
    def unavailable(
        cls,
        sink: str,
        operation: str,
        cause: Optional[Exception] = None,
    ) -> PersistenceError:
        return cls(
            code=ErrorCode.PERSISTENCE_UNAVAILABLE,
            message=f"Audit sink '{sink}' failed during {operation}: {cause}",
            cause=cause,
            context={"sink": sink, "operation": operation},
        )

    @classmethod
    def queue_full(cls, capacity: int) -> PersistenceError:
        return cls(
            code=ErrorCode.PERSISTENCE_QUEUE_FULL,
            message=f"Audit queue full ({capacity} records); record dropped",
            context={"capacity": capacity},
        )


# =============================================================================
# RELIABILITY ERRORS
# =============================================================================
@dataclass
class ReliabilityError(StandbyMeshError):
    """Errors from the reliability subsystem (circuit breakers)."""

    @classmethod
    def circuit_open(
        cls,
        circuit_name: str,
        failure_count: int,
        retry_after_seconds: int,
    ) -> ReliabilityError:
        """Circuit breaker is open, failing fast."""
        return cls(
            code=ErrorCode.RELIABILITY_CIRCUIT_OPEN,
            message=f"Circuit '{circuit_name}' is OPEN after {failure_count} failures",
            context={
                "circuit_name": circuit_name,
                "failure_count": failure_count,
                "retry_after_seconds": retry_after_seconds,
            },
        )

    @classmethod
    def call_failed(
        cls,
        circuit_name: str,
        cause: Optional[Exception] = None,
    ) -> ReliabilityError:
        """Call went through the breaker and raised."""
        return cls(
            code=ErrorCode.RELIABILITY_CALL_FAILED,
            message=f"Call through circuit '{circuit_name}' failed: {cause}",
            cause=cause,
            context={"circuit_name": circuit_name},
        )
