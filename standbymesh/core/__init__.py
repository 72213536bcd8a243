"""
Core module: Type definitions, error hierarchy, and configuration.

This module provides the foundational abstractions for the coordinator:
- Result/Either monads for zero-exception control flow
- Coded error hierarchy covering the coordinator's failure taxonomy
- Configuration management with validation
"""

from standbymesh.core.types import (
    Result,
    Ok,
    Err,
    Timestamp,
    Clock,
)
from standbymesh.core.errors import (
    ErrorCode,
    StandbyMeshError,
    CoordinationError,
    DeliveryError,
    FailoverError,
    CodecError,
    PersistenceError,
    ReliabilityError,
)
from standbymesh.core.config import (
    StandbyMeshConfig,
    HeartbeatConfig,
    CryptoConfig,
    AuditConfig,
    ObservabilityConfig,
)

__all__ = [
    "Result",
    "Ok",
    "Err",
    "Timestamp",
    "Clock",
    "ErrorCode",
    "StandbyMeshError",
    "CoordinationError",
    "DeliveryError",
    "FailoverError",
    "CodecError",
    "PersistenceError",
    "ReliabilityError",
    "StandbyMeshConfig",
    "HeartbeatConfig",
    "CryptoConfig",
    "AuditConfig",
    "ObservabilityConfig",
]
