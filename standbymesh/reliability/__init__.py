"""
Reliability module: circuit breaker guarding the audit sink.
"""

from standbymesh.reliability.circuit_breaker import (
    CircuitBreaker,
    CircuitState,
    CircuitStats,
)

__all__ = [
    "CircuitBreaker",
    "CircuitState",
    "CircuitStats",
]
