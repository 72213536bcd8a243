"""
Core Types: Result Values and Clock Readings

Operations that can fail for expected reasons (bad registration input,
unreachable notifier, unavailable audit sink) return ``Result`` instead
of raising, so the coordinator can log and continue without try/except
at every call site.

Heartbeat liveness is measured on a monotonic clock; only audit
records carry wall-clock time.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Generic, Literal, TypeVar, Union

from standbymesh.core import constants as C

T = TypeVar("T")
E = TypeVar("E")


# =============================================================================
# RESULT
# =============================================================================
@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """Successful outcome."""

    value: T

    def is_ok(self) -> Literal[True]:
        return True

    def is_err(self) -> Literal[False]:
        return False

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True, slots=True)
class Err(Generic[E]):
    """Expected failure; ``error`` is usually a StandbyMeshError or a message."""

    error: E

    def is_ok(self) -> Literal[False]:
        return False

    def is_err(self) -> Literal[True]:
        return True

    def unwrap(self) -> Any:
        raise RuntimeError(f"unwrap() on Err: {self.error}")


Result = Union[Ok[T], Err[E]]


# =============================================================================
# TIMESTAMP
# =============================================================================
@dataclass(frozen=True, slots=True, order=True)
class Timestamp:
    """
    Integer nanoseconds on some clock.

    ``monotonic()`` readings are only comparable within one process and
    are what the registry stores. ``now()`` is epoch-based and is used
    for audit rows.
    """

    nanos: int

    @classmethod
    def now(cls) -> Timestamp:
        return cls(time.time_ns())

    @classmethod
    def monotonic(cls) -> Timestamp:
        return cls(time.monotonic_ns())

    @classmethod
    def from_seconds(cls, seconds: float) -> Timestamp:
        return cls(int(seconds * C.NS_PER_S))

    @property
    def seconds(self) -> float:
        return self.nanos / C.NS_PER_S

    def seconds_until(self, later: Timestamp) -> float:
        """Elapsed seconds from this reading to ``later`` (negative if earlier)."""
        return (later.nanos - self.nanos) / C.NS_PER_S

    def shifted(self, seconds: float) -> Timestamp:
        """Same clock, moved by ``seconds``; negative values move back."""
        return Timestamp(self.nanos + int(seconds * C.NS_PER_S))

    def to_datetime(self) -> datetime:
        """Aware UTC datetime; only meaningful for ``now()`` readings."""
        return datetime.fromtimestamp(self.seconds, tz=timezone.utc)

    def __repr__(self) -> str:
        return f"Timestamp({self.nanos}ns)"


# Registry time source; tests inject a manual clock
Clock = Callable[[], Timestamp]
