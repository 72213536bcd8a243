"""
Circuit Breaker: Fail Fast Around the Audit Sink

A dead database must never slow down heartbeats or failover, so every
audit write goes through one of these.

    CLOSED ──(failure_threshold consecutive failures)──> OPEN
    OPEN ──(timeout_seconds since opening)──> HALF_OPEN
    HALF_OPEN ──(success_threshold successes)──> CLOSED
    HALF_OPEN ──(any failure)──> OPEN

State changes happen between awaits only, so the breaker is safe to
share between coroutines on one event loop without a lock.
"""

from __future__ import annotations

import inspect
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from standbymesh.core.types import Result, Ok, Err
from standbymesh.core.errors import ReliabilityError

logger = logging.getLogger(__name__)


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass(frozen=True, slots=True)
class CircuitStats:
    """Point-in-time counters for one breaker."""

    state: CircuitState
    consecutive_failures: int
    total_calls: int
    failed_calls: int
    rejected_calls: int
    opened_at: Optional[float]


class CircuitBreaker:
    """
    Usage:
        breaker = CircuitBreaker("audit-sqlite", failure_threshold=5)

        result = await breaker.call(lambda: sink.log_event(...))
        if result.is_err():
            logger.warning(str(result.error))

    Args:
        name: Identifier used in logs and errors
        failure_threshold: Consecutive failures that open the circuit
        success_threshold: Half-open successes needed to close it again
        timeout_seconds: Time spent OPEN before a trial call is allowed
        clock: Monotonic seconds source
    """

    __slots__ = (
        "_name", "_failure_threshold", "_success_threshold", "_timeout_seconds",
        "_clock", "_state", "_opened_at", "_consecutive_failures",
        "_half_open_successes", "_total", "_failed", "_rejected",
    )

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        success_threshold: int = 1,
        timeout_seconds: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._name = name
        self._failure_threshold = max(1, failure_threshold)
        self._success_threshold = max(1, success_threshold)
        self._timeout_seconds = timeout_seconds
        self._clock = clock

        self._state = CircuitState.CLOSED
        self._opened_at: Optional[float] = None
        self._consecutive_failures = 0
        self._half_open_successes = 0
        self._total = 0
        self._failed = 0
        self._rejected = 0

    async def call(self, func: Callable[[], Any]) -> Result[Any, ReliabilityError]:
        """
        Invoke ``func`` unless the circuit is open. Awaitable results
        are awaited.

        Returns:
            Ok(value), Err(circuit_open) when short-circuited, or
            Err(call_failed) carrying the raised exception
        """
        self._total += 1
        if self.state is CircuitState.OPEN:
            self._rejected += 1
            return Err(ReliabilityError.circuit_open(
                circuit_name=self._name,
                failure_count=self._consecutive_failures,
                retry_after_seconds=int(self._remaining_open_seconds()),
            ))

        try:
            value = func()
            if inspect.isawaitable(value):
                value = await value
        except Exception as e:
            self._record_failure()
            return Err(ReliabilityError.call_failed(self._name, cause=e))

        self._record_success()
        return Ok(value)

    def _record_success(self) -> None:
        self._consecutive_failures = 0
        if self._state is CircuitState.HALF_OPEN:
            self._half_open_successes += 1
            if self._half_open_successes >= self._success_threshold:
                self._move_to(CircuitState.CLOSED)

    def _record_failure(self) -> None:
        self._failed += 1
        self._consecutive_failures += 1
        if self._state is CircuitState.HALF_OPEN:
            self._move_to(CircuitState.OPEN)
        elif self._consecutive_failures >= self._failure_threshold:
            self._move_to(CircuitState.OPEN)

    def _remaining_open_seconds(self) -> float:
        if self._opened_at is None:
            return 0.0
        return max(0.0, self._timeout_seconds - (self._clock() - self._opened_at))

    def _move_to(self, state: CircuitState) -> None:
        previous, self._state = self._state, state
        if state is CircuitState.OPEN:
            self._opened_at = self._clock()
            logger.warning(
                f"Circuit '{self._name}' opened after "
                f"{self._consecutive_failures} consecutive failures",
                extra={"circuit": self._name},
            )
            return

        self._half_open_successes = 0
        if state is CircuitState.CLOSED:
            self._opened_at = None
            self._consecutive_failures = 0
        logger.info(
            f"Circuit '{self._name}': {previous.value} -> {state.value}",
            extra={"circuit": self._name},
        )

    def force_open(self) -> None:
        self._move_to(CircuitState.OPEN)

    def force_close(self) -> None:
        self._move_to(CircuitState.CLOSED)

    @property
    def name(self) -> str:
        return self._name

    @property
    def state(self) -> CircuitState:
        """Current state; an expired OPEN circuit reports HALF_OPEN."""
        if self._state is CircuitState.OPEN and self._remaining_open_seconds() <= 0:
            self._move_to(CircuitState.HALF_OPEN)
        return self._state

    @property
    def is_closed(self) -> bool:
        return self.state is CircuitState.CLOSED

    @property
    def stats(self) -> CircuitStats:
        return CircuitStats(
            state=self.state,
            consecutive_failures=self._consecutive_failures,
            total_calls=self._total,
            failed_calls=self._failed,
            rejected_calls=self._rejected,
            opened_at=self._opened_at,
        )
