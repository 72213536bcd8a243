"""
Heartbeat Monitor: Timeout Detection

The scan is stateless and runs under the registry lock. It marks every
expired session DEAD before the caller acts on any of them, so a standby
that is itself about to time out is never chosen for promotion in the
same pass.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable

from standbymesh.core.types import Timestamp
from standbymesh.session.state_machine import (
    ClientInfo,
    ClientSession,
    ClientStatus,
    TRIGGER_TIMEOUT,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TimedOutSession:
    """A session the scan just marked DEAD."""

    client_id: str
    previous_status: ClientStatus
    elapsed_seconds: float
    info: ClientInfo

    @property
    def was_working(self) -> bool:
        return self.previous_status is ClientStatus.WORKING


class HeartbeatMonitor:
    """
    Declares sessions dead after ``timeout_seconds`` of silence.

    Usage:
        monitor = HeartbeatMonitor(timeout_seconds=30.0)
        async with registry.exclusive():
            dead = monitor.scan(registry.sessions_locked(), registry.now())
    """

    __slots__ = ("_timeout_seconds",)

    def __init__(self, timeout_seconds: float) -> None:
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")
        self._timeout_seconds = timeout_seconds

    @property
    def timeout_seconds(self) -> float:
        return self._timeout_seconds

    def is_expired(self, session: ClientSession, now: Timestamp) -> bool:
        return session.last_heartbeat.seconds_until(now) > self._timeout_seconds

    def scan(
        self,
        sessions: Iterable[ClientSession],
        now: Timestamp,
    ) -> list[TimedOutSession]:
        """Mark expired sessions DEAD and return them in scan order."""
        dead: list[TimedOutSession] = []
        for session in sessions:
            if session.status is ClientStatus.DEAD:
                continue
            elapsed = session.last_heartbeat.seconds_until(now)
            if elapsed <= self._timeout_seconds:
                continue

            previous = session.status
            info = session.info(now)
            session.apply(TRIGGER_TIMEOUT)
            dead.append(TimedOutSession(
                client_id=session.client_id,
                previous_status=previous,
                elapsed_seconds=elapsed,
                info=info,
            ))
        return dead


async def run_periodically(
    interval_seconds: float,
    fn: Callable[[], Awaitable[Any]],
    name: str = "periodic",
) -> None:
    """
    Call ``fn`` every ``interval_seconds`` until cancelled.

    A failing iteration is logged and the loop keeps going.
    """
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await fn()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception(f"{name} iteration failed: {e}", extra={"task": name})
