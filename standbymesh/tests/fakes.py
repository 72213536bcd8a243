"""
Test doubles shared across the suite: a manual clock, notifiers that
record or fail, and audit sinks that always fail or stall.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Optional

from standbymesh.core.errors import PersistenceError
from standbymesh.core.types import Result, Ok, Timestamp
from standbymesh.session.notifier import Notifier
from standbymesh.session.state_machine import ClientInfo, ClientSession, ClientStatus


class ManualClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start_seconds: float = 1_000.0) -> None:
        self._now = Timestamp.from_seconds(start_seconds)

    def __call__(self) -> Timestamp:
        return self._now

    def advance(self, seconds: float) -> None:
        self._now = self._now.shifted(seconds)


class RecordingNotifier:
    """Synchronous notifier that records every push."""

    def __init__(self) -> None:
        self.started = 0
        self.stopped = 0
        self.delivered: list[tuple[bytes, str]] = []

    def start_working(self) -> None:
        self.started += 1

    def stop_working(self) -> None:
        self.stopped += 1

    def deliver(self, ciphertext: bytes, sender_id: str) -> None:
        self.delivered.append((ciphertext, sender_id))


class AsyncRecordingNotifier(RecordingNotifier):
    """Coroutine-based notifier; the coordinator must await it."""

    async def start_working(self) -> None:
        self.started += 1

    async def stop_working(self) -> None:
        self.stopped += 1

    async def deliver(self, ciphertext: bytes, sender_id: str) -> None:
        self.delivered.append((ciphertext, sender_id))


class FailingNotifier:
    """Every push raises, as if the client were unreachable."""

    def __init__(self) -> None:
        self.attempts = 0

    def start_working(self) -> None:
        self.attempts += 1
        raise ConnectionError("client unreachable")

    def stop_working(self) -> None:
        self.attempts += 1
        raise ConnectionError("client unreachable")

    def deliver(self, ciphertext: bytes, sender_id: str) -> None:
        self.attempts += 1
        raise ConnectionError("client unreachable")


class FailingAuditSink:
    """Audit sink whose every write raises."""

    def __init__(self) -> None:
        self.name = "failing"
        self.attempts = 0
        self.closed = False

    async def initialize(self) -> Result[None, PersistenceError]:
        return Ok(None)

    async def close(self) -> None:
        self.closed = True

    async def _fail(self) -> None:
        self.attempts += 1
        raise OSError("disk unavailable")

    async def save_client(self, info: ClientInfo, at: datetime) -> None:
        await self._fail()

    async def update_heartbeat(self, client_id: str, at: datetime) -> None:
        await self._fail()

    async def update_status(self, client_id: str, status: ClientStatus, at: datetime) -> None:
        await self._fail()

    async def log_event(self, client_id: str, event_type: str, details: str, at: datetime) -> None:
        await self._fail()


def make_session(
    client_id: str,
    status: ClientStatus,
    registered_at: float = 1_000.0,
    sequence: int = 1,
    last_heartbeat: Optional[float] = None,
    notifier: Optional[Notifier] = None,
) -> ClientSession:
    """Build a session directly, bypassing the registry."""
    registered = Timestamp.from_seconds(registered_at)
    return ClientSession(
        client_id=client_id,
        status=status,
        is_standby=status is ClientStatus.STANDBY,
        last_heartbeat=(
            Timestamp.from_seconds(last_heartbeat)
            if last_heartbeat is not None else registered
        ),
        registered_at=registered,
        sequence=sequence,
        notifier=notifier or RecordingNotifier(),
    )


class StalledAuditSink:
    """Audit sink whose writes block until ``release`` is set."""

    def __init__(self) -> None:
        self.name = "stalled"
        self.release = asyncio.Event()
        self.writes_started = 0
        self.writes_completed = 0
        self.closed = False

    async def initialize(self) -> Result[None, PersistenceError]:
        return Ok(None)

    async def close(self) -> None:
        self.closed = True

    async def _stall(self) -> None:
        self.writes_started += 1
        await self.release.wait()
        self.writes_completed += 1

    async def save_client(self, info: ClientInfo, at: datetime) -> None:
        await self._stall()

    async def update_heartbeat(self, client_id: str, at: datetime) -> None:
        await self._stall()

    async def update_status(self, client_id: str, status: ClientStatus, at: datetime) -> None:
        await self._stall()

    async def log_event(self, client_id: str, event_type: str, details: str, at: datetime) -> None:
        await self._stall()
