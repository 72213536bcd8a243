"""
Session Registry: Authoritative In-Memory Client Map

Single source of truth for every registered client. Provides:
- Idempotent registration with reconnect semantics
- Heartbeat timestamp refresh
- Graceful removal
- Consistent, ordered snapshots

Concurrency Model:
    One asyncio.Lock guards every read-modify-write sequence on the
    map. Multi-step operations (a monitor cycle, a failover decision)
    hold it through ``exclusive()`` and use the ``*_locked`` helpers.
    Notifier pushes are never made while the lock is held.

Ordering:
    Snapshots are ordered by (registered_at, sequence) ascending so
    that listings are deterministic and match failover priority.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional

from standbymesh.core.types import Result, Ok, Err, Timestamp, Clock
from standbymesh.core.errors import CoordinationError
from standbymesh.session.notifier import Notifier, invoke_notifier
from standbymesh.session.state_machine import (
    ClientInfo,
    ClientSession,
    ClientStatus,
    TRIGGER_HEARTBEAT,
    TRIGGER_RECONNECT,
    TRIGGER_UNREGISTER,
)

logger = logging.getLogger(__name__)


# =============================================================================
# REGISTRATION OUTCOME
# =============================================================================
@dataclass(frozen=True, slots=True)
class RegistrationOutcome:
    """Result of a successful RegisterClient call."""

    info: ClientInfo
    created: bool
    activated: bool = False  # start_working() delivered to a new working client

    @property
    def client_id(self) -> str:
        return self.info.client_id

    @property
    def status(self) -> ClientStatus:
        return self.info.status

    @property
    def message(self) -> str:
        """Human-readable status line returned to the registering client."""
        return f"Registration successful - {self.client_id} is now {self.status.value}"


# =============================================================================
# SESSION REGISTRY
# =============================================================================
class SessionRegistry:
    """
    In-memory client session registry.

    Usage:
        registry = SessionRegistry()

        result = await registry.register("C1", False, notifier)
        if result.is_ok():
            print(result.unwrap().message)

        await registry.touch("C1")
        clients = await registry.snapshot()

    Thread Safety:
        All public coroutines are async-safe via the internal lock.
        ``*_locked`` helpers must only be called inside ``exclusive()``.
    """

    __slots__ = ("_sessions", "_lock", "_clock", "_sequence")

    def __init__(self, clock: Optional[Clock] = None) -> None:
        self._sessions: dict[str, ClientSession] = {}
        self._lock = asyncio.Lock()
        self._clock: Clock = clock or Timestamp.monotonic
        self._sequence = 0

    def now(self) -> Timestamp:
        """Current reading of the registry clock."""
        return self._clock()

    # -------------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------------
    async def register(
        self,
        client_id: str,
        is_standby: bool,
        notifier: Notifier,
    ) -> Result[RegistrationOutcome, CoordinationError]:
        """
        Register a client or refresh an existing registration.

        Unknown id: a new session is created as STANDBY or WORKING.
        Known id: the notifier and heartbeat are refreshed; status,
        standby intent and registered_at are left untouched.

        A newly created WORKING session receives start_working() after
        the lock is released. Delivery failures are logged only.
        """
        if not isinstance(client_id, str) or not client_id.strip():
            return Err(CoordinationError.invalid_registration(
                client_id, "client id must be a non-empty string",
            ))
        if notifier is None or not isinstance(notifier, Notifier):
            return Err(CoordinationError.invalid_registration(
                client_id,
                "callback handle must provide start_working, stop_working and deliver",
            ))

        async with self._lock:
            now = self._clock()
            session = self._sessions.get(client_id)

            if session is not None:
                session.apply(TRIGGER_RECONNECT)
                session.notifier = notifier
                session.last_heartbeat = now
                created = False
            else:
                self._sequence += 1
                session = ClientSession(
                    client_id=client_id,
                    status=ClientStatus.STANDBY if is_standby else ClientStatus.WORKING,
                    is_standby=bool(is_standby),
                    last_heartbeat=now,
                    registered_at=now,
                    sequence=self._sequence,
                    notifier=notifier,
                )
                self._sessions[client_id] = session
                created = True

            info = session.info(now)

        activated = False
        if created and info.status is ClientStatus.WORKING:
            delivery = await invoke_notifier(
                client_id, "start_working", notifier.start_working,
            )
            activated = delivery.is_ok()

        return Ok(RegistrationOutcome(info=info, created=created, activated=activated))

    # -------------------------------------------------------------------------
    # Heartbeats and removal
    # -------------------------------------------------------------------------
    async def touch(self, client_id: str, now: Optional[Timestamp] = None) -> bool:
        """
        Refresh a session's heartbeat.

        Returns False, without mutation, for unknown ids.
        """
        async with self._lock:
            session = self._sessions.get(client_id)
            if session is None:
                return False
            session.apply(TRIGGER_HEARTBEAT)
            session.last_heartbeat = now or self._clock()
            return True

    async def backdate(self, client_id: str, seconds: float) -> bool:
        """Move a session's last heartbeat ``seconds`` into the past."""
        async with self._lock:
            return self.backdate_locked(client_id, seconds)

    async def remove(self, client_id: str) -> Optional[ClientInfo]:
        """
        Remove a session (graceful unregister).

        The session passes through DEAD on the way out; the returned
        info carries the status it had before removal.
        """
        async with self._lock:
            session = self._sessions.pop(client_id, None)
            if session is None:
                return None
            info = session.info(self._clock())
            session.apply(TRIGGER_UNREGISTER)
            return info

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------
    async def get(self, client_id: str) -> Optional[ClientInfo]:
        async with self._lock:
            session = self._sessions.get(client_id)
            return session.info(self._clock()) if session else None

    async def notifier_for(self, client_id: str) -> Optional[Notifier]:
        """Callback handle of a live session, for out-of-lock delivery."""
        async with self._lock:
            session = self._sessions.get(client_id)
            return session.notifier if session else None

    async def snapshot(self) -> list[ClientInfo]:
        """Consistent copy of all sessions, oldest registration first."""
        async with self._lock:
            now = self._clock()
            return [s.info(now) for s in self.sessions_locked()]

    async def status_counts(self) -> dict[ClientStatus, int]:
        async with self._lock:
            counts = {status: 0 for status in ClientStatus}
            for session in self._sessions.values():
                counts[session.status] += 1
            return counts

    # -------------------------------------------------------------------------
    # Exclusive section for multi-step operations
    # -------------------------------------------------------------------------
    @asynccontextmanager
    async def exclusive(self) -> AsyncIterator[SessionRegistry]:
        """Hold the registry lock across several ``*_locked`` calls."""
        async with self._lock:
            yield self

    def sessions_locked(self) -> list[ClientSession]:
        """Live session objects ordered by failover priority."""
        return sorted(self._sessions.values(), key=lambda s: s.failover_key)

    def pop_locked(self, client_id: str) -> Optional[ClientSession]:
        return self._sessions.pop(client_id, None)

    def backdate_locked(self, client_id: str, seconds: float) -> bool:
        session = self._sessions.get(client_id)
        if session is None:
            return False
        session.last_heartbeat = self._clock().shifted(-seconds)
        return True
