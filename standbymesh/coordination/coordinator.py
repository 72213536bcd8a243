"""
Coordinator: Composition Root of the StandbyMesh Service

Owns one of each component and exposes the client-facing operations:

    RegisterClient    register_client(client_id, is_standby, notifier) -> str
    SendHeartbeat     send_heartbeat(client_id)
    UnregisterClient  unregister_client(client_id)
    RelayMessage      relay_message(sender_id, receiver_id, ciphertext) -> bytes
    ListClients       list_clients() -> list[ClientInfo]
    SimulateFailure   simulate_failure(client_id)

Monitor Cycle:
    Every check interval, under the registry lock: scan for expired
    sessions, promote a standby for each dead WORKING session, and pop
    every dead entry. After the lock is released: push start_working()
    to promoted clients, submit audit records, notify listeners and
    log the fleet status.

Failure Policy:
    Nothing raised by a notifier, the audit sink or a listener reaches
    an RPC caller or stops the monitor. Unknown ids are logged only.
    A graceful unregister never triggers promotion; only heartbeat
    timeouts do.

Usage:
    async with Coordinator(config) as coordinator:
        print(await coordinator.register_client("C1", False, notifier))
        await coordinator.send_heartbeat("C1")
"""

from __future__ import annotations

import asyncio
import inspect
from contextlib import suppress
from typing import Any, Optional

from standbymesh.core import constants as C
from standbymesh.core.config import StandbyMeshConfig
from standbymesh.core.errors import CoordinationError
from standbymesh.core.types import Clock, Timestamp
from standbymesh.observability.logging import StructuredLogger
from standbymesh.observability.metrics import CoordinatorMetrics
from standbymesh.security.codec import CryptoCodec
from standbymesh.session.notifier import Notifier
from standbymesh.session.registry import SessionRegistry
from standbymesh.session.state_machine import ClientInfo, ClientStatus
from standbymesh.audit.dispatcher import AuditDispatcher
from standbymesh.audit.sinks import AuditSink, create_audit_sink
from standbymesh.coordination.events import (
    CoordinatorEvent,
    CoordinatorEventKind,
    EventListener,
    FleetHealth,
    FleetSummary,
    MonitorCycleReport,
)
from standbymesh.coordination.failover import FailoverController, PromotionDecision
from standbymesh.coordination.monitor import (
    HeartbeatMonitor,
    TimedOutSession,
    run_periodically,
)
from standbymesh.coordination.relay import MessageRelay

logger = StructuredLogger(__name__)


class Coordinator:
    """
    Fault-tolerant session coordinator.

    Args:
        config: Root configuration (defaults apply when omitted);
            rejected with ValueError if it fails ``validate()``
        audit_sink: Explicit sink; otherwise built from ``config.audit``
        clock: Monotonic clock for session liveness (tests inject one)
        metrics: Shared metric set; a private one is created if omitted
    """

    __slots__ = (
        "_config", "_metrics", "_registry", "_codec", "_audit",
        "_monitor", "_failover", "_relay", "_listeners", "_monitor_task",
    )

    def __init__(
        self,
        config: Optional[StandbyMeshConfig] = None,
        audit_sink: Optional[AuditSink] = None,
        clock: Optional[Clock] = None,
        metrics: Optional[CoordinatorMetrics] = None,
    ) -> None:
        self._config = config or StandbyMeshConfig()
        validation = self._config.validate()
        if validation.is_err():
            raise ValueError(f"Invalid coordinator configuration: {validation.error}")

        self._metrics = metrics or CoordinatorMetrics()
        self._registry = SessionRegistry(clock=clock)
        self._codec = CryptoCodec.from_config(self._config.crypto)

        sink = audit_sink or create_audit_sink(self._config.audit)
        self._audit = AuditDispatcher.from_config(sink, self._config.audit, self._metrics)

        self._monitor = HeartbeatMonitor(self._config.heartbeat.timeout_seconds)
        self._failover = FailoverController(self._audit, self._metrics)
        self._relay = MessageRelay(self._registry, self._audit, self._metrics)
        self._listeners: list[EventListener] = []
        self._monitor_task: Optional[asyncio.Task] = None

    # =========================================================================
    # LIFECYCLE
    # =========================================================================
    async def start(self) -> None:
        """Start the audit pipeline and the periodic heartbeat monitor."""
        if self.is_running:
            return
        await self._audit.start()
        hb = self._config.heartbeat
        self._monitor_task = asyncio.create_task(
            run_periodically(hb.check_interval_seconds, self.run_monitor_cycle, "heartbeat-monitor"),
            name="heartbeat-monitor",
        )
        logger.info(
            "Coordinator started",
            check_interval_seconds=hb.check_interval_seconds,
            timeout_seconds=hb.timeout_seconds,
            audit_sink=self._audit.sink.name,
        )

    async def stop(self) -> None:
        """Stop the monitor, then drain and close the audit pipeline."""
        if self._monitor_task is not None:
            self._monitor_task.cancel()
            with suppress(asyncio.CancelledError):
                await self._monitor_task
            self._monitor_task = None
        await self._audit.stop()
        logger.info("Coordinator stopped")

    async def __aenter__(self) -> Coordinator:
        await self.start()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.stop()

    @property
    def is_running(self) -> bool:
        return self._monitor_task is not None and not self._monitor_task.done()

    # =========================================================================
    # CLIENT OPERATIONS
    # =========================================================================
    async def register_client(
        self,
        client_id: str,
        is_standby: bool,
        notifier: Notifier,
    ) -> str:
        """Register or reconnect a client. Returns the status line for the caller."""
        result = await self._registry.register(client_id, is_standby, notifier)
        if result.is_err():
            error = result.error
            logger.warning(
                f"Registration failed for {client_id!r}: {error.message}",
                error_id=error.error_id,
            )
            self._metrics.registrations.inc(kind="rejected")
            return f"Registration failed: {error.message}"

        outcome = result.unwrap()
        status = outcome.status.value

        if outcome.created:
            logger.info(f"{client_id} registered as {status}", client_id=client_id)
            self._metrics.registrations.inc(kind="new")
            self._audit.save_client(outcome.info)
            if outcome.status is ClientStatus.WORKING and not outcome.activated:
                self._metrics.delivery_failures.inc(operation="start_working")
            await self._report_fleet_status()
        else:
            logger.info(f"{client_id} reconnected ({status})", client_id=client_id)
            self._metrics.registrations.inc(kind="reconnect")
            self._audit.log_event(
                client_id, C.EVENT_CLIENT_RECONNECTED, f"Client reconnected as {status}",
            )

        return outcome.message

    async def send_heartbeat(self, client_id: str) -> None:
        if not await self._registry.touch(client_id):
            miss = CoordinationError.unknown_client(client_id, "Heartbeat")
            logger.warning(miss.message, client_id=client_id)
            self._metrics.heartbeats.inc(result="unknown")
            return

        logger.debug(f"{client_id} alive", client_id=client_id)
        self._metrics.heartbeats.inc(result="ok")
        self._audit.update_heartbeat(client_id)

    async def unregister_client(self, client_id: str) -> None:
        """Graceful shutdown. Never triggers promotion."""
        info = await self._registry.remove(client_id)
        if info is None:
            miss = CoordinationError.unknown_client(client_id, "Unregister")
            logger.warning(miss.message, client_id=client_id)
            return

        logger.info(
            f"{client_id} unregistered (graceful shutdown)",
            client_id=client_id,
            previous_status=info.status.value,
        )
        self._audit.update_status(client_id, ClientStatus.DEAD)
        self._audit.log_event(
            client_id, C.EVENT_CLIENT_UNREGISTERED, "Client gracefully disconnected",
        )
        await self._report_fleet_status()

    async def relay_message(self, sender_id: str, receiver_id: str, ciphertext: bytes) -> bytes:
        return await self._relay.relay(sender_id, receiver_id, ciphertext)

    async def list_clients(self) -> list[ClientInfo]:
        return await self._registry.snapshot()

    async def simulate_failure(self, client_id: str) -> Optional[MonitorCycleReport]:
        """
        Backdate a client's heartbeat past the timeout and run a monitor
        pass immediately. Returns None for unknown ids.
        """
        hb = self._config.heartbeat
        backdate = hb.timeout_seconds + hb.simulated_failure_margin_seconds

        dead: list[TimedOutSession] = []
        decisions: list[PromotionDecision] = []
        async with self._registry.exclusive():
            found = self._registry.backdate_locked(client_id, backdate)
            if found:
                dead, decisions = self._cycle_locked(self._registry.now())

        if not found:
            miss = CoordinationError.unknown_client(client_id, "SimulateFailure")
            logger.warning(miss.message, client_id=client_id)
            return None

        logger.warning(f"Forcing failure for {client_id}", client_id=client_id)
        self._audit.log_event(
            client_id, C.EVENT_FAILURE_SIMULATED, "Manual failure simulation triggered",
        )
        return await self._finish_cycle(dead, decisions)

    # =========================================================================
    # MONITOR CYCLE
    # =========================================================================
    async def run_monitor_cycle(self) -> MonitorCycleReport:
        """One scan-then-act pass over the registry."""
        with self._metrics.monitor_cycle.time():
            async with self._registry.exclusive():
                dead, decisions = self._cycle_locked(self._registry.now())
            return await self._finish_cycle(dead, decisions)

    def _cycle_locked(
        self,
        now: Timestamp,
    ) -> tuple[list[TimedOutSession], list[PromotionDecision]]:
        registry = self._registry
        dead = self._monitor.scan(registry.sessions_locked(), now)

        decisions: list[PromotionDecision] = []
        for timed_out in dead:
            if timed_out.was_working:
                decisions.append(
                    self._failover.promote_locked(registry.sessions_locked(), timed_out.client_id)
                )
            registry.pop_locked(timed_out.client_id)

        return dead, decisions

    async def _finish_cycle(
        self,
        dead: list[TimedOutSession],
        decisions: list[PromotionDecision],
    ) -> MonitorCycleReport:
        if not dead:
            return MonitorCycleReport()

        promoted_by_failed = {d.failed_id: d.promoted_id for d in decisions}

        for timed_out in dead:
            client_id = timed_out.client_id
            role = timed_out.previous_status.value
            logger.warning(
                f"{client_id} DEAD (no heartbeat for {timed_out.elapsed_seconds:.0f}s)",
                client_id=client_id,
                previous_status=role,
            )
            self._metrics.timeouts.inc(role=role.lower())
            self._audit.update_status(client_id, ClientStatus.DEAD)
            self._audit.log_event(
                client_id,
                C.EVENT_CLIENT_TIMEOUT,
                f"No heartbeat for {timed_out.elapsed_seconds:.0f} seconds",
            )
            if timed_out.was_working:
                logger.warning(
                    f"Working client {client_id} failed - initiating failover",
                    client_id=client_id,
                )
            await self._emit(CoordinatorEvent(
                kind=CoordinatorEventKind.CLIENT_TIMEOUT,
                client_id=client_id,
                related_id=promoted_by_failed.get(client_id),
                details={
                    "previous_status": role,
                    "elapsed_seconds": round(timed_out.elapsed_seconds, 3),
                },
            ))

        promotions: list[tuple[str, str]] = []
        exhausted: list[str] = []
        for decision in decisions:
            await self._failover.complete(decision)
            if decision.exhausted:
                exhausted.append(decision.failed_id)
                await self._emit(CoordinatorEvent(
                    kind=CoordinatorEventKind.REDUNDANCY_EXHAUSTED,
                    client_id=decision.failed_id,
                ))
            else:
                promotions.append((decision.failed_id, decision.promoted_id))
                await self._emit(CoordinatorEvent(
                    kind=CoordinatorEventKind.PROMOTED,
                    client_id=decision.promoted_id,
                    related_id=decision.failed_id,
                ))

        await self._report_fleet_status()

        return MonitorCycleReport(
            timed_out=tuple(t.client_id for t in dead),
            promotions=tuple(promotions),
            exhausted=tuple(exhausted),
        )

    # =========================================================================
    # FLEET STATUS
    # =========================================================================
    async def fleet_summary(self) -> FleetSummary:
        counts = await self._registry.status_counts()
        return FleetSummary(
            total=sum(counts.values()),
            working=counts[ClientStatus.WORKING],
            standby=counts[ClientStatus.STANDBY],
        )

    async def _report_fleet_status(self) -> FleetSummary:
        summary = await self.fleet_summary()
        self._metrics.sessions.set(summary.working, status=ClientStatus.WORKING.value)
        self._metrics.sessions.set(summary.standby, status=ClientStatus.STANDBY.value)

        fields = {
            "total": summary.total,
            "working": summary.working,
            "standby": summary.standby,
            "health": summary.health.value,
        }
        logger.info(f"System status: {summary.describe()}", **fields)
        if summary.health is FleetHealth.CRITICAL:
            logger.critical("No working clients", **fields)
        elif summary.health is FleetHealth.LOW_REDUNDANCY:
            logger.warning("Low redundancy - consider adding standby clients", **fields)
        return summary

    # =========================================================================
    # LISTENERS
    # =========================================================================
    def add_listener(self, listener: EventListener) -> None:
        """Subscribe to coordinator events. Sync or async callables."""
        self._listeners.append(listener)

    def remove_listener(self, listener: EventListener) -> None:
        with suppress(ValueError):
            self._listeners.remove(listener)

    async def _emit(self, event: CoordinatorEvent) -> None:
        for listener in list(self._listeners):
            try:
                outcome = listener(event)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception as e:
                logger.error(
                    f"Event listener failed for {event.kind.value}: {e}",
                    client_id=event.client_id,
                )

    # =========================================================================
    # ACCESSORS
    # =========================================================================
    @property
    def config(self) -> StandbyMeshConfig:
        return self._config

    @property
    def codec(self) -> CryptoCodec:
        """Codec configured with the fleet's shared key material."""
        return self._codec

    @property
    def registry(self) -> SessionRegistry:
        return self._registry

    @property
    def audit(self) -> AuditDispatcher:
        return self._audit

    @property
    def metrics(self) -> CoordinatorMetrics:
        return self._metrics
