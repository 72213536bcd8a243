"""
Audit Dispatcher: Non-Blocking Queue in Front of the Audit Sink

Coordinator code paths submit records and return immediately. A single
background task drains the bounded queue into the sink, with each write
going through a circuit breaker. Nothing here ever raises into callers:

- Queue full      -> record dropped, warning logged, metric incremented
- Sink failure    -> PersistenceError logged, never retried
- Circuit open    -> write short-circuited, counted
- Sink stalled    -> drain() and stop() give up after the drain timeout

Records are timestamped with wall-clock UTC at submission, so queue lag
never skews the audit trail.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from standbymesh.core import constants as C
from standbymesh.core.config import AuditConfig
from standbymesh.core.errors import ErrorCode, PersistenceError
from standbymesh.core.types import Result, Timestamp
from standbymesh.observability.metrics import CoordinatorMetrics
from standbymesh.reliability.circuit_breaker import CircuitBreaker
from standbymesh.session.state_machine import ClientInfo, ClientStatus
from standbymesh.audit.sinks import AuditSink

logger = logging.getLogger(__name__)


OP_SAVE_CLIENT = "save_client"
OP_UPDATE_HEARTBEAT = "update_heartbeat"
OP_UPDATE_STATUS = "update_status"
OP_LOG_EVENT = "log_event"


@dataclass(frozen=True, slots=True)
class AuditRecord:
    """One pending sink call. ``args`` excludes the trailing timestamp."""

    operation: str
    client_id: str
    args: tuple[Any, ...]
    recorded_at: datetime


class AuditDispatcher:
    """
    Bounded, fire-and-forget audit pipeline.

    Usage:
        dispatcher = AuditDispatcher(InMemoryAuditSink())
        await dispatcher.start()

        dispatcher.log_event("C1", C.EVENT_CLIENT_TIMEOUT, "No heartbeat for 31.0s")

        await dispatcher.stop()  # drains before closing the sink
    """

    __slots__ = (
        "_sink", "_queue", "_capacity", "_breaker",
        "_metrics", "_worker", "_dropped", "_drain_timeout",
    )

    def __init__(
        self,
        sink: AuditSink,
        queue_max_size: int = 10_000,
        breaker: Optional[CircuitBreaker] = None,
        metrics: Optional[CoordinatorMetrics] = None,
        drain_timeout_seconds: float = C.AUDIT_DRAIN_TIMEOUT_S,
    ) -> None:
        self._sink = sink
        self._capacity = queue_max_size
        self._queue: asyncio.Queue[AuditRecord] = asyncio.Queue(maxsize=queue_max_size)
        self._breaker = breaker or CircuitBreaker(f"audit-{sink.name}")
        self._metrics = metrics
        self._worker: Optional[asyncio.Task] = None
        self._dropped = 0
        self._drain_timeout = drain_timeout_seconds

    @classmethod
    def from_config(
        cls,
        sink: AuditSink,
        config: AuditConfig,
        metrics: Optional[CoordinatorMetrics] = None,
    ) -> AuditDispatcher:
        breaker = CircuitBreaker(
            f"audit-{sink.name}",
            failure_threshold=config.breaker_failure_threshold,
            timeout_seconds=config.breaker_reset_seconds,
        )
        return cls(
            sink, config.queue_max_size, breaker, metrics,
            drain_timeout_seconds=config.drain_timeout_seconds,
        )

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------
    async def start(self) -> Result[None, PersistenceError]:
        """
        Initialize the sink and start the drain task.

        An unavailable sink is logged; the worker still runs so that
        writes fail fast through the breaker instead of piling up.
        """
        result = await self._sink.initialize()
        if result.is_err():
            logger.error(
                f"Audit sink unavailable: {result.error}",
                extra={"sink": self._sink.name},
            )
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(
                self._run(), name=f"audit-dispatcher-{self._sink.name}",
            )
        return result

    async def stop(self) -> None:
        """
        Drain pending records, stop the worker, and close the sink.

        Bounded by the drain timeout: records still queued when it
        expires are discarded so that a stalled sink cannot block
        shutdown.
        """
        drained = await self.drain()
        if self._worker is not None:
            self._worker.cancel()
            with suppress(asyncio.CancelledError):
                await self._worker
            self._worker = None
        if not drained:
            self._discard_pending()

        try:
            await asyncio.wait_for(self._sink.close(), self._drain_timeout)
        except asyncio.TimeoutError:
            logger.warning(
                f"Audit sink close timed out after {self._drain_timeout}s",
                extra={"sink": self._sink.name},
            )
        except Exception as e:
            logger.warning(f"Audit sink close failed: {e}", extra={"sink": self._sink.name})

    async def drain(self) -> bool:
        """
        Wait until every submitted record has been written or discarded.

        Returns False if the sink did not keep up within the drain
        timeout; the records are left queued.
        """
        try:
            await asyncio.wait_for(self._flush(), self._drain_timeout)
            return True
        except asyncio.TimeoutError:
            logger.warning(
                f"Audit drain timed out after {self._drain_timeout}s "
                f"with {self.pending} records pending",
                extra={"sink": self._sink.name},
            )
            return False

    async def _flush(self) -> None:
        if self._worker is not None and not self._worker.done():
            await self._queue.join()
            return
        while not self._queue.empty():
            record = self._queue.get_nowait()
            try:
                await self._write(record)
            finally:
                self._queue.task_done()

    def _discard_pending(self) -> None:
        discarded = 0
        while not self._queue.empty():
            self._queue.get_nowait()
            self._queue.task_done()
            discarded += 1
        if not discarded:
            return
        self._dropped += discarded
        if self._metrics is not None:
            self._metrics.audit_dropped.inc(discarded)
        logger.warning(
            f"Discarded {discarded} audit records at shutdown",
            extra={"sink": self._sink.name},
        )

    async def _run(self) -> None:
        while True:
            record = await self._queue.get()
            try:
                await self._write(record)
            finally:
                self._queue.task_done()

    # -------------------------------------------------------------------------
    # Submission (never blocks, never raises)
    # -------------------------------------------------------------------------
    def submit(self, record: AuditRecord) -> bool:
        """Enqueue a record. Returns False if it was dropped."""
        try:
            self._queue.put_nowait(record)
            return True
        except asyncio.QueueFull:
            self._dropped += 1
            error = PersistenceError.queue_full(self._capacity)
            logger.warning(
                str(error),
                extra={"operation": record.operation, "client_id": record.client_id},
            )
            if self._metrics is not None:
                self._metrics.audit_dropped.inc()
            return False

    def _enqueue(self, operation: str, client_id: str, *args: Any) -> bool:
        return self.submit(AuditRecord(
            operation=operation,
            client_id=client_id,
            args=args,
            recorded_at=Timestamp.now().to_datetime(),
        ))

    def save_client(self, info: ClientInfo) -> bool:
        return self._enqueue(OP_SAVE_CLIENT, info.client_id, info)

    def update_heartbeat(self, client_id: str) -> bool:
        return self._enqueue(OP_UPDATE_HEARTBEAT, client_id, client_id)

    def update_status(self, client_id: str, status: ClientStatus) -> bool:
        return self._enqueue(OP_UPDATE_STATUS, client_id, client_id, status)

    def log_event(self, client_id: str, event_type: str, details: str) -> bool:
        return self._enqueue(OP_LOG_EVENT, client_id, client_id, event_type, details)

    # -------------------------------------------------------------------------
    # Sink writes
    # -------------------------------------------------------------------------
    async def _write(self, record: AuditRecord) -> None:
        method = getattr(self._sink, record.operation)
        result = await self._breaker.call(
            lambda: method(*record.args, record.recorded_at)
        )
        if result.is_ok():
            return

        if self._metrics is not None:
            self._metrics.audit_failures.inc(operation=record.operation)

        reliability_error = result.error
        if reliability_error.code is ErrorCode.RELIABILITY_CIRCUIT_OPEN:
            logger.debug(
                f"Audit write skipped, circuit open: {record.operation}",
                extra={"client_id": record.client_id},
            )
            return

        error = PersistenceError.unavailable(
            self._sink.name, record.operation, cause=reliability_error.cause,
        )
        logger.warning(
            str(error),
            extra={"client_id": record.client_id, "operation": record.operation},
        )

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------
    @property
    def sink(self) -> AuditSink:
        return self._sink

    @property
    def breaker(self) -> CircuitBreaker:
        return self._breaker

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    @property
    def dropped(self) -> int:
        return self._dropped
