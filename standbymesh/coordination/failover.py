"""
Failover Controller: Standby Promotion

Selection Policy:
    Among STANDBY sessions, the one with the smallest
    (registered_at, sequence) wins: oldest standby first, and the
    first registered on identical timestamps. Given the same registry
    contents the choice is always the same.

Two Halves:
    promote_locked()  runs under the registry lock; mutates the session
    complete()        runs after the lock is released; pushes
                      start_working() once, writes audit, bumps metrics

A failed start_working() push is logged and never retried. The
promoted session stays WORKING and its own heartbeat decides its fate.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from standbymesh.core import constants as C
from standbymesh.core.errors import FailoverError
from standbymesh.observability.metrics import CoordinatorMetrics
from standbymesh.session.notifier import Notifier, invoke_notifier
from standbymesh.session.registry import SessionRegistry
from standbymesh.session.state_machine import (
    ClientInfo,
    ClientSession,
    ClientStatus,
    TRIGGER_PROMOTE,
)
from standbymesh.audit.dispatcher import AuditDispatcher

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PromotionDecision:
    """Outcome of the locked half of a failover."""

    failed_id: str
    promoted: Optional[ClientInfo] = None
    notifier: Optional[Notifier] = None

    @property
    def exhausted(self) -> bool:
        return self.promoted is None

    @property
    def promoted_id(self) -> Optional[str]:
        return self.promoted.client_id if self.promoted else None


class FailoverController:
    """
    Promotes the oldest standby when a working client dies.

    Usage:
        controller = FailoverController(audit, metrics)
        promoted_id = await controller.promote(registry, "C1")
    """

    __slots__ = ("_audit", "_metrics")

    def __init__(
        self,
        audit: Optional[AuditDispatcher] = None,
        metrics: Optional[CoordinatorMetrics] = None,
    ) -> None:
        self._audit = audit
        self._metrics = metrics

    @staticmethod
    def select_standby(sessions: Iterable[ClientSession]) -> Optional[ClientSession]:
        candidates = [s for s in sessions if s.status is ClientStatus.STANDBY]
        if not candidates:
            return None
        return min(candidates, key=lambda s: s.failover_key)

    def promote_locked(
        self,
        sessions: Iterable[ClientSession],
        failed_id: str,
    ) -> PromotionDecision:
        """Pick and promote a standby. Caller holds the registry lock."""
        chosen = self.select_standby(sessions)
        if chosen is None:
            return PromotionDecision(failed_id=failed_id)

        transition = chosen.apply(TRIGGER_PROMOTE)
        if transition.is_err():
            # select_standby only returns STANDBY sessions
            logger.error(str(transition.error), extra={"client_id": chosen.client_id})
            return PromotionDecision(failed_id=failed_id)

        return PromotionDecision(
            failed_id=failed_id,
            promoted=chosen.info(),
            notifier=chosen.notifier,
        )

    async def complete(self, decision: PromotionDecision) -> None:
        """Deliver, audit and count a decision. Never raises."""
        if decision.exhausted:
            error = FailoverError.redundancy_exhausted(decision.failed_id)
            logger.critical(
                str(error),
                extra={"failed_id": decision.failed_id, "error_id": error.error_id},
            )
            if self._audit is not None:
                self._audit.log_event(
                    decision.failed_id,
                    C.EVENT_REDUNDANCY_EXHAUSTED,
                    error.message,
                )
            if self._metrics is not None:
                self._metrics.redundancy_exhausted.inc()
            return

        promoted_id = decision.promoted_id
        logger.info(
            f"Promoted {promoted_id} to WORKING after {decision.failed_id} failure",
            extra={"client_id": promoted_id, "failed_id": decision.failed_id},
        )

        if decision.notifier is not None:
            delivery = await invoke_notifier(
                promoted_id, "start_working", decision.notifier.start_working,
            )
            if delivery.is_err() and self._metrics is not None:
                self._metrics.delivery_failures.inc(operation="start_working")

        if self._audit is not None:
            self._audit.update_status(promoted_id, ClientStatus.WORKING)
            self._audit.log_event(
                promoted_id,
                C.EVENT_ACTIVATED_FROM_STANDBY,
                f"Activated due to {decision.failed_id} failure",
            )
        if self._metrics is not None:
            self._metrics.promotions.inc()

    async def promote(self, registry: SessionRegistry, failed_id: str) -> Optional[str]:
        """Both halves in one call; takes the registry lock itself."""
        async with registry.exclusive():
            decision = self.promote_locked(registry.sessions_locked(), failed_id)
        await self.complete(decision)
        return decision.promoted_id
