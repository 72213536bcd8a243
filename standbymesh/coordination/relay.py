"""
Message Relay: Fire-and-Forget Forwarding of Encrypted Payloads

The relay never decrypts, never queues and never retries. The sender
always gets its own ciphertext back, whether or not anyone received it.
"""

from __future__ import annotations

import logging
from typing import Optional

from standbymesh.core import constants as C
from standbymesh.core.errors import CoordinationError
from standbymesh.observability.metrics import CoordinatorMetrics
from standbymesh.session.notifier import invoke_notifier
from standbymesh.session.registry import SessionRegistry
from standbymesh.audit.dispatcher import AuditDispatcher

logger = logging.getLogger(__name__)


class MessageRelay:
    """
    Forwards ciphertext from one client to another.

    Usage:
        relay = MessageRelay(registry, audit, metrics)
        echoed = await relay.relay("C1", "C2", ciphertext)
    """

    __slots__ = ("_registry", "_audit", "_metrics")

    def __init__(
        self,
        registry: SessionRegistry,
        audit: Optional[AuditDispatcher] = None,
        metrics: Optional[CoordinatorMetrics] = None,
    ) -> None:
        self._registry = registry
        self._audit = audit
        self._metrics = metrics

    async def relay(self, sender_id: str, receiver_id: str, ciphertext: bytes) -> bytes:
        """Deliver to ``receiver_id`` if registered; always echo the input."""
        notifier = await self._registry.notifier_for(receiver_id)

        if notifier is None:
            miss = CoordinationError.unknown_client(receiver_id, "RelayMessage")
            logger.warning(
                f"{miss.message}; message from {sender_id} dropped",
                extra={"sender_id": sender_id, "receiver_id": receiver_id},
            )
            self._count("unknown_receiver")
            if self._audit is not None:
                self._audit.log_event(
                    sender_id,
                    C.EVENT_MESSAGE_UNDELIVERED,
                    f"Receiver {receiver_id} not found",
                )
            return ciphertext

        delivery = await invoke_notifier(
            receiver_id,
            "deliver",
            lambda: notifier.deliver(ciphertext, sender_id),
        )
        if delivery.is_err():
            self._count("failed")
            if self._metrics is not None:
                self._metrics.delivery_failures.inc(operation="deliver")
            return ciphertext

        self._count("delivered")
        logger.debug(
            f"Relayed {len(ciphertext)} bytes {sender_id} -> {receiver_id}",
            extra={"sender_id": sender_id, "receiver_id": receiver_id},
        )
        if self._audit is not None:
            self._audit.log_event(
                sender_id, C.EVENT_MESSAGE_SENT,
                f"Encrypted message sent to {receiver_id}",
            )
            self._audit.log_event(
                receiver_id, C.EVENT_MESSAGE_RECEIVED,
                f"Encrypted message received from {sender_id}",
            )
        return ciphertext

    def _count(self, outcome: str) -> None:
        if self._metrics is not None:
            self._metrics.relays.inc(outcome=outcome)
