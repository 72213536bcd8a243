"""
Notifier: Per-Session Push Capability

Abstracts the coordinator -> client callback channel. The backing
transport (streaming RPC, per-client socket, pub/sub topic) is
supplied by whoever registers the client; the coordinator only sees
this protocol.

All three operations are one-way. Implementations may be plain
functions or coroutines; awaitable results are awaited.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Callable, Protocol, runtime_checkable

from standbymesh.core.types import Result, Ok, Err
from standbymesh.core.errors import DeliveryError

logger = logging.getLogger(__name__)


@runtime_checkable
class Notifier(Protocol):
    """Callback surface pushed to by the coordinator."""

    def start_working(self) -> Any:
        """Instruct the client to begin performing the fleet's task."""
        ...

    def stop_working(self) -> Any:
        """Instruct the client to stop performing the fleet's task."""
        ...

    def deliver(self, ciphertext: bytes, sender_id: str) -> Any:
        """Push an opaque encrypted payload relayed from ``sender_id``."""
        ...


async def invoke_notifier(
    client_id: str,
    operation: str,
    call: Callable[[], Any],
) -> Result[None, DeliveryError]:
    """
    Invoke one notifier operation, absorbing failures.

    A failed push never changes session state; only the heartbeat
    timeout drives DEAD transitions.
    """
    try:
        outcome = call()
        if inspect.isawaitable(outcome):
            await outcome
        return Ok(None)
    except Exception as e:
        error = DeliveryError.failed(client_id, operation, cause=e)
        logger.warning(
            f"Delivery failure: {operation} -> {client_id}: {e}",
            extra={"client_id": client_id, "operation": operation},
        )
        return Err(error)
