"""
Client Runner: The Client Side of the Heartbeat Protocol

Wraps a Coordinator for one client id and acts as that client's
Notifier:

    start()              register, then heartbeat every send interval
    send(receiver, text) encrypt and relay a message to a peer
    pause_heartbeats()   stop heartbeating while staying registered
    stop()               cancel the heartbeat task and unregister

Incoming payloads are decrypted with the coordinator's codec. A payload
that does not decrypt is logged and counted; it never raises back into
the relay.

Usage:
    async with ClientRunner(coordinator, "C1", is_standby=False) as client:
        await client.send("C2", "hello")
"""

from __future__ import annotations

import asyncio
from contextlib import suppress
from dataclasses import dataclass
from typing import Any, Callable, Optional

from standbymesh.core.errors import CodecError
from standbymesh.observability.logging import StructuredLogger
from standbymesh.security.codec import CryptoCodec
from standbymesh.coordination.coordinator import Coordinator
from standbymesh.coordination.monitor import run_periodically

logger = StructuredLogger(__name__)


@dataclass(frozen=True)
class ReceivedMessage:
    """One decrypted payload relayed from a peer."""

    sender_id: str
    text: str


MessageHandler = Callable[[ReceivedMessage], Any]


class ClientRunner:
    """
    Registers one client and keeps its heartbeat flowing.

    Args:
        coordinator: Coordinator the client talks to
        client_id: Id to register under
        is_standby: Register as a standby instead of a working client
        codec: Payload codec; defaults to the coordinator's
        send_interval_seconds: Heartbeat period; defaults to
            ``config.heartbeat.send_interval_seconds``
        on_message: Called with every decrypted message
    """

    def __init__(
        self,
        coordinator: Coordinator,
        client_id: str,
        is_standby: bool,
        codec: Optional[CryptoCodec] = None,
        send_interval_seconds: Optional[float] = None,
        on_message: Optional[MessageHandler] = None,
    ) -> None:
        self._coordinator = coordinator
        self._client_id = client_id
        self._is_standby = is_standby
        self._codec = codec if codec is not None else coordinator.codec
        self._interval = (
            send_interval_seconds
            if send_interval_seconds is not None
            else coordinator.config.heartbeat.send_interval_seconds
        )
        self._on_message = on_message
        self._heartbeat_task: Optional[asyncio.Task] = None
        self._log = logger.bind(client_id=client_id)

        self.is_working = False
        self.heartbeats_sent = 0
        self.undecryptable = 0
        self.received: list[ReceivedMessage] = []
        self.registration: Optional[str] = None

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------
    async def start(self) -> str:
        """Register with the coordinator and start heartbeating."""
        self.registration = await self._coordinator.register_client(
            self._client_id, self._is_standby, self,
        )
        self._log.info(self.registration)
        # Registration itself counts as the first heartbeat
        self.resume_heartbeats()
        return self.registration

    async def stop(self) -> None:
        """Stop heartbeating and unregister gracefully."""
        self.pause_heartbeats()
        await self._coordinator.unregister_client(self._client_id)
        self.is_working = False

    async def __aenter__(self) -> ClientRunner:
        await self.start()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.stop()

    def pause_heartbeats(self) -> None:
        """
        Stop sending heartbeats without unregistering; the coordinator
        will time the session out.
        """
        if self._heartbeat_task is None:
            return
        self._heartbeat_task.cancel()
        self._heartbeat_task = None
        self._log.warning("Heartbeats paused")

    def resume_heartbeats(self) -> None:
        if self.is_heartbeating:
            return
        self._heartbeat_task = asyncio.create_task(
            run_periodically(self._interval, self.beat, f"heartbeat-{self._client_id}"),
            name=f"heartbeat-{self._client_id}",
        )

    @property
    def is_heartbeating(self) -> bool:
        return self._heartbeat_task is not None and not self._heartbeat_task.done()

    async def beat(self) -> None:
        """Send one heartbeat now."""
        await self._coordinator.send_heartbeat(self._client_id)
        self.heartbeats_sent += 1
        self._log.debug("Heartbeat sent")

    # -------------------------------------------------------------------------
    # Messaging
    # -------------------------------------------------------------------------
    async def send(self, receiver_id: str, text: str) -> bytes:
        """Encrypt ``text`` and relay it; returns the ciphertext echoed back."""
        ciphertext = self._codec.encrypt(text)
        return await self._coordinator.relay_message(self._client_id, receiver_id, ciphertext)

    # -------------------------------------------------------------------------
    # Notifier
    # -------------------------------------------------------------------------
    def start_working(self) -> None:
        if not self.is_working:
            self._log.info("Starting work")
        self.is_working = True
        self._is_standby = False

    def stop_working(self) -> None:
        if self.is_working:
            self._log.info("Stopping work")
        self.is_working = False

    def deliver(self, ciphertext: bytes, sender_id: str) -> None:
        try:
            text = self._codec.decrypt_text(ciphertext)
        except CodecError as e:
            self.undecryptable += 1
            self._log.warning(
                f"Dropped undecryptable message from {sender_id}: {e.message}",
                sender_id=sender_id,
                error_code=e.code.value,
            )
            return

        message = ReceivedMessage(sender_id, text)
        self.received.append(message)
        self._log.info(f"Message from {sender_id}", sender_id=sender_id)
        if self._on_message is not None:
            self._on_message(message)

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------
    @property
    def client_id(self) -> str:
        return self._client_id

    @property
    def is_standby(self) -> bool:
        return self._is_standby
