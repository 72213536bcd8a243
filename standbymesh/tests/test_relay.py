"""
Unit Tests: Message Relay

Tests:
    - Echo semantics for known and unknown receivers
    - Delivery of the exact ciphertext and sender id
    - Failed deliveries are absorbed
"""

import pytest

from standbymesh.core import constants as C
from standbymesh.coordination.relay import MessageRelay
from standbymesh.tests.fakes import (
    AsyncRecordingNotifier,
    FailingNotifier,
    RecordingNotifier,
)

PAYLOAD = bytes(range(32))


class TestRelay:
    """Tests for MessageRelay.relay."""

    @pytest.mark.asyncio
    async def test_unknown_receiver_echoes_without_delivery(
        self, registry, dispatcher, sink, metrics,
    ):
        sender = RecordingNotifier()
        await registry.register("A", False, sender)
        relay = MessageRelay(registry, dispatcher, metrics)

        echoed = await relay.relay("A", "ghost", PAYLOAD)
        await dispatcher.drain()

        assert echoed == PAYLOAD
        assert sender.delivered == []
        assert metrics.relays.get(outcome="unknown_receiver") == 1
        undelivered = sink.events_of(C.EVENT_MESSAGE_UNDELIVERED)
        assert [e.client_id for e in undelivered] == ["A"]

    @pytest.mark.asyncio
    async def test_known_receiver_gets_exact_payload(self, registry, dispatcher, sink, metrics):
        receiver = RecordingNotifier()
        await registry.register("B", True, receiver)
        relay = MessageRelay(registry, dispatcher, metrics)

        echoed = await relay.relay("A", "B", PAYLOAD)
        await dispatcher.drain()

        assert echoed == PAYLOAD
        assert receiver.delivered == [(PAYLOAD, "A")]
        assert metrics.relays.get(outcome="delivered") == 1
        assert [e.client_id for e in sink.events_of(C.EVENT_MESSAGE_SENT)] == ["A"]
        assert [e.client_id for e in sink.events_of(C.EVENT_MESSAGE_RECEIVED)] == ["B"]

    @pytest.mark.asyncio
    async def test_async_receiver(self, registry):
        receiver = AsyncRecordingNotifier()
        await registry.register("B", True, receiver)

        await MessageRelay(registry).relay("A", "B", PAYLOAD)

        assert receiver.delivered == [(PAYLOAD, "A")]

    @pytest.mark.asyncio
    async def test_failed_delivery_leaves_session(self, registry, metrics):
        await registry.register("B", True, FailingNotifier())
        relay = MessageRelay(registry, metrics=metrics)

        echoed = await relay.relay("A", "B", PAYLOAD)

        assert echoed == PAYLOAD
        assert metrics.relays.get(outcome="failed") == 1
        assert metrics.delivery_failures.get(operation="deliver") == 1
        assert await registry.get("B") is not None
