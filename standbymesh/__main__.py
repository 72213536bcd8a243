#!/usr/bin/env python3
"""
StandbyMesh Coordinator

Local demo: one working and one standby client in the same process,
an encrypted message between them, and a forced failover.

Usage:
    python -m standbymesh

    # Or with a SQLite audit trail
    STANDBYMESH_AUDIT_BACKEND=sqlite python -m standbymesh
"""

from __future__ import annotations

import asyncio
import sys

from standbymesh.core.config import StandbyMeshConfig
from standbymesh.coordination.coordinator import Coordinator
from standbymesh.coordination.events import CoordinatorEvent
from standbymesh.observability.logging import setup_logging, LogLevel
from standbymesh.client.runner import ClientRunner, ReceivedMessage


def on_message(message: ReceivedMessage) -> None:
    print(f"   message from {message.sender_id}: {message.text!r}")


def on_event(event: CoordinatorEvent) -> None:
    related = f" ({event.related_id})" if event.related_id else ""
    print(f"   event: {event.kind.value} {event.client_id}{related}")


async def demo_local_mode() -> None:
    print("\n" + "=" * 60)
    print("StandbyMesh Coordinator - Local Demo")
    print("=" * 60 + "\n")

    config_result = StandbyMeshConfig.from_env()
    if config_result.is_err():
        print(f"Configuration error: {config_result.error}")
        sys.exit(1)

    config = config_result.unwrap()

    validation = config.validate()
    if validation.is_err():
        print(f"Validation error: {validation.error}")
        sys.exit(1)

    obs = config.observability
    setup_logging(LogLevel.parse(obs.log_level), json_output=obs.log_json)

    print("✓ Configuration loaded and validated")
    print(f"  Heartbeat timeout: {config.heartbeat.timeout_seconds}s")
    print(f"  Audit backend: {config.audit.backend}")

    async with Coordinator(config) as coordinator:
        coordinator.add_listener(on_event)
        c1 = ClientRunner(coordinator, "C1", is_standby=False, on_message=on_message)
        c2 = ClientRunner(coordinator, "C2", is_standby=True, on_message=on_message)

        print("\n--- Registration ---\n")
        print(f"1. {await c1.start()}")
        print(f"2. {await c2.start()}")

        print("\n--- Heartbeats ---\n")
        await c1.beat()
        await c2.beat()
        print(f"3. Heartbeats sent for C1 and C2 (every {config.heartbeat.send_interval_seconds}s)")

        print("\n--- Encrypted relay ---\n")
        echoed = await c1.send("C2", "Hello from C1")
        print(f"4. Relayed {len(echoed)} bytes (C2 received {len(c2.received)})")

        print("\n--- Failover ---\n")
        c1.pause_heartbeats()
        report = await coordinator.simulate_failure("C1")
        if report is not None:
            print(f"5. Timed out: {list(report.timed_out)}  promotions: {list(report.promotions)}")
        print(f"   C2 working: {c2.is_working}")

        print("\n--- Clients ---\n")
        for info in await coordinator.list_clients():
            print(
                f"   {info.client_id}: {info.status.value} "
                f"(standby={info.is_standby}, age={info.heartbeat_age_seconds:.1f}s)"
            )

        summary = await coordinator.fleet_summary()
        print(f"\n6. {summary.describe()}")

        await c2.stop()

        await coordinator.audit.drain()
        print("\n7. Metrics:")
        for line in coordinator.metrics.collector.export_prometheus().splitlines():
            if not line.startswith("#") and "_bucket" not in line:
                print(f"   {line}")

    print("\n✓ Demo complete")
    print("=" * 60 + "\n")


async def main() -> None:
    """Main entry point."""
    try:
        await demo_local_mode()
    except KeyboardInterrupt:
        print("\nInterrupted")


def run() -> None:
    """Synchronous entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
