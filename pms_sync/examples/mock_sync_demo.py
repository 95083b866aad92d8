#!/usr/bin/env python3
"""
Example: Syncing a hotel against the mock PMS

This script demonstrates how to:
1. Build a registry of adapters
2. Run bulk syncs for every supported entity type
3. Ingest a webhook booking update
4. Observe emitted events
"""

import asyncio

from pms_sync import (
    AdapterRegistry,
    InMemoryRecordStore,
    MockAdapter,
    Reconciler,
    SyncOrchestrator,
)
from pms_sync.notifications import RecordingNotifier
from pms_sync.utils.logging import configure_logging


async def main():
    """Demonstrate a full sync cycle"""
    configure_logging("INFO", json_logs=False)

    print("=== PMS Sync Demo ===\n")

    registry = AdapterRegistry({"demo": MockAdapter(key="demo")})
    bookings = InMemoryRecordStore()
    notifier = RecordingNotifier()
    orchestrator = SyncOrchestrator(
        registry,
        Reconciler(bookings, InMemoryRecordStore(), InMemoryRecordStore()),
        notifier,
    )

    # 1. Bulk sync everything the provider supports
    summaries = await orchestrator.sync_all("hotel-demo", "demo")
    for entity_type, summary in summaries.items():
        print(f"  {entity_type.value}: processed={summary.processed} failed={summary.failed}")

    # 2. A second pass is a no-op for unchanged records
    await orchestrator.sync_bookings("hotel-demo", "demo")
    print(f"\nBooking writes after two passes: {bookings.create_calls} creates, {bookings.update_calls} updates")

    # 3. Webhook update for one booking
    result = await orchestrator.ingest_webhook(
        "hotel-demo",
        "demo",
        {
            "booking": {
                "id": "mock-1",
                "status": "checked_in",
                "guest": {"name": "Ava Rivera"},
                "stay": {"checkIn": "2025-03-01", "checkOut": "2025-03-03", "room": "1205"},
                "totals": {"amount": 250.35, "currency": "USD"},
                "guests": 2,
            },
            "metadata": {"correlationId": "demo-webhook-1"},
        },
    )
    print(f"\nWebhook changed fields: {sorted(result.changed)}")

    # 4. Events
    print("\nEmitted events:")
    for name in notifier.names():
        print(f"  - {name}")

    await registry.aclose()


if __name__ == "__main__":
    asyncio.run(main())
