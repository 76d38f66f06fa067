#!/usr/bin/env python3
"""Seed script: append sample cart events and build a read model from them.

Usage:
    TINY_ES_PATH=/path/to/data python scripts/seed.py

    # Or with default path:
    python scripts/seed.py

Run it twice: the second run replays only events newer than the
persisted snapshot version.
"""

import asyncio

from tiny_event_sourcing import EventLog, Projection, Settings, StateStore


def count_items(state: dict, event) -> dict:
    """Fold cart events into item quantities."""
    counts = dict(state)
    if event.type == "item_added":
        counts[event.item] = counts.get(event.item, 0) + event.get("quantity", 1)
    elif event.type == "item_removed":
        counts.pop(event.item, None)
    return counts


SAMPLE_EVENTS = [
    {"type": "item_added", "item": "apple", "quantity": 3},
    {"type": "item_added", "item": "pear"},
    {"type": "item_removed", "item": "apple"},
    {"type": "item_added", "item": "plum", "quantity": 2},
]


async def seed(settings: Settings) -> None:
    log = await EventLog.open(settings.log_path, poll_interval=settings.poll_interval)
    store = await StateStore.open(
        settings.snapshot_path("cart"),
        initial_state={},
        throttle_interval=settings.throttle_interval,
    )
    print(f"Loaded {len(log)} events; cart snapshot at version {store.get_version()}")

    projection = Projection(log, store, count_items)
    projection.start()

    for event in SAMPLE_EVENTS:
        await log.append(event)

    await projection.wait_for_version(len(log) - 1, timeout=10)
    await projection.stop()
    # throttled writes are not flushed implicitly
    await store.flush()
    await store.close()

    print(f"Appended {len(SAMPLE_EVENTS)} events, log now has {len(log)}")
    print(f"Cart at version {store.get_version()}: {store.get_state()}")


def main():
    settings = Settings.from_env()
    print(f"Seeding data at: {settings.data_dir}")
    asyncio.run(seed(settings))


if __name__ == "__main__":
    main()
