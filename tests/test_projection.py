"""Tests for projections: folding the log into a state store, and restarts."""

import asyncio

import pytest

from tiny_event_sourcing.backends import MemoryLogBackend, MemoryStoreBackend
from tiny_event_sourcing.log import EventLog
from tiny_event_sourcing.projection import Projection
from tiny_event_sourcing.store import StateStore

POLL = 0.01
THROTTLE = 0.05


def make_event(name: str, **data) -> dict:
    return {"type": name, **data}


def record_types(state: list, event) -> list:
    """Reducer: the list of event types seen so far."""
    return [*state, event.type]


def count_items(state: dict, event) -> dict:
    """Reducer: item quantities in a cart."""
    counts = dict(state)
    if event.type == "item_added":
        counts[event.item] = counts.get(event.item, 0) + event.get("quantity", 1)
    elif event.type == "item_removed":
        counts.pop(event.item, None)
    return counts


@pytest.mark.asyncio
async def test_projection_folds_history_and_live_events():
    log = await EventLog.open(MemoryLogBackend(), poll_interval=POLL)
    await log.append(make_event("item_added", item="apple"))
    await log.append(make_event("item_added", item="apple", quantity=2))

    store = await StateStore.open(MemoryStoreBackend(), initial_state={}, throttle_interval=THROTTLE)
    projection = Projection(log, store, count_items)
    projection.start()

    await projection.wait_for_version(1, timeout=2.0)
    assert store.get_state() == {"apple": 3}

    await log.append(make_event("item_added", item="pear"))
    await log.append(make_event("item_removed", item="apple"))
    await projection.wait_for_version(3, timeout=2.0)

    assert store.get_state() == {"pear": 1}
    assert store.get_version() == 3

    await projection.stop()
    assert not projection.running
    await store.close()


@pytest.mark.asyncio
async def test_async_reducer():
    log = await EventLog.open(MemoryLogBackend(), poll_interval=POLL)
    await log.append(make_event("a"))
    store = await StateStore.open(MemoryStoreBackend(), initial_state=[], throttle_interval=THROTTLE)

    async def reducer(state, event):
        await asyncio.sleep(0)
        return [*state, event.type]

    projection = Projection(log, store, reducer)
    projection.start()
    await projection.wait_for_version(0, timeout=2.0)
    await projection.stop()

    assert store.get_state() == ["a"]
    await store.close()


@pytest.mark.asyncio
@pytest.mark.parametrize("persisted_version", [-1, 0, 1, 2])
async def test_restart_reconstructs_same_state(log_path, snapshot_path, persisted_version):
    """Resuming from any persisted version yields the same final state."""
    log = await EventLog.open(log_path, poll_interval=POLL)
    for name in ["A", "B", "C"]:
        await log.append(make_event(name))

    # State as it was persisted before the crash
    if persisted_version >= 0:
        seed = await StateStore.open(snapshot_path, initial_state=[])
        seed.update(["A", "B", "C"][: persisted_version + 1], persisted_version)
        await seed.flush()
        await seed.close()

    restarted_log = await EventLog.open(log_path, poll_interval=POLL)
    store = await StateStore.open(snapshot_path, initial_state=[], throttle_interval=THROTTLE)
    assert store.get_version() == persisted_version

    projection = Projection(restarted_log, store, record_types)
    projection.start()
    await projection.wait_for_version(2, timeout=2.0)
    await projection.stop()

    assert store.get_state() == ["A", "B", "C"]
    assert store.get_version() == 2
    await store.close()


@pytest.mark.asyncio
async def test_apply_skips_already_applied_events():
    log = await EventLog.open(MemoryLogBackend(), poll_interval=POLL)
    store = await StateStore.open(
        MemoryStoreBackend({"_version": 1, "state": ["A", "B"]}), initial_state=[]
    )
    projection = Projection(log, store, record_types)

    for name in ["A", "B", "C"]:
        await log.append(make_event(name))
    for event in log.read_all():
        await projection.apply(event)

    assert store.get_state() == ["A", "B", "C"]
    assert store.get_version() == 2
    await store.close()


@pytest.mark.asyncio
async def test_version_conflict_is_logged_and_skipped(caplog):
    log = await EventLog.open(MemoryLogBackend(), poll_interval=POLL)
    await log.append(make_event("A"))
    store = await StateStore.open(MemoryStoreBackend(), initial_state=[])

    def racing_reducer(state, event):
        # another writer moves the store past this event meanwhile
        store.update(["other"], event.index + 5)
        return [*state, event.type]

    projection = Projection(log, store, racing_reducer)
    await projection.apply(log[0])

    assert store.get_state() == ["other"]
    assert store.get_version() == 5
    assert "Skipping event 0" in caplog.text
    await store.close()


@pytest.mark.asyncio
async def test_reducer_error_surfaces_from_wait():
    log = await EventLog.open(MemoryLogBackend(), poll_interval=POLL)
    await log.append(make_event("A"))
    store = await StateStore.open(MemoryStoreBackend(), initial_state=[])

    def broken(state, event):
        raise ValueError("bad event")

    projection = Projection(log, store, broken)
    projection.start()
    with pytest.raises(ValueError, match="bad event"):
        await projection.wait_for_version(0, timeout=2.0)
    await store.close()


@pytest.mark.asyncio
async def test_start_twice_rejected():
    log = await EventLog.open(MemoryLogBackend(), poll_interval=POLL)
    store = await StateStore.open(MemoryStoreBackend(), initial_state=[])
    projection = Projection(log, store, record_types)

    projection.start()
    with pytest.raises(RuntimeError, match="already running"):
        projection.start()
    await projection.stop()


@pytest.mark.asyncio
async def test_stop_right_after_start_ends_task():
    log = await EventLog.open(MemoryLogBackend(), poll_interval=POLL)
    store = await StateStore.open(MemoryStoreBackend(), initial_state=[], throttle_interval=THROTTLE)
    projection = Projection(log, store, record_types)

    task = projection.start()
    await asyncio.wait_for(projection.stop(), timeout=1.0)

    assert task.done()
    assert not projection.running
    await store.close()


@pytest.mark.asyncio
async def test_restart_after_stop():
    log = await EventLog.open(MemoryLogBackend(), poll_interval=POLL)
    store = await StateStore.open(MemoryStoreBackend(), initial_state=[], throttle_interval=THROTTLE)
    projection = Projection(log, store, record_types)

    projection.start()
    await asyncio.wait_for(projection.stop(), timeout=1.0)

    await log.append(make_event("a"))
    projection.start()
    await projection.wait_for_version(0, timeout=2.0)
    await asyncio.wait_for(projection.stop(), timeout=1.0)

    assert store.get_state() == ["a"]
    assert not projection.running
    await store.close()
