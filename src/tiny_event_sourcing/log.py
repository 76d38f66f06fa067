"""Append-only event log with catch-up iteration.

The log is the source of truth. Every event gets a permanent zero-based
index equal to its position; index order, append order and on-disk line
order are the same.

Subscribers read the log through ``CatchupIterator``: it replays stored
events and then keeps polling for new ones, so historical replay and live
tailing are one code path. Each iterator only holds an integer cursor
into the shared entry list.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterable, Awaitable, Callable
from pathlib import Path

from .backends import FileLogBackend, LogBackend
from .constants import DEFAULT_POLL_INTERVAL
from .errors import PersistenceWriteError
from .models import DomainEvent, IndexedEvent, index_event

logger = logging.getLogger(__name__)

EventHandler = Callable[[IndexedEvent], Awaitable[None]]


class CatchupIterator:
    """Infinite async iterator over a growing list of events.

    Yields entries from ``cursor`` onward without suspending while there
    are any. Once caught up it sleeps ``poll_interval`` seconds between
    checks. Iteration only ends through ``stop()`` (or task cancellation).
    """

    def __init__(
        self,
        entries: list[IndexedEvent],
        start: int = 0,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ):
        if start < 0:
            raise ValueError(f"start must be >= 0, got {start}")
        if poll_interval <= 0:
            raise ValueError(f"poll_interval must be > 0, got {poll_interval}")
        self._entries = entries
        self.cursor = start
        self.poll_interval = poll_interval
        self._stopped = asyncio.Event()

    @property
    def stopped(self) -> bool:
        return self._stopped.is_set()

    def stop(self) -> None:
        """End iteration. A pending wait returns immediately."""
        self._stopped.set()

    def __aiter__(self) -> "CatchupIterator":
        return self

    async def __anext__(self) -> IndexedEvent:
        while True:
            if self._stopped.is_set():
                raise StopAsyncIteration
            if self.cursor < len(self._entries):
                event = self._entries[self.cursor]
                self.cursor += 1
                return event
            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=self.poll_interval)
            except asyncio.TimeoutError:
                pass

    async def __aenter__(self) -> "CatchupIterator":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.stop()


class EventLog:
    """In-memory ordered event list mirrored to an append-only backend.

    Create with ``await EventLog.open(path)``. One process owns the log;
    concurrent external writers are not supported.
    """

    def __init__(
        self,
        backend: LogBackend,
        entries: list[IndexedEvent] | None = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ):
        self._backend = backend
        self._entries: list[IndexedEvent] = entries if entries is not None else []
        self.poll_interval = poll_interval
        self._write_lock = asyncio.Lock()

    @classmethod
    async def open(
        cls,
        source: LogBackend | Path | str,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> "EventLog":
        """Load a log from ``source``.

        Args:
            source: Path to an NDJSON file, or a LogBackend
            poll_interval: Seconds iterators wait between checks once caught up

        Raises:
            InitializationIOError: If the file exists but cannot be read
        """
        backend = FileLogBackend(source) if isinstance(source, (str, Path)) else source
        records = await backend.read()
        entries = [index_event(record, i) for i, record in enumerate(records)]
        logger.info(f"[{backend.name}] Loaded {len(entries)} events")
        return cls(backend, entries, poll_interval)

    @property
    def name(self) -> str:
        return self._backend.name

    def __len__(self) -> int:
        return len(self._entries)

    def __getitem__(self, index: int) -> IndexedEvent:
        return self._entries[index]

    def read_all(self) -> list[IndexedEvent]:
        """Return a copy of the current entries."""
        return list(self._entries)

    def events(self, start: int = 0) -> CatchupIterator:
        """Return a new catch-up iterator beginning at index ``start``."""
        return CatchupIterator(self._entries, start=start, poll_interval=self.poll_interval)

    async def append(self, event: DomainEvent) -> IndexedEvent:
        """Index ``event``, publish it in memory, then write it durably.

        The entry is visible to iterators as soon as this is called.
        Completion means the write succeeded.

        Raises:
            PersistenceWriteError: If the durable write fails. The entry
                stays in memory (iterators may already have read it), so
                the in-memory and on-disk logs diverge from this point.
            PydanticSerializationError: If the event cannot be encoded as
                JSON. Nothing is published and no index is used.
        """
        indexed = index_event(event, len(self._entries))
        # encode before publishing so an unwritable event never takes an index
        indexed.to_json_line()
        self._entries.append(indexed)

        # asyncio.Lock is FIFO, so lines land in index order
        async with self._write_lock:
            try:
                await self._backend.append(indexed)
            except OSError as e:
                logger.error(f"[{self.name}] Event {indexed.index} not persisted: {e}")
                raise PersistenceWriteError(self.name, str(e), event=indexed) from e
            except PersistenceWriteError as e:
                logger.error(f"[{self.name}] Event {indexed.index} not persisted: {e}")
                raise

        return indexed


async def catchup_subscribe(
    events: AsyncIterable[IndexedEvent],
    handler: EventHandler,
) -> None:
    """Feed every event to ``handler``, one at a time.

    Each handler call completes before the next event is requested. A
    handler exception ends the subscription and propagates.
    """
    try:
        async for event in events:
            await handler(event)
    finally:
        if isinstance(events, CatchupIterator):
            events.stop()
