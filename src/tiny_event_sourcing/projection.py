"""Fold the event log into a state store.

A projection is one catch-up subscription whose handler runs a reducer
over the store's current state and records the event index as the new
version. Events at or below the store's version were already applied
before a restart and are skipped; that policy lives here, not in the
store.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

from .errors import InvalidVersionError
from .log import CatchupIterator, EventLog, catchup_subscribe
from .models import IndexedEvent
from .store import StateStore

logger = logging.getLogger(__name__)

S = TypeVar("S")

Reducer = Callable[[S, IndexedEvent], "S | Awaitable[S]"]


class Projection(Generic[S]):
    """Keeps a StateStore up to date with an EventLog."""

    def __init__(self, log: EventLog, store: StateStore[S], reducer: Reducer):
        self.log = log
        self.store = store
        self.reducer = reducer
        self._events: CatchupIterator | None = None
        self._task: asyncio.Task | None = None

    @property
    def name(self) -> str:
        return self.store.name

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def apply(self, event: IndexedEvent) -> None:
        """Apply one event if it is newer than the store's version."""
        version = self.store.get_version()
        if event.index <= version:
            logger.debug(f"[{self.name}] Skipping event {event.index} (at version {version})")
            return

        new_state = self.reducer(self.store.get_state(), event)
        if inspect.isawaitable(new_state):
            new_state = await new_state

        try:
            self.store.update(new_state, event.index)
        except InvalidVersionError as e:
            logger.warning(f"Skipping event {event.index}: {e}")

    def _open_events(self) -> CatchupIterator:
        start = self.store.get_version() + 1
        logger.info(f"[{self.name}] Catching up from index {start} ({len(self.log)} in log)")
        self._events = self.log.events(start=start)
        return self._events

    async def run(self) -> None:
        """Replay from the store's version onward, then follow the log."""
        await catchup_subscribe(self._open_events(), self.apply)

    def start(self) -> asyncio.Task:
        """Run the projection as a background task."""
        if self.running:
            raise RuntimeError(f"Projection {self.name} is already running")
        # iterator exists before the task is scheduled, so stop() always reaches it
        events = self._open_events()
        self._task = asyncio.get_running_loop().create_task(catchup_subscribe(events, self.apply))
        return self._task

    async def stop(self) -> None:
        """Stop following the log, letting an in-flight event finish."""
        if self._events is not None:
            self._events.stop()
            self._events = None
        task = self._task
        self._task = None
        if task is not None:
            await task

    async def wait_for_version(self, version: int, timeout: float | None = None) -> None:
        """Wait until the store has applied the event at ``version``.

        Raises:
            asyncio.TimeoutError: If ``timeout`` elapses first
        """

        async def _poll() -> None:
            while self.store.get_version() < version:
                if self._task is not None and self._task.done():
                    # task ended: re-raise its error, if any
                    self._task.result()
                    return
                await asyncio.sleep(min(self.log.poll_interval, 0.05))

        await asyncio.wait_for(_poll(), timeout=timeout)
