"""Trailing-edge throttle for asynchronous writes.

``ThrottledWriter`` accepts values faster than it persists them. The
first value after a quiet period is written right away; later values are
coalesced so that at most one write happens per interval, and the most
recent value is always written at the end of a window.

A write that raises ``PersistenceWriteError`` is retried in the next
window unless a newer value has replaced it in the meantime. Nothing is
flushed implicitly on shutdown; call ``flush()``.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

from .constants import DEFAULT_THROTTLE_INTERVAL
from .errors import PersistenceWriteError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ThrottledWriter(Generic[T]):
    """Rate-limits calls to an async ``write`` function."""

    def __init__(
        self,
        write: Callable[[T], Awaitable[None]],
        interval: float = DEFAULT_THROTTLE_INTERVAL,
        name: str = "throttle",
    ):
        self._write = write
        self.interval = interval
        self.name = name

        self._pending: T | None = None
        self._has_pending = False
        self._last_write: float | None = None
        self._task: asyncio.Task | None = None
        self._wake = asyncio.Event()
        self._flushing = False

    @property
    def has_pending(self) -> bool:
        """True if a submitted value has not been written yet."""
        return self._has_pending

    def submit(self, value: T) -> None:
        """Schedule ``value`` to be written, replacing any unwritten value.

        Must be called with a running event loop.
        """
        self._pending = value
        self._has_pending = True
        self._ensure_task()

    def _ensure_task(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self._drain())

    async def _drain(self) -> None:
        loop = asyncio.get_running_loop()
        while self._has_pending and not self._flushing:
            if self._last_write is not None:
                delay = self._last_write + self.interval - loop.time()
                if delay > 0:
                    try:
                        await asyncio.wait_for(self._wake.wait(), timeout=delay)
                    except asyncio.TimeoutError:
                        pass
                    if self._flushing:
                        return
            await self._write_pending(raise_errors=False)

    async def _write_pending(self, raise_errors: bool) -> None:
        value = self._pending
        self._pending = None
        self._has_pending = False
        self._last_write = asyncio.get_running_loop().time()

        try:
            await self._write(value)
        except (PersistenceWriteError, OSError) as e:
            if not self._has_pending:
                self._pending = value
                self._has_pending = True
            if raise_errors:
                raise
            logger.warning(f"[{self.name}] Write failed, retrying next window: {e}")

    async def flush(self) -> None:
        """Write the latest unwritten value now and wait for it.

        Raises:
            PersistenceWriteError: If the immediate write fails. The value
                stays pending and is retried on the normal schedule.
        """
        task = self._task
        if task is not None and not task.done():
            self._flushing = True
            self._wake.set()
            try:
                await task
            finally:
                self._flushing = False
                self._wake.clear()

        if self._has_pending:
            try:
                await self._write_pending(raise_errors=True)
            except (PersistenceWriteError, OSError):
                self._ensure_task()
                raise

    async def close(self) -> None:
        """Stop the background task without writing pending values."""
        task = self._task
        self._task = None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
