"""Error types raised by the log and state stores."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import IndexedEvent


class EventSourcingError(Exception):
    """Base class for all tiny-event-sourcing errors."""


class InitializationIOError(EventSourcingError):
    """A log or snapshot file exists but could not be read.

    Fatal: the owning component cannot be constructed. A missing file is
    never reported through this error.
    """

    def __init__(self, source: str, reason: str) -> None:
        self.source = source
        self.reason = reason
        super().__init__(f"[{source}] cannot initialize: {reason}")


class InvalidVersionError(EventSourcingError):
    """``update`` was called with a version not above the current one."""

    def __init__(self, store: str, proposed: int, current: int) -> None:
        self.store = store
        self.proposed = proposed
        self.current = current
        super().__init__(
            f"[{store}] Proposed state version ({proposed}) "
            f"is not higher than old state version ({current})"
        )


class PersistenceWriteError(EventSourcingError):
    """A write to the log or snapshot file failed.

    For the log, ``event`` holds the entry whose durability is
    unconfirmed. It is already part of the in-memory log, so appending it
    again would duplicate it.
    """

    def __init__(
        self,
        target: str,
        reason: str,
        event: IndexedEvent | None = None,
    ) -> None:
        self.target = target
        self.reason = reason
        self.event = event
        super().__init__(f"[{target}] write failed: {reason}")
