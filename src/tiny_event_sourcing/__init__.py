"""Tiny, zero-setup event sourcing.

An append-only NDJSON event log with catch-up subscriptions, and
versioned JSON snapshots for read models rebuilt by replaying the log.
"""

from .backends import (
    FileLogBackend,
    FileStoreBackend,
    LogBackend,
    MemoryLogBackend,
    MemoryStoreBackend,
    StoreBackend,
)
from .errors import (
    EventSourcingError,
    InitializationIOError,
    InvalidVersionError,
    PersistenceWriteError,
)
from .log import CatchupIterator, EventLog, catchup_subscribe
from .models import IndexedEvent, StateSnapshot
from .projection import Projection
from .settings import Settings
from .store import StateStore
from .throttle import ThrottledWriter

__all__ = [
    "CatchupIterator",
    "EventLog",
    "EventSourcingError",
    "FileLogBackend",
    "FileStoreBackend",
    "IndexedEvent",
    "InitializationIOError",
    "InvalidVersionError",
    "LogBackend",
    "MemoryLogBackend",
    "MemoryStoreBackend",
    "PersistenceWriteError",
    "Projection",
    "Settings",
    "StateSnapshot",
    "StateStore",
    "StoreBackend",
    "ThrottledWriter",
    "catchup_subscribe",
]
