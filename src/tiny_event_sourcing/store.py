"""Versioned read-model state store.

Holds one ``StateSnapshot`` in memory and mirrors it to a backend. The
in-memory snapshot is authoritative; the persisted copy may lag by up to
one throttle interval.

The store only enforces that versions strictly increase. Deciding which
events to skip on replay is the subscriber's job (see projection.py).
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Generic, TypeVar

from pydantic import ValidationError

from .backends import FileStoreBackend, StoreBackend
from .constants import DEFAULT_THROTTLE_INTERVAL, INITIAL_VERSION
from .errors import InitializationIOError, InvalidVersionError
from .models import StateSnapshot
from .throttle import ThrottledWriter

logger = logging.getLogger(__name__)

S = TypeVar("S")


class StateStore(Generic[S]):
    """Current state of one read model plus the version it reflects."""

    def __init__(
        self,
        backend: StoreBackend,
        snapshot: StateSnapshot,
        throttle_interval: float = DEFAULT_THROTTLE_INTERVAL,
    ):
        self._backend = backend
        self._snapshot = snapshot
        self._writer: ThrottledWriter[dict[str, Any]] = ThrottledWriter(
            backend.write, interval=throttle_interval, name=backend.name
        )

    @classmethod
    async def open(
        cls,
        source: StoreBackend | Path | str,
        initial_state: S,
        throttle_interval: float = DEFAULT_THROTTLE_INTERVAL,
        state_type: Any = None,
    ) -> "StateStore[S]":
        """Hydrate a store from its snapshot document.

        Args:
            source: Path to the snapshot JSON file, or a StoreBackend
            initial_state: State used when no snapshot exists (version -1)
            throttle_interval: Minimum seconds between snapshot writes
            state_type: Optional type to validate a loaded state against

        Raises:
            InitializationIOError: If the snapshot exists but is unreadable
        """
        backend = FileStoreBackend(source) if isinstance(source, (str, Path)) else source
        document = await backend.read()

        if document is None:
            snapshot = StateSnapshot(version=INITIAL_VERSION, state=initial_state)
        else:
            try:
                snapshot = StateSnapshot.from_document(document, state_type=state_type)
            except ValidationError as e:
                raise InitializationIOError(backend.name, f"Malformed snapshot: {e}") from e

        logger.info(f"[{backend.name}] Loaded state at version {snapshot.version}")
        return cls(backend, snapshot, throttle_interval)

    @property
    def name(self) -> str:
        return self._backend.name

    @property
    def snapshot(self) -> StateSnapshot:
        return self._snapshot

    def get_state(self) -> S:
        return self._snapshot.state

    def get_version(self) -> int:
        return self._snapshot.version

    def update(self, new_state: S, new_version: int) -> None:
        """Replace state and version together, then schedule a write.

        Must be called from a running event loop.

        Raises:
            InvalidVersionError: If ``new_version`` is not above the
                current version. The snapshot is left unchanged.
        """
        current = self._snapshot.version
        if new_version <= current:
            raise InvalidVersionError(self.name, new_version, current)

        snapshot = StateSnapshot(version=new_version, state=new_state)
        self._writer.submit(snapshot.to_document())
        self._snapshot = snapshot
        logger.info(f"[{self.name}] State updated to version {new_version}")

    async def flush(self) -> None:
        """Persist the latest snapshot now. Call before shutdown.

        Raises:
            PersistenceWriteError: If the write fails
        """
        await self._writer.flush()

    async def close(self) -> None:
        """Stop background writes. Unflushed snapshots are not written."""
        await self._writer.close()
