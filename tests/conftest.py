"""Shared test fixtures and helpers for tiny_event_sourcing tests."""

import tempfile
from pathlib import Path

import pytest

from tiny_event_sourcing.backends import MemoryLogBackend, MemoryStoreBackend
from tiny_event_sourcing.errors import PersistenceWriteError


# --- Fixtures ---


@pytest.fixture
def temp_data_dir():
    """Provide a temporary data directory, cleaned up after the test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def log_path(temp_data_dir):
    return temp_data_dir / "events.ndjson"


@pytest.fixture
def snapshot_path(temp_data_dir):
    return temp_data_dir / "snapshots" / "counter.json"


# --- Helpers ---


class FlakyLogBackend(MemoryLogBackend):
    """Memory log backend whose writes fail while ``fail`` is set."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fail = False

    async def append(self, event):
        if self.fail:
            raise PersistenceWriteError(self.name, "disk full", event=event)
        await super().append(event)


class FlakyStoreBackend(MemoryStoreBackend):
    """Memory store backend failing the next ``failures`` writes."""

    def __init__(self, *args, failures: int = 0, **kwargs):
        super().__init__(*args, **kwargs)
        self.failures = failures
        self.attempts = 0

    async def write(self, document):
        self.attempts += 1
        if self.failures > 0:
            self.failures -= 1
            raise PersistenceWriteError(self.name, "disk full")
        await super().write(document)


@pytest.fixture
def flaky_log_backend():
    """A memory log backend; set ``.fail = True`` to make appends fail."""
    return FlakyLogBackend()


@pytest.fixture
def flaky_store_backend():
    """Factory for memory store backends that fail their first N writes."""

    def _make(failures: int = 0, document: dict | None = None) -> FlakyStoreBackend:
        return FlakyStoreBackend(document, failures=failures)

    return _make
