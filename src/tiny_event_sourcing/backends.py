"""Persistence backends for the event log and state stores.

The log persists to newline-delimited JSON, one IndexedEvent per line.
A state store persists to a single pretty-printed JSON document.
Blocking file I/O runs in worker threads via ``asyncio.to_thread`` so the
event loop is never blocked.

In-memory backends with the same interface exist for tests and for
embedding systems that do not want files.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from collections.abc import Iterable
from pathlib import Path
from typing import Any, Protocol

from .constants import SNAPSHOT_INDENT
from .errors import InitializationIOError, PersistenceWriteError
from .models import IndexedEvent

logger = logging.getLogger(__name__)


class LogBackend(Protocol):
    """Durable storage for an append-only event log."""

    name: str

    async def read(self) -> list[dict[str, Any]]:
        """Return every stored record in order. Missing storage reads as empty."""
        ...

    async def append(self, event: IndexedEvent) -> None:
        """Durably store ``event`` after all previously appended records."""
        ...


class StoreBackend(Protocol):
    """Storage for a single state snapshot document."""

    name: str

    async def read(self) -> dict[str, Any] | None:
        """Return the stored document, or None if there is none."""
        ...

    async def write(self, document: dict[str, Any]) -> None:
        """Replace the stored document."""
        ...


def parse_ndjson(lines: Iterable[str], source: str) -> list[dict[str, Any]]:
    """Parse NDJSON lines into records, skipping blank lines.

    Raises:
        InitializationIOError: On the first line that is not a JSON object
    """
    records = []
    for line_no, line in enumerate(lines, start=1):
        line = line.strip()
        if not line:
            continue
        try:
            record = json.loads(line)
        except json.JSONDecodeError as e:
            raise InitializationIOError(
                source, f"Malformed event at line {line_no}: {e}"
            ) from e
        if not isinstance(record, dict):
            raise InitializationIOError(
                source, f"Malformed event at line {line_no}: not a JSON object"
            )
        records.append(record)
    return records


# ─────────────────────────────────────────────────────────────────────────────
# Event log backends
# ─────────────────────────────────────────────────────────────────────────────


class FileLogBackend:
    """Append-only NDJSON file."""

    def __init__(self, path: Path | str):
        self.path = Path(path)
        self.name = str(self.path)

    async def read(self) -> list[dict[str, Any]]:
        return await asyncio.to_thread(self._read_sync)

    def _read_sync(self) -> list[dict[str, Any]]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                return parse_ndjson(f, self.name)
        except FileNotFoundError:
            logger.debug(f"No log at {self.path}, starting empty")
            return []
        except (OSError, UnicodeDecodeError) as e:
            raise InitializationIOError(self.name, str(e)) from e

    async def append(self, event: IndexedEvent) -> None:
        line = event.to_json_line()
        try:
            await asyncio.to_thread(self._append_sync, line)
        except OSError as e:
            raise PersistenceWriteError(self.name, str(e), event=event) from e

    def _append_sync(self, line: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(line)
            f.flush()
            os.fsync(f.fileno())


class MemoryLogBackend:
    """Log backend holding serialized lines in a list."""

    def __init__(self, lines: list[str] | None = None, name: str = "memory-log"):
        self.lines: list[str] = list(lines or [])
        self.name = name

    async def read(self) -> list[dict[str, Any]]:
        return parse_ndjson(self.lines, self.name)

    async def append(self, event: IndexedEvent) -> None:
        self.lines.append(event.to_json_line())


# ─────────────────────────────────────────────────────────────────────────────
# State store backends
# ─────────────────────────────────────────────────────────────────────────────


class FileStoreBackend:
    """Single JSON document on disk.

    Writes go to a sibling ``.tmp`` file which then replaces the target,
    so readers never observe a partially written document.
    """

    def __init__(self, path: Path | str):
        self.path = Path(path)
        self.name = str(self.path)

    async def read(self) -> dict[str, Any] | None:
        return await asyncio.to_thread(self._read_sync)

    def _read_sync(self) -> dict[str, Any] | None:
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            raise InitializationIOError(self.name, str(e)) from e

        try:
            document = json.loads(text)
        except json.JSONDecodeError as e:
            raise InitializationIOError(self.name, f"Malformed snapshot: {e}") from e
        if not isinstance(document, dict):
            raise InitializationIOError(self.name, "Malformed snapshot: not a JSON object")
        return document

    async def write(self, document: dict[str, Any]) -> None:
        text = json.dumps(document, indent=SNAPSHOT_INDENT)
        try:
            await asyncio.to_thread(self._write_sync, text)
        except OSError as e:
            raise PersistenceWriteError(self.name, str(e)) from e

    def _write_sync(self, text: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        tmp_path.write_text(text, encoding="utf-8")
        os.replace(tmp_path, self.path)


class MemoryStoreBackend:
    """State store backend keeping the document in memory.

    ``writes`` records every document written, in order.
    """

    def __init__(self, document: dict[str, Any] | None = None, name: str = "memory-store"):
        self.document = document
        self.name = name
        self.writes: list[dict[str, Any]] = []

    async def read(self) -> dict[str, Any] | None:
        return self.document

    async def write(self, document: dict[str, Any]) -> None:
        self.document = document
        self.writes.append(document)
