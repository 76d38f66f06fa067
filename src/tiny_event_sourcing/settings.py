"""Runtime settings.

Defaults come from constants.py and may be overridden through the
environment:

    TINY_ES_PATH               data directory (log + snapshots)
    TINY_ES_POLL_INTERVAL      seconds between catch-up polls
    TINY_ES_THROTTLE_INTERVAL  minimum seconds between snapshot writes
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path

from pydantic import BaseModel, Field

from .constants import (
    DEFAULT_DATA_PATH,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_THROTTLE_INTERVAL,
    ENV_DATA_PATH,
    ENV_POLL_INTERVAL,
    ENV_THROTTLE_INTERVAL,
    LOG_FILENAME,
    SNAPSHOT_DIRNAME,
    SNAPSHOT_SUFFIX,
)


class Settings(BaseModel):
    """Where the log and snapshots live, and how often to poll and write."""

    data_dir: Path = Path(DEFAULT_DATA_PATH)
    poll_interval: float = Field(default=DEFAULT_POLL_INTERVAL, gt=0)
    throttle_interval: float = Field(default=DEFAULT_THROTTLE_INTERVAL, ge=0)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, **overrides) -> "Settings":
        """Build settings from environment variables, then ``overrides``.

        Overrides set to None are ignored.

        Raises:
            pydantic.ValidationError: If a value is out of range or not a number
        """
        if environ is None:
            environ = os.environ

        values: dict = {}
        if data_dir := environ.get(ENV_DATA_PATH):
            values["data_dir"] = data_dir
        if poll := environ.get(ENV_POLL_INTERVAL):
            values["poll_interval"] = poll
        if throttle := environ.get(ENV_THROTTLE_INTERVAL):
            values["throttle_interval"] = throttle

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls.model_validate(values)

    @property
    def log_path(self) -> Path:
        return self.data_dir / LOG_FILENAME

    @property
    def snapshot_dir(self) -> Path:
        return self.data_dir / SNAPSHOT_DIRNAME

    def snapshot_path(self, name: str) -> Path:
        """Path of the snapshot document for read model ``name``."""
        if not name or "/" in name or "\\" in name or name.startswith("."):
            raise ValueError(f"Invalid read model name: {name!r}")
        return self.snapshot_dir / f"{name}{SNAPSHOT_SUFFIX}"

    def list_snapshots(self) -> list[str]:
        """Names of read models with a snapshot on disk, sorted."""
        if not self.snapshot_dir.exists():
            return []
        return sorted(p.stem for p in self.snapshot_dir.glob(f"*{SNAPSHOT_SUFFIX}"))
