"""Centralized constants for tiny-event-sourcing.

Defaults for polling, throttling and on-disk layout. Runtime overrides
live in settings.py.
"""

# --- Timing ---
DEFAULT_POLL_INTERVAL = 1.0  # seconds between catch-up checks once caught up
DEFAULT_THROTTLE_INTERVAL = 1.0  # minimum seconds between snapshot writes

# --- Versions ---
INITIAL_VERSION = -1  # "no events applied"

# --- On-disk layout ---
LOG_FILENAME = "events.ndjson"
SNAPSHOT_DIRNAME = "snapshots"
SNAPSHOT_SUFFIX = ".json"
SNAPSHOT_VERSION_FIELD = "_version"
SNAPSHOT_INDENT = 2

# --- Environment ---
ENV_DATA_PATH = "TINY_ES_PATH"
ENV_POLL_INTERVAL = "TINY_ES_POLL_INTERVAL"
ENV_THROTTLE_INTERVAL = "TINY_ES_THROTTLE_INTERVAL"
DEFAULT_DATA_PATH = ".tiny-es"
