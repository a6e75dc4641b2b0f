"""Shared constants for the taskboard state layout and HTTP surface."""

from __future__ import annotations

STATE_DIR_NAME = ".taskboard"
STATE_FILE = "board.yaml"
LOCK_FILE = "board.lock"
EVENTS_FILE = "events.jsonl"
CONFIG_FILE = "config.yaml"

SCHEMA_VERSION = 1

# Header carrying the caller identity issued by the external identity service.
USER_HEADER = "X-User-Id"
