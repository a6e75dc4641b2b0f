from __future__ import annotations

import copy
import os
from pathlib import Path
from typing import Any

import yaml

from ..constants import CONFIG_FILE, EVENTS_FILE, SCHEMA_VERSION, STATE_DIR_NAME, STATE_FILE

DEFAULT_CONFIG: dict[str, Any] = {
    "log_level": "INFO",
    "dependencies": {"detect_transitive_cycles": False},
    "time_tracking": {"gate_manual_entries": False},
    "notifications": {"enabled": True},
}


def _read_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    return raw if isinstance(raw, dict) else {}


def _write_yaml(path: Path, data: dict[str, Any]) -> None:
    tmp_path = path.with_suffix(f"{path.suffix}.tmp")
    with tmp_path.open("w", encoding="utf-8") as handle:
        yaml.safe_dump(data, handle, sort_keys=False)
        handle.flush()
        os.fsync(handle.fileno())
    os.replace(tmp_path, path)


def ensure_state_root(project_dir: Path) -> Path:
    """Create ``<project_dir>/.taskboard`` and seed missing state files."""
    state_root = project_dir / STATE_DIR_NAME
    state_root.mkdir(parents=True, exist_ok=True)

    state_path = state_root / STATE_FILE
    if not state_path.exists():
        state_path.write_text(f"version: {SCHEMA_VERSION}\n", encoding="utf-8")
    events_path = state_root / EVENTS_FILE
    if not events_path.exists():
        events_path.touch()

    config_path = state_root / CONFIG_FILE
    config = _read_yaml(config_path)
    changed = config.get("schema_version") != SCHEMA_VERSION
    config["schema_version"] = SCHEMA_VERSION
    for key, value in DEFAULT_CONFIG.items():
        if key not in config:
            config[key] = copy.deepcopy(value)
            changed = True
    if changed:
        _write_yaml(config_path, config)

    return state_root
