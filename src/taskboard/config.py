"""Load optional board configuration from `.taskboard/config.yaml`."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from .constants import CONFIG_FILE

VALID_LOG_LEVELS = {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


def load_config(state_root: Path) -> tuple[dict[str, Any], str | None]:
    """Load the optional config file.

    Args:
        state_root: The ``.taskboard/`` directory.

    Returns:
        A tuple of `(config, error_message)`. If the file is missing, returns `({}, None)`.
    """
    path = state_root / CONFIG_FILE
    if not path.exists():
        return {}, None
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as exc:
        return {}, f"{path.name}: {exc.__class__.__name__}: {exc}"
    except yaml.YAMLError as exc:
        return {}, f"{path.name}: YAMLError: {exc}"
    if data is None:
        return {}, None
    if not isinstance(data, dict):
        return {}, f"{path.name}: expected object, got {type(data).__name__}"
    return data, None


def _get_nested(config: dict[str, Any], *keys: str) -> Any:
    cur: Any = config
    for key in keys:
        if not isinstance(cur, dict):
            return None
        cur = cur.get(key)
    return cur


def _as_bool(raw: Any, default: bool) -> bool:
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, str):
        lowered = raw.strip().lower()
        if lowered in _TRUTHY:
            return True
        if lowered in _FALSY:
            return False
    return default


@dataclass(frozen=True)
class BoardSettings:
    """Typed view over the config file with environment overrides."""

    log_level: str = "INFO"
    # Off by default: only the direct A->B / B->A cycle is rejected.
    detect_transitive_cycles: bool = False
    # Off by default: manual entries skip the blocking gate that start_timer applies.
    gate_manual_entries: bool = False
    notifications_enabled: bool = True

    @classmethod
    def from_config(cls, config: dict[str, Any], env: dict[str, str] | None = None) -> "BoardSettings":
        env = os.environ if env is None else env

        level = str(env.get("TASKBOARD_LOG_LEVEL") or config.get("log_level") or "INFO").upper()
        if level not in VALID_LOG_LEVELS:
            level = "INFO"

        detect = _as_bool(_get_nested(config, "dependencies", "detect_transitive_cycles"), False)
        detect = _as_bool(env.get("TASKBOARD_DETECT_TRANSITIVE_CYCLES"), detect)

        gate = _as_bool(_get_nested(config, "time_tracking", "gate_manual_entries"), False)
        gate = _as_bool(env.get("TASKBOARD_GATE_MANUAL_ENTRIES"), gate)

        notify = _as_bool(_get_nested(config, "notifications", "enabled"), True)

        return cls(
            log_level=level,
            detect_transitive_cycles=detect,
            gate_manual_entries=gate,
            notifications_enabled=notify,
        )
