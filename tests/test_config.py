from __future__ import annotations

from pathlib import Path

from taskboard import Board
from taskboard.config import BoardSettings, load_config
from taskboard.storage import ensure_state_root


def test_missing_config_is_empty(tmp_path: Path) -> None:
    assert load_config(tmp_path) == ({}, None)


def test_invalid_yaml_reports_error(tmp_path: Path) -> None:
    (tmp_path / "config.yaml").write_text("log_level: [unclosed\n")
    config, err = load_config(tmp_path)
    assert config == {}
    assert err is not None and "YAMLError" in err


def test_non_mapping_reports_error(tmp_path: Path) -> None:
    (tmp_path / "config.yaml").write_text("- a\n- b\n")
    config, err = load_config(tmp_path)
    assert config == {}
    assert "expected object" in err


def test_defaults() -> None:
    settings = BoardSettings.from_config({}, env={})
    assert settings == BoardSettings()
    assert settings.detect_transitive_cycles is False
    assert settings.gate_manual_entries is False


def test_file_values_and_env_overrides() -> None:
    config = {
        "log_level": "debug",
        "dependencies": {"detect_transitive_cycles": True},
        "time_tracking": {"gate_manual_entries": "yes"},
        "notifications": {"enabled": False},
    }
    settings = BoardSettings.from_config(config, env={})
    assert settings.log_level == "DEBUG"
    assert settings.detect_transitive_cycles is True
    assert settings.gate_manual_entries is True
    assert settings.notifications_enabled is False

    overridden = BoardSettings.from_config(
        config,
        env={
            "TASKBOARD_LOG_LEVEL": "warning",
            "TASKBOARD_DETECT_TRANSITIVE_CYCLES": "0",
            "TASKBOARD_GATE_MANUAL_ENTRIES": "off",
        },
    )
    assert overridden.log_level == "WARNING"
    assert overridden.detect_transitive_cycles is False
    assert overridden.gate_manual_entries is False


def test_unknown_log_level_falls_back() -> None:
    assert BoardSettings.from_config({"log_level": "LOUD"}, env={}).log_level == "INFO"


def test_board_applies_settings(tmp_path: Path) -> None:
    state_root = ensure_state_root(tmp_path)
    (state_root / "config.yaml").write_text(
        "schema_version: 1\n"
        "dependencies:\n  detect_transitive_cycles: true\n"
        "time_tracking:\n  gate_manual_entries: true\n"
        "notifications:\n  enabled: false\n"
    )
    board = Board(tmp_path, env={})
    assert board.graph.detect_transitive_cycles is True
    assert board.timer.gate_manual_entries is True
    assert board.notifier.enabled is False
