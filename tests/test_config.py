"""Unit tests for the configuration loader."""

import json
from pathlib import Path

from pomotrack.core.config import (
    get_data_directory,
    get_default_config,
    get_default_config_path,
    load_config,
    merged_with_defaults,
    save_config,
)


# ------------------------------------------------------------------
# get_data_directory
# ------------------------------------------------------------------

def test_get_data_directory_returns_path():
    result = get_data_directory()
    assert isinstance(result, Path)
    assert "PomoTrack" in str(result) or ".pomotrack" in str(result)


def test_get_data_directory_macos(monkeypatch):
    monkeypatch.setattr("pomotrack.core.config.sys.platform", "darwin")
    result = get_data_directory()
    assert result == Path.home() / "Library" / "Application Support" / "PomoTrack"


def test_get_data_directory_windows(monkeypatch):
    monkeypatch.setattr("pomotrack.core.config.sys.platform", "win32")
    monkeypatch.setenv("APPDATA", "/fake/appdata")
    result = get_data_directory()
    assert result == Path("/fake/appdata") / "PomoTrack"


def test_get_data_directory_windows_no_appdata(monkeypatch):
    monkeypatch.setattr("pomotrack.core.config.sys.platform", "win32")
    monkeypatch.delenv("APPDATA", raising=False)
    result = get_data_directory()
    assert result == Path.home() / "AppData" / "Roaming" / "PomoTrack"


def test_get_data_directory_linux(monkeypatch):
    monkeypatch.setattr("pomotrack.core.config.sys.platform", "linux")
    result = get_data_directory()
    assert result == Path.home() / ".pomotrack"


def test_default_config_path_in_data_directory():
    assert get_default_config_path() == get_data_directory() / "config.json"


# ------------------------------------------------------------------
# get_default_config
# ------------------------------------------------------------------

def test_default_config_values():
    cfg = get_default_config()
    assert cfg["api_url"] == ""
    assert cfg["auto_sync_interval_minutes"] == 5
    assert cfg["min_session_duration_seconds"] == 60
    assert cfg["default_pomodoro_seconds"] == 1500
    assert cfg["recovery_max_age_hours"] == 24
    assert cfg["history_days"] == 30
    assert cfg["server"]["port"] == 8787


def test_default_providers():
    providers = get_default_config()["ai_providers"]
    assert set(providers) == {"anthropic", "openai", "groq", "ollama"}
    assert providers["ollama"]["local"] is True
    for provider in providers.values():
        assert provider["default_model"] in provider["models"]


# ------------------------------------------------------------------
# load / save
# ------------------------------------------------------------------

def test_load_creates_defaults_when_missing(tmp_path):
    path = tmp_path / "sub" / "config.json"
    cfg = load_config(path)
    assert path.exists()
    assert cfg == get_default_config()


def test_save_then_load(tmp_path):
    path = tmp_path / "config.json"
    cfg = get_default_config()
    cfg["api_url"] = "https://example.test/prod"
    save_config(cfg, path)
    assert load_config(path)["api_url"] == "https://example.test/prod"


def test_invalid_json_returns_defaults(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{not json", encoding="utf-8")
    assert load_config(path) == get_default_config()


def test_non_object_returns_defaults(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps([1, 2]), encoding="utf-8")
    assert load_config(path) == get_default_config()


def test_old_file_missing_keys_gets_defaults(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"api_url": "http://x", "server": {"port": 9000}}), encoding="utf-8")
    cfg = load_config(path)
    assert cfg["api_url"] == "http://x"
    assert cfg["min_session_duration_seconds"] == 60
    assert cfg["server"]["port"] == 9000
    assert cfg["server"]["host"] == "127.0.0.1"


def test_merged_with_defaults_does_not_share_state():
    a = merged_with_defaults({})
    a["server"]["port"] = 1
    assert get_default_config()["server"]["port"] == 8787


# ------------------------------------------------------------------
# validation of merged values
# ------------------------------------------------------------------

def test_non_dict_server_falls_back_to_defaults(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"server": "localhost:9000"}), encoding="utf-8")
    cfg = load_config(path)
    assert cfg["server"] == get_default_config()["server"]


def test_negative_interval_replaced_by_default():
    cfg = merged_with_defaults({"auto_sync_interval_minutes": -5, "history_days": 7})
    assert cfg["auto_sync_interval_minutes"] == 5
    assert cfg["history_days"] == 7


def test_zero_interval_is_kept():
    assert merged_with_defaults({"auto_sync_interval_minutes": 0})["auto_sync_interval_minutes"] == 0


def test_non_numeric_duration_replaced_by_default():
    cfg = merged_with_defaults({"min_session_duration_seconds": "sixty", "display_hold_seconds": True})
    assert cfg["min_session_duration_seconds"] == 60
    assert cfg["display_hold_seconds"] == 3


def test_non_bool_flag_replaced_by_default():
    assert merged_with_defaults({"pomodoro_mode": "no"})["pomodoro_mode"] is True


def test_non_dict_providers_replaced_by_default():
    cfg = merged_with_defaults({"ai_providers": ["anthropic"]})
    assert cfg["ai_providers"] == get_default_config()["ai_providers"]


def test_invalid_server_port_replaced():
    assert merged_with_defaults({"server": {"port": 70000}})["server"]["port"] == 8787
