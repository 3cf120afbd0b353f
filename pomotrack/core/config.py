"""Configuration loader for PomoTrack.

Handles loading, saving, and default creation of config.json.
Resolves platform-appropriate data directories:
  - macOS:   ~/Library/Application Support/PomoTrack
  - Windows: %APPDATA%/PomoTrack
  - Other:   ~/.pomotrack
"""

import json
import logging
import os
import sys
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

NON_NEGATIVE_KEYS = (
    "auto_sync_interval_minutes",
    "min_session_duration_seconds",
    "default_pomodoro_seconds",
    "display_hold_seconds",
    "recovery_max_age_hours",
    "request_timeout_seconds",
    "history_days",
)


def get_data_directory() -> Path:
    """Return the platform-appropriate data directory for PomoTrack."""
    if sys.platform == "darwin":
        base = Path.home() / "Library" / "Application Support"
    elif sys.platform == "win32":
        appdata = os.environ.get("APPDATA")
        base = Path(appdata) if appdata else Path.home() / "AppData" / "Roaming"
    else:
        base = Path.home()
        return base / ".pomotrack"
    return base / "PomoTrack"


def get_default_ai_providers() -> dict[str, dict[str, Any]]:
    """Return the built-in AI provider registry."""
    return {
        "anthropic": {
            "name": "Anthropic (Claude)",
            "endpoint": "https://api.anthropic.com/v1/messages",
            "models": ["claude-sonnet-4-5-20250929", "claude-haiku-4-5-20251001"],
            "default_model": "claude-haiku-4-5-20251001",
            "local": False,
        },
        "openai": {
            "name": "OpenAI (GPT)",
            "endpoint": "https://api.openai.com/v1/chat/completions",
            "models": ["gpt-5.2-2025-12-11", "gpt-5-mini-2025-08-07"],
            "default_model": "gpt-5-mini-2025-08-07",
            "local": False,
        },
        "groq": {
            "name": "Groq (Fast & Free tier)",
            "endpoint": "https://api.groq.com/openai/v1/chat/completions",
            "models": ["llama-3.3-70b-versatile", "llama-3.1-8b-instant", "qwen/qwen3-32b"],
            "default_model": "llama-3.1-8b-instant",
            "local": False,
        },
        "ollama": {
            "name": "Ollama (Local)",
            "endpoint": "http://localhost:11434/api/chat",
            "models": ["llama3.2", "mistral", "codellama", "phi3"],
            "default_model": "llama3.2",
            "local": True,
        },
    }


def get_default_config() -> dict[str, Any]:
    """Return the default configuration dictionary."""
    data_dir = get_data_directory()
    return {
        "api_url": "",
        "auto_sync_interval_minutes": 5,
        "min_session_duration_seconds": 60,
        "default_pomodoro_seconds": 25 * 60,
        "pomodoro_mode": True,
        "display_hold_seconds": 3,
        "recovery_max_age_hours": 24,
        "notifications_enabled": True,
        "debug": False,
        "request_timeout_seconds": 10,
        "history_days": 30,
        "ai_providers": get_default_ai_providers(),
        "database_path": str(data_dir / "pomotrack.db"),
        "server": {
            "host": "127.0.0.1",
            "port": 8787,
            "storage_directory": str(data_dir / "remote"),
        },
    }


def get_default_config_path() -> Path:
    """Return the default path for config.json."""
    return get_data_directory() / "config.json"


def merged_with_defaults(config: dict[str, Any]) -> dict[str, Any]:
    """Fill keys missing from *config* with their default values.

    Nested ``server`` settings are merged one level deep so that a config
    file that only overrides the port keeps the default host.
    Values of the wrong type, and negative numbers, are logged and replaced
    by the default.
    """
    merged = get_default_config()
    for key, value in config.items():
        default = merged.get(key)
        if key in NON_NEGATIVE_KEYS:
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
                logger.warning("Invalid %s=%r in config; using %r", key, value, default)
                continue
        elif isinstance(default, dict):
            if not isinstance(value, dict):
                logger.warning("Config key %s must be an object; using defaults", key)
                continue
            if key == "server":
                merged["server"].update(value)
                continue
        elif isinstance(default, bool) and not isinstance(value, bool):
            logger.warning("Config key %s must be true or false; using %r", key, default)
            continue
        merged[key] = value

    port = merged["server"].get("port")
    if isinstance(port, bool) or not isinstance(port, int) or not 0 < port < 65536:
        logger.warning("Invalid server port %r in config; using 8787", port)
        merged["server"]["port"] = 8787
    return merged


def load_config(path: str | Path | None = None) -> dict[str, Any]:
    """Load configuration from a JSON file.

    If *path* is ``None``, the platform default location is used.
    When the file does not exist, a default configuration is created,
    written to disk, and returned.  If the file exists but is invalid
    JSON, the error is logged and defaults are returned.
    """
    config_path = Path(path) if path is not None else get_default_config_path()

    if not config_path.exists():
        logger.info("Config file not found at %s, creating defaults.", config_path)
        defaults = get_default_config()
        save_config(defaults, config_path)
        return defaults

    try:
        with open(config_path, "r", encoding="utf-8") as fh:
            data = json.load(fh)
        if not isinstance(data, dict):
            raise ValueError("Top-level JSON value must be an object")
        return merged_with_defaults(data)
    except (json.JSONDecodeError, ValueError, OSError) as exc:
        logger.error("Failed to load config from %s: %s; using defaults.", config_path, exc)
        return get_default_config()


def save_config(config: dict[str, Any], path: str | Path | None = None) -> None:
    """Write *config* to a JSON file.

    If *path* is ``None``, the platform default location is used.
    Parent directories are created automatically.
    """
    config_path = Path(path) if path is not None else get_default_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)

    with open(config_path, "w", encoding="utf-8") as fh:
        json.dump(config, fh, indent=2, ensure_ascii=False)
        fh.write("\n")
