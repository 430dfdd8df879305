"""
Shared utility functions for cewallet.

Contains path helpers and the settings file used across packages.
"""

import os
import json
import logging
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

# Environment variable overriding the application directory
APP_DIR_ENV = "CEW_HOME"


def get_app_dir() -> Path:
    """Get the application data directory (~/.cew unless CEW_HOME is set)."""
    override = os.environ.get(APP_DIR_ENV)
    app_dir = Path(override).expanduser() if override else Path.home() / ".cew"

    app_dir.mkdir(parents=True, exist_ok=True)
    return app_dir


def get_settings_path() -> Path:
    """Get path to settings file."""
    return get_app_dir() / "settings.json"


def get_store_path(settings: Optional[dict] = None) -> Path:
    """Get path to the store file, honouring a "store_path" setting."""
    if settings is None:
        settings = load_settings()
    custom = settings.get("store_path")
    if custom:
        return Path(custom).expanduser()
    return get_app_dir() / "wallets.json"


def get_logs_dir() -> Path:
    """Get the logs directory."""
    logs_dir = get_app_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    return logs_dir


def load_settings() -> dict:
    """Load settings from disk. Missing or unreadable settings give {}."""
    settings_path = get_settings_path()
    if settings_path.exists():
        try:
            with open(settings_path, 'r') as f:
                data = json.load(f)
            if isinstance(data, dict):
                return data
            logger.warning("Ignoring settings file: not a JSON object")
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Failed to load settings: {e}")
    return {}


def save_settings(settings: dict) -> None:
    """Save settings to disk."""
    settings_path = get_settings_path()
    with open(settings_path, 'w') as f:
        json.dump(settings, f, indent=2)
