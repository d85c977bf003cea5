"""User settings persisted as a flat JSON object under one storage key.

The storage file is a JSON key-value store; settings live under
``STORAGE_KEY``. A missing file, a missing key or unreadable JSON falls
back to the defaults, and unknown keys are ignored.
"""

from __future__ import annotations

import dataclasses
import json
import logging
import math
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

STORAGE_KEY = "app-settings"
STORAGE_ENV = "SYSBOARD_STORAGE"
THEMES = ("dark", "light")
MAX_REFRESH_INTERVAL = 24 * 60 * 60


def default_storage_path() -> Path:
    """Storage file location, honouring the SYSBOARD_STORAGE override."""
    override = os.environ.get(STORAGE_ENV)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".config" / "sysboard" / "storage.json"


@dataclass(slots=True, frozen=True)
class Settings:
    """Operator preferences."""

    auto_refresh: bool = True
    refresh_interval: int = 30  # seconds
    theme: str = "dark"
    confirm_dangerous_actions: bool = True
    show_system_processes: bool = True

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> Settings:
        """Build settings from stored values, keeping defaults for bad entries."""
        defaults = cls()
        values: dict[str, Any] = {}
        for item in dataclasses.fields(cls):
            if item.name not in data:
                continue
            value = data[item.name]
            expected = type(getattr(defaults, item.name))
            if expected is int and isinstance(value, bool):
                value = None
            elif expected is int and isinstance(value, float):
                value = int(value) if math.isfinite(value) else None
            if not isinstance(value, expected):
                logger.debug("ignoring setting %s=%r", item.name, value)
                continue
            values[item.name] = value
        settings = cls(**values)
        if not 1 <= settings.refresh_interval <= MAX_REFRESH_INTERVAL:
            settings = dataclasses.replace(settings, refresh_interval=defaults.refresh_interval)
        if settings.theme not in THEMES:
            settings = dataclasses.replace(settings, theme=defaults.theme)
        return settings

    def to_mapping(self) -> dict[str, Any]:
        """Plain dict for JSON storage."""
        return dataclasses.asdict(self)


def _read_store(path: Path) -> dict[str, Any]:
    try:
        with path.open("r", encoding="utf-8") as f:
            store = json.load(f)
    except FileNotFoundError:
        return {}
    except (OSError, ValueError) as exc:
        logger.warning("could not read settings store %s: %s", path, exc)
        return {}
    return store if isinstance(store, dict) else {}


def load_settings(path: Path | None = None) -> Settings:
    """Load settings, falling back to defaults."""
    store = _read_store(path or default_storage_path())
    data = store.get(STORAGE_KEY)
    if not isinstance(data, dict):
        return Settings()
    return Settings.from_mapping(data)


def save_settings(settings: Settings, path: Path | None = None) -> None:
    """Write settings under STORAGE_KEY, preserving other keys in the store."""
    path = path or default_storage_path()
    store = _read_store(path)
    store[STORAGE_KEY] = settings.to_mapping()
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        json.dump(store, f, indent=2)
