"""
File-backed preferences store.

Preferences live in one small JSON file (PREFERENCES_PATH). The file is
read once at startup and rewritten on every change. Writes go through a
temporary file and os.replace so a crash never leaves half a file behind.
"""

from __future__ import annotations

import json
import os
import threading
from pathlib import Path
from typing import Any, Dict

from core.exceptions import WorkshopTrackerError
from models.preferences import TIME_WINDOW_CHOICES, Preferences
from logging_config import get_logger


logger = get_logger(__name__)


class PreferencesStore:
    """
    Thread-safe holder of the current Preferences.

    Usage:
        store = PreferencesStore(Path("data/preferences.json"))
        prefs = store.get()
        store.update({"timeWindowDays": 90})
    """

    def __init__(self, path: Path):
        self._path = Path(path)
        self._lock = threading.Lock()
        self._preferences = self._load()

    @property
    def path(self) -> Path:
        return self._path

    def get(self) -> Preferences:
        with self._lock:
            return self._preferences

    def update(self, data: Dict[str, Any]) -> Preferences:
        """
        Merge a partial update (same keys as the stored JSON) and save.

        Raises:
            WorkshopTrackerError: If timeWindowDays is not one of the choices,
                or nonWorkingPeriods is not a list
        """
        if not isinstance(data, dict):
            raise WorkshopTrackerError("Preferences must be a JSON object")

        window = data.get("timeWindowDays")
        if "timeWindowDays" in data and (
            isinstance(window, bool) or not isinstance(window, int) or window not in TIME_WINDOW_CHOICES
        ):
            raise WorkshopTrackerError(
                f"Invalid timeWindowDays: {window!r}",
                {"allowed": list(TIME_WINDOW_CHOICES)},
            )
        if "nonWorkingPeriods" in data and not isinstance(data["nonWorkingPeriods"], list):
            raise WorkshopTrackerError("nonWorkingPeriods must be a list")

        with self._lock:
            merged = self._preferences.to_dict()
            merged.update({key: data[key] for key in ("nonWorkingPeriods", "timeWindowDays") if key in data})
            self._preferences = Preferences.from_dict(merged)
            self._save(self._preferences)
            return self._preferences

    def _load(self) -> Preferences:
        if not self._path.exists():
            logger.info(f"No preferences file at {self._path}; using defaults")
            return Preferences()
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Could not read preferences file {self._path}: {e}; using defaults")
            return Preferences()
        return Preferences.from_dict(data)

    def _save(self, preferences: Preferences) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(preferences.to_dict(), f, indent=2)
        os.replace(tmp_path, self._path)
        logger.debug(f"Saved preferences to {self._path}")
