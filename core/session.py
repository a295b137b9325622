"""Display-name session backed by a small local preferences file."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from config.settings import PREFERENCES_PATH

LOGGER = logging.getLogger("signalboard.session")

USER_NAME_KEY = "userName"


class PreferenceFile:
    """JSON document of per-install preferences."""

    def __init__(self, path: str | Path = PREFERENCES_PATH) -> None:
        self.path = Path(path)

    def load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except Exception as exc:
            LOGGER.warning("Failed to read preferences file %s: %s", self.path, exc)
            return {}
        if not isinstance(payload, dict):
            return {}
        return payload

    def save(self, preferences: dict[str, Any]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(preferences, indent=2, sort_keys=True), encoding="utf-8")
        except Exception as exc:
            LOGGER.warning("Failed to write preferences file %s: %s", self.path, exc)


class Session:
    """The current user's display name, shared by chat and suggestions."""

    def __init__(self, preferences: PreferenceFile) -> None:
        self._preferences = preferences
        stored = preferences.load().get(USER_NAME_KEY)
        self.user_name: str = stored if isinstance(stored, str) else ""

    def remember(self, user_name: str) -> None:
        """Adopt `user_name` and persist it for the next start."""
        self.user_name = user_name
        preferences = self._preferences.load()
        preferences[USER_NAME_KEY] = user_name
        self._preferences.save(preferences)
