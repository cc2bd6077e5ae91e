"""Keyed persistence for settings, exemptions, snapshots and counters"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from .config import get_config_dir

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when the persistent store cannot be read or written"""


class StateStore:
    """Small JSON values persisted one file per key

    Keys are free-form strings; they are sanitized for use as file names
    and the original key is kept inside the file so that keys() can
    return it unchanged.
    """

    def __init__(self, state_dir: Path | None = None):
        self.state_dir = state_dir or get_config_dir() / "state"
        try:
            self.state_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create state directory {self.state_dir}: {e}") from e

    def _path(self, key: str) -> Path:
        return self.state_dir / f"{self._sanitize_key(key)}.json"

    def get(self, key: str, default: Any = None) -> Any:
        """Return the value stored under key, or default if absent"""
        path = self._path(key)
        if not path.exists():
            return default

        try:
            with open(path) as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"Cannot read {key}: {e}") from e

        if not isinstance(data, dict) or "value" not in data:
            raise StorageError(f"Corrupt entry for {key}")

        return data["value"]

    def set(self, key: str, value: Any) -> None:
        """Store value under key, replacing any previous value"""
        path = self._path(key)
        try:
            # Write to a sibling file then rename so readers never see a partial entry
            fd, tmp_name = tempfile.mkstemp(dir=self.state_dir, suffix=".tmp")
            with os.fdopen(fd, "w") as f:
                json.dump({"key": key, "value": value}, f, indent=2, default=str)
            os.replace(tmp_name, path)
        except (OSError, TypeError, ValueError) as e:
            raise StorageError(f"Cannot write {key}: {e}") from e

    def delete(self, *keys: str) -> None:
        """Remove keys; missing keys are ignored"""
        for key in keys:
            try:
                self._path(key).unlink(missing_ok=True)
            except OSError as e:
                raise StorageError(f"Cannot delete {key}: {e}") from e

    def keys(self, prefix: str = "") -> list[str]:
        """List stored keys, optionally restricted to a prefix"""
        result = []
        try:
            files = sorted(self.state_dir.glob("*.json"))
        except OSError as e:
            raise StorageError(f"Cannot list {self.state_dir}: {e}") from e

        for entry_file in files:
            try:
                with open(entry_file) as f:
                    key = json.load(f).get("key")
            except (OSError, json.JSONDecodeError, AttributeError):
                logger.warning("Skipping unreadable state file %s", entry_file)
                continue
            if isinstance(key, str) and key.startswith(prefix):
                result.append(key)

        return result

    @staticmethod
    def _sanitize_key(key: str) -> str:
        """Sanitize key for use as filename"""
        return "".join(c if c.isalnum() or c in "-_" else "_" for c in key)
