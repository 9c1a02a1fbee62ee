"""Persistent key-value slices for Assistant Hub.

Each slice is one named value stored as a JSON blob in its own file under
the data directory (``<data_dir>/<prefix><key>.json``).  Reads fall back to
a default when the file is missing or unreadable; writes never raise.
There is no locking: two processes sharing a data directory race, and the
last write wins per slice.
"""

from __future__ import annotations

import copy
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any

logger = logging.getLogger("assistanthub.state")

DEFAULT_PREFIX = "myassistant_"


class SliceStorage:
    """Directory of JSON blobs, one file per namespaced key."""

    def __init__(self, root: Path | str, prefix: str = DEFAULT_PREFIX) -> None:
        self.root = Path(root)
        self.prefix = prefix

    def path_for(self, key: str) -> Path:
        return self.root / f"{self.prefix}{key}.json"

    def exists(self, key: str) -> bool:
        return self.path_for(key).is_file()

    def read(self, key: str, default: Any = None) -> Any:
        """Return the stored value, or a copy of ``default`` if absent or corrupt."""
        path = self.path_for(key)
        if not path.exists():
            return copy.deepcopy(default)
        try:
            with open(path, encoding="utf-8") as fh:
                return json.load(fh)
        except (json.JSONDecodeError, UnicodeDecodeError, OSError) as exc:
            logger.warning("Error loading %s from storage, using default: %s", key, exc)
            return copy.deepcopy(default)

    def write(self, key: str, value: Any) -> bool:
        """Atomically persist ``value``. Returns False (and logs) on failure."""
        try:
            payload = json.dumps(value, indent=2)
        except (TypeError, ValueError) as exc:
            logger.warning("Error saving %s to storage: %s", key, exc)
            return False

        path = self.path_for(key)
        tmp = path.with_suffix(".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(payload, encoding="utf-8")
            tmp.replace(path)
        except OSError as exc:
            logger.warning("Error saving %s to storage: %s", key, exc)
            return False
        return True

    def delete(self, key: str) -> None:
        self.path_for(key).unlink(missing_ok=True)


class PersistentSlice:
    """One named value mirrored to storage on every set."""

    def __init__(self, storage: SliceStorage, key: str, default: Any = None) -> None:
        self._storage = storage
        self.key = key
        self._default = copy.deepcopy(default)
        self._value = storage.read(key, default)
        self.last_saved: datetime | None = None

    @property
    def value(self) -> Any:
        return self._value

    def set(self, value: Any) -> bool:
        # The in-memory value moves on even when the write is lost.
        self._value = value
        ok = self._storage.write(self.key, value)
        if ok:
            self.last_saved = datetime.now()
        return ok

    def reset(self) -> None:
        self._storage.delete(self.key)
        self._value = copy.deepcopy(self._default)
        self.last_saved = None
