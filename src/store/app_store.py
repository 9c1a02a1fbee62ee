"""Aggregate application store: profile, four agent datasets, Google auth.

Every dataset is an independent :class:`PersistentSlice`.  There are no
transactions across slices.  The store is constructed explicitly and handed
to whatever needs it (token manager, data client, CLI commands).
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from src.common.config import resolve_data_dir
from src.common.state import DEFAULT_PREFIX, PersistentSlice, SliceStorage
from src.store.defaults import AGENT_SLICES, GOOGLE_AUTH_KEY, PROFILE_KEY, default_profile

logger = logging.getLogger("assistanthub.store")

SYNC_SAVED = "saved"
SYNC_SAVING = "saving"
SYNC_ERROR = "error"

# Either a function of the previous value or a value (mappings shallow-merge).
Updater = Any


class AppStore:
    """Owns every persisted slice and the transient sync status."""

    def __init__(self, storage: SliceStorage) -> None:
        self._storage = storage
        self.sync_status = SYNC_SAVED
        self._load()

    @classmethod
    def from_config(cls, cfg: dict[str, Any]) -> AppStore:
        prefix = cfg.get("storage", {}).get("key_prefix", DEFAULT_PREFIX)
        return cls(SliceStorage(resolve_data_dir(cfg), prefix=prefix))

    def _load(self) -> None:
        self._profile = PersistentSlice(self._storage, PROFILE_KEY, default_profile())
        self._agents = {
            name: PersistentSlice(self._storage, key, factory())
            for name, (key, factory) in AGENT_SLICES.items()
        }
        self._auth = PersistentSlice(self._storage, GOOGLE_AUTH_KEY, None)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def profile(self) -> dict[str, Any]:
        return self._profile.value

    @property
    def personal(self) -> dict[str, Any]:
        return self._agents["personal"].value

    @property
    def health(self) -> dict[str, Any]:
        return self._agents["health"].value

    @property
    def financial(self) -> dict[str, Any]:
        return self._agents["financial"].value

    @property
    def learning(self) -> dict[str, Any]:
        return self._agents["learning"].value

    @property
    def google_auth(self) -> dict[str, Any] | None:
        return self._auth.value

    def agent(self, name: str) -> dict[str, Any]:
        return self._slice_for(name).value

    def last_saved(self, name: str) -> datetime | None:
        if name == "profile":
            return self._profile.last_saved
        if name == "googleAuth":
            return self._auth.last_saved
        return self._slice_for(name).last_saved

    def _slice_for(self, name: str) -> PersistentSlice:
        try:
            return self._agents[name]
        except KeyError:
            raise KeyError(f"Unknown agent dataset: {name}") from None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def update_profile(self, updater: Updater) -> dict[str, Any]:
        return self._apply(self._profile, updater)

    def update_agent(self, name: str, updater: Updater) -> dict[str, Any]:
        return self._apply(self._slice_for(name), updater)

    def update_personal(self, updater: Updater) -> dict[str, Any]:
        return self.update_agent("personal", updater)

    def update_health(self, updater: Updater) -> dict[str, Any]:
        return self.update_agent("health", updater)

    def update_financial(self, updater: Updater) -> dict[str, Any]:
        return self.update_agent("financial", updater)

    def update_learning(self, updater: Updater) -> dict[str, Any]:
        return self.update_agent("learning", updater)

    def _apply(self, target: PersistentSlice, updater: Updater) -> Any:
        prev = target.value
        if callable(updater):
            new = updater(prev)
        elif isinstance(updater, dict) and isinstance(prev, dict):
            new = {**prev, **updater}
        else:
            new = updater

        self.sync_status = SYNC_SAVING
        ok = target.set(new)
        self.sync_status = SYNC_SAVED if ok else SYNC_ERROR
        if not ok:
            logger.warning("Slice %s kept in memory only; write failed", target.key)
        return new

    def set_google_auth(self, record: dict[str, Any]) -> None:
        self._auth.set(record)

    def clear_google_auth(self) -> None:
        self._auth.set(None)

    def clear_all_data(self) -> None:
        """Delete every stored slice and reload defaults. Irreversible."""
        self._profile.reset()
        for slc in self._agents.values():
            slc.reset()
        self._auth.reset()
        self._load()
        self.sync_status = SYNC_SAVED
        logger.info("Cleared all local data in %s", self._storage.root)
