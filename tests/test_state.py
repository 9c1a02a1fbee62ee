from __future__ import annotations

import json
from pathlib import Path

from src.common.state import PersistentSlice, SliceStorage


class TestSliceStorage:
    def test_missing_key_returns_copy_of_default(self, storage: SliceStorage) -> None:
        default = {"goals": []}
        value = storage.read("healthCoach", default)
        value["goals"].append(1)
        assert default == {"goals": []}

    def test_write_then_read(self, storage: SliceStorage) -> None:
        assert storage.write("userProfile", {"name": "Ada", "onboardingComplete": True})
        assert storage.read("userProfile") == {"name": "Ada", "onboardingComplete": True}
        assert storage.path_for("userProfile").name == "myassistant_userProfile.json"

    def test_corrupt_file_falls_back_to_default(self, storage: SliceStorage) -> None:
        path = storage.path_for("userProfile")
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("{not json", encoding="utf-8")
        assert storage.read("userProfile", {"name": ""}) == {"name": ""}

    def test_unserializable_value_is_rejected(self, storage: SliceStorage) -> None:
        storage.write("healthCoach", {"ok": True})
        assert storage.write("healthCoach", {"bad": {1, 2}}) is False
        assert storage.read("healthCoach") == {"ok": True}

    def test_no_tmp_file_left_behind(self, storage: SliceStorage) -> None:
        storage.write("googleAuth", None)
        assert [p.name for p in storage.root.iterdir()] == ["myassistant_googleAuth.json"]

    def test_delete_is_idempotent(self, storage: SliceStorage) -> None:
        storage.write("k", 1)
        storage.delete("k")
        storage.delete("k")
        assert not storage.exists("k")

    def test_custom_prefix(self, tmp_path: Path) -> None:
        s = SliceStorage(tmp_path, prefix="alt_")
        s.write("k", [1, 2])
        assert json.loads((tmp_path / "alt_k.json").read_text()) == [1, 2]


class TestPersistentSlice:
    def test_set_records_last_saved(self, storage: SliceStorage) -> None:
        slc = PersistentSlice(storage, "userProfile", {"name": ""})
        assert slc.last_saved is None
        assert slc.set({"name": "Ada"})
        assert slc.last_saved is not None
        assert PersistentSlice(storage, "userProfile", {}).value == {"name": "Ada"}

    def test_failed_write_keeps_value_in_memory(self, storage: SliceStorage) -> None:
        slc = PersistentSlice(storage, "healthCoach", {})
        assert slc.set({"bad": object()}) is False
        assert "bad" in slc.value
        assert slc.last_saved is None
        assert not storage.exists("healthCoach")

    def test_reset_restores_default(self, storage: SliceStorage) -> None:
        slc = PersistentSlice(storage, "learningTutor", {"studyStreak": 0})
        slc.set({"studyStreak": 9})
        slc.reset()
        assert slc.value == {"studyStreak": 0}
        assert not storage.exists("learningTutor")
