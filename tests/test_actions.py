from __future__ import annotations

from datetime import datetime
from unittest.mock import patch

import pytest

from src.health.metrics import goals_with_progress
from src.store.actions import (
    add_goal,
    add_reminder,
    append_chat_message,
    delete_goal,
    dismiss_reminder,
    import_health_data,
    log_health_entry,
    make_log_entry,
    resolve_reminder_time,
    save_health_settings,
    toggle_goal,
    update_goal,
)
from src.store.app_store import AppStore

NOW = datetime(2026, 10, 18, 15, 0)


class TestHealthLog:
    def test_entry_goes_under_local_date(self, store: AppStore) -> None:
        entry = log_health_entry(store, "water", "2", now=NOW)
        assert entry["value"] == 2.0
        assert entry["unit"] == "glasses"
        assert store.health["dailyLogs"]["2026-10-18"] == [entry]

    def test_appends_in_order(self, store: AppStore) -> None:
        log_health_entry(store, "sleep", 6, now=NOW)
        log_health_entry(store, "meal", "  Lentil soup ", notes="lunch", now=NOW)
        entries = store.health["dailyLogs"]["2026-10-18"]
        assert [e["type"] for e in entries] == ["sleep", "meal"]
        assert entries[1]["value"] == "Lentil soup"
        assert entries[1]["unit"] == ""

    @pytest.mark.parametrize("log_type,value", [("meal", "   "), ("water", "lots"), ("steps", 10)])
    def test_rejects_bad_entries(self, log_type: str, value) -> None:
        with pytest.raises(ValueError):
            make_log_entry(log_type, value)

    def test_settings_and_import(self, store: AppStore) -> None:
        save_health_settings(store, {"water": True}, {"water": 10})
        assert store.health["targets"] == {"water": 10}
        bundle = {"dailyLogs": {"2026-10-01": [{"type": "water", "value": 3, "timestamp": "t1"}]}, "goals": []}
        import_health_data(store, bundle, "merge")
        import_health_data(store, bundle, "merge")
        assert store.health["dailyLogs"]["2026-10-01"] == bundle["dailyLogs"]["2026-10-01"]


class TestGoals:
    def test_add_manual_goal_is_prepended(self, store: AppStore) -> None:
        goal = add_goal(store, "financial", "  Pay off card ", description="by March")
        goals = store.financial["goals"]
        assert goals[0] == goal
        assert goal["title"] == "Pay off card"
        assert (goal["progress"], goal["completed"]) == (0, False)

    def test_add_auto_goal_has_no_derived_fields(self, store: AppStore) -> None:
        goal = add_goal(store, "health", "Two meals", auto_tracked=True, tracking_type="meal", target=2)
        assert goal == {"id": goal["id"], "title": "Two meals", "autoTracked": True, "trackingType": "meal", "target": 2}

    def test_ids_stay_unique(self, store: AppStore) -> None:
        with patch("src.store.actions.time.time", return_value=1000.0):
            a = add_goal(store, "learning", "A")
            b = add_goal(store, "learning", "B")
        assert (a["id"], b["id"]) == (1_000_000, 1_000_001)

    @pytest.mark.parametrize("kwargs", [{"title": " "}, {"title": "x", "auto_tracked": True, "tracking_type": "weight"}])
    def test_invalid_goals(self, store: AppStore, kwargs: dict) -> None:
        with pytest.raises(ValueError):
            add_goal(store, "health", **kwargs)

    def test_toggle_only_affects_manual_goals(self, store: AppStore) -> None:
        toggle_goal(store, "personal", 1)
        assert store.personal["goals"][0]["completed"] is True
        assert store.personal["goals"][0]["progress"] == 100
        toggle_goal(store, "health", 1)
        assert "completed" not in store.health["goals"][0]

    def test_update_strips_derived_fields(self, store: AppStore) -> None:
        derived = goals_with_progress(store.health["goals"], {}, store.health["targets"])[0]
        update_goal(store, "health", {**derived, "target": 9})
        stored = store.health["goals"][0]
        assert stored["target"] == 9
        assert "progress" not in stored and "description" not in stored

    def test_delete(self, store: AppStore) -> None:
        delete_goal(store, "learning", 2)
        assert [g["id"] for g in store.learning["goals"]] == [1]


class TestReminders:
    @pytest.mark.parametrize("option,expected", [
        ("in_30_min", "3:30 PM"),
        ("in_1_hour", "4:00 PM"),
        ("in_2_hours", "5:00 PM"),
        ("tomorrow_9am", "Tomorrow 9:00 AM"),
    ])
    def test_resolve(self, option: str, expected: str) -> None:
        assert resolve_reminder_time(option, now=NOW) == expected

    def test_custom(self) -> None:
        assert resolve_reminder_time("custom", "Friday noon") == "Friday noon"
        assert resolve_reminder_time("custom") == "Set time"
        with pytest.raises(ValueError):
            resolve_reminder_time("someday")

    def test_add_and_dismiss(self, store: AppStore) -> None:
        reminder = add_reminder(store, "health", "Stretch", when="in_1_hour", urgent=True, now=NOW)
        assert store.health["reminders"] == [reminder]
        assert reminder["time"] == "4:00 PM"
        dismiss_reminder(store, "health", reminder["id"])
        assert store.health["reminders"] == []


class TestChat:
    def test_append(self, store: AppStore) -> None:
        msg = append_chat_message(store, "learning", "user", "Quiz me", now=NOW)
        assert msg == {"sender": "user", "text": "Quiz me", "time": "3:00 PM"}
        assert store.learning["chatHistory"] == [msg]

    def test_unknown_sender(self, store: AppStore) -> None:
        with pytest.raises(ValueError):
            append_chat_message(store, "learning", "system", "x")
