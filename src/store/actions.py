"""Dataset mutations: health logging, goals, reminders, chat transcript.

Each action is a thin function over :class:`AppStore` that builds the new
dataset from the previous one and writes it back through ``update_agent``.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timedelta
from typing import Any

from src.common.timefmt import clock_label
from src.health.metrics import local_date_key, timestamp_now
from src.health.transfer import apply_import
from src.store.app_store import AppStore
from src.store.defaults import DEFAULT_UNITS, LOG_TYPES, TRACKABLE_TYPES

logger = logging.getLogger("assistanthub.store.actions")

REMINDER_OPTIONS = ("in_30_min", "in_1_hour", "in_2_hours", "tomorrow_9am", "custom")
CHAT_SENDERS = ("user", "agent")

# Derived at read time for auto-tracked goals; never persisted.
_DERIVED_GOAL_FIELDS = ("progress", "completed", "description")


def _new_id(existing: list[dict[str, Any]]) -> int:
    """Creation timestamp in ms, bumped until unique within the list."""
    taken = {item.get("id") for item in existing}
    candidate = int(time.time() * 1000)
    while candidate in taken:
        candidate += 1
    return candidate


# ── Health log ───────────────────────────────────────────────────────────────

def make_log_entry(
    log_type: str,
    value: Any,
    unit: str | None = None,
    notes: str = "",
    timestamp: str | None = None,
) -> dict[str, Any]:
    if log_type not in LOG_TYPES:
        raise ValueError(f"Unknown log type: {log_type!r} (expected one of {', '.join(LOG_TYPES)})")
    if log_type == "meal":
        value = str(value).strip()
        if not value:
            raise ValueError("Meal entries need a description")
    else:
        try:
            value = float(value)
        except (TypeError, ValueError):
            raise ValueError(f"{log_type} value must be numeric, got {value!r}") from None
    return {
        "type": log_type,
        "value": value,
        "unit": unit if unit is not None else DEFAULT_UNITS[log_type],
        "notes": notes,
        "timestamp": timestamp or timestamp_now(),
    }


def log_health_entry(
    store: AppStore,
    log_type: str,
    value: Any,
    unit: str | None = None,
    notes: str = "",
    now: datetime | None = None,
) -> dict[str, Any]:
    """Append an entry under today's local-date key and return it."""
    entry = make_log_entry(log_type, value, unit, notes)
    day = local_date_key(now or datetime.now())

    def _append(prev: dict[str, Any]) -> dict[str, Any]:
        logs = dict(prev.get("dailyLogs") or {})
        logs[day] = [*logs.get(day, []), entry]
        return {**prev, "dailyLogs": logs}

    store.update_health(_append)
    logger.debug("Logged %s=%s for %s", log_type, entry["value"], day)
    return entry


def save_health_settings(store: AppStore, enabled_metrics: dict[str, bool], targets: dict[str, Any]) -> None:
    store.update_health(lambda prev: {**prev, "enabledMetrics": enabled_metrics, "targets": targets})


def import_health_data(store: AppStore, bundle: dict[str, Any], mode: str = "merge") -> dict[str, Any]:
    return store.update_health(lambda prev: apply_import(prev, bundle, mode))


# ── Goals ────────────────────────────────────────────────────────────────────

def _persistable_goal(goal: dict[str, Any]) -> dict[str, Any]:
    if goal.get("autoTracked"):
        return {k: v for k, v in goal.items() if k not in _DERIVED_GOAL_FIELDS}
    return dict(goal)


def add_goal(
    store: AppStore,
    agent: str,
    title: str,
    description: str = "",
    auto_tracked: bool = False,
    tracking_type: str | None = None,
    target: float | None = None,
) -> dict[str, Any]:
    if not title.strip():
        raise ValueError("Goal title is required")
    if auto_tracked and tracking_type not in TRACKABLE_TYPES:
        raise ValueError(f"Auto-tracked goals need a tracking type in {', '.join(TRACKABLE_TYPES)}")

    created: dict[str, Any] = {}

    def _prepend(prev: dict[str, Any]) -> dict[str, Any]:
        goals = list(prev.get("goals") or [])
        goal: dict[str, Any] = {"id": _new_id(goals), "title": title.strip()}
        if auto_tracked:
            goal.update({"autoTracked": True, "trackingType": tracking_type})
            if target is not None:
                goal["target"] = target
        else:
            goal.update({"description": description, "progress": 0, "completed": False})
        created.update(goal)
        return {**prev, "goals": [goal, *goals]}

    store.update_agent(agent, _prepend)
    return created


def update_goal(store: AppStore, agent: str, goal: dict[str, Any]) -> None:
    stored = _persistable_goal(goal)
    store.update_agent(agent, lambda prev: {
        **prev,
        "goals": [stored if g.get("id") == goal.get("id") else g for g in prev.get("goals") or []],
    })


def delete_goal(store: AppStore, agent: str, goal_id: int) -> None:
    store.update_agent(agent, lambda prev: {
        **prev,
        "goals": [g for g in prev.get("goals") or [] if g.get("id") != goal_id],
    })


def toggle_goal(store: AppStore, agent: str, goal_id: int) -> None:
    """Flip completion of a manual goal; auto-tracked goals are left alone."""
    def _toggle(g: dict[str, Any]) -> dict[str, Any]:
        if g.get("id") != goal_id or g.get("autoTracked"):
            return g
        done = not g.get("completed")
        return {**g, "completed": done, "progress": 100 if done else g.get("progress", 0)}

    store.update_agent(agent, lambda prev: {**prev, "goals": [_toggle(g) for g in prev.get("goals") or []]})


# ── Reminders ────────────────────────────────────────────────────────────────

def resolve_reminder_time(option: str, custom: str | None = None, now: datetime | None = None) -> str:
    """Turn a relative choice into the fixed label stored on the reminder."""
    now = now or datetime.now()
    if option == "in_30_min":
        return clock_label(now + timedelta(minutes=30))
    if option == "in_1_hour":
        return clock_label(now + timedelta(hours=1))
    if option == "in_2_hours":
        return clock_label(now + timedelta(hours=2))
    if option == "tomorrow_9am":
        return "Tomorrow 9:00 AM"
    if option == "custom":
        return custom or "Set time"
    raise ValueError(f"Unknown reminder time option: {option!r}")


def add_reminder(
    store: AppStore,
    agent: str,
    text: str,
    when: str = "in_30_min",
    custom_time: str | None = None,
    urgent: bool = False,
    now: datetime | None = None,
) -> dict[str, Any]:
    if not text.strip():
        raise ValueError("Reminder text is required")
    label = resolve_reminder_time(when, custom_time, now)
    created: dict[str, Any] = {}

    def _add(prev: dict[str, Any]) -> dict[str, Any]:
        reminders = list(prev.get("reminders") or [])
        created.update({"id": _new_id(reminders), "text": text.strip(), "time": label, "urgent": urgent})
        return {**prev, "reminders": [*reminders, dict(created)]}

    store.update_agent(agent, _add)
    return created


def dismiss_reminder(store: AppStore, agent: str, reminder_id: int) -> None:
    store.update_agent(agent, lambda prev: {
        **prev,
        "reminders": [r for r in prev.get("reminders") or [] if r.get("id") != reminder_id],
    })


# ── Chat transcript ──────────────────────────────────────────────────────────

def append_chat_message(
    store: AppStore,
    agent: str,
    sender: str,
    text: str,
    now: datetime | None = None,
) -> dict[str, Any]:
    if sender not in CHAT_SENDERS:
        raise ValueError(f"Unknown chat sender: {sender!r}")
    message = {"sender": sender, "text": text, "time": clock_label(now or datetime.now())}
    store.update_agent(agent, lambda prev: {**prev, "chatHistory": [*(prev.get("chatHistory") or []), message]})
    return message
