"""Derived health metrics computed from the raw ``dailyLogs`` mapping.

``dailyLogs`` maps a local-date key (``YYYY-MM-DD`` in the device timezone)
to the ordered list of entries logged that day.  Nothing here is stored:
per-day totals, streaks, range statistics and auto-tracked goal progress
are recomputed from the log on every call, so they can never go stale.
All functions are pure; ``today`` defaults to the local calendar date.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any, Iterable

from src.common.timefmt import to_iso_z
from src.store.defaults import DEFAULT_TARGETS

STREAK_LIMIT = 365

GOAL_UNIT_LABELS: dict[str, str] = {
    "water": "glasses",
    "sleep": "hours",
    "exercise": "minutes",
    "meal": "meals",
}

DailyLogs = dict[str, list[dict[str, Any]]]


# ── Date helpers ─────────────────────────────────────────────────────────────

def local_date_key(day: date | datetime) -> str:
    """``YYYY-MM-DD`` for the local calendar day (aware datetimes are converted)."""
    if isinstance(day, datetime):
        if day.tzinfo is not None:
            day = day.astimezone()
        day = day.date()
    return day.strftime("%Y-%m-%d")


def parse_date_key(key: str) -> date:
    return datetime.strptime(key, "%Y-%m-%d").date()


def timestamp_now() -> str:
    """UTC ISO-8601 timestamp with millisecond precision and a ``Z`` suffix."""
    return to_iso_z(datetime.now(timezone.utc))


def _today(today: date | None) -> date:
    return today if today is not None else datetime.now().date()


def round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def format_number(value: Any) -> str:
    """Render 8.0 as ``8`` and 7.5 as ``7.5``; anything else via ``str``."""
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return "" if value is None else str(value)


def _numeric(value: Any) -> float:
    if isinstance(value, bool):
        return 0.0
    try:
        result = float(value)
    except (TypeError, ValueError):
        return 0.0
    return result if math.isfinite(result) else 0.0


def _of_type(entries: Iterable[dict[str, Any]], log_type: str) -> list[dict[str, Any]]:
    return [e for e in entries if e.get("type") == log_type]


# ── Per-day totals ───────────────────────────────────────────────────────────

@dataclass
class WeightSample:
    date: str
    value: float


@dataclass
class DayTotals:
    """Aggregates for one local calendar day."""

    date: str
    water: float = 0.0
    sleep: float = 0.0
    exercise: float = 0.0
    meals: int = 0
    entries: int = 0
    weight: float | None = None

    def value_for(self, tracking_type: str) -> float:
        if tracking_type == "meal":
            return float(self.meals)
        return float(getattr(self, tracking_type, 0.0) or 0.0)


def logs_for_day(daily_logs: DailyLogs, day: date) -> list[dict[str, Any]]:
    return daily_logs.get(local_date_key(day)) or []


def last_known_weight(daily_logs: DailyLogs, on_or_before: date | None = None) -> WeightSample | None:
    """Most recent weight entry from the latest day that has one."""
    cutoff = local_date_key(on_or_before) if on_or_before else None
    for key in sorted(daily_logs, reverse=True):
        if cutoff and key > cutoff:
            continue
        weights = _of_type(daily_logs.get(key) or [], "weight")
        if weights:
            return WeightSample(date=key, value=_numeric(weights[-1].get("value")))
    return None


def day_totals(daily_logs: DailyLogs, day: date | None = None) -> DayTotals:
    day = _today(day)
    entries = logs_for_day(daily_logs, day)
    sleep = _of_type(entries, "sleep")

    latest = last_known_weight(daily_logs, on_or_before=day)
    return DayTotals(
        date=local_date_key(day),
        water=sum(_numeric(e.get("value")) for e in _of_type(entries, "water")),
        sleep=_numeric(sleep[-1].get("value")) if sleep else 0.0,
        exercise=sum(_numeric(e.get("value")) for e in _of_type(entries, "exercise")),
        meals=len(_of_type(entries, "meal")),
        entries=len(entries),
        weight=latest.value if latest else None,
    )


# ── Streak ───────────────────────────────────────────────────────────────────

def calculate_streak(daily_logs: DailyLogs, today: date | None = None) -> int:
    """Consecutive logged days ending today, or yesterday if today is still empty."""
    current = _today(today)
    if not logs_for_day(daily_logs, current):
        current -= timedelta(days=1)

    streak = 0
    while streak < STREAK_LIMIT and logs_for_day(daily_logs, current):
        streak += 1
        current -= timedelta(days=1)
    return streak


# ── Range statistics ─────────────────────────────────────────────────────────

@dataclass
class RangeStats:
    start: str
    end: str
    water: float = 0.0
    sleep: float = 0.0
    exercise: float = 0.0
    meals: int = 0
    days_logged: int = 0
    weights: list[WeightSample] = field(default_factory=list)

    def average(self, metric: str) -> float:
        """Per logged day average of a summed metric (0 when nothing logged)."""
        if not self.days_logged:
            return 0.0
        return float(getattr(self, metric)) / self.days_logged


def week_range(today: date | None = None) -> tuple[date, date]:
    """Sunday through Saturday of the week containing ``today``."""
    today = _today(today)
    start = today - timedelta(days=(today.weekday() + 1) % 7)
    return start, start + timedelta(days=6)


def month_range(today: date | None = None) -> tuple[date, date]:
    today = _today(today)
    start = today.replace(day=1)
    next_month = (start + timedelta(days=32)).replace(day=1)
    return start, next_month - timedelta(days=1)


def range_stats(daily_logs: DailyLogs, start: date, end: date) -> RangeStats:
    stats = RangeStats(start=local_date_key(start), end=local_date_key(end))
    current = start
    while current <= end:
        entries = logs_for_day(daily_logs, current)
        if entries:
            stats.days_logged += 1
            stats.water += sum(_numeric(e.get("value")) for e in _of_type(entries, "water"))
            stats.sleep += sum(_numeric(e.get("value")) for e in _of_type(entries, "sleep"))
            stats.exercise += sum(_numeric(e.get("value")) for e in _of_type(entries, "exercise"))
            stats.meals += len(_of_type(entries, "meal"))
            weights = _of_type(entries, "weight")
            if weights:
                stats.weights.append(
                    WeightSample(date=local_date_key(current), value=_numeric(weights[-1].get("value")))
                )
        current += timedelta(days=1)
    return stats


def week_stats(daily_logs: DailyLogs, today: date | None = None) -> RangeStats:
    return range_stats(daily_logs, *week_range(today))


def month_stats(daily_logs: DailyLogs, today: date | None = None) -> RangeStats:
    return range_stats(daily_logs, *month_range(today))


# ── Goals ────────────────────────────────────────────────────────────────────

def goal_progress(goal: dict[str, Any], totals: DayTotals, targets: dict[str, Any] | None = None) -> dict[str, Any]:
    """Return ``goal`` with progress derived from ``totals`` if it is auto-tracked.

    The input dict is never modified; manual goals come back as a shallow copy.
    """
    tracking_type = goal.get("trackingType")
    if not goal.get("autoTracked") or not tracking_type:
        return dict(goal)

    targets = targets or {}
    target = _numeric(goal.get("target")) or _numeric(targets.get(tracking_type))
    current = totals.value_for(tracking_type) if tracking_type in GOAL_UNIT_LABELS else 0.0

    if target > 0:
        progress = min(round_half_up(current / target * 100), 100)
    else:
        progress = 0

    unit = GOAL_UNIT_LABELS.get(tracking_type, "")
    return {
        **goal,
        "progress": progress,
        "completed": progress >= 100,
        "description": f"{format_number(current)}/{format_number(target) if target > 0 else '?'} {unit}".rstrip(),
    }


def goals_with_progress(
    goals: list[dict[str, Any]],
    daily_logs: DailyLogs,
    targets: dict[str, Any] | None = None,
    today: date | None = None,
) -> list[dict[str, Any]]:
    totals = day_totals(daily_logs, today)
    return [goal_progress(g, totals, targets) for g in goals]


# ── Scores and chart series ──────────────────────────────────────────────────

def health_score(
    totals: DayTotals,
    targets: dict[str, Any] | None = None,
    enabled: dict[str, bool] | None = None,
) -> int:
    """Average percent-of-target across enabled metrics, each capped at 100."""
    targets = {**DEFAULT_TARGETS, **(targets or {})}
    enabled = enabled or {}
    parts: list[float] = []
    for metric in ("water", "sleep", "exercise", "meal"):
        if not enabled.get(metric):
            continue
        target = _numeric(targets.get(metric))
        if target <= 0:
            parts.append(0.0)
            continue
        parts.append(min(totals.value_for(metric) / target * 100, 100.0))
    return round_half_up(sum(parts) / len(parts)) if parts else 0


def weekly_chart(daily_logs: DailyLogs, today: date | None = None, days: int = 7) -> list[dict[str, Any]]:
    """One point per day for the trailing ``days`` days, oldest first."""
    today = _today(today)
    series = []
    for offset in range(days - 1, -1, -1):
        day = today - timedelta(days=offset)
        totals = day_totals(daily_logs, day)
        series.append({
            "date": day.strftime("%a"),
            "fullDate": totals.date,
            "water": totals.water,
            "sleep": totals.sleep,
            "exercise": totals.exercise,
            "meals": totals.meals,
        })
    return series


def weight_trend(daily_logs: DailyLogs, target_weight: float | None = None, limit: int = 14) -> list[dict[str, Any]]:
    points = []
    for key in sorted(daily_logs):
        weights = _of_type(daily_logs.get(key) or [], "weight")
        if not weights:
            continue
        day = parse_date_key(key)
        points.append({
            "date": f"{day.strftime('%b')} {day.day}",
            "fullDate": key,
            "weight": _numeric(weights[-1].get("value")),
            "goal": target_weight if target_weight is not None else DEFAULT_TARGETS["weight"],
        })
    return points[-limit:]
