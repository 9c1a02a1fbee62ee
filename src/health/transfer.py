"""CSV / JSON export and import of the health-coach dataset.

Import is two-phase: ``parse_import`` validates and normalizes a file into a
bundle (raising :class:`ImportFormatError` before anything is touched), then
``apply_import`` reconciles the bundle into a dataset in ``merge`` or
``replace`` mode and returns a new dataset.

Merge de-duplicates log entries by exact timestamp string, so two distinct
entries logged with the same timestamp collide and the imported one is
dropped.
"""

from __future__ import annotations

import csv
import io
import json
import logging
import re
from datetime import datetime, timezone
from typing import Any

from src.common.timefmt import to_iso_z
from src.health.metrics import format_number, timestamp_now
from src.store.defaults import DEFAULT_UNITS

logger = logging.getLogger("assistanthub.health.transfer")

CSV_HEADER = ["Date", "Type", "Value", "Unit", "Notes", "Timestamp"]
IMPORT_MODES = ("merge", "replace")

_LEADING_FLOAT_RE = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?")


class ImportFormatError(ValueError):
    """The file is not a usable health-data export."""


# ── Export ───────────────────────────────────────────────────────────────────

def export_csv(daily_logs: dict[str, list[dict[str, Any]]]) -> str:
    """Spreadsheet-friendly dump: dates ascending, entries by timestamp within a day."""
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for day in sorted(daily_logs):
        entries = sorted(daily_logs.get(day) or [], key=lambda e: str(e.get("timestamp") or ""))
        for entry in entries:
            writer.writerow([
                day,
                entry.get("type", ""),
                format_number(entry.get("value")),
                entry.get("unit") or "",
                entry.get("notes") or "",
                entry.get("timestamp") or "",
            ])
    return buf.getvalue().rstrip("\n")


def export_json(dataset: dict[str, Any], now: datetime | None = None) -> str:
    """Full backup: goals, logs and settings."""
    stamp = now or datetime.now(timezone.utc)
    payload = {
        "exportDate": to_iso_z(stamp),
        "goals": dataset.get("goals", []),
        "dailyLogs": dataset.get("dailyLogs", {}),
        "settings": {
            "enabledMetrics": dataset.get("enabledMetrics"),
            "targets": dataset.get("targets"),
        },
    }
    return json.dumps(payload, indent=2)


def export_filename(fmt: str, today: datetime | None = None) -> str:
    stamp = (today or datetime.now()).strftime("%Y-%m-%d")
    return f"health-data-{stamp}.{fmt}"


# ── Parse ────────────────────────────────────────────────────────────────────

def parse_float(text: str) -> float:
    """Leading-number parse: ``"12abc"`` -> 12.0, garbage -> 0.0."""
    match = _LEADING_FLOAT_RE.match(text.strip())
    if not match:
        return 0.0
    try:
        return float(match.group(0))
    except ValueError:
        return 0.0


def parse_csv(content: str) -> dict[str, Any]:
    # Spreadsheet exports often start with a UTF-8 byte-order mark.
    content = content.removeprefix("\ufeff")
    rows = [row for row in csv.reader(io.StringIO(content)) if any(cell.strip() for cell in row)]
    if len(rows) < 2:
        raise ImportFormatError("CSV file is empty or has no data rows")

    header = [h.strip().lower() for h in rows[0]]

    def _col(name: str) -> int:
        return header.index(name) if name in header else -1

    date_idx, type_idx, value_idx = _col("date"), _col("type"), _col("value")
    unit_idx, notes_idx, ts_idx = _col("unit"), _col("notes"), _col("timestamp")

    if -1 in (date_idx, type_idx, value_idx):
        raise ImportFormatError("CSV must have Date, Type, and Value columns")

    def _cell(row: list[str], idx: int) -> str:
        return row[idx].strip() if 0 <= idx < len(row) else ""

    daily_logs: dict[str, list[dict[str, Any]]] = {}
    skipped = 0
    for row in rows[1:]:
        day = _cell(row, date_idx)
        log_type = _cell(row, type_idx).lower()
        raw_value = _cell(row, value_idx)
        if not day or not log_type or raw_value == "":
            skipped += 1
            continue

        value: Any = raw_value if log_type == "meal" else parse_float(raw_value)
        daily_logs.setdefault(day, []).append({
            "type": log_type,
            "value": value,
            "unit": _cell(row, unit_idx) or DEFAULT_UNITS.get(log_type, ""),
            "notes": _cell(row, notes_idx),
            "timestamp": _cell(row, ts_idx) or timestamp_now(),
        })

    if skipped:
        logger.info("Skipped %d incomplete CSV row(s)", skipped)
    return {"dailyLogs": daily_logs, "goals": [], "settings": None}


def parse_json(content: str) -> dict[str, Any]:
    try:
        data = json.loads(content)
    except json.JSONDecodeError as exc:
        raise ImportFormatError(f"Failed to parse file: {exc}") from exc

    if not isinstance(data, dict) or not isinstance(data.get("dailyLogs"), dict):
        raise ImportFormatError(
            "Invalid JSON format. This doesn't appear to be a valid health data export."
        )
    for day, entries in data["dailyLogs"].items():
        if not isinstance(entries, list):
            raise ImportFormatError(f"Invalid JSON format. Logs for {day} are not a list.")
        if not all(isinstance(entry, dict) for entry in entries):
            raise ImportFormatError(f"Invalid JSON format. Logs for {day} must be objects.")
    if data.get("goals") is not None and not isinstance(data["goals"], list):
        raise ImportFormatError("Invalid JSON format. Goals must be a list.")
    if not all(isinstance(goal, dict) for goal in data.get("goals") or []):
        raise ImportFormatError("Invalid JSON format. Each goal must be an object.")
    if data.get("settings") is not None and not isinstance(data["settings"], dict):
        raise ImportFormatError("Invalid JSON format. Settings must be an object.")
    return data


def parse_import(content: str, filename: str | None = None, fmt: str | None = None) -> dict[str, Any]:
    """Parse an export file, choosing the format from ``fmt`` or the file extension."""
    if fmt is None and filename:
        lower = filename.lower()
        if lower.endswith(".json"):
            fmt = "json"
        elif lower.endswith(".csv"):
            fmt = "csv"
    if fmt == "json":
        return parse_json(content)
    if fmt == "csv":
        return parse_csv(content)
    raise ImportFormatError("Please select a JSON or CSV file.")


def summarize_import(bundle: dict[str, Any]) -> dict[str, Any]:
    """Preview of what an import would bring in."""
    daily_logs = bundle.get("dailyLogs") or {}
    dates = sorted(daily_logs)
    settings = bundle.get("settings") or {}
    return {
        "totalDays": len(dates),
        "totalEntries": sum(len(v) for v in daily_logs.values() if isinstance(v, list)),
        "firstDate": dates[0] if dates else None,
        "lastDate": dates[-1] if dates else None,
        "goalsCount": len(bundle.get("goals") or []),
        "hasSettings": bool(settings.get("enabledMetrics") or settings.get("targets")),
        "exportDate": bundle.get("exportDate"),
    }


# ── Reconcile ────────────────────────────────────────────────────────────────

def apply_import(dataset: dict[str, Any], bundle: dict[str, Any], mode: str = "merge") -> dict[str, Any]:
    """Return a new dataset with ``bundle`` reconciled in.

    ``replace`` overwrites goals, logs and settings wholesale and is not
    safe to repeat.  ``merge`` appends log entries whose timestamp is new for
    that date and goals whose id is new; applying it twice is a no-op the
    second time.
    """
    if mode not in IMPORT_MODES:
        raise ValueError(f"Unknown import mode: {mode}")

    imported_logs = bundle.get("dailyLogs") or {}
    imported_goals = bundle.get("goals")

    if mode == "replace":
        settings = bundle.get("settings") or {}
        return {
            **dataset,
            "goals": list(imported_goals) if imported_goals is not None else dataset.get("goals", []),
            "dailyLogs": {day: list(entries) for day, entries in imported_logs.items()},
            "enabledMetrics": settings.get("enabledMetrics") or dataset.get("enabledMetrics"),
            "targets": settings.get("targets") or dataset.get("targets"),
        }

    merged = {day: list(entries) for day, entries in (dataset.get("dailyLogs") or {}).items()}
    for day, entries in imported_logs.items():
        if day not in merged:
            merged[day] = list(entries)
            continue
        seen = {e.get("timestamp") for e in merged[day]}
        merged[day].extend(e for e in entries if e.get("timestamp") not in seen)

    goals = list(dataset.get("goals") or [])
    known_ids = {g.get("id") for g in goals}
    goals.extend(g for g in imported_goals or [] if g.get("id") not in known_ids)

    return {**dataset, "goals": goals, "dailyLogs": merged}
