"""Reshaping helpers for Google Calendar / Gmail REST payloads.

Pure functions only -- the proxy routes do the HTTP and hand the raw JSON
here.  Email dates are rendered in the server's local timezone.
"""

from __future__ import annotations

import base64
import re
from datetime import datetime, time, timedelta
from email.utils import parsedate_to_datetime
from typing import Any

from src.common.timefmt import clock_label, long_date_label, short_date_label, to_iso_z

CALENDAR_MAX_RESULTS = 20
INBOX_LIST_LIMIT = 20
INBOX_DETAIL_LIMIT = 10

FROM_RE = re.compile(r"^(.+?)\s*<(.+?)>$")


def get_header(msg: dict[str, Any], name: str) -> str:
    headers = (msg.get("payload") or {}).get("headers") or []
    wanted = name.lower()
    for h in headers:
        if str(h.get("name", "")).lower() == wanted:
            return h.get("value") or ""
    return ""


def parse_from_header(raw: str) -> tuple[str, str]:
    """``"Jane Doe" <jane@x.com>`` -> (``Jane Doe``, ``jane@x.com``)."""
    m = FROM_RE.match(raw)
    if not m:
        return raw, raw
    return m.group(1).replace('"', ""), m.group(2)


def _parse_date(value: str) -> datetime | None:
    if not value:
        return None
    try:
        dt = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return None
    return dt.astimezone()


def format_list_time(date_header: str, now: datetime | None = None) -> str:
    """Clock time for today's mail, ``Mon D`` otherwise; empty if unparseable."""
    dt = _parse_date(date_header)
    if dt is None:
        return ""
    now = (now or datetime.now()).astimezone()
    return clock_label(dt) if dt.date() == now.date() else short_date_label(dt)


def format_detail_date(date_header: str) -> str:
    dt = _parse_date(date_header)
    return long_date_label(dt) if dt else ""


def summarize_message(msg: dict[str, Any], now: datetime | None = None) -> dict[str, Any]:
    """Inbox list row from a ``format=metadata`` message."""
    name, address = parse_from_header(get_header(msg, "From"))
    labels = msg.get("labelIds") or []
    return {
        "id": msg.get("id"),
        "threadId": msg.get("threadId"),
        "from": name,
        "fromEmail": address,
        "subject": get_header(msg, "Subject") or "(No subject)",
        "preview": msg.get("snippet") or "",
        "time": format_list_time(get_header(msg, "Date"), now),
        "read": "UNREAD" not in labels,
        "priority": "IMPORTANT" in labels or "STARRED" in labels,
        "labelIds": labels,
    }


def _b64url_decode(data: str) -> str:
    data = data.replace("+", "-").replace("/", "_")
    padded = data + "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(padded).decode("utf-8", errors="replace")


def extract_body(payload: dict[str, Any] | None) -> tuple[str, bool]:
    """Walk the MIME tree; return (body, is_html), preferring HTML."""
    found = {"text/plain": "", "text/html": ""}

    def _walk(part: dict[str, Any]) -> None:
        data = (part.get("body") or {}).get("data")
        mime = part.get("mimeType")
        if data and mime in found:
            found[mime] = _b64url_decode(data)
        for sub in part.get("parts") or []:
            _walk(sub)

    _walk(payload or {})
    if found["text/html"]:
        return found["text/html"], True
    return found["text/plain"], False


def message_detail(msg: dict[str, Any]) -> dict[str, Any]:
    """Full email view from a ``format=full`` message."""
    name, address = parse_from_header(get_header(msg, "From"))
    body, is_html = extract_body(msg.get("payload"))
    return {
        "id": msg.get("id"),
        "threadId": msg.get("threadId"),
        "from": name,
        "fromEmail": address,
        "to": get_header(msg, "To"),
        "subject": get_header(msg, "Subject") or "(No subject)",
        "date": format_detail_date(get_header(msg, "Date")),
        "body": body or msg.get("snippet") or "",
        "isHtml": is_html,
        "labelIds": msg.get("labelIds") or [],
    }


def transform_event(event: dict[str, Any]) -> dict[str, Any]:
    start = event.get("start") or {}
    end = event.get("end") or {}
    entry_points = (event.get("conferenceData") or {}).get("entryPoints") or [{}]
    return {
        "id": event.get("id"),
        "title": event.get("summary") or "(No title)",
        "description": event.get("description") or "",
        "location": event.get("location") or "",
        "start": start.get("dateTime") or start.get("date"),
        "end": end.get("dateTime") or end.get("date"),
        "allDay": not start.get("dateTime"),
        "attendees": ", ".join(a.get("email", "") for a in event.get("attendees") or []),
        "meetLink": event.get("hangoutLink") or entry_points[0].get("uri") or "",
        "status": event.get("status"),
    }


def local_day_bounds(now: datetime | None = None) -> tuple[str, str]:
    """``timeMin`` / ``timeMax`` for the local calendar day, as UTC ISO strings."""
    today = (now or datetime.now()).date()
    start = datetime.combine(today, time.min)
    end = datetime.combine(today + timedelta(days=1), time.min)
    return to_iso_z(start), to_iso_z(end)


def build_raw_message(to: str, subject: str, body: str) -> str:
    """RFC 2822 HTML message, base64url without padding (Gmail ``raw``)."""
    lines = [
        f"To: {to}",
        f"Subject: {subject}",
        "Content-Type: text/html; charset=utf-8",
        "",
        body,
    ]
    raw = "\r\n".join(lines).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def build_send_payload(to: str, subject: str, body: str, thread_id: str | None = None) -> dict[str, Any]:
    payload: dict[str, Any] = {"raw": build_raw_message(to, subject, body)}
    if thread_id:
        payload["threadId"] = thread_id
    return payload


def upstream_error_message(body: Any, fallback: str) -> str:
    """Google's ``{"error": {"message": ...}}`` or ``fallback``."""
    if isinstance(body, dict):
        err = body.get("error")
        if isinstance(err, dict) and err.get("message"):
            return str(err["message"])
    return fallback
