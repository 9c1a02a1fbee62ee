"""FastAPI router proxying Google Calendar and Gmail for the client.

Every route expects ``Authorization: Bearer <access token>`` and forwards the
token upstream unchanged.  Upstream failures come back with the upstream
status and ``{"error": <Google's message or a fallback>}``; anything that
blows up locally is a 500 with a fixed message.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any

import requests
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from src.google.gmail import (
    CALENDAR_MAX_RESULTS,
    INBOX_DETAIL_LIMIT,
    INBOX_LIST_LIMIT,
    build_send_payload,
    local_day_bounds,
    message_detail,
    summarize_message,
    transform_event,
    upstream_error_message,
)

logger = logging.getLogger("assistanthub.api.google")

REPO_DIR = Path(__file__).resolve().parent.parent.parent
CONFIG_PATH = REPO_DIR / "config" / "config.yaml"

CALENDAR_EVENTS_URL = "https://www.googleapis.com/calendar/v3/calendars/primary/events"
GMAIL_MESSAGES_URL = "https://www.googleapis.com/gmail/v1/users/me/messages"

router = APIRouter(prefix="/api/google", tags=["google"])


def _cfg() -> dict[str, Any]:
    from src.common.config import load_config
    return load_config(CONFIG_PATH)


def _bearer(request: Request) -> str | None:
    header = request.headers.get("authorization", "")
    if not header.startswith("Bearer "):
        return None
    return header[len("Bearer "):].strip() or None


def _unauthorized() -> JSONResponse:
    return JSONResponse({"error": "Missing or invalid authorization header"}, status_code=401)


def _upstream_error(resp: requests.Response, fallback: str) -> JSONResponse:
    try:
        body = resp.json()
    except ValueError:
        body = None
    message = upstream_error_message(body, fallback)
    logger.warning("Google API error %s: %s", resp.status_code, message)
    return JSONResponse({"error": message}, status_code=resp.status_code)


async def _json_body(request: Request) -> dict[str, Any]:
    try:
        body = await request.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _upstream_timeout() -> float | None:
    return (_cfg().get("server", {}) or {}).get("upstream_timeout", 15)


async def _google(method: str, url: str, token: str, timeout: float | None, **kwargs: Any) -> requests.Response:
    """Run one blocking Google API call off the event loop."""
    return await asyncio.to_thread(
        requests.request,
        method,
        url,
        headers={"Authorization": f"Bearer {token}"},
        timeout=timeout,
        **kwargs,
    )


# ------------------------------------------------------------------
# Calendar
# ------------------------------------------------------------------

@router.get("/calendar")
async def calendar(request: Request) -> JSONResponse:
    token = _bearer(request)
    if not token:
        return _unauthorized()

    time_min, time_max = local_day_bounds()
    params = {
        "timeMin": time_min,
        "timeMax": time_max,
        "singleEvents": "true",
        "orderBy": "startTime",
        "maxResults": str(CALENDAR_MAX_RESULTS),
    }
    try:
        resp = await _google("GET", CALENDAR_EVENTS_URL, token, _upstream_timeout(), params=params)
        if not resp.ok:
            return _upstream_error(resp, "Failed to fetch calendar")
        events = [transform_event(e) for e in resp.json().get("items") or []]
    except Exception:
        logger.exception("Calendar fetch error")
        return JSONResponse({"error": "Failed to fetch calendar events"}, status_code=500)

    return JSONResponse({"events": events})


# ------------------------------------------------------------------
# Inbox
# ------------------------------------------------------------------

async def _message_metadata(token: str, message_id: str, timeout: float | None) -> dict[str, Any] | None:
    try:
        resp = await _google(
            "GET",
            f"{GMAIL_MESSAGES_URL}/{message_id}",
            token,
            timeout,
            params={"format": "metadata", "metadataHeaders": ["From", "Subject", "Date"]},
        )
    except requests.RequestException as exc:
        logger.warning("Metadata fetch for %s failed: %s", message_id, exc)
        return None
    if not resp.ok:
        return None
    return summarize_message(resp.json())


@router.get("/emails")
async def emails(request: Request) -> JSONResponse:
    token = _bearer(request)
    if not token:
        return _unauthorized()

    try:
        timeout = _upstream_timeout()
        resp = await _google(
            "GET",
            GMAIL_MESSAGES_URL,
            token,
            timeout,
            params={"maxResults": str(INBOX_LIST_LIMIT), "labelIds": "INBOX"},
        )
        if not resp.ok:
            return _upstream_error(resp, "Failed to fetch emails")

        ids = [m["id"] for m in resp.json().get("messages") or []][:INBOX_DETAIL_LIMIT]
        rows = await asyncio.gather(*(_message_metadata(token, mid, timeout) for mid in ids))
    except Exception:
        logger.exception("Gmail fetch error")
        return JSONResponse({"error": "Failed to fetch emails"}, status_code=500)

    return JSONResponse({"emails": [row for row in rows if row]})


@router.get("/email-detail")
async def email_detail(request: Request, id: str | None = None) -> JSONResponse:
    token = _bearer(request)
    if not token:
        return _unauthorized()
    if not id:
        return JSONResponse({"error": "Missing email id"}, status_code=400)

    try:
        resp = await _google("GET", f"{GMAIL_MESSAGES_URL}/{id}", token, _upstream_timeout(), params={"format": "full"})
        if not resp.ok:
            return _upstream_error(resp, "Failed to fetch email")
        email = message_detail(resp.json())
    except Exception:
        logger.exception("Email fetch error")
        return JSONResponse({"error": "Failed to fetch email"}, status_code=500)

    return JSONResponse({"email": email})


@router.post("/mark-read")
async def mark_read(request: Request) -> JSONResponse:
    token = _bearer(request)
    if not token:
        return _unauthorized()
    email_id = (await _json_body(request)).get("emailId")
    if not email_id:
        return JSONResponse({"error": "Email ID is required"}, status_code=400)

    try:
        resp = await _google(
            "POST",
            f"{GMAIL_MESSAGES_URL}/{email_id}/modify",
            token,
            _upstream_timeout(),
            json={"removeLabelIds": ["UNREAD"]},
        )
        if not resp.ok:
            return _upstream_error(resp, "Failed to mark email as read")
        result = resp.json()
    except Exception:
        logger.exception("Mark read error")
        return JSONResponse({"error": "Failed to mark email as read"}, status_code=500)

    return JSONResponse({"success": True, "message": "Email marked as read", "result": result})


# ------------------------------------------------------------------
# Send
# ------------------------------------------------------------------

@router.post("/send")
async def send(request: Request) -> JSONResponse:
    token = _bearer(request)
    if not token:
        return _unauthorized()
    body = await _json_body(request)
    to, subject, text = body.get("to"), body.get("subject"), body.get("body")
    if not to or not subject or not text:
        return JSONResponse({"error": "Missing required fields: to, subject, body"}, status_code=400)

    try:
        resp = await _google(
            "POST",
            f"{GMAIL_MESSAGES_URL}/send",
            token,
            _upstream_timeout(),
            json=build_send_payload(to, subject, text, body.get("threadId")),
        )
        if not resp.ok:
            return _upstream_error(resp, "Failed to send email")
        data = resp.json()
    except Exception:
        logger.exception("Gmail send error")
        return JSONResponse({"error": "Failed to send email"}, status_code=500)

    logger.info("Sent email to %s", to)
    return JSONResponse({"success": True, "messageId": data.get("id"), "threadId": data.get("threadId")})
