"""Client-side fetchers for the calendar / Gmail proxy endpoints.

Every call returns a plain dict and never raises: a missing token gives
``"Not authenticated"`` without touching the network, an HTTP error gives the
proxy's ``error`` string (or a fallback), and a transport failure gives
``"Network error"``.  Nothing is cached.
"""

from __future__ import annotations

import logging
from typing import Any

import requests

from src.auth.tokens import TokenManager

logger = logging.getLogger("assistanthub.google")

NOT_AUTHENTICATED = "Not authenticated"
NETWORK_ERROR = "Network error"


class GoogleDataClient:
    """Calendar and email operations against the proxy service."""

    def __init__(self, tokens: TokenManager, api_base: str, timeout: float | None = None) -> None:
        self._tokens = tokens
        self._base = api_base.rstrip("/")
        self._timeout = timeout

    def fetch_calendar_events(self) -> dict[str, Any]:
        """Today's events (local day)."""
        return self._call("GET", "/api/google/calendar", {"events": []}, "Failed to fetch calendar")

    def fetch_emails(self) -> dict[str, Any]:
        """Most recent inbox messages (metadata only)."""
        return self._call("GET", "/api/google/emails", {"emails": []}, "Failed to fetch emails")

    def fetch_email_by_id(self, email_id: str) -> dict[str, Any]:
        return self._call(
            "GET", "/api/google/email-detail", {"email": None}, "Failed to fetch email",
            params={"id": email_id},
        )

    def send_email(self, to: str, subject: str, body: str, thread_id: str | None = None) -> dict[str, Any]:
        payload: dict[str, Any] = {"to": to, "subject": subject, "body": body}
        if thread_id:
            payload["threadId"] = thread_id
        return self._call("POST", "/api/google/send", {"success": False}, "Failed to send email", json=payload)

    def mark_email_read(self, email_id: str) -> dict[str, Any]:
        return self._call(
            "POST", "/api/google/mark-read", {"success": False}, "Failed to mark email as read",
            json={"emailId": email_id},
        )

    def _call(
        self,
        method: str,
        path: str,
        empty: dict[str, Any],
        fallback: str,
        **kwargs: Any,
    ) -> dict[str, Any]:
        token = self._tokens.get_valid_access_token()
        if not token:
            return {**empty, "error": NOT_AUTHENTICATED}

        try:
            resp = requests.request(
                method,
                f"{self._base}{path}",
                headers={"Authorization": f"Bearer {token}"},
                timeout=self._timeout,
                **kwargs,
            )
        except requests.RequestException as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            return {**empty, "error": NETWORK_ERROR}

        if not resp.ok:
            message = _error_from(resp) or fallback
            logger.warning("%s %s returned HTTP %s: %s", method, path, resp.status_code, message)
            return {**empty, "error": message}

        try:
            data = resp.json()
        except ValueError:
            logger.warning("%s %s returned a non-JSON body", method, path)
            return {**empty, "error": fallback}
        return data if isinstance(data, dict) else {**empty, "error": fallback}


def _error_from(resp: requests.Response) -> str | None:
    try:
        body = resp.json()
    except ValueError:
        return None
    if isinstance(body, dict) and isinstance(body.get("error"), str):
        return body["error"]
    return None
