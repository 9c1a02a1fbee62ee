"""Google OAuth token lifecycle for the client side.

The stored auth record (``googleAuth`` slice) is in one of three states:

* VALID          -- access token usable as-is
* EXPIRING_SOON  -- within 5 minutes of ``expires_at``; refreshed lazily
* INVALID        -- no record, or a refresh failed and the record was cleared

Refresh only ever happens on demand from :meth:`TokenManager.get_valid_access_token`;
there is no background timer and no retry.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import time
from enum import Enum
from typing import Any

import requests

from src.store.app_store import AppStore

logger = logging.getLogger("assistanthub.auth")

EXPIRY_MARGIN_MS = 5 * 60 * 1000


class TokenState(str, Enum):
    VALID = "valid"
    EXPIRING_SOON = "expiring_soon"
    INVALID = "invalid"


def now_ms() -> int:
    return int(time.time() * 1000)


def encode_auth_payload(record: dict[str, Any]) -> str:
    """Standard base64 of the JSON record, as carried in ``?auth_success=``."""
    return base64.b64encode(json.dumps(record).encode("utf-8")).decode("ascii")


def decode_auth_payload(encoded: str) -> dict[str, Any]:
    """Inverse of :func:`encode_auth_payload`. Raises ``ValueError`` if malformed."""
    try:
        raw = base64.b64decode(encoded, validate=True)
        data = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ValueError(f"Malformed auth payload: {exc}") from exc
    if not isinstance(data, dict) or not data.get("access_token"):
        raise ValueError("Auth payload has no access_token")
    return data


class TokenManager:
    """Hands out a usable access token, refreshing through the proxy when needed."""

    def __init__(self, store: AppStore, api_base: str, timeout: float | None = None) -> None:
        self._store = store
        self._refresh_url = f"{api_base.rstrip('/')}/api/auth/refresh"
        self._timeout = timeout

    def state(self, now: int | None = None) -> TokenState:
        auth = self._store.google_auth
        if not auth or not auth.get("access_token"):
            return TokenState.INVALID
        expires_at = auth.get("expires_at")
        current = now if now is not None else now_ms()
        if expires_at and current > expires_at - EXPIRY_MARGIN_MS:
            return TokenState.EXPIRING_SOON
        return TokenState.VALID

    def get_valid_access_token(self) -> str | None:
        state = self.state()
        if state is TokenState.INVALID:
            return None
        auth = self._store.google_auth
        if state is TokenState.VALID:
            return auth["access_token"]
        return self._refresh(auth)

    def _refresh(self, auth: dict[str, Any]) -> str | None:
        try:
            resp = requests.post(
                self._refresh_url,
                json={"refresh_token": auth.get("refresh_token")},
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            logger.warning("Token refresh failed: %s", exc)
            self._store.clear_google_auth()
            return None

        if not resp.ok:
            logger.warning("Token refresh rejected (HTTP %s); re-authentication required", resp.status_code)
            self._store.clear_google_auth()
            return None

        try:
            tokens = resp.json()
            access_token = tokens["access_token"]
        except (ValueError, KeyError, TypeError) as exc:
            logger.warning("Token refresh returned an unusable body: %s", exc)
            self._store.clear_google_auth()
            return None

        self._store.set_google_auth({
            **auth,
            "access_token": access_token,
            "expires_at": tokens.get("expires_at"),
        })
        logger.info("Refreshed Google access token")
        return access_token

    def accept_redirect(self, auth_success: str | None = None, auth_error: str | None = None) -> bool:
        """Store the record carried back by the OAuth callback redirect."""
        if auth_error:
            logger.error("Auth error: %s", auth_error)
        if not auth_success:
            return False
        try:
            record = decode_auth_payload(auth_success)
        except ValueError as exc:
            logger.error("Failed to parse auth data: %s", exc)
            return False
        self._store.set_google_auth(record)
        return True

    def logout(self) -> None:
        self._store.clear_google_auth()
