"""FastAPI router for the Google OAuth flow: login, callback, refresh.

The client never sees the client secret.  The callback hands the token record
back to the front end as ``/?auth_success=<base64 JSON>``; the client-side
:class:`~src.auth.tokens.TokenManager` decodes and stores it.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any
from urllib.parse import quote, urlencode

import requests
from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse, RedirectResponse

from src.auth.tokens import encode_auth_payload, now_ms

logger = logging.getLogger("assistanthub.api.auth")

REPO_DIR = Path(__file__).resolve().parent.parent.parent
CONFIG_PATH = REPO_DIR / "config" / "config.yaml"

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _cfg() -> dict[str, Any]:
    from src.common.config import load_config
    return load_config(CONFIG_PATH)


def _google(cfg: dict[str, Any]) -> dict[str, Any]:
    return cfg.get("google", {}) or {}


def _timeout(cfg: dict[str, Any]) -> float | None:
    return (cfg.get("server", {}) or {}).get("upstream_timeout", 15)


def _redirect(query: str) -> RedirectResponse:
    return RedirectResponse(f"/?{query}", status_code=302)


async def _json_body(request: Request) -> dict[str, Any]:
    try:
        body = await request.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


# ------------------------------------------------------------------
# Consent screen
# ------------------------------------------------------------------

@router.get("/login")
async def login() -> Response:
    google = _google(_cfg())
    if not google.get("client_id"):
        return JSONResponse({"error": "Google OAuth client not configured"}, status_code=500)

    params = {
        "client_id": google["client_id"],
        "redirect_uri": google.get("redirect_uri", ""),
        "response_type": "code",
        "scope": " ".join(google.get("scopes") or []),
        "access_type": "offline",
        "prompt": "consent",
    }
    return RedirectResponse(f"{GOOGLE_AUTH_URL}?{urlencode(params)}", status_code=302)


# ------------------------------------------------------------------
# Callback
# ------------------------------------------------------------------

def _exchange_code(code: str, cfg: dict[str, Any]) -> dict[str, Any]:
    google = _google(cfg)
    resp = requests.post(
        GOOGLE_TOKEN_URL,
        data={
            "code": code,
            "client_id": google.get("client_id", ""),
            "client_secret": google.get("client_secret", ""),
            "redirect_uri": google.get("redirect_uri", ""),
            "grant_type": "authorization_code",
        },
        timeout=_timeout(cfg),
    )
    return resp.json()


def _fetch_user(access_token: str, cfg: dict[str, Any]) -> dict[str, Any]:
    resp = requests.get(
        GOOGLE_USERINFO_URL,
        headers={"Authorization": f"Bearer {access_token}"},
        timeout=_timeout(cfg),
    )
    user = resp.json()
    return user if isinstance(user, dict) else {}


@router.get("/callback")
async def callback(code: str | None = None, error: str | None = None) -> RedirectResponse:
    if error:
        return _redirect(f"auth_error={quote(error, safe='')}")
    if not code:
        return _redirect("auth_error=no_code")

    try:
        cfg = _cfg()
        tokens = await asyncio.to_thread(_exchange_code, code, cfg)
        if tokens.get("error"):
            logger.error("Token error: %s", tokens)
            return _redirect(f"auth_error={quote(str(tokens['error']), safe='')}")

        user = await asyncio.to_thread(_fetch_user, tokens["access_token"], cfg)
        record = {
            "access_token": tokens["access_token"],
            "refresh_token": tokens.get("refresh_token"),
            "expires_at": now_ms() + int(tokens.get("expires_in", 0)) * 1000,
            "user": {
                "email": user.get("email"),
                "name": user.get("name"),
                "picture": user.get("picture"),
            },
        }
    except Exception:
        logger.exception("Auth callback error")
        return _redirect("auth_error=server_error")

    logger.info("OAuth callback completed for %s", record["user"]["email"])
    return _redirect(f"auth_success={quote(encode_auth_payload(record), safe='')}")


# ------------------------------------------------------------------
# Refresh
# ------------------------------------------------------------------

def _refresh(refresh_token: str, cfg: dict[str, Any]) -> dict[str, Any]:
    google = _google(cfg)
    resp = requests.post(
        GOOGLE_TOKEN_URL,
        data={
            "refresh_token": refresh_token,
            "client_id": google.get("client_id", ""),
            "client_secret": google.get("client_secret", ""),
            "grant_type": "refresh_token",
        },
        timeout=_timeout(cfg),
    )
    return resp.json()


@router.post("/refresh")
async def refresh(request: Request) -> JSONResponse:
    body = await _json_body(request)
    refresh_token = body.get("refresh_token")
    if not refresh_token:
        return JSONResponse({"error": "Missing refresh_token"}, status_code=400)

    try:
        tokens = await asyncio.to_thread(_refresh, refresh_token, _cfg())
        if tokens.get("error"):
            logger.warning("Google rejected refresh: %s", tokens["error"])
            return JSONResponse({"error": tokens["error"]}, status_code=400)
        payload = {
            "access_token": tokens["access_token"],
            "expires_at": now_ms() + int(tokens.get("expires_in", 0)) * 1000,
        }
    except Exception:
        logger.exception("Token refresh error")
        return JSONResponse({"error": "Failed to refresh token"}, status_code=500)

    return JSONResponse(payload)
