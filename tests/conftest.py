"""Shared fixtures: temp data directory, store, config file, ASGI client."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock, patch

import httpx
import pytest
import pytest_asyncio

from src.common.state import SliceStorage
from src.store.app_store import AppStore

os.environ.setdefault("OPENAI_API_KEY", "sk-test-fake-key")

REPO_DIR = Path(__file__).resolve().parent.parent

_ENV_OVERRIDES = (
    "ASSISTANTHUB_DATA_DIR",
    "ASSISTANTHUB_API_BASE",
    "ASSISTANTHUB_LOG_DIR",
    "GOOGLE_CLIENT_ID",
    "GOOGLE_CLIENT_SECRET",
    "GOOGLE_REDIRECT_URI",
)


def fake_response(status_code: int = 200, payload: Any = None, json_error: bool = False) -> MagicMock:
    """Stand-in for ``requests.Response``."""
    resp = MagicMock()
    resp.status_code = status_code
    resp.ok = 200 <= status_code < 400
    if json_error:
        resp.json.side_effect = ValueError("No JSON object could be decoded")
    else:
        resp.json.return_value = payload if payload is not None else {}
    return resp


def _make_mock_litellm_response(content: str = "Test response"):
    """Build a mock LiteLLM ModelResponse."""
    msg = MagicMock()
    msg.content = content

    choice = MagicMock()
    choice.message = msg

    resp = MagicMock()
    resp.choices = [choice]
    return resp


@pytest.fixture()
def mock_llm():
    """Patch litellm.completion to return a deterministic response."""
    with patch("litellm.completion", return_value=_make_mock_litellm_response()) as m:
        yield m


@pytest.fixture()
def storage(tmp_path: Path) -> SliceStorage:
    return SliceStorage(tmp_path / "data")


@pytest.fixture()
def store(storage: SliceStorage) -> AppStore:
    return AppStore(storage)


@pytest.fixture()
def config_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    for key in _ENV_OVERRIDES:
        monkeypatch.delenv(key, raising=False)

    config_dir = tmp_path / "config"
    config_dir.mkdir()
    config_content = f"""
storage:
  data_dir: {tmp_path}/data
  key_prefix: myassistant_
client:
  api_base: http://proxy.test/
  timeout: 5
server:
  host: 127.0.0.1
  port: 8765
  upstream_timeout: 15
google:
  client_id: test-client-id
  client_secret: test-client-secret
  redirect_uri: http://test/api/auth/callback
  scopes:
    - openid
    - email
    - https://www.googleapis.com/auth/gmail.send
agents:
  responder: summary
  provider: openai
  model: gpt-5.2
  temperature: 0.3
log_dir: {tmp_path}/logs
log_level: INFO
"""
    config_file = config_dir / "config.yaml"
    config_file.write_text(config_content)
    return config_file


@pytest_asyncio.fixture()
async def client(config_file: Path):
    """Async httpx client bound to the FastAPI app with a temp config."""
    with patch("src.api.auth_routes.CONFIG_PATH", config_file), \
         patch("src.api.google_routes.CONFIG_PATH", config_file), \
         patch("src.common.config._validate"):

        from src.api.app import app
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
            yield c
