"""Load and validate Assistant Hub configuration from config.yaml."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger("assistanthub")

_DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent.parent / "config" / "config.yaml"

_ENV_OVERRIDES: dict[str, tuple[str, ...]] = {
    "ASSISTANTHUB_DATA_DIR": ("storage", "data_dir"),
    "ASSISTANTHUB_API_BASE": ("client", "api_base"),
    "ASSISTANTHUB_LOG_DIR": ("log_dir",),
    "GOOGLE_CLIENT_ID": ("google", "client_id"),
    "GOOGLE_CLIENT_SECRET": ("google", "client_secret"),
    "GOOGLE_REDIRECT_URI": ("google", "redirect_uri"),
}


def load_config(config_path: Path | str | None = None) -> dict[str, Any]:
    """Load configuration from YAML file, with env-var overrides.

    Environment variable overrides (if set):
        ASSISTANTHUB_DATA_DIR  -> storage.data_dir
        ASSISTANTHUB_API_BASE  -> client.api_base
        ASSISTANTHUB_LOG_DIR   -> log_dir
        GOOGLE_CLIENT_ID       -> google.client_id
        GOOGLE_CLIENT_SECRET   -> google.client_secret
        GOOGLE_REDIRECT_URI    -> google.redirect_uri
    """
    path = Path(config_path) if config_path else _DEFAULT_CONFIG_PATH
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, encoding="utf-8") as fh:
        cfg: dict[str, Any] = yaml.safe_load(fh) or {}

    for env_key, keys in _ENV_OVERRIDES.items():
        _env_override(cfg, env_key, *keys)

    _validate(cfg)
    return cfg


def _env_override(cfg: dict, env_key: str, *keys: str) -> None:
    """Override a nested config value from an environment variable."""
    val = os.environ.get(env_key)
    if val is None:
        return
    target = cfg
    for k in keys[:-1]:
        target = target.setdefault(k, {})
    target[keys[-1]] = val


def _validate(cfg: dict[str, Any]) -> None:
    """Check required keys; warn about optional integrations that are unset."""
    if not cfg.get("storage", {}).get("data_dir"):
        raise ValueError("storage.data_dir is required in config.yaml")

    google = cfg.get("google", {})
    if not google.get("client_id") or not google.get("client_secret"):
        logger.warning("Google OAuth client not configured -- calendar and email endpoints will fail")

    if not google.get("redirect_uri"):
        logger.warning("google.redirect_uri not set -- OAuth callback cannot complete")


def resolve_data_dir(cfg: dict[str, Any]) -> Path:
    """Return the absolute local storage directory, creating it if needed."""
    out = Path(os.path.expanduser(str(cfg["storage"]["data_dir"])))
    out.mkdir(parents=True, exist_ok=True)
    return out


def api_base(cfg: dict[str, Any]) -> str:
    """Base URL of the proxy service, without a trailing slash."""
    return str(cfg.get("client", {}).get("api_base", "http://localhost:8765")).rstrip("/")


def setup_logging(cfg: dict[str, Any]) -> None:
    """Configure the ``assistanthub`` logger: stderr + rotating file.

    Safe to call more than once (CLI and server both call it); handlers are
    only attached the first time.
    """
    root = logging.getLogger("assistanthub")
    root.setLevel(getattr(logging, str(cfg.get("log_level", "INFO")).upper(), logging.INFO))
    if root.handlers:
        return

    from logging.handlers import RotatingFileHandler

    log_dir = Path(os.path.expanduser(str(cfg.get("log_dir", "logs"))))
    log_dir.mkdir(parents=True, exist_ok=True)
    fmt = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    stream = logging.StreamHandler()
    stream.setFormatter(fmt)
    root.addHandler(stream)

    rotating = RotatingFileHandler(log_dir / "assistanthub.log", maxBytes=5_000_000, backupCount=3)
    rotating.setFormatter(fmt)
    root.addHandler(rotating)
