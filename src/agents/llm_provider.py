"""LLM provider abstraction using LiteLLM.

Supports OpenAI, Anthropic, Google Gemini, Azure AI Foundry, and Ollama (local).
Provider and model come from the ``agents:`` section of config.yaml, with
optional per-persona overrides under ``agents.overrides.<agent>`` (e.g. a
local Ollama model for the health coach only).  API keys come from
environment variables following LiteLLM conventions.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger("assistanthub.agents.llm")

REPO_DIR = Path(__file__).resolve().parent.parent.parent
CONFIG_PATH = REPO_DIR / "config" / "config.yaml"

_PROVIDER_MODEL_DEFAULTS: dict[str, str] = {
    "openai": "gpt-5.2",
    "anthropic": "claude-sonnet-4-20250514",
    "google": "gemini/gemini-2.5-pro",
    "azure": "azure/gpt-5.2",
    "ollama": "ollama/llama4",
}

# LiteLLM routes on these model prefixes.
_PROVIDER_PREFIXES: dict[str, str] = {
    "ollama": "ollama/",
    "azure": "azure/",
    "google": "gemini/",
}

_AGENT_KEYS = ("provider", "model", "api_base", "temperature", "max_tokens", "timeout")


def _load_agents_config(agent: str | None = None, config_path: Path | None = None) -> dict[str, Any]:
    """Agent settings from config.yaml with the persona's overrides applied."""
    cfg: dict[str, Any] = {
        "provider": "openai",
        "model": "gpt-5.2",
        "api_base": None,
        "temperature": 0.3,
        "max_tokens": None,
        "timeout": None,
    }

    path = config_path or CONFIG_PATH
    if not path.is_file():
        return cfg

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as exc:
        logger.warning("Failed to load %s: %s", path, exc)
        return cfg

    agents = raw.get("agents") or {}
    cfg.update({k: agents[k] for k in _AGENT_KEYS if agents.get(k) is not None})
    override = (agents.get("overrides") or {}).get(agent) if agent else None
    if override:
        cfg.update(override)
    return cfg


def _resolve_model(cfg: dict[str, Any]) -> str:
    """LiteLLM model string for the configured provider + model."""
    provider = cfg.get("provider", "openai")
    model = cfg.get("model") or _PROVIDER_MODEL_DEFAULTS.get(provider, "gpt-5.2")
    prefix = _PROVIDER_PREFIXES.get(provider)
    if prefix and not model.startswith(prefix):
        model = f"{prefix}{model}"
    return model


def complete(
    messages: list[dict[str, str]],
    agent: str | None = None,
    model_override: str | None = None,
    config_path: Path | None = None,
) -> str:
    """Send messages to the configured LLM provider. Returns response text.

    Parameters
    ----------
    messages:
        OpenAI-format message list (role + content dicts).
    agent:
        Persona name (``personal``, ``health``, ...) for per-persona overrides.
    model_override:
        Override the configured model for this call.
    config_path:
        Alternate config.yaml (defaults to the repo's).
    """
    import litellm

    cfg = _load_agents_config(agent, config_path)
    if model_override:
        cfg["model"] = model_override

    model = _resolve_model(cfg)
    kwargs: dict[str, Any] = {
        "model": model,
        "messages": messages,
        "temperature": cfg.get("temperature", 0.3),
    }
    for key in ("api_base", "max_tokens", "timeout"):
        if cfg.get(key):
            kwargs[key] = cfg[key]

    logger.info("LLM call: model=%s, agent=%s, msgs=%d", model, agent, len(messages))

    litellm.drop_params = True
    response = litellm.completion(**kwargs)
    content = response.choices[0].message.content or ""

    logger.info("LLM response: %d chars", len(content))
    return content
