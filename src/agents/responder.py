"""Pluggable reply generation for the agent chat panes.

Call sites only depend on :class:`ResponseGenerator` (``generate(text,
context) -> str``).  Two implementations ship:

* :class:`SummaryResponder` -- offline, deterministic; answers from the
  context (today's totals, streak, open goals, reminders).
* :class:`LLMResponder` -- sends the context as a system prompt through
  :mod:`src.agents.llm_provider`.
"""

from __future__ import annotations

import logging
from dataclasses import asdict
from datetime import date, datetime
from pathlib import Path
from typing import Any, Protocol

from src.agents import llm_provider
from src.health.metrics import calculate_streak, day_totals, format_number, goals_with_progress
from src.store.actions import append_chat_message
from src.store.app_store import AppStore
from src.store.defaults import AGENT_NAMES

logger = logging.getLogger("assistanthub.agents.responder")

LLM_FALLBACK_REPLY = "Sorry, I couldn't reach the assistant service just now. Please try again in a moment."
HISTORY_WINDOW = 10


class ResponseGenerator(Protocol):
    def generate(self, text: str, context: dict[str, Any]) -> str: ...


def build_context(store: AppStore, agent: str, today: date | None = None) -> dict[str, Any]:
    """Snapshot of what a persona knows when answering."""
    dataset = store.agent(agent)
    context: dict[str, Any] = {
        "agent": agent,
        "persona": AGENT_NAMES[agent],
        "userName": store.profile.get("name", ""),
        "history": list(dataset.get("chatHistory") or [])[-HISTORY_WINDOW:],
        "reminders": [
            {"text": r.get("text", ""), "time": r.get("time", ""), "urgent": bool(r.get("urgent"))}
            for r in dataset.get("reminders") or []
        ],
    }

    goals = dataset.get("goals") or []
    if agent == "health":
        logs = dataset.get("dailyLogs") or {}
        goals = goals_with_progress(goals, logs, dataset.get("targets"), today)
        context["today"] = asdict(day_totals(logs, today))
        context["targets"] = dict(dataset.get("targets") or {})
        context["streak"] = calculate_streak(logs, today)

    context["goals"] = [
        {"title": g.get("title", ""), "progress": g.get("progress", 0), "completed": bool(g.get("completed"))}
        for g in goals
    ]
    return context


class SummaryResponder:
    """Answers every message with a short status summary built from the context."""

    def generate(self, text: str, context: dict[str, Any]) -> str:
        name = context.get("userName")
        lines = [f"Hi{' ' + name if name else ''}! I'm your {context.get('persona', 'assistant')}."]

        today = context.get("today")
        if today:
            targets = context.get("targets") or {}
            lines.append(
                "Today so far: "
                f"water {format_number(today['water'])}/{format_number(targets.get('water', 8))} glasses, "
                f"sleep {format_number(today['sleep'])} hours, "
                f"exercise {format_number(today['exercise'])} minutes, "
                f"{today['meals']} meal{'s' if today['meals'] != 1 else ''} logged."
            )
        streak = context.get("streak")
        if streak:
            lines.append(f"You're on a {streak}-day logging streak.")

        open_goals = [g["title"] for g in context.get("goals", []) if not g.get("completed")]
        if open_goals:
            lines.append("Open goals: " + "; ".join(open_goals) + ".")

        reminders = context.get("reminders") or []
        if reminders:
            lines.append("Coming up: " + "; ".join(f"{r['text']} ({r['time']})" for r in reminders) + ".")

        lines.append("What would you like to focus on?")
        return "\n".join(lines)


def _system_prompt(context: dict[str, Any]) -> str:
    facts = {k: v for k, v in context.items() if k not in ("history", "agent", "persona")}
    return (
        f"You are the user's {context.get('persona', 'assistant')} inside a personal productivity app. "
        "Be brief, practical and encouraging. Use only the facts below about the user.\n\n"
        f"Facts: {facts}"
    )


class LLMResponder:
    """Reply through the configured LiteLLM provider."""

    def __init__(self, config_path: Path | None = None) -> None:
        self._config_path = config_path

    def generate(self, text: str, context: dict[str, Any]) -> str:
        messages: list[dict[str, str]] = [{"role": "system", "content": _system_prompt(context)}]
        for msg in context.get("history", []):
            role = "user" if msg.get("sender") == "user" else "assistant"
            messages.append({"role": role, "content": msg.get("text", "")})
        messages.append({"role": "user", "content": text})

        try:
            return llm_provider.complete(messages, agent=context.get("agent"), config_path=self._config_path)
        except Exception as exc:
            logger.warning("LLM reply failed for %s: %s", context.get("agent"), exc)
            return LLM_FALLBACK_REPLY


def get_responder(cfg: dict[str, Any], config_path: Path | None = None) -> ResponseGenerator:
    kind = (cfg.get("agents") or {}).get("responder", "summary")
    if kind == "llm":
        return LLMResponder(config_path)
    if kind == "summary":
        return SummaryResponder()
    raise ValueError(f"Unknown responder: {kind!r} (expected 'summary' or 'llm')")


def converse(
    store: AppStore,
    agent: str,
    text: str,
    responder: ResponseGenerator,
    now: datetime | None = None,
) -> str:
    """Record the user's message, generate a reply, record and return it."""
    now = now or datetime.now()
    context = build_context(store, agent, now.date())
    append_chat_message(store, agent, "user", text, now)
    reply = responder.generate(text, context)
    append_chat_message(store, agent, "agent", reply, now)
    return reply
