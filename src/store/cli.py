"""Command-line interface over the local Assistant Hub data.

Usage:
    python3 -m src.store.cli log water 2
    python3 -m src.store.cli log meal "Oatmeal with berries" --notes breakfast
    python3 -m src.store.cli today
    python3 -m src.store.cli stats --range month
    python3 -m src.store.cli streak
    python3 -m src.store.cli goals --agent personal
    python3 -m src.store.cli goal-add learning "Finish the SQL course"
    python3 -m src.store.cli goal-add health "Drink water" --track water --target 10
    python3 -m src.store.cli settings --target water=10 --enable weight
    python3 -m src.store.cli export --format csv --output health.csv
    python3 -m src.store.cli import health-data-2026-10-01.json --mode merge
    python3 -m src.store.cli chat health "How am I doing today?"
    python3 -m src.store.cli remind personal Call the dentist --when in_1_hour --urgent
    python3 -m src.store.cli calendar
    python3 -m src.store.cli inbox
    python3 -m src.store.cli email 18c2f0a9 --mark-read
    python3 -m src.store.cli send ada@example.com "Lunch" "Noon works."
    python3 -m src.store.cli auth-status
    python3 -m src.store.cli reset --yes
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from src.agents.responder import converse, get_responder
from src.auth.tokens import TokenManager, TokenState
from src.common.config import api_base, load_config, setup_logging
from src.google.client import GoogleDataClient
from src.health import metrics
from src.health.transfer import (
    IMPORT_MODES,
    ImportFormatError,
    export_csv,
    export_filename,
    export_json,
    parse_import,
    summarize_import,
)
from src.store.actions import (
    REMINDER_OPTIONS,
    add_goal,
    add_reminder,
    delete_goal,
    dismiss_reminder,
    import_health_data,
    log_health_entry,
    save_health_settings,
    toggle_goal,
)
from src.store.app_store import AppStore
from src.store.defaults import AGENT_NAMES, DEFAULT_ENABLED_METRICS, DEFAULT_TARGETS, LOG_TYPES, TRACKABLE_TYPES


def _client_timeout(cfg: dict) -> float | None:
    return cfg.get("client", {}).get("timeout")


def _tokens(store: AppStore, cfg: dict) -> TokenManager:
    return TokenManager(store, api_base(cfg), timeout=_client_timeout(cfg))


# ── Health ───────────────────────────────────────────────────────────────────

def cmd_log(args: argparse.Namespace, cfg: dict, store: AppStore) -> None:
    try:
        entry = log_health_entry(store, args.type, args.value, unit=args.unit, notes=args.notes or "")
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
    print(f"Logged {entry['type']}: {metrics.format_number(entry['value'])} {entry['unit']}".rstrip())


def cmd_today(args: argparse.Namespace, cfg: dict, store: AppStore) -> None:
    health = store.health
    logs = health.get("dailyLogs") or {}
    totals = metrics.day_totals(logs)
    targets = health.get("targets") or {}

    print(f"Today ({totals.date}): {totals.entries} entr{'y' if totals.entries == 1 else 'ies'}\n")
    print(f"  Water     {metrics.format_number(totals.water)}/{metrics.format_number(targets.get('water'))} glasses")
    print(f"  Sleep     {metrics.format_number(totals.sleep)}/{metrics.format_number(targets.get('sleep'))} hours")
    print(f"  Exercise  {metrics.format_number(totals.exercise)}/{metrics.format_number(targets.get('exercise'))} minutes")
    print(f"  Meals     {totals.meals}/{metrics.format_number(targets.get('meal'))}")
    if totals.weight is not None:
        print(f"  Weight    {metrics.format_number(totals.weight)} lbs")
    score = metrics.health_score(totals, targets, health.get("enabledMetrics"))
    print(f"\nHealth score: {score}%")


def cmd_stats(args: argparse.Namespace, cfg: dict, store: AppStore) -> None:
    logs = store.health.get("dailyLogs") or {}
    stats = metrics.month_stats(logs) if args.range == "month" else metrics.week_stats(logs)

    print(f"{args.range.capitalize()} {stats.start} .. {stats.end}: {stats.days_logged} day(s) logged\n")
    for metric, unit in (("water", "glasses"), ("sleep", "hours"), ("exercise", "minutes")):
        total = getattr(stats, metric)
        avg = stats.average(metric)
        print(f"  {metric:9s} total {metrics.format_number(total):>6s}  avg {avg:5.1f} {unit}/day")
    print(f"  {'meals':9s} total {stats.meals:>6d}")
    if stats.weights:
        first, last = stats.weights[0], stats.weights[-1]
        change = last.value - first.value
        print(f"  weight    {metrics.format_number(first.value)} -> {metrics.format_number(last.value)} lbs ({change:+.1f})")


def cmd_streak(args: argparse.Namespace, cfg: dict, store: AppStore) -> None:
    streak = metrics.calculate_streak(store.health.get("dailyLogs") or {})
    print(f"Current streak: {streak} day{'s' if streak != 1 else ''}")


def cmd_goals(args: argparse.Namespace, cfg: dict, store: AppStore) -> None:
    dataset = store.agent(args.agent)
    goals = dataset.get("goals") or []
    if args.agent == "health":
        goals = metrics.goals_with_progress(goals, dataset.get("dailyLogs") or {}, dataset.get("targets"))
    if not goals:
        print(f"No goals for {AGENT_NAMES[args.agent]}.")
        return
    print(f"{AGENT_NAMES[args.agent]} goals:\n")
    for goal in goals:
        mark = "x" if goal.get("completed") else " "
        auto = " (auto)" if goal.get("autoTracked") else ""
        print(f"  [{mark}] {goal.get('title', '')}{auto}  {goal.get('progress', 0)}%")
        if goal.get("description"):
            print(f"        {goal['description']}")
        print(f"        id {goal.get('id')}")


def cmd_goal_add(args: argparse.Namespace, cfg: dict, store: AppStore) -> None:
    try:
        goal = add_goal(
            store,
            args.agent,
            args.title,
            description=args.description,
            auto_tracked=args.track is not None,
            tracking_type=args.track,
            target=args.target,
        )
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
    print(f"Added goal {goal['id']}: {goal['title']}")


def cmd_goal_toggle(args: argparse.Namespace, cfg: dict, store: AppStore) -> None:
    toggle_goal(store, args.agent, args.id)
    for goal in store.agent(args.agent).get("goals") or []:
        if goal.get("id") == args.id:
            state = "auto-tracked" if goal.get("autoTracked") else ("done" if goal.get("completed") else "open")
            print(f"{goal.get('title', '')}: {state}")
            return
    print(f"No goal with id {args.id}.", file=sys.stderr)
    sys.exit(1)


def cmd_goal_delete(args: argparse.Namespace, cfg: dict, store: AppStore) -> None:
    delete_goal(store, args.agent, args.id)
    print(f"Deleted goal {args.id}.")


def _parse_targets(pairs: list[str]) -> dict[str, float]:
    targets: dict[str, float] = {}
    for pair in pairs:
        metric, sep, raw = pair.partition("=")
        if not sep or metric not in DEFAULT_TARGETS:
            raise ValueError(f"Targets look like metric=value with metric in {', '.join(DEFAULT_TARGETS)}")
        try:
            targets[metric] = float(raw)
        except ValueError:
            raise ValueError(f"Target for {metric} must be numeric") from None
    return targets


def cmd_settings(args: argparse.Namespace, cfg: dict, store: AppStore) -> None:
    health = store.health
    enabled = dict(health.get("enabledMetrics") or DEFAULT_ENABLED_METRICS)
    targets = dict(health.get("targets") or DEFAULT_TARGETS)

    if args.target or args.enable or args.disable:
        try:
            targets.update(_parse_targets(args.target or []))
        except ValueError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            sys.exit(1)
        enabled.update({m: True for m in args.enable or []})
        enabled.update({m: False for m in args.disable or []})
        save_health_settings(store, enabled, targets)

    for metric in DEFAULT_TARGETS:
        flag = "on " if enabled.get(metric) else "off"
        print(f"  {metric:9s} {flag}  target {metrics.format_number(targets.get(metric))}")


# ── Import / export ──────────────────────────────────────────────────────────

def cmd_export(args: argparse.Namespace, cfg: dict, store: AppStore) -> None:
    health = store.health
    content = export_csv(health.get("dailyLogs") or {}) if args.format == "csv" else export_json(health)
    out = Path(args.output) if args.output else Path(export_filename(args.format))
    out.write_text(content, encoding="utf-8")
    print(f"Exported health data to {out}")


def cmd_import(args: argparse.Namespace, cfg: dict, store: AppStore) -> None:
    path = Path(args.file)
    try:
        bundle = parse_import(path.read_text(encoding="utf-8-sig"), filename=path.name)
    except (OSError, ImportFormatError) as exc:
        print(f"Import failed: {exc}", file=sys.stderr)
        sys.exit(1)

    summary = summarize_import(bundle)
    print(f"{summary['totalEntries']} entries over {summary['totalDays']} day(s)", end="")
    if summary["firstDate"]:
        print(f" ({summary['firstDate']} .. {summary['lastDate']})", end="")
    print(f", {summary['goalsCount']} goal(s)")
    if args.dry_run:
        return

    import_health_data(store, bundle, args.mode)
    print(f"Imported in {args.mode} mode ({store.sync_status}).")


# ── Agents ───────────────────────────────────────────────────────────────────

def cmd_chat(args: argparse.Namespace, cfg: dict, store: AppStore) -> None:
    reply = converse(store, args.agent, " ".join(args.message), get_responder(cfg))
    print(reply)


def cmd_remind(args: argparse.Namespace, cfg: dict, store: AppStore) -> None:
    if not args.text:
        for reminder in store.agent(args.agent).get("reminders") or []:
            urgent = "!" if reminder.get("urgent") else " "
            print(f" {urgent} [{reminder.get('id')}] {reminder.get('time', ''):>18s}  {reminder.get('text', '')}")
        return
    try:
        reminder = add_reminder(
            store, args.agent, " ".join(args.text), when=args.when, custom_time=args.at, urgent=args.urgent,
        )
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
    print(f"Reminder {reminder['id']} set for {reminder['time']}: {reminder['text']}")


def cmd_dismiss(args: argparse.Namespace, cfg: dict, store: AppStore) -> None:
    dismiss_reminder(store, args.agent, args.id)
    print(f"Dismissed reminder {args.id}.")


# ── Google ───────────────────────────────────────────────────────────────────

def cmd_calendar(args: argparse.Namespace, cfg: dict, store: AppStore) -> None:
    client = GoogleDataClient(_tokens(store, cfg), api_base(cfg), timeout=_client_timeout(cfg))
    result = client.fetch_calendar_events()
    if result.get("error"):
        print(f"Calendar unavailable: {result['error']}", file=sys.stderr)
        sys.exit(1)
    events = result.get("events") or []
    if not events:
        print("No events today.")
        return
    for event in events:
        when = "all day" if event.get("allDay") else str(event.get("start", ""))[11:16]
        print(f"  {when:8s} {event.get('title', '')}")


def cmd_inbox(args: argparse.Namespace, cfg: dict, store: AppStore) -> None:
    client = GoogleDataClient(_tokens(store, cfg), api_base(cfg), timeout=_client_timeout(cfg))
    result = client.fetch_emails()
    if result.get("error"):
        print(f"Inbox unavailable: {result['error']}", file=sys.stderr)
        sys.exit(1)
    for email in result.get("emails") or []:
        flag = "*" if not email.get("read") else " "
        print(f" {flag} {email.get('time', ''):>8s}  {email.get('from', ''):24.24s}  {email.get('subject', '')}")


def cmd_email(args: argparse.Namespace, cfg: dict, store: AppStore) -> None:
    client = GoogleDataClient(_tokens(store, cfg), api_base(cfg), timeout=_client_timeout(cfg))
    result = client.fetch_email_by_id(args.id)
    email = result.get("email")
    if result.get("error") or not email:
        print(f"Email unavailable: {result.get('error') or 'not found'}", file=sys.stderr)
        sys.exit(1)
    print(f"From:    {email.get('from', '')} <{email.get('fromEmail', '')}>")
    print(f"Subject: {email.get('subject', '')}")
    print(f"Date:    {email.get('date', '')}\n")
    print(email.get("body", ""))
    if args.mark_read:
        marked = client.mark_email_read(args.id)
        if marked.get("error"):
            print(f"Could not mark as read: {marked['error']}", file=sys.stderr)


def cmd_send(args: argparse.Namespace, cfg: dict, store: AppStore) -> None:
    client = GoogleDataClient(_tokens(store, cfg), api_base(cfg), timeout=_client_timeout(cfg))
    result = client.send_email(args.to, args.subject, args.body, thread_id=args.thread)
    if result.get("error") or not result.get("success"):
        print(f"Send failed: {result.get('error') or 'unknown error'}", file=sys.stderr)
        sys.exit(1)
    print(f"Sent (message {result.get('messageId')}).")


def cmd_auth_status(args: argparse.Namespace, cfg: dict, store: AppStore) -> None:
    state = _tokens(store, cfg).state()
    if state is TokenState.INVALID:
        print("Not connected to Google.")
        return
    user = (store.google_auth or {}).get("user") or {}
    print(f"Connected as {user.get('email') or 'unknown'} ({state.value})")


def cmd_auth_accept(args: argparse.Namespace, cfg: dict, store: AppStore) -> None:
    if not _tokens(store, cfg).accept_redirect(auth_success=args.payload):
        print("Could not read the auth payload.", file=sys.stderr)
        sys.exit(1)
    print("Google account connected.")


def cmd_logout(args: argparse.Namespace, cfg: dict, store: AppStore) -> None:
    _tokens(store, cfg).logout()
    print("Disconnected from Google.")


def cmd_reset(args: argparse.Namespace, cfg: dict, store: AppStore) -> None:
    if not args.yes:
        print("Refusing to clear all data without --yes.", file=sys.stderr)
        sys.exit(1)
    store.clear_all_data()
    print("All local data cleared.")


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(prog="assistanthub", description="Assistant Hub local data tools")
    parser.add_argument("--config", type=str, default=None, help="Path to config.yaml")
    parser.add_argument("--verbose", action="store_true", help="Log to stderr and the log file")

    sub = parser.add_subparsers(dest="command", required=True)

    p_log = sub.add_parser("log", help="Log a health entry for today")
    p_log.add_argument("type", choices=LOG_TYPES)
    p_log.add_argument("value")
    p_log.add_argument("--unit", default=None)
    p_log.add_argument("--notes", default="")

    sub.add_parser("today", help="Today's totals and health score")

    p_stats = sub.add_parser("stats", help="Week or month statistics")
    p_stats.add_argument("--range", choices=("week", "month"), default="week")

    sub.add_parser("streak", help="Consecutive logged days")

    p_goals = sub.add_parser("goals", help="List an agent's goals")
    p_goals.add_argument("--agent", choices=sorted(AGENT_NAMES), default="health")

    p_goal_add = sub.add_parser("goal-add", help="Add a goal for an agent")
    p_goal_add.add_argument("agent", choices=sorted(AGENT_NAMES))
    p_goal_add.add_argument("title")
    p_goal_add.add_argument("--description", default="")
    p_goal_add.add_argument("--track", choices=TRACKABLE_TYPES, default=None, help="Auto-track from today's health logs")
    p_goal_add.add_argument("--target", type=float, default=None)

    for name, help_text in (("goal-toggle", "Mark a manual goal done or open"), ("goal-delete", "Delete a goal")):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("agent", choices=sorted(AGENT_NAMES))
        p.add_argument("id", type=int)

    p_settings = sub.add_parser("settings", help="Show or change health metrics and targets")
    p_settings.add_argument("--target", action="append", metavar="METRIC=VALUE")
    p_settings.add_argument("--enable", action="append", choices=sorted(DEFAULT_ENABLED_METRICS))
    p_settings.add_argument("--disable", action="append", choices=sorted(DEFAULT_ENABLED_METRICS))

    p_export = sub.add_parser("export", help="Export health data")
    p_export.add_argument("--format", choices=("csv", "json"), default="json")
    p_export.add_argument("--output", default=None)

    p_import = sub.add_parser("import", help="Import a health data export")
    p_import.add_argument("file")
    p_import.add_argument("--mode", choices=IMPORT_MODES, default="merge")
    p_import.add_argument("--dry-run", action="store_true", help="Only show what would be imported")

    p_chat = sub.add_parser("chat", help="Send a message to an agent")
    p_chat.add_argument("agent", choices=sorted(AGENT_NAMES))
    p_chat.add_argument("message", nargs="+")

    p_remind = sub.add_parser("remind", help="List an agent's reminders, or add one")
    p_remind.add_argument("agent", choices=sorted(AGENT_NAMES))
    p_remind.add_argument("text", nargs="*")
    p_remind.add_argument("--when", choices=REMINDER_OPTIONS, default="in_30_min")
    p_remind.add_argument("--at", default=None, help="Label for --when custom")
    p_remind.add_argument("--urgent", action="store_true")

    p_dismiss = sub.add_parser("dismiss", help="Dismiss a reminder")
    p_dismiss.add_argument("agent", choices=sorted(AGENT_NAMES))
    p_dismiss.add_argument("id", type=int)

    sub.add_parser("calendar", help="Today's Google Calendar events")
    sub.add_parser("inbox", help="Recent Gmail inbox messages")

    p_email = sub.add_parser("email", help="Show one email")
    p_email.add_argument("id")
    p_email.add_argument("--mark-read", action="store_true")

    p_send = sub.add_parser("send", help="Send an email")
    p_send.add_argument("to")
    p_send.add_argument("subject")
    p_send.add_argument("body")
    p_send.add_argument("--thread", default=None, help="Reply within this thread id")

    sub.add_parser("auth-status", help="Google connection state")

    p_accept = sub.add_parser("auth-accept", help="Store the auth_success value from the OAuth redirect")
    p_accept.add_argument("payload")

    sub.add_parser("logout", help="Forget the stored Google tokens")

    p_reset = sub.add_parser("reset", help="Delete all local data")
    p_reset.add_argument("--yes", action="store_true")

    args = parser.parse_args(argv)
    cfg = load_config(args.config)
    if args.verbose:
        setup_logging(cfg)
    store = AppStore.from_config(cfg)

    dispatch = {
        "log": cmd_log,
        "today": cmd_today,
        "stats": cmd_stats,
        "streak": cmd_streak,
        "goals": cmd_goals,
        "goal-add": cmd_goal_add,
        "goal-toggle": cmd_goal_toggle,
        "goal-delete": cmd_goal_delete,
        "settings": cmd_settings,
        "export": cmd_export,
        "import": cmd_import,
        "chat": cmd_chat,
        "remind": cmd_remind,
        "dismiss": cmd_dismiss,
        "calendar": cmd_calendar,
        "inbox": cmd_inbox,
        "email": cmd_email,
        "send": cmd_send,
        "auth-status": cmd_auth_status,
        "auth-accept": cmd_auth_accept,
        "logout": cmd_logout,
        "reset": cmd_reset,
    }
    dispatch[args.command](args, cfg, store)


if __name__ == "__main__":
    main()
