from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from src.auth.tokens import encode_auth_payload, now_ms
from src.common.config import load_config
from src.store.app_store import AppStore
from src.store.cli import main
from tests.conftest import fake_response


def _store(config_file: Path) -> AppStore:
    return AppStore.from_config(load_config(config_file))


class TestHealthCommands:
    def test_log_then_today(self, config_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
        main(["--config", str(config_file), "log", "water", "3"])
        main(["--config", str(config_file), "log", "meal", "Soup", "--notes", "lunch"])
        main(["--config", str(config_file), "today"])
        out = capsys.readouterr().out
        assert "Logged water: 3 glasses" in out
        assert "Water     3/8 glasses" in out
        assert "Meals     1/3" in out
        assert "Health score:" in out

    def test_bad_value_exits_nonzero(self, config_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit) as exc:
            main(["--config", str(config_file), "log", "sleep", "plenty"])
        assert exc.value.code == 1
        assert "must be numeric" in capsys.readouterr().err

    def test_streak_and_goals(self, config_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
        main(["--config", str(config_file), "log", "exercise", "30"])
        main(["--config", str(config_file), "streak"])
        main(["--config", str(config_file), "goals"])
        out = capsys.readouterr().out
        assert "Current streak: 1 day" in out
        assert "[x] Exercise 30 minutes daily (auto)  100%" in out


class TestGoalAndSettingsCommands:
    def test_goal_add_toggle_delete(self, config_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
        main(["--config", str(config_file), "goal-add", "learning", "Finish the SQL course"])
        goal = _store(config_file).learning["goals"][0]
        assert goal["title"] == "Finish the SQL course"

        main(["--config", str(config_file), "goal-toggle", "learning", str(goal["id"])])
        assert _store(config_file).learning["goals"][0]["completed"] is True
        assert "Finish the SQL course: done" in capsys.readouterr().out

        main(["--config", str(config_file), "goal-delete", "learning", str(goal["id"])])
        assert [g["id"] for g in _store(config_file).learning["goals"]] == [1, 2]

    def test_auto_tracked_goal(self, config_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
        main(["--config", str(config_file), "goal-add", "health", "Hydrate", "--track", "water", "--target", "4"])
        main(["--config", str(config_file), "log", "water", "4"])
        main(["--config", str(config_file), "goals"])
        assert "[x] Hydrate (auto)  100%" in capsys.readouterr().out

    def test_toggle_unknown_goal(self, config_file: Path) -> None:
        with pytest.raises(SystemExit) as exc:
            main(["--config", str(config_file), "goal-toggle", "financial", "999"])
        assert exc.value.code == 1

    def test_settings_update(self, config_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
        main(["--config", str(config_file), "settings", "--target", "water=10", "--enable", "weight", "--disable", "meal"])
        health = _store(config_file).health
        assert health["targets"]["water"] == 10
        assert health["enabledMetrics"]["weight"] is True
        assert health["enabledMetrics"]["meal"] is False
        assert "water     on   target 10" in capsys.readouterr().out

    def test_settings_bad_target(self, config_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit):
            main(["--config", str(config_file), "settings", "--target", "water=lots"])
        assert "must be numeric" in capsys.readouterr().err
        assert _store(config_file).health["targets"]["water"] == 8


class TestTransferCommands:
    def test_export_import_round_trip(self, config_file: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        main(["--config", str(config_file), "log", "water", "2"])
        out_file = tmp_path / "backup.json"
        main(["--config", str(config_file), "export", "--format", "json", "--output", str(out_file)])
        exported = json.loads(out_file.read_text())
        assert sum(len(v) for v in exported["dailyLogs"].values()) == 1

        main(["--config", str(config_file), "reset", "--yes"])
        assert _store(config_file).health["dailyLogs"] == {}

        main(["--config", str(config_file), "import", str(out_file), "--mode", "replace"])
        assert _store(config_file).health["dailyLogs"] == exported["dailyLogs"]
        assert "Imported in replace mode (saved)." in capsys.readouterr().out

    def test_dry_run_changes_nothing(self, config_file: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        csv_file = tmp_path / "logs.csv"
        csv_file.write_text("Date,Type,Value\n2026-10-01,water,4\n2026-10-02,sleep,7\n")
        main(["--config", str(config_file), "import", str(csv_file), "--dry-run"])
        assert "2 entries over 2 day(s) (2026-10-01 .. 2026-10-02), 0 goal(s)" in capsys.readouterr().out
        assert _store(config_file).health["dailyLogs"] == {}

    def test_bad_import_file(self, config_file: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        bad = tmp_path / "notes.txt"
        bad.write_text("hello")
        with pytest.raises(SystemExit):
            main(["--config", str(config_file), "import", str(bad)])
        assert "Please select a JSON or CSV file." in capsys.readouterr().err

    def test_spreadsheet_csv_with_byte_order_mark(self, config_file: Path, tmp_path: Path) -> None:
        csv_file = tmp_path / "sheet.csv"
        csv_file.write_text("Date,Type,Value\n2026-10-01,water,4\n", encoding="utf-8-sig")
        main(["--config", str(config_file), "import", str(csv_file)])
        assert _store(config_file).health["dailyLogs"]["2026-10-01"][0]["value"] == 4.0

    def test_malformed_goals_rejected_before_saving(self, config_file: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        bad = tmp_path / "backup.json"
        bad.write_text(json.dumps({"dailyLogs": {"2026-10-01": [1]}, "goals": [5]}))
        with pytest.raises(SystemExit) as exc:
            main(["--config", str(config_file), "import", str(bad)])
        assert exc.value.code == 1
        assert "Invalid JSON format" in capsys.readouterr().err
        assert _store(config_file).health["dailyLogs"] == {}

    def test_reset_needs_confirmation(self, config_file: Path) -> None:
        with pytest.raises(SystemExit):
            main(["--config", str(config_file), "reset"])


class TestChatAndGoogleCommands:
    def test_chat(self, config_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
        main(["--config", str(config_file), "chat", "learning", "what", "next?"])
        assert "I'm your Learning Tutor." in capsys.readouterr().out
        history = _store(config_file).learning["chatHistory"]
        assert history[0]["text"] == "what next?"

    def test_auth_flow(self, config_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
        main(["--config", str(config_file), "auth-status"])
        payload = encode_auth_payload({
            "access_token": "at",
            "refresh_token": "rt",
            "expires_at": now_ms() + 3_600_000,
            "user": {"email": "ada@example.com"},
        })
        main(["--config", str(config_file), "auth-accept", payload])
        main(["--config", str(config_file), "auth-status"])
        out = capsys.readouterr().out
        assert "Not connected to Google." in out
        assert "Connected as ada@example.com (valid)" in out

        with patch("src.google.client.requests.request", return_value=fake_response(200, {"events": []})) as req:
            main(["--config", str(config_file), "calendar"])
        assert req.call_args.args == ("GET", "http://proxy.test/api/google/calendar")
        assert req.call_args.kwargs["timeout"] == 5
        assert "No events today." in capsys.readouterr().out

        main(["--config", str(config_file), "logout"])
        assert _store(config_file).google_auth is None

    def test_remind_list_and_dismiss(self, config_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
        main(["--config", str(config_file), "remind", "financial", "Pay", "rent", "--when", "custom", "--at", "Friday", "--urgent"])
        reminder = _store(config_file).financial["reminders"][0]
        assert reminder["text"] == "Pay rent"
        assert reminder["time"] == "Friday"
        assert reminder["urgent"] is True

        main(["--config", str(config_file), "remind", "financial"])
        assert "Pay rent" in capsys.readouterr().out

        main(["--config", str(config_file), "dismiss", "financial", str(reminder["id"])])
        assert _store(config_file).financial["reminders"] == []

    def test_email_show_and_send(self, config_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
        store = _store(config_file)
        store.set_google_auth({
            "access_token": "at",
            "refresh_token": "rt",
            "expires_at": now_ms() + 3_600_000,
            "user": {"email": "ada@example.com"},
        })
        detail = {"email": {"from": "Bob", "fromEmail": "bob@example.com", "subject": "Lunch", "date": "", "body": "Noon?"}}
        with patch("src.google.client.requests.request", side_effect=[
            fake_response(200, detail),
            fake_response(200, {"success": True}),
        ]) as req:
            main(["--config", str(config_file), "email", "m1", "--mark-read"])
        out = capsys.readouterr().out
        assert "From:    Bob <bob@example.com>" in out
        assert "Noon?" in out
        assert req.call_args_list[0].kwargs["params"] == {"id": "m1"}
        assert req.call_args_list[1].kwargs["json"] == {"emailId": "m1"}

        with patch("src.google.client.requests.request",
                   return_value=fake_response(200, {"success": True, "messageId": "s1"})) as req:
            main(["--config", str(config_file), "send", "bob@example.com", "Re: Lunch", "Noon works.", "--thread", "t1"])
        assert req.call_args.kwargs["json"] == {
            "to": "bob@example.com", "subject": "Re: Lunch", "body": "Noon works.", "threadId": "t1",
        }
        assert "Sent (message s1)." in capsys.readouterr().out

    def test_send_unauthenticated(self, config_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit):
            main(["--config", str(config_file), "send", "bob@example.com", "Hi", "There"])
        assert "Send failed: Not authenticated" in capsys.readouterr().err

    def test_inbox_unauthenticated(self, config_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit):
            main(["--config", str(config_file), "inbox"])
        assert "Not authenticated" in capsys.readouterr().err
