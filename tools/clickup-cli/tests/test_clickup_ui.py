#!/usr/bin/env python3
"""
Tests for prompts, formatting and task actions

Run with: python -m pytest tests/test_clickup_ui.py -v
"""

import json
import os
import sys
from unittest.mock import MagicMock, patch

import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from clickup_compose import DAY_MS, ComposedTaskList
from clickup_prefs import Preferences, PreferencesStore
from clickup_ui import (
    PIN_MARK,
    TaskActions,
    ask_text,
    choose,
    format_comments,
    format_due_date,
    format_task_details,
    format_task_list,
    task_hint,
    task_label,
    validate_comment,
    validate_token,
)

TASK = {
    "id": "abc",
    "custom_id": "DEV-7",
    "name": "Fix login",
    "status": {"status": "open"},
    "list": {"id": "l1", "name": "Sprint"},
    "folder": {"id": "f1", "name": "Eng"},
    "assignees": [{"username": "sam"}],
    "priority": {"priority": "high"},
    "description": "Broken on Safari",
    "url": "https://app.clickup.com/t/abc",
}


class TestPrompts:
    """Tests for the numbered menu and text prompts."""

    def test_choose_returns_value(self):
        with patch("builtins.input", return_value="2"):
            assert choose("Pick", [("A", "a", None), ("B", "b", "hint")]) == "b"

    def test_choose_reasks_on_bad_input(self, capsys):
        with patch("builtins.input", side_effect=["9", "x", "1"]):
            assert choose("Pick", [("A", "a", None), ("B", "b", None)]) == "a"
        assert "between 1 and 2" in capsys.readouterr().out

    def test_choose_blank_cancels(self):
        with patch("builtins.input", return_value=""):
            assert choose("Pick", [("A", "a", None)]) is None

    def test_choose_eof_cancels(self):
        with patch("builtins.input", side_effect=EOFError):
            assert choose("Pick", [("A", "a", None)]) is None

    def test_choose_no_options(self):
        assert choose("Pick", []) is None

    def test_ask_text_validation(self, capsys):
        """Invalid input is rejected at the prompt and asked again."""
        with patch("builtins.input", side_effect=["  ", "looks good"]):
            assert ask_text("Comment: ", validate_comment) == "looks good"
        assert "Comment cannot be empty" in capsys.readouterr().out

    def test_validate_token(self):
        assert validate_token("") == "API token is required"
        assert "pk_" in validate_token("abc")
        assert validate_token("pk_123") is None


class TestFormatting:
    """Tests for text rendering."""

    @pytest.mark.parametrize("offset_days,expected", [
        (-3, "OVERDUE by 3 days"),
        (-1, "OVERDUE by 1 day"),
        (0, "Due TODAY"),
        (1, "Due tomorrow"),
        (5, "Due in 5 days"),
    ])
    def test_format_due_date(self, offset_days, expected):
        now = 1_700_000_000_000
        due = now + offset_days * DAY_MS + (1 if offset_days >= 0 else 0)
        assert format_due_date(str(due), now_ms=now) == expected

    def test_task_label(self):
        assert task_label(TASK) == "DEV-7 - Fix login"
        assert task_label(TASK, pinned=True, show_status=True) == f"{PIN_MARK}[open] DEV-7 - Fix login"

    def test_task_hint(self):
        now = 1_700_000_000_000
        task = dict(TASK, due_date=str(now + 2 * DAY_MS + 1))
        assert task_hint(task) == "Eng / Sprint"
        assert task_hint(task, show_due=True, now_ms=now) == "Eng / Sprint | Due in 2 days"

    def test_task_details(self):
        out = format_task_details(TASK)
        assert "Task: Fix login" in out
        assert "ID: abc (DEV-7)" in out
        assert "Priority: high" in out
        assert "Assignees: sam" in out
        assert "Due Date: None" in out
        assert "Broken on Safari" in out
        assert "Time Estimate" not in out

    def test_task_details_with_time(self):
        out = format_task_details(dict(TASK, time_estimate=7_200_000), include_time=True)
        assert "Time Estimate: 2h" in out
        assert "Time Spent: None" in out

    def test_comments(self):
        out = format_comments([{"user": {"username": "sam"}, "date": "1700000000000", "comment_text": "done?"}])
        assert "Comments (1)" in out
        assert "sam (" in out
        assert "done?" in out
        assert format_comments([]) == "--- No comments ---"

    def test_task_list_table(self):
        composed = ComposedTaskList([TASK, {"id": "x", "name": "Other", "status": "done"}], ["abc"], ["gone"])
        out = format_task_list(composed, "table")
        assert "Fix login" in out
        assert "Other" in out
        assert "[Not found] pinned task gone" in out

    def test_task_list_json(self):
        composed = ComposedTaskList([TASK], ["abc"], [])
        data = json.loads(format_task_list(composed, "json"))
        assert data["tasks"][0]["id"] == "abc"
        assert data["pinned"] == ["abc"]
        assert data["missing_pinned"] == []


class TestTaskActions:
    """Tests for the per-task actions."""

    @pytest.fixture
    def store(self, tmp_path):
        store = PreferencesStore(tmp_path)
        store.save(Preferences(api_token="pk_1", pinned_tasks=["other"]))
        return store

    def test_toggle_pin(self, store):
        """Pinning then unpinning round-trips through the store."""
        actions = TaskActions(MagicMock(), store, ["other"])

        assert actions.toggle_pin(TASK) is True
        assert store.load().pinned_tasks == ["other", "abc"]
        assert "abc" in actions.pinned_ids

        assert actions.toggle_pin(TASK) is False
        assert store.load().pinned_tasks == ["other"]
        assert "abc" not in actions.pinned_ids

    def test_move_status(self, store):
        client = MagicMock()
        client.get_list_status_names.return_value = ["open", "in progress", "done"]
        with patch("builtins.input", return_value="2"):
            assert TaskActions(client, store).move_status(TASK) == "in progress"
        client.update_task_status.assert_called_once_with("abc", "in progress")

    def test_move_status_unchanged(self, store):
        client = MagicMock()
        client.get_list_status_names.return_value = ["open", "done"]
        with patch("builtins.input", return_value="1"):
            assert TaskActions(client, store).move_status(TASK) is None
        client.update_task_status.assert_not_called()

    def test_add_comment(self, store):
        client = MagicMock()
        with patch("builtins.input", side_effect=["", "ship it"]):
            assert TaskActions(client, store).add_comment(TASK) is True
        client.add_task_comment.assert_called_once_with("abc", "ship it")

    def test_add_comment_cancelled(self, store):
        client = MagicMock()
        with patch("builtins.input", side_effect=EOFError):
            assert TaskActions(client, store).add_comment(TASK) is False
        client.add_task_comment.assert_not_called()

    def test_open_in_browser(self, store):
        with patch("clickup_ui.webbrowser.open", return_value=True) as mock_open:
            TaskActions(MagicMock(), store).open_in_browser(TASK)
        mock_open.assert_called_once_with("https://app.clickup.com/t/abc")

    def test_select_and_act_dispatches(self, store):
        """Picking a task then 'Show comments' fetches its comments."""
        client = MagicMock()
        client.get_task_comments.return_value = []
        with patch("builtins.input", side_effect=["1", "3"]):
            TaskActions(client, store).select_and_act([TASK])
        client.get_task_comments.assert_called_once_with("abc")

    def test_select_and_act_cancel(self, store):
        client = MagicMock()
        with patch("builtins.input", return_value=""):
            TaskActions(client, store).select_and_act([TASK])
        client.get_task_comments.assert_not_called()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
