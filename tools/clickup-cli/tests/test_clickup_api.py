#!/usr/bin/env python3
"""
Tests for the ClickUp API client

Run with: python -m pytest tests/test_clickup_api.py -v
"""

import os
import sys
import threading
from unittest.mock import MagicMock, patch

import pytest
import requests

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from clickup_api import FAILED, FOUND, NOT_FOUND, ClickUpClient, task_status_name, task_url
from clickup_errors import RemoteApiError, RemoteNotFound


def make_response(status_code=200, payload=None):
    response = MagicMock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 300
    response.content = b"{}" if payload is not None else b""
    response.json.return_value = payload
    return response


@pytest.fixture
def session():
    with patch("clickup_api.requests.Session") as mock_session_class:
        mock_session = MagicMock()
        mock_session_class.return_value = mock_session
        yield mock_session


class TestClickUpClient:
    """Tests for request handling."""

    def test_auth_header(self, session):
        """The token is sent as-is in Authorization."""
        ClickUpClient("pk_test")
        headers = session.headers.update.call_args.args[0]
        assert headers["Authorization"] == "pk_test"

    def test_base_url_from_env(self, session, monkeypatch):
        monkeypatch.setenv("CLICKUP_API_URL", "http://localhost:9999/v2/")
        assert ClickUpClient("pk").base_url == "http://localhost:9999/v2"

    def test_get_task(self, session):
        session.request.return_value = make_response(200, {"id": "abc", "name": "Task"})
        task = ClickUpClient("pk").get_task("abc")
        assert task["id"] == "abc"
        kwargs = session.request.call_args.kwargs
        assert kwargs["method"] == "GET"
        assert kwargs["url"].endswith("/task/abc")

    def test_not_found(self, session):
        """404 is raised as RemoteNotFound with the server message."""
        session.request.return_value = make_response(404, {"err": "Task not found", "ECODE": "ITEM_013"})
        with pytest.raises(RemoteNotFound) as exc_info:
            ClickUpClient("pk").get_task("missing")
        assert "Task not found" in str(exc_info.value)
        assert exc_info.value.status_code == 404

    def test_api_error_message(self, session):
        session.request.return_value = make_response(500, {"err": "Internal", "ECODE": "X"})
        with pytest.raises(RemoteApiError) as exc_info:
            ClickUpClient("pk").get_teams()
        assert not isinstance(exc_info.value, RemoteNotFound)
        assert str(exc_info.value) == "Internal"

    def test_api_error_without_body(self, session):
        response = make_response(502, None)
        response.json.side_effect = ValueError("no json")
        session.request.return_value = response
        with pytest.raises(RemoteApiError) as exc_info:
            ClickUpClient("pk").get_teams()
        assert str(exc_info.value) == "API error: 502"

    def test_network_error(self, session):
        session.request.side_effect = requests.exceptions.ConnectionError("down")
        with pytest.raises(RemoteApiError) as exc_info:
            ClickUpClient("pk").get_user()
        assert "Network error" in str(exc_info.value)

    def test_team_tasks_params(self, session):
        """Filters are encoded as ClickUp query params."""
        session.request.return_value = make_response(200, {"tasks": [{"id": "1"}]})
        tasks = ClickUpClient("pk").get_team_tasks(
            "team1",
            assignees=[42],
            order_by="due_date",
            reverse=True,
            space_ids=["s1"],
            due_date_gt=0,
            due_date_lt=1000,
        )
        assert tasks == [{"id": "1"}]
        params = session.request.call_args.kwargs["params"]
        assert params["assignees[]"] == ["42"]
        assert params["order_by"] == "due_date"
        assert params["reverse"] == "true"
        assert params["space_ids[]"] == ["s1"]
        assert params["due_date_gt"] == 0
        assert params["due_date_lt"] == 1000
        assert "statuses[]" not in params

    def test_update_task_status(self, session):
        session.request.return_value = make_response(200, {"id": "abc"})
        ClickUpClient("pk").update_task_status("abc", "in progress")
        kwargs = session.request.call_args.kwargs
        assert kwargs["method"] == "PUT"
        assert kwargs["json"] == {"status": "in progress"}

    def test_add_task_comment(self, session):
        session.request.return_value = make_response(200, {"id": 1})
        ClickUpClient("pk").add_task_comment("abc", "hello")
        kwargs = session.request.call_args.kwargs
        assert kwargs["method"] == "POST"
        assert kwargs["url"].endswith("/task/abc/comment")
        assert kwargs["json"] == {"comment_text": "hello"}

    def test_list_status_names(self, session):
        session.request.return_value = make_response(200, {"statuses": [{"status": "open"}, {"status": "done"}]})
        assert ClickUpClient("pk").get_list_status_names("l1") == ["open", "done"]


class TestBatchLookup:
    """Tests for lookup_tasks/get_tasks_by_ids."""

    def test_empty_ids_make_no_request(self, session):
        client = ClickUpClient("pk")
        assert client.get_tasks_by_ids([]) == []
        assert client.lookup_tasks([]) == []
        session.request.assert_not_called()

    def test_failures_are_isolated(self):
        """One failing lookup does not affect the others; order is kept."""
        client = ClickUpClient("pk")

        def fake_get_task(task_id):
            if task_id == "gone":
                raise RemoteNotFound("Task not found", 404)
            if task_id == "flaky":
                raise RemoteApiError("Network error: timeout")
            return {"id": task_id}

        with patch.object(client, "get_task", side_effect=fake_get_task):
            results = client.lookup_tasks(["a", "gone", "flaky", "c"])

        assert [r.task_id for r in results] == ["a", "gone", "flaky", "c"]
        assert [r.outcome for r in results] == [FOUND, NOT_FOUND, FAILED, FOUND]
        assert results[1].task is None
        assert "timeout" in results[2].error

        with patch.object(client, "get_task", side_effect=fake_get_task):
            assert client.get_tasks_by_ids(["a", "gone", "flaky", "c"]) == [{"id": "a"}, {"id": "c"}]

    def test_each_thread_uses_its_own_session(self):
        """Worker threads never share a Session; each carries the auth header."""
        used_by = {}
        sessions = []

        def new_session():
            session = MagicMock()

            def request(**kwargs):
                used_by.setdefault(id(session), set()).add(threading.get_ident())
                return make_response(200, {"id": kwargs["url"].rsplit("/", 1)[-1]})

            session.request.side_effect = request
            sessions.append(session)
            return session

        with patch("clickup_api.requests.Session", side_effect=new_session):
            client = ClickUpClient("pk_test")
            ids = [str(i) for i in range(20)]
            assert [t["id"] for t in client.get_tasks_by_ids(ids)] == ids

        assert all(len(threads) == 1 for threads in used_by.values())
        for session in sessions:
            assert session.headers.update.call_args.args[0]["Authorization"] == "pk_test"


class TestTaskHelpers:
    """Tests for task field helpers."""

    def test_status_object(self):
        assert task_status_name({"status": {"status": "In Progress"}}) == "In Progress"

    def test_status_string(self):
        assert task_status_name({"status": "open"}) == "open"

    def test_status_missing(self):
        assert task_status_name({}) == ""

    def test_url_fallback(self):
        assert task_url({"id": "abc"}) == "https://app.clickup.com/t/abc"
        assert task_url({"id": "abc", "url": "https://x/y"}) == "https://x/y"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
