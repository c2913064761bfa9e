"""
ClickUp API v2 client used by clickup-cli.

Thin wrapper over requests, with one Session per thread. Every non-2xx
response is raised as RemoteApiError (RemoteNotFound for 404/403); nothing
is retried.
"""

import logging
import os
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, NamedTuple, Optional

import requests

from clickup_errors import RemoteApiError, RemoteNotFound

DEFAULT_BASE_URL = "https://api.clickup.com/api/v2"
REQUEST_TIMEOUT = 30
MAX_LOOKUP_WORKERS = 8

# TaskLookup.outcome values
FOUND = "found"
NOT_FOUND = "not_found"
FAILED = "error"


class TaskLookup(NamedTuple):
    """Result of one point lookup in a batch."""
    task_id: str
    outcome: str
    task: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    @property
    def found(self) -> bool:
        return self.outcome == FOUND


def _bool_param(value: bool) -> str:
    return "true" if value else "false"


class ClickUpClient:
    """Client for the ClickUp API (personal token auth)."""

    def __init__(self, api_token: str, base_url: Optional[str] = None):
        base_url = base_url or os.getenv("CLICKUP_API_URL", DEFAULT_BASE_URL)
        self.base_url = base_url.rstrip("/")
        self._headers = {
            "Authorization": api_token,
            "Content-Type": "application/json",
        }
        # requests.Session is not thread-safe; lookup workers each get their own.
        self._local = threading.local()
        self._local.session = self._new_session()

    def _new_session(self) -> requests.Session:
        session = requests.Session()
        session.headers.update(self._headers)
        return session

    @property
    def session(self) -> requests.Session:
        session = getattr(self._local, "session", None)
        if session is None:
            session = self._local.session = self._new_session()
        return session

    def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> Any:
        url = f"{self.base_url}{path}"
        logging.debug("%s %s params=%s", method, path, params)
        try:
            response = self.session.request(
                method=method,
                url=url,
                params=params,
                json=data,
                timeout=REQUEST_TIMEOUT,
            )
        except requests.exceptions.RequestException as e:
            raise RemoteApiError(f"Network error: {e}")

        if not response.ok:
            message = f"API error: {response.status_code}"
            try:
                message = response.json().get("err") or message
            except (ValueError, AttributeError):
                pass
            if response.status_code in (403, 404):
                raise RemoteNotFound(message, response.status_code)
            raise RemoteApiError(message, response.status_code)

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            raise RemoteApiError(f"Invalid JSON in response to {method} {path}", response.status_code)

    def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return self._request("GET", path, params=params)

    def post(self, path: str, data: Optional[Dict[str, Any]] = None) -> Any:
        return self._request("POST", path, data=data)

    def put(self, path: str, data: Optional[Dict[str, Any]] = None) -> Any:
        return self._request("PUT", path, data=data)

    # Users and hierarchy
    def get_user(self) -> Dict[str, Any]:
        """Return the user who owns the token."""
        return self.get("/user").get("user", {})

    def get_teams(self) -> List[Dict[str, Any]]:
        """List workspaces (teams) the token can see."""
        return self.get("/team").get("teams", []) or []

    def get_spaces(self, team_id: str) -> List[Dict[str, Any]]:
        return self.get(f"/team/{team_id}/space").get("spaces", []) or []

    def get_folders(self, space_id: str) -> List[Dict[str, Any]]:
        return self.get(f"/space/{space_id}/folder").get("folders", []) or []

    def get_lists(self, folder_id: str) -> List[Dict[str, Any]]:
        return self.get(f"/folder/{folder_id}/list").get("lists", []) or []

    def get_folderless_lists(self, space_id: str) -> List[Dict[str, Any]]:
        return self.get(f"/space/{space_id}/list").get("lists", []) or []

    def get_list(self, list_id: str) -> Dict[str, Any]:
        """Get a list, including its available statuses."""
        return self.get(f"/list/{list_id}")

    def get_list_status_names(self, list_id: str) -> List[str]:
        out: List[str] = []
        for s in self.get_list(list_id).get("statuses", []) or []:
            nm = s.get("status") or s.get("name")
            if nm:
                out.append(nm)
        return out

    # Tasks
    def get_task(self, task_id: str) -> Dict[str, Any]:
        """Get a single task. Raises RemoteNotFound if it cannot be resolved."""
        return self.get(f"/task/{task_id}")

    def get_task_comments(self, task_id: str) -> List[Dict[str, Any]]:
        return self.get(f"/task/{task_id}/comment").get("comments", []) or []

    def get_tasks(self, list_id: str) -> List[Dict[str, Any]]:
        """List tasks in a list."""
        return self.get(f"/list/{list_id}/task").get("tasks", []) or []

    def get_team_tasks(
        self,
        team_id: str,
        assignees: Optional[List[Any]] = None,
        statuses: Optional[List[str]] = None,
        include_closed: bool = False,
        page: Optional[int] = None,
        order_by: Optional[str] = None,
        reverse: Optional[bool] = None,
        space_ids: Optional[List[str]] = None,
        list_ids: Optional[List[str]] = None,
        due_date_gt: Optional[int] = None,
        due_date_lt: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Filtered task search across a workspace."""
        params: Dict[str, Any] = {}
        if assignees:
            params["assignees[]"] = [str(a) for a in assignees]
        if statuses:
            params["statuses[]"] = list(statuses)
        if include_closed:
            params["include_closed"] = "true"
        if page is not None:
            params["page"] = page
        if order_by:
            params["order_by"] = order_by
        if reverse is not None:
            params["reverse"] = _bool_param(reverse)
        if space_ids:
            params["space_ids[]"] = list(space_ids)
        if list_ids:
            params["list_ids[]"] = list(list_ids)
        if due_date_gt is not None:
            params["due_date_gt"] = due_date_gt
        if due_date_lt is not None:
            params["due_date_lt"] = due_date_lt
        return self.get(f"/team/{team_id}/task", params=params).get("tasks", []) or []

    def lookup_tasks(self, task_ids: List[str]) -> List[TaskLookup]:
        """Resolve each id independently; one result per id, in input order.

        A failed lookup is recorded in its TaskLookup and never affects the
        other lookups in the batch.
        """
        if not task_ids:
            return []
        workers = min(MAX_LOOKUP_WORKERS, len(task_ids))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            return list(executor.map(self._lookup_one, task_ids))

    def _lookup_one(self, task_id: str) -> TaskLookup:
        try:
            return TaskLookup(task_id, FOUND, task=self.get_task(task_id))
        except RemoteNotFound as e:
            logging.debug("Task %s not found: %s", task_id, e)
            return TaskLookup(task_id, NOT_FOUND, error=str(e))
        except RemoteApiError as e:
            logging.debug("Lookup of task %s failed: %s", task_id, e)
            return TaskLookup(task_id, FAILED, error=str(e))

    def get_tasks_by_ids(self, task_ids: List[str]) -> List[Dict[str, Any]]:
        """Best-effort batch fetch: tasks that could not be resolved are dropped."""
        return [r.task for r in self.lookup_tasks(task_ids) if r.found]

    def update_task(self, task_id: str, **fields: Any) -> Dict[str, Any]:
        return self.put(f"/task/{task_id}", fields)

    def update_task_status(self, task_id: str, status: str) -> Dict[str, Any]:
        return self.update_task(task_id, status=status)

    def add_task_comment(self, task_id: str, text: str) -> Dict[str, Any]:
        return self.post(f"/task/{task_id}/comment", {"comment_text": text})


def task_status_name(task: Dict[str, Any]) -> str:
    """Status name of a task; accepts the status object or a bare string."""
    st = task.get("status")
    return (st.get("status") if isinstance(st, dict) else st) or ""


def task_url(task: Dict[str, Any]) -> str:
    return task.get("url") or f"https://app.clickup.com/t/{task.get('id')}"
