"""
Task list composition: fetch, drop hidden statuses, put pinned tasks first.

Every listing command builds its list through TaskListComposer; the commands
differ only in the task source they pass in.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Iterable, List, NamedTuple, Optional

from clickup_api import ClickUpClient, task_status_name
from clickup_prefs import Preferences

Task = Dict[str, Any]

DAY_MS = 24 * 60 * 60 * 1000


def filter_hidden(tasks: List[Task], hidden_statuses: Optional[Iterable[str]]) -> List[Task]:
    """Drop tasks whose status is hidden (case-insensitive, exact match)."""
    hidden = {s.lower() for s in (hidden_statuses or [])}
    if not hidden:
        return tasks
    return [t for t in tasks if task_status_name(t).lower() not in hidden]


def merge_pinned(tasks: List[Task], pinned_tasks: List[Task]) -> List[Task]:
    """Pinned tasks first (in the given order), then the rest without duplicates."""
    if not pinned_tasks:
        return tasks
    pinned_ids = {t.get("id") for t in pinned_tasks}
    return list(pinned_tasks) + [t for t in tasks if t.get("id") not in pinned_ids]


def missing_pinned_ids(pinned_ids: List[str], fetched: List[Task]) -> List[str]:
    """Configured pinned ids that did not come back from the API."""
    fetched_ids = {t.get("id") for t in fetched}
    return [tid for tid in pinned_ids if tid not in fetched_ids]


def current_time_ms() -> int:
    return int(time.time() * 1000)


class TaskSource:
    """A query producing the raw task list for one view."""

    description = "tasks"

    def fetch(self, client: ClickUpClient) -> List[Task]:
        raise NotImplementedError

    def refine(self, tasks: List[Task]) -> List[Task]:
        return tasks


class AssignedTasks(TaskSource):
    description = "assigned tasks"

    def __init__(self, team_id: str, user_id: Optional[int]):
        self.team_id = team_id
        self.user_id = user_id

    def fetch(self, client: ClickUpClient) -> List[Task]:
        assignees = [self.user_id] if self.user_id is not None else None
        return client.get_team_tasks(self.team_id, assignees=assignees)


class TeamTasks(TaskSource):
    description = "workspace tasks"

    def __init__(self, team_id: str):
        self.team_id = team_id

    def fetch(self, client: ClickUpClient) -> List[Task]:
        return client.get_team_tasks(self.team_id)


class ListTasks(TaskSource):
    description = "list tasks"

    def __init__(self, list_id: str):
        self.list_id = list_id

    def fetch(self, client: ClickUpClient) -> List[Task]:
        return client.get_tasks(self.list_id)


class DueTasks(TaskSource):
    """Tasks assigned to the user, due within the next `days` days."""

    description = "tasks due soon"

    def __init__(self, team_id: str, user_id: Optional[int], days: int = 7,
                 overdue: bool = False, now_ms: Optional[int] = None):
        self.team_id = team_id
        self.user_id = user_id
        self.days = days
        self.overdue = overdue
        self.now_ms = now_ms if now_ms is not None else current_time_ms()

    def fetch(self, client: ClickUpClient) -> List[Task]:
        assignees = [self.user_id] if self.user_id is not None else None
        return client.get_team_tasks(
            self.team_id,
            assignees=assignees,
            due_date_gt=0 if self.overdue else self.now_ms,
            due_date_lt=self.now_ms + self.days * DAY_MS,
            order_by="due_date",
        )

    def refine(self, tasks: List[Task]) -> List[Task]:
        with_due = [t for t in tasks if t.get("due_date")]
        return sorted(with_due, key=lambda t: int(t["due_date"]))


class PrivateTasks(TaskSource):
    description = "tasks in private spaces"

    def __init__(self, team_id: str, user_id: Optional[int], space_ids: List[str]):
        self.team_id = team_id
        self.user_id = user_id
        self.space_ids = list(space_ids)

    def fetch(self, client: ClickUpClient) -> List[Task]:
        assignees = [self.user_id] if self.user_id is not None else None
        return client.get_team_tasks(
            self.team_id,
            assignees=assignees,
            order_by="updated",
            reverse=True,
            space_ids=self.space_ids,
        )


class ComposedTaskList(NamedTuple):
    tasks: List[Task]
    pinned_ids: List[str]
    missing_pinned_ids: List[str]

    def is_pinned(self, task: Task) -> bool:
        return task.get("id") in self.pinned_ids


class TaskListComposer:
    """Runs a TaskSource and merges in the user's hidden/pinned preferences."""

    def __init__(self, client: ClickUpClient):
        self.client = client

    def compose(self, source: TaskSource, prefs: Preferences) -> ComposedTaskList:
        pinned_ids = list(prefs.pinned_tasks)
        logging.info("Fetching %s...", source.description)
        with ThreadPoolExecutor(max_workers=2) as executor:
            raw_future = executor.submit(source.fetch, self.client)
            pinned_future = executor.submit(self.client.get_tasks_by_ids, pinned_ids)
            pinned = pinned_future.result()
            raw = raw_future.result()

        # Hidden filter runs before the merge so pinned tasks survive it.
        tasks = filter_hidden(raw, prefs.hidden_statuses)
        tasks = source.refine(tasks)
        tasks = merge_pinned(tasks, pinned)
        missing = missing_pinned_ids(pinned_ids, pinned)
        logging.info("Found %d %s", len(tasks), source.description)
        if missing:
            logging.debug("Pinned tasks not found: %s", ", ".join(missing))
        return ComposedTaskList(tasks, pinned_ids, missing)
