"""
Interactive prompts and text rendering for clickup-cli.

Menus are plain numbered lists read with input(); EOF or a blank answer
cancels.
"""

import json
import logging
import webbrowser
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from tabulate import tabulate

from clickup_api import ClickUpClient, task_status_name, task_url
from clickup_compose import DAY_MS, ComposedTaskList, current_time_ms
from clickup_prefs import PreferencesStore, is_pinned, pin_task, unpin_task

Task = Dict[str, Any]
# (label, value, hint)
Option = Tuple[str, Any, Optional[str]]

PIN_MARK = "\U0001F4CC "
TOKEN_PREFIX = "pk_"


# --- Prompts ---
def prompt(message: str) -> Optional[str]:
    try:
        return input(message)
    except EOFError:
        print()
        return None


def choose(message: str, options: Sequence[Option]) -> Optional[Any]:
    """Show a numbered menu and return the chosen value (None if cancelled)."""
    if not options:
        return None
    print(message)
    for i, (label, _, hint) in enumerate(options, 1):
        line = f"  {i:>2}. {label}"
        if hint:
            line += f"  ({hint})"
        print(line)
    while True:
        ans = prompt(f"Choose 1-{len(options)} (blank to cancel): ")
        if ans is None:
            return None
        ans = ans.strip()
        if not ans or ans.lower() in ("q", "quit"):
            return None
        if ans.isdigit() and 1 <= int(ans) <= len(options):
            return options[int(ans) - 1][1]
        print(f"Enter a number between 1 and {len(options)}.")


def ask_text(message: str, validate: Optional[Callable[[str], Optional[str]]] = None) -> Optional[str]:
    """Read a line; re-ask while `validate` returns an error message."""
    while True:
        value = prompt(message)
        if value is None:
            return None
        error = validate(value) if validate else None
        if not error:
            return value
        print(error)


def confirm(message: str) -> bool:
    ans = prompt(f"{message} [y/N]: ")
    return (ans or "").strip().lower() in ("y", "yes")


def validate_token(value: str) -> Optional[str]:
    if not value:
        return "API token is required"
    if not value.startswith(TOKEN_PREFIX):
        return f"API token should start with {TOKEN_PREFIX}"
    return None


def validate_comment(value: str) -> Optional[str]:
    if not value.strip():
        return "Comment cannot be empty"
    return None


# --- Formatting ---
def format_due_date(due_date: Any, now_ms: Optional[int] = None) -> str:
    now = now_ms if now_ms is not None else current_time_ms()
    days = (int(due_date) - now) // DAY_MS
    if days < 0:
        n = abs(days)
        return f"OVERDUE by {n} day{'' if n == 1 else 's'}"
    if days == 0:
        return "Due TODAY"
    if days == 1:
        return "Due tomorrow"
    return f"Due in {days} days"


def _ms_to_local(ms: Any, fmt: str) -> str:
    return datetime.fromtimestamp(int(ms) / 1000).strftime(fmt)


def _name_of(obj: Any) -> str:
    return (obj or {}).get("name") or "-"


def task_label(task: Task, pinned: bool = False, show_status: bool = False) -> str:
    label = PIN_MARK if pinned else ""
    if show_status:
        label += f"[{task_status_name(task)}] "
    if task.get("custom_id"):
        label += f"{task['custom_id']} - "
    return label + (task.get("name") or "")


def task_hint(task: Task, show_due: bool = False, now_ms: Optional[int] = None) -> str:
    hint = f"{_name_of(task.get('folder'))} / {_name_of(task.get('list'))}"
    if show_due and task.get("due_date"):
        hint += f" | {format_due_date(task['due_date'], now_ms)}"
    return hint


def format_task_details(task: Task, include_time: bool = False) -> str:
    custom = f" ({task['custom_id']})" if task.get("custom_id") else ""
    priority = (task.get("priority") or {}).get("priority") or "None"
    assignees = ", ".join(a.get("username") or "" for a in task.get("assignees") or []) or "None"
    due = _ms_to_local(task["due_date"], "%Y-%m-%d") if task.get("due_date") else "None"
    lines = [
        f"Task: {task.get('name')}",
        f"ID: {task.get('id')}{custom}",
        f"Status: {task_status_name(task)}",
        f"Priority: {priority}",
        f"List: {_name_of(task.get('list'))}",
        f"Folder: {_name_of(task.get('folder'))}",
        f"Assignees: {assignees}",
        f"Due Date: {due}",
    ]
    if include_time:
        for label, key in (("Time Estimate", "time_estimate"), ("Time Spent", "time_spent")):
            ms = task.get(key)
            lines.append(f"{label}: {round(int(ms) / 3_600_000)}h" if ms else f"{label}: None")
    lines += [
        "",
        "Description:",
        task.get("description") or task.get("text_content") or "(No description)",
        "",
        f"URL: {task_url(task)}",
    ]
    return "\n".join(lines)


def format_comments(comments: List[Dict[str, Any]]) -> str:
    if not comments:
        return "--- No comments ---"
    out = [f"--- Comments ({len(comments)}) ---", ""]
    for c in comments:
        user = (c.get("user") or {}).get("username") or "?"
        date = _ms_to_local(c["date"], "%Y-%m-%d %H:%M") if c.get("date") else "?"
        out.append(f"{user} ({date}):")
        out.append(f"  {c.get('comment_text', '')}")
        out.append("")
    return "\n".join(out)


def format_task_list(composed: ComposedTaskList, fmt: str = "table") -> str:
    """Render a composed list for non-interactive output."""
    if fmt == "json":
        return json.dumps({
            "tasks": composed.tasks,
            "pinned": composed.pinned_ids,
            "missing_pinned": composed.missing_pinned_ids,
        }, indent=2)
    rows = [
        [
            "*" if composed.is_pinned(t) else "",
            t.get("custom_id") or t.get("id"),
            (t.get("name") or "")[:60],
            task_status_name(t),
            _ms_to_local(t["due_date"], "%Y-%m-%d") if t.get("due_date") else "",
            _name_of(t.get("list")),
        ]
        for t in composed.tasks
    ]
    out = tabulate(rows, headers=["Pin", "ID", "Name", "Status", "Due", "List"], tablefmt="simple")
    for tid in composed.missing_pinned_ids:
        out += f"\n[Not found] pinned task {tid}"
    return out


# --- Task actions ---
class TaskActions:
    """Task picker plus the per-task action menu."""

    def __init__(self, client: ClickUpClient, store: PreferencesStore, pinned_ids: Optional[List[str]] = None):
        self.client = client
        self.store = store
        self.pinned_ids = set(pinned_ids or [])

    def select_and_act(self, tasks: List[Task], show_status: bool = False, show_due: bool = False) -> None:
        now = current_time_ms()
        options = [
            (task_label(t, t.get("id") in self.pinned_ids, show_status), t.get("id"), task_hint(t, show_due, now))
            for t in tasks
        ]
        task_id = choose("Select a task:", options)
        if task_id is None:
            return
        task = next(t for t in tasks if t.get("id") == task_id)

        pinned = task_id in self.pinned_ids
        action = choose(f'What do you want to do with "{task.get("name")}"?', [
            ("View details", "details", None),
            ("Move status", "status", None),
            ("Show comments", "comments", None),
            ("Add comment", "add_comment", None),
            ("Open in browser", "open", None),
            ("Unpin task" if pinned else "Pin task", "toggle_pin", None),
        ])
        handlers = {
            "details": self.show_details,
            "status": self.move_status,
            "comments": self.show_comments,
            "add_comment": self.add_comment,
            "open": self.open_in_browser,
            "toggle_pin": self.toggle_pin,
        }
        if action in handlers:
            handlers[action](task)

    def show_details(self, task: Task) -> None:
        logging.info("Fetching task details...")
        print(format_task_details(self.client.get_task(task["id"])))

    def move_status(self, task: Task) -> Optional[str]:
        list_id = (task.get("list") or {}).get("id")
        statuses = self.client.get_list_status_names(list_id) if list_id else []
        current = task_status_name(task)
        new_status = choose("Select new status:", [
            (s, s, "current" if s == current else None) for s in statuses
        ])
        if new_status is None:
            return None
        if new_status == current:
            print("Status unchanged.")
            return None
        self.client.update_task_status(task["id"], new_status)
        print(f'Status changed to "{new_status}"')
        return new_status

    def show_comments(self, task: Task) -> None:
        print(format_comments(self.client.get_task_comments(task["id"])))

    def add_comment(self, task: Task) -> bool:
        text = ask_text("Enter your comment: ", validate_comment)
        if text is None:
            return False
        self.client.add_task_comment(task["id"], text)
        print("Comment posted!")
        return True

    def open_in_browser(self, task: Task) -> None:
        url = task_url(task)
        if webbrowser.open(url):
            print(f"Opened {url}")
        else:
            logging.error("Failed to open browser for %s", url)

    def toggle_pin(self, task: Task) -> bool:
        """Flip the pin state of a task; returns True if it is now pinned."""
        prefs = self.store.require()
        task_id = task["id"]
        if is_pinned(prefs, task_id):
            self.store.save(unpin_task(prefs, task_id))
            self.pinned_ids.discard(task_id)
            print(f'Unpinned: "{task.get("name")}"')
            return False
        self.store.save(pin_task(prefs, task_id))
        self.pinned_ids.add(task_id)
        print(f'Pinned: "{task.get("name")}"')
        return True
