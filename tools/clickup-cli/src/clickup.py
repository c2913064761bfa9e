#!/usr/bin/env python3
"""
clickup-cli - interactive CLI for ClickUp tasks (personal token)

Browse tasks across workspaces, move them between statuses, read and post
comments, and keep local preferences (pinned tasks, hidden statuses).
"""

import argparse
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

from clickup_api import ClickUpClient, task_status_name
from clickup_compose import (
    AssignedTasks,
    ComposedTaskList,
    DueTasks,
    ListTasks,
    PrivateTasks,
    TaskListComposer,
    TaskSource,
    TeamTasks,
    missing_pinned_ids,
)
from clickup_errors import ClickUpError, RemoteNotFound
from clickup_prefs import (
    Preferences,
    PreferencesStore,
    hide_status,
    is_hidden,
    is_pinned,
    normalize_task_id,
    pin_task,
    unhide_status,
    unpin_task,
)
from clickup_ui import (
    TaskActions,
    ask_text,
    choose,
    confirm,
    format_comments,
    format_task_details,
    format_task_list,
    validate_comment,
    validate_token,
)

# Load environment from .env file in tool directory
TOOL_DIR = Path(__file__).parent.parent
load_dotenv(TOOL_DIR / ".env")


def get_store(args) -> PreferencesStore:
    return PreferencesStore(Path(args.config_dir).expanduser() if args.config_dir else None)


def resolve_team_id(client: ClickUpClient, prefs: Preferences, interactive: bool = False) -> Optional[str]:
    """Default team from preferences, else the first (or chosen) workspace."""
    if prefs.default_team_id:
        return prefs.default_team_id
    teams = client.get_teams()
    if not teams:
        raise ClickUpError("No workspaces found.")
    if len(teams) == 1 or not interactive:
        return str(teams[0].get("id"))
    return choose("Select a workspace:", [(t.get("name"), str(t.get("id")), None) for t in teams])


def pick_list(client: ClickUpClient, team_id: str) -> Optional[str]:
    """Walk space -> folder/list and return the chosen list id."""
    spaces = client.get_spaces(team_id)
    if not spaces:
        logging.warning("No spaces found.")
        return None
    space_id = choose("Select a space:", [(s.get("name"), s.get("id"), None) for s in spaces])
    if space_id is None:
        return None

    logging.info("Loading folders and lists...")
    options = []
    for folder in client.get_folders(space_id):
        for lst in client.get_lists(folder.get("id")):
            options.append((lst.get("name"), lst.get("id"), folder.get("name")))
    for lst in client.get_folderless_lists(space_id):
        options.append((lst.get("name"), lst.get("id"), "no folder"))
    if not options:
        logging.warning("No lists found in this space.")
        return None
    return choose("Select a list:", options)


def present(
    args,
    client: ClickUpClient,
    store: PreferencesStore,
    composed: ComposedTaskList,
    show_status: bool = False,
    show_due: bool = False,
    limit: Optional[int] = None,
) -> int:
    if limit is not None:
        composed = composed._replace(tasks=composed.tasks[:limit])
    if args.print_only:
        print(format_task_list(composed, args.format))
        return 0
    for tid in composed.missing_pinned_ids:
        logging.warning("Pinned task %s not found", tid)
    if not composed.tasks:
        print("No tasks found.")
        return 0
    TaskActions(client, store, composed.pinned_ids).select_and_act(
        composed.tasks, show_status=show_status, show_due=show_due
    )
    return 0


def compose(client: ClickUpClient, source: TaskSource, prefs: Preferences) -> ComposedTaskList:
    return TaskListComposer(client).compose(source, prefs)


# --- configure ---
def cmd_configure(args) -> int:
    store = get_store(args)
    existing = store.load()
    if existing and existing.api_token and not args.force:
        if not confirm("API token already configured. Overwrite?"):
            print("Configuration unchanged.")
            return 0

    if args.token:
        error = validate_token(args.token)
        if error:
            raise ClickUpError(error)
        token = args.token
    else:
        token = ask_text("Enter your ClickUp API token (pk_...): ", validate_token)
        if token is None:
            print("Configuration cancelled.")
            return 1

    client = ClickUpClient(token)
    logging.info("Validating API token...")
    user = client.get_user()
    print(f"Authenticated as {user.get('username')} ({user.get('email')})")

    teams = client.get_teams()
    team_id: Optional[str] = None
    if len(teams) == 1:
        team_id = str(teams[0].get("id"))
        print(f"Default workspace: {teams[0].get('name')}")
    elif len(teams) > 1:
        team_id = choose("Select default workspace:", [(t.get("name"), str(t.get("id")), None) for t in teams])
    if team_id is None and existing:
        team_id = existing.default_team_id

    # Hidden statuses and pins survive a token change.
    prefs = replace(existing or Preferences(), api_token=token, user_id=user.get("id"), default_team_id=team_id)
    store.save(prefs)
    print(f"Configuration saved to {store.path}")
    return 0


# --- config ---
def cmd_config_show(args) -> int:
    prefs = get_store(args).load()
    if prefs is None or not prefs.api_token:
        print("Not configured. Run `clickup configure` first.")
        return 0

    print("ClickUp CLI Configuration:\n")
    print(f"  API Token: {prefs.api_token[:10]}...")
    print(f"  User ID: {prefs.user_id or 'Not set'}")
    print(f"  Default Team: {prefs.default_team_id or 'Not set'}")

    if prefs.hidden_statuses:
        print("\n  Hidden Statuses:")
        for status in prefs.hidden_statuses:
            print(f"    - {status}")
    else:
        print("\n  Hidden Statuses: None")

    if prefs.pinned_tasks:
        print("\n  Pinned Tasks:")
        tasks = ClickUpClient(prefs.api_token).get_tasks_by_ids(prefs.pinned_tasks)
        for task in tasks:
            lst = (task.get("list") or {}).get("name")
            folder = (task.get("folder") or {}).get("name")
            print(f"    - {task.get('name')}")
            print(f"      ID: {task.get('id')} | List: {lst} | Folder: {folder}")
        for tid in missing_pinned_ids(prefs.pinned_tasks, tasks):
            print(f"    - [Not found] {tid}")
    else:
        print("\n  Pinned Tasks: None")
    return 0


def cmd_config_hide(args) -> int:
    store = get_store(args)
    prefs = store.require()
    if is_hidden(prefs, args.status):
        print(f'Status "{args.status}" is already hidden.')
        return 0
    prefs = hide_status(prefs, args.status)
    store.save(prefs)
    print(f'Status "{args.status}" is now hidden from task lists.')
    print(f"Hidden statuses: {', '.join(prefs.hidden_statuses)}")
    return 0


def cmd_config_unhide(args) -> int:
    store = get_store(args)
    prefs = store.require()
    if not is_hidden(prefs, args.status):
        print(f'Status "{args.status}" is not hidden.')
        return 0
    prefs = unhide_status(prefs, args.status)
    store.save(prefs)
    print(f'Status "{args.status}" is now visible.')
    if prefs.hidden_statuses:
        print(f"Hidden statuses: {', '.join(prefs.hidden_statuses)}")
    else:
        print("No statuses are hidden.")
    return 0


def cmd_config_pin(args) -> int:
    store = get_store(args)
    prefs = store.require()
    task_id = normalize_task_id(args.task_id)
    if is_pinned(prefs, task_id):
        print(f'Task "{args.task_id}" is already pinned.')
        return 0
    try:
        task = ClickUpClient(prefs.api_token).get_task(task_id)
    except RemoteNotFound:
        raise ClickUpError(f'Task "{args.task_id}" not found.')
    prefs = pin_task(prefs, task_id)
    store.save(prefs)
    print(f'Pinned: "{task.get("name")}"')
    print(f"Pinned tasks: {len(prefs.pinned_tasks)}")
    return 0


def cmd_config_unpin(args) -> int:
    store = get_store(args)
    prefs = store.require()
    task_id = normalize_task_id(args.task_id)
    if not is_pinned(prefs, task_id):
        print(f'Task "{args.task_id}" is not pinned.')
        return 0
    prefs = unpin_task(prefs, task_id)
    store.save(prefs)
    print(f'Unpinned task "{args.task_id}"')
    print(f"Pinned tasks remaining: {len(prefs.pinned_tasks)}")
    return 0


# --- tasks: listings ---
def cmd_tasks_select(args) -> int:
    store = get_store(args)
    prefs = store.require()
    client = ClickUpClient(prefs.api_token)

    view = args.view or choose("View tasks by:", [
        ("My Assigned Tasks", "assigned", None),
        ("Team/Workspace Tasks", "team", None),
        ("Browse by List", "list", None),
    ])
    if view is None:
        print("Cancelled.")
        return 0

    team_id = resolve_team_id(client, prefs, interactive=True)
    if team_id is None:
        print("Cancelled.")
        return 0

    source: TaskSource
    if view == "assigned":
        source = AssignedTasks(team_id, prefs.user_id)
    elif view == "team":
        source = TeamTasks(team_id)
    else:
        list_id = args.list or pick_list(client, team_id)
        if list_id is None:
            print("Cancelled.")
            return 0
        source = ListTasks(list_id)

    return present(args, client, store, compose(client, source, prefs))


def cmd_tasks_due(args) -> int:
    store = get_store(args)
    prefs = store.require()
    client = ClickUpClient(prefs.api_token)
    team_id = resolve_team_id(client, prefs)
    source = DueTasks(team_id, prefs.user_id, days=args.days, overdue=args.overdue)
    return present(args, client, store, compose(client, source, prefs), show_due=True)


def cmd_tasks_private(args) -> int:
    store = get_store(args)
    prefs = store.require()
    client = ClickUpClient(prefs.api_token)
    team_id = resolve_team_id(client, prefs)

    logging.info("Finding private spaces...")
    space_ids = [s.get("id") for s in client.get_spaces(team_id) if s.get("private")]
    if not space_ids:
        print("No private spaces found.")
        return 0

    composed = compose(client, PrivateTasks(team_id, prefs.user_id, space_ids), prefs)
    logging.info("Showing %d of %d tasks", min(args.limit, len(composed.tasks)), len(composed.tasks))
    return present(args, client, store, composed, show_status=True, limit=args.limit)


# --- tasks: single task ---
def cmd_tasks_get(args) -> int:
    prefs = get_store(args).require()
    client = ClickUpClient(prefs.api_token)
    task_id = normalize_task_id(args.task_id)
    task = client.get_task(task_id)
    if args.json:
        output: Dict[str, Any] = {"task": task}
        if args.comments:
            output["comments"] = client.get_task_comments(task_id)
        print(json.dumps(output, indent=2))
        return 0
    print(format_task_details(task, include_time=True))
    if args.comments:
        print()
        print(format_comments(client.get_task_comments(task_id)))
    return 0


def cmd_tasks_move(args) -> int:
    prefs = get_store(args).require()
    client = ClickUpClient(prefs.api_token)
    task_id = normalize_task_id(args.task_id)
    task = client.get_task(task_id)
    current = task_status_name(task)

    new_status = args.status
    if not new_status:
        list_id = (task.get("list") or {}).get("id")
        if not list_id:
            raise ClickUpError("Task has no list; pass --status explicitly")
        statuses = client.get_list_status_names(list_id)
        new_status = choose(f'Move "{task.get("name")}" to which status?', [
            (s, s, "current" if s == current else None) for s in statuses
        ])
        if new_status is None:
            print("Cancelled.")
            return 0

    if new_status == current:
        print(f'Task is already in "{new_status}" status.')
        return 0
    client.update_task_status(task_id, new_status)
    print(f'Task "{task.get("name")}" moved to "{new_status}"')
    return 0


def cmd_tasks_comment(args) -> int:
    prefs = get_store(args).require()
    client = ClickUpClient(prefs.api_token)
    task_id = normalize_task_id(args.task_id)

    if args.text is not None:
        error = validate_comment(args.text)
        if error:
            raise ClickUpError(error)
        text = args.text
    else:
        text = ask_text("Enter your comment: ", validate_comment)
        if text is None:
            print("Cancelled.")
            return 0
    client.add_task_comment(task_id, text)
    print("Comment posted!")
    return 0


def _add_listing_flags(p: argparse.ArgumentParser) -> None:
    p.add_argument("--print", dest="print_only", action="store_true",
                   help="Print the task list (see --format) instead of the interactive menu")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="ClickUp tasks from the terminal (Personal Token)")
    p.add_argument("--env", help="Path to an extra .env file to load")
    p.add_argument("--config-dir", help="Preferences directory (default ~/.config/clickup-cli)")
    p.add_argument("--format", "-f", choices=["json", "table"], default="table",
                   help="Output format for --print listings (default: table)")
    p.add_argument("--verbose", action="store_true", help="Enable debug logging")
    p.add_argument("--quiet", "-q", action="store_true", help="Only log warnings and errors")

    sp = p.add_subparsers(dest="cmd", required=True)

    pconf = sp.add_parser("configure", help="Configure ClickUp API token")
    pconf.add_argument("--token", help="Personal API token (pk_...); prompted if omitted")
    pconf.add_argument("--force", action="store_true", help="Overwrite an existing token without asking")
    pconf.set_defaults(func=cmd_configure)

    pc = sp.add_parser("config", help="Local preferences")
    sc = pc.add_subparsers(dest="config_cmd", required=True)

    pshow = sc.add_parser("show", help="Show current configuration")
    pshow.set_defaults(func=cmd_config_show)

    phide = sc.add_parser("hide", help="Hide a status from task lists")
    phide.add_argument("status", help='Status name, e.g. icebox or "on hold"')
    phide.set_defaults(func=cmd_config_hide)

    punhide = sc.add_parser("unhide", help="Show a hidden status again")
    punhide.add_argument("status", help="Status name")
    punhide.set_defaults(func=cmd_config_unhide)

    ppin = sc.add_parser("pin", help="Pin a task to always show in task lists")
    ppin.add_argument("task_id", help="Task ID (abc123 or CU-abc123)")
    ppin.set_defaults(func=cmd_config_pin)

    punpin = sc.add_parser("unpin", help="Unpin a task")
    punpin.add_argument("task_id", help="Task ID (abc123 or CU-abc123)")
    punpin.set_defaults(func=cmd_config_unpin)

    pts = sp.add_parser("tasks", help="Task operations")
    sts = pts.add_subparsers(dest="tasks_cmd", required=True)

    psel = sts.add_parser("select", help="Interactive task selection and management")
    psel.add_argument("--view", choices=["assigned", "team", "list"], help="Skip the view menu")
    psel.add_argument("--list", help="List ID for --view list (skips space/list menus)")
    _add_listing_flags(psel)
    psel.set_defaults(func=cmd_tasks_select)

    pdue = sts.add_parser("due", help="List tasks due soon")
    pdue.add_argument("--days", "-d", type=int, default=7, help="Show tasks due within N days (default 7)")
    pdue.add_argument("--overdue", "-o", action="store_true", help="Include overdue tasks")
    _add_listing_flags(pdue)
    pdue.set_defaults(func=cmd_tasks_due)

    ppriv = sts.add_parser("private", help="List tasks from your private spaces")
    ppriv.add_argument("--limit", "-n", type=int, default=10, help="Number of tasks to show (default 10)")
    _add_listing_flags(ppriv)
    ppriv.set_defaults(func=cmd_tasks_private)

    pget = sts.add_parser("get", help="Get task details")
    pget.add_argument("task_id", help="Task ID (abc123 or CU-abc123)")
    pget.add_argument("--comments", "-c", action="store_true", help="Include comments")
    pget.add_argument("--json", action="store_true", help="Output as JSON")
    pget.set_defaults(func=cmd_tasks_get)

    pmove = sts.add_parser("move", help="Move a task to a different status")
    pmove.add_argument("task_id", help="Task ID (abc123 or CU-abc123)")
    pmove.add_argument("--status", "-s", help="New status name; prompted if omitted")
    pmove.set_defaults(func=cmd_tasks_move)

    pcmt = sts.add_parser("comment", help="Add a comment to a task")
    pcmt.add_argument("task_id", help="Task ID (abc123 or CU-abc123)")
    pcmt.add_argument("--text", help="Comment text; prompted if omitted")
    pcmt.set_defaults(func=cmd_tasks_comment)

    return p


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    level = logging.DEBUG if args.verbose else logging.WARNING if args.quiet else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")
    if args.env:
        load_dotenv(Path(args.env).expanduser(), override=True)
    try:
        return args.func(args)
    except KeyboardInterrupt:
        print("\nOperation cancelled.", file=sys.stderr)
        return 130
    except ClickUpError as e:
        logging.error("Error: %s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
