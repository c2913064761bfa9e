"""
Local preferences for clickup-cli.

A single JSON record per user:

    {"apiToken": "pk_...", "userId": 123, "defaultTeamId": "9001",
     "hiddenStatuses": ["icebox"], "pinnedTasks": ["abc123"]}

Callers load, transform with the pure helpers below, then save.
"""

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Optional

from clickup_errors import NotConfigured, StorageError

CONFIG_FILENAME = "config.json"
TASK_ID_PREFIX = "CU-"


def default_config_dir() -> Path:
    env_dir = os.environ.get("CLICKUP_CLI_CONFIG_DIR", "").strip()
    if env_dir:
        return Path(os.path.expanduser(env_dir))
    return Path.home() / ".config" / "clickup-cli"


def _unique(values: List[str], key=lambda v: v) -> List[str]:
    seen = set()
    out: List[str] = []
    for v in values:
        k = key(v)
        if k not in seen:
            seen.add(k)
            out.append(v)
    return out


@dataclass(frozen=True)
class Preferences:
    api_token: str = ""
    user_id: Optional[int] = None
    default_team_id: Optional[str] = None
    hidden_statuses: List[str] = field(default_factory=list)
    pinned_tasks: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"apiToken": self.api_token}
        if self.user_id is not None:
            data["userId"] = self.user_id
        if self.default_team_id is not None:
            data["defaultTeamId"] = self.default_team_id
        if self.hidden_statuses:
            data["hiddenStatuses"] = list(self.hidden_statuses)
        if self.pinned_tasks:
            data["pinnedTasks"] = list(self.pinned_tasks)
        return data

    @classmethod
    def from_dict(cls, data: Any) -> "Preferences":
        if not isinstance(data, dict):
            raise StorageError("Preferences file must contain a JSON object")

        token = data.get("apiToken") or ""
        if not isinstance(token, str):
            raise StorageError("apiToken must be a string")

        user_id = data.get("userId")
        if user_id is not None:
            try:
                user_id = int(user_id)
            except (TypeError, ValueError):
                raise StorageError(f"userId must be a number, got {user_id!r}")

        team_id = data.get("defaultTeamId")
        if team_id is not None:
            team_id = str(team_id)

        hidden = data.get("hiddenStatuses") or []
        pinned = data.get("pinnedTasks") or []
        for key, values in (("hiddenStatuses", hidden), ("pinnedTasks", pinned)):
            if not isinstance(values, list) or not all(isinstance(v, str) for v in values):
                raise StorageError(f"{key} must be a list of strings")

        return cls(
            api_token=token,
            user_id=user_id,
            default_team_id=team_id,
            hidden_statuses=_unique(hidden, key=str.lower),
            pinned_tasks=_unique(pinned),
        )


class PreferencesStore:
    """Reads and writes the preferences record at a fixed per-user path."""

    def __init__(self, config_dir: Optional[Path] = None):
        self.config_dir = Path(config_dir) if config_dir else default_config_dir()
        self.path = self.config_dir / CONFIG_FILENAME

    def load(self) -> Optional[Preferences]:
        """Return the stored record, or None if nothing has been saved yet."""
        if not self.path.exists():
            return None
        try:
            text = self.path.read_text(encoding="utf-8")
        except OSError as e:
            raise StorageError(f"Cannot read {self.path}: {e}")
        try:
            data = json.loads(text)
        except ValueError as e:
            raise StorageError(f"Corrupt preferences file {self.path}: {e}")
        return Preferences.from_dict(data)

    def save(self, prefs: Preferences) -> None:
        """Overwrite the stored record (temp file + rename)."""
        payload = json.dumps(prefs.to_dict(), indent=2)
        tmp_path = None
        try:
            self.config_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=str(self.config_dir), prefix=".config-", suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp_path, 0o600)
            os.replace(tmp_path, self.path)
        except BaseException as e:
            if tmp_path:
                try:
                    os.unlink(tmp_path)
                except OSError:
                    pass
            if isinstance(e, OSError):
                raise StorageError(f"Cannot write {self.path}: {e}") from e
            raise
        logging.debug("Saved preferences to %s", self.path)

    def require(self) -> Preferences:
        """Like load(), but raises NotConfigured when there is no token."""
        prefs = self.load()
        if prefs is None or not prefs.api_token:
            raise NotConfigured()
        return prefs


def normalize_task_id(raw: str) -> str:
    """Accept ids as shown in the ClickUp UI (CU-abc123)."""
    task_id = raw.strip()
    if task_id.startswith(TASK_ID_PREFIX):
        task_id = task_id[len(TASK_ID_PREFIX):]
    return task_id


def is_pinned(prefs: Preferences, task_id: str) -> bool:
    return task_id in prefs.pinned_tasks


def pin_task(prefs: Preferences, task_id: str) -> Preferences:
    if is_pinned(prefs, task_id):
        return prefs
    return replace(prefs, pinned_tasks=prefs.pinned_tasks + [task_id])


def unpin_task(prefs: Preferences, task_id: str) -> Preferences:
    if not is_pinned(prefs, task_id):
        return prefs
    return replace(prefs, pinned_tasks=[t for t in prefs.pinned_tasks if t != task_id])


def is_hidden(prefs: Preferences, status: str) -> bool:
    wanted = status.lower()
    return any(s.lower() == wanted for s in prefs.hidden_statuses)


def hide_status(prefs: Preferences, status: str) -> Preferences:
    if is_hidden(prefs, status):
        return prefs
    return replace(prefs, hidden_statuses=prefs.hidden_statuses + [status.lower()])


def unhide_status(prefs: Preferences, status: str) -> Preferences:
    if not is_hidden(prefs, status):
        return prefs
    wanted = status.lower()
    return replace(prefs, hidden_statuses=[s for s in prefs.hidden_statuses if s.lower() != wanted])
