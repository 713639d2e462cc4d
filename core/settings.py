"""Centralized application configuration."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional
import os
import sys


def get_default_data_dir(
    app_name: str,
    *,
    platform: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
    home: Optional[Path] = None,
) -> Path:
    """Return an OS-specific user data directory for ``app_name``.

    ``PLANNER_DATA_DIR`` wins over the platform defaults.
    """

    platform_id = (platform or sys.platform).lower()
    environ = dict(os.environ if env is None else env)
    override = environ.get("PLANNER_DATA_DIR")
    if override:
        return Path(override).expanduser()

    home_dir = Path(home or Path.home())
    sanitized = app_name.strip() or "app"
    sanitized = sanitized.replace("/", "-").replace("\\", "-")

    if platform_id.startswith("win"):
        base = Path(environ.get("APPDATA") or home_dir / "AppData" / "Roaming")
    elif platform_id == "darwin":
        base = Path(home_dir / "Library" / "Application Support")
    else:
        base = Path(environ.get("XDG_DATA_HOME") or home_dir / ".local" / "share")

    return base.expanduser() / sanitized


APP_NAME = "PlannerFocus"


DATA_DIR = get_default_data_dir(APP_NAME)
LOG_DIR = DATA_DIR / "logs"

for _dir in (DATA_DIR, LOG_DIR):
    _dir.mkdir(parents=True, exist_ok=True)


DB_PATH = DATA_DIR / "app.db"
LOG_PATH = LOG_DIR / "planner.log"


@dataclass(frozen=True)
class FocusSettings:
    work_duration_sec: int = 25 * 60
    short_break_sec: int = 5 * 60
    long_break_sec: int = 15 * 60
    cycles_until_long_break: int = 4
    min_duration_sec: int = 1
    tick_interval_sec: float = 1.0
    # UI policy only; eviction never looks at it
    max_active_tasks: int = 5


FOCUS = FocusSettings()


@dataclass(frozen=True)
class StorageKeys:
    active_task_id: str = "pomodoro:activeTaskId"
    active_task_ids: str = "pomodoro:activeTaskIds"
    pomodoro_settings: str = "pomodoro:settings"
    pomodoro_state: str = "pomodoro:state"
    last_rollover_day: str = "tasks:lastRolloverDay"


KEYS = StorageKeys()


@dataclass(frozen=True)
class SyncSettings:
    user_id: str = os.environ.get("PLANNER_USER_ID", "local")


SYNC = SyncSettings()


@dataclass(frozen=True)
class LoggingSettings:
    level: str = os.environ.get("PLANNER_LOG_LEVEL", "INFO")
    log_path: Path = LOG_PATH
    max_bytes: int = 1_000_000
    backup_count: int = 3
    format: str = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


LOGGING = LoggingSettings()


__all__ = [
    "APP_NAME",
    "DATA_DIR",
    "DB_PATH",
    "FOCUS",
    "KEYS",
    "LOGGING",
    "LOG_DIR",
    "LOG_PATH",
    "SYNC",
    "get_default_data_dir",
]
