"""Wiring of the planner services around one persistence backend."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from sqlalchemy.engine import Engine

from core.settings import SYNC
from services.active_queue import ActiveTaskQueue
from services.pomodoro import PomodoroTimer
from services.task_mirror import MemoryTaskMirror, SqlTaskMirror, TaskMirror
from services.tasks import TaskService
from storage.db import get_session, init_db
from storage.kv_store import KeyValueStore, MemoryKeyValueStore, SqliteKeyValueStore
from utils.datetime_utils import now_ms, today_utc


@dataclass
class AppContext:
    kv: KeyValueStore
    mirror: Optional[TaskMirror]
    queue: ActiveTaskQueue
    tasks: TaskService
    timer: PomodoroTimer


def build_context(
    kv: KeyValueStore,
    mirror: Optional[TaskMirror] = None,
    *,
    clock: Callable[[], int] = now_ms,
    today: Callable[[], int] = today_utc,
    hydrate: bool = True,
) -> AppContext:
    queue = ActiveTaskQueue(kv)
    tasks = TaskService(queue, mirror, today=today)
    if hydrate and mirror is not None:
        tasks.hydrate_from_mirror()
    timer = PomodoroTimer(kv, tasks, clock=clock)
    return AppContext(kv=kv, mirror=mirror, queue=queue, tasks=tasks, timer=timer)


def build_sqlite_context(
    engine: Optional[Engine] = None,
    *,
    user_id: str = SYNC.user_id,
) -> AppContext:
    actual = init_db(engine)

    def _session():
        return get_session(actual)

    return build_context(SqliteKeyValueStore(_session), SqlTaskMirror(_session, user_id))


def build_memory_context(**kwargs) -> AppContext:
    return build_context(MemoryKeyValueStore(), MemoryTaskMirror(), **kwargs)


__all__ = ["AppContext", "build_context", "build_memory_context", "build_sqlite_context"]
