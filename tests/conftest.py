# tests/conftest.py

from __future__ import annotations

import os
import sys
import tempfile
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# keep settings and log files out of the real user data dir
os.environ.setdefault("PLANNER_DATA_DIR", tempfile.mkdtemp(prefix="planner-tests-"))

import pytest

from services.active_queue import ActiveTaskQueue
from services.app_context import AppContext, build_context
from services.task_mirror import MemoryTaskMirror
from services.tasks import TaskService
from storage.kv_store import MemoryKeyValueStore

from fakes import DAY, FakeClock


@pytest.fixture()
def kv() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture()
def mirror() -> MemoryTaskMirror:
    return MemoryTaskMirror()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def queue(kv) -> ActiveTaskQueue:
    return ActiveTaskQueue(kv)


@pytest.fixture()
def store(queue, mirror) -> TaskService:
    return TaskService(queue, mirror, today=lambda: DAY)


@pytest.fixture()
def ctx(kv, mirror, clock) -> AppContext:
    return build_context(kv, mirror, clock=clock, today=lambda: DAY)
