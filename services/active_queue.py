"""Ordered queue of tasks the user has started.

Index 0 is "the" active task. The queue is persisted as a JSON list under
``pomodoro:activeTaskIds``; ``pomodoro:activeTaskId`` always mirrors index 0
and is removed when the queue is empty.
"""
from __future__ import annotations

import json
from typing import Iterable, List, Optional

from core.logging_setup import get_logger
from core.settings import FOCUS, KEYS
from storage.kv_store import KeyValueStore


def _parse_ids(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        return []
    if not isinstance(data, list):
        return []
    seen: List[str] = []
    for item in data:
        if isinstance(item, str) and item and item not in seen:
            seen.append(item)
    return seen


class ActiveTaskQueue:
    def __init__(self, kv: KeyValueStore, *, capacity: int = FOCUS.max_active_tasks):
        self._kv = kv
        self.capacity = capacity
        self.logger = get_logger("tasks")
        self._ids: List[str] = self._load()

    def _load(self) -> List[str]:
        try:
            ids = _parse_ids(self._kv.get(KEYS.active_task_ids))
            legacy = self._kv.get(KEYS.active_task_id)
        except Exception as exc:
            self.logger.warning("Active queue load failed: %s", exc)
            return []
        if legacy and legacy not in ids:
            ids.insert(0, legacy)
        return ids

    def _persist(self) -> None:
        try:
            self._kv.set(KEYS.active_task_ids, json.dumps(self._ids))
            if self._ids:
                self._kv.set(KEYS.active_task_id, self._ids[0])
            else:
                self._kv.remove(KEYS.active_task_id)
        except Exception as exc:
            self.logger.warning("Active queue persist failed: %s", exc)

    # ---------- reads ----------
    @property
    def ids(self) -> List[str]:
        return list(self._ids)

    @property
    def primary(self) -> Optional[str]:
        return self._ids[0] if self._ids else None

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    def is_full(self) -> bool:
        return self.capacity > 0 and len(self._ids) >= self.capacity

    # ---------- writes ----------
    def set_primary(self, task_id: Optional[str]) -> None:
        """Move ``task_id`` to the front, inserting it when missing."""

        if task_id:
            self._ids = [task_id] + [i for i in self._ids if i != task_id]
        self._persist()

    def add(self, task_id: str) -> bool:
        if not task_id or task_id in self._ids:
            return False
        self._ids.append(task_id)
        self._persist()
        return True

    def evict(self, task_ids: Iterable[str]) -> List[str]:
        """Drop every id in ``task_ids``; persists only when something changed."""

        targets = set(task_ids)
        removed = [i for i in self._ids if i in targets]
        if removed:
            self._ids = [i for i in self._ids if i not in targets]
            self._persist()
        return removed

    def remove(self, task_id: str) -> bool:
        return bool(self.evict([task_id]))

    def reorder(self, new_order: Iterable[str]) -> None:
        current = set(self._ids)
        valid: List[str] = []
        for task_id in new_order:
            if task_id in current and task_id not in valid:
                valid.append(task_id)
        missing = [i for i in self._ids if i not in valid]
        self._ids = valid + missing
        self._persist()

    def retain(self, known_ids: Iterable[str]) -> None:
        known = set(known_ids)
        self.evict([i for i in self._ids if i not in known])


__all__ = ["ActiveTaskQueue"]
