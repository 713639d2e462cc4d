# planner/services/tasks.py
from __future__ import annotations

import copy
from typing import Any, Callable, Dict, Iterable, List, Optional

from core.logging_setup import get_logger
from core.recurrence import (
    is_done_for_day,
    is_due_today,
    is_overdue,
    is_scheduled_for_day,
    sort_by_earliest_execution,
)
from models.task import (
    BACKLOG,
    DAILY,
    SCHEDULED,
    TASK_KINDS,
    DateRange,
    Scheduled,
    Task,
    as_int,
    create_task_id,
)
from services.active_queue import ActiveTaskQueue
from services.task_mirror import TaskMirror
from utils.datetime_utils import day_start_utc, now_ms, today_utc

MAX_TITLE_LENGTH = 200

_EDITABLE_FIELDS = {
    "title",
    "description",
    "scheduled",
    "planned_dates",
    "daily_done_dates",
    "estimated_pomodoros",
    "milestone_ids",
    "order",
}


def _clean_title(title: Optional[str]) -> str:
    cleaned = (title or "").strip()
    if not cleaned:
        raise ValueError("Title must not be empty")
    if len(cleaned) > MAX_TITLE_LENGTH:
        raise ValueError("Title is too long")
    return cleaned


def _day_keys(values: Optional[Iterable[int]]) -> List[int]:
    keys: List[int] = []
    for value in values or []:
        key = day_start_utc(int(value))
        if key not in keys:
            keys.append(key)
    return keys


def _build_scheduled(
    days_of_week: Optional[Iterable[int]],
    date_ranges: Optional[Iterable[Any]],
) -> Scheduled:
    days = sorted({int(d) for d in days_of_week or [] if 0 <= int(d) <= 6})
    ranges: List[DateRange] = []
    for entry in date_ranges or []:
        if isinstance(entry, DateRange):
            start, end = entry.start, entry.end
        elif isinstance(entry, dict):
            start, end = entry.get("start"), entry.get("end")
        else:
            start, end = entry
        if start is None:
            raise ValueError("Date range needs a start")
        start_key = as_int(start)
        end_key = as_int(end) if end is not None else None
        if start_key is None or (end is not None and end_key is None):
            raise ValueError("Date range bounds must be day timestamps")
        start_key = day_start_utc(start_key)
        if end_key is not None:
            end_key = day_start_utc(end_key)
            if end_key < start_key:
                raise ValueError("Date range ends before it starts")
        ranges.append(DateRange(start=start_key, end=end_key))
    return Scheduled(days_of_week=days, date_ranges=ranges)


class TaskService:
    """In-memory task collection; the authority for task state.

    Mutations persist to the mirror before returning. Mirror failures are
    logged and swallowed, the in-memory change stays.
    """

    EVENTS = ("after_create", "after_update", "after_delete")

    def __init__(
        self,
        queue: ActiveTaskQueue,
        mirror: Optional[TaskMirror] = None,
        *,
        today: Callable[[], int] = today_utc,
        tasks: Iterable[Task] = (),
    ) -> None:
        self.queue = queue
        self.mirror = mirror
        self._today = today
        self._tasks: Dict[str, Task] = {t.id: t for t in tasks}
        self._listeners: Dict[str, set] = {event: set() for event in self.EVENTS}
        self.logger = get_logger("tasks")

    # ---------- events ----------
    def subscribe(self, event: str, callback: Callable[[str], Any]) -> None:
        if event not in self._listeners:
            raise ValueError(f"Unsupported event: {event}")
        self._listeners[event].add(callback)

    def unsubscribe(self, event: str, callback: Callable[[str], Any]) -> None:
        if event not in self._listeners:
            return
        self._listeners[event].discard(callback)

    def _emit(self, event: str, task_id: str) -> None:
        for listener in list(self._listeners.get(event, [])):
            try:
                listener(task_id)
            except Exception:
                self.logger.exception("Listener for %s failed on %s", event, task_id)

    # ---------- persistence ----------
    def _push(self, task: Task) -> None:
        if self.mirror is None:
            return
        try:
            self.mirror.upsert(task.to_payload())
        except Exception as exc:
            self.logger.warning("Mirror write failed for %s: %s", task.id, exc)

    def _push_delete(self, task_id: str) -> None:
        if self.mirror is None:
            return
        try:
            self.mirror.delete(task_id)
        except Exception as exc:
            self.logger.warning("Mirror delete failed for %s: %s", task_id, exc)

    def _commit(self, task: Task, event: str = "after_update") -> Task:
        self._push(task)
        self._emit(event, task.id)
        return task

    def _evict(self, task_ids: Iterable[str]) -> None:
        removed = self.queue.evict(task_ids)
        if removed:
            self.logger.debug("Evicted from active queue: %s", ", ".join(removed))

    def current_day(self) -> int:
        return self._today()

    # ---------- CRUD ----------
    def get(self, task_id: str) -> Optional[Task]:
        return self._tasks.get(task_id)

    def list_all(self) -> List[Task]:
        return list(self._tasks.values())

    def add(
        self,
        title: str,
        kind: str,
        *,
        description: Optional[str] = None,
        days_of_week: Optional[Iterable[int]] = None,
        date_ranges: Optional[Iterable[Any]] = None,
        planned_dates: Optional[Iterable[int]] = None,
        estimated_pomodoros: int = 0,
        milestone_ids: Optional[Iterable[str]] = None,
    ) -> Task:
        if kind not in TASK_KINDS:
            raise ValueError(f"Unsupported task type: {kind}")
        created = now_ms()
        task = Task(
            id=create_task_id(),
            title=_clean_title(title),
            kind=kind,
            created_at=created,
            description=description or None,
            estimated_pomodoros=max(int(estimated_pomodoros or 0), 0),
            milestone_ids=list(milestone_ids or []),
            order=float(created),
        )
        if kind == SCHEDULED:
            task.scheduled = _build_scheduled(days_of_week, date_ranges)
        elif kind == BACKLOG:
            task.planned_dates = _day_keys(planned_dates)
        self._tasks[task.id] = task
        self.logger.debug("Task created: %s (%s)", task.id, kind)
        return self._commit(task, "after_create")

    def update(self, task_id: str, **changes: Any) -> Optional[Task]:
        task = self._tasks.get(task_id)
        if task is None:
            return None
        unknown = set(changes) - _EDITABLE_FIELDS - {"completed", "days_of_week", "date_ranges"}
        if unknown:
            raise ValueError(f"Unsupported fields: {', '.join(sorted(unknown))}")

        if "title" in changes:
            task.title = _clean_title(changes["title"])
        if "description" in changes:
            task.description = changes["description"] or None
        if "days_of_week" in changes or "date_ranges" in changes:
            current = task.scheduled
            task.scheduled = _build_scheduled(
                changes.get("days_of_week", current.days_of_week),
                changes.get("date_ranges", current.date_ranges),
            )
        if "scheduled" in changes:
            value = changes["scheduled"]
            if not isinstance(value, Scheduled):
                value = Scheduled.from_payload(value)
            task.scheduled = _build_scheduled(value.days_of_week, value.date_ranges)
        if "planned_dates" in changes:
            task.planned_dates = _day_keys(changes["planned_dates"])
        if "daily_done_dates" in changes:
            task.daily_done_dates = _day_keys(changes["daily_done_dates"])
        if "estimated_pomodoros" in changes:
            task.estimated_pomodoros = max(int(changes["estimated_pomodoros"] or 0), 0)
        if "milestone_ids" in changes:
            task.milestone_ids = list(changes["milestone_ids"] or [])
        if "order" in changes:
            task.order = float(changes["order"])
        if "completed" in changes:
            self._set_completed(task, bool(changes["completed"]))
        return self._commit(task)

    def remove(self, task_id: str) -> bool:
        task = self._tasks.pop(task_id, None)
        if task is None:
            return False
        self._evict([task_id])
        self._push_delete(task_id)
        self._emit("after_delete", task_id)
        return True

    def duplicate(self, task_id: str) -> Optional[Task]:
        source = self._tasks.get(task_id)
        if source is None:
            return None
        created = now_ms()
        clone = copy.deepcopy(source)
        clone.id = create_task_id()
        clone.title = f"{source.title} (copy)"
        clone.created_at = created
        clone.completed = False
        clone.completed_at = None
        clone.completed_pomodoros = 0
        clone.daily_done_dates = []
        clone.archived = False
        clone.archived_at = None
        clone.order = float(created)
        self._tasks[clone.id] = clone
        return self._commit(clone, "after_create")

    def reorder(self, task_id: str, order: float) -> Optional[Task]:
        return self.update(task_id, order=order)

    # ---------- completion ----------
    def _set_completed(self, task: Task, completed: bool) -> None:
        task.completed = completed
        task.completed_at = now_ms() if completed else None
        if completed:
            self._evict([task.id])

    def toggle_completion(self, task_id: str) -> Optional[Task]:
        """Flip ``completed``; completing also drops the task from the active queue.

        Un-completing never puts the task back into the queue.
        """

        task = self._tasks.get(task_id)
        if task is None:
            return None
        self._set_completed(task, not task.completed)
        self.logger.debug("Task %s completed=%s", task_id, task.completed)
        return self._commit(task)

    def complete_many(self, task_ids: Iterable[str]) -> List[Task]:
        ids = [i for i in dict.fromkeys(task_ids) if i in self._tasks]
        if not ids:
            return []
        today = self._today()
        changed: List[Task] = []
        for task_id in ids:
            task = self._tasks[task_id]
            if task.kind == DAILY:
                if today not in task.daily_done_dates:
                    task.daily_done_dates.append(today)
            else:
                if not task.completed:
                    task.completed = True
                    task.completed_at = now_ms()
            changed.append(task)
        self._evict(ids)
        for task in changed:
            self._commit(task)
        self.logger.debug("Completed %d task(s)", len(changed))
        return changed

    def toggle_daily_done(self, task_id: str, day: Optional[int] = None) -> Optional[Task]:
        task = self._tasks.get(task_id)
        if task is None:
            return None
        key = day_start_utc(day) if day is not None else self._today()
        if key in task.daily_done_dates:
            task.daily_done_dates.remove(key)
        else:
            task.daily_done_dates.append(key)
            self._evict([task_id])
        return self._commit(task)

    def reset_daily_done(self, task_ids: Iterable[str], day: Optional[int] = None) -> List[Task]:
        key = day_start_utc(day) if day is not None else self._today()
        changed: List[Task] = []
        for task_id in dict.fromkeys(task_ids):
            task = self._tasks.get(task_id)
            if task is None or task.kind != DAILY or key not in task.daily_done_dates:
                continue
            task.daily_done_dates.remove(key)
            changed.append(self._commit(task))
        return changed

    # ---------- planning ----------
    def move_tasks_to_today(self, task_ids: Iterable[str]) -> List[Task]:
        """Plan backlog tasks for today; daily and scheduled tasks stay as they are."""

        today = self._today()
        changed: List[Task] = []
        for task_id in dict.fromkeys(task_ids):
            task = self._tasks.get(task_id)
            if task is None or task.kind != BACKLOG:
                continue
            if today not in task.planned_dates:
                task.planned_dates.append(today)
                changed.append(self._commit(task))
        return changed

    def toggle_planned_for_today(self, task_id: str) -> Optional[Task]:
        task = self._tasks.get(task_id)
        if task is None or task.kind != BACKLOG:
            return None
        today = self._today()
        if today in task.planned_dates:
            task.planned_dates.remove(today)
        else:
            task.planned_dates.append(today)
        return self._commit(task)

    def archive(self, task_ids: Iterable[str]) -> List[Task]:
        ids = [i for i in dict.fromkeys(task_ids) if i in self._tasks]
        stamp = now_ms()
        changed: List[Task] = []
        for task_id in ids:
            task = self._tasks[task_id]
            task.archived = True
            task.archived_at = stamp
            changed.append(task)
        self._evict(ids)
        for task in changed:
            self._commit(task)
        return changed

    def increment_pomodoros(self, task_id: str, count: int = 1) -> Optional[Task]:
        task = self._tasks.get(task_id)
        if task is None or count <= 0:
            return None
        task.completed_pomodoros += count
        return self._commit(task)

    # ---------- active queue ----------
    def _can_activate(self, task_id: str) -> bool:
        task = self._tasks.get(task_id)
        if task is None or task.archived:
            return False
        return not is_done_for_day(task, self._today())

    def set_active(self, task_id: str) -> bool:
        if not self._can_activate(task_id):
            return False
        self.queue.set_primary(task_id)
        return True

    def add_active(self, task_id: str) -> bool:
        if not self._can_activate(task_id):
            return False
        return self.queue.add(task_id)

    def remove_active(self, task_id: str) -> bool:
        return self.queue.remove(task_id)

    def reorder_active(self, new_order: Iterable[str]) -> List[str]:
        self.queue.reorder(new_order)
        return self.queue.ids

    def active_tasks(self) -> List[Task]:
        return [self._tasks[i] for i in self.queue.ids if i in self._tasks]

    # ---------- hydration ----------
    def hydrate(self, payloads: Iterable[Dict[str, Any]]) -> int:
        """Replace the whole collection; records that fail to parse are skipped."""

        loaded: Dict[str, Task] = {}
        for payload in payloads:
            try:
                task = Task.from_payload(payload)
            except ValueError as exc:
                self.logger.warning("Skipping malformed task record: %s", exc)
                continue
            loaded[task.id] = task
        self._tasks = loaded
        self.queue.retain(
            i for i, t in loaded.items() if not t.archived and not t.completed
        )
        self.logger.info("Hydrated %d task(s)", len(loaded))
        return len(loaded)

    def hydrate_from_mirror(self) -> int:
        if self.mirror is None:
            return 0
        try:
            payloads = self.mirror.fetch_all()
        except Exception as exc:
            self.logger.warning("Mirror fetch failed: %s", exc)
            return 0
        return self.hydrate(payloads)

    def push_all(self) -> bool:
        if self.mirror is None:
            return False
        try:
            self.mirror.replace_all([t.to_payload() for t in self._tasks.values()])
        except Exception as exc:
            self.logger.warning("Mirror replace failed: %s", exc)
            return False
        self.logger.info("Pushed %d task(s) to mirror", len(self._tasks))
        return True

    # ---------- views ----------
    def _visible(self) -> List[Task]:
        return sorted(
            (t for t in self._tasks.values() if not t.archived),
            key=lambda t: (t.order, t.created_at),
        )

    def _day(self, day: Optional[int]) -> int:
        return day_start_utc(day) if day is not None else self._today()

    def tasks_for_today(self, day: Optional[int] = None) -> List[Task]:
        key = self._day(day)
        return [t for t in self._visible() if is_scheduled_for_day(t, key)]

    def incomplete_today(self, day: Optional[int] = None) -> List[Task]:
        key = self._day(day)
        result = []
        for task in self.tasks_for_today(key):
            if task.kind != DAILY and task.completed:
                continue
            if is_due_today(task, key) and not is_overdue(task, key):
                result.append(task)
        return result

    def done_today(self, day: Optional[int] = None) -> List[Task]:
        key = self._day(day)
        return [t for t in self.tasks_for_today(key) if is_done_for_day(t, key)]

    def overdue_tasks(self, day: Optional[int] = None) -> List[Task]:
        key = self._day(day)
        return sort_by_earliest_execution(t for t in self._visible() if is_overdue(t, key))

    def backlog_tasks(self) -> List[Task]:
        return [t for t in self._visible() if t.kind == BACKLOG and not t.completed]

    def scheduled_tasks(self) -> List[Task]:
        return [t for t in self._visible() if t.kind == SCHEDULED]

    def daily_tasks(self) -> List[Task]:
        return [t for t in self._visible() if t.kind == DAILY]

    def archived_tasks(self) -> List[Task]:
        return [t for t in self._tasks.values() if t.archived]

    def search(self, query: str) -> List[Task]:
        needle = (query or "").strip().lower()
        if not needle:
            return self._visible()
        return [
            t
            for t in self._visible()
            if needle in t.title.lower()
            or needle in (t.description or "").lower()
            or needle in t.id.lower()
        ]


__all__ = ["TaskService"]
