# planner/models/task.py
from __future__ import annotations

import random
import string
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from utils.datetime_utils import now_ms

DAILY = "daily"
SCHEDULED = "scheduled"
BACKLOG = "backlog"

TASK_KINDS = (DAILY, SCHEDULED, BACKLOG)

_ID_ALPHABET = string.ascii_lowercase + string.digits


def _base36(value: int) -> str:
    if value <= 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_ID_ALPHABET[rem])
    return "".join(reversed(digits))


def create_task_id() -> str:
    rnd = "".join(random.choices(_ID_ALPHABET, k=11))
    return f"tsk_{rnd}_{_base36(now_ms())}"


def as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def int_list(value: Any) -> List[int]:
    """Keep the integer entries of ``value``; anything that is not a list is empty."""

    if not isinstance(value, (list, tuple)):
        return []
    result = []
    for item in value:
        number = as_int(item)
        if number is not None:
            result.append(number)
    return result


@dataclass
class DateRange:
    start: int
    end: Optional[int] = None

    def contains(self, day: int) -> bool:
        if day < self.start:
            return False
        return self.end is None or day <= self.end

    def to_payload(self) -> Dict[str, Any]:
        return {"start": self.start, "end": self.end}

    @classmethod
    def from_payload(cls, data: Any) -> Optional["DateRange"]:
        if not isinstance(data, dict):
            return None
        start = as_int(data.get("start"))
        if start is None:
            return None
        return cls(start=start, end=as_int(data.get("end")))


@dataclass
class Scheduled:
    days_of_week: List[int] = field(default_factory=list)
    date_ranges: List[DateRange] = field(default_factory=list)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "daysOfWeek": list(self.days_of_week),
            "dateRanges": [r.to_payload() for r in self.date_ranges],
        }

    @classmethod
    def from_payload(cls, data: Any) -> "Scheduled":
        if not isinstance(data, dict):
            return cls()
        days = [d for d in int_list(data.get("daysOfWeek")) if 0 <= d <= 6]
        raw_ranges = data.get("dateRanges")
        ranges: List[DateRange] = []
        if isinstance(raw_ranges, list):
            for entry in raw_ranges:
                parsed = DateRange.from_payload(entry)
                if parsed is not None:
                    ranges.append(parsed)
        return cls(days_of_week=days, date_ranges=ranges)


@dataclass
class Task:
    id: str
    title: str
    kind: str
    created_at: int = field(default_factory=now_ms)
    description: Optional[str] = None
    completed: bool = False
    completed_at: Optional[int] = None
    daily_done_dates: List[int] = field(default_factory=list)
    scheduled: Scheduled = field(default_factory=Scheduled)
    planned_dates: List[int] = field(default_factory=list)
    estimated_pomodoros: int = 0
    completed_pomodoros: int = 0
    milestone_ids: List[str] = field(default_factory=list)
    archived: bool = False
    archived_at: Optional[int] = None
    order: float = 0.0

    def to_payload(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "type": self.kind,
            "createdAt": self.created_at,
            "completed": self.completed,
            "completedAt": self.completed_at,
            "dailyDoneDates": list(self.daily_done_dates),
            "scheduled": self.scheduled.to_payload(),
            "plannedDates": list(self.planned_dates),
            "estimatedPomodoros": self.estimated_pomodoros,
            "completedPomodoros": self.completed_pomodoros,
            "milestoneIds": list(self.milestone_ids),
            "archived": self.archived,
            "archivedAt": self.archived_at,
            "order": self.order,
        }

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "Task":
        """Build a task from the mirror/hydration shape.

        Identity fields are required; recurrence fields of the wrong type load
        as empty collections.
        """

        if not isinstance(data, dict):
            raise ValueError("Task payload must be an object")
        task_id = data.get("id")
        title = data.get("title")
        kind = data.get("type", data.get("kind"))
        if not task_id or not isinstance(task_id, str):
            raise ValueError("Task payload is missing an id")
        if not isinstance(title, str) or not title.strip():
            raise ValueError(f"Task {task_id} has no title")
        if not isinstance(kind, str) or not kind:
            raise ValueError(f"Task {task_id} has no type")

        created_at = as_int(data.get("createdAt"))
        milestones = data.get("milestoneIds")
        if not isinstance(milestones, list):
            legacy = data.get("milestoneId")
            milestones = [legacy] if isinstance(legacy, str) and legacy else []
        order = data.get("order")

        return cls(
            id=task_id,
            title=title.strip(),
            kind=kind,
            created_at=created_at if created_at is not None else now_ms(),
            description=data.get("description") if isinstance(data.get("description"), str) else None,
            completed=bool(data.get("completed", False)),
            completed_at=as_int(data.get("completedAt")),
            daily_done_dates=int_list(data.get("dailyDoneDates")),
            scheduled=Scheduled.from_payload(data.get("scheduled")),
            planned_dates=int_list(data.get("plannedDates")),
            estimated_pomodoros=max(as_int(data.get("estimatedPomodoros")) or 0, 0),
            completed_pomodoros=max(as_int(data.get("completedPomodoros")) or 0, 0),
            milestone_ids=[m for m in milestones if isinstance(m, str)],
            archived=bool(data.get("archived", False)),
            archived_at=as_int(data.get("archivedAt")),
            order=float(order) if isinstance(order, (int, float)) and not isinstance(order, bool) else 0.0,
        )


__all__ = [
    "BACKLOG",
    "DAILY",
    "DateRange",
    "SCHEDULED",
    "Scheduled",
    "TASK_KINDS",
    "as_int",
    "Task",
    "create_task_id",
    "int_list",
]
