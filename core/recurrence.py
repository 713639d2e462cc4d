"""Recurrence rules: due today, overdue and earliest execution date.

Every function takes a UTC-midnight day key (ms) and never mutates or raises
on the task it inspects. Recurrence fields that are missing or of the wrong
type count as empty, so one damaged task cannot break a listing.
"""
from __future__ import annotations

from typing import Any, Iterable, List, Optional

from models.task import BACKLOG, DAILY, SCHEDULED, DateRange, as_int, int_list
from utils.datetime_utils import utc_weekday


def _kind(task: Any) -> Optional[str]:
    kind = getattr(task, "kind", None)
    return kind if isinstance(kind, str) else None


def _days_of_week(task: Any) -> List[int]:
    scheduled = getattr(task, "scheduled", None)
    return int_list(getattr(scheduled, "days_of_week", None))


def _date_ranges(task: Any) -> List[DateRange]:
    scheduled = getattr(task, "scheduled", None)
    ranges = getattr(scheduled, "date_ranges", None)
    if not isinstance(ranges, (list, tuple)):
        return []
    result = []
    for entry in ranges:
        if not isinstance(entry, DateRange):
            continue
        start = as_int(entry.start)
        end = as_int(entry.end) if entry.end is not None else None
        if start is None or (entry.end is not None and end is None):
            continue
        result.append(DateRange(start=start, end=end))
    return result


def _daily_done_dates(task: Any) -> List[int]:
    return int_list(getattr(task, "daily_done_dates", None))


def _planned_dates(task: Any) -> List[int]:
    return int_list(getattr(task, "planned_dates", None))


def is_scheduled_for_day(task: Any, reference_day_utc: int) -> bool:
    """Whether the recurrence definition includes the day, ignoring completion."""

    kind = _kind(task)
    if kind == DAILY:
        return True
    if kind == SCHEDULED:
        if utc_weekday(reference_day_utc) in _days_of_week(task):
            return True
        return any(r.contains(reference_day_utc) for r in _date_ranges(task))
    if kind == BACKLOG:
        return reference_day_utc in _planned_dates(task)
    return False


def is_due_today(task: Any, reference_day_utc: int) -> bool:
    if _kind(task) == DAILY:
        return reference_day_utc not in _daily_done_dates(task)
    return is_scheduled_for_day(task, reference_day_utc)


def is_done_for_day(task: Any, reference_day_utc: int) -> bool:
    if _kind(task) == DAILY:
        return reference_day_utc in _daily_done_dates(task)
    return bool(getattr(task, "completed", False))


def is_overdue(task: Any, reference_day_utc: int) -> bool:
    if getattr(task, "completed", False) is True:
        return False
    kind = _kind(task)
    if kind == DAILY:
        return False
    if kind == SCHEDULED:
        return any(r.end is not None and r.end < reference_day_utc for r in _date_ranges(task))
    if kind == BACKLOG:
        planned = _planned_dates(task)
        if not planned:
            return False
        return max(planned) < reference_day_utc
    return False


def get_earliest_execution_date(task: Any) -> Optional[int]:
    kind = _kind(task)
    if kind == SCHEDULED:
        ranges = _date_ranges(task)
        return min(r.start for r in ranges) if ranges else None
    if kind == BACKLOG:
        planned = _planned_dates(task)
        return min(planned) if planned else None
    return None


def sort_by_earliest_execution(tasks: Iterable[Any]) -> List[Any]:
    """Oldest earliest-execution date first; tasks without one go last."""

    def _key(task: Any):
        earliest = get_earliest_execution_date(task)
        return (earliest is None, earliest or 0)

    return sorted(tasks, key=_key)


__all__ = [
    "get_earliest_execution_date",
    "is_done_for_day",
    "is_due_today",
    "is_overdue",
    "is_scheduled_for_day",
    "sort_by_earliest_execution",
]
