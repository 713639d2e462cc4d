"""Domain and ORM models exposed by the planner."""
from .pomodoro import PomodoroSettings, PomodoroState
from .task import BACKLOG, DAILY, SCHEDULED, TASK_KINDS, DateRange, Scheduled, Task
from .task_record import TaskRecord

__all__ = [
    "BACKLOG",
    "DAILY",
    "DateRange",
    "PomodoroSettings",
    "PomodoroState",
    "SCHEDULED",
    "Scheduled",
    "TASK_KINDS",
    "Task",
    "TaskRecord",
]
