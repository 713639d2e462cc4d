"""Focus-session settings and state persisted between runs."""
from __future__ import annotations

import json
import math
from dataclasses import dataclass
from typing import Any, Dict, Optional

from core.settings import FOCUS


def _int_or(value: Any, default: int) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float) and math.isfinite(value):
        return int(value)
    return default


def _load_json(payload: Optional[str]) -> Dict[str, Any]:
    if not payload:
        return {}
    try:
        data = json.loads(payload)
    except (TypeError, json.JSONDecodeError):
        return {}
    return data if isinstance(data, dict) else {}


def clamp_duration(value: Any, default: int) -> int:
    return max(_int_or(value, default), FOCUS.min_duration_sec)


@dataclass
class PomodoroSettings:
    work_duration_sec: int = FOCUS.work_duration_sec
    short_break_sec: int = FOCUS.short_break_sec
    long_break_sec: int = FOCUS.long_break_sec
    cycles_until_long_break: int = FOCUS.cycles_until_long_break

    def clamped(self) -> "PomodoroSettings":
        return PomodoroSettings(
            work_duration_sec=clamp_duration(self.work_duration_sec, FOCUS.work_duration_sec),
            short_break_sec=clamp_duration(self.short_break_sec, FOCUS.short_break_sec),
            long_break_sec=clamp_duration(self.long_break_sec, FOCUS.long_break_sec),
            cycles_until_long_break=max(
                _int_or(self.cycles_until_long_break, FOCUS.cycles_until_long_break), 1
            ),
        )

    def to_json(self) -> str:
        return json.dumps(
            {
                "workDurationSec": self.work_duration_sec,
                "shortBreakSec": self.short_break_sec,
                "longBreakSec": self.long_break_sec,
                "cyclesUntilLongBreak": self.cycles_until_long_break,
            }
        )

    @classmethod
    def from_json(cls, payload: Optional[str]) -> "PomodoroSettings":
        data = _load_json(payload)
        return cls(
            work_duration_sec=data.get("workDurationSec", FOCUS.work_duration_sec),
            short_break_sec=data.get("shortBreakSec", FOCUS.short_break_sec),
            long_break_sec=data.get("longBreakSec", FOCUS.long_break_sec),
            cycles_until_long_break=data.get("cyclesUntilLongBreak", FOCUS.cycles_until_long_break),
        ).clamped()


@dataclass
class PomodoroState:
    is_running: bool = False
    is_break: bool = False
    seconds_left: int = FOCUS.work_duration_sec
    last_tick_at_ms: Optional[int] = None
    completed_work_sessions: int = 0

    def to_json(self) -> str:
        return json.dumps(
            {
                "isRunning": self.is_running,
                "isBreak": self.is_break,
                "secondsLeft": self.seconds_left,
                "lastTickAtMs": self.last_tick_at_ms,
                "completedWorkSessions": self.completed_work_sessions,
            }
        )

    @classmethod
    def from_json(cls, payload: Optional[str], *, default_seconds: int) -> "PomodoroState":
        data = _load_json(payload)
        last_tick = data.get("lastTickAtMs")
        return cls(
            is_running=bool(data.get("isRunning", False)),
            is_break=bool(data.get("isBreak", False)),
            seconds_left=max(_int_or(data.get("secondsLeft"), default_seconds), 0),
            last_tick_at_ms=_int_or(last_tick, 0) if last_tick is not None else None,
            completed_work_sessions=max(_int_or(data.get("completedWorkSessions"), 0), 0),
        )


__all__ = ["PomodoroSettings", "PomodoroState", "clamp_duration"]
