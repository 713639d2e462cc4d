# planner/services/pomodoro.py
from __future__ import annotations

from dataclasses import replace
from typing import TYPE_CHECKING, Any, Callable, List, Optional

from core.logging_setup import get_logger
from core.settings import KEYS
from models.pomodoro import PomodoroSettings, PomodoroState
from storage.kv_store import KeyValueStore
from utils.datetime_utils import now_ms

if TYPE_CHECKING:
    from services.tasks import TaskService

IDLE = "idle"
WORKING = "working"
ON_BREAK = "on_break"

_SETTING_FIELDS = {
    "work_duration_sec",
    "short_break_sec",
    "long_break_sec",
    "cycles_until_long_break",
}


class PomodoroTimer:
    """Work/break interval timer.

    State and settings are written to the key-value store after every
    transition, so a fresh process picks up where the last one stopped. A
    session saved while running catches up on its first ``tick()`` from
    ``last_tick_at_ms``.

    The timer does not schedule itself; see :class:`services.ticker.PomodoroTicker`.
    """

    def __init__(
        self,
        kv: KeyValueStore,
        tasks: Optional["TaskService"] = None,
        *,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._kv = kv
        self._tasks = tasks
        self._clock = clock
        self._listeners: List[Callable[["PomodoroTimer"], Any]] = []
        self.logger = get_logger("pomodoro")
        self.settings = PomodoroSettings.from_json(self._read(KEYS.pomodoro_settings))
        self.state = PomodoroState.from_json(
            self._read(KEYS.pomodoro_state),
            default_seconds=self.settings.work_duration_sec,
        )
        if self.state.is_running and self.state.last_tick_at_ms is None:
            self.state.last_tick_at_ms = self._clock()
        if self.state.is_running:
            self.logger.info("Resuming running session, %ss left", self.state.seconds_left)

    # ---------- persistence ----------
    def _read(self, key: str) -> Optional[str]:
        try:
            return self._kv.get(key)
        except Exception as exc:
            self.logger.warning("Reading %s failed: %s", key, exc)
            return None

    def _write(self, key: str, value: str) -> None:
        try:
            self._kv.set(key, value)
        except Exception as exc:
            self.logger.warning("Writing %s failed: %s", key, exc)

    def _save_state(self) -> None:
        self._write(KEYS.pomodoro_state, self.state.to_json())
        self._emit()

    def _save_settings(self) -> None:
        self._write(KEYS.pomodoro_settings, self.settings.to_json())

    # ---------- events ----------
    def subscribe(self, callback: Callable[["PomodoroTimer"], Any]) -> None:
        if callback not in self._listeners:
            self._listeners.append(callback)

    def unsubscribe(self, callback: Callable[["PomodoroTimer"], Any]) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def _emit(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                self.logger.exception("Pomodoro listener failed")

    # ---------- reads ----------
    @property
    def phase(self) -> str:
        if not self.state.is_running:
            return IDLE
        return ON_BREAK if self.state.is_break else WORKING

    @property
    def is_running(self) -> bool:
        return self.state.is_running

    @property
    def is_break(self) -> bool:
        return self.state.is_break

    @property
    def seconds_left(self) -> int:
        return self.state.seconds_left

    @property
    def completed_work_sessions(self) -> int:
        return self.state.completed_work_sessions

    @property
    def active_task_id(self) -> Optional[str]:
        if self._tasks is None:
            return None
        return self._tasks.queue.primary

    def _mode_duration(self, is_break: bool) -> int:
        return self.settings.short_break_sec if is_break else self.settings.work_duration_sec

    # ---------- transitions ----------
    def start(self, is_break: Optional[bool] = None) -> PomodoroState:
        """Run the timer; ``is_break=None`` keeps the current mode.

        Switching mode, or starting an interval that has run out, loads the
        full duration of the new mode. Resuming the same mode keeps the
        remaining seconds.
        """

        s = self.state
        next_is_break = s.is_break if is_break is None else bool(is_break)
        if next_is_break != s.is_break or s.seconds_left <= 0:
            s.seconds_left = self._mode_duration(next_is_break)
        s.is_break = next_is_break
        s.is_running = True
        s.last_tick_at_ms = self._clock()
        self.logger.debug("Started %s, %ss left", self.phase, s.seconds_left)
        self._save_state()
        return self.state

    def tick(self) -> bool:
        """Advance by the whole seconds elapsed since the last tick.

        Returns ``True`` when the state changed. Calling it while stopped is a
        no-op.
        """

        s = self.state
        if not s.is_running:
            return False
        now = self._clock()
        last = s.last_tick_at_ms if s.last_tick_at_ms is not None else now
        elapsed_ms = max(0, now - last)
        if elapsed_ms < 1000:
            return False

        advance = elapsed_ms // 1000
        remainder_ms = elapsed_ms % 1000
        seconds_left = s.seconds_left
        is_break = s.is_break
        completed = s.completed_work_sessions
        finished_work = 0

        while advance > 0:
            if seconds_left > advance:
                seconds_left -= advance
                break
            advance -= seconds_left
            if not is_break:
                completed += 1
                finished_work += 1
                is_long = completed % self.settings.cycles_until_long_break == 0
                is_break = True
                seconds_left = self.settings.long_break_sec if is_long else self.settings.short_break_sec
                self.logger.info(
                    "Work session %d finished, %s break", completed, "long" if is_long else "short"
                )
            else:
                is_break = False
                seconds_left = self.settings.work_duration_sec
                self.logger.info("Break finished, back to work")

        self.state = replace(
            s,
            seconds_left=seconds_left,
            is_break=is_break,
            completed_work_sessions=completed,
            last_tick_at_ms=now - remainder_ms,
        )

        if finished_work and self._tasks is not None:
            active = self._tasks.queue.primary
            if active:
                self._tasks.increment_pomodoros(active, finished_work)

        self._save_state()
        return True

    def stop(self) -> PomodoroState:
        self.state.is_running = False
        self.logger.debug("Stopped with %ss left", self.state.seconds_left)
        self._save_state()
        return self.state

    def reset(self) -> PomodoroState:
        self.state = PomodoroState(
            is_running=False,
            is_break=False,
            seconds_left=self.settings.work_duration_sec,
            last_tick_at_ms=None,
            completed_work_sessions=0,
        )
        self._save_state()
        return self.state

    def set_settings(self, **partial: Any) -> PomodoroSettings:
        """Merge and clamp ``partial``; the running interval is left alone.

        An idle timer still showing a full interval picks up the new length
        of that interval. A paused break follows the break length it still
        equals, the short one first when both match.
        """

        unknown = set(partial) - _SETTING_FIELDS
        if unknown:
            raise ValueError(f"Unsupported settings: {', '.join(sorted(unknown))}")
        old = self.settings
        self.settings = replace(old, **partial).clamped()
        self._save_settings()

        s = self.state
        if s.is_running:
            return self.settings
        new = self.settings
        if not s.is_break:
            target = new.work_duration_sec if s.seconds_left == old.work_duration_sec else None
        elif s.seconds_left == old.short_break_sec:
            target = new.short_break_sec
        elif s.seconds_left == old.long_break_sec:
            target = new.long_break_sec
        else:
            target = None
        if target is not None and target != s.seconds_left:
            s.seconds_left = target
            self._save_state()
        return self.settings


__all__ = ["IDLE", "ON_BREAK", "PomodoroTimer", "WORKING"]
