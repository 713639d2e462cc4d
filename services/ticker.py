"""Recurring asyncio timer that drives :class:`PomodoroTimer.tick`."""
from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional

from core.logging_setup import get_logger
from core.settings import FOCUS
from services.pomodoro import PomodoroTimer


class PomodoroTicker:
    def __init__(
        self,
        timer: PomodoroTimer,
        *,
        interval_sec: float = FOCUS.tick_interval_sec,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.timer = timer
        self.interval_sec = interval_sec
        self._sleep = sleep
        self._task: asyncio.Task | None = None
        self.logger = get_logger("pomodoro")
        timer.subscribe(self._on_transition)

    @property
    def armed(self) -> bool:
        return self._task is not None and not self._task.done()

    def _on_transition(self, timer: PomodoroTimer) -> None:
        if not timer.is_running:
            self.cancel()

    async def _loop(self) -> None:
        while self.timer.is_running:
            await self._sleep(self.interval_sec)
            if not self.timer.is_running:
                break
            self.timer.tick()

    def arm(self) -> Optional[asyncio.Task]:
        """Schedule ticks on the running loop while the timer runs."""

        if self.armed:
            return self._task
        if not self.timer.is_running:
            return None
        self._task = asyncio.get_running_loop().create_task(self._loop())
        return self._task

    def cancel(self) -> None:
        task = self._task
        self._task = None
        if task is None or task.done():
            return
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        # the loop exits by itself once the timer is stopped
        if task is not current:
            task.cancel()

    def start(self, is_break: Optional[bool] = None) -> Optional[asyncio.Task]:
        self.timer.start(is_break)
        return self.arm()

    def stop(self) -> None:
        self.timer.stop()
        self.cancel()

    async def run_until_stopped(self) -> None:
        task = self.arm()
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            self.logger.debug("Ticker cancelled")


__all__ = ["PomodoroTicker"]
