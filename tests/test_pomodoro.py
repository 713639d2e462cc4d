import json

import pytest

from core.settings import FOCUS, KEYS
from models.task import BACKLOG
from services.pomodoro import IDLE, ON_BREAK, WORKING, PomodoroTimer
from storage.kv_store import MemoryKeyValueStore

from fakes import BrokenKeyValueStore


def short_timer(kv, clock, tasks=None) -> PomodoroTimer:
    timer = PomodoroTimer(kv, tasks, clock=clock)
    timer.set_settings(
        work_duration_sec=10,
        short_break_sec=3,
        long_break_sec=5,
        cycles_until_long_break=4,
    )
    return timer


def test_defaults(kv, clock):
    timer = PomodoroTimer(kv, clock=clock)
    assert timer.phase == IDLE
    assert timer.seconds_left == FOCUS.work_duration_sec
    assert timer.completed_work_sessions == 0


def test_four_cycles_end_in_long_break(kv, clock):
    timer = short_timer(kv, clock)
    timer.start()
    assert timer.phase == WORKING
    assert timer.seconds_left == 10

    for cycle in range(1, 5):
        clock.advance(10)
        assert timer.tick()
        assert timer.phase == ON_BREAK
        assert timer.completed_work_sessions == cycle
        if cycle < 4:
            assert timer.seconds_left == 3
            clock.advance(3)
            timer.tick()
            assert timer.phase == WORKING
            assert timer.seconds_left == 10

    assert timer.seconds_left == 5


def test_default_durations_fourth_work_exit_is_long_break(kv, clock):
    timer = PomodoroTimer(kv, clock=clock)
    timer.start()
    for _ in range(3):
        clock.advance(FOCUS.work_duration_sec)
        timer.tick()
        assert timer.seconds_left == FOCUS.short_break_sec
        clock.advance(FOCUS.short_break_sec)
        timer.tick()
    clock.advance(FOCUS.work_duration_sec)
    timer.tick()
    assert timer.is_break
    assert timer.seconds_left == FOCUS.long_break_sec
    assert timer.completed_work_sessions == 4

    # the counter keeps going until an explicit reset
    clock.advance(FOCUS.long_break_sec + FOCUS.work_duration_sec)
    timer.tick()
    assert timer.completed_work_sessions == 5
    assert timer.seconds_left == FOCUS.short_break_sec
    timer.reset()
    assert timer.completed_work_sessions == 0


def test_catch_up_across_several_intervals(kv, clock):
    timer = short_timer(kv, clock)
    timer.start()
    clock.advance(10 + 3 + 10 + 3 + 10 + 3 + 10)
    timer.tick()
    assert timer.completed_work_sessions == 4
    assert timer.is_break
    assert timer.seconds_left == 5


def test_sub_second_ticks_carry_the_remainder(kv, clock):
    timer = short_timer(kv, clock)
    timer.start()
    clock.advance(0.5)
    assert not timer.tick()
    assert timer.seconds_left == 10

    clock.advance(0.7)
    assert timer.tick()
    assert timer.seconds_left == 9
    assert timer.state.last_tick_at_ms == clock.now - 200

    clock.advance(0.8)
    assert timer.tick()
    assert timer.seconds_left == 8


def test_tick_after_stop_is_noop(kv, clock):
    timer = short_timer(kv, clock)
    timer.start()
    clock.advance(4)
    timer.tick()
    timer.stop()
    clock.advance(60)
    assert not timer.tick()
    assert timer.phase == IDLE
    assert timer.seconds_left == 6


def test_start_resumes_same_mode_and_resets_on_switch(kv, clock):
    timer = short_timer(kv, clock)
    timer.start()
    clock.advance(4)
    timer.tick()
    timer.stop()

    timer.start()
    assert timer.seconds_left == 6

    timer.start(is_break=True)
    assert timer.phase == ON_BREAK
    assert timer.seconds_left == 3


def test_running_session_survives_restart(kv, clock):
    timer = short_timer(kv, clock)
    timer.start()
    clock.advance(2)
    timer.tick()

    clock.advance(5)
    restored = PomodoroTimer(kv, clock=clock)
    assert restored.is_running
    assert restored.settings.work_duration_sec == 10
    restored.tick()
    assert restored.seconds_left == 3


def test_state_is_written_to_kv(kv, clock):
    timer = short_timer(kv, clock)
    timer.start()
    saved = json.loads(kv.data[KEYS.pomodoro_state])
    assert saved["isRunning"] is True
    assert saved["secondsLeft"] == 10
    assert saved["lastTickAtMs"] == clock.now
    settings = json.loads(kv.data[KEYS.pomodoro_settings])
    assert settings["cyclesUntilLongBreak"] == 4


def test_corrupt_saved_state_loads_defaults(clock):
    kv = MemoryKeyValueStore({KEYS.pomodoro_state: "[1, 2", KEYS.pomodoro_settings: "null"})
    timer = PomodoroTimer(kv, clock=clock)
    assert timer.phase == IDLE
    assert timer.seconds_left == FOCUS.work_duration_sec


def test_settings_are_clamped(kv, clock):
    timer = PomodoroTimer(kv, clock=clock)
    settings = timer.set_settings(work_duration_sec=0, short_break_sec=-5, cycles_until_long_break=0)
    assert settings.work_duration_sec == FOCUS.min_duration_sec
    assert settings.short_break_sec == FOCUS.min_duration_sec
    assert settings.cycles_until_long_break == 1
    with pytest.raises(ValueError):
        timer.set_settings(snooze_sec=10)


def test_settings_change_keeps_partial_interval(kv, clock):
    timer = short_timer(kv, clock)
    timer.start()
    clock.advance(4)
    timer.tick()
    timer.stop()
    timer.set_settings(work_duration_sec=20)
    assert timer.seconds_left == 6


def test_reset_clears_sessions(kv, clock):
    timer = short_timer(kv, clock)
    timer.start()
    clock.advance(10)
    timer.tick()
    timer.reset()
    assert timer.phase == IDLE
    assert timer.completed_work_sessions == 0
    assert timer.seconds_left == 10
    assert timer.state.last_tick_at_ms is None


def test_finished_work_credits_active_task(ctx, clock):
    task = ctx.tasks.add("Deep work", BACKLOG)
    ctx.tasks.set_active(task.id)
    timer = ctx.timer
    timer.set_settings(work_duration_sec=10, short_break_sec=3)
    timer.start()

    clock.advance(10 + 3 + 10)
    timer.tick()

    assert task.completed_pomodoros == 2
    assert timer.active_task_id == task.id


def test_listeners_see_each_transition(kv, clock):
    timer = short_timer(kv, clock)
    phases = []
    timer.subscribe(lambda t: phases.append(t.phase))
    timer.start()
    clock.advance(10)
    timer.tick()
    timer.stop()
    assert phases == [WORKING, ON_BREAK, IDLE]


def test_storage_failures_do_not_stop_the_timer(clock):
    kv = BrokenKeyValueStore()
    timer = PomodoroTimer(kv, clock=clock)
    timer.start()
    clock.advance(3)
    timer.tick()
    assert timer.seconds_left == FOCUS.work_duration_sec - 3
    assert kv.attempts >= 2


def test_non_finite_saved_state_does_not_crash_startup(clock):
    kv = MemoryKeyValueStore(
        {
            KEYS.pomodoro_state: '{"secondsLeft": Infinity, "isRunning": false}',
            KEYS.pomodoro_settings: '{"longBreakSec": NaN}',
        }
    )
    timer = PomodoroTimer(kv, clock=clock)
    assert timer.seconds_left == FOCUS.work_duration_sec
    assert timer.settings.long_break_sec == FOCUS.long_break_sec


def test_non_finite_settings_are_clamped_not_rejected(kv, clock):
    timer = PomodoroTimer(kv, clock=clock)
    settings = timer.set_settings(work_duration_sec=float("nan"), short_break_sec=float("inf"))
    assert settings.work_duration_sec == FOCUS.work_duration_sec
    assert settings.short_break_sec == FOCUS.short_break_sec


def test_paused_long_break_follows_long_break_setting(kv, clock):
    timer = PomodoroTimer(kv, clock=clock)
    timer.set_settings(work_duration_sec=10, short_break_sec=3, long_break_sec=5, cycles_until_long_break=1)
    timer.start()
    clock.advance(10)
    timer.tick()
    assert timer.is_break
    assert timer.seconds_left == 5
    timer.stop()

    timer.set_settings(long_break_sec=8)
    assert timer.seconds_left == 8
    timer.set_settings(short_break_sec=4)
    assert timer.seconds_left == 8
