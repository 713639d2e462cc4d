"""Planner focus: recurring tasks plus a work/break timer from the terminal."""
from __future__ import annotations

import argparse
import asyncio
import os
import sys
from datetime import date
from typing import Iterable, List, Optional, Sequence

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from core.recurrence import get_earliest_execution_date, is_done_for_day, is_overdue
from core.logging_setup import get_logger
from models.task import DAILY, TASK_KINDS, Task
from services.app_context import AppContext, build_sqlite_context
from services.daily_reset import rollover_if_needed
from services.ticker import PomodoroTicker
from utils.datetime_utils import day_key, format_day

logger = get_logger("cli")

VIEWS = ("today", "incomplete", "done", "overdue", "backlog", "scheduled", "daily", "archived", "all")


def _parse_day(value: str) -> int:
    try:
        return day_key(date.fromisoformat(value))
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Expected YYYY-MM-DD, got {value!r}") from exc


def _parse_range(value: str):
    start, sep, end = value.partition(":")
    if not sep:
        raise argparse.ArgumentTypeError("Expected START:END (END may be empty)")
    return (_parse_day(start), _parse_day(end) if end else None)


def _format_seconds(seconds: int) -> str:
    minutes, secs = divmod(max(seconds, 0), 60)
    return f"{minutes:02d}:{secs:02d}"


def _format_task(task: Task, day: int, active_ids: Sequence[str]) -> str:
    mark = "x" if is_done_for_day(task, day) else " "
    flags = []
    if task.id in active_ids:
        flags.append("active")
    if is_overdue(task, day):
        flags.append("overdue")
    if task.archived:
        flags.append("archived")
    earliest = get_earliest_execution_date(task)
    if earliest is not None:
        flags.append(f"from {format_day(earliest)}")
    if task.completed_pomodoros or task.estimated_pomodoros:
        flags.append(f"{task.completed_pomodoros}/{task.estimated_pomodoros} pomodoros")
    suffix = f"  ({', '.join(flags)})" if flags else ""
    return f"[{mark}] {task.id}  {task.kind:<9} {task.title}{suffix}"


def _print_tasks(tasks: Iterable[Task], ctx: AppContext, day: int) -> None:
    rows = list(tasks)
    if not rows:
        print("No tasks.")
        return
    active = ctx.queue.ids
    for task in rows:
        print(_format_task(task, day, active))


def _print_timer(ctx: AppContext) -> None:
    timer = ctx.timer
    s = timer.settings
    print(
        f"{timer.phase}: {_format_seconds(timer.seconds_left)} left, "
        f"{timer.completed_work_sessions} work session(s) this cycle"
    )
    print(
        f"work {s.work_duration_sec}s, short break {s.short_break_sec}s, "
        f"long break {s.long_break_sec}s every {s.cycles_until_long_break}"
    )
    active = timer.active_task_id
    if active:
        task = ctx.tasks.get(active)
        print(f"active task: {task.title if task else active}")


# ---------- commands ----------
def cmd_add(ctx: AppContext, args) -> int:
    task = ctx.tasks.add(
        args.title,
        args.kind,
        description=args.description,
        days_of_week=args.weekday,
        date_ranges=args.range,
        planned_dates=args.plan,
        estimated_pomodoros=args.estimate,
    )
    print(task.id)
    return 0


def cmd_list(ctx: AppContext, args) -> int:
    day = args.day if args.day is not None else ctx.tasks.current_day()
    store = ctx.tasks
    views = {
        "today": lambda: store.tasks_for_today(day),
        "incomplete": lambda: store.incomplete_today(day),
        "done": lambda: store.done_today(day),
        "overdue": lambda: store.overdue_tasks(day),
        "backlog": store.backlog_tasks,
        "scheduled": store.scheduled_tasks,
        "daily": store.daily_tasks,
        "archived": store.archived_tasks,
        "all": store.list_all,
    }
    tasks = views[args.view]()
    if args.search:
        matches = {t.id for t in store.search(args.search)}
        tasks = [t for t in tasks if t.id in matches]
    _print_tasks(tasks, ctx, day)
    return 0


def _report_missing(ctx: AppContext, ids: Iterable[str]) -> List[str]:
    missing = [i for i in ids if ctx.tasks.get(i) is None]
    for task_id in missing:
        print(f"Unknown task: {task_id}", file=sys.stderr)
    return missing


def cmd_toggle(ctx: AppContext, args) -> int:
    if _report_missing(ctx, [args.task_id]):
        return 1
    task = ctx.tasks.get(args.task_id)
    if task.kind == DAILY:
        ctx.tasks.toggle_daily_done(args.task_id)
    else:
        ctx.tasks.toggle_completion(args.task_id)
    print(_format_task(task, ctx.tasks.current_day(), ctx.queue.ids))
    return 0


def cmd_complete(ctx: AppContext, args) -> int:
    missing = _report_missing(ctx, args.task_ids)
    done = ctx.tasks.complete_many(args.task_ids)
    print(f"Completed {len(done)} task(s).")
    return 1 if missing else 0


def cmd_move_today(ctx: AppContext, args) -> int:
    missing = _report_missing(ctx, args.task_ids)
    moved = ctx.tasks.move_tasks_to_today(args.task_ids)
    print(f"Planned {len(moved)} backlog task(s) for today.")
    return 1 if missing else 0


def cmd_plan_today(ctx: AppContext, args) -> int:
    task = ctx.tasks.toggle_planned_for_today(args.task_id)
    if task is None:
        print("Only existing backlog tasks can be planned.", file=sys.stderr)
        return 1
    planned = ctx.tasks.current_day() in task.planned_dates
    print("planned for today" if planned else "removed from today")
    return 0


def cmd_archive(ctx: AppContext, args) -> int:
    missing = _report_missing(ctx, args.task_ids)
    archived = ctx.tasks.archive(args.task_ids)
    print(f"Archived {len(archived)} task(s).")
    return 1 if missing else 0


def cmd_remove(ctx: AppContext, args) -> int:
    if not ctx.tasks.remove(args.task_id):
        print(f"Unknown task: {args.task_id}", file=sys.stderr)
        return 1
    return 0


def cmd_active(ctx: AppContext, args) -> int:
    store = ctx.tasks
    if args.action == "list":
        _print_tasks(store.active_tasks(), ctx, ctx.tasks.current_day())
        return 0
    if args.action == "reorder":
        print(" ".join(store.reorder_active(args.task_ids)))
        return 0
    if not args.task_ids:
        print("Task id required.", file=sys.stderr)
        return 1
    task_id = args.task_ids[0]
    if args.action == "remove":
        return 0 if store.remove_active(task_id) else 1
    if args.action == "add" and ctx.queue.is_full():
        print("Active queue is full.", file=sys.stderr)
        return 1
    ok = store.set_active(task_id) if args.action == "set" else store.add_active(task_id)
    if not ok:
        print("Task is unknown, archived, already queued or already done.", file=sys.stderr)
        return 1
    return 0


def _run_ticker(ctx: AppContext) -> None:
    ticker = PomodoroTicker(ctx.timer)
    last_phase = ctx.timer.phase

    def _show(timer) -> None:
        nonlocal last_phase
        if timer.phase != last_phase:
            print()
            last_phase = timer.phase
        print(f"\r{timer.phase}: {_format_seconds(timer.seconds_left)}", end="", flush=True)

    ctx.timer.subscribe(_show)
    try:
        asyncio.run(ticker.run_until_stopped())
    except KeyboardInterrupt:
        ctx.timer.stop()
        print()
    finally:
        ctx.timer.unsubscribe(_show)


def cmd_focus(ctx: AppContext, args) -> int:
    timer = ctx.timer
    if args.action == "start":
        is_break = True if args.break_ else (False if args.work else None)
        timer.start(is_break)
    elif args.action == "stop":
        timer.stop()
    elif args.action == "reset":
        timer.reset()
    elif args.action == "tick":
        timer.tick()
    elif args.action == "settings":
        changes = {
            key: value
            for key, value in (
                ("work_duration_sec", args.work_sec),
                ("short_break_sec", args.short_sec),
                ("long_break_sec", args.long_sec),
                ("cycles_until_long_break", args.cycles),
            )
            if value is not None
        }
        if changes:
            timer.set_settings(**changes)
    elif args.action == "run":
        if not timer.is_running:
            timer.start()
        _run_ticker(ctx)
    _print_timer(ctx)
    return 0


def cmd_rollover(ctx: AppContext, args) -> int:
    day = args.day if args.day is not None else ctx.tasks.current_day()
    ran = rollover_if_needed(ctx.tasks, ctx.kv, day)
    print("Rollover done." if ran else "Already rolled over today.")
    return 0


def cmd_sync(ctx: AppContext, args) -> int:
    if args.direction == "push":
        ok = ctx.tasks.push_all()
        print("Pushed." if ok else "Push failed, see log.")
        return 0 if ok else 1
    count = ctx.tasks.hydrate_from_mirror()
    print(f"Loaded {count} task(s).")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=__doc__ or "")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("add", help="Create a task")
    p.add_argument("title")
    p.add_argument("--kind", choices=TASK_KINDS, default="backlog")
    p.add_argument("--description")
    p.add_argument("--weekday", type=int, action="append", choices=range(7), help="0=Sunday (scheduled)")
    p.add_argument("--range", type=_parse_range, action="append", help="START:END dates (scheduled)")
    p.add_argument("--plan", type=_parse_day, action="append", help="Planned date (backlog)")
    p.add_argument("--estimate", type=int, default=0, help="Estimated pomodoros")
    p.set_defaults(func=cmd_add)

    p = sub.add_parser("list", help="List tasks")
    p.add_argument("--view", choices=VIEWS, default="today")
    p.add_argument("--day", type=_parse_day, help="Reference day YYYY-MM-DD (default: today, UTC)")
    p.add_argument("--search")
    p.set_defaults(func=cmd_list)

    p = sub.add_parser("toggle", help="Toggle completion (daily: done for today)")
    p.add_argument("task_id")
    p.set_defaults(func=cmd_toggle)

    for name, func, help_text in (
        ("complete", cmd_complete, "Complete several tasks"),
        ("move-today", cmd_move_today, "Plan backlog tasks for today"),
        ("archive", cmd_archive, "Archive tasks"),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("task_ids", nargs="+")
        p.set_defaults(func=func)

    p = sub.add_parser("plan-today", help="Toggle today in a backlog task's planned dates")
    p.add_argument("task_id")
    p.set_defaults(func=cmd_plan_today)

    p = sub.add_parser("remove", help="Delete a task")
    p.add_argument("task_id")
    p.set_defaults(func=cmd_remove)

    p = sub.add_parser("active", help="Manage the active-task queue")
    p.add_argument("action", choices=("list", "set", "add", "remove", "reorder"))
    p.add_argument("task_ids", nargs="*")
    p.set_defaults(func=cmd_active)

    p = sub.add_parser("focus", help="Control the focus timer")
    p.add_argument("action", choices=("status", "start", "stop", "reset", "tick", "settings", "run"))
    mode = p.add_mutually_exclusive_group()
    mode.add_argument("--break", dest="break_", action="store_true", help="Start a break")
    mode.add_argument("--work", action="store_true", help="Start a work interval")
    p.add_argument("--work-sec", type=int)
    p.add_argument("--short-sec", type=int)
    p.add_argument("--long-sec", type=int)
    p.add_argument("--cycles", type=int)
    p.set_defaults(func=cmd_focus)

    p = sub.add_parser("rollover", help="Reset per-day completion once per UTC day")
    p.add_argument("--day", type=_parse_day)
    p.set_defaults(func=cmd_rollover)

    p = sub.add_parser("sync", help="Push to or pull from the task mirror")
    p.add_argument("direction", choices=("push", "pull"))
    p.set_defaults(func=cmd_sync)

    return parser


def main(argv: Optional[Sequence[str]] = None, ctx: Optional[AppContext] = None) -> int:
    args = build_parser().parse_args(argv)
    context = ctx or build_sqlite_context()
    logger.debug("Command: %s", args.command)
    if args.command != "rollover":
        rollover_if_needed(context.tasks, context.kv, context.tasks.current_day())
    try:
        return args.func(context, args)
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    sys.exit(main())
