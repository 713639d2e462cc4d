"""Once-per-day reset of recurring completion state."""
from __future__ import annotations

from typing import Optional

from core.logging_setup import get_logger
from core.settings import KEYS
from models.task import DAILY, SCHEDULED
from services.tasks import TaskService
from storage.kv_store import KeyValueStore
from utils.datetime_utils import day_start_utc, today_utc

logger = get_logger("tasks")


def reset_completed_for_day(store: TaskService, day: int) -> int:
    """Clear the done markers recorded for ``day``.

    Daily tasks lose ``day`` from ``daily_done_dates``. Scheduled tasks become
    incomplete and lose ``day`` as well. History for other days is kept.
    """

    key = day_start_utc(day)
    daily_ids = [t.id for t in store.list_all() if t.kind == DAILY and not t.archived]
    changed = len(store.reset_daily_done(daily_ids, key))

    for task in store.list_all():
        if task.kind != SCHEDULED or task.archived:
            continue
        had_marker = key in task.daily_done_dates
        if not task.completed and not had_marker:
            continue
        changes = {"completed": False}
        if had_marker:
            changes["daily_done_dates"] = [d for d in task.daily_done_dates if d != key]
        store.update(task.id, **changes)
        changed += 1
    logger.info("Daily reset for %s changed %d task(s)", key, changed)
    return changed


def rollover_if_needed(
    store: TaskService,
    kv: KeyValueStore,
    today: Optional[int] = None,
) -> bool:
    """Run :func:`reset_completed_for_day` the first time a new UTC day is seen."""

    key = day_start_utc(today) if today is not None else today_utc()
    try:
        last = kv.get(KEYS.last_rollover_day)
    except Exception as exc:
        logger.warning("Reading last rollover day failed: %s", exc)
        last = None
    if last == str(key):
        return False
    if last is None:
        # first run: nothing recorded yesterday to clear
        changed = 0
    else:
        changed = reset_completed_for_day(store, key)
    try:
        kv.set(KEYS.last_rollover_day, str(key))
    except Exception as exc:
        logger.warning("Writing last rollover day failed: %s", exc)
    logger.info("Rollover to %s done (%d changed)", key, changed)
    return True


__all__ = ["reset_completed_for_day", "rollover_if_needed"]
