import pytest

from models.task import BACKLOG, DAILY, SCHEDULED, DateRange, Scheduled, Task
from services.active_queue import ActiveTaskQueue
from services.task_mirror import MemoryTaskMirror
from services.tasks import TaskService
from storage.kv_store import MemoryKeyValueStore
from utils.datetime_utils import add_days

from fakes import DAY, TOMORROW, YESTERDAY, BrokenMirror


def test_add_validates_title_and_kind(store):
    with pytest.raises(ValueError):
        store.add("   ", BACKLOG)
    with pytest.raises(ValueError):
        store.add("Task", "weekly")
    task = store.add("  Write report ", BACKLOG)
    assert task.title == "Write report"
    assert task.id.startswith("tsk_")
    assert store.get(task.id) is task


def test_add_normalises_day_keys(store):
    task = store.add("Plan", BACKLOG, planned_dates=[DAY + 5 * 3600 * 1000, DAY])
    assert task.planned_dates == [DAY]


def test_add_rejects_inverted_range(store):
    with pytest.raises(ValueError):
        store.add("Trip", SCHEDULED, date_ranges=[(TOMORROW, YESTERDAY)])


def test_every_mutation_is_mirrored(store, mirror):
    task = store.add("Mirror me", BACKLOG)
    assert mirror.records[task.id]["title"] == "Mirror me"
    store.update(task.id, title="Renamed")
    assert mirror.records[task.id]["title"] == "Renamed"
    store.toggle_completion(task.id)
    assert mirror.records[task.id]["completed"] is True
    store.remove(task.id)
    assert task.id not in mirror.records


def test_mirror_failure_keeps_local_change(queue):
    store = TaskService(queue, BrokenMirror(), today=lambda: DAY)
    task = store.add("Offline", BACKLOG)
    store.toggle_completion(task.id)
    assert store.get(task.id).completed is True


def test_update_rejects_unknown_fields(store):
    task = store.add("Task", BACKLOG)
    with pytest.raises(ValueError):
        store.update(task.id, colour="red")
    assert store.update("missing", title="x") is None


def test_update_validates_scheduled_objects(store):
    task = store.add("Gym", SCHEDULED, days_of_week=[3])
    with pytest.raises(ValueError):
        store.update(task.id, scheduled=Scheduled(date_ranges=[DateRange(start=DAY, end="2024-01-11")]))
    assert task.scheduled.days_of_week == [3]
    assert task.scheduled.date_ranges == []

    store.update(task.id, scheduled=Scheduled(days_of_week=[9, 1], date_ranges=[DateRange(DAY + 3600 * 1000)]))
    assert task.scheduled.days_of_week == [1]
    assert task.scheduled.date_ranges == [DateRange(DAY, None)]


def test_damaged_task_does_not_break_listings(queue):
    damaged = Task(
        id="bad",
        title="Damaged",
        kind=SCHEDULED,
        created_at=0,
        scheduled=Scheduled(date_ranges=[DateRange(start=YESTERDAY, end="soon")]),
    )
    late = Task(id="late", title="Late", kind=BACKLOG, created_at=1, planned_dates=[YESTERDAY])
    store = TaskService(queue, today=lambda: DAY, tasks=[damaged, late])
    assert store.overdue_tasks() == [late]
    assert store.tasks_for_today() == []


def test_toggle_twice_does_not_reactivate(store, queue):
    task = store.add("Focus", BACKLOG, planned_dates=[DAY])
    assert store.set_active(task.id)
    assert queue.primary == task.id

    store.toggle_completion(task.id)
    assert task.completed is True
    assert task.completed_at is not None
    assert task.id not in queue

    store.toggle_completion(task.id)
    assert task.completed is False
    assert task.completed_at is None
    assert task.id not in queue


def test_complete_many_evicts_every_id(store, queue):
    daily = store.add("Stretch", DAILY)
    backlog = store.add("Email", BACKLOG, planned_dates=[DAY])
    scheduled = store.add("Gym", SCHEDULED, days_of_week=[3])
    for task in (daily, backlog, scheduled):
        assert store.add_active(task.id)
    other = store.add("Other", BACKLOG)
    store.add_active(other.id)

    store.complete_many([daily.id, backlog.id, scheduled.id, "unknown"])

    assert DAY in daily.daily_done_dates
    assert daily.completed is False
    assert backlog.completed is True
    assert scheduled.completed is True
    assert queue.ids == [other.id]


def test_complete_many_with_no_known_ids(store, mirror):
    assert store.complete_many(["nope"]) == []
    assert mirror.writes == []


def test_toggle_daily_done(store, queue):
    task = store.add("Meditate", DAILY)
    store.set_active(task.id)
    store.toggle_daily_done(task.id)
    assert task.daily_done_dates == [DAY]
    assert task.id not in queue
    store.toggle_daily_done(task.id)
    assert task.daily_done_dates == []


def test_done_tasks_cannot_be_activated(store, queue):
    daily = store.add("Walk", DAILY)
    store.toggle_daily_done(daily.id)
    done = store.add("Done", BACKLOG)
    store.toggle_completion(done.id)
    archived = store.add("Old", BACKLOG)
    store.archive([archived.id])

    assert not store.set_active(daily.id)
    assert not store.add_active(done.id)
    assert not store.add_active(archived.id)
    assert not store.set_active("unknown")
    assert queue.ids == []


def test_archive_evicts_and_hides(store, queue):
    task = store.add("Archive me", BACKLOG)
    store.add_active(task.id)
    store.archive([task.id])
    assert task.archived is True
    assert task.archived_at is not None
    assert task.id not in queue
    assert task not in store.backlog_tasks()
    assert store.archived_tasks() == [task]


def test_remove_evicts_from_queue(store, queue):
    task = store.add("Gone", BACKLOG)
    store.set_active(task.id)
    assert store.remove(task.id)
    assert queue.ids == []
    assert not store.remove(task.id)


def test_move_tasks_to_today_only_plans_backlog(store):
    backlog = store.add("Later", BACKLOG, planned_dates=[YESTERDAY])
    scheduled = store.add("Gym", SCHEDULED, days_of_week=[1])
    daily = store.add("Water plants", DAILY)

    changed = store.move_tasks_to_today([backlog.id, scheduled.id, daily.id])

    assert changed == [backlog]
    assert backlog.planned_dates == [YESTERDAY, DAY]
    assert scheduled.scheduled.days_of_week == [1]
    assert daily.daily_done_dates == []
    # already planned: nothing to do
    assert store.move_tasks_to_today([backlog.id]) == []


def test_toggle_planned_for_today(store):
    task = store.add("Maybe", BACKLOG)
    store.toggle_planned_for_today(task.id)
    assert task.planned_dates == [DAY]
    store.toggle_planned_for_today(task.id)
    assert task.planned_dates == []


def test_duplicate_resets_progress(store):
    task = store.add("Read", DAILY, estimated_pomodoros=3)
    store.toggle_daily_done(task.id)
    store.increment_pomodoros(task.id, 2)
    clone = store.duplicate(task.id)
    assert clone.id != task.id
    assert clone.title == "Read (copy)"
    assert clone.daily_done_dates == []
    assert clone.completed_pomodoros == 0
    assert clone.estimated_pomodoros == 3


def test_views_for_today(store):
    daily = store.add("Daily", DAILY)
    weekly = store.add("Wednesday", SCHEDULED, days_of_week=[3])
    ranged = store.add("Ranged", SCHEDULED, date_ranges=[(add_days(DAY, -3), YESTERDAY)])
    planned = store.add("Planned", BACKLOG, planned_dates=[DAY])
    late = store.add("Late", BACKLOG, planned_dates=[add_days(DAY, -2)])
    store.add("Someday", BACKLOG)

    assert {t.id for t in store.tasks_for_today()} == {daily.id, weekly.id, planned.id}
    assert {t.id for t in store.incomplete_today()} == {daily.id, weekly.id, planned.id}
    assert store.overdue_tasks() == [ranged, late]

    store.toggle_daily_done(daily.id)
    store.toggle_completion(planned.id)
    assert {t.id for t in store.done_today()} == {daily.id, planned.id}
    assert {t.id for t in store.incomplete_today()} == {weekly.id}


def test_listeners_receive_task_ids(store):
    created, updated, deleted = [], [], []
    store.subscribe("after_create", created.append)
    store.subscribe("after_update", updated.append)
    store.subscribe("after_delete", deleted.append)

    task = store.add("Events", BACKLOG)
    store.update(task.id, description="notes")
    store.remove(task.id)

    assert created == [task.id]
    assert updated == [task.id]
    assert deleted == [task.id]

    with pytest.raises(ValueError):
        store.subscribe("after_nothing", created.append)


def test_failing_listener_does_not_break_mutation(store):
    def boom(task_id):
        raise RuntimeError("listener bug")

    store.subscribe("after_create", boom)
    task = store.add("Still saved", BACKLOG)
    assert store.get(task.id) is task


def test_hydrate_skips_malformed_records(store, queue):
    good = {"id": "t1", "title": "Good", "type": BACKLOG, "plannedDates": "oops"}
    done = {"id": "t2", "title": "Done", "type": BACKLOG, "completed": True}
    queue.add("t1")
    queue.add("t2")
    queue.add("gone")

    count = store.hydrate([good, {"title": "no id"}, {"id": "t3", "type": DAILY}, done])

    assert count == 2
    assert store.get("t1").planned_dates == []
    assert store.get("t3") is None
    assert queue.ids == ["t1"]


def test_hydrate_from_mirror_and_push_all():
    mirror = MemoryTaskMirror()
    mirror.upsert({"id": "a", "title": "From server", "type": DAILY})
    store = TaskService(ActiveTaskQueue(MemoryKeyValueStore()), mirror, today=lambda: DAY)

    assert store.hydrate_from_mirror() == 1
    store.add("Local", BACKLOG)
    assert store.push_all()
    assert {p["title"] for p in mirror.fetch_all()} == {"From server", "Local"}


def test_search_matches_title_and_description(store):
    first = store.add("Buy milk", BACKLOG)
    second = store.add("Call bank", BACKLOG, description="about the Milk card")
    store.add("Other", BACKLOG)
    assert store.search("milk") == [first, second]
