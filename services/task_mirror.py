"""Relational mirror of the task collection.

The mirror is refreshed wholesale (sign-in, explicit sync) and written per
task after each local mutation. It is never merged field by field.
"""
from __future__ import annotations

import json
from typing import Any, Callable, Dict, List, Optional, Protocol

from sqlmodel import Session, select

from models.task_record import TaskRecord
from utils.datetime_utils import utc_now


class TaskMirror(Protocol):
    def upsert(self, payload: Dict[str, Any]) -> None: ...

    def delete(self, task_id: str) -> None: ...

    def fetch_all(self) -> List[Dict[str, Any]]: ...

    def replace_all(self, payloads: List[Dict[str, Any]]) -> None: ...


def _serialise(payload: Dict[str, Any]) -> str:
    return json.dumps(payload, ensure_ascii=False, sort_keys=True)


def _deserialise(raw: Optional[str]) -> Optional[Dict[str, Any]]:
    if not raw:
        return None
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


class SqlTaskMirror:
    """Task mirror stored in the ``taskrecord`` table, scoped to one user."""

    def __init__(self, session_factory: Callable[[], Session], user_id: str):
        if not user_id:
            raise ValueError("user_id is required")
        self._session_factory = session_factory
        self.user_id = user_id

    def upsert(self, payload: Dict[str, Any]) -> None:
        task_id = payload.get("id")
        if not task_id:
            raise ValueError("Task payload is missing an id")
        with self._session_factory() as session:
            row = session.get(TaskRecord, (self.user_id, task_id))
            if row is None:
                row = TaskRecord(user_id=self.user_id, task_id=task_id, kind="", payload="")
            row.kind = str(payload.get("type") or "")
            row.payload = _serialise(payload)
            row.archived = bool(payload.get("archived", False))
            row.deleted_at = None
            row.updated_at = utc_now()
            session.add(row)
            session.commit()

    def delete(self, task_id: str) -> None:
        with self._session_factory() as session:
            row = session.get(TaskRecord, (self.user_id, task_id))
            if row is not None:
                session.delete(row)
                session.commit()

    def fetch_all(self) -> List[Dict[str, Any]]:
        with self._session_factory() as session:
            stmt = (
                select(TaskRecord)
                .where(TaskRecord.user_id == self.user_id)
                .where(TaskRecord.deleted_at == None)  # noqa: E711
                .order_by(TaskRecord.created_at.asc())
            )
            rows = list(session.exec(stmt))
        result = []
        for row in rows:
            data = _deserialise(row.payload)
            if data is not None:
                result.append(data)
        return result

    def replace_all(self, payloads: List[Dict[str, Any]]) -> None:
        with self._session_factory() as session:
            stmt = select(TaskRecord).where(TaskRecord.user_id == self.user_id)
            for row in list(session.exec(stmt)):
                session.delete(row)
            session.flush()
            for payload in payloads:
                task_id = payload.get("id")
                if not task_id:
                    continue
                session.add(
                    TaskRecord(
                        user_id=self.user_id,
                        task_id=task_id,
                        kind=str(payload.get("type") or ""),
                        payload=_serialise(payload),
                        archived=bool(payload.get("archived", False)),
                    )
                )
            session.commit()


class MemoryTaskMirror:
    def __init__(self) -> None:
        self.records: Dict[str, Dict[str, Any]] = {}
        self.writes: List[str] = []

    def upsert(self, payload: Dict[str, Any]) -> None:
        self.records[payload["id"]] = json.loads(json.dumps(payload))
        self.writes.append(payload["id"])

    def delete(self, task_id: str) -> None:
        self.records.pop(task_id, None)
        self.writes.append(task_id)

    def fetch_all(self) -> List[Dict[str, Any]]:
        return [json.loads(json.dumps(p)) for p in self.records.values()]

    def replace_all(self, payloads: List[Dict[str, Any]]) -> None:
        self.records = {p["id"]: json.loads(json.dumps(p)) for p in payloads if p.get("id")}


__all__ = ["MemoryTaskMirror", "SqlTaskMirror", "TaskMirror"]
