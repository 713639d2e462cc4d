"""Synchronous string key-value persistence."""
from __future__ import annotations

from datetime import datetime
from typing import Callable, Dict, Optional, Protocol

from sqlmodel import Field, SQLModel, Session

from utils.datetime_utils import utc_now


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class KVEntry(SQLModel, table=True):
    key: str = Field(primary_key=True)
    value: str
    updated_at: datetime = Field(default_factory=utc_now)


class SqliteKeyValueStore:
    """``KeyValueStore`` backed by the ``kventry`` table of the app database."""

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def get(self, key: str) -> Optional[str]:
        with self._session_factory() as session:
            row = session.get(KVEntry, key)
            return row.value if row else None

    def set(self, key: str, value: str) -> None:
        with self._session_factory() as session:
            row = session.get(KVEntry, key)
            if row is None:
                row = KVEntry(key=key, value=value)
            else:
                row.value = value
                row.updated_at = utc_now()
            session.add(row)
            session.commit()

    def remove(self, key: str) -> None:
        with self._session_factory() as session:
            row = session.get(KVEntry, key)
            if row is not None:
                session.delete(row)
                session.commit()


class MemoryKeyValueStore:
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def remove(self, key: str) -> None:
        self.data.pop(key, None)


__all__ = ["KVEntry", "KeyValueStore", "MemoryKeyValueStore", "SqliteKeyValueStore"]
