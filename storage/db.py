# planner/storage/db.py
from __future__ import annotations

from pathlib import Path

from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, Session, create_engine

from core.settings import DB_PATH

# Ensure SQLModel metadata is populated
import models.task_record  # noqa: F401
import storage.kv_store  # noqa: F401


_engine: Engine | None = None


def make_engine(path: str | Path) -> Engine:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    return create_engine(f"sqlite:///{target.as_posix()}", echo=False)


def get_engine() -> Engine:
    global _engine
    if _engine is None:
        _engine = make_engine(DB_PATH)
    return _engine


def init_db(engine: Engine | None = None) -> Engine:
    actual = engine or get_engine()
    SQLModel.metadata.create_all(actual)
    return actual


def get_session(engine: Engine | None = None) -> Session:
    return Session(engine or get_engine())


__all__ = ["get_engine", "get_session", "init_db", "make_engine"]
