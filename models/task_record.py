"""SQLModel table mirroring tasks for synchronisation."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel

from utils.datetime_utils import utc_now


class TaskRecord(SQLModel, table=True):
    """One mirrored task per (user, task id); ``payload`` holds the task JSON."""

    user_id: str = Field(primary_key=True)
    task_id: str = Field(primary_key=True)
    kind: str = Field(index=True)
    payload: str
    archived: bool = Field(default=False)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now, index=True)
    deleted_at: Optional[datetime] = None


__all__ = ["TaskRecord"]
