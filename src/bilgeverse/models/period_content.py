from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import uuid4

from sqlmodel import Field, SQLModel

from bilgeverse.models.base import utcnow


# Period-scoped records owned by the events, store, wishes, notes and
# announcement pages. Only their period link matters here: they feed the
# dependent-record counts shown before a period is deleted.


class Event(SQLModel, table=True):
    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    period_id: str = Field(index=True, foreign_key="period.id")
    title: str
    created_at: datetime = Field(default_factory=utcnow)


class ItemRequest(SQLModel, table=True):
    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    period_id: str = Field(index=True, foreign_key="period.id")
    user_id: Optional[str] = Field(default=None, index=True, foreign_key="user.id")
    item_name: str
    created_at: datetime = Field(default_factory=utcnow)


class Wish(SQLModel, table=True):
    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    period_id: str = Field(index=True, foreign_key="period.id")
    user_id: Optional[str] = Field(default=None, index=True, foreign_key="user.id")
    text: str
    created_at: datetime = Field(default_factory=utcnow)


class StudentNote(SQLModel, table=True):
    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    period_id: str = Field(index=True, foreign_key="period.id")
    student_id: Optional[str] = Field(default=None, index=True, foreign_key="user.id")
    content: str
    created_at: datetime = Field(default_factory=utcnow)


class StudentReport(SQLModel, table=True):
    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    period_id: str = Field(index=True, foreign_key="period.id")
    student_id: Optional[str] = Field(default=None, index=True, foreign_key="user.id")
    title: str
    created_at: datetime = Field(default_factory=utcnow)


class Announcement(SQLModel, table=True):
    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    period_id: str = Field(index=True, foreign_key="period.id")
    title: str
    created_at: datetime = Field(default_factory=utcnow)
