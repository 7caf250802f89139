from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import Field as PydField
from sqlalchemy import Index, text
from sqlmodel import Field, SQLModel

from bilgeverse.models.base import ApiModel, utcnow


class PeriodStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    ARCHIVED = "ARCHIVED"


class Period(SQLModel, table=True):
    # At most one ACTIVE row, enforced by the database as well as by activation.
    __table_args__ = (
        Index(
            "ux_period_single_active",
            "status",
            unique=True,
            sqlite_where=text("status = 'ACTIVE'"),
            postgresql_where=text("status = 'ACTIVE'"),
        ),
    )

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    name: str = Field(index=True, unique=True)
    description: Optional[str] = None

    start_date: date
    end_date: Optional[date] = None

    status: PeriodStatus = Field(default=PeriodStatus.INACTIVE, index=True)
    total_weeks: int = Field(default=8)

    created_at: datetime = Field(default_factory=utcnow, index=True)


class PeriodCounts(ApiModel):
    events: int = 0
    points_transactions: int = 0
    experience_transactions: int = 0
    item_requests: int = 0
    wishes: int = 0
    student_notes: int = 0
    student_reports: int = 0
    announcements: int = 0
    weekly_reports: int = 0

    def total(self) -> int:
        return sum(self.model_dump().values())


class PeriodRef(ApiModel):
    id: str
    name: str


class PeriodPublic(ApiModel):
    id: str
    name: str
    description: Optional[str] = None
    start_date: date
    end_date: Optional[date] = None
    status: PeriodStatus
    total_weeks: int
    created_at: datetime
    counts: Optional[PeriodCounts] = None


class PeriodCreate(ApiModel):
    # name/start_date are optional here so the service can answer with its own message
    name: Optional[str] = None
    description: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    total_weeks: Optional[int] = PydField(default=None, ge=1, le=52)


class PeriodUpdate(ApiModel):
    name: Optional[str] = None
    description: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    total_weeks: Optional[int] = PydField(default=None, ge=1, le=52)
    status: Optional[PeriodStatus] = None


class PeriodActivate(ApiModel):
    reset_data: bool = True


class PeriodActivation(ApiModel):
    period: PeriodPublic
    reset_data: bool
    reset_users: int = 0
    message: str
