from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import Field as PydField
from sqlalchemy import JSON, Column, UniqueConstraint
from sqlmodel import Field, SQLModel

from bilgeverse.models.base import ApiModel, utcnow
from bilgeverse.models.period import PeriodRef
from bilgeverse.models.user import UserRef


class ReportStatus(str, Enum):
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class CriterionValue(str, Enum):
    YAPILDI = "YAPILDI"  # done
    YAPILMADI = "YAPILMADI"  # not done
    YOKTU = "YOKTU"  # no activity that week


class QuestionType(str, Enum):
    FIXED = "FIXED"
    VARIABLE = "VARIABLE"


class QuestionTargetRole(str, Enum):
    TUTOR = "TUTOR"
    ASISTAN = "ASISTAN"


class WeeklyReport(SQLModel, table=True):
    __table_args__ = (UniqueConstraint("user_id", "period_id", "week_number", name="uq_weeklyreport_user_period_week"),)

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    user_id: str = Field(index=True, foreign_key="user.id")
    period_id: str = Field(index=True, foreign_key="period.id")
    week_number: int = Field(index=True)

    status: ReportStatus = Field(default=ReportStatus.DRAFT, index=True)
    submission_date: Optional[datetime] = None
    review_date: Optional[datetime] = None
    reviewed_by_id: Optional[str] = Field(default=None, foreign_key="user.id")
    review_notes: Optional[str] = None
    points_awarded: int = Field(default=0)

    # Snapshots keyed by question id; never rewritten when the catalog changes.
    # Always assign a new dict: in-place mutation is not tracked by the JSON column.
    fixed_criteria: dict[str, str] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    variable_criteria: dict[str, str] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    comments: Optional[str] = None

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class WeeklyReportQuestion(SQLModel, table=True):
    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    text: str
    type: QuestionType = Field(index=True)
    target_role: QuestionTargetRole = Field(index=True)
    order_index: int = Field(default=0)
    is_active: bool = Field(default=True, index=True)
    created_by_id: Optional[str] = Field(default=None, foreign_key="user.id")
    created_at: datetime = Field(default_factory=utcnow)


class WeeklyReportDraft(ApiModel):
    # Defaults to the active period when omitted.
    period_id: Optional[str] = None
    week_number: int
    fixed_criteria: dict[str, CriterionValue] = PydField(default_factory=dict)
    variable_criteria: dict[str, CriterionValue] = PydField(default_factory=dict)
    comments: Optional[str] = PydField(default=None, max_length=5000)
    # DRAFT keeps editing open; SUBMITTED saves and submits in one call.
    status: Optional[ReportStatus] = None


class WeeklyReportEdit(ApiModel):
    fixed_criteria: Optional[dict[str, CriterionValue]] = None
    variable_criteria: Optional[dict[str, CriterionValue]] = None
    comments: Optional[str] = PydField(default=None, max_length=5000)


class ReviewRequest(ApiModel):
    # Plain strings so the service can report an invalid status in its own words.
    status: Optional[str] = None
    review_notes: Optional[str] = PydField(default=None, max_length=5000)
    points_awarded: Optional[int] = None


class BulkReviewRequest(ReviewRequest):
    report_ids: list[str] = PydField(default_factory=list)


class BulkReviewResult(ApiModel):
    message: str
    updated_count: int


class WeeklyReportPublic(ApiModel):
    id: str
    user_id: str
    period_id: str
    week_number: int
    status: ReportStatus
    submission_date: Optional[datetime] = None
    review_date: Optional[datetime] = None
    reviewed_by_id: Optional[str] = None
    review_notes: Optional[str] = None
    points_awarded: int
    fixed_criteria: dict[str, str]
    variable_criteria: dict[str, str]
    comments: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    user: Optional[UserRef] = None
    reviewed_by: Optional[UserRef] = None
    period: Optional[PeriodRef] = None

    attendance_score: int = 0
    suggested_points: int = 0


class ReportStats(ApiModel):
    total: int
    by_status: dict[str, int]
    by_role: dict[str, int]
    total_points_awarded: int


class ReportList(ApiModel):
    reports: list[WeeklyReportPublic]
    stats: ReportStats
    period: PeriodRef


class QuestionCreate(ApiModel):
    text: Optional[str] = None
    type: Optional[QuestionType] = None
    target_role: Optional[QuestionTargetRole] = None
    order_index: Optional[int] = PydField(default=None, ge=0)


class QuestionUpdate(ApiModel):
    text: Optional[str] = None
    type: Optional[QuestionType] = None
    target_role: Optional[QuestionTargetRole] = None
    order_index: Optional[int] = PydField(default=None, ge=0)
    is_active: Optional[bool] = None


class QuestionPublic(ApiModel):
    id: str
    text: str
    type: QuestionType
    target_role: QuestionTargetRole
    order_index: int
    is_active: bool
    created_by_id: Optional[str] = None
    created_at: datetime


class QuestionsByType(ApiModel):
    FIXED: list[QuestionPublic] = PydField(default_factory=list, alias="FIXED")
    VARIABLE: list[QuestionPublic] = PydField(default_factory=list, alias="VARIABLE")


class RoleQuestions(ApiModel):
    questions: QuestionsByType
