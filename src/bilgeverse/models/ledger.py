from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import uuid4

from pydantic import Field as PydField
from sqlmodel import Field, SQLModel

from bilgeverse.models.base import ApiModel, utcnow

# Reason recorded on the offsetting entries written when a period activation resets balances.
PERIOD_RESET_REASON = "period_reset"
# Reason on the compensating entries written when a cascade delete leaves a total below zero.
PERIOD_DELETE_REASON = "period_delete"


class PointReason(SQLModel, table=True):
    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    name: str = Field(index=True, unique=True)
    description: Optional[str] = None
    is_active: bool = Field(default=True, index=True)
    created_at: datetime = Field(default_factory=utcnow)


class PointsTransaction(SQLModel, table=True):
    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    user_id: str = Field(index=True, foreign_key="user.id")
    period_id: str = Field(index=True, foreign_key="period.id")

    amount: int
    reason: str
    point_reason_id: Optional[str] = Field(default=None, index=True, foreign_key="pointreason.id")
    actor_id: Optional[str] = Field(default=None, foreign_key="user.id")

    created_at: datetime = Field(default_factory=utcnow, index=True)


class ExperienceTransaction(SQLModel, table=True):
    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    user_id: str = Field(index=True, foreign_key="user.id")
    period_id: str = Field(index=True, foreign_key="period.id")

    amount: int
    reason: str
    actor_id: Optional[str] = Field(default=None, foreign_key="user.id")

    created_at: datetime = Field(default_factory=utcnow, index=True)


class TransactionPublic(ApiModel):
    id: str
    user_id: str
    period_id: str
    amount: int
    reason: str
    point_reason_id: Optional[str] = None
    actor_id: Optional[str] = None
    created_at: datetime


class PointsAward(ApiModel):
    student_id: str
    points: int
    reason: Optional[str] = PydField(default=None, max_length=500)
    point_reason_id: Optional[str] = None


class ExperienceAward(ApiModel):
    student_id: str
    amount: int
    reason: Optional[str] = PydField(default=None, max_length=500)


class AwardResult(ApiModel):
    message: str
    transaction: TransactionPublic
    new_balance: int
    new_experience: int


class BalanceCheck(ApiModel):
    user_id: str
    points_stored: int
    points_ledger: int
    experience_stored: int
    experience_ledger: int
    repaired: bool


class PointReasonCreate(ApiModel):
    name: str = PydField(min_length=1, max_length=120)
    description: Optional[str] = None


class PointReasonUpdate(ApiModel):
    name: Optional[str] = PydField(default=None, min_length=1, max_length=120)
    description: Optional[str] = None
    is_active: Optional[bool] = None


class PointReasonPublic(ApiModel):
    id: str
    name: str
    description: Optional[str] = None
    is_active: bool
    created_at: datetime
    transaction_count: int = 0
