from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import Field as PydField
from sqlmodel import Field, SQLModel

from bilgeverse.models.base import ApiModel, utcnow


class UserRole(str, Enum):
    ADMIN = "ADMIN"
    TUTOR = "TUTOR"
    ASISTAN = "ASISTAN"
    STUDENT = "STUDENT"
    BOARD_MEMBER = "BOARD_MEMBER"


class User(SQLModel, table=True):
    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    username: str = Field(index=True, unique=True)
    hashed_password: str
    role: UserRole = Field(default=UserRole.STUDENT, index=True)

    first_name: Optional[str] = None
    last_name: Optional[str] = None

    # Running totals; always equal to the sum of the user's ledger entries.
    points: int = Field(default=0)
    experience: int = Field(default=0)

    tutor_id: Optional[str] = Field(default=None, foreign_key="user.id", index=True)

    is_active: bool = Field(default=True, index=True)
    created_at: datetime = Field(default_factory=utcnow)


class UserRef(ApiModel):
    id: str
    username: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: Optional[UserRole] = None


class UserPublic(ApiModel):
    id: str
    username: str
    role: UserRole
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    points: int
    experience: int
    tutor_id: Optional[str] = None
    is_active: bool
    created_at: datetime


class UserCreate(ApiModel):
    username: str = PydField(min_length=1, max_length=64)
    password: str = PydField(min_length=6, max_length=128)
    role: UserRole = UserRole.STUDENT
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    tutor_id: Optional[str] = None


class AdminUserUpdate(ApiModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: Optional[UserRole] = None
    tutor_id: Optional[str] = None
    is_active: Optional[bool] = None
    password: Optional[str] = PydField(default=None, min_length=6, max_length=128)


class SessionUser(ApiModel):
    user: UserPublic
    tutor: Optional[UserRef] = None


class RefreshedSession(SessionUser):
    access_token: str
    token_type: str = "bearer"
    message: str = "User data refreshed successfully"
