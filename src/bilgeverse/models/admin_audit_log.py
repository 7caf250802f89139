from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Optional
from uuid import uuid4

from sqlmodel import Field, SQLModel

from bilgeverse.models.base import ApiModel, utcnow


class AdminAuditLog(SQLModel, table=True):
    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)

    created_at: datetime = Field(default_factory=utcnow, index=True)

    actor_user_id: str = Field(index=True)
    actor_username: str = Field(index=True)

    # e.g. "period.activate", "weekly_report.review", "admin_user.create"
    action: str = Field(index=True)

    target_type: Optional[str] = Field(default=None, index=True)
    target_id: Optional[str] = Field(default=None, index=True)

    ip: Optional[str] = None
    user_agent: Optional[str] = None

    details_json: Optional[str] = None

    @staticmethod
    def encode_details(details: Any) -> Optional[str]:
        if details is None:
            return None
        try:
            return json.dumps(details, ensure_ascii=False, separators=(",", ":"), default=str)
        except (TypeError, ValueError):
            return None


class AdminAuditLogPublic(ApiModel):
    id: str
    created_at: datetime
    actor_user_id: str
    actor_username: str
    action: str
    target_type: Optional[str] = None
    target_id: Optional[str] = None
    ip: Optional[str] = None
    user_agent: Optional[str] = None
    details_json: Optional[str] = None
