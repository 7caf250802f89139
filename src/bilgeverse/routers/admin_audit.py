from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session, select

from bilgeverse.db import get_session
from bilgeverse.models.admin_audit_log import AdminAuditLog, AdminAuditLogPublic
from bilgeverse.models.user import User
from bilgeverse.routers.deps import get_current_admin_user

router = APIRouter(prefix="/api/admin/audit-logs", tags=["admin"])


@router.get("", response_model=list[AdminAuditLogPublic])
def list_audit_logs(
    *,
    session: Session = Depends(get_session),
    _admin: User = Depends(get_current_admin_user),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0, le=10_000),
    action: str | None = None,
    actor_user_id: str | None = Query(None, alias="actorUserId"),
    target_type: str | None = Query(None, alias="targetType"),
    target_id: str | None = Query(None, alias="targetId"),
):
    stmt = select(AdminAuditLog)
    if action:
        stmt = stmt.where(AdminAuditLog.action == action)
    if actor_user_id:
        stmt = stmt.where(AdminAuditLog.actor_user_id == actor_user_id)
    if target_type:
        stmt = stmt.where(AdminAuditLog.target_type == target_type)
    if target_id:
        stmt = stmt.where(AdminAuditLog.target_id == target_id)

    stmt = stmt.order_by(AdminAuditLog.created_at.desc()).offset(offset).limit(limit)
    return list(session.exec(stmt))
