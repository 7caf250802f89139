from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func
from sqlmodel import Session, select

from bilgeverse.core.errors import NotFoundError, ValidationError
from bilgeverse.db import get_session
from bilgeverse.models.ledger import (
    PointReason,
    PointReasonCreate,
    PointReasonPublic,
    PointReasonUpdate,
    PointsTransaction,
)
from bilgeverse.models.user import User
from bilgeverse.routers.deps import get_current_admin_user, get_current_staff_user

router = APIRouter(prefix="/api/admin/point-reasons", tags=["admin", "points"])


def _usage(session: Session, reason_ids: list[str]) -> dict[str, int]:
    if not reason_ids:
        return {}
    rows = session.exec(
        select(PointsTransaction.point_reason_id, func.count(PointsTransaction.id))
        .where(PointsTransaction.point_reason_id.in_(reason_ids))
        .group_by(PointsTransaction.point_reason_id)
    ).all()
    return {rid: int(n) for rid, n in rows}


def _public(reason: PointReason, count: int = 0) -> PointReasonPublic:
    out = PointReasonPublic.model_validate(reason)
    out.transaction_count = count
    return out


def _check_name_free(session: Session, name: str, *, exclude_id: str | None = None) -> None:
    stmt = select(PointReason).where(PointReason.name == name)
    if exclude_id:
        stmt = stmt.where(PointReason.id != exclude_id)
    if session.exec(stmt).first():
        raise ValidationError("A point reason with this name already exists")


@router.get("", response_model=dict[str, list[PointReasonPublic]])
def list_point_reasons(
    active_only: bool = Query(False, alias="activeOnly"),
    session: Session = Depends(get_session),
    _user: User = Depends(get_current_staff_user),
):
    stmt = select(PointReason)
    if active_only:
        stmt = stmt.where(PointReason.is_active == True)  # noqa: E712
    reasons = list(session.exec(stmt.order_by(PointReason.name)))
    usage = _usage(session, [r.id for r in reasons])
    return {"reasons": [_public(r, usage.get(r.id, 0)) for r in reasons]}


@router.post("", response_model=dict[str, PointReasonPublic], status_code=status.HTTP_201_CREATED)
def create_point_reason(
    payload: PointReasonCreate,
    session: Session = Depends(get_session),
    _admin: User = Depends(get_current_admin_user),
):
    name = payload.name.strip()
    if not name:
        raise ValidationError("Name is required")
    _check_name_free(session, name)
    reason = PointReason(name=name, description=payload.description)
    session.add(reason)
    session.commit()
    session.refresh(reason)
    return {"reason": _public(reason)}


@router.put("/{reason_id}", response_model=dict[str, PointReasonPublic])
def update_point_reason(
    reason_id: str,
    payload: PointReasonUpdate,
    session: Session = Depends(get_session),
    _admin: User = Depends(get_current_admin_user),
):
    reason = session.get(PointReason, reason_id)
    if not reason:
        raise NotFoundError("Point reason not found")

    data = payload.model_dump(exclude_unset=True)
    if data.get("name") is not None:
        name = data["name"].strip()
        if not name:
            raise ValidationError("Name is required")
        _check_name_free(session, name, exclude_id=reason.id)
        reason.name = name
    if "description" in data:
        reason.description = data["description"]
    if data.get("is_active") is not None:
        reason.is_active = bool(data["is_active"])

    session.add(reason)
    session.commit()
    session.refresh(reason)
    return {"reason": _public(reason, _usage(session, [reason.id]).get(reason.id, 0))}
