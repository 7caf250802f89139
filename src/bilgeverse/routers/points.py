from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request
from sqlmodel import Session, select

from bilgeverse.core.errors import NotFoundError, PermissionDenied
from bilgeverse.db import get_session
from bilgeverse.models.ledger import (
    AwardResult,
    BalanceCheck,
    ExperienceAward,
    ExperienceTransaction,
    PointsAward,
    PointsTransaction,
    TransactionPublic,
)
from bilgeverse.models.user import User, UserRole
from bilgeverse.routers.deps import get_current_admin_user, get_current_staff_user, get_current_user
from bilgeverse.services import ledger, periods
from bilgeverse.services.audit import record_admin_action

router = APIRouter(prefix="/api", tags=["points"])


def _visible_user_ids(session: Session, user: User, requested: str | None) -> list[str] | None:
    """Which users' ledger the caller may read; ``None`` means everyone."""

    if user.role == UserRole.ADMIN:
        return [requested] if requested else None
    if user.role == UserRole.TUTOR:
        students = session.exec(select(User.id).where(User.tutor_id == user.id)).all()
        allowed = set(students) | {user.id}
        if requested:
            if requested not in allowed:
                raise PermissionDenied("Student not assigned to this tutor")
            return [requested]
        return sorted(allowed)
    if requested and requested != user.id:
        raise PermissionDenied("Access denied")
    return [user.id]


@router.post("/points", response_model=AwardResult)
def award_points(
    payload: PointsAward,
    session: Session = Depends(get_session),
    actor: User = Depends(get_current_staff_user),
):
    period = periods.require_active_period(session)
    txn, student = ledger.award_points(
        session,
        actor=actor,
        period=period,
        student_id=payload.student_id,
        amount=payload.points,
        reason=payload.reason,
        point_reason_id=payload.point_reason_id,
    )
    session.commit()
    session.refresh(txn)
    session.refresh(student)
    return AwardResult(
        message="Points awarded successfully" if payload.points > 0 else "Points deducted successfully",
        transaction=TransactionPublic.model_validate(txn),
        new_balance=student.points,
        new_experience=student.experience,
    )


@router.get("/points/transactions", response_model=dict[str, list[TransactionPublic]])
def list_points_transactions(
    user_id: str | None = Query(None, alias="userId"),
    period_id: str | None = Query(None, alias="periodId"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0, le=10_000),
    session: Session = Depends(get_session),
    user: User = Depends(get_current_user),
):
    user_ids = _visible_user_ids(session, user, user_id)
    txns = ledger.list_transactions(
        session, PointsTransaction, user_ids=user_ids, period_id=period_id, limit=limit, offset=offset
    )
    return {"transactions": txns}


@router.post("/experience/transactions", response_model=AwardResult)
def award_experience(
    payload: ExperienceAward,
    session: Session = Depends(get_session),
    actor: User = Depends(get_current_staff_user),
):
    period = periods.require_active_period(session)
    txn, student = ledger.award_experience(
        session,
        actor=actor,
        period=period,
        student_id=payload.student_id,
        amount=payload.amount,
        reason=payload.reason,
    )
    session.commit()
    session.refresh(txn)
    session.refresh(student)
    return AwardResult(
        message="Experience awarded successfully" if payload.amount > 0 else "Experience deducted successfully",
        transaction=TransactionPublic.model_validate(txn),
        new_balance=student.points,
        new_experience=student.experience,
    )


@router.get("/experience/transactions", response_model=dict[str, list[TransactionPublic]])
def list_experience_transactions(
    user_id: str | None = Query(None, alias="userId"),
    period_id: str | None = Query(None, alias="periodId"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0, le=10_000),
    session: Session = Depends(get_session),
    user: User = Depends(get_current_user),
):
    user_ids = _visible_user_ids(session, user, user_id)
    txns = ledger.list_transactions(
        session, ExperienceTransaction, user_ids=user_ids, period_id=period_id, limit=limit, offset=offset
    )
    return {"transactions": txns}


@router.post("/admin/users/{user_id}/recompute-balance", response_model=BalanceCheck)
def recompute_balance(
    user_id: str,
    request: Request,
    session: Session = Depends(get_session),
    admin: User = Depends(get_current_admin_user),
):
    target = session.get(User, user_id)
    if not target:
        raise NotFoundError("User not found")
    check = ledger.recompute_balance(session, target)
    if check.repaired:
        record_admin_action(
            session,
            actor=admin,
            action="admin_user.recompute_balance",
            request=request,
            target_type="user",
            target_id=target.id,
            details=check.model_dump(),
        )
    session.commit()
    return check
