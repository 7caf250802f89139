from __future__ import annotations

import logging
from typing import Optional, Union

from sqlalchemy import func, or_
from sqlmodel import Session, select

from bilgeverse.core.errors import NotFoundError, PermissionDenied, ValidationError
from bilgeverse.models.ledger import (
    PERIOD_DELETE_REASON,
    PERIOD_RESET_REASON,
    BalanceCheck,
    ExperienceTransaction,
    PointReason,
    PointsTransaction,
)
from bilgeverse.models.period import Period, PeriodStatus
from bilgeverse.models.user import User, UserRole

logger = logging.getLogger(__name__)

LedgerModel = Union[type[PointsTransaction], type[ExperienceTransaction]]


def _ledger_sum(session: Session, model: LedgerModel, user_id: str) -> int:
    total = session.exec(select(func.coalesce(func.sum(model.amount), 0)).where(model.user_id == user_id)).one()
    return int(total or 0)


def append_points(
    session: Session,
    *,
    user: User,
    period: Period,
    amount: int,
    reason: str,
    actor_id: Optional[str] = None,
    point_reason_id: Optional[str] = None,
    with_experience: bool = True,
) -> PointsTransaction:
    """Append a points entry and move the user's running total with it.

    Earned points (amount > 0) count as experience too unless ``with_experience`` is off.
    """

    txn = PointsTransaction(
        user_id=user.id,
        period_id=period.id,
        amount=amount,
        reason=reason,
        actor_id=actor_id,
        point_reason_id=point_reason_id,
    )
    user.points = int(user.points or 0) + amount
    session.add(txn)
    if with_experience and amount > 0:
        append_experience(session, user=user, period=period, amount=amount, reason=reason, actor_id=actor_id)
    session.add(user)
    logger.info("Points %+d for user=%s period=%s reason=%s", amount, user.id, period.id, reason)
    return txn


def append_experience(
    session: Session,
    *,
    user: User,
    period: Period,
    amount: int,
    reason: str,
    actor_id: Optional[str] = None,
) -> ExperienceTransaction:
    txn = ExperienceTransaction(
        user_id=user.id,
        period_id=period.id,
        amount=amount,
        reason=reason,
        actor_id=actor_id,
    )
    user.experience = int(user.experience or 0) + amount
    session.add(txn)
    session.add(user)
    return txn


def _load_target(session: Session, *, actor: User, student_id: str) -> User:
    student = session.exec(select(User).where(User.id == student_id).where(User.role == UserRole.STUDENT)).first()
    if not student:
        raise NotFoundError("Student not found")
    if actor.role == UserRole.TUTOR and student.tutor_id != actor.id:
        raise PermissionDenied("Student not assigned to this tutor")
    return student


def award_points(
    session: Session,
    *,
    actor: User,
    period: Period,
    student_id: str,
    amount: int,
    reason: Optional[str] = None,
    point_reason_id: Optional[str] = None,
) -> tuple[PointsTransaction, User]:
    if amount == 0:
        raise ValidationError("Points must be non-zero")

    student = _load_target(session, actor=actor, student_id=student_id)

    if amount < 0 and abs(amount) > int(student.points or 0):
        raise ValidationError("Cannot decrease more points than student has")

    if point_reason_id:
        pr = session.get(PointReason, point_reason_id)
        if not pr or not pr.is_active:
            raise ValidationError("Unknown or inactive point reason")
        if not reason:
            reason = pr.name

    text = (reason or "").strip() or ("Points awarded" if amount > 0 else "Points deducted")
    txn = append_points(
        session,
        user=student,
        period=period,
        amount=amount,
        reason=text,
        actor_id=actor.id,
        point_reason_id=point_reason_id,
    )
    return txn, student


def award_experience(
    session: Session,
    *,
    actor: User,
    period: Period,
    student_id: str,
    amount: int,
    reason: Optional[str] = None,
) -> tuple[ExperienceTransaction, User]:
    if amount == 0:
        raise ValidationError("Experience amount must be non-zero")

    student = _load_target(session, actor=actor, student_id=student_id)

    if amount < 0 and abs(amount) > int(student.experience or 0):
        raise ValidationError("Cannot decrease more experience than student has")

    text = (reason or "").strip() or ("Experience awarded" if amount > 0 else "Experience deducted")
    txn = append_experience(session, user=student, period=period, amount=amount, reason=text, actor_id=actor.id)
    logger.info("Experience %+d for user=%s period=%s", amount, student.id, period.id)
    return txn, student


def list_transactions(
    session: Session,
    model: LedgerModel,
    *,
    user_ids: Optional[list[str]] = None,
    period_id: Optional[str] = None,
    actor_id: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
) -> list:
    stmt = select(model)
    if user_ids is not None:
        if not user_ids:
            return []
        stmt = stmt.where(model.user_id.in_(user_ids))
    if period_id:
        stmt = stmt.where(model.period_id == period_id)
    if actor_id:
        stmt = stmt.where(model.actor_id == actor_id)
    stmt = stmt.order_by(model.created_at.desc()).offset(offset).limit(limit)
    return list(session.exec(stmt))


def recompute_balance(session: Session, user: User) -> BalanceCheck:
    """Compare the stored totals with the ledger and repair them if they drifted."""

    points_ledger = _ledger_sum(session, PointsTransaction, user.id)
    experience_ledger = _ledger_sum(session, ExperienceTransaction, user.id)
    check = BalanceCheck(
        user_id=user.id,
        points_stored=int(user.points or 0),
        points_ledger=points_ledger,
        experience_stored=int(user.experience or 0),
        experience_ledger=experience_ledger,
        repaired=False,
    )
    if check.points_stored != points_ledger or check.experience_stored != experience_ledger:
        logger.warning(
            "Balance drift for user=%s points %s->%s experience %s->%s",
            user.id,
            check.points_stored,
            points_ledger,
            check.experience_stored,
            experience_ledger,
        )
        user.points = points_ledger
        user.experience = experience_ledger
        session.add(user)
        check.repaired = True
    return check


def reset_all_balances(session: Session, *, period: Period, actor_id: Optional[str] = None) -> int:
    """Zero every user's points and experience.

    Each non-zero balance gets an offsetting entry in ``period`` so the ledger still
    sums to the stored totals. Returns the number of users touched.
    """

    users = session.exec(select(User).where(or_(User.points != 0, User.experience != 0))).all()
    for user in users:
        if user.points:
            session.add(
                PointsTransaction(
                    user_id=user.id,
                    period_id=period.id,
                    amount=-int(user.points),
                    reason=PERIOD_RESET_REASON,
                    actor_id=actor_id,
                )
            )
        if user.experience:
            session.add(
                ExperienceTransaction(
                    user_id=user.id,
                    period_id=period.id,
                    amount=-int(user.experience),
                    reason=PERIOD_RESET_REASON,
                    actor_id=actor_id,
                )
            )
        user.points = 0
        user.experience = 0
        session.add(user)
    return len(users)


def settle_negative_balance(session: Session, user: User, *, actor_id: Optional[str] = None) -> list:
    """Lift a ledger total that went below zero back to zero.

    Dropping a period's credits leaves the reset entries that offset them in later
    periods. Each negative total gets one compensating entry, booked in the active
    period or else in the period of the user's latest remaining entry.
    """

    written = []
    active = session.exec(select(Period).where(Period.status == PeriodStatus.ACTIVE)).first()
    for model in (PointsTransaction, ExperienceTransaction):
        total = _ledger_sum(session, model, user.id)
        if total >= 0:
            continue
        period_id = active.id if active else None
        if period_id is None:
            latest = session.exec(
                select(model).where(model.user_id == user.id).order_by(model.created_at.desc())
            ).first()
            period_id = latest.period_id
        txn = model(
            user_id=user.id,
            period_id=period_id,
            amount=-total,
            reason=PERIOD_DELETE_REASON,
            actor_id=actor_id,
        )
        session.add(txn)
        written.append(txn)
        logger.warning("Settled negative %s of %d for user=%s", model.__name__, total, user.id)
    if written:
        session.flush()
    return written
