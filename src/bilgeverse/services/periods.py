from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import func
from sqlmodel import Session, select

from bilgeverse.core.config import get_settings
from bilgeverse.core.errors import NotFoundError, ValidationError
from bilgeverse.models.ledger import ExperienceTransaction, PointsTransaction
from bilgeverse.models.period import Period, PeriodCounts, PeriodCreate, PeriodPublic, PeriodStatus, PeriodUpdate
from bilgeverse.models.period_content import Announcement, Event, ItemRequest, StudentNote, StudentReport, Wish
from bilgeverse.models.user import User
from bilgeverse.models.weekly_report import WeeklyReport
from bilgeverse.services import ledger

logger = logging.getLogger(__name__)

# PeriodCounts field -> table holding a period_id
_DEPENDENTS = (
    ("events", Event),
    ("points_transactions", PointsTransaction),
    ("experience_transactions", ExperienceTransaction),
    ("item_requests", ItemRequest),
    ("wishes", Wish),
    ("student_notes", StudentNote),
    ("student_reports", StudentReport),
    ("announcements", Announcement),
    ("weekly_reports", WeeklyReport),
)


def period_counts(session: Session, period_ids: list[str]) -> dict[str, PeriodCounts]:
    if not period_ids:
        return {}
    raw: dict[str, dict[str, int]] = {pid: {} for pid in period_ids}
    for field, model in _DEPENDENTS:
        rows = session.exec(
            select(model.period_id, func.count(model.id))
            .where(model.period_id.in_(period_ids))
            .group_by(model.period_id)
        ).all()
        for pid, n in rows:
            raw[pid][field] = int(n)
    return {pid: PeriodCounts(**vals) for pid, vals in raw.items()}


def to_public(period: Period, counts: Optional[PeriodCounts] = None) -> PeriodPublic:
    out = PeriodPublic.model_validate(period)
    out.counts = counts
    return out


def with_counts(session: Session, period: Period) -> PeriodPublic:
    return to_public(period, period_counts(session, [period.id]).get(period.id))


def list_periods(session: Session, *, status: Optional[PeriodStatus] = None) -> list[PeriodPublic]:
    stmt = select(Period)
    if status:
        stmt = stmt.where(Period.status == status)
    periods = list(session.exec(stmt.order_by(Period.created_at.desc())))
    counts = period_counts(session, [p.id for p in periods])
    return [to_public(p, counts.get(p.id)) for p in periods]


def get_period(session: Session, period_id: str) -> Period:
    period = session.get(Period, period_id)
    if not period:
        raise NotFoundError("Period not found")
    return period


def get_active_period(session: Session) -> Optional[Period]:
    return session.exec(select(Period).where(Period.status == PeriodStatus.ACTIVE)).first()


def require_active_period(session: Session) -> Period:
    period = get_active_period(session)
    if not period:
        raise NotFoundError("No active period found")
    return period


def _check_name_free(session: Session, name: str, *, exclude_id: Optional[str] = None) -> None:
    stmt = select(Period).where(Period.name == name)
    if exclude_id:
        stmt = stmt.where(Period.id != exclude_id)
    if session.exec(stmt).first():
        raise ValidationError("Period with this name already exists")


def create_period(session: Session, payload: PeriodCreate) -> Period:
    name = (payload.name or "").strip()
    if not name or not payload.start_date:
        raise ValidationError("Period name and start date are required")
    if payload.end_date and payload.end_date <= payload.start_date:
        raise ValidationError("End date must be after start date")
    _check_name_free(session, name)

    period = Period(
        name=name,
        description=payload.description,
        start_date=payload.start_date,
        end_date=payload.end_date,
        status=PeriodStatus.INACTIVE,
        total_weeks=payload.total_weeks or get_settings().default_total_weeks,
    )
    session.add(period)
    session.flush()
    logger.info("Created period %s (%s)", period.id, period.name)
    return period


def set_period_status(session: Session, period: Period, status: PeriodStatus) -> Period:
    """Direct status change without the activation cascade."""

    if status == PeriodStatus.ACTIVE:
        raise ValidationError("Use the activate endpoint to make a period active")
    if period.status != status:
        logger.info("Period %s status %s -> %s", period.id, period.status.value, status.value)
    period.status = status
    session.add(period)
    return period


def update_period(session: Session, period: Period, payload: PeriodUpdate) -> Period:
    data = payload.model_dump(exclude_unset=True)

    if "name" in data:
        name = (data["name"] or "").strip()
        if not name:
            raise ValidationError("Period name cannot be empty")
        if name != period.name:
            _check_name_free(session, name, exclude_id=period.id)
        period.name = name

    if "start_date" in data and data["start_date"] is None:
        raise ValidationError("Start date cannot be empty")
    start = data.get("start_date") or period.start_date
    end = data["end_date"] if "end_date" in data else period.end_date
    if end and end <= start:
        raise ValidationError("End date must be after start date")
    period.start_date = start
    period.end_date = end

    if "description" in data:
        period.description = data["description"]
    if data.get("total_weeks") is not None:
        total_weeks = int(data["total_weeks"])
        used = session.exec(
            select(func.max(WeeklyReport.week_number)).where(WeeklyReport.period_id == period.id)
        ).one()
        if used and total_weeks < int(used):
            raise ValidationError(f"Total weeks cannot be less than {used}; weekly reports exist for week {used}")
        period.total_weeks = total_weeks

    session.add(period)
    if data.get("status") is not None:
        set_period_status(session, period, PeriodStatus(data["status"]))
    return period


def activate_period(
    session: Session, period_id: str, *, reset_data: bool, actor_id: Optional[str] = None
) -> tuple[Period, int]:
    """Make ``period_id`` the only ACTIVE period, optionally zeroing every balance.

    Returns the period and the number of users whose balances were reset.
    """

    period = get_period(session, period_id)
    if period.status == PeriodStatus.ACTIVE:
        raise ValidationError("Period is already active")

    # Demote first: the single-active index rejects two ACTIVE rows even mid-transaction.
    for other in session.exec(select(Period).where(Period.status == PeriodStatus.ACTIVE)).all():
        other.status = PeriodStatus.INACTIVE
        session.add(other)
        logger.info("Period %s (%s) deactivated", other.id, other.name)
    session.flush()

    period.status = PeriodStatus.ACTIVE
    session.add(period)
    session.flush()
    logger.info("Period %s (%s) activated reset_data=%s", period.id, period.name, reset_data)

    reset_users = 0
    if reset_data:
        reset_users = ledger.reset_all_balances(session, period=period, actor_id=actor_id)
        logger.warning("Reset points and experience for %d users on activation of %s", reset_users, period.id)
    return period, reset_users


def delete_period(
    session: Session, period: Period, *, cascade: bool = False, actor_id: Optional[str] = None
) -> PeriodCounts:
    """Hard-delete a period.

    A period that still owns records is refused unless ``cascade`` is set, in which
    case those records go first and affected balances are rebuilt from the ledger.
    Totals never end up negative: see ``ledger.settle_negative_balance``.
    """

    counts = period_counts(session, [period.id]).get(period.id) or PeriodCounts()
    if counts.total() and not cascade:
        logger.warning("Refused to delete period %s with %d dependent records", period.id, counts.total())
        raise ValidationError("Period has related records and cannot be deleted; archive it instead")

    affected: set[str] = set()
    for _field, model in _DEPENDENTS:
        for row in session.exec(select(model).where(model.period_id == period.id)).all():
            if model in (PointsTransaction, ExperienceTransaction):
                affected.add(row.user_id)
            session.delete(row)
    session.flush()

    session.delete(period)
    session.flush()

    for user_id in sorted(affected):
        user = session.get(User, user_id)
        if user:
            ledger.settle_negative_balance(session, user, actor_id=actor_id)
            ledger.recompute_balance(session, user)

    logger.info("Deleted period %s (%s) cascade=%s", period.id, period.name, cascade)
    return counts
