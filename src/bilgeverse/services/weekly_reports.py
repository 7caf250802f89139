"""Weekly report lifecycle: DRAFT -> SUBMITTED -> APPROVED | REJECTED.

Reviewed reports are terminal. Approval with points appends a ledger entry for the
report's author in the report's period.
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import update
from sqlmodel import Session, select

from bilgeverse.core.config import get_settings
from bilgeverse.core.errors import ConflictError, NotFoundError, PermissionDenied, ValidationError
from bilgeverse.models.base import utcnow
from bilgeverse.models.period import Period, PeriodRef, PeriodStatus
from bilgeverse.models.user import User, UserRef, UserRole
from bilgeverse.models.weekly_report import (
    ReportStats,
    ReportStatus,
    WeeklyReport,
    WeeklyReportDraft,
    WeeklyReportEdit,
    WeeklyReportPublic,
)
from bilgeverse.services import ledger, periods, weekly_questions
from bilgeverse.services.attendance import attendance_score, suggested_points

logger = logging.getLogger(__name__)

REVIEW_STATUSES = (ReportStatus.APPROVED, ReportStatus.REJECTED)


def get_report(session: Session, report_id: str) -> WeeklyReport:
    report = session.get(WeeklyReport, report_id)
    if not report:
        raise NotFoundError("Report not found")
    return report


def get_own_report(session: Session, *, user: User, report_id: str) -> WeeklyReport:
    report = get_report(session, report_id)
    if report.user_id != user.id and user.role != UserRole.ADMIN:
        raise PermissionDenied("Access denied")
    return report


def _touch(report: WeeklyReport) -> None:
    report.updated_at = utcnow()


def _require_draft(report: WeeklyReport, action: str) -> None:
    if report.status != ReportStatus.DRAFT:
        raise ValidationError(f"Can only {action} reports in draft status")


def save_draft(session: Session, *, user: User, payload: WeeklyReportDraft) -> WeeklyReport:
    """Create the author's report for a week, or overwrite it while it is still a draft."""

    if payload.status is not None and payload.status not in (ReportStatus.DRAFT, ReportStatus.SUBMITTED):
        raise ValidationError("Status must be DRAFT or SUBMITTED")

    if payload.period_id:
        period = session.get(Period, payload.period_id)
    else:
        period = periods.get_active_period(session)
    if not period or period.status != PeriodStatus.ACTIVE:
        raise ValidationError("Invalid or inactive period")

    if not 1 <= int(payload.week_number) <= int(period.total_weeks):
        raise ValidationError(f"Week number must be between 1 and {period.total_weeks}")

    fixed, variable = weekly_questions.validate_criteria(
        session,
        role=user.role,
        fixed_criteria=payload.fixed_criteria,
        variable_criteria=payload.variable_criteria,
    )

    report = session.exec(
        select(WeeklyReport)
        .where(WeeklyReport.user_id == user.id)
        .where(WeeklyReport.period_id == period.id)
        .where(WeeklyReport.week_number == payload.week_number)
    ).first()

    if report is None:
        report = WeeklyReport(user_id=user.id, period_id=period.id, week_number=payload.week_number)
    elif report.status != ReportStatus.DRAFT:
        raise ConflictError("Report already exists for this week")

    report.fixed_criteria = fixed or {}
    report.variable_criteria = variable or {}
    report.comments = payload.comments
    _touch(report)
    session.add(report)
    session.flush()

    if payload.status == ReportStatus.SUBMITTED:
        submit_report(session, user=user, report=report)
    return report


def edit_draft(session: Session, *, user: User, report: WeeklyReport, payload: WeeklyReportEdit) -> WeeklyReport:
    if report.user_id != user.id:
        raise PermissionDenied("Access denied")
    _require_draft(report, "edit")

    fixed, variable = weekly_questions.validate_criteria(
        session,
        role=user.role,
        fixed_criteria=payload.fixed_criteria,
        variable_criteria=payload.variable_criteria,
    )
    if fixed is not None:
        report.fixed_criteria = fixed
    if variable is not None:
        report.variable_criteria = variable
    if "comments" in payload.model_fields_set:
        report.comments = payload.comments
    _touch(report)
    session.add(report)
    return report


def submit_report(session: Session, *, user: User, report: WeeklyReport) -> WeeklyReport:
    if report.user_id != user.id:
        raise PermissionDenied("Only the author can submit a report")
    _require_draft(report, "submit")

    report.status = ReportStatus.SUBMITTED
    report.submission_date = utcnow()
    _touch(report)
    session.add(report)
    logger.info("Weekly report %s submitted by user=%s week=%s", report.id, user.id, report.week_number)
    return report


def delete_report(session: Session, *, user: User, report: WeeklyReport) -> None:
    if user.role != UserRole.ADMIN:
        if report.user_id != user.id:
            raise PermissionDenied("Access denied")
        _require_draft(report, "delete")
    session.delete(report)
    logger.info("Weekly report %s deleted by user=%s", report.id, user.id)


def normalize_review(status: Optional[str], points_awarded: Optional[int]) -> tuple[ReportStatus, int]:
    """Validate a review decision; rejected reports always carry zero points."""

    try:
        decision = ReportStatus(status) if status else None
    except ValueError:
        decision = None
    if decision not in REVIEW_STATUSES:
        raise ValidationError("Valid status (APPROVED/REJECTED) is required")

    if decision == ReportStatus.REJECTED:
        return decision, 0

    points = int(points_awarded or 0)
    max_points = get_settings().max_review_points
    if not 0 <= points <= max_points:
        raise ValidationError(f"Points awarded must be between 0 and {max_points}")
    return decision, points


def _apply_review(
    session: Session,
    *,
    reviewer: User,
    report: WeeklyReport,
    decision: ReportStatus,
    points: int,
    review_notes: Optional[str],
    notes_given: bool,
) -> None:
    now = utcnow()
    values = {
        "status": decision,
        "points_awarded": points,
        "reviewed_by_id": reviewer.id,
        "review_date": now,
        "updated_at": now,
    }
    if notes_given:
        values["review_notes"] = review_notes

    # Compare-and-set on SUBMITTED; a row another reviewer already moved matches nothing.
    result = session.execute(
        update(WeeklyReport)
        .where(WeeklyReport.id == report.id)
        .where(WeeklyReport.status == ReportStatus.SUBMITTED)
        .values(**values)
        .execution_options(synchronize_session="fetch")
    )
    if result.rowcount != 1:
        raise ConflictError(f"Report {report.id} was already reviewed")

    if decision == ReportStatus.APPROVED and points > 0:
        author = session.get(User, report.user_id)
        period = session.get(Period, report.period_id)
        ledger.append_points(
            session,
            user=author,
            period=period,
            amount=points,
            reason=f"Weekly report approved (week {report.week_number})",
            actor_id=reviewer.id,
        )


def _require_reviewable(report: WeeklyReport) -> None:
    if report.status != ReportStatus.SUBMITTED:
        raise ValidationError(f"Only submitted reports can be reviewed; report {report.id} is {report.status.value}")


def review_report(
    session: Session,
    *,
    reviewer: User,
    report: WeeklyReport,
    status: Optional[str],
    points_awarded: Optional[int],
    review_notes: Optional[str] = None,
    notes_given: bool = True,
) -> WeeklyReport:
    decision, points = normalize_review(status, points_awarded)
    _require_reviewable(report)
    _apply_review(
        session,
        reviewer=reviewer,
        report=report,
        decision=decision,
        points=points,
        review_notes=review_notes,
        notes_given=notes_given,
    )
    logger.info("Weekly report %s %s by %s points=%d", report.id, decision.value, reviewer.id, points)
    return report


def bulk_review(
    session: Session,
    *,
    reviewer: User,
    report_ids: list[str],
    status: Optional[str],
    points_awarded: Optional[int],
    review_notes: Optional[str] = None,
    notes_given: bool = True,
) -> list[WeeklyReport]:
    """Review every listed report or none of them."""

    ids = list(dict.fromkeys(i for i in report_ids if i))
    if not ids:
        raise ValidationError("Report IDs are required")
    decision, points = normalize_review(status, points_awarded)

    reports = list(session.exec(select(WeeklyReport).where(WeeklyReport.id.in_(ids))))
    found = {r.id for r in reports}
    missing = [i for i in ids if i not in found]
    if missing:
        raise NotFoundError(f"Reports not found: {', '.join(missing)}")
    for report in reports:
        _require_reviewable(report)

    for report in reports:
        _apply_review(
            session,
            reviewer=reviewer,
            report=report,
            decision=decision,
            points=points,
            review_notes=review_notes,
            notes_given=notes_given,
        )
    logger.info("Bulk %s of %d weekly reports by %s", decision.value, len(reports), reviewer.id)
    return reports


def to_public_many(session: Session, reports: list[WeeklyReport]) -> list[WeeklyReportPublic]:
    user_ids = {r.user_id for r in reports} | {r.reviewed_by_id for r in reports if r.reviewed_by_id}
    period_ids = {r.period_id for r in reports}
    users = {u.id: u for u in session.exec(select(User).where(User.id.in_(user_ids)))} if user_ids else {}
    period_map = {p.id: p for p in session.exec(select(Period).where(Period.id.in_(period_ids)))} if period_ids else {}

    out: list[WeeklyReportPublic] = []
    for r in reports:
        item = WeeklyReportPublic.model_validate(r)
        author = users.get(r.user_id)
        reviewer = users.get(r.reviewed_by_id) if r.reviewed_by_id else None
        period = period_map.get(r.period_id)
        item.user = UserRef.model_validate(author) if author else None
        item.reviewed_by = UserRef.model_validate(reviewer) if reviewer else None
        item.period = PeriodRef.model_validate(period) if period else None
        item.attendance_score = attendance_score(r.fixed_criteria, r.variable_criteria)
        item.suggested_points = suggested_points(item.attendance_score)
        out.append(item)
    return out


def to_public(session: Session, report: WeeklyReport) -> WeeklyReportPublic:
    return to_public_many(session, [report])[0]


def list_own_reports(session: Session, *, user: User, period_id: Optional[str] = None) -> list[WeeklyReport]:
    period = periods.get_period(session, period_id) if period_id else periods.require_active_period(session)
    return list(
        session.exec(
            select(WeeklyReport)
            .where(WeeklyReport.user_id == user.id)
            .where(WeeklyReport.period_id == period.id)
            .order_by(WeeklyReport.week_number)
        )
    )


def list_reports(
    session: Session,
    *,
    period_id: Optional[str] = None,
    status: Optional[ReportStatus] = None,
    role: Optional[UserRole] = None,
    week: Optional[int] = None,
) -> tuple[list[WeeklyReport], ReportStats, Period]:
    if period_id:
        period = session.get(Period, period_id)
    else:
        period = periods.get_active_period(session)
    if not period:
        raise NotFoundError("No period found")

    stmt = (
        select(WeeklyReport)
        .join(User, User.id == WeeklyReport.user_id)
        .where(WeeklyReport.period_id == period.id)
    )
    if status:
        stmt = stmt.where(WeeklyReport.status == status)
    if role:
        stmt = stmt.where(User.role == role)
    if week is not None:
        stmt = stmt.where(WeeklyReport.week_number == week)
    stmt = stmt.order_by(WeeklyReport.week_number, User.role, User.first_name, User.username)
    reports = list(session.exec(stmt))

    roles = {u.id: u.role for u in session.exec(select(User).where(User.id.in_({r.user_id for r in reports})))} if reports else {}
    stats = ReportStats(
        total=len(reports),
        by_status={s.value: sum(1 for r in reports if r.status == s) for s in ReportStatus},
        by_role={
            r.value: sum(1 for rep in reports if roles.get(rep.user_id) == r)
            for r in (UserRole.TUTOR, UserRole.ASISTAN)
        },
        total_points_awarded=sum(int(r.points_awarded or 0) for r in reports),
    )
    return reports, stats, period
