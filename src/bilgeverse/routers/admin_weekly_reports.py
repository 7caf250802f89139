from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request
from sqlmodel import Session

from bilgeverse.db import get_session
from bilgeverse.models.period import PeriodRef
from bilgeverse.models.user import User, UserRole
from bilgeverse.models.weekly_report import (
    BulkReviewRequest,
    BulkReviewResult,
    ReportList,
    ReportStatus,
    ReviewRequest,
    WeeklyReportPublic,
)
from bilgeverse.routers.deps import get_current_admin_user
from bilgeverse.services import weekly_reports
from bilgeverse.services.audit import record_admin_action

router = APIRouter(prefix="/api/admin/weekly-reports", tags=["admin", "weekly-reports"])


@router.get("", response_model=ReportList)
def list_reports(
    status_filter: ReportStatus | None = Query(None, alias="status"),
    role: UserRole | None = Query(None),
    week: int | None = Query(None, ge=1),
    period_id: str | None = Query(None, alias="periodId"),
    session: Session = Depends(get_session),
    _admin: User = Depends(get_current_admin_user),
):
    reports, stats, period = weekly_reports.list_reports(
        session, period_id=period_id, status=status_filter, role=role, week=week
    )
    return ReportList(
        reports=weekly_reports.to_public_many(session, reports),
        stats=stats,
        period=PeriodRef.model_validate(period),
    )


@router.post("", response_model=BulkReviewResult)
def bulk_review(
    payload: BulkReviewRequest,
    request: Request,
    session: Session = Depends(get_session),
    admin: User = Depends(get_current_admin_user),
):
    reports = weekly_reports.bulk_review(
        session,
        reviewer=admin,
        report_ids=payload.report_ids,
        status=payload.status,
        points_awarded=payload.points_awarded,
        review_notes=payload.review_notes,
        notes_given="review_notes" in payload.model_fields_set,
    )
    record_admin_action(
        session,
        actor=admin,
        action="weekly_report.bulk_review",
        request=request,
        target_type="weekly_report",
        details={
            "report_ids": [r.id for r in reports],
            "status": payload.status,
            "points_awarded": reports[0].points_awarded if reports else 0,
        },
    )
    session.commit()
    return BulkReviewResult(message=f"{len(reports)} reports updated successfully", updated_count=len(reports))


@router.get("/{report_id}", response_model=WeeklyReportPublic)
def get_report(
    report_id: str,
    session: Session = Depends(get_session),
    _admin: User = Depends(get_current_admin_user),
):
    report = weekly_reports.get_report(session, report_id)
    return weekly_reports.to_public(session, report)


@router.put("/{report_id}")
def review_report(
    report_id: str,
    payload: ReviewRequest,
    request: Request,
    session: Session = Depends(get_session),
    admin: User = Depends(get_current_admin_user),
):
    report = weekly_reports.get_report(session, report_id)
    weekly_reports.review_report(
        session,
        reviewer=admin,
        report=report,
        status=payload.status,
        points_awarded=payload.points_awarded,
        review_notes=payload.review_notes,
        notes_given="review_notes" in payload.model_fields_set,
    )
    record_admin_action(
        session,
        actor=admin,
        action="weekly_report.review",
        request=request,
        target_type="weekly_report",
        target_id=report.id,
        details={"status": report.status.value, "points_awarded": report.points_awarded},
    )
    session.commit()
    session.refresh(report)
    return {"message": "Report reviewed successfully", "report": weekly_reports.to_public(session, report)}


@router.delete("/{report_id}")
def delete_report(
    report_id: str,
    request: Request,
    session: Session = Depends(get_session),
    admin: User = Depends(get_current_admin_user),
):
    report = weekly_reports.get_report(session, report_id)
    weekly_reports.delete_report(session, user=admin, report=report)
    record_admin_action(
        session,
        actor=admin,
        action="weekly_report.delete",
        request=request,
        target_type="weekly_report",
        target_id=report_id,
        details={"user_id": report.user_id, "week": report.week_number, "status": report.status.value},
    )
    session.commit()
    return {"message": "Report deleted successfully"}
