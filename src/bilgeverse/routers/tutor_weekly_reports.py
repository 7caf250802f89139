from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from sqlmodel import Session

from bilgeverse.db import get_session
from bilgeverse.models.user import User
from bilgeverse.models.weekly_report import (
    QuestionPublic,
    QuestionsByType,
    QuestionType,
    ReportStatus,
    RoleQuestions,
    WeeklyReportDraft,
    WeeklyReportEdit,
    WeeklyReportPublic,
)
from bilgeverse.routers.deps import get_current_reporter
from bilgeverse.services import weekly_questions, weekly_reports

router = APIRouter(prefix="/api/tutor/weekly-reports", tags=["weekly-reports"])


@router.get("", response_model=dict[str, list[WeeklyReportPublic]])
def list_my_reports(
    period_id: str | None = Query(None, alias="periodId"),
    session: Session = Depends(get_session),
    user: User = Depends(get_current_reporter),
):
    reports = weekly_reports.list_own_reports(session, user=user, period_id=period_id)
    return {"reports": weekly_reports.to_public_many(session, reports)}


@router.post("", status_code=status.HTTP_201_CREATED)
def save_report(
    payload: WeeklyReportDraft,
    session: Session = Depends(get_session),
    user: User = Depends(get_current_reporter),
):
    report = weekly_reports.save_draft(session, user=user, payload=payload)
    session.commit()
    session.refresh(report)
    message = "Report submitted successfully" if report.status == ReportStatus.SUBMITTED else "Report saved as draft"
    return {"message": message, "report": weekly_reports.to_public(session, report)}


# Declared before "/{report_id}" so "questions" is not taken for an id.
@router.get("/questions", response_model=RoleQuestions)
def my_questions(
    session: Session = Depends(get_session),
    user: User = Depends(get_current_reporter),
):
    grouped = weekly_questions.active_questions(session, weekly_questions.target_role_for(user.role))
    return RoleQuestions(
        questions=QuestionsByType(
            FIXED=[QuestionPublic.model_validate(q) for q in grouped[QuestionType.FIXED]],
            VARIABLE=[QuestionPublic.model_validate(q) for q in grouped[QuestionType.VARIABLE]],
        )
    )


@router.get("/{report_id}", response_model=WeeklyReportPublic)
def get_my_report(
    report_id: str,
    session: Session = Depends(get_session),
    user: User = Depends(get_current_reporter),
):
    report = weekly_reports.get_own_report(session, user=user, report_id=report_id)
    return weekly_reports.to_public(session, report)


@router.put("/{report_id}")
def edit_my_report(
    report_id: str,
    payload: WeeklyReportEdit,
    session: Session = Depends(get_session),
    user: User = Depends(get_current_reporter),
):
    report = weekly_reports.get_own_report(session, user=user, report_id=report_id)
    weekly_reports.edit_draft(session, user=user, report=report, payload=payload)
    session.commit()
    session.refresh(report)
    return {"message": "Report updated successfully", "report": weekly_reports.to_public(session, report)}


@router.post("/{report_id}/submit")
def submit_my_report(
    report_id: str,
    session: Session = Depends(get_session),
    user: User = Depends(get_current_reporter),
):
    report = weekly_reports.get_own_report(session, user=user, report_id=report_id)
    weekly_reports.submit_report(session, user=user, report=report)
    session.commit()
    session.refresh(report)
    return {"message": "Report submitted successfully", "report": weekly_reports.to_public(session, report)}


@router.delete("/{report_id}")
def delete_my_report(
    report_id: str,
    session: Session = Depends(get_session),
    user: User = Depends(get_current_reporter),
):
    report = weekly_reports.get_own_report(session, user=user, report_id=report_id)
    weekly_reports.delete_report(session, user=user, report=report)
    session.commit()
    return {"message": "Report deleted successfully"}
