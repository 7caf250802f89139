from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from sqlmodel import Session

from bilgeverse.db import get_session
from bilgeverse.models.user import User
from bilgeverse.models.weekly_report import QuestionCreate, QuestionPublic, QuestionUpdate
from bilgeverse.routers.deps import get_current_admin_user
from bilgeverse.services import weekly_questions
from bilgeverse.services.audit import record_admin_action

router = APIRouter(prefix="/api/admin/weekly-reports/questions", tags=["admin", "weekly-reports"])


@router.get("", response_model=dict[str, list[QuestionPublic]])
def list_questions(
    session: Session = Depends(get_session),
    _admin: User = Depends(get_current_admin_user),
):
    return {"questions": weekly_questions.list_questions(session)}


@router.post("")
def create_question(
    payload: QuestionCreate,
    session: Session = Depends(get_session),
    admin: User = Depends(get_current_admin_user),
):
    q = weekly_questions.create_question(session, payload, created_by=admin)
    session.commit()
    session.refresh(q)
    return {"message": "Question created successfully", "question": QuestionPublic.model_validate(q)}


@router.get("/{question_id}", response_model=QuestionPublic)
def get_question(
    question_id: str,
    session: Session = Depends(get_session),
    _admin: User = Depends(get_current_admin_user),
):
    return weekly_questions.get_question(session, question_id)


@router.put("/{question_id}")
def update_question(
    question_id: str,
    payload: QuestionUpdate,
    session: Session = Depends(get_session),
    _admin: User = Depends(get_current_admin_user),
):
    q = weekly_questions.get_question(session, question_id)
    weekly_questions.update_question(session, q, payload)
    session.commit()
    session.refresh(q)
    return {"message": "Question updated successfully", "question": QuestionPublic.model_validate(q)}


@router.delete("/{question_id}")
def delete_question(
    question_id: str,
    request: Request,
    session: Session = Depends(get_session),
    admin: User = Depends(get_current_admin_user),
):
    q = weekly_questions.get_question(session, question_id)
    weekly_questions.delete_question(session, q)
    record_admin_action(
        session,
        actor=admin,
        action="weekly_question.delete",
        request=request,
        target_type="weekly_question",
        target_id=question_id,
        details={"text": q.text},
    )
    session.commit()
    return {"message": "Question deleted successfully"}
