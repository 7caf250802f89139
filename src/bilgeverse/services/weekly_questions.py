from __future__ import annotations

import logging
from typing import Mapping, Optional

from sqlalchemy import func
from sqlmodel import Session, select

from bilgeverse.core.errors import NotFoundError, ValidationError
from bilgeverse.models.user import User, UserRole
from bilgeverse.models.weekly_report import (
    CriterionValue,
    QuestionCreate,
    QuestionTargetRole,
    QuestionType,
    QuestionUpdate,
    WeeklyReport,
    WeeklyReportQuestion,
)

logger = logging.getLogger(__name__)


def list_questions(session: Session) -> list[WeeklyReportQuestion]:
    return list(
        session.exec(
            select(WeeklyReportQuestion).order_by(
                WeeklyReportQuestion.type,
                WeeklyReportQuestion.target_role,
                WeeklyReportQuestion.order_index,
            )
        )
    )


def get_question(session: Session, question_id: str) -> WeeklyReportQuestion:
    q = session.get(WeeklyReportQuestion, question_id)
    if not q:
        raise NotFoundError("Question not found")
    return q


def _next_order_index(session: Session, qtype: QuestionType, target_role: QuestionTargetRole) -> int:
    current = session.exec(
        select(func.max(WeeklyReportQuestion.order_index))
        .where(WeeklyReportQuestion.type == qtype)
        .where(WeeklyReportQuestion.target_role == target_role)
    ).one()
    return 0 if current is None else int(current) + 1


def create_question(session: Session, payload: QuestionCreate, *, created_by: User) -> WeeklyReportQuestion:
    text = (payload.text or "").strip()
    if not text or payload.type is None or payload.target_role is None:
        raise ValidationError("Text, type, and targetRole are required")

    order_index = payload.order_index
    if order_index is None:
        order_index = _next_order_index(session, payload.type, payload.target_role)

    q = WeeklyReportQuestion(
        text=text,
        type=payload.type,
        target_role=payload.target_role,
        order_index=order_index,
        created_by_id=created_by.id,
    )
    session.add(q)
    session.flush()
    return q


def update_question(session: Session, q: WeeklyReportQuestion, payload: QuestionUpdate) -> WeeklyReportQuestion:
    data = payload.model_dump(exclude_unset=True)
    if "text" in data:
        text = (data["text"] or "").strip()
        if not text:
            raise ValidationError("Question text cannot be empty")
        q.text = text
    for field in ("type", "target_role", "order_index", "is_active"):
        if data.get(field) is not None:
            setattr(q, field, data[field])
    session.add(q)
    return q


def question_in_use(session: Session, q: WeeklyReportQuestion) -> bool:
    """Whether any report from the question's target role has an answer keyed by it."""

    rows = session.exec(
        select(WeeklyReport.fixed_criteria, WeeklyReport.variable_criteria)
        .join(User, User.id == WeeklyReport.user_id)
        .where(User.role == UserRole(q.target_role.value))
    ).all()
    return any(q.id in (fixed or {}) or q.id in (variable or {}) for fixed, variable in rows)


def delete_question(session: Session, q: WeeklyReportQuestion) -> None:
    if question_in_use(session, q):
        raise ValidationError("Cannot delete question that has responses. Deactivate it instead.")
    session.delete(q)
    logger.info("Deleted weekly report question %s", q.id)


def active_questions(session: Session, role: QuestionTargetRole) -> dict[QuestionType, list[WeeklyReportQuestion]]:
    questions = session.exec(
        select(WeeklyReportQuestion)
        .where(WeeklyReportQuestion.target_role == role)
        .where(WeeklyReportQuestion.is_active == True)  # noqa: E712
        .order_by(WeeklyReportQuestion.type, WeeklyReportQuestion.order_index)
    ).all()
    grouped: dict[QuestionType, list[WeeklyReportQuestion]] = {QuestionType.FIXED: [], QuestionType.VARIABLE: []}
    for q in questions:
        grouped[q.type].append(q)
    return grouped


def target_role_for(role: UserRole) -> QuestionTargetRole:
    if role == UserRole.TUTOR:
        return QuestionTargetRole.TUTOR
    if role == UserRole.ASISTAN:
        return QuestionTargetRole.ASISTAN
    raise ValidationError("Only tutors and assistants submit weekly reports")


def _check_map(
    label: str,
    criteria: Mapping[str, object],
    allowed: set[str],
) -> dict[str, str]:
    out: dict[str, str] = {}
    for key, value in criteria.items():
        if key not in allowed:
            raise ValidationError(f"{label} contains an unknown or inactive question: {key}")
        try:
            out[key] = CriterionValue(value).value
        except ValueError as e:
            raise ValidationError(f"{label} has an invalid answer for {key}") from e
    return out


def validate_criteria(
    session: Session,
    *,
    role: UserRole,
    fixed_criteria: Optional[Mapping[str, object]],
    variable_criteria: Optional[Mapping[str, object]],
) -> tuple[Optional[dict[str, str]], Optional[dict[str, str]]]:
    """Check answers against the author's currently active questions.

    ``None`` passes through unchanged so partial edits keep the stored snapshot.
    """

    grouped = active_questions(session, target_role_for(role))
    fixed_ids = {q.id for q in grouped[QuestionType.FIXED]}
    variable_ids = {q.id for q in grouped[QuestionType.VARIABLE]}

    fixed = None if fixed_criteria is None else _check_map("fixedCriteria", fixed_criteria, fixed_ids)
    variable = (
        None if variable_criteria is None else _check_map("variableCriteria", variable_criteria, variable_ids)
    )
    return fixed, variable
