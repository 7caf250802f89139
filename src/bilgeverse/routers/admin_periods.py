from __future__ import annotations

from fastapi import APIRouter, Body, Depends, Query, Request, status
from sqlmodel import Session

from bilgeverse.db import get_session
from bilgeverse.models.period import (
    PeriodActivate,
    PeriodActivation,
    PeriodCreate,
    PeriodPublic,
    PeriodStatus,
    PeriodUpdate,
)
from bilgeverse.models.user import User
from bilgeverse.routers.deps import get_current_admin_user, get_current_user
from bilgeverse.services import periods
from bilgeverse.services.audit import record_admin_action

router = APIRouter(prefix="/api/admin/periods", tags=["admin", "periods"])


@router.get("", response_model=dict[str, list[PeriodPublic]])
def list_periods(
    status_filter: PeriodStatus | None = Query(None, alias="status"),
    session: Session = Depends(get_session),
    _admin: User = Depends(get_current_admin_user),
):
    return {"periods": periods.list_periods(session, status=status_filter)}


@router.post("", response_model=dict[str, PeriodPublic], status_code=status.HTTP_201_CREATED)
def create_period(
    payload: PeriodCreate,
    session: Session = Depends(get_session),
    _admin: User = Depends(get_current_admin_user),
):
    period = periods.create_period(session, payload)
    session.commit()
    session.refresh(period)
    return {"period": periods.with_counts(session, period)}


# Declared before "/{period_id}" so "active" is not taken for an id.
@router.get("/active", response_model=dict[str, PeriodPublic])
def get_active_period(
    session: Session = Depends(get_session),
    _user: User = Depends(get_current_user),
):
    period = periods.require_active_period(session)
    return {"period": periods.with_counts(session, period)}


@router.get("/{period_id}", response_model=dict[str, PeriodPublic])
def get_period(
    period_id: str,
    session: Session = Depends(get_session),
    _admin: User = Depends(get_current_admin_user),
):
    period = periods.get_period(session, period_id)
    return {"period": periods.with_counts(session, period)}


@router.put("/{period_id}", response_model=dict[str, PeriodPublic])
def update_period(
    period_id: str,
    payload: PeriodUpdate,
    request: Request,
    session: Session = Depends(get_session),
    admin: User = Depends(get_current_admin_user),
):
    period = periods.get_period(session, period_id)
    periods.update_period(session, period, payload)
    record_admin_action(
        session,
        actor=admin,
        action="period.update",
        request=request,
        target_type="period",
        target_id=period.id,
        details=payload.model_dump(mode="json", exclude_unset=True),
    )
    session.commit()
    session.refresh(period)
    return {"period": periods.with_counts(session, period)}


@router.post("/{period_id}/activate", response_model=PeriodActivation)
def activate_period(
    period_id: str,
    request: Request,
    payload: PeriodActivate | None = Body(default=None),
    session: Session = Depends(get_session),
    admin: User = Depends(get_current_admin_user),
):
    reset_data = True if payload is None else payload.reset_data
    period, reset_users = periods.activate_period(session, period_id, reset_data=reset_data, actor_id=admin.id)
    record_admin_action(
        session,
        actor=admin,
        action="period.activate",
        request=request,
        target_type="period",
        target_id=period.id,
        details={"reset_data": reset_data, "reset_users": reset_users},
    )
    session.commit()
    session.refresh(period)

    message = f'Period "{period.name}" activated successfully' + (" and user data reset" if reset_data else "")
    return PeriodActivation(
        period=periods.with_counts(session, period),
        reset_data=reset_data,
        reset_users=reset_users,
        message=message,
    )


@router.delete("/{period_id}")
def delete_period(
    period_id: str,
    request: Request,
    cascade: bool = Query(False),
    session: Session = Depends(get_session),
    admin: User = Depends(get_current_admin_user),
):
    period = periods.get_period(session, period_id)
    name = period.name
    counts = periods.delete_period(session, period, cascade=cascade, actor_id=admin.id)
    record_admin_action(
        session,
        actor=admin,
        action="period.delete",
        request=request,
        target_type="period",
        target_id=period_id,
        details={"name": name, "cascade": cascade, "counts": counts.model_dump()},
    )
    session.commit()
    return {"message": "Period deleted successfully", "deleted": True, "counts": counts}
