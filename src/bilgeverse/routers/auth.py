from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlmodel import Session, select

from bilgeverse.core.security import create_access_token, verify_password
from bilgeverse.db import get_session
from bilgeverse.models.user import RefreshedSession, SessionUser, User, UserPublic, UserRef
from bilgeverse.routers.deps import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])

_NO_CACHE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, proxy-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


def _session_user(session: Session, user: User) -> SessionUser:
    tutor = session.get(User, user.tutor_id) if user.tutor_id else None
    return SessionUser(
        user=UserPublic.model_validate(user),
        tutor=UserRef.model_validate(tutor) if tutor else None,
    )


@router.post("/login")
def login(
    form: OAuth2PasswordRequestForm = Depends(),
    session: Session = Depends(get_session),
):
    user = session.exec(select(User).where(User.username == form.username)).first()
    if not user or not verify_password(form.password, user.hashed_password):
        logger.info("Failed login for username=%s", form.username)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid username or password")

    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account disabled")

    token = create_access_token(subject=user.id, role=user.role.value)
    return {"access_token": token, "token_type": "bearer", "role": user.role.value}


@router.get("/me", response_model=SessionUser)
def me(session: Session = Depends(get_session), user: User = Depends(get_current_user)):
    return _session_user(session, user)


@router.post("/refresh", response_model=RefreshedSession)
def refresh(
    response: Response,
    session: Session = Depends(get_session),
    user: User = Depends(get_current_user),
):
    """Re-read the caller's row after destructive operations (e.g. a period reset)."""

    for k, v in _NO_CACHE_HEADERS.items():
        response.headers[k] = v
    current = _session_user(session, user)
    token = create_access_token(subject=user.id, role=user.role.value)
    return RefreshedSession(user=current.user, tutor=current.tutor, access_token=token)
