from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request, status
from sqlmodel import Session, select

from bilgeverse.core.config import get_settings
from bilgeverse.core.errors import NotFoundError, ValidationError
from bilgeverse.core.security import hash_password
from bilgeverse.db import get_session
from bilgeverse.models.user import AdminUserUpdate, User, UserCreate, UserPublic, UserRole
from bilgeverse.routers.deps import get_current_admin_user
from bilgeverse.services.audit import record_admin_action

router = APIRouter(prefix="/api/admin/users", tags=["admin"])


def _get_user(session: Session, user_id: str) -> User:
    user = session.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    return user


def _check_tutor(session: Session, tutor_id: str | None) -> None:
    if not tutor_id:
        return
    tutor = session.get(User, tutor_id)
    if not tutor or tutor.role != UserRole.TUTOR:
        raise ValidationError("Assigned tutor must be an existing tutor")


@router.get("", response_model=list[UserPublic])
def list_users(
    role: UserRole | None = Query(None),
    session: Session = Depends(get_session),
    _admin: User = Depends(get_current_admin_user),
):
    stmt = select(User)
    if role:
        stmt = stmt.where(User.role == role)
    return list(session.exec(stmt.order_by(User.created_at.desc())))


@router.get("/{user_id}", response_model=UserPublic)
def get_user(
    user_id: str,
    session: Session = Depends(get_session),
    _admin: User = Depends(get_current_admin_user),
):
    return _get_user(session, user_id)


@router.post("", response_model=UserPublic, status_code=status.HTTP_201_CREATED)
def create_user(
    payload: UserCreate,
    request: Request,
    session: Session = Depends(get_session),
    admin: User = Depends(get_current_admin_user),
):
    username = payload.username.strip()
    if session.exec(select(User).where(User.username == username)).first():
        raise ValidationError("Username already exists")
    _check_tutor(session, payload.tutor_id)

    user = User(
        username=username,
        hashed_password=hash_password(payload.password),
        role=payload.role,
        first_name=payload.first_name,
        last_name=payload.last_name,
        tutor_id=payload.tutor_id,
    )
    session.add(user)
    session.flush()
    record_admin_action(
        session,
        actor=admin,
        action="admin_user.create",
        request=request,
        target_type="user",
        target_id=user.id,
        details={"username": user.username, "role": user.role.value},
    )
    session.commit()
    session.refresh(user)
    return user


@router.put("/{user_id}", response_model=UserPublic)
def update_user(
    user_id: str,
    payload: AdminUserUpdate,
    request: Request,
    session: Session = Depends(get_session),
    admin: User = Depends(get_current_admin_user),
):
    user = _get_user(session, user_id)

    bootstrap_username = (get_settings().admin_username or "").strip()
    is_bootstrap_admin = bool(bootstrap_username) and user.username == bootstrap_username

    before = {
        "first_name": user.first_name,
        "last_name": user.last_name,
        "role": user.role.value,
        "tutor_id": user.tutor_id,
        "is_active": bool(user.is_active),
    }
    data = payload.model_dump(exclude_unset=True)

    if "first_name" in data:
        user.first_name = data["first_name"]
    if "last_name" in data:
        user.last_name = data["last_name"]
    if "tutor_id" in data:
        _check_tutor(session, data["tutor_id"])
        user.tutor_id = data["tutor_id"]

    if data.get("is_active") is not None:
        if data["is_active"] is False:
            if user.id == admin.id:
                raise ValidationError("You cannot disable your own account")
            if is_bootstrap_admin:
                raise ValidationError("The bootstrap administrator cannot be disabled")
        user.is_active = bool(data["is_active"])

    if data.get("role") is not None and data["role"] != user.role:
        if user.role == UserRole.ADMIN:
            if user.id == admin.id:
                raise ValidationError("You cannot remove your own admin role")
            if is_bootstrap_admin:
                raise ValidationError("The bootstrap administrator must stay an admin")
        user.role = data["role"]

    # At least one usable admin must remain after any change.
    if before["role"] == UserRole.ADMIN.value and (user.role != UserRole.ADMIN or not user.is_active):
        active_admins = session.exec(
            select(User).where(User.role == UserRole.ADMIN).where(User.is_active == True)  # noqa: E712
        ).all()
        if not any(a.id != user.id for a in active_admins):
            raise ValidationError("At least one active admin is required")

    if data.get("password"):
        user.hashed_password = hash_password(data["password"])

    after = {
        "first_name": user.first_name,
        "last_name": user.last_name,
        "role": user.role.value,
        "tutor_id": user.tutor_id,
        "is_active": bool(user.is_active),
    }
    changes = {k: {"from": before[k], "to": after[k]} for k in before if before[k] != after[k]}
    if data.get("password"):
        changes["password"] = {"from": "***", "to": "***"}

    if changes:
        action = "admin_user.update"
        if "role" in changes:
            action = "admin_user.change_role"
        elif "is_active" in changes:
            action = "admin_user.disable" if after["is_active"] is False else "admin_user.enable"
        record_admin_action(
            session,
            actor=admin,
            action=action,
            request=request,
            target_type="user",
            target_id=user.id,
            details={"changes": changes},
        )

    session.add(user)
    session.commit()
    session.refresh(user)
    return user
