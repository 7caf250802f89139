from __future__ import annotations

import logging

from sqlmodel import Session, select

from bilgeverse.core.config import get_settings
from bilgeverse.core.security import hash_password
from bilgeverse.models.user import User, UserRole

logger = logging.getLogger(__name__)


def ensure_admin_user(session: Session) -> None:
    """Create or repair the bootstrap administrator; the caller commits.

    Driven by ADMIN_USERNAME / ADMIN_PASSWORD; skipped when no password is set.
    """

    s = get_settings()
    username = (getattr(s, "admin_username", "") or "").strip()
    password = getattr(s, "admin_password", "")

    if not username or not password:
        return

    exists = session.exec(select(User).where(User.username == username)).first()
    if exists:
        changed = False
        if exists.role != UserRole.ADMIN:
            exists.role = UserRole.ADMIN
            changed = True
        if not exists.is_active:
            exists.is_active = True
            changed = True
        if changed:
            logger.warning("Bootstrap admin %s restored to active ADMIN", username)
            session.add(exists)
        return

    session.add(
        User(
            username=username,
            hashed_password=hash_password(password),
            role=UserRole.ADMIN,
        )
    )
    logger.info("Created bootstrap admin %s", username)
