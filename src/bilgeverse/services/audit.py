from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import Request
from sqlmodel import Session

from bilgeverse.models.admin_audit_log import AdminAuditLog
from bilgeverse.models.user import User

logger = logging.getLogger(__name__)


def _client_meta(request: Optional[Request]) -> tuple[Optional[str], Optional[str]]:
    if request is None:
        return None, None
    client = getattr(request, "client", None)
    ip = getattr(client, "host", None)
    ua = request.headers.get("user-agent")
    return ip, ua


def record_admin_action(
    session: Session,
    *,
    actor: User,
    action: str,
    request: Optional[Request] = None,
    target_type: Optional[str] = None,
    target_id: Optional[str] = None,
    details: Any = None,
) -> None:
    """Queue an audit row on the caller's session; it commits with the action itself.

    Best-effort: a failure to build the row is logged and never blocks the admin action.
    """

    try:
        ip, ua = _client_meta(request)
        session.add(
            AdminAuditLog(
                actor_user_id=actor.id,
                actor_username=actor.username,
                action=action,
                target_type=target_type,
                target_id=target_id,
                ip=ip,
                user_agent=ua,
                details_json=AdminAuditLog.encode_details(details),
            )
        )
    except Exception:
        logger.warning("Could not record audit entry action=%s target=%s", action, target_id, exc_info=True)
