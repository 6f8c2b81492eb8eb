"""Audit log helper utilities."""

from __future__ import annotations

from typing import Any, Dict, Optional

from sqlmodel import Session, select

from .models import AuditLog


def record_audit_log(
    session: Session,
    *,
    entity_type: str,
    entity_id: Any,
    action: str,
    owner_user_id: Optional[int],
    actor_user_id: Optional[int] = None,
    details: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    """Persist an :class:`AuditLog` row in the current transaction."""

    log = AuditLog(
        entity_type=entity_type,
        entity_id=str(entity_id),
        action=action,
        owner_user_id=owner_user_id,
        actor_user_id=actor_user_id,
        details=details or {},
    )
    session.add(log)
    return log


def record_participant_audit_log(
    session: Session,
    *,
    session_id: int,
    user_id: int,
    action: str,
    actor_user_id: Optional[int],
    details: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    """Record an audit log entry for session membership changes."""

    payload: Dict[str, Any] = {"session_id": session_id, "user_id": user_id}
    if details:
        payload.update(details)

    return record_audit_log(
        session,
        entity_type="session_participant",
        entity_id=f"{session_id}:{user_id}",
        action=action,
        owner_user_id=user_id,
        actor_user_id=actor_user_id,
        details=payload,
    )


def list_audit_logs(session: Session, *, entity_type: Optional[str] = None) -> list[AuditLog]:
    stmt = select(AuditLog)
    if entity_type:
        stmt = stmt.where(AuditLog.entity_type == entity_type)
    return list(session.exec(stmt.order_by(AuditLog.id)).all())
