"""Membership lookups backing the permission resolver.

Session roles are free-form strings stored on participant rows. Three of them
carry meaning for authorization:

- ``ROLE_GM`` is the role the session creator is enrolled with; the privilege
  itself comes from ``GameSession.gm_id`` and does not depend on the row.
- ``ROLE_ADMIN`` grants game-master-level privilege for that session. A user
  holding it in any session is treated as a system administrator.
- ``ROLE_PLAYER`` is the role forced on self-enrollment.

The :mod:`tabletop.auth.permissions` module builds decisions on top of these
queries.
"""

from __future__ import annotations

from typing import Optional

from sqlmodel import Session, select

from ..models import SessionParticipant


ROLE_ADMIN = "admin"
ROLE_GM = "mj"
ROLE_PLAYER = "joueur"

__all__ = [
    "ROLE_ADMIN",
    "ROLE_GM",
    "ROLE_PLAYER",
    "get_participant",
    "is_participant",
    "is_session_admin",
    "is_system_admin",
]


def get_participant(session: Session, session_id: int, user_id: int) -> Optional[SessionParticipant]:
    """Return the participant row for ``user_id`` in ``session_id`` if any."""

    stmt = select(SessionParticipant).where(
        SessionParticipant.session_id == session_id,
        SessionParticipant.user_id == user_id,
    )
    return session.exec(stmt).first()


def is_participant(session: Session, session_id: int, user_id: Optional[int]) -> bool:
    if user_id is None:
        return False
    return get_participant(session, session_id, user_id) is not None


def is_session_admin(session: Session, session_id: int, user_id: Optional[int]) -> bool:
    if user_id is None:
        return False
    stmt = select(SessionParticipant.id).where(
        SessionParticipant.session_id == session_id,
        SessionParticipant.user_id == user_id,
        SessionParticipant.role == ROLE_ADMIN,
    )
    return session.exec(stmt).first() is not None


def is_system_admin(session: Session, user_id: Optional[int]) -> bool:
    """Return ``True`` when ``user_id`` holds the admin role in any session."""

    if user_id is None:
        return False
    stmt = select(SessionParticipant.id).where(
        SessionParticipant.user_id == user_id,
        SessionParticipant.role == ROLE_ADMIN,
    )
    return session.exec(stmt).first() is not None
