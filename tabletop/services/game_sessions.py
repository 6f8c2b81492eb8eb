"""Game session use cases."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlmodel import Session, select

from ..audit import record_audit_log
from ..auth import ROLE_GM
from ..auth.permissions import Action, require
from ..errors import NotFoundError
from ..models import Character, DiceRoll, GameSession, SessionParticipant, User
from .serializers import (
    character_summary,
    dice_roll_detail,
    participant_detail,
    session_out,
    user_summary,
)


logger = logging.getLogger(__name__)

DEFAULT_STATUS = "planifiée"
RECENT_ROLLS_LIMIT = 20


def get_game_session_or_404(session: Session, session_id: int) -> GameSession:
    game_session = session.get(GameSession, session_id)
    if game_session is None:
        raise NotFoundError("Session non trouvée")
    return game_session


def create_session(
    session: Session,
    principal: Dict[str, Any],
    *,
    title: str,
    description: Optional[str] = None,
    scheduled_at: Optional[datetime] = None,
    status: Optional[str] = None,
) -> GameSession:
    """Create a session run by ``principal`` and enroll them as game-master."""

    require(session, principal, Action.CREATE_SESSION)
    game_session = GameSession(
        title=title,
        description=description,
        scheduled_at=scheduled_at,
        status=status or DEFAULT_STATUS,
        gm_id=principal["id"],
    )
    session.add(game_session)
    session.flush()
    session.add(
        SessionParticipant(
            session_id=game_session.id,
            user_id=principal["id"],
            role=ROLE_GM,
        )
    )
    session.commit()
    session.refresh(game_session)
    logger.info("User %s created session %s", principal["id"], game_session.id)
    return game_session


def get_session_detail(session: Session, principal: Optional[Dict[str, Any]], session_id: int) -> Dict[str, Any]:
    game_session = get_game_session_or_404(session, session_id)
    require(session, principal, Action.VIEW_SESSION, game_session)
    return serialize_session_detail(session, game_session)


def serialize_session_detail(session: Session, game_session: GameSession) -> Dict[str, Any]:
    data = session_out(game_session)
    data["gm"] = user_summary(session.get(User, game_session.gm_id))
    participants = session.exec(
        select(SessionParticipant)
        .where(SessionParticipant.session_id == game_session.id)
        .order_by(SessionParticipant.id)
    ).all()
    data["participants"] = [participant_detail(session, p) for p in participants]
    characters = session.exec(
        select(Character).where(Character.session_id == game_session.id).order_by(Character.id)
    ).all()
    data["characters"] = [character_summary(c) for c in characters]
    rolls = session.exec(
        select(DiceRoll)
        .where(DiceRoll.session_id == game_session.id)
        .order_by(DiceRoll.timestamp.desc(), DiceRoll.id.desc())
        .limit(RECENT_ROLLS_LIMIT)
    ).all()
    data["diceRolls"] = [dice_roll_detail(session, r) for r in rolls]
    return data


def list_sessions(
    session: Session,
    principal: Optional[Dict[str, Any]],
    *,
    status: Optional[str] = None,
    gm_id: Optional[int] = None,
    title: Optional[str] = None,
) -> List[Dict[str, Any]]:
    require(session, principal, Action.LIST_SESSIONS)

    stmt = select(GameSession)
    if status:
        stmt = stmt.where(GameSession.status == status)
    if gm_id is not None:
        stmt = stmt.where(GameSession.gm_id == gm_id)
    if title:
        stmt = stmt.where(func.lower(GameSession.title).like(f"%{title.lower()}%"))
    # NULL schedules sort last on every backend
    stmt = stmt.order_by(GameSession.scheduled_at.is_(None), GameSession.scheduled_at, GameSession.id)
    rows = session.exec(stmt).all()

    items = []
    for game_session in rows:
        data = session_out(game_session)
        data["gm"] = user_summary(session.get(User, game_session.gm_id), with_email=False)
        participants = session.exec(
            select(SessionParticipant)
            .where(SessionParticipant.session_id == game_session.id)
            .order_by(SessionParticipant.id)
        ).all()
        data["participants"] = [participant_detail(session, p) for p in participants]
        character_count = session.exec(
            select(func.count(Character.id)).where(Character.session_id == game_session.id)
        ).one()
        roll_count = session.exec(
            select(func.count(DiceRoll.id)).where(DiceRoll.session_id == game_session.id)
        ).one()
        data["_count"] = {"characters": int(character_count or 0), "diceRolls": int(roll_count or 0)}
        items.append(data)
    return items


def update_session(
    session: Session,
    principal: Dict[str, Any],
    session_id: int,
    changes: Dict[str, Any],
) -> GameSession:
    """Apply ``changes`` (keys: title, description, scheduled_at, status)."""

    game_session = get_game_session_or_404(session, session_id)
    require(
        session,
        principal,
        Action.UPDATE_SESSION,
        game_session,
        message="Vous n'êtes pas autorisé à modifier cette session",
    )
    for key in ("title", "description", "scheduled_at", "status"):
        if key in changes:
            value = changes[key]
            if key in ("title", "status") and value is None:
                continue
            setattr(game_session, key, value)
    session.add(game_session)
    session.commit()
    session.refresh(game_session)
    return game_session


def purge_session(session: Session, game_session: GameSession) -> None:
    """Remove dependent rows of ``game_session`` and the session itself.

    Participants go first, then dice rolls, then attached characters are
    detached. Nothing is committed here.
    """

    for participant in session.exec(
        select(SessionParticipant).where(SessionParticipant.session_id == game_session.id)
    ).all():
        session.delete(participant)
    session.flush()
    for roll in session.exec(select(DiceRoll).where(DiceRoll.session_id == game_session.id)).all():
        session.delete(roll)
    session.flush()
    for character in session.exec(select(Character).where(Character.session_id == game_session.id)).all():
        character.session_id = None
        session.add(character)
    session.flush()
    session.delete(game_session)
    session.flush()


def delete_session(session: Session, principal: Dict[str, Any], session_id: int) -> None:
    game_session = get_game_session_or_404(session, session_id)
    require(
        session,
        principal,
        Action.DELETE_SESSION,
        game_session,
        message="Vous n'êtes pas autorisé à supprimer cette session",
    )
    record_audit_log(
        session,
        entity_type="game_session",
        entity_id=game_session.id,
        action="delete",
        owner_user_id=game_session.gm_id,
        actor_user_id=principal["id"],
        details={"title": game_session.title},
    )
    try:
        purge_session(session, game_session)
        session.commit()
    except Exception:
        session.rollback()
        raise
    logger.info("User %s deleted session %s", principal["id"], session_id)
