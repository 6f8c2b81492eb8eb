"""Session membership use cases."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from ..audit import record_participant_audit_log
from ..auth import get_participant
from ..auth.permissions import Action, require
from ..errors import ConflictError, NotFoundError, ValidationError
from ..models import Character, SessionParticipant, User
from .game_sessions import get_game_session_or_404
from .serializers import participant_detail


logger = logging.getLogger(__name__)

ALREADY_PARTICIPANT = "L'utilisateur est déjà participant à cette session"
CHARACTER_NOT_OWNED = "Personnage non trouvé ou n'appartient pas à l'utilisateur spécifié"


def get_participant_or_404(session: Session, participant_id: int) -> SessionParticipant:
    participant = session.get(SessionParticipant, participant_id)
    if participant is None:
        raise NotFoundError("Participant non trouvé")
    return participant


def _require_owned_character(session: Session, character_id: int, user_id: int) -> Character:
    character = session.get(Character, character_id)
    if character is None or character.user_id != user_id:
        raise NotFoundError(CHARACTER_NOT_OWNED)
    return character


def add_participant(
    session: Session,
    principal: Dict[str, Any],
    *,
    session_id: int,
    user_id: int,
    role: str,
    character_id: Optional[int] = None,
) -> SessionParticipant:
    """Enroll ``user_id`` in ``session_id``.

    Self-enrollment by anyone but the game-master is stored with the player
    role whatever ``role`` was requested. Duplicate enrollment is rejected by
    the (session, user) unique constraint.
    """

    game_session = get_game_session_or_404(session, session_id)
    decision = require(
        session,
        principal,
        Action.ADD_PARTICIPANT,
        game_session,
        context={"user_id": user_id, "role": role},
        message="Vous n'êtes pas autorisé à ajouter ce participant",
    )
    effective_role = decision.overrides.get("role", role)

    if session.get(User, user_id) is None:
        raise NotFoundError("Utilisateur non trouvé")
    if character_id is not None:
        _require_owned_character(session, character_id, user_id)
    if get_participant(session, game_session.id, user_id) is not None:
        raise ConflictError(ALREADY_PARTICIPANT)

    participant = SessionParticipant(
        session_id=game_session.id,
        user_id=user_id,
        character_id=character_id,
        role=effective_role,
    )
    session.add(participant)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        logger.info("Concurrent enrollment of user %s in session %s", user_id, session_id)
        raise ConflictError(ALREADY_PARTICIPANT)
    session.refresh(participant)
    if effective_role != role:
        logger.debug(
            "Self-enrollment of user %s in session %s narrowed role %r to %r",
            user_id,
            session_id,
            role,
            effective_role,
        )
    return participant


def list_participants(session: Session, principal: Dict[str, Any], session_id: int) -> List[Dict[str, Any]]:
    game_session = get_game_session_or_404(session, session_id)
    require(
        session,
        principal,
        Action.VIEW_PARTICIPANTS,
        game_session,
        message="Vous n'êtes pas autorisé à voir les participants de cette session",
    )
    rows = session.exec(
        select(SessionParticipant)
        .where(SessionParticipant.session_id == game_session.id)
        .order_by(SessionParticipant.id)
    ).all()
    return [participant_detail(session, row) for row in rows]


def update_participant(
    session: Session,
    principal: Dict[str, Any],
    participant_id: int,
    changes: Dict[str, Any],
) -> SessionParticipant:
    """Change the role and/or character of a participant row."""

    fields = {key for key in changes if key in ("role", "character_id")}
    if not fields:
        raise ValidationError("Au moins un champ à mettre à jour doit être fourni (role ou characterId)")
    if "role" in fields and not changes["role"]:
        raise ValidationError("Le rôle ne peut pas être vide")

    participant = get_participant_or_404(session, participant_id)
    require(
        session,
        principal,
        Action.UPDATE_PARTICIPANT,
        participant,
        context={"fields": fields},
        message="Vous n'êtes pas autorisé à modifier ce participant",
    )
    if "character_id" in fields and changes["character_id"] is not None:
        _require_owned_character(session, changes["character_id"], participant.user_id)

    previous_role = participant.role
    if "role" in fields:
        participant.role = changes["role"]
    if "character_id" in fields:
        participant.character_id = changes["character_id"]
    session.add(participant)
    if participant.role != previous_role:
        record_participant_audit_log(
            session,
            session_id=participant.session_id,
            user_id=participant.user_id,
            action="role_change",
            actor_user_id=principal["id"],
            details={"from": previous_role, "to": participant.role},
        )
    session.commit()
    session.refresh(participant)
    return participant


def _remove(session: Session, principal: Dict[str, Any], participant: SessionParticipant) -> None:
    require(
        session,
        principal,
        Action.REMOVE_PARTICIPANT,
        participant,
        message="Vous n'êtes pas autorisé à retirer ce participant",
    )
    record_participant_audit_log(
        session,
        session_id=participant.session_id,
        user_id=participant.user_id,
        action="remove",
        actor_user_id=principal["id"],
        details={"role": participant.role},
    )
    session.delete(participant)
    session.commit()


def remove_participant(session: Session, principal: Dict[str, Any], participant_id: int) -> None:
    participant = get_participant_or_404(session, participant_id)
    _remove(session, principal, participant)


def remove_session_participant(
    session: Session,
    principal: Dict[str, Any],
    session_id: int,
    participant_id: int,
) -> None:
    """Remove ``participant_id`` after checking it belongs to ``session_id``."""

    get_game_session_or_404(session, session_id)
    participant = session.get(SessionParticipant, participant_id)
    if participant is None or participant.session_id != session_id:
        raise NotFoundError("Participant non trouvé dans cette session")
    _remove(session, principal, participant)


def serialize_participant(session: Session, participant: SessionParticipant) -> Dict[str, Any]:
    return participant_detail(session, participant, with_session=True)


__all__ = [
    "add_participant",
    "list_participants",
    "update_participant",
    "remove_participant",
    "remove_session_participant",
    "serialize_participant",
]
