"""Character use cases."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from sqlmodel import Session, select

from ..audit import record_audit_log
from ..auth import ROLE_PLAYER, get_participant
from ..auth.permissions import Action, require
from ..errors import NotFoundError
from ..models import Character, DiceRoll, GameSession, SessionParticipant, User
from .game_sessions import get_game_session_or_404
from .serializers import (
    character_out,
    dice_roll_out,
    session_summary,
    user_summary,
)


logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = (
    "name",
    "race",
    "character_class",
    "level",
    "background",
    "inventory",
    "stats",
    "is_alive",
    "session_id",
)
# Columns that cannot be cleared through a partial update.
NON_NULLABLE_FIELDS = frozenset({"name", "race", "character_class", "level", "is_alive"})


def get_character_or_404(session: Session, character_id: int) -> Character:
    character = session.get(Character, character_id)
    if character is None:
        raise NotFoundError("Personnage non trouvé")
    return character


def create_character(
    session: Session,
    principal: Dict[str, Any],
    *,
    name: str,
    race: str,
    character_class: str,
    level: int,
    background: Optional[str] = None,
    inventory: Any = None,
    stats: Any = None,
) -> Character:
    require(session, principal, Action.CREATE_CHARACTER)
    character = Character(
        name=name,
        race=race,
        character_class=character_class,
        level=level,
        background=background,
        inventory=inventory,
        stats=stats,
        user_id=principal["id"],
    )
    session.add(character)
    session.commit()
    session.refresh(character)
    return character


def get_character(session: Session, principal: Dict[str, Any], character_id: int) -> Dict[str, Any]:
    character = get_character_or_404(session, character_id)
    require(
        session,
        principal,
        Action.VIEW_CHARACTER,
        character,
        message="Vous n'êtes pas autorisé à voir ce personnage",
    )
    return serialize_character_detail(session, character)


def serialize_character_detail(session: Session, character: Character) -> Dict[str, Any]:
    data = character_out(character)
    data["user"] = user_summary(session.get(User, character.user_id), with_email=False)
    game_session = session.get(GameSession, character.session_id) if character.session_id else None
    data["session"] = session_summary(game_session)
    rolls = session.exec(
        select(DiceRoll)
        .where(DiceRoll.character_id == character.id)
        .order_by(DiceRoll.timestamp.desc(), DiceRoll.id.desc())
    ).all()
    data["diceRolls"] = [dice_roll_out(r) for r in rolls]
    participations = session.exec(
        select(SessionParticipant).where(SessionParticipant.character_id == character.id)
    ).all()
    data["participations"] = [
        {
            "id": p.id,
            "role": p.role,
            "session": session_summary(session.get(GameSession, p.session_id)),
        }
        for p in participations
    ]
    return data


def list_characters(
    session: Session,
    principal: Dict[str, Any],
    *,
    user_id: Optional[int] = None,
) -> List[Character]:
    """Return the characters of ``user_id`` (the principal by default)."""

    target_id = principal["id"] if user_id is None else user_id
    require(
        session,
        principal,
        Action.LIST_USER_CHARACTERS,
        context={"user_id": target_id},
        message="Vous n'êtes pas autorisé à voir les personnages de cet utilisateur",
    )
    stmt = select(Character).where(Character.user_id == target_id).order_by(Character.id)
    return list(session.exec(stmt).all())


def list_session_characters(session: Session, principal: Dict[str, Any], session_id: int) -> List[Dict[str, Any]]:
    game_session = get_game_session_or_404(session, session_id)
    require(
        session,
        principal,
        Action.VIEW_SESSION_CHARACTERS,
        game_session,
        message="Vous n'êtes pas autorisé à voir les personnages de cette session",
    )
    characters = session.exec(
        select(Character).where(Character.session_id == game_session.id).order_by(Character.id)
    ).all()
    items = []
    for character in characters:
        data = character_out(character)
        data["user"] = user_summary(session.get(User, character.user_id), with_email=False)
        items.append(data)
    return items


def update_character(
    session: Session,
    principal: Dict[str, Any],
    character_id: int,
    changes: Dict[str, Any],
) -> Character:
    """Apply a partial update; only keys present in ``changes`` are touched."""

    character = get_character_or_404(session, character_id)
    fields = {key for key in changes if key in UPDATABLE_FIELDS}
    target_session_id = changes.get("session_id")
    if "session_id" in fields and target_session_id is not None:
        get_game_session_or_404(session, target_session_id)
    require(
        session,
        principal,
        Action.UPDATE_CHARACTER,
        character,
        context={"fields": fields},
        message="Vous n'êtes pas autorisé à modifier ce personnage",
    )

    for key in UPDATABLE_FIELDS:
        if key not in fields:
            continue
        value = changes[key]
        if value is None and key in NON_NULLABLE_FIELDS:
            continue
        setattr(character, key, value)
    session.add(character)
    session.commit()
    session.refresh(character)
    return character


def purge_character(session: Session, character: Character) -> None:
    """Remove rows referencing ``character`` and the character itself."""

    for participant in session.exec(
        select(SessionParticipant).where(SessionParticipant.character_id == character.id)
    ).all():
        session.delete(participant)
    session.flush()
    for roll in session.exec(select(DiceRoll).where(DiceRoll.character_id == character.id)).all():
        session.delete(roll)
    session.flush()
    session.delete(character)
    session.flush()


def delete_character(session: Session, principal: Dict[str, Any], character_id: int) -> None:
    character = get_character_or_404(session, character_id)
    require(
        session,
        principal,
        Action.DELETE_CHARACTER,
        character,
        message="Vous n'êtes pas autorisé à supprimer ce personnage",
    )
    record_audit_log(
        session,
        entity_type="character",
        entity_id=character.id,
        action="delete",
        owner_user_id=character.user_id,
        actor_user_id=principal["id"],
        details={"name": character.name},
    )
    try:
        purge_character(session, character)
        session.commit()
    except Exception:
        session.rollback()
        raise
    logger.info("User %s deleted character %s", principal["id"], character_id)


def assign_session(
    session: Session,
    principal: Dict[str, Any],
    character_id: int,
    session_id: Optional[int],
) -> Character:
    """Attach ``character_id`` to ``session_id``, or detach it when ``None``.

    Attaching also records the character on the principal's participant row,
    creating a player row when the principal has none yet.
    """

    character = get_character_or_404(session, character_id)
    target = get_game_session_or_404(session, session_id) if session_id is not None else None
    require(
        session,
        principal,
        Action.ASSIGN_CHARACTER_SESSION,
        character,
        context={"target_session": target},
        message="Vous n'êtes pas autorisé à assigner ce personnage à cette session",
    )

    character.session_id = target.id if target is not None else None
    session.add(character)
    if target is not None:
        participant = get_participant(session, target.id, principal["id"])
        if participant is None:
            participant = SessionParticipant(
                session_id=target.id,
                user_id=principal["id"],
                role=ROLE_PLAYER,
            )
        participant.character_id = character.id
        session.add(participant)
    session.commit()
    session.refresh(character)
    return character
