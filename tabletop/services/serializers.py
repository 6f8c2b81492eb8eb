"""Response shaping shared by the resource services."""

from __future__ import annotations

from typing import Any, Dict, Optional

from sqlmodel import Session

from ..models import Character, DiceRoll, GameSession, SessionParticipant, User
from ..schemas import (
    CharacterOut,
    CharacterSummary,
    DiceRollOut,
    ParticipantOut,
    SessionOut,
    SessionSummary,
    UserOut,
    UserSummary,
)


def user_summary(user: Optional[User], *, with_email: bool = True) -> Optional[Dict[str, Any]]:
    if user is None:
        return None
    data = UserSummary(id=user.id, username=user.username, email=user.email if with_email else None).dump()
    if not with_email:
        data.pop("email", None)
    return data


def user_out(user: User) -> Dict[str, Any]:
    return UserOut(
        id=user.id,
        username=user.username,
        email=user.email,
        created_at=user.created_at,
    ).dump()


def character_summary(character: Optional[Character]) -> Optional[Dict[str, Any]]:
    if character is None:
        return None
    return CharacterSummary(
        id=character.id,
        name=character.name,
        race=character.race,
        character_class=character.character_class,
        level=character.level,
    ).dump()


def character_out(character: Character) -> Dict[str, Any]:
    return CharacterOut(
        id=character.id,
        name=character.name,
        race=character.race,
        character_class=character.character_class,
        level=character.level,
        background=character.background,
        inventory=character.inventory,
        stats=character.stats,
        is_alive=character.is_alive,
        user_id=character.user_id,
        session_id=character.session_id,
    ).dump()


def session_summary(game_session: Optional[GameSession]) -> Optional[Dict[str, Any]]:
    if game_session is None:
        return None
    return SessionSummary(
        id=game_session.id,
        title=game_session.title,
        status=game_session.status,
        scheduled_at=game_session.scheduled_at,
    ).dump()


def session_out(game_session: GameSession) -> Dict[str, Any]:
    return SessionOut(
        id=game_session.id,
        title=game_session.title,
        description=game_session.description,
        scheduled_at=game_session.scheduled_at,
        status=game_session.status,
        gm_id=game_session.gm_id,
    ).dump()


def participant_out(participant: SessionParticipant) -> Dict[str, Any]:
    return ParticipantOut(
        id=participant.id,
        session_id=participant.session_id,
        user_id=participant.user_id,
        character_id=participant.character_id,
        role=participant.role,
    ).dump()


def participant_detail(session: Session, participant: SessionParticipant, *, with_session: bool = False) -> Dict[str, Any]:
    data = participant_out(participant)
    data["user"] = user_summary(session.get(User, participant.user_id))
    character = session.get(Character, participant.character_id) if participant.character_id else None
    data["character"] = character_summary(character)
    if with_session:
        game_session = session.get(GameSession, participant.session_id)
        data["session"] = session_summary(game_session)
    return data


def dice_roll_out(roll: DiceRoll) -> Dict[str, Any]:
    return DiceRollOut(
        id=roll.id,
        expression=roll.expression,
        result=roll.result,
        rolls=list(roll.rolls or []),
        modifier=roll.modifier,
        timestamp=roll.timestamp,
        user_id=roll.user_id,
        session_id=roll.session_id,
        character_id=roll.character_id,
    ).dump()


def dice_roll_detail(session: Session, roll: DiceRoll) -> Dict[str, Any]:
    data = dice_roll_out(roll)
    data["user"] = user_summary(session.get(User, roll.user_id), with_email=False)
    character = session.get(Character, roll.character_id) if roll.character_id else None
    data["character"] = {"id": character.id, "name": character.name} if character else None
    return data
