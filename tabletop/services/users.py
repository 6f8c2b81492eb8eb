"""User accounts: registration, login and account management."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from ..audit import record_audit_log
from ..auth.passwords import check_password_length, hash_password, verify_password
from ..auth.permissions import Action, require
from ..auth.tokens import create_access_token
from ..errors import ConflictError, NotFoundError, UnauthenticatedError, ValidationError
from ..models import Character, DiceRoll, GameSession, SessionParticipant, User
from ..observability.metrics import increment_user_login
from .characters import purge_character
from .game_sessions import purge_session
from .serializers import character_out, session_out, session_summary, user_out


logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Email ou mot de passe incorrect"


def get_user_or_404(session: Session, user_id: int) -> User:
    user = session.get(User, user_id)
    if user is None:
        raise NotFoundError("Utilisateur non trouvé")
    return user


def _ensure_unique(
    session: Session,
    *,
    username: Optional[str] = None,
    email: Optional[str] = None,
    exclude_id: Optional[int] = None,
) -> None:
    if username is not None:
        stmt = select(User.id).where(User.username == username)
        if exclude_id is not None:
            stmt = stmt.where(User.id != exclude_id)
        if session.exec(stmt).first() is not None:
            raise ConflictError("Ce nom d'utilisateur est déjà utilisé")
    if email is not None:
        stmt = select(User.id).where(User.email == email)
        if exclude_id is not None:
            stmt = stmt.where(User.id != exclude_id)
        if session.exec(stmt).first() is not None:
            raise ConflictError("Cet email est déjà utilisé")


def _commit_user(session: Session, user: User) -> User:
    session.add(user)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise ConflictError("Cet utilisateur ou cet email existe déjà")
    session.refresh(user)
    return user


def _clean_identity(username: Optional[str], email: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    """Strip ``username`` and ``email``; a blank value is rejected, ``None`` is kept."""

    if username is not None:
        username = username.strip()
        if not username:
            raise ValidationError("Le nom d'utilisateur ne peut pas être vide")
    if email is not None:
        email = email.strip()
        if not email:
            raise ValidationError("L'email ne peut pas être vide")
    return username, email


def register(session: Session, *, username: str, email: str, password: str) -> Tuple[User, str]:
    """Create an account and return it with a fresh access token."""

    username, email = _clean_identity(username, email)
    check_password_length(password)
    _ensure_unique(session, username=username, email=email)
    user = _commit_user(
        session,
        User(username=username, email=email, password_hash=hash_password(password)),
    )
    logger.info("Registered user %s", user.id)
    return user, create_access_token(user)


def login(session: Session, *, email: str, password: str) -> Tuple[User, str]:
    user = session.exec(select(User).where(User.email == email.strip())).first()
    if user is None or not verify_password(password, user.password_hash):
        logger.info("Rejected login attempt")
        raise UnauthenticatedError(INVALID_CREDENTIALS)
    increment_user_login()
    logger.info("User %s logged in", user.id)
    return user, create_access_token(user)


def get_user(session: Session, principal: Dict[str, Any], user_id: int) -> Dict[str, Any]:
    user = get_user_or_404(session, user_id)
    require(
        session,
        principal,
        Action.VIEW_USER,
        user,
        message="Vous n'êtes pas autorisé à voir cet utilisateur",
    )
    data = user_out(user)
    characters = session.exec(select(Character).where(Character.user_id == user.id).order_by(Character.id)).all()
    data["characters"] = [character_out(c) for c in characters]
    gm_sessions = session.exec(
        select(GameSession).where(GameSession.gm_id == user.id).order_by(GameSession.id)
    ).all()
    data["gmSessions"] = [session_out(s) for s in gm_sessions]
    participations = session.exec(
        select(SessionParticipant).where(SessionParticipant.user_id == user.id).order_by(SessionParticipant.id)
    ).all()
    data["participations"] = [
        {
            "id": p.id,
            "role": p.role,
            "characterId": p.character_id,
            "session": session_summary(session.get(GameSession, p.session_id)),
        }
        for p in participations
    ]
    return data


def list_users(session: Session, principal: Dict[str, Any]) -> List[Dict[str, Any]]:
    require(
        session,
        principal,
        Action.LIST_USERS,
        message="Vous n'êtes pas autorisé à lister les utilisateurs",
    )
    items = []
    for user in session.exec(select(User).order_by(User.id)).all():
        data = user_out(user)
        data["_count"] = {
            "characters": int(
                session.exec(select(func.count(Character.id)).where(Character.user_id == user.id)).one() or 0
            ),
            "gmSessions": int(
                session.exec(select(func.count(GameSession.id)).where(GameSession.gm_id == user.id)).one() or 0
            ),
            "participations": int(
                session.exec(
                    select(func.count(SessionParticipant.id)).where(SessionParticipant.user_id == user.id)
                ).one()
                or 0
            ),
        }
        items.append(data)
    return items


def update_user(
    session: Session,
    principal: Dict[str, Any],
    user_id: int,
    changes: Dict[str, Any],
) -> User:
    """Update username, email and/or password of ``user_id``."""

    user = get_user_or_404(session, user_id)
    require(
        session,
        principal,
        Action.UPDATE_USER,
        user,
        message="Vous n'êtes pas autorisé à modifier cet utilisateur",
    )
    username, email = _clean_identity(changes.get("username"), changes.get("email"))
    password = changes.get("password")
    if password:
        check_password_length(password)
    _ensure_unique(
        session,
        username=username if username and username != user.username else None,
        email=email if email and email != user.email else None,
        exclude_id=user.id,
    )
    if username:
        user.username = username
    if email:
        user.email = email
    if password:
        user.password_hash = hash_password(password)
    return _commit_user(session, user)


def delete_user(session: Session, principal: Dict[str, Any], user_id: int) -> None:
    """Delete ``user_id`` and everything hanging off the account.

    Order: participant rows, dice rolls, owned characters, sessions the user
    runs as game-master, then the user row. One commit covers the whole
    cascade.
    """

    user = get_user_or_404(session, user_id)
    require(
        session,
        principal,
        Action.DELETE_USER,
        user,
        message="Vous n'êtes pas autorisé à supprimer cet utilisateur",
    )
    record_audit_log(
        session,
        entity_type="user",
        entity_id=user.id,
        action="delete",
        owner_user_id=user.id,
        actor_user_id=principal["id"],
        details={"username": user.username},
    )
    try:
        for participant in session.exec(
            select(SessionParticipant).where(SessionParticipant.user_id == user.id)
        ).all():
            session.delete(participant)
        session.flush()
        for dice_roll in session.exec(select(DiceRoll).where(DiceRoll.user_id == user.id)).all():
            session.delete(dice_roll)
        session.flush()
        for character in session.exec(select(Character).where(Character.user_id == user.id)).all():
            purge_character(session, character)
        for game_session in session.exec(select(GameSession).where(GameSession.gm_id == user.id)).all():
            purge_session(session, game_session)
        session.delete(user)
        session.commit()
    except Exception:
        session.rollback()
        raise
    logger.info("User %s deleted user %s", principal["id"], user_id)
