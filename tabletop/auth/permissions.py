"""Per-resource authorization decisions.

Every decision is re-derived from relational data on each call: the resolver
keeps no state between calls and caches nothing. Resource operations call
:func:`require` after confirming the resource exists and before mutating or
returning it.

Flags
-----
- owner: the principal owns the character.
- game-master: the principal is ``GameSession.gm_id``.
- session admin: the principal has an ``admin`` participant row in the session.
- participant: the principal has any participant row in the session.
- self: the principal is the user named by the request.
- system admin: the principal has an ``admin`` participant row in any session.
- roller: the principal authored the dice roll.

Some decisions narrow the caller's parameters. Self-enrollment by anyone
other than the game-master is always stored with the player role, which the
decision reports through :attr:`Decision.overrides`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Mapping, Optional

from sqlmodel import Session

from ..config import is_session_listing_auth_required
from ..errors import AuthorizationError, UnauthenticatedError
from ..models import Character, DiceRoll, GameSession, SessionParticipant, User
from ..observability.metrics import increment_authz_denial
from . import ROLE_PLAYER, is_participant, is_session_admin, is_system_admin


logger = logging.getLogger(__name__)

IDENTITY_FIELDS = frozenset({"name", "race", "character_class"})

REASON_FORBIDDEN = "forbidden"
REASON_UNAUTHENTICATED = "unauthenticated"


class Action(str, Enum):
    VIEW_SESSION = "view_session"
    LIST_SESSIONS = "list_sessions"
    CREATE_SESSION = "create_session"
    UPDATE_SESSION = "update_session"
    DELETE_SESSION = "delete_session"
    ADD_PARTICIPANT = "add_participant"
    UPDATE_PARTICIPANT = "update_participant"
    REMOVE_PARTICIPANT = "remove_participant"
    VIEW_PARTICIPANTS = "view_participants"
    VIEW_DICE_HISTORY = "view_dice_history"
    VIEW_SESSION_CHARACTERS = "view_session_characters"
    ROLL_DICE = "roll_dice"
    VIEW_DICE_ROLL = "view_dice_roll"
    CREATE_CHARACTER = "create_character"
    VIEW_CHARACTER = "view_character"
    UPDATE_CHARACTER = "update_character"
    DELETE_CHARACTER = "delete_character"
    ASSIGN_CHARACTER_SESSION = "assign_character_session"
    LIST_USER_CHARACTERS = "list_user_characters"
    LIST_USERS = "list_users"
    VIEW_USER = "view_user"
    UPDATE_USER = "update_user"
    DELETE_USER = "delete_user"


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: Optional[str] = None
    overrides: Dict[str, Any] = field(default_factory=dict)

    def __bool__(self) -> bool:
        return self.allowed


ALLOW = Decision(True)
DENY = Decision(False, REASON_FORBIDDEN)
DENY_ANONYMOUS = Decision(False, REASON_UNAUTHENTICATED)

_PUBLIC_ACTIONS = frozenset({Action.VIEW_SESSION})

_SESSION_MANAGE_ACTIONS = frozenset({Action.UPDATE_SESSION, Action.DELETE_SESSION})
_SESSION_READ_ACTIONS = frozenset(
    {
        Action.VIEW_PARTICIPANTS,
        Action.VIEW_DICE_HISTORY,
        Action.VIEW_SESSION_CHARACTERS,
    }
)
_USER_ACTIONS = frozenset(
    {
        Action.LIST_USER_CHARACTERS,
        Action.VIEW_USER,
        Action.UPDATE_USER,
        Action.DELETE_USER,
    }
)


def _resolve_user_id(principal: Any) -> Optional[int]:
    """Return an integer user id from ``principal`` if available."""

    if principal is None:
        return None

    if isinstance(principal, bool):
        return None

    if isinstance(principal, int):
        return principal

    if isinstance(principal, dict):
        value = principal.get("id")
    else:
        value = getattr(principal, "id", None)

    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _target_user_id(resource: Any, context: Mapping[str, Any]) -> Optional[int]:
    if "user_id" in context:
        return _resolve_user_id(context["user_id"])
    if isinstance(resource, User):
        return resource.id
    return None


def _session_of(session: Session, resource: Any) -> Optional[GameSession]:
    if isinstance(resource, GameSession):
        return resource
    session_id = getattr(resource, "session_id", None)
    if session_id is None:
        return None
    return session.get(GameSession, session_id)


def _session_flags(session: Session, game_session: Optional[GameSession], user_id: int) -> Dict[str, bool]:
    if game_session is None:
        return {"gm": False, "admin": False, "participant": False}
    return {
        "gm": game_session.gm_id == user_id,
        "admin": is_session_admin(session, game_session.id, user_id),
        "participant": is_participant(session, game_session.id, user_id),
    }


def _deny(action: Action, user_id: Optional[int], reason: str = REASON_FORBIDDEN) -> Decision:
    increment_authz_denial(action.value)
    logger.debug("Denied %s for user %s (%s)", action.value, user_id, reason)
    return DENY if reason == REASON_FORBIDDEN else DENY_ANONYMOUS


def _allow_if(condition: bool, action: Action, user_id: int) -> Decision:
    return ALLOW if condition else _deny(action, user_id)


def decide(
    session: Session,
    principal: Any,
    action: Action,
    resource: Any = None,
    *,
    context: Optional[Mapping[str, Any]] = None,
) -> Decision:
    """Return the :class:`Decision` for ``principal`` performing ``action``.

    ``resource`` is the entity at stake: a :class:`GameSession` for session
    scoped actions, a :class:`SessionParticipant`, :class:`Character`,
    :class:`DiceRoll` or :class:`User` otherwise. ``context`` carries
    action-specific parameters:

    - ``user_id``: the user named by the request (add participant, user CRUD,
      character listing).
    - ``role``: the requested participant role.
    - ``fields``: the fields an update touches.
    - ``target_session``: the session a character is being attached to.
    """

    context = context or {}
    user_id = _resolve_user_id(principal)

    if action in _PUBLIC_ACTIONS:
        return ALLOW

    if action == Action.LIST_SESSIONS:
        if user_id is None and is_session_listing_auth_required():
            return _deny(action, user_id, REASON_UNAUTHENTICATED)
        return ALLOW

    if user_id is None:
        return _deny(action, user_id, REASON_UNAUTHENTICATED)

    if action in (Action.CREATE_SESSION, Action.CREATE_CHARACTER):
        return ALLOW

    if action in _SESSION_MANAGE_ACTIONS:
        flags = _session_flags(session, _session_of(session, resource), user_id)
        return _allow_if(flags["gm"] or flags["admin"], action, user_id)

    if action in _SESSION_READ_ACTIONS:
        flags = _session_flags(session, _session_of(session, resource), user_id)
        return _allow_if(flags["gm"] or flags["participant"] or flags["admin"], action, user_id)

    if action == Action.ROLL_DICE:
        flags = _session_flags(session, _session_of(session, resource), user_id)
        return _allow_if(flags["gm"] or flags["participant"], action, user_id)

    if action == Action.VIEW_DICE_ROLL:
        if isinstance(resource, DiceRoll) and resource.user_id == user_id:
            return ALLOW
        flags = _session_flags(session, _session_of(session, resource), user_id)
        return _allow_if(flags["gm"] or flags["participant"] or flags["admin"], action, user_id)

    if action == Action.ADD_PARTICIPANT:
        return _decide_add_participant(session, user_id, resource, context)

    if action in (Action.UPDATE_PARTICIPANT, Action.REMOVE_PARTICIPANT):
        return _decide_participant_change(session, user_id, action, resource, context)

    if action in (Action.VIEW_CHARACTER, Action.UPDATE_CHARACTER):
        return _decide_character_access(session, user_id, action, resource, context)

    if action == Action.DELETE_CHARACTER:
        is_owner = isinstance(resource, Character) and resource.user_id == user_id
        return _allow_if(is_owner or is_system_admin(session, user_id), action, user_id)

    if action == Action.ASSIGN_CHARACTER_SESSION:
        return _decide_assign_session(session, user_id, resource, context)

    if action in _USER_ACTIONS:
        is_self = _target_user_id(resource, context) == user_id
        return _allow_if(is_self or is_system_admin(session, user_id), action, user_id)

    if action == Action.LIST_USERS:
        return _allow_if(is_system_admin(session, user_id), action, user_id)

    raise ValueError(f"Unknown action: {action!r}")


def _decide_add_participant(
    session: Session,
    user_id: int,
    resource: Any,
    context: Mapping[str, Any],
) -> Decision:
    flags = _session_flags(session, _session_of(session, resource), user_id)
    is_self = _target_user_id(None, context) == user_id
    if not (is_self or flags["gm"] or flags["admin"]):
        return _deny(Action.ADD_PARTICIPANT, user_id)
    if is_self and not flags["gm"]:
        return Decision(True, overrides={"role": ROLE_PLAYER})
    return ALLOW


def _decide_participant_change(
    session: Session,
    user_id: int,
    action: Action,
    resource: Any,
    context: Mapping[str, Any],
) -> Decision:
    if not isinstance(resource, SessionParticipant):
        raise TypeError("participant actions require a SessionParticipant resource")
    flags = _session_flags(session, _session_of(session, resource), user_id)
    privileged = flags["gm"] or flags["admin"]
    is_self = resource.user_id == user_id
    if not (privileged or is_self):
        return _deny(action, user_id)
    fields: Iterable[str] = context.get("fields") or ()
    if action == Action.UPDATE_PARTICIPANT and "role" in fields and not privileged:
        return _deny(action, user_id)
    return ALLOW


def _decide_character_access(
    session: Session,
    user_id: int,
    action: Action,
    resource: Any,
    context: Mapping[str, Any],
) -> Decision:
    if not isinstance(resource, Character):
        raise TypeError("character actions require a Character resource")
    is_owner = resource.user_id == user_id
    flags = _session_flags(session, _session_of(session, resource), user_id)
    if not (is_owner or flags["gm"] or flags["admin"]):
        return _deny(action, user_id)
    if action == Action.UPDATE_CHARACTER:
        fields = set(context.get("fields") or ())
        if fields & IDENTITY_FIELDS and not (is_owner or flags["admin"]):
            return _deny(action, user_id)
    return ALLOW


def _decide_assign_session(
    session: Session,
    user_id: int,
    resource: Any,
    context: Mapping[str, Any],
) -> Decision:
    if not isinstance(resource, Character):
        raise TypeError("assign_character_session requires a Character resource")
    if resource.user_id != user_id:
        return _deny(Action.ASSIGN_CHARACTER_SESSION, user_id)
    target = context.get("target_session")
    if target is None:
        return ALLOW
    flags = _session_flags(session, target, user_id)
    return _allow_if(flags["gm"] or flags["participant"], Action.ASSIGN_CHARACTER_SESSION, user_id)


def require(
    session: Session,
    principal: Any,
    action: Action,
    resource: Any = None,
    *,
    context: Optional[Mapping[str, Any]] = None,
    message: Optional[str] = None,
) -> Decision:
    """Return the allowing :class:`Decision` or raise the matching error."""

    decision = decide(session, principal, action, resource, context=context)
    if decision.allowed:
        return decision
    if decision.reason == REASON_UNAUTHENTICATED:
        raise UnauthenticatedError()
    raise AuthorizationError(message)


__all__ = [
    "Action",
    "Decision",
    "IDENTITY_FIELDS",
    "decide",
    "require",
]
