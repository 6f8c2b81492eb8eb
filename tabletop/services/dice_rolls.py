"""Dice roll use cases. Rolls are append-only."""

from __future__ import annotations

import logging
import random
from typing import Any, Dict, List, Optional

from sqlmodel import Session, select

from .. import dice
from ..auth.permissions import Action, require
from ..errors import NotFoundError
from ..models import Character, DiceRoll
from ..observability.metrics import increment_dice_roll
from .game_sessions import get_game_session_or_404
from .serializers import dice_roll_detail


logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 50


def roll(
    session: Session,
    principal: Dict[str, Any],
    *,
    expression: str,
    session_id: int,
    character_id: Optional[int] = None,
    rng: Optional[random.Random] = None,
) -> DiceRoll:
    parsed = dice.parse_expression(expression)
    game_session = get_game_session_or_404(session, session_id)
    require(
        session,
        principal,
        Action.ROLL_DICE,
        game_session,
        message="Vous n'êtes pas autorisé à lancer des dés dans cette session",
    )
    if character_id is not None:
        character = session.get(Character, character_id)
        if character is None or character.user_id != principal["id"]:
            raise NotFoundError("Personnage non trouvé ou ne vous appartient pas")

    outcome = dice.roll(parsed, rng=rng)
    dice_roll = DiceRoll(
        expression=expression.strip(),
        result=outcome.result,
        rolls=outcome.rolls,
        modifier=outcome.modifier,
        user_id=principal["id"],
        session_id=game_session.id,
        character_id=character_id,
    )
    session.add(dice_roll)
    session.commit()
    session.refresh(dice_roll)
    increment_dice_roll()
    logger.debug(
        "User %s rolled %s in session %s: %s",
        principal["id"],
        dice_roll.expression,
        game_session.id,
        dice_roll.result,
    )
    return dice_roll


def list_session_rolls(
    session: Session,
    principal: Dict[str, Any],
    session_id: int,
    *,
    limit: int = DEFAULT_HISTORY_LIMIT,
) -> List[Dict[str, Any]]:
    """Return the newest ``limit`` rolls of ``session_id``."""

    game_session = get_game_session_or_404(session, session_id)
    require(
        session,
        principal,
        Action.VIEW_DICE_HISTORY,
        game_session,
        message="Vous n'êtes pas autorisé à voir l'historique des lancers de cette session",
    )
    rows = session.exec(
        select(DiceRoll)
        .where(DiceRoll.session_id == game_session.id)
        .order_by(DiceRoll.timestamp.desc(), DiceRoll.id.desc())
        .limit(limit)
    ).all()
    return [dice_roll_detail(session, row) for row in rows]


def get_roll(session: Session, principal: Dict[str, Any], roll_id: int) -> Dict[str, Any]:
    dice_roll = session.get(DiceRoll, roll_id)
    if dice_roll is None:
        raise NotFoundError("Lancer de dés non trouvé")
    require(
        session,
        principal,
        Action.VIEW_DICE_ROLL,
        dice_roll,
        message="Vous n'êtes pas autorisé à voir ce lancer de dés",
    )
    return dice_roll_detail(session, dice_roll)
