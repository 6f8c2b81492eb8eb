from fastapi import APIRouter, Depends, Path, Query, status
from sqlmodel import Session

from ..auth.tokens import get_current_user
from ..db import get_session
from ..schemas import DiceRollCreate
from ..security.csrf import csrf_protect
from ..services import dice_rolls as dice_rolls_service
from ..services.serializers import dice_roll_detail


router = APIRouter(prefix="/api/dice-rolls", tags=["dice-rolls"])


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Roll dice in a session",
    dependencies=[Depends(csrf_protect)],
)
def roll_dice(
    body: DiceRollCreate,
    current_user=Depends(get_current_user),
    session: Session = Depends(get_session),
):
    dice_roll = dice_rolls_service.roll(
        session,
        current_user,
        expression=body.expression,
        session_id=body.session_id,
        character_id=body.character_id,
    )
    return {
        "success": True,
        "message": "Lancer de dés effectué avec succès",
        "diceRoll": dice_roll_detail(session, dice_roll),
    }


@router.get("", summary="Dice roll history of a session")
def list_dice_rolls(
    session_id: int = Query(..., alias="sessionId"),
    limit: int = Query(dice_rolls_service.DEFAULT_HISTORY_LIMIT, ge=1, le=500),
    current_user=Depends(get_current_user),
    session: Session = Depends(get_session),
):
    rolls = dice_rolls_service.list_session_rolls(session, current_user, session_id, limit=limit)
    return {"success": True, "count": len(rolls), "diceRolls": rolls}


@router.get("/{roll_id}", summary="Get a dice roll")
def get_dice_roll(
    roll_id: int = Path(...),
    current_user=Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return {"success": True, "diceRoll": dice_rolls_service.get_roll(session, current_user, roll_id)}
