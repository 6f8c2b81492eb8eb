from fastapi import APIRouter, Depends, Path, Query, status
from sqlmodel import Session

from ..auth.tokens import get_current_user
from ..db import get_session
from ..schemas import ParticipantCreate, ParticipantUpdate
from ..security.csrf import csrf_protect
from ..services import participants as participants_service


router = APIRouter(prefix="/api/session-participants", tags=["participants"])


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Add a participant",
    dependencies=[Depends(csrf_protect)],
)
def add_participant(
    body: ParticipantCreate,
    current_user=Depends(get_current_user),
    session: Session = Depends(get_session),
):
    participant = participants_service.add_participant(
        session,
        current_user,
        session_id=body.session_id,
        user_id=body.user_id,
        role=body.role,
        character_id=body.character_id,
    )
    return {
        "success": True,
        "message": "Participant ajouté avec succès",
        "participant": participants_service.serialize_participant(session, participant),
    }


@router.get("", summary="List the participants of a session")
def list_participants(
    session_id: int = Query(..., alias="sessionId"),
    current_user=Depends(get_current_user),
    session: Session = Depends(get_session),
):
    participants = participants_service.list_participants(session, current_user, session_id)
    return {"success": True, "count": len(participants), "participants": participants}


@router.put("/{participant_id}", summary="Update a participant", dependencies=[Depends(csrf_protect)])
def update_participant(
    body: ParticipantUpdate,
    participant_id: int = Path(...),
    current_user=Depends(get_current_user),
    session: Session = Depends(get_session),
):
    participant = participants_service.update_participant(
        session,
        current_user,
        participant_id,
        body.model_dump(exclude_unset=True),
    )
    return {
        "success": True,
        "message": "Participant mis à jour avec succès",
        "participant": participants_service.serialize_participant(session, participant),
    }


@router.delete("/{participant_id}", summary="Remove a participant", dependencies=[Depends(csrf_protect)])
def remove_participant(
    participant_id: int = Path(...),
    current_user=Depends(get_current_user),
    session: Session = Depends(get_session),
):
    participants_service.remove_participant(session, current_user, participant_id)
    return {"success": True, "message": "Participant retiré avec succès"}
