from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, status
from sqlmodel import Session

from ..auth.tokens import get_current_user, get_optional_user
from ..db import get_session
from ..schemas import ParticipantAdd, SessionCreate, SessionUpdate
from ..security.csrf import csrf_protect
from ..services import game_sessions as sessions_service
from ..services import participants as participants_service
from ..services.serializers import session_out


router = APIRouter(prefix="/api/sessions", tags=["sessions"])


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Create a game session",
    dependencies=[Depends(csrf_protect)],
)
def create_session(
    body: SessionCreate,
    current_user=Depends(get_current_user),
    session: Session = Depends(get_session),
):
    game_session = sessions_service.create_session(
        session,
        current_user,
        title=body.title,
        description=body.description,
        scheduled_at=body.scheduled_at,
        status=body.status,
    )
    return {
        "success": True,
        "message": "Session créée avec succès",
        "session": sessions_service.serialize_session_detail(session, game_session),
    }


@router.get("", summary="List game sessions")
def list_sessions(
    status_filter: Optional[str] = Query(None, alias="status"),
    gm_id: Optional[int] = Query(None, alias="gmId"),
    title: Optional[str] = Query(None),
    current_user=Depends(get_optional_user),
    session: Session = Depends(get_session),
):
    sessions = sessions_service.list_sessions(
        session,
        current_user,
        status=status_filter,
        gm_id=gm_id,
        title=title,
    )
    return {"success": True, "count": len(sessions), "sessions": sessions}


@router.get("/{session_id}", summary="Get a game session")
def get_game_session(
    session_id: int = Path(...),
    current_user=Depends(get_optional_user),
    session: Session = Depends(get_session),
):
    return {
        "success": True,
        "session": sessions_service.get_session_detail(session, current_user, session_id),
    }


@router.put("/{session_id}", summary="Update a game session", dependencies=[Depends(csrf_protect)])
def update_session(
    body: SessionUpdate,
    session_id: int = Path(...),
    current_user=Depends(get_current_user),
    session: Session = Depends(get_session),
):
    game_session = sessions_service.update_session(
        session,
        current_user,
        session_id,
        body.model_dump(exclude_unset=True),
    )
    return {
        "success": True,
        "message": "Session mise à jour avec succès",
        "session": session_out(game_session),
    }


@router.delete("/{session_id}", summary="Delete a game session", dependencies=[Depends(csrf_protect)])
def delete_session(
    session_id: int = Path(...),
    current_user=Depends(get_current_user),
    session: Session = Depends(get_session),
):
    sessions_service.delete_session(session, current_user, session_id)
    return {"success": True, "message": "Session supprimée avec succès"}


@router.post(
    "/{session_id}/participants",
    status_code=status.HTTP_201_CREATED,
    summary="Add a participant to a session",
    dependencies=[Depends(csrf_protect)],
)
def add_session_participant(
    body: ParticipantAdd,
    session_id: int = Path(...),
    current_user=Depends(get_current_user),
    session: Session = Depends(get_session),
):
    participant = participants_service.add_participant(
        session,
        current_user,
        session_id=session_id,
        user_id=body.user_id,
        role=body.role,
        character_id=body.character_id,
    )
    return {
        "success": True,
        "message": "Participant ajouté avec succès",
        "participant": participants_service.serialize_participant(session, participant),
    }


@router.delete(
    "/{session_id}/participants/{participant_id}",
    summary="Remove a participant from a session",
    dependencies=[Depends(csrf_protect)],
)
def remove_session_participant(
    session_id: int = Path(...),
    participant_id: int = Path(...),
    current_user=Depends(get_current_user),
    session: Session = Depends(get_session),
):
    participants_service.remove_session_participant(session, current_user, session_id, participant_id)
    return {"success": True, "message": "Participant retiré avec succès"}
