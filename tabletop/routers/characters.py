from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, status
from sqlmodel import Session

from ..auth.tokens import get_current_user
from ..db import get_session
from ..schemas import AssignSessionIn, CharacterCreate, CharacterUpdate
from ..security.csrf import csrf_protect
from ..services import characters as characters_service
from ..services.serializers import character_out


router = APIRouter(prefix="/api/characters", tags=["characters"])


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Create a character",
    dependencies=[Depends(csrf_protect)],
)
def create_character(
    body: CharacterCreate,
    current_user=Depends(get_current_user),
    session: Session = Depends(get_session),
):
    character = characters_service.create_character(
        session,
        current_user,
        name=body.name,
        race=body.race,
        character_class=body.character_class,
        level=body.level,
        background=body.background,
        inventory=body.inventory,
        stats=body.stats,
    )
    return {
        "success": True,
        "message": "Personnage créé avec succès",
        "character": character_out(character),
    }


@router.get("", summary="List characters of a user")
def list_characters(
    user_id: Optional[int] = Query(None, alias="userId"),
    current_user=Depends(get_current_user),
    session: Session = Depends(get_session),
):
    characters = characters_service.list_characters(session, current_user, user_id=user_id)
    return {
        "success": True,
        "count": len(characters),
        "characters": [character_out(c) for c in characters],
    }


@router.get("/session/{session_id}", summary="List characters attached to a session")
def list_session_characters(
    session_id: int = Path(...),
    current_user=Depends(get_current_user),
    session: Session = Depends(get_session),
):
    characters = characters_service.list_session_characters(session, current_user, session_id)
    return {"success": True, "count": len(characters), "characters": characters}


@router.get("/{character_id}", summary="Get a character")
def get_character(
    character_id: int = Path(...),
    current_user=Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return {
        "success": True,
        "character": characters_service.get_character(session, current_user, character_id),
    }


@router.put("/{character_id}", summary="Update a character", dependencies=[Depends(csrf_protect)])
def update_character(
    body: CharacterUpdate,
    character_id: int = Path(...),
    current_user=Depends(get_current_user),
    session: Session = Depends(get_session),
):
    character = characters_service.update_character(
        session,
        current_user,
        character_id,
        body.model_dump(exclude_unset=True),
    )
    return {
        "success": True,
        "message": "Personnage mis à jour avec succès",
        "character": character_out(character),
    }


@router.delete("/{character_id}", summary="Delete a character", dependencies=[Depends(csrf_protect)])
def delete_character(
    character_id: int = Path(...),
    current_user=Depends(get_current_user),
    session: Session = Depends(get_session),
):
    characters_service.delete_character(session, current_user, character_id)
    return {"success": True, "message": "Personnage supprimé avec succès"}


@router.put(
    "/{character_id}/assign-session",
    summary="Attach a character to a session or detach it",
    dependencies=[Depends(csrf_protect)],
)
def assign_session(
    body: AssignSessionIn,
    character_id: int = Path(...),
    current_user=Depends(get_current_user),
    session: Session = Depends(get_session),
):
    character = characters_service.assign_session(session, current_user, character_id, body.session_id)
    message = (
        "Personnage assigné à la session avec succès"
        if character.session_id is not None
        else "Personnage retiré de la session avec succès"
    )
    return {"success": True, "message": message, "character": character_out(character)}
