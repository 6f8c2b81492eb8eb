from fastapi import APIRouter, Depends, Path, Response, status
from sqlmodel import Session

from ..auth.tokens import TOKEN_COOKIE_NAME, get_current_user
from ..config import get_jwt_expires_in, is_cookie_secure
from ..db import get_session
from ..schemas import LoginIn, RegisterIn, UserUpdate
from ..security.csrf import csrf_protect
from ..security.ratelimit_dep import rate_limiter_dep
from ..services import users as users_service
from ..services.serializers import user_out


router = APIRouter(prefix="/api/users", tags=["users"])


def _set_token_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        TOKEN_COOKIE_NAME,
        token,
        max_age=get_jwt_expires_in(),
        httponly=True,
        secure=is_cookie_secure(),
        samesite="none" if is_cookie_secure() else "lax",
        path="/",
    )


@router.post(
    "/register",
    status_code=status.HTTP_201_CREATED,
    summary="Create an account",
    dependencies=[Depends(rate_limiter_dep("register"))],
)
def register(body: RegisterIn, response: Response, session: Session = Depends(get_session)):
    user, token = users_service.register(
        session,
        username=body.username,
        email=body.email,
        password=body.password,
    )
    _set_token_cookie(response, token)
    return {
        "success": True,
        "message": "Utilisateur créé avec succès",
        "user": user_out(user),
        "token": token,
    }


@router.post(
    "/login",
    summary="Log in with email and password",
    dependencies=[Depends(rate_limiter_dep("login"))],
)
def login(body: LoginIn, response: Response, session: Session = Depends(get_session)):
    user, token = users_service.login(session, email=body.email, password=body.password)
    _set_token_cookie(response, token)
    return {
        "success": True,
        "message": "Connexion réussie",
        "user": user_out(user),
        "token": token,
    }


@router.post("/logout", summary="Clear the session cookie")
def logout(response: Response):
    response.delete_cookie(TOKEN_COOKIE_NAME, path="/")
    return {"success": True, "message": "Déconnexion réussie"}


@router.get("", summary="List users")
def list_users(
    current_user=Depends(get_current_user),
    session: Session = Depends(get_session),
):
    users = users_service.list_users(session, current_user)
    return {"success": True, "count": len(users), "users": users}


@router.get("/{user_id}", summary="Get a user")
def get_user(
    user_id: int = Path(...),
    current_user=Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return {"success": True, "user": users_service.get_user(session, current_user, user_id)}


@router.put("/{user_id}", summary="Update a user", dependencies=[Depends(csrf_protect)])
def update_user(
    body: UserUpdate,
    user_id: int = Path(...),
    current_user=Depends(get_current_user),
    session: Session = Depends(get_session),
):
    user = users_service.update_user(
        session,
        current_user,
        user_id,
        body.model_dump(exclude_unset=True),
    )
    return {
        "success": True,
        "message": "Utilisateur mis à jour avec succès",
        "user": user_out(user),
    }


@router.delete("/{user_id}", summary="Delete a user", dependencies=[Depends(csrf_protect)])
def delete_user(
    response: Response,
    user_id: int = Path(...),
    current_user=Depends(get_current_user),
    session: Session = Depends(get_session),
):
    users_service.delete_user(session, current_user, user_id)
    if current_user["id"] == user_id:
        response.delete_cookie(TOKEN_COOKIE_NAME, path="/")
    return {"success": True, "message": "Utilisateur supprimé avec succès"}
