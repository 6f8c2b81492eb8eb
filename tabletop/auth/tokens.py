"""Access tokens and principal resolution for incoming requests."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt
from sqlmodel import Session

from ..config import get_jwt_expires_in, get_jwt_secret
from ..db import get_session
from ..errors import UnauthenticatedError
from ..models import User


security = HTTPBearer(auto_error=False)

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
TOKEN_COOKIE_NAME = "token"


def principal_from_user(user: User) -> Dict[str, Any]:
    return {"id": user.id, "username": user.username, "email": user.email}


def create_access_token(user: User, *, expires_in: Optional[int] = None) -> str:
    """Return a signed HS256 token identifying ``user``."""

    lifetime = expires_in if expires_in is not None else get_jwt_expires_in()
    now = datetime.now(timezone.utc)
    claims = {
        "sub": str(user.id),
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=lifetime)).timestamp()),
    }
    return jwt.encode(claims, get_jwt_secret(), algorithm=ALGORITHM)


def extract_token(request: Request, creds: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    """Return the bearer token, falling back to the ``token`` cookie."""

    if creds and creds.credentials:
        return creds.credentials
    return request.cookies.get(TOKEN_COOKIE_NAME) or None


def resolve_user_from_token(session: Session, token: Optional[str]) -> Optional[Dict[str, Any]]:
    """Return the principal for ``token`` or ``None``.

    Invalid, expired and orphaned tokens all resolve to an anonymous caller.
    """

    if not token:
        return None
    try:
        payload = jwt.decode(token, get_jwt_secret(), algorithms=[ALGORITHM])
    except ExpiredSignatureError:
        logger.debug("Ignoring expired access token")
        return None
    except JWTError as exc:
        logger.debug("Ignoring invalid access token: %s", exc)
        return None

    raw_id = payload.get("id", payload.get("sub"))
    try:
        user_id = int(raw_id)
    except (TypeError, ValueError):
        logger.debug("Access token carries no usable user id")
        return None

    user = session.get(User, user_id)
    if user is None:
        logger.debug("Access token references missing user %s", user_id)
        return None
    return principal_from_user(user)


def get_optional_user(
    request: Request,
    creds: Optional[HTTPAuthorizationCredentials] = Depends(security),
    session: Session = Depends(get_session),
) -> Optional[Dict[str, Any]]:
    return resolve_user_from_token(session, extract_token(request, creds))


def get_current_user(
    user: Optional[Dict[str, Any]] = Depends(get_optional_user),
) -> Dict[str, Any]:
    if not user:
        raise UnauthenticatedError("Accès non autorisé. Veuillez vous connecter.")
    return user
