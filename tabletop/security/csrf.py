from typing import Optional

from fastapi import Header, HTTPException, Request, status

from ..config import is_csrf_enabled


CSRF_HEADER_NAME = "X-CSRF-Token"
CSRF_COOKIE_NAME = "csrf_token"


async def csrf_protect(
    request: Request,
    x_csrf_token: Optional[str] = Header(default=None),
) -> None:
    """Header guard for mutating routes when the token cookie authenticates.

    With CSRF_ENABLED set, the ``X-CSRF-Token`` header must be present. When the
    client also holds a ``csrf_token`` cookie the two values must match.
    """
    if not is_csrf_enabled():
        return
    if not x_csrf_token:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Missing CSRF token")
    cookie_value = request.cookies.get(CSRF_COOKIE_NAME)
    if cookie_value is not None and cookie_value != x_csrf_token:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="CSRF token mismatch")
