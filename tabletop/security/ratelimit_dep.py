import logging
import os
import time
from typing import Dict, Tuple

from fastapi import HTTPException, Request, status


logger = logging.getLogger(__name__)

_WINDOWS: Dict[Tuple[str, str], Tuple[int, float]] = {}


def _prune_expired(now: float, window: float) -> None:
    expired = [key for key, (_, start) in _WINDOWS.items() if now - start >= window]
    for key in expired:
        del _WINDOWS[key]


def rate_limiter_dep(namespace: str):
    """Simple in-memory per-client rate-limiter dependency.

    namespace: a short name for the route group (e.g., 'login').
    Env vars, read on every call:
      AUTH_RATE_LIMIT_COUNT (default 10)
      AUTH_RATE_LIMIT_WINDOW_SEC (default 60)
    """

    async def _limiter(request: Request):
        limit = int(os.getenv("AUTH_RATE_LIMIT_COUNT", "10"))
        window = float(os.getenv("AUTH_RATE_LIMIT_WINDOW_SEC", "60"))
        client = request.client.host if request.client else "unknown"
        key = (namespace, client)
        now = time.time()
        _prune_expired(now, window)
        count, start = _WINDOWS.get(key, (0, now))
        count += 1
        _WINDOWS[key] = (count, start)
        if count > limit:
            retry_after = int(max(0, window - (now - start)))
            logger.warning("Rate limit exceeded for %s from %s", namespace, client)
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail="Trop de tentatives, veuillez réessayer plus tard",
                headers={"Retry-After": str(retry_after)},
            )

    return _limiter
