"""Application configuration helpers read from the environment."""

from __future__ import annotations

import logging
import os
from functools import lru_cache

logger = logging.getLogger(__name__)

_TRUE_VALUES = {"1", "true", "yes", "on"}

DEFAULT_DATABASE_URL = "sqlite:///./dev.db"
DEFAULT_JWT_SECRET = "dev-insecure-jwt-secret"
DEFAULT_JWT_EXPIRES_IN = 7 * 24 * 60 * 60


def _read_flag(name: str) -> bool | None:
    """Return the parsed boolean value for ``name`` if explicitly set."""

    value = os.getenv(name)
    if value is None:
        return None
    normalized = value.strip()
    if not normalized:
        return None
    return normalized.lower() in _TRUE_VALUES


def _read_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value.strip())
    except ValueError:
        logger.warning("Ignoring non-integer value for %s: %r", name, value)
        return default


__all__ = [
    "get_database_url",
    "get_jwt_secret",
    "get_jwt_expires_in",
    "get_bcrypt_rounds",
    "get_dice_max_count",
    "get_dice_max_sides",
    "get_dice_max_modifier",
    "is_session_listing_auth_required",
    "is_error_detail_exposed",
    "is_csrf_enabled",
    "is_cookie_secure",
]


def get_database_url() -> str:
    return os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)


def get_jwt_secret() -> str:
    secret = os.getenv("JWT_SECRET")
    if not secret:
        logger.warning("JWT_SECRET is not set; using the development signing key")
        return DEFAULT_JWT_SECRET
    return secret


def get_jwt_expires_in() -> int:
    """Return the access-token lifetime in seconds."""

    return _read_int("JWT_EXPIRES_IN", DEFAULT_JWT_EXPIRES_IN)


def get_bcrypt_rounds() -> int:
    rounds = _read_int("BCRYPT_ROUNDS", 12)
    # bcrypt accepts 4..31
    return min(max(rounds, 4), 31)


def get_dice_max_count() -> int:
    return _read_int("DICE_MAX_COUNT", 1000)


def get_dice_max_sides() -> int:
    return _read_int("DICE_MAX_SIDES", 1000)


def get_dice_max_modifier() -> int:
    return _read_int("DICE_MAX_MODIFIER", 1000)


@lru_cache(maxsize=1)
def is_session_listing_auth_required() -> bool:
    """Return ``True`` when listing sessions requires an authenticated caller.

    Viewing a single session is always public; the listing endpoint follows
    the same rule unless ``SESSIONS_LIST_REQUIRES_AUTH`` is enabled.
    """

    flag = _read_flag("SESSIONS_LIST_REQUIRES_AUTH")
    if flag is None:
        return False
    return flag


@lru_cache(maxsize=1)
def is_error_detail_exposed() -> bool:
    """Return ``True`` when 500 responses carry the underlying error text."""

    flag = _read_flag("EXPOSE_ERROR_DETAILS")
    if flag is None:
        return True
    return flag


def is_csrf_enabled() -> bool:
    # Uncached: read on every request.
    return bool(_read_flag("CSRF_ENABLED"))


@lru_cache(maxsize=1)
def is_cookie_secure() -> bool:
    flag = _read_flag("COOKIE_SECURE")
    if flag is None:
        return False
    return flag
