"""bcrypt password hashing."""

import logging

import bcrypt

from ..config import get_bcrypt_rounds
from ..errors import ValidationError


logger = logging.getLogger(__name__)

# bcrypt only reads the first 72 bytes; newer releases refuse longer input.
MAX_PASSWORD_BYTES = 72


def check_password_length(password: str) -> None:
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValidationError(f"Le mot de passe ne peut pas dépasser {MAX_PASSWORD_BYTES} octets")


def hash_password(password: str) -> str:
    check_password_length(password)
    salt = bcrypt.gensalt(rounds=get_bcrypt_rounds())
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    if not password or not hashed:
        return False
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        logger.warning("Stored password hash is not a valid bcrypt hash")
        return False
