"""
Password hashing utilities using bcrypt.

Uses bcrypt directly rather than passlib.
"""

import bcrypt

from shared.config.logging import get_logger

logger = get_logger(__name__)

BCRYPT_ROUNDS = 12
_BCRYPT_PREFIXES = ("$2a$", "$2b$", "$2y$")


def hash_password(password: str) -> str:
    """
    Hash a password using bcrypt.

    Returns:
        Hashed password string (includes salt and cost factor), e.g. $2b$12$...
    """
    salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a password against its bcrypt hash.

    Non-bcrypt stored values never match.
    """
    if not hashed_password.startswith(_BCRYPT_PREFIXES):
        logger.warning("Stored password is not a bcrypt hash, rejecting login")
        return False

    return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))


def needs_rehash(hashed_password: str) -> bool:
    """
    Check if a stored hash was produced with a different cost factor.

    bcrypt hashes encode the cost as "$2b$<rounds>$...".
    """
    if not hashed_password.startswith(_BCRYPT_PREFIXES):
        return True
    try:
        rounds = int(hashed_password.split("$")[2])
    except (IndexError, ValueError):
        return True
    return rounds != BCRYPT_ROUNDS
