"""Password hashing utilities.

Uses bcrypt for password hashing. bcrypt salts automatically and its
work factor makes each guess deliberately expensive; checkpw compares
in constant time with respect to the stored hash.

Hashes written by the old Node service (bcryptjs, "$2a$10$...") verify
as-is and are re-hashed at the configured cost on the next login.
"""

import secrets
from functools import lru_cache
from typing import Optional

import bcrypt

from instaflix.config import settings

# Prefix for hashes that can never verify (migrated accounts).
UNUSABLE_PREFIX = "!"


def hash_password(password: str, rounds: Optional[int] = None) -> str:
    """Hash a password with bcrypt.

    Passwords are truncated to 72 bytes (bcrypt's limit).
    """
    pw_bytes = password.encode("utf-8")[:72]
    salt = bcrypt.gensalt(rounds=rounds or settings.bcrypt_rounds)
    return bcrypt.hashpw(pw_bytes, salt).decode("utf-8")


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    """Verify a password against its bcrypt hash.

    Returns False for missing, unusable, or malformed hashes, after a dummy
    comparison so those cost as much as a wrong password.
    """
    if not password_hash or password_hash.startswith(UNUSABLE_PREFIX):
        dummy_verify(password)
        return False
    try:
        pw_bytes = password.encode("utf-8")[:72]
        return bcrypt.checkpw(pw_bytes, password_hash.encode("utf-8"))
    except (ValueError, TypeError):
        dummy_verify(password)
        return False


@lru_cache(maxsize=1)
def _dummy_hash() -> bytes:
    return bcrypt.hashpw(b"instaflix-dummy-password", bcrypt.gensalt(settings.bcrypt_rounds))


def dummy_verify(password: str) -> None:
    """Burn one bcrypt comparison so unknown emails cost the same as wrong passwords."""
    bcrypt.checkpw(password.encode("utf-8")[:72], _dummy_hash())


def needs_rehash(password_hash: str) -> bool:
    """Check if a bcrypt hash was made with a lower cost than configured."""
    try:
        cost = int(password_hash.split("$")[2])
    except (IndexError, ValueError):
        return False
    return cost < settings.bcrypt_rounds


def make_unusable_password() -> str:
    """Random placeholder that never verifies.

    Forces migrated users through Google login or a password reset.
    """
    return UNUSABLE_PREFIX + secrets.token_urlsafe(24)
