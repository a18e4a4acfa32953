"""
auth/passwords.py -- Password hashing and credential checks.

Passwords: bcrypt used directly (no passlib wrapper) with a work factor of 12.
     Bcrypt is the right choice for low-entropy secrets because its cost
     factor makes brute force expensive. bcrypt truncates input at 72 bytes;
     the API layer caps passwords at 255 characters.

Timing equalization: authenticate() always runs exactly one bcrypt
     comparison. On an unknown email it compares against _DUMMY_HASH, so
     response time does not reveal whether the account exists. The caller
     gets None for both failure modes and answers "Invalid credentials".

Layer rule: no imports from api/, web/, or tracker/.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import bcrypt

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import UserStore

logger = logging.getLogger("issuetracker.auth")

BCRYPT_ROUNDS = 12


def hash_password(plain: str) -> str:
    """Return a salted bcrypt hash of the given plaintext password."""
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    A malformed hash counts as a mismatch.
    """
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


# Computed once at module load so the first login attempt is not measurably
# slower than later ones.
_DUMMY_HASH: str = hash_password("issuetracker_timing_dummy")


def authenticate(store: UserStore, email: str, password: str) -> User | None:
    """Check an email/password pair. Returns the User on success, None otherwise.

    Never returns early before bcrypt runs.
    """
    user = store.get_by_email(email)
    if user is None:
        verify_password(password, _DUMMY_HASH)
        logger.info("Login failed: unknown account")
        return None
    if not verify_password(password, user.hashed_password):
        logger.info("Login failed: bad password for user %s", user.id)
        return None
    return user
