"""
auth/passwords.py -- Password hashing and constant-time credential checks.

Security design decisions:
  Passwords: bcrypt used directly (no passlib wrapper). The digest embeds the
       algorithm, cost factor and salt ("$2b$12$<salt><hash>"), so stored
       values stay verifiable if the cost is raised later. checkpw compares in
       constant time.

       bcrypt only reads the first 72 bytes of its input. The API layer rejects
       longer passwords (api/models.py) rather than letting two different
       passwords share a hash.

  Enumeration: authenticate_user() runs exactly one bcrypt verification per
       call, against _DUMMY_HASH when the username is unknown, so response
       time does not reveal whether an account exists. The route turns every
       None into the same BAD_CREDENTIALS response.

Layer rule: no imports from api/ or conversations/.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import bcrypt

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import UserStore

logger = logging.getLogger("cogito.auth")

# bcrypt's hard input limit, in bytes.
MAX_PASSWORD_BYTES = 72


def hash_password(plain: str) -> str:
    """Return a salted bcrypt digest of the given plaintext password.

    Raises on failure (e.g. the OS random source is unavailable). Callers must
    treat that as a server error; there is no fallback scheme.
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed digest in the database, or an over-long candidate.
        return False


# Computed once at import so the first failed login is not measurably faster
# than later ones.
_DUMMY_HASH: str = hash_password("cogito_timing_dummy")


def authenticate_user(store: UserStore, username: str, password: str) -> User | None:
    """Check a username/password pair with timing equalization.

    - Unknown username: bcrypt runs against _DUMMY_HASH (same cost as a real check)
    - Wrong password: bcrypt runs against the real hash

    Returns the User on success, None on any credential failure. Store errors
    propagate.
    """
    user = store.get_by_username(username)
    if user is None:
        verify_password(password, _DUMMY_HASH)
        return None
    if not verify_password(password, user.hashed_password):
        logger.info("Failed password check for user id %s", user.id)
        return None
    return user
