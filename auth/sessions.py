"""
auth/sessions.py -- Opaque session tokens: issue, validate, end.

A session is a random UUID stored in users.session_token and handed to the
browser as the "login_id" cookie. The token carries no claims; all state lives
in the users row, keyed by the token.

Sliding expiration: every successful validate_session() moves last_activity
to now. A session dies once more than the configured window passes between two
authenticated requests, at which point the token is cleared.

Validation order (each step terminal on failure):
  1. Extract  -- no cookie                     -> MISSING_CREDENTIAL
  2. Parse    -- not a UUID (no DB access yet)  -> INVALID_CREDENTIAL
  3. Resolve  -- no user holds this token       -> INVALID_SESSION
  4. Expiry   -- idle longer than the window    -> clear token, SESSION_EXPIRED
  5. Refresh  -- stamp last_activity = now
  6. Return the user

Store failures in steps 4 and 5 are housekeeping: they are logged and
swallowed. A failed clear re-triggers on the next request because the expiry
check runs again; a failed refresh only shortens the next window.

Everything here takes the token and the store as arguments. Nothing reads the
current request; auth/dependencies.py is the only FastAPI-facing piece.

Layer rule: no imports from api/ or conversations/.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError

from core.errors import ErrorKind, ServiceError

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import UserStore
    from core.config import Settings

logger = logging.getLogger("cogito.sessions")

SESSION_COOKIE = "login_id"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------


def new_session_token() -> str:
    """Return a fresh random UUID4 in canonical form (122 bits from the OS CSPRNG)."""
    return str(uuid.uuid4())


def parse_session_token(raw: str) -> str | None:
    """Return the canonical form of a well-formed token, or None if malformed."""
    try:
        return str(uuid.UUID(raw))
    except ValueError:
        return None


# ---------------------------------------------------------------------------
# Issue
# ---------------------------------------------------------------------------


def issue_session(store: UserStore, user: User, now: datetime | None = None) -> tuple[str, User]:
    """Start a new session for an authenticated user.

    Token and timestamp are written by one UPDATE. If that statement fails,
    nothing changed in the row, so any earlier session is still valid.

    Returns (token, user with the new session fields).
    Raises ServiceError(DATABASE_ERROR) on a store failure, SERVER_ERROR if
    the user row disappeared between authentication and issue.
    """
    now = now or _utcnow()
    token = new_session_token()
    try:
        updated = store.start_session(user.id, token, now)
    except SQLAlchemyError:
        logger.exception("Failed to persist new session for user id %s", user.id)
        raise ServiceError(ErrorKind.DATABASE_ERROR) from None
    if not updated:
        logger.error("User id %s vanished before a session could be issued", user.id)
        raise ServiceError(ErrorKind.SERVER_ERROR)
    return token, replace(user, session_token=token, last_activity=now.isoformat())


# ---------------------------------------------------------------------------
# Validate
# ---------------------------------------------------------------------------


def _is_expired(last_activity: str | None, now: datetime, window: timedelta) -> bool:
    if not last_activity:
        return True
    try:
        last = datetime.fromisoformat(last_activity)
    except ValueError:
        return True
    if last.tzinfo is None:
        last = last.replace(tzinfo=timezone.utc)
    return now - last > window


def validate_session(
    token: str | None,
    store: UserStore,
    window: timedelta,
    now: datetime | None = None,
) -> User:
    """Resolve a session cookie value to its user, enforcing the sliding window.

    Args:
        token:  Raw cookie value, or None when the cookie was not sent.
        store:  UserStore holding the session columns.
        window: Maximum idle time between authenticated requests.
        now:    Clock override for tests; defaults to current UTC time.

    Returns the User on success. Raises ServiceError for every rejection.
    Store errors during the lookup itself propagate to the caller.
    """
    if not token:
        raise ServiceError(ErrorKind.MISSING_CREDENTIAL)

    canonical = parse_session_token(token)
    if canonical is None:
        raise ServiceError(ErrorKind.INVALID_CREDENTIAL)

    user = store.get_by_session_token(canonical)
    if user is None:
        # Forged, already expired, or replaced by a newer login.
        logger.warning("Rejected unknown session token")
        raise ServiceError(ErrorKind.INVALID_SESSION)

    now = now or _utcnow()

    if _is_expired(user.last_activity, now, window):
        try:
            store.end_session(user.id, canonical)
        except SQLAlchemyError:
            logger.warning("Could not clear expired session for user id %s", user.id, exc_info=True)
        logger.info("Session expired for user id %s", user.id)
        raise ServiceError(ErrorKind.SESSION_EXPIRED)

    try:
        if store.touch_session(user.id, canonical, now):
            user = replace(user, last_activity=now.isoformat())
    except SQLAlchemyError:
        logger.warning("Could not refresh session for user id %s", user.id, exc_info=True)

    return user


# ---------------------------------------------------------------------------
# End
# ---------------------------------------------------------------------------


def end_session(store: UserStore, token: str | None) -> None:
    """Log out whoever holds this token. Silent if the token is absent, malformed, or unknown.

    Store errors propagate; logout is an explicit user action, not housekeeping.
    """
    canonical = parse_session_token(token) if token else None
    if canonical is None:
        return
    user = store.get_by_session_token(canonical)
    if user is not None:
        store.end_session(user.id, canonical)
        logger.info("User id %s logged out", user.id)


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_session_cookie(response, token: str, settings: Settings) -> None:
    """Write the session token as the login_id cookie.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="strict": never sent on cross-site requests (CSRF mitigation).
    secure: only sent over HTTPS when SECURE_COOKIES=true.
    max_age: the sliding window. It is set once at login; refreshes only move
        the server-side timestamp and do not re-send the cookie.
    """
    response.set_cookie(
        SESSION_COOKIE,
        value=token,
        max_age=settings.session_window_seconds,
        path="/",
        httponly=True,
        samesite="strict",
        secure=settings.secure_cookies,
    )


def clear_session_cookie(response) -> None:
    response.delete_cookie(SESSION_COOKIE, path="/", httponly=True, samesite="strict")
