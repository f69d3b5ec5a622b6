"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and routes do
the work; the dataclass owns the domain shape.

Layer rule: no imports from api/ or conversations/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class User:
    """A registered account and its server-side session state.

    session_token is the opaque cookie value of the current login, or None when
    the user is logged out. last_activity is the ISO 8601 UTC timestamp of the
    last authenticated request and only means something while session_token is
    set. The two are always written together at login.

    hashed_password and session_token never leave the server: API response
    models are built field by field and neither field is on them.
    """

    username: str
    hashed_password: str
    id: int | None = None
    email: str | None = None
    phone_number: str | None = None
    session_token: str | None = None
    last_activity: str | None = None
    verified: bool = False
    is_admin: bool = False
    created_at: str | None = None
