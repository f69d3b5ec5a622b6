"""
core/errors.py -- Client-visible failure kinds.

Core code never builds an error message. It raises ServiceError with one of the
ErrorKind members below, and api/errors.py turns the kind into a fixed status
code and message at the HTTP boundary. Keeping the message table in one place
means no handler can interpolate internal detail into a response body.

Enumeration resistance: an unknown username and a wrong password both raise
BAD_CREDENTIALS. A conversation owned by someone else raises the same
CONVERSATION_NOT_FOUND as a conversation that does not exist.

Layer rule: core/ is the kernel. This module may not import from api/, auth/,
or conversations/.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    # Session gate
    MISSING_CREDENTIAL = "missing_credential"
    INVALID_CREDENTIAL = "invalid_credential"
    INVALID_SESSION = "invalid_session"
    SESSION_EXPIRED = "session_expired"

    # Login / registration
    BAD_CREDENTIALS = "bad_credentials"
    CONFLICT = "conflict"

    # Resources
    USER_NOT_FOUND = "user_not_found"
    CONVERSATION_NOT_FOUND = "conversation_not_found"

    # Infrastructure
    DATABASE_ERROR = "database_error"
    SERVER_ERROR = "server_error"
    AGENT_UNAVAILABLE = "agent_unavailable"

    # Request shape / throttling
    VALIDATION_ERROR = "validation_error"
    RATE_LIMITED = "rate_limited"


class ServiceError(Exception):
    """A terminal, client-visible failure identified only by its kind."""

    def __init__(self, kind: ErrorKind) -> None:
        super().__init__(kind.value)
        self.kind = kind
