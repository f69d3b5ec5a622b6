"""
auth/dependencies.py -- FastAPI Depends() helper for session authentication.

get_current_user() is the one gate in front of every protected route. It
pulls the login_id cookie and the shared UserStore off the request and hands
both to validate_session(); all of the decision logic lives there.

Layer rule: no imports from api/ or conversations/.
  auth/dependencies.py may import from fastapi (for Request) because this
  module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import Request

from auth.models import User
from auth.sessions import SESSION_COOKIE, validate_session
from core.config import get_settings


def get_current_user(request: Request) -> User:
    """Require a live session. Raises ServiceError for any rejection.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(user: User = Depends(get_current_user)): ...

    Declared sync so FastAPI runs it in the threadpool alongside the
    blocking SQLAlchemy calls it makes.
    """
    return validate_session(
        request.cookies.get(SESSION_COOKIE),
        request.app.state.user_store,
        get_settings().session_window,
    )
