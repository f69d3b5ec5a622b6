"""
api/routes/accounts.py -- Registration, login/logout, and user lookup endpoints.

Routes:
  POST /register     -- create an account (JSON or form body)
  POST /login        -- password login; sets the login_id session cookie
  POST /logout       -- clears the server-side session and the cookie
  GET  /me           -- current user's record (requires session)
  GET  /users/{id}   -- any user's record by id (requires session)

Security:
  POST /login and POST /register are rate-limited per client IP.
  authenticate_user() provides timing equalization -- use it, never inline
    get_by_username() + verify_password().
  Unknown username and wrong password share BAD_CREDENTIALS, so the two
    responses are byte-identical.
  Cache-Control: no-store on login and logout responses.
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from api.errors import SESSION_ERRORS, error_response, error_responses
from api.limiter import limiter
from api.models import LoginRequest, MessageResponse, RegisterRequest, UserResponse
from api.negotiation import body_openapi, negotiated_body
from auth.dependencies import get_current_user
from auth.models import User
from auth.passwords import authenticate_user, hash_password
from auth.sessions import SESSION_COOKIE, clear_session_cookie, end_session, issue_session, set_session_cookie
from auth.store import UserStore
from core.config import get_settings
from core.errors import ErrorKind, ServiceError

logger = logging.getLogger("cogito.api")

_settings = get_settings()

router = APIRouter()


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post(
    "/register",
    response_model=MessageResponse,
    responses=error_responses(ErrorKind.CONFLICT, ErrorKind.SERVER_ERROR, ErrorKind.DATABASE_ERROR),
    openapi_extra=body_openapi(RegisterRequest),
)
@limiter.limit(_settings.register_rate_limit)
def register(
    request: Request,
    body: RegisterRequest = Depends(negotiated_body(RegisterRequest)),
) -> MessageResponse:
    """Create an account. The new user starts unverified and logged out."""
    user_store: UserStore = request.app.state.user_store

    try:
        hashed_pw = hash_password(body.password)
    except Exception:
        logger.exception("Failed to hash password for new user during registration")
        raise ServiceError(ErrorKind.SERVER_ERROR) from None

    new_user = User(
        username=body.username,
        hashed_password=hashed_pw,
        email=body.email,
        phone_number=body.phone_number,
    )
    try:
        user_id = user_store.create_user(new_user)
    except IntegrityError:
        logger.info("Registration rejected: duplicate username, email, or phone number")
        raise ServiceError(ErrorKind.CONFLICT) from None

    logger.info("User registered: id %s", user_id)
    return MessageResponse(message="Registration successful. Please verify your account via email.")


@router.post(
    "/login",
    response_model=MessageResponse,
    responses=error_responses(ErrorKind.BAD_CREDENTIALS, ErrorKind.SERVER_ERROR, ErrorKind.DATABASE_ERROR),
    openapi_extra=body_openapi(LoginRequest),
)
@limiter.limit(_settings.login_rate_limit)
def login(
    request: Request,
    body: LoginRequest = Depends(negotiated_body(LoginRequest)),
) -> JSONResponse:
    """Check credentials and start a session carried by the login_id cookie.

    A new login replaces any earlier session for the same account.
    """
    user_store: UserStore = request.app.state.user_store
    user = authenticate_user(user_store, body.username, body.password)
    if user is None:
        resp = error_response(ErrorKind.BAD_CREDENTIALS)
        resp.headers["Cache-Control"] = "no-store"
        return resp

    token, _ = issue_session(user_store, user)
    logger.info("User logged in: id %s", user.id)

    resp = JSONResponse(status_code=200, content=MessageResponse(message="Logged in.").model_dump())
    set_session_cookie(resp, token, _settings)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/logout", response_model=MessageResponse)
def logout(request: Request) -> JSONResponse:
    """End the caller's session, if any, and clear the cookie. Always 200."""
    end_session(request.app.state.user_store, request.cookies.get(SESSION_COOKIE))
    resp = JSONResponse(content=MessageResponse(message="Logged out.").model_dump())
    clear_session_cookie(resp)
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/me", response_model=UserResponse, responses=error_responses(*SESSION_ERRORS))
def me(current_user: User = Depends(get_current_user)) -> UserResponse:
    """Return the record of the user who owns the session."""
    return UserResponse.from_user(current_user)


@router.get(
    "/users/{user_id}",
    response_model=UserResponse,
    responses=error_responses(*SESSION_ERRORS, ErrorKind.USER_NOT_FOUND),
)
def user_by_id(
    request: Request,
    user_id: int,
    current_user: User = Depends(get_current_user),
) -> UserResponse:
    """Look up a user by id. The password hash and session token are never included."""
    user_store: UserStore = request.app.state.user_store
    user = user_store.get_by_id(user_id)
    if user is None:
        raise ServiceError(ErrorKind.USER_NOT_FOUND)
    return UserResponse.from_user(user)
