"""
api/errors.py -- The one place ErrorKind becomes an HTTP status and message.

Every client-visible failure body is drawn from _ERRORS. Handlers never add
exception text, SQL, or any other internal detail to a response; that goes to
the log only. Login failures for an unknown user and a wrong password share
BAD_CREDENTIALS, so their responses are byte-identical.

Envelope (same for every error):
    {"error": {"code": "<ErrorKind value>", "message": "<fixed string>"}}
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException

from api.models import ErrorDetail, ErrorResponse
from core.errors import ErrorKind, ServiceError

logger = logging.getLogger("cogito.api")

# ---------------------------------------------------------------------------
# Kind -> (status, message)
# ---------------------------------------------------------------------------

_ERRORS: dict[ErrorKind, tuple[int, str]] = {
    ErrorKind.MISSING_CREDENTIAL: (401, "Missing credential."),
    ErrorKind.INVALID_CREDENTIAL: (400, "Invalid credential."),
    ErrorKind.INVALID_SESSION: (401, "Invalid session. Please login again."),
    ErrorKind.SESSION_EXPIRED: (401, "Session expired. Please login again."),
    ErrorKind.BAD_CREDENTIALS: (403, "Invalid credentials."),
    ErrorKind.CONFLICT: (409, "An account with that email, phone number, or username already exists."),
    ErrorKind.USER_NOT_FOUND: (404, "User not found."),
    ErrorKind.CONVERSATION_NOT_FOUND: (404, "Conversation not found."),
    ErrorKind.DATABASE_ERROR: (500, "Database error."),
    ErrorKind.SERVER_ERROR: (500, "Internal server error."),
    ErrorKind.AGENT_UNAVAILABLE: (500, "The conversational agent is unavailable."),
    ErrorKind.VALIDATION_ERROR: (422, "Request validation failed."),
    ErrorKind.RATE_LIMITED: (429, "Too many requests."),
}

# Failures any route behind get_current_user can return.
SESSION_ERRORS = (
    ErrorKind.MISSING_CREDENTIAL,
    ErrorKind.INVALID_CREDENTIAL,
    ErrorKind.INVALID_SESSION,
    ErrorKind.SESSION_EXPIRED,
    ErrorKind.DATABASE_ERROR,
)


def error_response(kind: ErrorKind, detail: str | None = None) -> JSONResponse:
    """Build the standard error envelope for a kind.

    detail is reserved for client-input diagnostics (which fields failed
    validation). It must never carry server-side exception text.
    """
    status, message = _ERRORS[kind]
    body = ErrorResponse(error=ErrorDetail(code=kind.value, message=message, detail=detail))
    return JSONResponse(status_code=status, content=body.model_dump(exclude_none=True))


def error_responses(*kinds: ErrorKind) -> dict:
    """OpenAPI `responses=` entries for the kinds a route can produce."""
    out: dict = {}
    for kind in kinds:
        status, message = _ERRORS[kind]
        entry = out.setdefault(status, {"model": ErrorResponse, "description": ""})
        entry["description"] = f"{entry['description']} {message}".strip()
    return out


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    return error_response(exc.kind)


async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Any store failure not handled closer to the source.

    The exception (with SQL and driver text) is logged; the client only sees
    "Database error.".
    """
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return error_response(ErrorKind.DATABASE_ERROR)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 naming only the offending fields.

    Pydantic's error list echoes the submitted values, which can include a
    password; only the locations are passed back.
    """
    fields = sorted({".".join(str(p) for p in err.get("loc", ()) if p != "body") or "body" for err in exc.errors()})
    return error_response(ErrorKind.VALIDATION_ERROR, detail=", ".join(fields))


async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a Retry-After hint.

    exc.limit wraps the limits RateLimitItem that tripped; its expiry is the
    length of the window in seconds.
    """
    response = error_response(ErrorKind.RATE_LIMITED)
    response.headers["Retry-After"] = str(exc.limit.limit.get_expiry())
    return response


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Framework-raised HTTP errors (unknown route, wrong method) in the same envelope."""
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=ErrorDetail(code=f"http_{exc.status_code}", message=str(exc.detail))
        ).model_dump(exclude_none=True),
        headers=getattr(exc, "headers", None),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unexpected server errors. The traceback goes to the log only."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return error_response(ErrorKind.SERVER_ERROR)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(SQLAlchemyError, database_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
