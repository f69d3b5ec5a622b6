"""
api/negotiation.py -- Accept JSON or form-encoded bodies for the same route.

Browsers posting an HTML form send application/x-www-form-urlencoded (or
multipart/form-data); API clients send JSON. negotiated_body() picks the
parser from Content-Type, then validates the resulting dict against one
Pydantic model, so route code only ever sees the typed request.

Anything that is not declared as a form is parsed as JSON. A body that fails
to parse or validate raises RequestValidationError, which the 422 handler in
api/errors.py renders.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TypeVar

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel, ValidationError

M = TypeVar("M", bound=BaseModel)

_FORM_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


async def _read_payload(request: Request) -> object:
    content_type = request.headers.get("content-type", "").split(";")[0].strip().lower()
    if content_type in _FORM_TYPES:
        form = await request.form()
        return dict(form)
    return await request.json()


def negotiated_body(model: type[M]) -> Callable[[Request], Awaitable[M]]:
    """Return a dependency that yields `model` parsed from a JSON or form body.

    Usage:
        @router.post("/login")
        def login(body: LoginRequest = Depends(negotiated_body(LoginRequest))): ...
    """

    async def dependency(request: Request) -> M:
        try:
            payload = await _read_payload(request)
        except ValueError:
            # json.JSONDecodeError and UnicodeDecodeError both land here.
            raise RequestValidationError(
                [{"type": "json_invalid", "loc": ("body",), "msg": "Malformed request body."}]
            ) from None
        try:
            return model.model_validate(payload)
        except ValidationError as exc:
            raise RequestValidationError(exc.errors(include_url=False)) from None

    return dependency


def body_openapi(model: type[BaseModel]) -> dict:
    """`openapi_extra=` entry documenting `model` as the body in both encodings.

    negotiated_body() reads the Request directly, so FastAPI cannot infer the
    body schema on its own.
    """
    schema = model.model_json_schema()
    return {
        "requestBody": {
            "required": True,
            "content": {content_type: {"schema": schema} for content_type in ("application/json", *_FORM_TYPES)},
        }
    }
