"""
API request and response models for the Cogito REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
conversations/models.py, which own the internal domain representation. Route
handlers map between the two.

Response models are built field by field from the domain objects. That is what
keeps hashed_password and session_token out of every response: neither field
exists on any model here.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from auth.models import User
from auth.passwords import MAX_PASSWORD_BYTES
from conversations.models import Conversation

# ---------------------------------------------------------------------------
# Shared validators
# ---------------------------------------------------------------------------


def _check_password_bytes(value: str) -> str:
    if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(f"password must be at most {MAX_PASSWORD_BYTES} bytes")
    return value


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /register.

    email and phone_number are optional, but each must be unique when given.
    """

    username: str = Field(min_length=1, max_length=50)
    password: str = Field(min_length=1)
    email: Optional[str] = Field(default=None, max_length=320)
    phone_number: Optional[str] = Field(default=None, max_length=32)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        return _check_password_bytes(value)

    @field_validator("email", "phone_number")
    @classmethod
    def blank_is_none(cls, value: Optional[str]) -> Optional[str]:
        """Form posts send empty strings for untouched inputs; store those as NULL."""
        return value or None


class LoginRequest(BaseModel):
    """Request body for POST /login."""

    username: str = Field(min_length=1, max_length=50)
    password: str = Field(min_length=1, max_length=255)


class CreateConversationRequest(BaseModel):
    """Request body for POST /create_conversation."""

    initial_message: str = Field(min_length=1, max_length=10_000)


class RenameConversationRequest(BaseModel):
    """Request body for PATCH /conversation/{id}."""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=1, max_length=200)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class MessageResponse(BaseModel):
    """Plain acknowledgement body."""

    model_config = ConfigDict(frozen=True)

    message: str


class UserResponse(BaseModel):
    """Public view of a user record. No password hash, no session token."""

    model_config = ConfigDict(frozen=True)

    id: int
    username: str
    email: Optional[str]
    phone_number: Optional[str]
    verified: bool
    is_admin: bool
    last_activity: Optional[str]
    created_at: str

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            phone_number=user.phone_number,
            verified=user.verified,
            is_admin=user.is_admin,
            last_activity=user.last_activity,
            created_at=user.created_at or "",
        )


class CreateConversationResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    conversation_id: int


class ConversationResponse(BaseModel):
    """Full conversation, including the agent transcript."""

    model_config = ConfigDict(frozen=True)

    conversation_id: int
    owner_id: int
    title: str
    content: Any
    created_at: str

    @classmethod
    def from_conversation(cls, conversation: Conversation) -> "ConversationResponse":
        return cls(
            conversation_id=conversation.id,
            owner_id=conversation.owner_id,
            title=conversation.title,
            content=conversation.content,
            created_at=conversation.created_at or "",
        )


class ConversationSummary(BaseModel):
    """One row in GET /conversations -- no transcript."""

    model_config = ConfigDict(frozen=True)

    conversation_id: int
    title: str
    created_at: str


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]
