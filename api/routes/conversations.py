"""
api/routes/conversations.py -- Conversations with the Cogito agent.

Routes:
  POST   /create_conversation   -- ask the agent, store the transcript
  GET    /conversations         -- list the caller's conversations
  GET    /conversation/{id}     -- one conversation (ownership checked)
  PATCH  /conversation/{id}     -- rename (ownership checked)
  DELETE /conversation/{id}     -- delete (ownership checked)

Every route requires a session (get_current_user). Every /conversation/{id}
route goes through load_owned(), which reports another user's conversation
exactly like a missing one.
"""

from __future__ import annotations

import logging
from dataclasses import replace

from fastapi import APIRouter, Depends, Request
from sqlalchemy.exc import SQLAlchemyError

from api.errors import SESSION_ERRORS, error_responses
from api.models import (
    ConversationResponse,
    ConversationSummary,
    CreateConversationRequest,
    CreateConversationResponse,
    MessageResponse,
    RenameConversationRequest,
)
from api.negotiation import body_openapi, negotiated_body
from auth.dependencies import get_current_user
from auth.models import User
from conversations.models import Conversation
from conversations.ownership import load_owned
from conversations.store import ConversationStore
from core.agent import AgentError, CogitoAgent
from core.errors import ErrorKind, ServiceError

logger = logging.getLogger("cogito.conversations")

router = APIRouter()


@router.post(
    "/create_conversation",
    response_model=CreateConversationResponse,
    responses=error_responses(*SESSION_ERRORS, ErrorKind.AGENT_UNAVAILABLE),
    openapi_extra=body_openapi(CreateConversationRequest),
)
def create_conversation(
    request: Request,
    current_user: User = Depends(get_current_user),
    body: CreateConversationRequest = Depends(negotiated_body(CreateConversationRequest)),
) -> CreateConversationResponse:
    """Start a conversation: send the opening message to the agent and store its transcript."""
    agent: CogitoAgent = request.app.state.agent
    store: ConversationStore = request.app.state.conversations

    try:
        transcript = agent.ask(body.initial_message)
    except AgentError:
        raise ServiceError(ErrorKind.AGENT_UNAVAILABLE) from None

    try:
        conversation_id = store.create(Conversation(owner_id=current_user.id, content=transcript))
    except SQLAlchemyError:
        logger.exception("Failed to create new conversation for user id %s", current_user.id)
        raise ServiceError(ErrorKind.DATABASE_ERROR) from None

    return CreateConversationResponse(conversation_id=conversation_id)


@router.get(
    "/conversations",
    response_model=list[ConversationSummary],
    responses=error_responses(*SESSION_ERRORS),
)
def list_conversations(
    request: Request,
    current_user: User = Depends(get_current_user),
) -> list[ConversationSummary]:
    """List the caller's own conversations, newest first. Transcripts are omitted."""
    store: ConversationStore = request.app.state.conversations
    return [
        ConversationSummary(conversation_id=c.id, title=c.title, created_at=c.created_at or "")
        for c in store.list_for_owner(current_user.id)
    ]


@router.get(
    "/conversation/{conversation_id}",
    response_model=ConversationResponse,
    responses=error_responses(*SESSION_ERRORS, ErrorKind.CONVERSATION_NOT_FOUND),
)
def get_conversation(
    request: Request,
    conversation_id: int,
    current_user: User = Depends(get_current_user),
) -> ConversationResponse:
    """Return one conversation, transcript included."""
    conversation = load_owned(request.app.state.conversations, conversation_id, current_user)
    return ConversationResponse.from_conversation(conversation)


@router.patch(
    "/conversation/{conversation_id}",
    response_model=ConversationResponse,
    responses=error_responses(*SESSION_ERRORS, ErrorKind.CONVERSATION_NOT_FOUND),
    openapi_extra=body_openapi(RenameConversationRequest),
)
def rename_conversation(
    request: Request,
    conversation_id: int,
    current_user: User = Depends(get_current_user),
    body: RenameConversationRequest = Depends(negotiated_body(RenameConversationRequest)),
) -> ConversationResponse:
    """Change a conversation's title."""
    store: ConversationStore = request.app.state.conversations
    conversation = load_owned(store, conversation_id, current_user)
    if not store.rename(conversation.id, current_user.id, body.title):
        # Deleted between the ownership check and the update.
        raise ServiceError(ErrorKind.CONVERSATION_NOT_FOUND)
    return ConversationResponse.from_conversation(replace(conversation, title=body.title))


@router.delete(
    "/conversation/{conversation_id}",
    response_model=MessageResponse,
    responses=error_responses(*SESSION_ERRORS, ErrorKind.CONVERSATION_NOT_FOUND),
)
def delete_conversation(
    request: Request,
    conversation_id: int,
    current_user: User = Depends(get_current_user),
) -> MessageResponse:
    """Delete one of the caller's conversations."""
    store: ConversationStore = request.app.state.conversations
    conversation = load_owned(store, conversation_id, current_user)
    try:
        deleted = store.delete(conversation.id, current_user.id)
    except SQLAlchemyError:
        logger.exception("Failed to delete conversation %s for user id %s", conversation.id, current_user.id)
        raise ServiceError(ErrorKind.DATABASE_ERROR) from None
    if not deleted:
        raise ServiceError(ErrorKind.CONVERSATION_NOT_FOUND)
    return MessageResponse(message="Conversation deleted successfully.")
