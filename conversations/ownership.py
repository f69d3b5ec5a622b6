"""
conversations/ownership.py -- Ownership guard for conversation reads and writes.

Disclosure policy: uniform not-found. A conversation that exists but belongs
to another user produces exactly the same CONVERSATION_NOT_FOUND as one that
does not exist, so guessing ids reveals nothing. The mismatch is still logged
as an ownership violation for audit.
"""

from __future__ import annotations

import logging

from auth.models import User
from conversations.models import Conversation
from conversations.store import ConversationStore
from core.errors import ErrorKind, ServiceError

logger = logging.getLogger("cogito.conversations")


def load_owned(store: ConversationStore, conversation_id: int, user: User) -> Conversation:
    """Return the conversation if it exists and belongs to user; raise otherwise.

    Used identically by the read, rename, and delete routes.
    """
    conversation = store.get_by_id(conversation_id)
    if conversation is None:
        raise ServiceError(ErrorKind.CONVERSATION_NOT_FOUND)
    if conversation.owner_id != user.id:
        logger.warning(
            "Ownership violation: user id %s requested conversation %s owned by user id %s",
            user.id,
            conversation_id,
            conversation.owner_id,
        )
        raise ServiceError(ErrorKind.CONVERSATION_NOT_FOUND)
    return conversation
