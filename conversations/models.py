"""
conversations/models.py -- Domain dataclass for a conversation with the agent.

Pattern: Data class (pure data container, zero logic).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

DEFAULT_TITLE = "New Conversation"


@dataclass
class Conversation:
    """A transcript produced by the agent, owned by exactly one user.

    content is whatever JSON document the agent returned; the store keeps it
    as JSON text and decodes it on read.
    """

    owner_id: int
    content: Any = field(default_factory=dict)
    title: str = DEFAULT_TITLE
    id: int | None = None
    created_at: str | None = None
