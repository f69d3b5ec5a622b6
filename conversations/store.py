"""
conversations/store.py -- SQLAlchemy Core persistence for conversations.

Pattern: Repository + Data Mapper, same shape as auth/store.py.

get_by_id() is deliberately unscoped so the ownership guard can tell "absent"
from "someone else's" and log the latter. Every mutating statement is scoped
by owner_id as well, so a caller that skipped the guard still cannot touch
another user's row.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event
from sqlalchemy.engine import Engine

from conversations.models import DEFAULT_TITLE, Conversation

_metadata = MetaData()

_conversations = Table(
    "conversations",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("owner_id", Integer, nullable=False, index=True),
    Column("content", Text, nullable=False),  # JSON document from the agent
    Column("title", String(200), nullable=False, server_default=DEFAULT_TITLE),
    Column("created_at", String(32), nullable=False),
)


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


_MAX_ROW_ID = 2**63 - 1


def _storable_id(row_id: int) -> bool:
    return -_MAX_ROW_ID - 1 <= row_id <= _MAX_ROW_ID


class ConversationStore:
    """Repository for Conversation records."""

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    def create(self, conversation: Conversation) -> int:
        """Insert a conversation and return its ID."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _conversations.insert().values(
                    owner_id=conversation.owner_id,
                    content=json.dumps(conversation.content),
                    title=conversation.title,
                    created_at=_now_iso(),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_by_id(self, conversation_id: int) -> Conversation | None:
        """Fetch by primary key regardless of owner. Only the ownership guard should call this."""
        if not _storable_id(conversation_id):
            return None
        with self.engine.connect() as conn:
            row = conn.execute(_conversations.select().where(_conversations.c.id == conversation_id)).fetchone()
        return _row_to_conversation(row) if row is not None else None

    def list_for_owner(self, owner_id: int) -> list[Conversation]:
        """Return all conversations owned by a user, newest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _conversations.select()
                .where(_conversations.c.owner_id == owner_id)
                .order_by(_conversations.c.id.desc())
            ).fetchall()
        return [_row_to_conversation(r) for r in rows]

    def rename(self, conversation_id: int, owner_id: int, title: str) -> bool:
        """Change a conversation's title. Returns False if not found or wrong owner."""
        if not _storable_id(conversation_id):
            return False
        with self.engine.connect() as conn:
            result = conn.execute(
                _conversations.update()
                .where((_conversations.c.id == conversation_id) & (_conversations.c.owner_id == owner_id))
                .values(title=title)
            )
            conn.commit()
        return result.rowcount > 0

    def delete(self, conversation_id: int, owner_id: int) -> bool:
        """Permanently delete a conversation. Returns False if not found or wrong owner."""
        if not _storable_id(conversation_id):
            return False
        with self.engine.connect() as conn:
            result = conn.execute(
                _conversations.delete().where(
                    (_conversations.c.id == conversation_id) & (_conversations.c.owner_id == owner_id)
                )
            )
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


def _row_to_conversation(row) -> Conversation:
    return Conversation(
        id=row.id,
        owner_id=row.owner_id,
        content=json.loads(row.content),
        title=row.title,
        created_at=row.created_at,
    )
