"""
auth/store.py -- SQLAlchemy Core persistence layer for user accounts and sessions.

Pattern: Repository + Data Mapper.
UserStore is the repository; _row_to_user is the mapper.
Route and dependency code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  Session writes are single-row, single-statement UPDATEs scoped by user id.
  start_session() writes the token and the timestamp together so there is no
  window where one is fresh and the other stale. touch_session() and
  end_session() also match on the token, so a request still carrying an old
  token cannot extend or clear a newer login.

  email and phone_number are UNIQUE but nullable; both SQLite and PostgreSQL
  treat NULLs as distinct, so accounts registered without them never collide.

Errors:
  Methods let sqlalchemy.exc.SQLAlchemyError propagate. IntegrityError on
  create_user() is the caller's conflict signal. Whether any other failure is
  fatal is decided by the caller (see auth/sessions.py).

Layer rule: no imports from api/ or conversations/.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, text
from sqlalchemy.engine import Engine

from auth.models import User

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(50), nullable=False, unique=True),
    Column("hashed_password", Text, nullable=False),
    Column("email", String(320), unique=True),
    Column("phone_number", String(32), unique=True),
    Column("session_token", String(36), unique=True),  # NULL = logged out
    Column("last_activity", String(32)),  # ISO 8601, meaningful only with a token
    Column("verified", Integer, nullable=False, server_default="0"),
    Column("is_admin", Integer, nullable=False, server_default="0"),
    Column("created_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so session refreshes do not block concurrent readers.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# SQLite INTEGER is signed 64-bit; larger ids cannot exist and would overflow the driver.
_MAX_ROW_ID = 2**63 - 1


def _storable_id(row_id: int) -> bool:
    return -_MAX_ROW_ID - 1 <= row_id <= _MAX_ROW_ID


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User records, including their session columns.

    Usage:
        store = UserStore("sqlite:///cogito.db")
        uid = store.create_user(User(username="alice", hashed_password=hash_password("p1")))
        user = store.get_by_username("alice")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    def ping(self) -> bool:
        """Return True if the database answers a trivial query. Used by /health."""
        with self.engine.connect() as conn:
            return conn.execute(text("SELECT 1")).scalar() == 1

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> int:
        """Insert a new user and return its assigned database ID.

        New accounts always start logged out (session_token NULL), whatever
        the passed dataclass holds.

        Raises sqlalchemy.exc.IntegrityError if the username, email, or phone
        number already exists.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.insert().values(
                    username=user.username,
                    hashed_password=user.hashed_password,
                    email=user.email,
                    phone_number=user.phone_number,
                    session_token=None,
                    last_activity=None,
                    verified=1 if user.verified else 0,
                    is_admin=1 if user.is_admin else 0,
                    created_at=_now_iso(),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_by_username(self, username: str) -> User | None:
        """Look up a user by exact username (case-sensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.username == username)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: int) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        if not _storable_id(user_id):
            return None
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def get_by_session_token(self, token: str) -> User | None:
        """Resolve a session token to its user. O(1) via the UNIQUE index."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.session_token == token)).fetchone()
        return _row_to_user(row) if row is not None else None

    def start_session(self, user_id: int, token: str, at: datetime) -> bool:
        """Set session_token and last_activity in one statement.

        Replaces any previous token, which logs out other devices.
        Returns True if a row was updated, False if user_id was not found.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update()
                .where(_users.c.id == user_id)
                .values(session_token=token, last_activity=at.isoformat())
            )
            conn.commit()
        return result.rowcount > 0

    def touch_session(self, user_id: int, token: str, at: datetime) -> bool:
        """Slide the session window forward. No-op if the token was replaced or cleared."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update()
                .where((_users.c.id == user_id) & (_users.c.session_token == token))
                .values(last_activity=at.isoformat())
            )
            conn.commit()
        return result.rowcount > 0

    def end_session(self, user_id: int, token: str) -> bool:
        """Clear the session token, but only if it is still the given one."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update()
                .where((_users.c.id == user_id) & (_users.c.session_token == token))
                .values(session_token=None)
            )
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        username=row.username,
        hashed_password=row.hashed_password,
        email=row.email,
        phone_number=row.phone_number,
        session_token=row.session_token,
        last_activity=row.last_activity,
        verified=bool(row.verified),
        is_admin=bool(row.is_admin),
        created_at=row.created_at,
    )
