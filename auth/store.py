"""
auth/store.py -- SQLAlchemy Core persistence layer for users and sessions.

Pattern: Repository + Data Mapper. UserStore is the repository;
_row_to_user / _row_to_session are the mappers. Controller and guard code
never touches SQL directly.

Session slot:
  Each user owns exactly one row in `sessions`, created empty in the same
  transaction as the user. The row's refresh_token column is the only
  server-side record of a live session. It is written through four methods
  and nothing else:

    open_session   unconditional overwrite (login)
    rotate_session compare-and-swap old -> new (refresh)
    close_session  compare-and-swap token -> NULL (logout)
    clear_session  unconditional clear (password reset)

  The compare-and-swap methods are a single UPDATE ... WHERE refresh_token =
  :expected, so the database serializes racing refreshes: only one UPDATE can
  match the old token, the other sees rowcount 0. replace_password_hash
  applies the same rule to users.password_hash for reset confirmation.

Security:
  All queries use bound parameters. No f-strings in SQL.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, ForeignKey, Integer, MetaData, String, Table, Text, create_engine, event
from sqlalchemy.engine import Engine

from auth.models import Role, Session, User

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("password_hash", Text, nullable=False),
    Column("role", String(16), nullable=False, server_default=Role.USER.value),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_sessions = Table(
    "sessions",
    _metadata,
    Column("user_id", Integer, ForeignKey("users.id"), primary_key=True),
    Column("refresh_token", Text),  # NULL = no live session
    Column("updated_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers are not blocked by session writes.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User and Session entities.

    Usage:
        store = UserStore("sqlite:///auth.db")
        user_id = store.create_user(User(email="a@x.com", password_hash=hasher.hash("pw")))
        store.open_session(user_id, refresh_token)
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            # Threadpool workers share the engine; writers wait on the lock.
            connect_args["check_same_thread"] = False
            connect_args["timeout"] = 15
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        with self.engine.connect() as conn:
            conn.exec_driver_sql("SELECT 1")
        return True

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> int:
        """Insert a user plus its empty session row; return the new user id.

        Raises sqlalchemy.exc.IntegrityError if the email already exists.
        """
        now = _now_iso()
        with self.engine.begin() as conn:
            result = conn.execute(
                _users.insert().values(
                    email=user.email,
                    password_hash=user.password_hash,
                    role=Role.parse(user.role).value,
                    created_at=now,
                    updated_at=now,
                )
            )
            user_id = result.inserted_primary_key[0]
            conn.execute(_sessions.insert().values(user_id=user_id, refresh_token=None, updated_at=now))
        return user_id

    def get_by_email(self, email: str) -> User | None:
        """Look up a user by exact email (case-sensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: int) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def update_user(self, user_id: int, **fields) -> bool:
        """Update mutable fields (password_hash, role) on an existing user.

        Returns True if a row was updated, False if user_id was not found.
        """
        if "role" in fields:
            fields["role"] = Role.parse(fields["role"]).value
        fields["updated_at"] = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(_users.update().where(_users.c.id == user_id).values(**fields))
            conn.commit()
        return result.rowcount > 0

    def replace_password_hash(self, user_id: int, expected: str, password_hash: str) -> bool:
        """Swap the password hash only if it still equals `expected`.

        Returns False if the password changed since `expected` was read, so
        of two racing reset confirmations only one can write.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update()
                .where((_users.c.id == user_id) & (_users.c.password_hash == expected))
                .values(password_hash=password_hash, updated_at=_now_iso())
            )
            conn.commit()
        return result.rowcount > 0

    def delete_user(self, user_id: int) -> bool:
        """Delete a user and its session. Returns True if the user existed."""
        with self.engine.begin() as conn:
            conn.execute(_sessions.delete().where(_sessions.c.user_id == user_id))
            result = conn.execute(_users.delete().where(_users.c.id == user_id))
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Session slot
    # ------------------------------------------------------------------

    def get_session(self, user_id: int) -> Session | None:
        with self.engine.connect() as conn:
            row = conn.execute(_sessions.select().where(_sessions.c.user_id == user_id)).fetchone()
        return _row_to_session(row) if row is not None else None

    def open_session(self, user_id: int, refresh_token: str) -> bool:
        """Overwrite the slot with a new refresh token, whatever it held before."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _sessions.update()
                .where(_sessions.c.user_id == user_id)
                .values(refresh_token=refresh_token, updated_at=_now_iso())
            )
            conn.commit()
        return result.rowcount > 0

    def rotate_session(self, user_id: int, expected: str, refresh_token: str) -> bool:
        """Swap the slot from `expected` to `refresh_token`.

        Returns False (and changes nothing) if the slot no longer holds
        `expected` -- the token was already rotated, logged out or replaced
        by a newer login.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _sessions.update()
                .where((_sessions.c.user_id == user_id) & (_sessions.c.refresh_token == expected))
                .values(refresh_token=refresh_token, updated_at=_now_iso())
            )
            conn.commit()
        return result.rowcount > 0

    def close_session(self, user_id: int, expected: str) -> bool:
        """Clear the slot only if it still holds `expected`."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _sessions.update()
                .where((_sessions.c.user_id == user_id) & (_sessions.c.refresh_token == expected))
                .values(refresh_token=None, updated_at=_now_iso())
            )
            conn.commit()
        return result.rowcount > 0

    def clear_session(self, user_id: int) -> None:
        with self.engine.connect() as conn:
            conn.execute(
                _sessions.update()
                .where(_sessions.c.user_id == user_id)
                .values(refresh_token=None, updated_at=_now_iso())
            )
            conn.commit()

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        password_hash=row.password_hash,
        role=Role.parse(row.role),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_session(row) -> Session:
    return Session(
        user_id=row.user_id,
        refresh_token=row.refresh_token,
        updated_at=row.updated_at,
    )
