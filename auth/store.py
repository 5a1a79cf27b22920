"""
auth/store.py -- SQLAlchemy Core persistence layer for user identities.

Pattern: Repository + Data Mapper. UserStore is the repository; _row_to_user
is the mapper. AuthService and route code never touch SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  Emails are normalized (strip + lower) on every write and lookup, so
  "Ada@Example.com" from an OAuth provider and "ada@example.com" typed into
  the signup form resolve to the same identity. The UNIQUE constraint on
  email backs this up when two requests race to create the same account.

The store is synchronous. AuthService calls it through asyncio.to_thread(),
which is why SQLite connections are opened with check_same_thread=False.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event
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
    Column("email", String(255), nullable=False, unique=True),
    Column("hashed_password", Text),  # NULL for OAuth-only users
    Column("name", String(100)),
    Column("oauth_provider", String(30)),  # "google", "github"
    Column("oauth_subject", Text),  # provider's stable user ID
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32)),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def normalize_email(email: str) -> str:
    return email.strip().lower()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User entities.

    Usage:
        store = UserStore(settings.database_url)
        user = store.create(User(email="ada@example.com", hashed_password=hasher.hash_password("secret")))
        store.find_by_email("ada@example.com")
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

    def find_by_id(self, user_id: int) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def find_by_email(self, email: str) -> User | None:
        """Look up a user by normalized email. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == normalize_email(email))).fetchone()
        return _row_to_user(row) if row is not None else None

    def create(self, user: User) -> User:
        """Insert a new user and return it with its assigned id and created_at.

        Raises sqlalchemy.exc.IntegrityError if the email already exists.
        Callers racing to create the same account should catch IntegrityError
        and re-read by email.
        """
        created_at = _now_iso()
        email = normalize_email(user.email)
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.insert().values(
                    email=email,
                    hashed_password=user.hashed_password,
                    name=user.name,
                    oauth_provider=user.oauth_provider,
                    oauth_subject=user.oauth_subject,
                    created_at=created_at,
                )
            )
            conn.commit()
            user_id = result.inserted_primary_key[0]
        return User(
            id=user_id,
            email=email,
            hashed_password=user.hashed_password,
            name=user.name,
            oauth_provider=user.oauth_provider,
            oauth_subject=user.oauth_subject,
            created_at=created_at,
        )

    def save(self, user: User) -> None:
        """Write the mutable fields of an existing user back to the DB.

        id and email are the identity and are never rewritten here.
        """
        if user.id is None:
            raise ValueError("Cannot save a user without an id; use create()")
        with self.engine.connect() as conn:
            conn.execute(
                _users.update()
                .where(_users.c.id == user.id)
                .values(
                    hashed_password=user.hashed_password,
                    name=user.name,
                    oauth_provider=user.oauth_provider,
                    oauth_subject=user.oauth_subject,
                    updated_at=_now_iso(),
                )
            )
            conn.commit()

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        hashed_password=row.hashed_password,
        name=row.name,
        oauth_provider=row.oauth_provider,
        oauth_subject=row.oauth_subject,
        created_at=row.created_at,
    )
