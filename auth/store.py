"""
auth/store.py -- SQLAlchemy Core persistence layer for auth entities.

Pattern: Repository + Data Mapper. UserStore is the repository for users and
their password-reset tokens; _row_to_user / _row_to_reset_token are the
mappers. Route and service code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  Only token hashes are stored. The raw reset token never reaches this module.

  redeem_reset_token() claims the token with a conditional
  UPDATE ... WHERE used = 0 in the same transaction that rewrites the
  password hash. Two concurrent redemptions of the same token cannot both
  succeed: the loser's UPDATE matches zero rows and the transaction returns
  None without touching the password. If the owner has been deleted the
  claim is rolled back and the token stays unused.

The engine is injected (core.database.create_db_engine) so the whole process
shares one engine and tests can pass an isolated in-memory database.

Layer rule: no imports from api/, bootstrap/, or contact/.
"""

from __future__ import annotations

import uuid

from sqlalchemy import Column, Integer, String, Table, Text, func, select
from sqlalchemy.engine import Engine

from auth.models import ROLE_ADMIN, PasswordResetToken, User
from core.database import metadata, now_iso

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_users = Table(
    "auth_users",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("name", String(255), nullable=False),
    Column("password_hash", Text, nullable=False),
    Column("role", String(20), nullable=False, server_default="user"),
    Column("created_at", String(32), nullable=False),
)

_reset_tokens = Table(
    "password_reset_tokens",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("user_id", String(36), nullable=False, index=True),
    Column("token_hash", String(64), nullable=False, unique=True),  # SHA-256 hex
    Column("created_at", String(32), nullable=False),
    Column("expires_at", String(32), nullable=False),
    Column("used", Integer, nullable=False, server_default="0"),  # boolean stored as 0/1
)


def _new_id() -> str:
    return str(uuid.uuid4())


class _OwnerMissing(Exception):
    """Raised inside the redemption transaction to roll back the claim."""


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User and PasswordResetToken entities.

    Usage:
        store = UserStore(create_db_engine("sqlite:///storm.db"))
        uid = store.create_user(User(email="a@x.com", name="A", password_hash=h, role="admin"))
        user = store.get_by_email("a@x.com")
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        metadata.create_all(self.engine, tables=[_users, _reset_tokens])

    # ------------------------------------------------------------------
    # User queries
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> str:
        """Insert a new user and return its generated id.

        Raises sqlalchemy.exc.IntegrityError if the email already exists.
        Signup catches that as the concurrent-duplicate case of email_exists.
        """
        user_id = _new_id()
        with self.engine.begin() as conn:
            conn.execute(
                _users.insert().values(
                    id=user_id,
                    email=user.email,
                    name=user.name,
                    password_hash=user.password_hash,
                    role=user.role,
                    created_at=now_iso(),
                )
            )
        return user_id

    def get_by_email(self, email: str) -> User | None:
        """Look up a user by exact email (case-sensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def count_admins(self) -> int:
        """Return the number of admin users. Zero means the next signup becomes admin."""
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(_users).where(_users.c.role == ROLE_ADMIN)).scalar()
        return result or 0

    # ------------------------------------------------------------------
    # Password-reset tokens
    # ------------------------------------------------------------------

    def replace_reset_token(self, token: PasswordResetToken) -> str:
        """Invalidate every unused token for token.user_id, then insert token.

        Both statements run in one transaction, so at most one unused token
        per user exists at any committed point in time. Returns the new
        record's id.
        """
        token_id = _new_id()
        with self.engine.begin() as conn:
            conn.execute(
                _reset_tokens.update()
                .where((_reset_tokens.c.user_id == token.user_id) & (_reset_tokens.c.used == 0))
                .values(used=1)
            )
            conn.execute(
                _reset_tokens.insert().values(
                    id=token_id,
                    user_id=token.user_id,
                    token_hash=token.token_hash,
                    created_at=token.created_at or now_iso(),
                    expires_at=token.expires_at,
                    used=0,
                )
            )
        return token_id

    def redeem_reset_token(self, token_hash: str, new_password_hash: str, now: str) -> str | None:
        """Atomically consume a reset token and set the owner's new password hash.

        Returns the user_id on success. Returns None when no unused,
        unexpired token matches, when a concurrent redemption claimed it
        first, or when the owning user no longer exists (nothing is written
        and the token stays unused).
        """
        try:
            with self.engine.begin() as conn:
                # Claim first: the write lock is taken before anything is read.
                claimed = conn.execute(
                    _reset_tokens.update()
                    .where(
                        (_reset_tokens.c.token_hash == token_hash)
                        & (_reset_tokens.c.used == 0)
                        & (_reset_tokens.c.expires_at > now)
                    )
                    .values(used=1)
                )
                if claimed.rowcount != 1:
                    return None
                user_id = conn.execute(
                    select(_reset_tokens.c.user_id).where(_reset_tokens.c.token_hash == token_hash)
                ).scalar_one()
                updated = conn.execute(
                    _users.update().where(_users.c.id == user_id).values(password_hash=new_password_hash)
                )
                if updated.rowcount != 1:
                    raise _OwnerMissing(user_id)
        except _OwnerMissing:
            return None
        return user_id

    def list_reset_tokens(self, user_id: str) -> list[PasswordResetToken]:
        """Return every reset token ever issued to user_id, oldest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _reset_tokens.select()
                .where(_reset_tokens.c.user_id == user_id)
                .order_by(_reset_tokens.c.created_at, _reset_tokens.c.id)
            ).fetchall()
        return [_row_to_reset_token(r) for r in rows]


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        name=row.name,
        password_hash=row.password_hash,
        role=row.role,
        created_at=row.created_at,
    )


def _row_to_reset_token(row) -> PasswordResetToken:
    return PasswordResetToken(
        id=row.id,
        user_id=row.user_id,
        token_hash=row.token_hash,
        created_at=row.created_at,
        expires_at=row.expires_at,
        used=bool(row.used),
    )
