"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and services do
the work; these only own the domain shape.

Layer rule: no imports from api/, bootstrap/, or contact/.
"""

from __future__ import annotations

from dataclasses import dataclass

ROLE_ADMIN = "admin"
ROLE_USER = "user"


@dataclass
class User:
    """A persisted identity.

    email is unique and compared exactly as stored (case-sensitive).
    password_hash is the "hex(salt):hex(key)" scrypt encoding produced by
    auth.passwords.PasswordHasher. The first successful signup on a fresh
    deployment gets role "admin"; everyone after gets "user".
    """

    email: str
    name: str
    password_hash: str
    role: str  # "admin" | "user"
    id: str | None = None
    created_at: str | None = None


@dataclass(frozen=True)
class SessionClaims:
    """Identity asserted by a session token. Never persisted.

    issued_at / expires_at are Unix seconds taken from the token's iat / exp.
    There is no server-side revocation: expiry is the only way a session ends.
    """

    user_id: str
    role: str
    email: str
    name: str
    issued_at: int = 0
    expires_at: int = 0


@dataclass
class PasswordResetToken:
    """A single-use reset credential, stored only as the SHA-256 of the raw token.

    The raw token exists in exactly one place: the link in the outbound email.
    used flips to True on redemption, or when a newer token is requested for
    the same user. Expired records are left in place and become inert.
    """

    user_id: str
    token_hash: str
    expires_at: str
    id: str | None = None
    created_at: str | None = None
    used: bool = False
