"""
auth/accounts.py -- Signup and login.

Signup: the first account on a fresh deployment becomes admin, every later
one a plain user. That is a policy applied at creation time; two signups
racing on an empty database can both see zero admins. The UNIQUE email
constraint is the real guard against duplicates -- the pre-check only
produces the friendly 409 in the common case.

Login: always runs one key derivation, against a dummy hash when the email
is unknown, so response time does not reveal whether an account exists.
Unknown email and wrong password return the same failure.

Layer rule: no imports from api/, bootstrap/, or contact/.
"""

from __future__ import annotations

import logging
import secrets

from sqlalchemy.exc import IntegrityError

from auth.models import ROLE_ADMIN, ROLE_USER, SessionClaims, User
from auth.passwords import PasswordHasher
from auth.reset import is_plausible_email
from auth.store import UserStore
from auth.tokens import TokenIssuer
from core.errors import ErrorKind, Failure

logger = logging.getLogger("storm.auth")

_EMAIL_EXISTS = Failure(ErrorKind.CONFLICT, "An account with this email already exists", code="email_exists")
_BAD_CREDENTIALS = Failure(ErrorKind.VALIDATION, "Invalid credentials", code="invalid_credentials")


class AccountService:
    def __init__(self, store: UserStore, hasher: PasswordHasher, issuer: TokenIssuer) -> None:
        self._store = store
        self._hasher = hasher
        self._issuer = issuer
        # Timing equalization target for unknown emails.
        self._dummy_hash = hasher.hash(secrets.token_hex(16))

    def signup(self, name: str | None, email: str | None, password: str | None) -> tuple[str, str] | Failure:
        """Create an account. Returns (user_id, role) or a Failure."""
        if not name:
            return Failure(ErrorKind.VALIDATION, "Missing name")
        if not is_plausible_email(email):
            return Failure(ErrorKind.VALIDATION, "Invalid email")
        if not password:
            return Failure(ErrorKind.VALIDATION, "Missing email or password")

        if self._store.get_by_email(email) is not None:
            return _EMAIL_EXISTS

        role = ROLE_ADMIN if self._store.count_admins() == 0 else ROLE_USER
        user = User(email=email, name=name, password_hash=self._hasher.hash(password), role=role)
        try:
            user_id = self._store.create_user(user)
        except IntegrityError:
            # Concurrent signup with the same email won the insert.
            return _EMAIL_EXISTS
        logger.info("User %s created with role %s", user_id, role)
        return user_id, role

    def authenticate(self, email: str | None, password: str | None) -> User | Failure:
        """Return the User whose credentials match, or the generic failure."""
        user = self._store.get_by_email(email) if email else None
        if user is None:
            self._hasher.verify(password or "", self._dummy_hash)
            return _BAD_CREDENTIALS
        if not self._hasher.verify(password or "", user.password_hash):
            return _BAD_CREDENTIALS
        return user

    def login(self, email: str | None, password: str | None) -> tuple[str, User] | Failure:
        """Authenticate and mint a session token. Returns (token, user) or a Failure."""
        if not self._issuer.configured:
            logger.error("Login refused: JWT_SECRET not configured")
            return Failure(ErrorKind.CONFIG, "Server configuration error")
        result = self.authenticate(email, password)
        if isinstance(result, Failure):
            return result
        token = self._issuer.issue(
            SessionClaims(user_id=result.id, role=result.role, email=result.email, name=result.name)
        )
        return token, result
