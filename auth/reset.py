"""
auth/reset.py -- Password-reset token lifecycle.

States of a token record:
  issued (used=0, expires_at in the future)
    -> used     on successful redemption, or when a newer token is requested
    -> expired  implicitly, by clock comparison; no field changes

Request (forgot-password):
  Unknown email and known email produce the same generic outcome for the
  caller. Both paths generate and hash a token so the work done before the
  lookup result matters is the same. For a known user every unused token is
  invalidated, the new token's SHA-256 is stored with a one-hour expiry, and
  the raw token goes out in the email link and nowhere else -- it is never
  logged and never persisted.

Redemption (reset-password):
  Any miss -- unknown hash, already used, expired, lost a concurrent race --
  is the same generic invalid_or_expired failure. The new password is hashed
  before the store call so the conditional claim and the password update run
  in one short transaction (see UserStore.redeem_reset_token).

Layer rule: no imports from api/, bootstrap/, or contact/.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from auth.models import PasswordResetToken
from auth.passwords import PasswordHasher
from auth.store import UserStore
from auth.tokens import generate_reset_token, hash_reset_token
from core.database import to_iso
from core.errors import ErrorKind, Failure

logger = logging.getLogger("storm.auth.reset")

GENERIC_REQUEST_MESSAGE = "If an account with that email exists, a password reset link has been sent."
RESET_SUCCESS_MESSAGE = "Password has been reset successfully."
MIN_PASSWORD_LENGTH = 8
# Fixed. Matches the "expire in 1 hour" notice in the reset email.
RESET_TOKEN_TTL_SECONDS = 3600

_RESET_PAGE = "/reset-password.html"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def build_reset_link(callback_host: str, raw_token: str) -> str:
    """Return {callback_host}/reset-password.html?token={raw_token}."""
    return f"{(callback_host or '').rstrip('/')}{_RESET_PAGE}?token={raw_token}"


def is_plausible_email(email: str | None) -> bool:
    return bool(email) and "@" in email


class PasswordResetService:
    """Issue and redeem single-use password-reset tokens.

    mailer is anything with send_password_reset(to, from_name, reset_link);
    see core.mailer. Its MailDeliveryError propagates to the route, which
    answers 500.
    """

    def __init__(
        self,
        store: UserStore,
        hasher: PasswordHasher,
        mailer,
        ttl_seconds: int = RESET_TOKEN_TTL_SECONDS,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._hasher = hasher
        self._mailer = mailer
        self.ttl_seconds = ttl_seconds
        self._clock = clock

    def request_reset(self, email: str | None, from_name: str | None, callback_host: str | None) -> None | Failure:
        """Start a reset for email.

        Returns None when a link was sent, Failure(NOT_FOUND_MASKED) when the
        email has no account (the route answers exactly as for None), or
        Failure(VALIDATION) for a malformed email.
        """
        if not is_plausible_email(email):
            return Failure(ErrorKind.VALIDATION, "Invalid email")

        raw_token = generate_reset_token()
        token_hash = hash_reset_token(raw_token)

        user = self._store.get_by_email(email)
        if user is None:
            logger.info("Password reset requested for an unknown account")
            return Failure(ErrorKind.NOT_FOUND_MASKED, GENERIC_REQUEST_MESSAGE)

        now = self._clock()
        self._store.replace_reset_token(
            PasswordResetToken(
                user_id=user.id,
                token_hash=token_hash,
                created_at=to_iso(now),
                expires_at=to_iso(now + timedelta(seconds=self.ttl_seconds)),
            )
        )
        self._mailer.send_password_reset(user.email, from_name or "", build_reset_link(callback_host, raw_token))
        logger.info("Password reset token issued for user %s", user.id)
        return None

    def redeem(self, raw_token: str | None, new_password: str | None) -> str | Failure:
        """Consume raw_token and set new_password. Returns the user id or a Failure."""
        if not raw_token or not new_password:
            return Failure(ErrorKind.VALIDATION, "Missing token or new password")
        if len(new_password) < MIN_PASSWORD_LENGTH:
            return Failure(ErrorKind.VALIDATION, "Password must be at least 8 characters long")

        new_hash = self._hasher.hash(new_password)
        user_id = self._store.redeem_reset_token(hash_reset_token(raw_token), new_hash, to_iso(self._clock()))
        if user_id is None:
            return Failure(
                ErrorKind.VALIDATION,
                "Invalid or expired password reset token.",
                code="invalid_or_expired",
            )
        logger.info("Password reset completed for user %s", user_id)
        return user_id
