"""
auth/tokens.py -- Session token issuance and verification (JWT, HS256).

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with JWT_SECRET and carry
       userId, role, email, name, iat and exp. Lifetime is fixed at one hour
       from issuance (SESSION_TTL_SECONDS) and not configurable.

  Verification returns SessionClaims or a Failure, never raises for a bad
       token. The three failure kinds are kept apart because they produce
       different outcomes:
         token_expired  -- 401, client should log in again
         token_invalid  -- 401, malformed token, bad signature, missing claims
         config_error   -- 500, no signing secret on the server. This is an
                           operator problem and must not look like an auth
                           failure to the client.

  Empty secret fails closed: issue() raises and verify() returns config_error.
       There is no code path that signs or accepts a token without a secret.

  Reset tokens (hash_reset_token) are 256-bit random values, so a plain
       SHA-256 is sufficient for at-rest storage -- no slow KDF is needed.

Layer rule: no imports from api/, bootstrap/, or contact/.
"""

from __future__ import annotations

import hashlib
import logging
import secrets
from collections.abc import Callable
from datetime import datetime, timezone

from jose import ExpiredSignatureError, JWTError, jwt

from auth.models import SessionClaims
from core.errors import ErrorKind, Failure

logger = logging.getLogger("storm.auth")

_ALGORITHM = "HS256"
_REQUIRED_CLAIMS = ("userId", "role", "email", "name")

SESSION_TTL_SECONDS = 3600


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenIssuer:
    """Mint and verify session tokens with a server-held secret.

    clock is injectable so tests can issue a token "in the past" and observe
    expiry without sleeping.

    Usage:
        issuer = TokenIssuer(secret)
        token = issuer.issue(SessionClaims(user_id="u1", role="admin", email="a@x.com", name="A"))
        result = issuer.verify(token)       # SessionClaims or Failure
    """

    def __init__(
        self,
        secret: str,
        ttl_seconds: int = SESSION_TTL_SECONDS,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._secret = secret
        self.ttl_seconds = ttl_seconds
        self._clock = clock

    @property
    def configured(self) -> bool:
        return bool(self._secret)

    def issue(self, claims: SessionClaims) -> str:
        """Sign claims into a compact JWT expiring ttl_seconds from now.

        Raises RuntimeError if no secret is configured. Login treats that as
        an unexpected server error (500), never as bad credentials.
        """
        if not self._secret:
            logger.error("JWT_SECRET not configured -- refusing to issue a session token")
            raise RuntimeError("JWT_SECRET is not configured")
        issued_at = int(self._clock().timestamp())
        payload = {
            "userId": claims.user_id,
            "role": claims.role,
            "email": claims.email,
            "name": claims.name,
            "iat": issued_at,
            "exp": issued_at + self.ttl_seconds,
        }
        return jwt.encode(payload, self._secret, algorithm=_ALGORITHM)

    def verify(self, token: str) -> SessionClaims | Failure:
        """Decode and verify token. Returns SessionClaims or a Failure.

        ExpiredSignatureError is a subclass of JWTError, so it must be
        caught first to keep expired and invalid apart.
        """
        if not self._secret:
            logger.error("JWT_SECRET not configured")
            return Failure(ErrorKind.CONFIG, "Server configuration error")
        try:
            payload = jwt.decode(token, self._secret, algorithms=[_ALGORITHM])
        except ExpiredSignatureError:
            return Failure(ErrorKind.TOKEN_EXPIRED, "Token expired")
        except JWTError as exc:
            logger.info("JWT verification failed: %s", exc)
            return Failure(ErrorKind.TOKEN_INVALID, "Invalid token")
        if any(not isinstance(payload.get(name), str) for name in _REQUIRED_CLAIMS):
            return Failure(ErrorKind.TOKEN_INVALID, "Invalid token")
        return SessionClaims(
            user_id=payload["userId"],
            role=payload["role"],
            email=payload["email"],
            name=payload["name"],
            issued_at=int(payload.get("iat", 0)),
            expires_at=int(payload.get("exp", 0)),
        )


# ---------------------------------------------------------------------------
# Reset-token primitives
# ---------------------------------------------------------------------------


def generate_reset_token() -> str:
    """Return a new raw reset token: 32 random bytes as 64 hex characters (256 bits)."""
    return secrets.token_hex(32)


def hash_reset_token(raw_token: str) -> str:
    """Return the hex SHA-256 of raw_token -- the only form ever persisted."""
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()
