"""
tests/test_tokens.py -- Unit tests for auth/tokens.py (session JWTs, reset-token primitives).

Covers:
  - issue/verify round trip preserves every claim
  - Expiry exactly one hour after issuance
  - Expired, tampered, foreign-secret, and claim-less tokens
  - Empty secret fails closed: issue() raises, verify() -> config_error
  - Reset token generation (256-bit hex) and SHA-256 hashing
"""

from __future__ import annotations

import hashlib
from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from auth.models import SessionClaims
from auth.tokens import TokenIssuer, generate_reset_token, hash_reset_token
from core.errors import ErrorKind, Failure

SECRET = "s" * 32
CLAIMS = SessionClaims(user_id="u1", role="admin", email="a@x.com", name="A")


def _clock(moment: datetime):
    return lambda: moment


class TestIssueVerify:
    def test_round_trip_preserves_claims(self) -> None:
        issuer = TokenIssuer(SECRET)
        result = issuer.verify(issuer.issue(CLAIMS))
        assert isinstance(result, SessionClaims), f"Expected claims, got {result!r}"
        assert (result.user_id, result.role, result.email, result.name) == ("u1", "admin", "a@x.com", "A")

    def test_expiry_is_one_hour_after_issuance(self) -> None:
        issuer = TokenIssuer(SECRET)
        result = issuer.verify(issuer.issue(CLAIMS))
        assert result.expires_at - result.issued_at == 3600

    def test_expired_token(self) -> None:
        past = datetime.now(timezone.utc) - timedelta(hours=2)
        token = TokenIssuer(SECRET, clock=_clock(past)).issue(CLAIMS)
        result = TokenIssuer(SECRET).verify(token)
        assert isinstance(result, Failure)
        assert result.kind is ErrorKind.TOKEN_EXPIRED

    def test_tampered_signature(self) -> None:
        issuer = TokenIssuer(SECRET)
        header, payload, signature = issuer.issue(CLAIMS).split(".")
        flipped = ("A" if signature[0] != "A" else "B") + signature[1:]
        result = issuer.verify(f"{header}.{payload}.{flipped}")
        assert isinstance(result, Failure)
        assert result.kind is ErrorKind.TOKEN_INVALID

    def test_foreign_secret(self) -> None:
        token = TokenIssuer("x" * 32).issue(CLAIMS)
        result = TokenIssuer(SECRET).verify(token)
        assert isinstance(result, Failure)
        assert result.kind is ErrorKind.TOKEN_INVALID

    @pytest.mark.parametrize("garbage", ["", "not-a-jwt", "a.b.c"])
    def test_garbage(self, garbage: str) -> None:
        result = TokenIssuer(SECRET).verify(garbage)
        assert isinstance(result, Failure)
        assert result.kind is ErrorKind.TOKEN_INVALID

    def test_missing_claims_rejected(self) -> None:
        """A correctly signed token without userId/role is still invalid."""
        now = int(datetime.now(timezone.utc).timestamp())
        token = jwt.encode({"sub": "u1", "iat": now, "exp": now + 60}, SECRET, algorithm="HS256")
        result = TokenIssuer(SECRET).verify(token)
        assert isinstance(result, Failure)
        assert result.kind is ErrorKind.TOKEN_INVALID


class TestMissingSecret:
    def test_issue_raises(self) -> None:
        with pytest.raises(RuntimeError):
            TokenIssuer("").issue(CLAIMS)

    def test_verify_is_config_error_not_auth_failure(self) -> None:
        token = TokenIssuer(SECRET).issue(CLAIMS)
        result = TokenIssuer("").verify(token)
        assert isinstance(result, Failure)
        assert result.kind is ErrorKind.CONFIG
        assert result.status_code == 500

    def test_configured_flag(self) -> None:
        assert TokenIssuer(SECRET).configured
        assert not TokenIssuer("").configured


class TestResetTokenPrimitives:
    def test_generated_token_is_256_bit_hex(self) -> None:
        raw = generate_reset_token()
        assert len(raw) == 64
        int(raw, 16)

    def test_generated_tokens_are_unique(self) -> None:
        assert len({generate_reset_token() for _ in range(50)}) == 50

    def test_hash_is_sha256_hex(self) -> None:
        raw = generate_reset_token()
        assert hash_reset_token(raw) == hashlib.sha256(raw.encode()).hexdigest()
        assert hash_reset_token(raw) != raw
