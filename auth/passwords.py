"""
auth/passwords.py -- scrypt password hashing and constant-time verification.

Encoding: hex(salt) + ":" + hex(derived_key)
  salt         16 random bytes per hash, so hashing is non-deterministic
  derived_key  64 bytes from scrypt(N=2**14, r=8, p=1)

Verification re-derives the key from the stored salt and compares with
hmac.compare_digest, never ==, so response time does not leak how many
leading bytes matched.

A stored value that cannot be parsed (no ":" delimiter, bad hex, empty salt)
fails verification with False. A failure inside scrypt itself (bad
parameters, memory limit) is not a credential problem and raises CryptoError.

Key derivation is CPU-bound and blocks the calling thread for tens of
milliseconds. Call it from sync route handlers (FastAPI runs those in its
worker thread pool), never directly from an async handler on the event loop.

Layer rule: no imports from api/, bootstrap/, or contact/.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets

from core.errors import CryptoError

_SALT_BYTES = 16
_KEY_BYTES = 64
_SCRYPT_N = 2**14
_SCRYPT_R = 8
_SCRYPT_P = 1
# 128 * r * N = 16 MiB of working memory; leave headroom above it.
_SCRYPT_MAXMEM = 64 * 1024 * 1024
_DELIMITER = ":"


class PasswordHasher:
    """Hash and verify passwords with scrypt.

    Usage:
        hasher = PasswordHasher()
        stored = hasher.hash("pw123456")
        hasher.verify("pw123456", stored)   # True
    """

    def __init__(self, n: int = _SCRYPT_N, r: int = _SCRYPT_R, p: int = _SCRYPT_P) -> None:
        self.n = n
        self.r = r
        self.p = p

    def _derive(self, password: str, salt: bytes) -> bytes:
        try:
            return hashlib.scrypt(
                password.encode("utf-8"),
                salt=salt,
                n=self.n,
                r=self.r,
                p=self.p,
                maxmem=_SCRYPT_MAXMEM,
                dklen=_KEY_BYTES,
            )
        except (ValueError, MemoryError) as exc:
            raise CryptoError("scrypt key derivation failed") from exc

    def hash(self, password: str) -> str:
        """Return "hex(salt):hex(key)" for password with a fresh random salt."""
        salt = secrets.token_bytes(_SALT_BYTES)
        key = self._derive(password, salt)
        return f"{salt.hex()}{_DELIMITER}{key.hex()}"

    def verify(self, password: str, encoded: str) -> bool:
        """Return True if password matches the stored encoding."""
        salt_hex, sep, key_hex = (encoded or "").partition(_DELIMITER)
        if not sep:
            return False
        try:
            salt = bytes.fromhex(salt_hex)
            stored_key = bytes.fromhex(key_hex)
        except ValueError:
            return False
        if not salt or not stored_key:
            return False
        derived = self._derive(password, salt)
        # compare_digest also returns False on a length mismatch without
        # short-circuiting on content.
        return hmac.compare_digest(stored_key, derived)
