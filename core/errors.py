"""
core/errors.py -- Error taxonomy shared by every layer.

Component operations (password reset, signup, login, token verification)
return either their value or a Failure. Callers branch on
isinstance(result, Failure) and then on result.kind, so every member of the
taxonomy has to be handled explicitly at the boundary. The api/ layer maps
kind -> HTTP status with HTTP_STATUS.

Conditions that are genuinely exceptional stay exceptions:
  CryptoError       -- key derivation failed (bad parameters, out of memory)
  TransactionError  -- the bootstrap seeding transaction failed
  MailDeliveryError -- the SMTP relay refused or was unreachable

Layer rule: core/ is the kernel. No imports from api/, auth/, bootstrap/, or contact/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ErrorKind(str, Enum):
    VALIDATION = "validation_error"
    NO_TOKEN = "no_token"
    TOKEN_EXPIRED = "token_expired"
    TOKEN_INVALID = "token_invalid"
    FORBIDDEN = "forbidden"
    CONFLICT = "conflict"
    CONFIG = "config_error"
    # Unknown email on forgot-password. Never surfaced to the caller.
    NOT_FOUND_MASKED = "not_found_masked"


HTTP_STATUS: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.NO_TOKEN: 401,
    ErrorKind.TOKEN_EXPIRED: 401,
    ErrorKind.TOKEN_INVALID: 401,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.CONFLICT: 409,
    ErrorKind.CONFIG: 500,
    ErrorKind.NOT_FOUND_MASKED: 200,
}


@dataclass(frozen=True)
class Failure:
    """A handled, expected failure returned instead of raised.

    code is the machine-readable value placed in the response envelope. It
    defaults to the kind's value; routes override it where the public
    contract names a specific code (e.g. "email_exists", "invalid_or_expired").
    """

    kind: ErrorKind
    message: str
    code: str = ""

    @property
    def status_code(self) -> int:
        return HTTP_STATUS[self.kind]

    @property
    def error_code(self) -> str:
        return self.code or self.kind.value


class CryptoError(Exception):
    """Key derivation failed."""


class TransactionError(Exception):
    """The bootstrap seeding transaction failed and was rolled back."""


class MailDeliveryError(Exception):
    """The outbound email could not be handed to the relay."""
