"""
API request and response models for the Storm REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are
separate from the dataclasses in auth/models.py and contact/models.py, which
own the internal domain representation. Route handlers map between the two.

Request fields are Optional on purpose: a missing field must produce the
endpoint's own 400 message ("Missing name", "Invalid email", ...) from the
service layer, not a generic schema error. Field names follow the public
JSON contract (camelCase where the client sends camelCase).
"""

from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field, StringConstraints

# Stripped on the way in. Passwords are never stripped.
EmailField = Annotated[str, StringConstraints(strip_whitespace=True, max_length=255)]
NameField = Annotated[str, StringConstraints(strip_whitespace=True, max_length=255)]

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class SignupRequest(BaseModel):
    """Request body for POST /api/signup."""

    name: Optional[NameField] = None
    email: Optional[EmailField] = None
    password: Optional[str] = Field(default=None, max_length=1024)


class LoginRequest(BaseModel):
    """Request body for POST /api/login."""

    email: Optional[EmailField] = None
    password: Optional[str] = Field(default=None, max_length=1024)


class ForgotPasswordRequest(BaseModel):
    """Request body for POST /api/forgot-password.

    from_name is the display name on the outgoing email. callback_host is the
    origin the reset link points at (the SPA serving reset-password.html).
    """

    email: Optional[EmailField] = None
    from_name: Optional[NameField] = None
    callback_host: Optional[Annotated[str, StringConstraints(strip_whitespace=True, max_length=2048)]] = None


class ResetPasswordRequest(BaseModel):
    """Request body for POST /api/reset-password."""

    token: Optional[str] = Field(default=None, max_length=256)
    newPassword: Optional[str] = Field(default=None, max_length=1024)


class ContactSubmissionCreate(BaseModel):
    """Request body for POST /api/contact_form_submissions."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, max_length=255)
    email: Optional[str] = Field(default=None, max_length=255)
    message: Optional[str] = Field(default=None, max_length=5000)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class SignupResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool = True
    message: str = "User created successfully"
    userId: str
    role: str


class LoginResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    token: str
    role: str


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class MeResponse(BaseModel):
    """Identity of the current session, straight from the verified token claims."""

    model_config = ConfigDict(frozen=True)

    id: str
    userId: str
    role: str
    email: str
    name: str


class ContactSubmissionResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    email: str
    message: str


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses.

    redirect is set only by the session gate, pointing the SPA at the login page.
    """

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail
    redirect: Optional[str] = None


class HealthResponse(BaseModel):
    """Response for GET /health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
