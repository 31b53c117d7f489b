"""
api/routes/auth.py -- Signup, login, logout, password reset, and current-user endpoints.

Routes:
  POST /api/signup           -- create account; first account becomes admin
  POST /api/login            -- password login; returns token and sets session cookie
  GET  /api/logout           -- clears cookie; redirects to the login page
  POST /api/forgot-password  -- email a single-use reset link (generic reply always)
  POST /api/reset-password   -- redeem a reset token and set a new password
  GET  /api/storm/me         -- claims of the current session (requires auth)

Security:
  POST /login and POST /forgot-password are rate-limited per IP.
  Login answers the same 400 for unknown email and wrong password, and
  AccountService equalizes timing between the two.
  Forgot-password answers byte-identical bodies whether or not the email has
  an account.
  Cache-Control: no-store on login responses.

Handlers that hash passwords are plain `def`: FastAPI runs them in its worker
thread pool, so scrypt does not block the event loop.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.exc import SQLAlchemyError

from api import paths
from api.limiter import limiter
from api.models import (
    ForgotPasswordRequest,
    LoginRequest,
    LoginResponse,
    MeResponse,
    MessageResponse,
    ResetPasswordRequest,
    SignupRequest,
    SignupResponse,
)
from api.responses import error_response, failure_response, raise_failure
from auth.accounts import AccountService
from auth.dependencies import get_current_claims
from auth.models import SessionClaims
from auth.reset import GENERIC_REQUEST_MESSAGE, RESET_SUCCESS_MESSAGE, PasswordResetService
from auth.tokens import SESSION_TTL_SECONDS
from core.config import get_settings
from core.errors import ErrorKind, Failure, MailDeliveryError

logger = logging.getLogger("storm.api.auth")

_settings = get_settings()

# Auth policy (the gate's allowlist lives in api/paths.py):
# - POST /api/signup, /api/login, /api/forgot-password, /api/reset-password: public
# - GET  /api/logout: public -- clearing a cookie needs no prior auth
# - GET  /api/storm/me: requires a valid session
router = APIRouter()


def _set_session_cookie(response: JSONResponse, token: str) -> None:
    """Write the session token cookie.

    httponly follows SESSION_COOKIE_HTTPONLY, false by default: the SPA reads
    the cookie from JS (known hardening gap).
    max_age matches the token expiry so both end together.
    """
    response.set_cookie(
        _settings.session_cookie_name,
        value=token,
        path="/",
        httponly=_settings.session_cookie_httponly,
        samesite="lax",
        secure=_settings.secure_cookies,
        max_age=SESSION_TTL_SECONDS,
    )


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post(paths.SIGNUP, response_model=SignupResponse, status_code=201)
def signup(request: Request, body: SignupRequest) -> SignupResponse:
    """Create an account. The first account on a fresh deployment is admin."""
    accounts: AccountService = request.app.state.accounts
    result = accounts.signup(body.name, body.email, body.password)
    if isinstance(result, Failure):
        raise_failure(result)
    user_id, role = result
    return SignupResponse(userId=user_id, role=role)


@limiter.limit(_settings.login_rate_limit)  # must be ABOVE @router to preserve FastAPI introspection
@router.post(paths.LOGIN, response_model=LoginResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password; return the token and set the session cookie."""
    accounts: AccountService = request.app.state.accounts
    result = accounts.login(body.email, body.password)
    if isinstance(result, Failure):
        resp = failure_response(result)
        resp.headers["Cache-Control"] = "no-store"
        return resp

    token, user = result
    resp = JSONResponse(status_code=200, content=LoginResponse(token=token, role=user.role).model_dump())
    _set_session_cookie(resp, token)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.get(paths.LOGOUT)
async def logout() -> RedirectResponse:
    """Clear the session cookie and send the browser to the login page."""
    resp = RedirectResponse(paths.LOGIN_PAGE, status_code=302)
    resp.delete_cookie(_settings.session_cookie_name, path="/")
    return resp


@limiter.limit(_settings.forgot_password_rate_limit)
@router.post(paths.FORGOT_PASSWORD, response_model=MessageResponse)
def forgot_password(request: Request, body: ForgotPasswordRequest) -> JSONResponse:
    """Email a reset link if the account exists. The reply never says whether it does."""
    service: PasswordResetService = request.app.state.password_reset
    try:
        result = service.request_reset(body.email, body.from_name, body.callback_host)
    except (MailDeliveryError, SQLAlchemyError):
        logger.exception("Forgot password request failed")
        return error_response(
            500,
            "password_reset_failed",
            "An unexpected error occurred during password reset request.",
        )
    if isinstance(result, Failure) and result.kind is not ErrorKind.NOT_FOUND_MASKED:
        return failure_response(result)
    return JSONResponse(status_code=200, content=MessageResponse(message=GENERIC_REQUEST_MESSAGE).model_dump())


@router.post(paths.RESET_PASSWORD, response_model=MessageResponse)
def reset_password(request: Request, body: ResetPasswordRequest) -> MessageResponse:
    """Redeem a reset token. Unknown, used, and expired tokens get the same 400."""
    service: PasswordResetService = request.app.state.password_reset
    try:
        result = service.redeem(body.token, body.newPassword)
    except SQLAlchemyError:
        logger.exception("Reset password failed")
        return error_response(
            500,
            "password_reset_failed",
            "An unexpected error occurred during password reset.",
        )
    if isinstance(result, Failure):
        raise_failure(result)
    return MessageResponse(message=RESET_SUCCESS_MESSAGE)


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get(paths.CURRENT_USER, response_model=MeResponse)
async def me(claims: SessionClaims = Depends(get_current_claims)) -> MeResponse:
    """Return identity information for the current session."""
    return MeResponse(
        id=claims.user_id,
        userId=claims.user_id,
        role=claims.role,
        email=claims.email,
        name=claims.name,
    )
