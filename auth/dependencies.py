"""
auth/dependencies.py -- Session-token extraction and FastAPI Depends() helpers.

Two carriers are accepted and decode to identical claims:
  1. Authorization: Bearer <token> header -- API clients.
  2. Session cookie (Settings.session_cookie_name) -- set by POST /api/login.
The header wins when both are present.

authenticate_request() is the soft variant: it returns SessionClaims or a
Failure and never raises. The request gate in api/main.py calls it for every
non-public /api/* path and stores the claims on request.state.claims.

get_current_claims() / require_admin() are the hard variants for route
dependencies. They reuse the gate's result when it is present.

Layer rule: no imports from api/, bootstrap/, or contact/.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.models import ROLE_ADMIN, SessionClaims
from auth.tokens import TokenIssuer
from core.config import get_settings
from core.errors import ErrorKind, Failure

_BEARER_PREFIX = "Bearer "


def extract_token(request: Request) -> str | None:
    """Return the raw session token from the Bearer header or the session cookie."""
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith(_BEARER_PREFIX):
        token = auth_header[len(_BEARER_PREFIX) :].strip()
        if token:
            return token
    return request.cookies.get(get_settings().session_cookie_name) or None


def authenticate_request(request: Request) -> SessionClaims | Failure:
    """Verify the request's session token. Never raises."""
    token = extract_token(request)
    if token is None:
        return Failure(ErrorKind.NO_TOKEN, "No token provided")
    issuer: TokenIssuer = request.app.state.token_issuer
    return issuer.verify(token)


def get_current_claims(request: Request) -> SessionClaims:
    """Require a valid session. Raises HTTP 401 (or 500 for a missing server secret).

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(claims: SessionClaims = Depends(get_current_claims)): ...
    """
    claims = getattr(request.state, "claims", None)
    if isinstance(claims, SessionClaims):
        return claims
    result = authenticate_request(request)
    if isinstance(result, Failure):
        raise HTTPException(
            status_code=result.status_code,
            detail={"code": result.error_code, "message": result.message},
        )
    request.state.claims = result
    return result


def require_admin(request: Request) -> SessionClaims:
    """Require role "admin". Raises HTTP 401 if unauthenticated, 403 otherwise."""
    claims = get_current_claims(request)
    if claims.role != ROLE_ADMIN:
        raise HTTPException(
            status_code=403,
            detail={"code": ErrorKind.FORBIDDEN.value, "message": "Admin access required."},
        )
    return claims
