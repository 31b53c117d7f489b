"""
api/paths.py -- Every /api path, and the one list of paths the session gate skips.

Routes register with these constants and the gate in api/main.py checks
is_public() against the same sets, so the gate and the router cannot drift
apart. Adding a public endpoint means adding it here and nowhere else.
"""

from __future__ import annotations

SIGNUP = "/api/signup"
LOGIN = "/api/login"
LOGOUT = "/api/logout"
FORGOT_PASSWORD = "/api/forgot-password"
RESET_PASSWORD = "/api/reset-password"
CURRENT_USER = "/api/storm/me"
CONTACT_SUBMISSIONS = "/api/contact_form_submissions"

API_PREFIX = "/api/"
LOGIN_PAGE = "/login.html"

# Auth endpoints: public for every method.
PUBLIC_AUTH_PATHS: frozenset[str] = frozenset({SIGNUP, LOGIN, LOGOUT, FORGOT_PASSWORD, RESET_PASSWORD})

# Landing-page form: anonymous visitors may submit, only admins may list.
PUBLIC_METHOD_PATHS: dict[str, frozenset[str]] = {
    CONTACT_SUBMISSIONS: frozenset({"POST"}),
}


def is_public(method: str, path: str) -> bool:
    """Return True if the gate must let method + path through without a session."""
    normalized = path.rstrip("/") or "/"
    if normalized in PUBLIC_AUTH_PATHS:
        return True
    return method.upper() in PUBLIC_METHOD_PATHS.get(normalized, frozenset())


def requires_session(method: str, path: str) -> bool:
    """Return True if the gate must verify a session token for method + path.

    CORS preflights (OPTIONS) carry no credentials and are answered by the
    CORS middleware.
    """
    if method.upper() == "OPTIONS":
        return False
    return path.startswith(API_PREFIX) and not is_public(method, path)
