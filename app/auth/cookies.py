# =============================================================================
# app/auth/cookies.py - Session Cookies
# =============================================================================
# Browser sessions ride on two HttpOnly cookies holding the Supabase access
# and refresh tokens. The route guard reads the access cookie; API clients
# may send a Bearer header instead.
# =============================================================================

from fastapi import Response

from app.config import settings
from core.models.auth import SessionTokens

ACCESS_TOKEN_COOKIE = "sb-access-token"
REFRESH_TOKEN_COOKIE = "sb-refresh-token"
CODE_VERIFIER_COOKIE = "sb-code-verifier"

# Refresh tokens outlive access tokens; keep the cookie for 30 days
REFRESH_COOKIE_MAX_AGE = 60 * 60 * 24 * 30


def set_session_cookies(response: Response, tokens: SessionTokens) -> None:
    common = {
        "httponly": True,
        "secure": settings.SESSION_COOKIE_SECURE,
        "samesite": "lax",
        "path": "/",
    }
    response.set_cookie(
        ACCESS_TOKEN_COOKIE,
        tokens.access_token,
        max_age=tokens.expires_in or 3600,
        **common,
    )
    response.set_cookie(
        REFRESH_TOKEN_COOKIE,
        tokens.refresh_token,
        max_age=REFRESH_COOKIE_MAX_AGE,
        **common,
    )


def clear_session_cookies(response: Response) -> None:
    for name in (ACCESS_TOKEN_COOKIE, REFRESH_TOKEN_COOKIE, CODE_VERIFIER_COOKIE):
        response.delete_cookie(name, path="/")
