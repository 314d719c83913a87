# =============================================================================
# app/middleware.py - Route Guard Middleware
# =============================================================================
# Applies core.guard.evaluate_route() to every page request.
#
# API and docs paths are skipped; they authenticate through dependencies.
# For page paths the session is read from the Bearer header or the
# sb-access-token cookie, verified, and the profile fetched once. Denied
# requests are redirected (307); allowed ones carry the identity on
# request.state and in x-user-* response headers.
# =============================================================================

import logging

from fastapi import Request
from fastapi.responses import RedirectResponse
from starlette.middleware.base import BaseHTTPMiddleware

from app.auth.dependencies import extract_access_token, verify_access_token
from app.exceptions import AuthenticationError
from core.guard import evaluate_route
from core.services.profile_service import ProfileService

logger = logging.getLogger(__name__)

EXCLUDED_PREFIXES = ("/api", "/docs", "/redoc", "/openapi.json")


def is_excluded(path: str) -> bool:
    return any(path == prefix or path.startswith(prefix + "/") for prefix in EXCLUDED_PREFIXES)


class RouteGuardMiddleware(BaseHTTPMiddleware):
    """Redirects page requests the caller may not see."""

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if is_excluded(path):
            return await call_next(request)

        user = None
        token = extract_access_token(request)
        if token:
            try:
                user = verify_access_token(token)
            except AuthenticationError as e:
                logger.debug(f"Ignoring invalid session on {path}: {e.message}")

        profile = await ProfileService.get_profile(user.id) if user else None

        decision = evaluate_route(
            path,
            session_present=user is not None,
            role=profile.role if profile else None,
            profile_present=profile is not None,
            user_id=user.id if user else None,
            display_name=profile.display_name if profile else None,
        )

        if not decision.allow:
            logger.debug(f"Guard redirect {path} -> {decision.redirect_to}")
            return RedirectResponse(decision.redirect_to, status_code=307)

        request.state.user_id = decision.user_id
        request.state.role = decision.role
        request.state.display_name = decision.display_name

        response = await call_next(request)
        if decision.user_id:
            response.headers["x-user-id"] = decision.user_id
        if decision.role:
            response.headers["x-user-role"] = decision.role.value
        if decision.display_name:
            # Header values must be latin-1
            response.headers["x-user-name"] = decision.display_name.encode("latin-1", "replace").decode("latin-1")
        return response
