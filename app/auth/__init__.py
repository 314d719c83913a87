# =============================================================================
# app/auth/__init__.py - Authentication Module
# =============================================================================
# Provides JWT-based authentication using Supabase Auth, plus role and
# permission checks against the caller's profile.
#
# Usage:
#   from app.auth import get_current_user, AuthUser
#
#   @router.get("/protected")
#   async def protected(user: AuthUser = Depends(get_current_user)):
#       return {"user_id": user.id}
# =============================================================================

from app.auth.dependencies import (
    get_current_profile,
    get_current_user,
    get_current_user_optional,
    require_permission,
    require_role,
    verify_access_token,
)
from app.auth.models import AuthUser, MeResponse

__all__ = [
    "get_current_user",
    "get_current_user_optional",
    "get_current_profile",
    "require_role",
    "require_permission",
    "verify_access_token",
    "AuthUser",
    "MeResponse",
]
