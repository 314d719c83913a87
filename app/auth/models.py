# =============================================================================
# app/auth/models.py - Authentication Models
# =============================================================================
# Pydantic models for authentication data.
# =============================================================================

from typing import Optional

from pydantic import BaseModel, ConfigDict

from core.models.profile import Profile


class AuthUser(BaseModel):
    """
    Authenticated user extracted from a Supabase JWT.

    This is the minimal user info available from the token itself,
    without querying the database. `token` is kept so handlers can make
    Supabase calls on the user's behalf (e.g. sign out).
    """
    model_config = ConfigDict(frozen=True)

    id: str
    email: Optional[str] = None
    token: str


class MeResponse(BaseModel):
    """The signed-in user with their profile."""
    id: str
    email: Optional[str] = None
    profile: Profile
    role_display_name: str
