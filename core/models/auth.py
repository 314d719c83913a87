# =============================================================================
# core/models/auth.py - Auth Facade Schemas
# =============================================================================
# Request and result shapes for sign up / sign in / sign out.
# The facade returns AuthResult for every operation; it never raises.
# =============================================================================

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator

from .invite import is_valid_email
from .profile import Profile
from .results import OperationResult
from .roles import UserRole

MIN_PASSWORD_LENGTH = 6


class SessionTokens(BaseModel):
    """Tokens issued by Supabase Auth for one session."""
    access_token: str
    refresh_token: str
    expires_in: int | None = None
    token_type: str = "bearer"

    @classmethod
    def from_session(cls, session: Any) -> "SessionTokens":
        """Copy the fields we need off a gotrue Session object."""
        return cls(
            access_token=session.access_token,
            refresh_token=session.refresh_token,
            expires_in=getattr(session, "expires_in", None),
            token_type=getattr(session, "token_type", None) or "bearer",
        )


# app_metadata keys written by the signup saga with the service key.
# Users cannot change app_metadata, so these are the only trusted signup facts.
INVITE_ROLE_KEY = "invite_role"
INVITE_CODE_KEY = "invite_code"


class AuthIdentity(BaseModel):
    """
    The parts of a Supabase auth user this service relies on.

    `user_metadata` is whatever the client attached at signup and can be
    rewritten by the user at any time; only the display name is taken from
    it. Role and redeemed invite code come from `app_metadata`.
    """
    id: str
    email: str | None = None
    user_metadata: dict[str, Any] = Field(default_factory=dict)
    app_metadata: dict[str, Any] = Field(default_factory=dict)
    email_confirmed_at: str | None = None
    created_at: str | None = None

    @property
    def invite_role(self) -> UserRole | None:
        """Role granted by the invite code this identity redeemed."""
        return UserRole.parse(self.app_metadata.get(INVITE_ROLE_KEY))

    @property
    def invite_code(self) -> str | None:
        """Invite code whose use was taken for this identity."""
        code = self.app_metadata.get(INVITE_CODE_KEY)
        if isinstance(code, str) and code.strip():
            return code.strip()
        return None

    @classmethod
    def from_user(cls, user: Any) -> "AuthIdentity":
        """Build from a gotrue User object."""
        confirmed = getattr(user, "email_confirmed_at", None)
        created = getattr(user, "created_at", None)
        return cls(
            id=str(user.id),
            email=getattr(user, "email", None),
            user_metadata=dict(getattr(user, "user_metadata", None) or {}),
            app_metadata=dict(getattr(user, "app_metadata", None) or {}),
            email_confirmed_at=str(confirmed) if confirmed else None,
            created_at=str(created) if created else None,
        )


class SignInRequest(BaseModel):
    email: str = Field(..., max_length=320)
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class SignUpRequest(BaseModel):
    """
    Signup with an invite code.

    Example:
        {
            "email": "may@example.com",
            "password": "hunter22",
            "display_name": "Aunt May",
            "invite_code": "family2024"
        }
    """
    email: str = Field(..., max_length=320)
    password: str = Field(..., min_length=MIN_PASSWORD_LENGTH)
    display_name: str = Field(..., min_length=1, max_length=100)
    invite_code: str = Field(..., min_length=1, max_length=64)

    @field_validator("email")
    @classmethod
    def _check_email(cls, value: str) -> str:
        if not is_valid_email(value):
            raise ValueError("Enter a valid email address")
        return value.strip().lower()

    @field_validator("display_name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Display name cannot be blank")
        return value


class RefreshRequest(BaseModel):
    refresh_token: str | None = Field(
        default=None,
        description="Falls back to the sb-refresh-token cookie when omitted",
    )


class AuthResult(OperationResult):
    """
    Uniform result of every facade call.

    `session` is present after sign in (and after sign up when email
    confirmation is disabled). `confirmation_required` tells the UI to ask
    the user to check their inbox.
    """
    session: SessionTokens | None = None
    profile: Profile | None = None
    confirmation_required: bool = False
