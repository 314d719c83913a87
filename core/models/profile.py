# =============================================================================
# core/models/profile.py - Profile Schemas
# =============================================================================
# A Profile is the application's record of an authenticated identity:
# exactly one per Supabase auth user, keyed by the same id, carrying the
# role and display metadata. This is the single canonical profile shape;
# both invite mechanisms write into it.
# =============================================================================

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator

from lib.utils import parse_timestamp

from .results import OperationResult
from .roles import UserRole


class Profile(BaseModel):
    """
    Stored profile row.

    Example:
        {
            "id": "550e8400-e29b-41d4-a716-446655440000",
            "role": "family",
            "display_name": "Aunt May",
            "avatar_url": null,
            "invited_by": null,
            "invite_code": "FAMILY2024",
            "created_at": "2024-01-15T10:30:00Z",
            "updated_at": "2024-01-15T10:30:00Z"
        }
    """
    id: str
    role: UserRole
    display_name: str
    avatar_url: str | None = None
    invited_by: str | None = None
    invite_code: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @field_validator("created_at", "updated_at", mode="before")
    @classmethod
    def _parse_timestamps(cls, value: Any) -> datetime | None:
        return parse_timestamp(value)


class ProfileResult(OperationResult):
    """Outcome of a profile operation; `created` is False for the idempotent no-op."""
    profile: Profile | None = None
    created: bool = False


class ProfileUpdate(BaseModel):
    """Self-service profile changes."""
    display_name: str | None = Field(default=None, min_length=1, max_length=100)
    avatar_url: str | None = Field(default=None, max_length=2048)

    @field_validator("display_name")
    @classmethod
    def _strip_name(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip()
        if not value:
            raise ValueError("Display name cannot be blank")
        return value


class RoleUpdate(BaseModel):
    """Admin request to change a user's role."""
    role: UserRole


class ProfileList(OperationResult):
    """Profiles, newest first."""
    profiles: list[Profile] = Field(default_factory=list)
