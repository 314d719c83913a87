# =============================================================================
# core/models/invite.py - Invite Code and Invite Token Schemas
# =============================================================================
# Two invite mechanisms feed the same signup:
# - InviteCode: reusable, human-chosen string granting a role, with optional
#   use and expiry limits. This is the canonical signup path.
# - InviteToken: generated, single-use, bound to one email, expires after a
#   fixed window. Used by the magic-link ("simple") callback.
# =============================================================================

from __future__ import annotations

import re
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator

from app.exceptions import ErrorKind
from lib.utils import parse_timestamp, utc_now

from .results import OperationResult
from .roles import UserRole

CODE_PATTERN = re.compile(r"^[A-Z0-9_-]{3,64}$")
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def normalize_code(code: str) -> str:
    """
    Canonical form of an invite code: trimmed and uppercased.

    Example:
        normalize_code(" family2024 ")  # "FAMILY2024"
    """
    return code.strip().upper()


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_PATTERN.match(email.strip()))


# =============================================================================
# Invite Codes
# =============================================================================

class InviteCode(BaseModel):
    """
    A stored invite code.

    Invariant: current_uses <= max_uses whenever max_uses is set.

    Example:
        {
            "id": "3c2d...",
            "code": "FAMILY2024",
            "role": "family",
            "is_active": true,
            "max_uses": 1,
            "current_uses": 0,
            "expires_at": null
        }
    """
    id: str
    code: str
    role: UserRole
    is_active: bool = True
    max_uses: int | None = None
    current_uses: int = 0
    expires_at: datetime | None = None
    created_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @field_validator("expires_at", "created_at", "updated_at", mode="before")
    @classmethod
    def _parse_timestamps(cls, value: Any) -> datetime | None:
        return parse_timestamp(value)

    @property
    def is_exhausted(self) -> bool:
        return self.max_uses is not None and self.current_uses >= self.max_uses

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expires_at is None:
            return False
        return self.expires_at <= (now or utc_now())

    def invalid_reason(self, now: datetime | None = None) -> str | None:
        """
        Why this code cannot be used for a new signup, or None if it can.

        Every check runs independently: an exhausted code is invalid whether or
        not it is also active and unexpired.
        """
        if self.is_exhausted:
            return "This invite code has reached its usage limit"
        if not self.is_active:
            return "This invite code is no longer active"
        if self.is_expired(now):
            return "This invite code has expired"
        return None


class InviteCodeCreate(BaseModel):
    """Admin request to create an invite code."""
    code: str = Field(..., min_length=3, max_length=64, examples=["FAMILY2024"])
    role: UserRole = Field(..., description="Role granted to whoever signs up with this code")
    max_uses: int | None = Field(default=None, ge=1, description="Leave empty for unlimited uses")
    expires_at: datetime | None = Field(default=None, description="Leave empty to never expire")

    @field_validator("code")
    @classmethod
    def _normalize_code(cls, value: str) -> str:
        code = normalize_code(value)
        if not CODE_PATTERN.match(code):
            raise ValueError("Invite codes may only contain letters, digits, '-' and '_'")
        return code

    @field_validator("expires_at")
    @classmethod
    def _aware_expiry(cls, value: datetime | None) -> datetime | None:
        return parse_timestamp(value)


class InviteCodeToggle(BaseModel):
    """Admin request to activate or deactivate a code."""
    is_active: bool


class InviteCodeValidateRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=64)


class InviteValidation(BaseModel):
    """
    Result of checking (or consuming) an invite code.

    `error_kind` is "validation" when the code itself is unusable and the
    store's kind (e.g. "transport", "timeout") when it could not be checked.
    It is kept off the wire.

    Example:
        {"valid": true, "role": "family", "error": null}
        {"valid": false, "role": null, "error": "Invalid or expired invite code"}
    """
    valid: bool
    role: UserRole | None = None
    error: str | None = None
    error_kind: ErrorKind | None = Field(default=None, exclude=True)

    @classmethod
    def rejected(cls, error: str, kind: ErrorKind = ErrorKind.VALIDATION) -> "InviteValidation":
        return cls(valid=False, error=error, error_kind=kind)


class InviteCodeList(OperationResult):
    """Invite codes, newest first."""
    codes: list[InviteCode] = Field(default_factory=list)


# =============================================================================
# Invite Tokens
# =============================================================================

class InviteTokenData(BaseModel):
    """
    A stored single-recipient invite token.

    Valid only while used_at is None and now < expires_at.
    """
    id: str | None = None
    token: str
    email: str
    role: UserRole
    display_name: str | None = None
    created_by_email: str | None = None
    expires_at: datetime
    used_at: datetime | None = None
    created_at: datetime | None = None

    @field_validator("expires_at", "used_at", "created_at", mode="before")
    @classmethod
    def _parse_timestamps(cls, value: Any) -> datetime | None:
        return parse_timestamp(value)

    def is_usable(self, now: datetime | None = None) -> bool:
        return self.used_at is None and (now or utc_now()) < self.expires_at


class InviteTokenCreate(BaseModel):
    """Request to issue an invite token for one email address."""
    email: str = Field(..., max_length=320, examples=["grandma@example.com"])
    role: UserRole = Field(default=UserRole.FRIEND)
    display_name: str | None = Field(default=None, max_length=100)
    send_email: bool = Field(default=False, description="Also email a magic sign-in link")

    @field_validator("email")
    @classmethod
    def _check_email(cls, value: str) -> str:
        if not is_valid_email(value):
            raise ValueError("Enter a valid email address")
        return value.strip().lower()


class InviteTokenIssued(OperationResult):
    """Outcome of generating an invite token."""
    token: str | None = None
    invite_url: str | None = None
    expires_at: datetime | None = None
    email_sent: bool = False


class InviteTokenPublic(BaseModel):
    """What the join page may learn about a token."""
    email: str
    role: UserRole
    display_name: str | None = None
    expires_at: datetime
