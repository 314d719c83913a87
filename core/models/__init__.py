# =============================================================================
# core/models/ - Pydantic Data Models
# =============================================================================
# This package contains Pydantic schemas for data validation:
# - roles.py: UserRole / Permission / ResourceKind / EditScope enums
# - results.py: Uniform success/error result shape
# - invite.py: Invite code and invite token schemas
# - profile.py: Profile schemas
# - auth.py: Sign up / sign in request and result schemas
#
# These models define the "contract" between API and clients.
# =============================================================================

# -----------------------------------------------------------------------------
# Roles & Permissions
# -----------------------------------------------------------------------------
from .roles import (
    EditScope,
    Permission,
    ResourceKind,
    UserRole,
)

# -----------------------------------------------------------------------------
# Results
# -----------------------------------------------------------------------------
from .results import OperationResult

# -----------------------------------------------------------------------------
# Invites
# -----------------------------------------------------------------------------
from .invite import (
    InviteCode,
    InviteCodeCreate,
    InviteCodeList,
    InviteCodeToggle,
    InviteCodeValidateRequest,
    InviteTokenCreate,
    InviteTokenData,
    InviteTokenIssued,
    InviteTokenPublic,
    InviteValidation,
    normalize_code,
)

# -----------------------------------------------------------------------------
# Profiles
# -----------------------------------------------------------------------------
from .profile import (
    Profile,
    ProfileList,
    ProfileResult,
    ProfileUpdate,
    RoleUpdate,
)

# -----------------------------------------------------------------------------
# Auth
# -----------------------------------------------------------------------------
from .auth import (
    AuthIdentity,
    AuthResult,
    RefreshRequest,
    SessionTokens,
    SignInRequest,
    SignUpRequest,
)

__all__ = [
    # Roles
    "EditScope",
    "Permission",
    "ResourceKind",
    "UserRole",
    # Results
    "OperationResult",
    # Invites
    "InviteCode",
    "InviteCodeCreate",
    "InviteCodeList",
    "InviteCodeToggle",
    "InviteCodeValidateRequest",
    "InviteTokenCreate",
    "InviteTokenData",
    "InviteTokenIssued",
    "InviteTokenPublic",
    "InviteValidation",
    "normalize_code",
    # Profiles
    "Profile",
    "ProfileList",
    "ProfileResult",
    "ProfileUpdate",
    "RoleUpdate",
    # Auth
    "AuthIdentity",
    "AuthResult",
    "RefreshRequest",
    "SessionTokens",
    "SignInRequest",
    "SignUpRequest",
]
