# =============================================================================
# core/services/__init__.py - Service Layer Exports
# =============================================================================

from .invite_code_service import InviteCodeService
from .invite_token_service import InviteTokenService
from .profile_service import ProfileService
from .auth_service import AuthService
from .user_service import UserService
from .reconciliation_service import ReconciliationService, SweepReport

__all__ = [
    "InviteCodeService",
    "InviteTokenService",
    "ProfileService",
    "AuthService",
    "UserService",
    "ReconciliationService",
    "SweepReport",
]
