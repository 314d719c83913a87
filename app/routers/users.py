# =============================================================================
# app/routers/users.py - User Administration Endpoints
# =============================================================================
# Admin-only listing, role changes and deletion of users.
# =============================================================================

import logging

from fastapi import APIRouter, Depends

from app.auth.dependencies import require_permission
from app.exceptions import error_for_kind
from core.models.profile import Profile, ProfileList, ProfileResult, RoleUpdate
from core.models.results import OperationResult
from core.models.roles import Permission
from core.services.user_service import UserService

logger = logging.getLogger(__name__)

router = APIRouter()

require_user_admin = require_permission(Permission.CAN_MANAGE_USERS)


# =============================================================================
# Endpoints
# =============================================================================

@router.get("", response_model=ProfileList)
async def list_users(admin: Profile = Depends(require_user_admin)) -> ProfileList:
    """All profiles, newest first."""
    result = await UserService.list_users()
    if not result.success:
        raise error_for_kind(result.error_kind, result.error)
    return result


@router.patch("/{user_id}/role", response_model=ProfileResult)
async def change_role(
    user_id: str,
    body: RoleUpdate,
    admin: Profile = Depends(require_user_admin),
) -> ProfileResult:
    """
    Change a user's role.

    Raises:
        404: If the user has no profile
    """
    result = await UserService.set_role(user_id, body.role)
    if not result.success:
        raise error_for_kind(result.error_kind, result.error)
    logger.info(f"Admin {admin.id} set role of {user_id} to {body.role.value}")
    return result


@router.delete("/{user_id}", response_model=OperationResult)
async def delete_user(user_id: str, admin: Profile = Depends(require_user_admin)) -> OperationResult:
    """
    Delete a user account and its profile.

    Raises:
        403: If an admin tries to delete their own account
    """
    result = await UserService.delete_user(user_id, acting_user_id=admin.id)
    if not result.success:
        raise error_for_kind(result.error_kind, result.error)
    return result
