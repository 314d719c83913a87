# =============================================================================
# core/services/user_service.py - User Administration
# =============================================================================
# Admin-side user management: listing users, changing roles, deleting
# accounts and promoting an account to admin by email.
# =============================================================================

import logging

from app.exceptions import ErrorKind, LogbookException, UserNotFoundError
from core.models.auth import AuthIdentity
from core.models.profile import ProfileList, ProfileResult
from core.models.results import OperationResult
from core.models.roles import UserRole
from core.services.profile_service import ProfileService
from lib.supabase_client import SupabaseClient

logger = logging.getLogger(__name__)


class UserService:
    """Service for admin user-management operations."""

    @staticmethod
    async def list_users() -> ProfileList:
        return await ProfileService.list_profiles()

    @staticmethod
    async def set_role(user_id: str, role: UserRole | str) -> ProfileResult:
        return await ProfileService.set_role(user_id, role)

    @staticmethod
    async def delete_user(user_id: str, acting_user_id: str) -> OperationResult:
        """
        Delete an identity and its profile.

        Args:
            user_id: Identity to delete
            acting_user_id: The admin doing it (may not delete themselves)
        """
        if str(user_id) == str(acting_user_id):
            return OperationResult.fail("You cannot delete your own account", ErrorKind.PERMISSION)

        try:
            client = await SupabaseClient.get_client()
            await SupabaseClient.run(client.auth.admin.delete_user(str(user_id)), action="delete user")
        except LogbookException as e:
            logger.error(f"Failed to delete user {user_id}: {e}")
            return OperationResult.from_exception(e)

        # Normally removed by the foreign-key cascade already
        await ProfileService.delete_profile(user_id)

        logger.info(f"User {user_id} deleted by {acting_user_id}")
        return OperationResult.ok()

    @staticmethod
    async def promote_by_email(email: str) -> ProfileResult:
        """
        Find an identity by email and make it an admin.

        Returns:
            ProfileResult; kind "not_found" when nobody signed up with
            that email
        """
        try:
            user = await SupabaseClient.find_user_by_email(email)
            if user is None:
                raise UserNotFoundError(email)
        except LogbookException as e:
            if e.kind is not ErrorKind.NOT_FOUND:
                logger.error(f"User lookup for admin promotion failed: {e}")
            return ProfileResult.from_exception(e)

        return await ProfileService.promote_to_admin(AuthIdentity.from_user(user))
