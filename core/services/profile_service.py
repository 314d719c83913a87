# =============================================================================
# core/services/profile_service.py - Profile Materialisation
# =============================================================================
# Creates the application profile for an authenticated identity the first
# time it shows up, and serves reads/updates afterwards.
#
# ensure_profile() is idempotent: an existing profile is returned as is.
# Two callbacks racing to create the same profile both end up with the
# row the winner inserted (the loser's insert hits the primary key).
# =============================================================================

import logging
from typing import Any

from pydantic import ValidationError

from app.exceptions import ErrorKind, LogbookException, ProfileNotFoundError
from core.models.auth import AuthIdentity
from core.models.profile import Profile, ProfileList, ProfileResult
from core.models.results import OperationResult
from core.models.roles import UserRole
from lib.supabase_client import SupabaseClient
from lib.utils import email_local_part, utc_now

logger = logging.getLogger(__name__)

TABLE = "profiles"

FALLBACK_DISPLAY_NAME = "User"
MAX_DISPLAY_NAME_LENGTH = 100


def _clean_text(value: Any, max_length: int = MAX_DISPLAY_NAME_LENGTH) -> str | None:
    """Signup metadata is untrusted: accept only non-blank strings."""
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value[:max_length] if value else None


class ProfileService:
    """
    Service for profile operations.

    Reads return None or a result; nothing here raises to the caller.
    """

    @staticmethod
    async def _fetch(user_id: str) -> Profile | None:
        row = await SupabaseClient.fetch_one(TABLE, id=str(user_id))
        return Profile.model_validate(row) if row else None

    @staticmethod
    async def get_profile(user_id: str) -> Profile | None:
        """
        Get a profile by identity id.

        Returns:
            Profile, or None if missing or unreadable
        """
        try:
            return await ProfileService._fetch(user_id)
        except (LogbookException, ValidationError) as e:
            logger.error(f"Failed to load profile {user_id}: {e}")
            return None

    @staticmethod
    def profile_fields(
        identity: AuthIdentity,
        role_hint: UserRole | str | None = None,
        display_name_hint: str | None = None,
    ) -> dict[str, Any]:
        """
        Work out the row for a new profile.

        The role comes from a verified hint (a consumed invite token), then
        the invite role the signup saga stamped on app_metadata, then the
        lowest role. A role in user_metadata is never used: users can set it
        themselves. The display name falls back from the hint to signup
        metadata, the email's local part, then "User".

        Example:
            identity.app_metadata == {"invite_role": "family", "invite_code": "FAMILY2024"}
            identity.user_metadata == {"display_name": "May"}
            ProfileService.profile_fields(identity)
            # {"id": ..., "role": "family", "display_name": "May", ...}
        """
        metadata = identity.user_metadata or {}

        role = (
            UserRole.parse(role_hint)
            or identity.invite_role
            or UserRole.lowest()
        )
        display_name = (
            _clean_text(display_name_hint)
            or _clean_text(metadata.get("display_name"))
            or _clean_text(email_local_part(identity.email))
            or FALLBACK_DISPLAY_NAME
        )

        return {
            "id": identity.id,
            "role": role.value,
            "display_name": display_name,
            "invited_by": _clean_text(metadata.get("invited_by"), max_length=64),
            "invite_code": identity.invite_code,
        }

    @staticmethod
    async def ensure_profile(
        identity: AuthIdentity,
        role_hint: UserRole | str | None = None,
        display_name_hint: str | None = None,
    ) -> ProfileResult:
        """
        Make sure an identity has a profile.

        Args:
            identity: The authenticated identity
            role_hint: Verified role to use instead of the stamped invite
                role (e.g. from a consumed invite token)
            display_name_hint: Display name to prefer likewise

        Returns:
            ProfileResult with the profile and whether it was created now.
            A failed result means the caller must report an error, never
            carry on without a profile.
        """
        try:
            existing = await ProfileService._fetch(identity.id)
            if existing is not None:
                return ProfileResult.ok(profile=existing, created=False)

            row = ProfileService.profile_fields(identity, role_hint, display_name_hint)
            client = await SupabaseClient.get_client()
            try:
                response = await SupabaseClient.execute(
                    client.table(TABLE).insert(row),
                    action="create profile",
                )
            except LogbookException as e:
                if e.kind is not ErrorKind.CONFLICT:
                    raise
                # Someone else created it between our read and insert
                winner = await ProfileService._fetch(identity.id)
                if winner is None:
                    raise
                return ProfileResult.ok(profile=winner, created=False)

            created = response.data[0] if response.data else row
            profile = Profile.model_validate(created)

        except LogbookException as e:
            logger.error(f"Failed to ensure profile for {identity.id}: {e}")
            return ProfileResult.from_exception(e)
        except ValidationError as e:
            logger.error(f"Stored profile for {identity.id} is malformed: {e}")
            return ProfileResult.fail("Profile data is invalid", ErrorKind.TRANSPORT)

        logger.info(f"Created {profile.role.value} profile for {identity.id}")
        return ProfileResult.ok(profile=profile, created=True)

    @staticmethod
    async def _update(user_id: str, changes: dict[str, Any], action: str) -> ProfileResult:
        changes = {**changes, "updated_at": utc_now().isoformat()}
        try:
            client = await SupabaseClient.get_client()
            response = await SupabaseClient.execute(
                client.table(TABLE).update(changes).eq("id", str(user_id)),
                action=action,
            )
            if not response.data:
                raise ProfileNotFoundError(str(user_id))
            profile = Profile.model_validate(response.data[0])
        except LogbookException as e:
            if e.kind is not ErrorKind.NOT_FOUND:
                logger.error(f"Failed to {action} for {user_id}: {e}")
            return ProfileResult.from_exception(e)
        except ValidationError as e:
            logger.error(f"Updated profile {user_id} is malformed: {e}")
            return ProfileResult.fail("Profile data is invalid", ErrorKind.TRANSPORT)

        return ProfileResult.ok(profile=profile)

    @staticmethod
    async def update_display_name(user_id: str, display_name: str) -> ProfileResult:
        """Self-service rename."""
        cleaned = _clean_text(display_name)
        if cleaned is None:
            return ProfileResult.fail("Display name cannot be blank", ErrorKind.VALIDATION)
        return await ProfileService._update(user_id, {"display_name": cleaned}, "update display name")

    @staticmethod
    async def update_avatar(user_id: str, avatar_url: str | None) -> ProfileResult:
        return await ProfileService._update(user_id, {"avatar_url": avatar_url}, "update avatar")

    @staticmethod
    async def set_role(user_id: str, role: UserRole | str) -> ProfileResult:
        """
        Change a user's role (admin operation; callers check permission).
        """
        parsed = UserRole.parse(role)
        if parsed is None:
            return ProfileResult.fail(f"Unknown role: {role}", ErrorKind.VALIDATION)
        result = await ProfileService._update(user_id, {"role": parsed.value}, "update role")
        if result.success:
            logger.info(f"Set role of {user_id} to {parsed.value}")
        return result

    @staticmethod
    async def list_profiles() -> ProfileList:
        """All profiles, newest first."""
        try:
            client = await SupabaseClient.get_client()
            response = await SupabaseClient.execute(
                client.table(TABLE).select("*").order("created_at", desc=True),
                action="list profiles",
            )
        except LogbookException as e:
            logger.error(f"Failed to list profiles: {e}")
            return ProfileList.from_exception(e)

        profiles = []
        for row in response.data or []:
            try:
                profiles.append(Profile.model_validate(row))
            except ValidationError as e:
                logger.warning(f"Skipping malformed profile row {row.get('id')}: {e}")
        return ProfileList.ok(profiles=profiles)

    @staticmethod
    async def promote_to_admin(identity: AuthIdentity) -> ProfileResult:
        """
        Give an identity the admin role, creating its profile if needed.
        """
        row = ProfileService.profile_fields(identity, role_hint=UserRole.ADMIN)
        row["updated_at"] = utc_now().isoformat()

        existing = await ProfileService.get_profile(identity.id)
        if existing is not None:
            # Keep the name they chose; only the role changes
            row["display_name"] = existing.display_name
            row["invited_by"] = existing.invited_by
            row["invite_code"] = existing.invite_code

        try:
            client = await SupabaseClient.get_client()
            response = await SupabaseClient.execute(
                client.table(TABLE).upsert(row, on_conflict="id"),
                action="promote to admin",
            )
            profile = Profile.model_validate(response.data[0] if response.data else row)
        except LogbookException as e:
            logger.error(f"Failed to promote {identity.id} to admin: {e}")
            return ProfileResult.from_exception(e)
        except ValidationError as e:
            logger.error(f"Promoted profile {identity.id} is malformed: {e}")
            return ProfileResult.fail("Profile data is invalid", ErrorKind.TRANSPORT)

        logger.info(f"Promoted {identity.id} to admin")
        return ProfileResult.ok(profile=profile, created=existing is None)

    @staticmethod
    async def delete_profile(user_id: str) -> OperationResult:
        """Remove a profile row directly (identity deletion normally cascades)."""
        try:
            client = await SupabaseClient.get_client()
            await SupabaseClient.execute(
                client.table(TABLE).delete().eq("id", str(user_id)),
                action="delete profile",
            )
        except LogbookException as e:
            logger.error(f"Failed to delete profile {user_id}: {e}")
            return OperationResult.from_exception(e)
        return OperationResult.ok()
