# =============================================================================
# core/services/invite_token_service.py - Invite Token Store
# =============================================================================
# Single-recipient invites: a random token bound to one email address,
# valid for a fixed window and usable at most once.
#
# Consumption is a conditional update (used_at IS NULL), so a token can
# only ever be marked used by one caller.
# =============================================================================

import logging
import secrets
from datetime import timedelta

from pydantic import ValidationError

from app.config import settings
from app.exceptions import ErrorKind, LogbookException
from core.models.invite import InviteTokenData, InviteTokenIssued
from core.models.results import OperationResult
from core.models.roles import UserRole
from lib.supabase_client import SupabaseClient
from lib.utils import build_app_url, normalize_email, utc_now

logger = logging.getLogger(__name__)

TABLE = "invite_tokens"

# 32 random bytes, URL-safe base64 (43 characters)
TOKEN_BYTES = 32


class InviteTokenService:
    """Service for invite token operations."""

    @staticmethod
    def invite_url(token: str, role: UserRole | str) -> str:
        """
        Public join link for a token.

        Example:
            InviteTokenService.invite_url("abc", "family")
            # "http://localhost:3000/join/family/abc"
        """
        role_value = role.value if isinstance(role, UserRole) else str(role)
        return build_app_url(settings.app_base_url, f"/join/{role_value}/{token}")

    @staticmethod
    async def generate(
        email: str,
        role: UserRole,
        display_name: str | None = None,
        created_by_email: str | None = None,
    ) -> InviteTokenIssued:
        """
        Issue a new invite token.

        Args:
            email: Recipient (stored lowercase)
            role: Role the recipient will get
            display_name: Optional name suggestion for the profile
            created_by_email: Who sent the invite

        Returns:
            InviteTokenIssued with the token, its join URL and expiry
        """
        token = secrets.token_urlsafe(TOKEN_BYTES)
        expires_at = utc_now() + timedelta(hours=settings.INVITE_TOKEN_TTL_HOURS)
        role = UserRole(role)

        row = {
            "token": token,
            "email": normalize_email(email),
            "role": role.value,
            "display_name": display_name,
            "created_by_email": created_by_email,
            "expires_at": expires_at.isoformat(),
        }

        try:
            client = await SupabaseClient.get_client()
            await SupabaseClient.execute(client.table(TABLE).insert(row), action="create invite token")
        except LogbookException as e:
            logger.error(f"Failed to create invite token: {e}")
            return InviteTokenIssued.from_exception(e)

        logger.info(f"Issued {role.value} invite token for {row['email']}")
        return InviteTokenIssued.ok(
            token=token,
            invite_url=InviteTokenService.invite_url(token, role),
            expires_at=expires_at,
        )

    @staticmethod
    async def verify(token: str) -> InviteTokenData | None:
        """
        Look up a token that may still be used.

        Returns:
            The token data, or None if it does not exist, was used, has
            expired, or could not be read. Expired rows are left in place.
        """
        if not token:
            return None
        try:
            row = await SupabaseClient.fetch_one(TABLE, token=token)
        except LogbookException as e:
            logger.error(f"Invite token lookup failed: {e}")
            return None
        if row is None:
            return None

        try:
            data = InviteTokenData.model_validate(row)
        except ValidationError as e:
            logger.warning(f"Ignoring malformed invite token row: {e}")
            return None

        return data if data.is_usable() else None

    @staticmethod
    async def consume(token: str) -> bool:
        """
        Mark a token used. True only for the one caller that flipped it.

        An expired token is never marked, whether or not verify() ran first.
        """
        if not token:
            return False
        now = utc_now().isoformat()
        try:
            client = await SupabaseClient.get_client()
            response = await SupabaseClient.execute(
                client.table(TABLE)
                .update({"used_at": now})
                .eq("token", token)
                .is_("used_at", "null")
                .gt("expires_at", now),
                action="consume invite token",
            )
        except LogbookException as e:
            logger.error(f"Failed to consume invite token: {e}")
            return False

        consumed = len(response.data or []) == 1
        if consumed:
            logger.info(f"Invite token for {response.data[0].get('email')} consumed")
        return consumed

    @staticmethod
    async def send_magic_link(data: InviteTokenData) -> OperationResult:
        """
        Ask Supabase Auth to email a one-time sign-in link for the invite.

        The link lands on the simple callback with the invite token, which
        applies the token's role and display name to the new profile.
        """
        redirect_to = build_app_url(
            settings.app_base_url,
            "/api/auth/simple-callback",
            invite_token=data.token,
        )
        try:
            client = await SupabaseClient.create_auth_client()
            await SupabaseClient.run(
                client.auth.sign_in_with_otp({
                    "email": data.email,
                    "options": {
                        "email_redirect_to": redirect_to,
                        "should_create_user": True,
                        "data": {
                            "role": data.role.value,
                            "display_name": data.display_name,
                            "invite_token": data.token,
                        },
                    },
                }),
                action="send magic link",
            )
        except LogbookException as e:
            logger.error(f"Failed to send magic link to {data.email}: {e}")
            return OperationResult.from_exception(e)

        logger.info(f"Magic link sent to {data.email}")
        return OperationResult.ok()

    @staticmethod
    async def issue(
        email: str,
        role: UserRole,
        display_name: str | None = None,
        created_by_email: str | None = None,
        send_email: bool = False,
    ) -> InviteTokenIssued:
        """Generate a token and, if asked, email the magic link for it."""
        issued = await InviteTokenService.generate(email, role, display_name, created_by_email)
        if not issued.success or not send_email:
            return issued

        sent = await InviteTokenService.send_magic_link(InviteTokenData(
            token=issued.token,
            email=normalize_email(email),
            role=role,
            display_name=display_name,
            created_by_email=created_by_email,
            expires_at=issued.expires_at,
        ))
        if not sent.success:
            # The token stands; the inviter can still share the join URL
            issued.error = sent.error
            issued.error_kind = sent.error_kind or ErrorKind.TRANSPORT
            return issued

        issued.email_sent = True
        return issued
