# =============================================================================
# core/services/auth_service.py - Auth Session Facade
# =============================================================================
# The one place that talks to Supabase Auth on behalf of users.
#
# Every user-level call runs on a fresh anon client (see
# SupabaseClient.create_auth_client); admin calls use the service client.
#
# sign_up_with_invite() is a small saga:
#   1. validate the code (fail closed)
#   2. consume one use atomically
#   3. create the identity; if that fails, release the use again
#   4. stamp the role and code on app_metadata (service key only); if that
#      fails, delete the identity and release the use
#   5. create the profile now if Supabase returned a session, otherwise
#      at the confirmation callback
# Identities left without a profile are handled by the reconciliation
# sweep (core/services/reconciliation_service.py).
#
# Nothing here raises: results carry success/error/error_kind.
# =============================================================================

import logging
from typing import Any

from app.config import settings
from app.exceptions import AuthenticationError, ErrorKind, LogbookException
from core.models.auth import INVITE_CODE_KEY, INVITE_ROLE_KEY, AuthIdentity, AuthResult, SessionTokens
from core.models.invite import normalize_code
from core.models.profile import Profile
from core.models.results import OperationResult
from core.models.roles import UserRole
from core.services.invite_code_service import InviteCodeService
from core.services.profile_service import ProfileService
from lib.supabase_client import SupabaseClient
from lib.utils import build_app_url, normalize_email

logger = logging.getLogger(__name__)

CALLBACK_PATH = "/api/auth/callback"


class AuthService:
    """Facade over Supabase Auth for sign in, sign up and session lookups."""

    # -------------------------------------------------------------------------
    # Identity Lookups
    # -------------------------------------------------------------------------

    @staticmethod
    async def get_identity(access_token: str | None) -> AuthIdentity | None:
        """
        Resolve an access token to its identity via Supabase Auth.

        Returns:
            AuthIdentity, or None if the token is missing, rejected or the
            call failed
        """
        if not access_token:
            return None
        try:
            client = await SupabaseClient.get_client()
            response = await SupabaseClient.run(client.auth.get_user(access_token), action="get user")
        except LogbookException as e:
            logger.debug(f"Could not resolve session: {e}")
            return None
        user = getattr(response, "user", None)
        return AuthIdentity.from_user(user) if user else None

    @staticmethod
    async def get_current_profile(access_token: str | None) -> Profile | None:
        """Session -> identity -> profile; None on any failure."""
        identity = await AuthService.get_identity(access_token)
        if identity is None:
            return None
        return await ProfileService.get_profile(identity.id)

    @staticmethod
    async def refresh_profile(access_token: str | None) -> Profile | None:
        """Re-read the profile from the store (nothing is cached between calls)."""
        return await AuthService.get_current_profile(access_token)

    # -------------------------------------------------------------------------
    # Sessions
    # -------------------------------------------------------------------------

    @staticmethod
    async def sign_in(email: str, password: str) -> AuthResult:
        """
        Sign in with email and password.

        Returns:
            AuthResult with session tokens and the profile. A confirmed
            identity that is still missing its profile gets one here.
        """
        try:
            client = await SupabaseClient.create_auth_client()
            response = await SupabaseClient.run(
                client.auth.sign_in_with_password({
                    "email": normalize_email(email),
                    "password": password,
                }),
                action="sign in",
            )
            if response.session is None or response.user is None:
                raise AuthenticationError("Invalid login credentials")
        except LogbookException as e:
            logger.warning(f"Sign in failed for {normalize_email(email)}: {e.message}")
            return AuthResult.from_exception(e)

        identity = AuthIdentity.from_user(response.user)
        profile = await ProfileService.get_profile(identity.id)
        if profile is None and identity.email_confirmed_at:
            ensured = await ProfileService.ensure_profile(identity)
            profile = ensured.profile

        return AuthResult.ok(session=SessionTokens.from_session(response.session), profile=profile)

    @staticmethod
    async def refresh_session(refresh_token: str | None) -> AuthResult:
        """Trade a refresh token for a new session."""
        if not refresh_token:
            return AuthResult.fail("No refresh token provided", ErrorKind.AUTH)
        try:
            client = await SupabaseClient.create_auth_client()
            response = await SupabaseClient.run(
                client.auth.refresh_session(refresh_token),
                action="refresh session",
            )
            if response.session is None:
                raise AuthenticationError("Session could not be refreshed")
        except LogbookException as e:
            return AuthResult.from_exception(e)

        return AuthResult.ok(session=SessionTokens.from_session(response.session))

    @staticmethod
    async def sign_out(access_token: str | None) -> OperationResult:
        """
        Revoke the session's refresh tokens.

        Always succeeds from the caller's point of view: the route clears
        cookies regardless. A failed revoke is only logged.
        """
        if not access_token:
            return OperationResult.ok()
        try:
            client = await SupabaseClient.get_client()
            await SupabaseClient.run(client.auth.admin.sign_out(access_token), action="sign out")
        except LogbookException as e:
            logger.warning(f"Could not revoke session on sign out: {e}")
        return OperationResult.ok()

    @staticmethod
    async def exchange_code(code: str, code_verifier: str | None = None) -> tuple[Any, Any]:
        """
        Exchange an auth code from an email link for a session.

        Returns:
            (session, user) as returned by Supabase

        Raises:
            LogbookException: When the code is rejected or Supabase fails.
                Callbacks turn this into a redirect with an error marker.
        """
        params = {"auth_code": code}
        if code_verifier:
            params["code_verifier"] = code_verifier

        client = await SupabaseClient.create_auth_client()
        response = await SupabaseClient.run(
            client.auth.exchange_code_for_session(params),
            action="exchange auth code",
        )
        if response.session is None:
            raise AuthenticationError("Auth code exchange returned no session")
        return response.session, response.user

    # -------------------------------------------------------------------------
    # Signup
    # -------------------------------------------------------------------------

    @staticmethod
    async def _record_invite(user_id: str, role: UserRole, code: str) -> None:
        """
        Stamp the redeemed invite on the identity's app_metadata.

        Only the service key can write app_metadata, so this is what later
        profile creation trusts for the role.
        """
        client = await SupabaseClient.get_client()
        await SupabaseClient.run(
            client.auth.admin.update_user_by_id(
                user_id,
                {"app_metadata": {INVITE_ROLE_KEY: role.value, INVITE_CODE_KEY: code}},
            ),
            action="record invite",
        )

    @staticmethod
    async def _discard_identity(user_id: str) -> None:
        try:
            client = await SupabaseClient.get_client()
            await SupabaseClient.run(client.auth.admin.delete_user(user_id), action="delete unrecorded user")
        except LogbookException as e:
            # The reconciliation sweep removes it once stale
            logger.error(f"Could not delete identity {user_id}: {e}")

    @staticmethod
    async def _release_code(code: str) -> None:
        released = await InviteCodeService.release(code)
        if not released.success:
            logger.error(f"Could not release invite code {code} after failed signup: {released.error}")

    @staticmethod
    async def sign_up_with_invite(
        email: str,
        password: str,
        display_name: str,
        invite_code: str,
    ) -> AuthResult:
        """
        Create an account with an invite code.

        Args:
            email: New user's email
            password: New user's password
            display_name: Name shown to the family
            invite_code: Code that decides the role

        Returns:
            AuthResult. On success either `session` and `profile` are set
            (email confirmation disabled) or `confirmation_required` is True.
        """
        email = normalize_email(email)

        validation = await InviteCodeService.validate(invite_code)
        if not validation.valid:
            logger.warning(f"Signup for {email} rejected: {validation.error}")
            return AuthResult.fail(
                validation.error or "Invalid invite code",
                validation.error_kind or ErrorKind.VALIDATION,
            )

        consumed = await InviteCodeService.consume(invite_code)
        if not consumed.valid:
            logger.warning(f"Signup for {email} lost the invite code: {consumed.error}")
            return AuthResult.fail(
                consumed.error or "Invalid invite code",
                consumed.error_kind or ErrorKind.VALIDATION,
            )

        code = normalize_code(invite_code)
        metadata = {
            "display_name": display_name,
            "role": consumed.role.value,
            "invite_code": code,
        }

        try:
            client = await SupabaseClient.create_auth_client()
            response = await SupabaseClient.run(
                client.auth.sign_up({
                    "email": email,
                    "password": password,
                    "options": {
                        "data": metadata,
                        "email_redirect_to": build_app_url(settings.app_base_url, CALLBACK_PATH),
                    },
                }),
                action="sign up",
            )
            if response.user is None:
                raise AuthenticationError("Signup did not create a user")
        except LogbookException as e:
            logger.warning(f"Signup for {email} failed, releasing invite code: {e.message}")
            await AuthService._release_code(code)
            return AuthResult.from_exception(e)

        try:
            await AuthService._record_invite(str(response.user.id), consumed.role, code)
        except LogbookException as e:
            logger.error(f"Could not record the invite for {email}, undoing signup: {e}")
            await AuthService._discard_identity(str(response.user.id))
            await AuthService._release_code(code)
            return AuthResult.from_exception(e)

        if response.session is None:
            logger.info(f"Signup for {email} awaiting email confirmation")
            return AuthResult.ok(confirmation_required=True)

        identity = AuthIdentity.from_user(response.user)
        ensured = await ProfileService.ensure_profile(identity, role_hint=consumed.role)
        if not ensured.success:
            # The identity exists and is confirmed; the sweep will retry
            return AuthResult.fail(
                "Your account was created but your profile could not be set up. Please sign in again shortly.",
                ensured.error_kind or ErrorKind.TRANSPORT,
            )

        logger.info(f"Signed up {email} as {consumed.role.value}")
        return AuthResult.ok(
            session=SessionTokens.from_session(response.session),
            profile=ensured.profile,
        )
