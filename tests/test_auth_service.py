# =============================================================================
# tests/test_auth_service.py - Auth Session Facade Tests
# =============================================================================
# Covers the signup saga (validate, consume, create identity, profile) and
# its compensation, plus sign in / sign out / profile lookups.
# =============================================================================

import asyncio

import httpx
from supabase import AuthApiError

from app.exceptions import ErrorKind
from core.models.roles import UserRole
from core.services.auth_service import AuthService
from tests.fakes import issue_access_token


def run(coro):
    return asyncio.run(coro)


def codes(fake):
    return {row["code"]: row for row in fake.tables.get("invite_codes", [])}


class TestSignUpWithInvite:
    """Tests for the signup saga."""

    def test_invalid_code_fails_closed(self, fake_supabase):
        result = run(AuthService.sign_up_with_invite("a@example.com", "secret1", "Al", "NOPE123"))

        assert not result.success
        assert result.error_kind is ErrorKind.VALIDATION
        assert fake_supabase.auth.sign_ups == []

    def test_signup_awaiting_confirmation(self, fake_supabase, sample_invite_code):
        result = run(AuthService.sign_up_with_invite("May@Example.com", "secret1", "Aunt May", "family2024"))

        assert result.success
        assert result.confirmation_required
        assert result.session is None

        request = fake_supabase.auth.sign_ups[0]
        assert request["email"] == "may@example.com"
        assert request["options"]["data"] == {
            "display_name": "Aunt May",
            "role": "family",
            "invite_code": "FAMILY2024",
        }
        assert request["options"]["email_redirect_to"] == "http://localhost:3000/api/auth/callback"
        assert codes(fake_supabase)["FAMILY2024"]["current_uses"] == 1
        # Profile waits for the confirmation callback
        assert fake_supabase.tables.get("profiles", []) == []

    def test_signup_with_immediate_session_creates_profile(self, fake_supabase, sample_invite_code):
        fake_supabase.auth.auto_confirm = True

        result = run(AuthService.sign_up_with_invite("may@example.com", "secret1", "Aunt May", "FAMILY2024"))

        assert result.success
        assert result.session.access_token
        assert result.profile.role is UserRole.FAMILY
        assert result.profile.display_name == "Aunt May"
        assert result.profile.invite_code == "FAMILY2024"

    def test_identity_failure_releases_the_code(self, fake_supabase, sample_invite_code):
        fake_supabase.auth.fail_sign_up = AuthApiError("Password should be stronger", 422, "weak_password")

        result = run(AuthService.sign_up_with_invite("may@example.com", "secret1", "May", "FAMILY2024"))

        assert not result.success
        assert result.error_kind is ErrorKind.AUTH
        assert codes(fake_supabase)["FAMILY2024"]["current_uses"] == 0

    def test_existing_email_releases_the_code(self, fake_supabase, sample_invite_code):
        fake_supabase.auth.add_user("may@example.com")

        result = run(AuthService.sign_up_with_invite("may@example.com", "secret1", "May", "FAMILY2024"))

        assert not result.success
        assert codes(fake_supabase)["FAMILY2024"]["current_uses"] == 0

    def test_signup_records_invite_on_app_metadata(self, fake_supabase, sample_invite_code):
        run(AuthService.sign_up_with_invite("may@example.com", "secret1", "May", "family2024"))

        user = next(iter(fake_supabase.auth.users.values()))
        assert user.app_metadata["invite_role"] == "family"
        assert user.app_metadata["invite_code"] == "FAMILY2024"

    def test_confirmed_signup_keeps_invite_role_when_metadata_is_edited(self, fake_supabase, sample_invite_code):
        run(AuthService.sign_up_with_invite("may@example.com", "secret1", "May", "FAMILY2024"))
        user = next(iter(fake_supabase.auth.users.values()))
        # Clients can rewrite user_metadata with the anon key
        user.user_metadata["role"] = "admin"
        user.email_confirmed_at = user.created_at

        result = run(AuthService.sign_in("may@example.com", "secret1"))

        assert result.profile.role is UserRole.FAMILY

    def test_unrecorded_invite_undoes_signup(self, fake_supabase, sample_invite_code):
        fake_supabase.auth.admin.fail_update = httpx.ConnectError("connection reset")

        result = run(AuthService.sign_up_with_invite("may@example.com", "secret1", "May", "FAMILY2024"))

        assert not result.success
        assert result.error_kind is ErrorKind.TRANSPORT
        assert fake_supabase.auth.users == {}
        assert codes(fake_supabase)["FAMILY2024"]["current_uses"] == 0

    def test_store_outage_is_not_reported_as_bad_code(self, fake_supabase, sample_invite_code):
        fake_supabase.fail_next("invite_codes", "select", httpx.ConnectError("connection refused"))

        result = run(AuthService.sign_up_with_invite("may@example.com", "secret1", "May", "FAMILY2024"))

        assert not result.success
        assert result.error_kind is ErrorKind.TRANSPORT
        assert fake_supabase.auth.sign_ups == []

    def test_store_timeout_has_its_own_kind(self, fake_supabase, sample_invite_code):
        fake_supabase.fail_next("invite_codes", "update", asyncio.TimeoutError())

        result = run(AuthService.sign_up_with_invite("may@example.com", "secret1", "May", "FAMILY2024"))

        assert not result.success
        assert result.error_kind is ErrorKind.TIMEOUT
        assert codes(fake_supabase)["FAMILY2024"]["current_uses"] == 0

    def test_end_to_end_race_for_last_use(self, fake_supabase, sample_invite_code):
        """Two signups for a single-use code: exactly one gets in."""
        fake_supabase.auth.auto_confirm = True

        async def race():
            return await asyncio.gather(
                AuthService.sign_up_with_invite("a@example.com", "secret1", "A", "FAMILY2024"),
                AuthService.sign_up_with_invite("b@example.com", "secret1", "B", "FAMILY2024"),
            )

        results = run(race())

        winners = [r for r in results if r.success]
        assert len(winners) == 1
        assert winners[0].profile.role is UserRole.FAMILY
        assert codes(fake_supabase)["FAMILY2024"]["current_uses"] == 1
        assert len(fake_supabase.auth.users) == 1


class TestSessions:
    """Tests for sign in, refresh, sign out and lookups."""

    def test_sign_in_returns_session_and_profile(self, fake_supabase, make_member):
        user, _ = make_member("family", email="may@example.com")

        result = run(AuthService.sign_in("MAY@example.com", "password123"))

        assert result.success
        assert result.session.refresh_token
        assert result.profile.id == user.id

    def test_sign_in_wrong_password(self, fake_supabase, make_member):
        make_member("family", email="may@example.com")

        result = run(AuthService.sign_in("may@example.com", "nope"))

        assert not result.success
        assert result.error_kind is ErrorKind.AUTH
        assert result.session is None

    def test_sign_in_materialises_missing_profile(self, fake_supabase):
        fake_supabase.auth.add_user(
            "late@example.com",
            app_metadata={"invite_role": "family", "invite_code": "FAMILY2024"},
        )

        result = run(AuthService.sign_in("late@example.com", "password123"))

        assert result.profile.role is UserRole.FAMILY

    def test_refresh_session(self, fake_supabase, make_member):
        make_member("friend", email="f@example.com")
        signed_in = run(AuthService.sign_in("f@example.com", "password123"))

        refreshed = run(AuthService.refresh_session(signed_in.session.refresh_token))

        assert refreshed.success
        assert refreshed.session.refresh_token != signed_in.session.refresh_token

    def test_refresh_without_token(self, fake_supabase):
        assert run(AuthService.refresh_session(None)).error_kind is ErrorKind.AUTH

    def test_get_current_profile(self, fake_supabase, make_member):
        user, _ = make_member("admin")
        token = issue_access_token(user.id, user.email)

        assert run(AuthService.get_current_profile(token)).role is UserRole.ADMIN
        assert run(AuthService.refresh_profile(token)).id == user.id

    def test_get_current_profile_is_none_on_any_failure(self, fake_supabase):
        assert run(AuthService.get_current_profile(None)) is None
        assert run(AuthService.get_current_profile("garbage")) is None

    def test_sign_out_revokes(self, fake_supabase):
        assert run(AuthService.sign_out("some-token")).success
        assert fake_supabase.auth.admin.signed_out == ["some-token"]

    def test_sign_out_without_session(self, fake_supabase):
        assert run(AuthService.sign_out(None)).success
