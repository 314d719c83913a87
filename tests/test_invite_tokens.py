# =============================================================================
# tests/test_invite_tokens.py - Invite Token Store Tests
# =============================================================================

import asyncio
from datetime import timedelta

from core.models.roles import UserRole
from core.services.invite_token_service import InviteTokenService
from lib.utils import utc_now


def run(coro):
    return asyncio.run(coro)


class TestGenerate:
    """Tests for token issuing."""

    def test_generate_stores_unused_token(self, fake_supabase):
        issued = run(InviteTokenService.generate("Grandma@Example.com", UserRole.FAMILY, "Grandma", "admin@example.com"))

        assert issued.success
        assert len(issued.token) >= 40
        row = fake_supabase.tables["invite_tokens"][0]
        assert row["email"] == "grandma@example.com"
        assert row["role"] == "family"
        assert row["used_at"] is None
        assert row["created_by_email"] == "admin@example.com"

    def test_expiry_is_72_hours_out(self, fake_supabase):
        before = utc_now()
        issued = run(InviteTokenService.generate("a@example.com", UserRole.FRIEND))
        window = issued.expires_at - before
        assert timedelta(hours=71, minutes=59) < window <= timedelta(hours=72, seconds=5)

    def test_tokens_are_unique(self, fake_supabase):
        tokens = {run(InviteTokenService.generate("a@example.com", UserRole.FRIEND)).token for _ in range(20)}
        assert len(tokens) == 20

    def test_invite_url(self):
        assert InviteTokenService.invite_url("abc", UserRole.FAMILY) == "http://localhost:3000/join/family/abc"


class TestVerifyConsume:
    """Tests for the single-use lifecycle."""

    def test_verify_fresh_token(self, fake_supabase):
        issued = run(InviteTokenService.generate("a@example.com", UserRole.FRIEND, "Al"))

        data = run(InviteTokenService.verify(issued.token))

        assert data is not None
        assert data.email == "a@example.com"
        assert data.display_name == "Al"

    def test_verify_unknown_token(self, fake_supabase):
        assert run(InviteTokenService.verify("not-a-token")) is None
        assert run(InviteTokenService.verify("")) is None

    def test_verify_after_consume_is_invalid(self, fake_supabase):
        issued = run(InviteTokenService.generate("a@example.com", UserRole.FRIEND))

        assert run(InviteTokenService.consume(issued.token)) is True
        assert run(InviteTokenService.verify(issued.token)) is None

    def test_consume_happens_at_most_once(self, fake_supabase):
        issued = run(InviteTokenService.generate("a@example.com", UserRole.FRIEND))

        async def race():
            return await asyncio.gather(*(InviteTokenService.consume(issued.token) for _ in range(3)))

        assert sorted(run(race())) == [False, False, True]

    def test_expired_token_is_invalid_but_kept(self, fake_supabase):
        fake_supabase.seed(
            "invite_tokens",
            token="old-token",
            email="late@example.com",
            role="friend",
            expires_at=(utc_now() - timedelta(seconds=1)).isoformat(),
        )

        assert run(InviteTokenService.verify("old-token")) is None
        assert len(fake_supabase.tables["invite_tokens"]) == 1

    def test_expired_token_cannot_be_consumed(self, fake_supabase):
        fake_supabase.seed(
            "invite_tokens",
            token="old-token",
            email="late@example.com",
            role="friend",
            expires_at=(utc_now() - timedelta(seconds=1)).isoformat(),
        )

        assert run(InviteTokenService.consume("old-token")) is False
        assert fake_supabase.tables["invite_tokens"][0]["used_at"] is None


class TestIssue:
    """Tests for issuing with an optional magic link."""

    def test_issue_without_email(self, fake_supabase):
        issued = run(InviteTokenService.issue("a@example.com", UserRole.FRIEND))
        assert issued.success
        assert not issued.email_sent
        assert fake_supabase.auth.otp_requests == []

    def test_issue_sends_magic_link_to_simple_callback(self, fake_supabase):
        issued = run(InviteTokenService.issue("a@example.com", UserRole.FAMILY, "Al", send_email=True))

        assert issued.email_sent
        request = fake_supabase.auth.otp_requests[0]
        assert request["email"] == "a@example.com"
        assert request["options"]["email_redirect_to"] == (
            f"http://localhost:3000/api/auth/simple-callback?invite_token={issued.token}"
        )
        assert request["options"]["data"]["role"] == "family"
