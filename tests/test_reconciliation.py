# =============================================================================
# tests/test_reconciliation.py - Incomplete Signup Sweep Tests
# =============================================================================

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock

from postgrest.exceptions import APIError
from supabase import AuthApiError

import lib.supabase_client as supabase_client
from core.services.reconciliation_service import ReconciliationService
from tests.fakes import BASE_TIME

NOW = BASE_TIME + timedelta(hours=100)


def run(coro):
    return asyncio.run(coro)


def profile_ids(fake):
    return {p["id"] for p in fake.tables.get("profiles", [])}


class TestSweep:
    """Tests for ReconciliationService.sweep()."""

    def test_confirmed_identity_gets_its_profile(self, fake_supabase):
        user = fake_supabase.auth.add_user(
            "may@example.com",
            user_metadata={"display_name": "May"},
            app_metadata={"invite_role": "family", "invite_code": "FAMILY2024"},
        )

        report = run(ReconciliationService.sweep(now=NOW))

        assert report.promoted == 1
        assert user.id in profile_ids(fake_supabase)
        assert fake_supabase.tables["profiles"][0]["role"] == "family"

    def test_stale_unconfirmed_identity_is_discarded_and_code_released(self, fake_supabase, sample_invite_code):
        fake_supabase.tables["invite_codes"][0]["current_uses"] = 1
        user = fake_supabase.auth.add_user(
            "gone@example.com",
            app_metadata={"invite_role": "family", "invite_code": "FAMILY2024"},
            confirmed=False,
            created_at=BASE_TIME,
        )

        report = run(ReconciliationService.sweep(now=NOW, stale_after_hours=72))

        assert report.discarded == 1
        assert user.id not in fake_supabase.auth.users
        assert fake_supabase.tables["invite_codes"][0]["current_uses"] == 0

    def test_self_assigned_role_is_ignored_when_promoting(self, fake_supabase):
        user = fake_supabase.auth.add_user("sneaky@example.com", user_metadata={"role": "admin"})

        run(ReconciliationService.sweep(now=NOW))

        assert user.id in profile_ids(fake_supabase)
        assert fake_supabase.tables["profiles"][0]["role"] == "friend"

    def test_unstamped_invite_code_is_not_released(self, fake_supabase, sample_invite_code):
        fake_supabase.tables["invite_codes"][0]["current_uses"] = 1
        fake_supabase.auth.add_user(
            "forged@example.com",
            user_metadata={"invite_code": "FAMILY2024"},
            confirmed=False,
            created_at=BASE_TIME,
        )

        report = run(ReconciliationService.sweep(now=NOW, stale_after_hours=72))

        assert report.discarded == 1
        assert fake_supabase.tables["invite_codes"][0]["current_uses"] == 1

    def test_discarding_does_not_skip_later_pages(self, fake_supabase, monkeypatch):
        monkeypatch.setattr(supabase_client, "USER_PAGE_SIZE", 2)
        for i in range(5):
            fake_supabase.auth.add_user(f"stale{i}@example.com", confirmed=False, created_at=BASE_TIME)

        report = run(ReconciliationService.sweep(now=NOW, stale_after_hours=72))

        assert report.to_dict() == {"checked": 5, "promoted": 0, "discarded": 5, "failed": 0}
        assert fake_supabase.auth.users == {}

    def test_fresh_unconfirmed_identity_is_left_alone(self, fake_supabase):
        user = fake_supabase.auth.add_user("new@example.com", confirmed=False, created_at=NOW - timedelta(hours=1))

        report = run(ReconciliationService.sweep(now=NOW, stale_after_hours=72))

        assert report.to_dict() == {"checked": 1, "promoted": 0, "discarded": 0, "failed": 0}
        assert user.id in fake_supabase.auth.users

    def test_mixed_population(self, fake_supabase, make_member):
        make_member("admin")
        fake_supabase.auth.add_user("confirmed@example.com")
        fake_supabase.auth.add_user("stale@example.com", confirmed=False, created_at=BASE_TIME)
        fake_supabase.auth.add_user("fresh@example.com", confirmed=False, created_at=NOW)

        report = run(ReconciliationService.sweep(now=NOW, stale_after_hours=72))

        assert report.to_dict() == {"checked": 4, "promoted": 1, "discarded": 1, "failed": 0}
        assert len(fake_supabase.auth.users) == 3

    def test_second_sweep_has_nothing_to_do(self, fake_supabase):
        fake_supabase.auth.add_user("may@example.com")
        run(ReconciliationService.sweep(now=NOW))

        report = run(ReconciliationService.sweep(now=NOW))

        assert report.promoted == 0
        assert len(fake_supabase.tables["profiles"]) == 1

    def test_failed_profile_is_counted(self, fake_supabase):
        fake_supabase.auth.add_user("may@example.com")
        fake_supabase.fail_next("profiles", "insert", APIError({"code": "42501", "message": "denied"}))

        report = run(ReconciliationService.sweep(now=NOW))

        assert report.failed == 1
        assert report.promoted == 0

    def test_listing_failure_aborts_cleanly(self, fake_supabase):
        fake_supabase.auth.admin.list_users = AsyncMock(side_effect=AuthApiError("forbidden", 403, "not_admin"))

        report = run(ReconciliationService.sweep(now=NOW))

        assert report.to_dict() == {"checked": 0, "promoted": 0, "discarded": 0, "failed": 1}


class TestReconcileTask:
    def test_task_returns_counts(self, fake_supabase):
        from workers.tasks import reconcile_incomplete_signups

        fake_supabase.auth.add_user("may@example.com")

        counts = reconcile_incomplete_signups.run()

        assert counts["promoted"] == 1
        assert counts["failed"] == 0

    def test_worker_uses_configured_redis(self):
        from app.config import settings
        from workers.celery_app import celery_app, create_celery_app

        assert celery_app.conf.broker_url == settings.REDIS_URL
        assert celery_app.conf.result_backend == settings.REDIS_URL
        assert create_celery_app("redis://cache:6380/2").conf.broker_url == "redis://cache:6380/2"

    def test_broker_label_drops_credentials(self):
        from workers.celery_app import broker_label

        assert broker_label("redis://:s3cret@cache:6379/0") == "redis://cache:6379/0"
