# =============================================================================
# tests/conftest.py - Pytest Configuration
# =============================================================================
# This module provides pytest fixtures and configuration for all tests.
#
# Key features:
# - Sets up mock environment variables before any imports
# - Swaps the Supabase client and the Redis limiter for in-memory fakes
# - Provides a TestClient and helpers for signed-in requests
# =============================================================================

import os

# =============================================================================
# Set up test environment BEFORE any imports
# =============================================================================
# This must happen before importing app.config which loads settings immediately

os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_ANON_KEY", "test-anon-key")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "test-service-key")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret-for-hs256-signing-0123456789")
os.environ.setdefault("ADMIN_SETUP_KEY", "test-setup-key")
os.environ.setdefault("APP_URL", "http://localhost:3000")
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("DEBUG", "true")

from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

import app.dependencies as app_dependencies
from lib.rate_limit import InviteAttemptLimiter
from lib.supabase_client import SupabaseClient
from tests.fakes import FakeRedis, FakeSupabase, issue_access_token


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def fake_supabase(monkeypatch):
    """
    In-memory Supabase used as both the service client and the per-request
    auth client.
    """
    fake = FakeSupabase()
    monkeypatch.setattr(SupabaseClient, "_instance", fake)
    monkeypatch.setattr(SupabaseClient, "create_auth_client", AsyncMock(return_value=fake))
    return fake


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def limiter(monkeypatch, fake_redis):
    """Rate limiter over FakeRedis with a small budget (3 per window)."""
    instance = InviteAttemptLimiter(fake_redis, max_attempts=3, window_seconds=600)
    monkeypatch.setattr(app_dependencies, "_limiter", instance)
    return instance


@pytest.fixture
def client(fake_supabase, limiter):
    """TestClient wired to the fakes. Redirects are not followed."""
    from app.main import app

    with TestClient(app, follow_redirects=False) as test_client:
        yield test_client


@pytest.fixture
def make_member(fake_supabase):
    """
    Factory: create an auth user with a profile of the given role and
    return (user, auth headers).
    """

    def factory(role: str = "family", email: str | None = None, display_name: str | None = None):
        email = email or f"{role}-{len(fake_supabase.auth.users)}@example.com"
        user = fake_supabase.auth.add_user(email)
        fake_supabase.seed(
            "profiles",
            id=user.id,
            role=role,
            display_name=display_name or email.split("@")[0],
        )
        token = issue_access_token(user.id, email)
        return user, {"Authorization": f"Bearer {token}"}

    return factory


@pytest.fixture
def sample_invite_code(fake_supabase):
    """A single-use family code, like the one in the signup walkthrough."""
    return fake_supabase.seed("invite_codes", code="FAMILY2024", role="family", max_uses=1)
