# =============================================================================
# tests/ - Test Suite
# =============================================================================
# This package contains all tests for the Little Logbook API:
# - fakes.py: In-memory Supabase and Redis used by every test
# - test_permissions.py / test_guard.py: Pure authorization rules
# - test_invite_codes.py / test_invite_tokens.py: Invite stores
# - test_profiles.py / test_auth_service.py: Profile and signup flows
# - test_reconciliation.py: Incomplete signup sweep and its Celery task
# - test_access_tokens.py: JWT verification and forged tokens
# - test_rate_limit.py: Invite attempt limiter and client address keying
# - test_routes.py: HTTP endpoints, callbacks and the route guard
#
# Run tests with: pytest
# =============================================================================
