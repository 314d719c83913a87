# =============================================================================
# lib/ - Standalone Utility Modules
# =============================================================================
# This package contains reusable utilities:
# - supabase_client.py: Async Supabase wrapper (timeouts, error mapping)
# - rate_limit.py: Redis fixed-window limiter for invite attempts
# - utils.py: Shared utilities (time parsing, emails, URLs)
#
# These modules are self-contained and can be tested in isolation.
# =============================================================================

from lib.supabase_client import SupabaseClient, SupabaseClientError
from lib.rate_limit import InviteAttemptLimiter, RateLimitStatus
from lib.utils import build_app_url, parse_timestamp, utc_now

__all__ = [
    # Supabase
    "SupabaseClient",
    "SupabaseClientError",
    # Rate limiting
    "InviteAttemptLimiter",
    "RateLimitStatus",
    # Utils
    "build_app_url",
    "parse_timestamp",
    "utc_now",
]
