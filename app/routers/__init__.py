# =============================================================================
# app/routers/ - API Route Definitions
# =============================================================================
# This package contains FastAPI routers organized by feature:
# - health.py: Health check endpoints
# - invite_codes.py: Invite code validation and admin management
# - invite_tokens.py: Single-recipient invite links
# - users.py: Admin user management
# - callbacks.py: Supabase Auth email-link callbacks
# - setup.py: First-admin bootstrap endpoints
# - pages.py: Guarded page context (catch-all, mounted last)
#
# Each router is mounted in main.py with a URL prefix.
# =============================================================================

from . import health
from . import invite_codes
from . import invite_tokens
from . import users
from . import callbacks
from . import setup
from . import pages

__all__ = [
    "health",
    "invite_codes",
    "invite_tokens",
    "users",
    "callbacks",
    "setup",
    "pages",
]
