# =============================================================================
# lib/utils.py - Shared Utilities
# =============================================================================
# Common utilities used across the application.
# =============================================================================

from datetime import datetime, timezone
from typing import Any
from urllib.parse import urlencode


# =============================================================================
# Time Utilities
# =============================================================================

def utc_now() -> datetime:
    """Timezone-aware current time in UTC."""
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> datetime | None:
    """
    Parse a timestamp as returned by PostgREST.

    Accepts datetime objects and ISO-8601 strings (with "Z" or an offset).
    Naive values are assumed to be UTC, which is how Postgres `timestamptz`
    columns come back through the REST API.

    Returns:
        Aware datetime, or None for empty input
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# =============================================================================
# Email / Display Name
# =============================================================================

def email_local_part(email: str | None) -> str:
    """Return the part of an email address before the '@' (empty for None)."""
    if not email:
        return ""
    return email.split("@", 1)[0]


def normalize_email(email: str) -> str:
    return email.strip().lower()


# =============================================================================
# URLs
# =============================================================================

def build_app_url(base_url: str, path: str, **params: str | None) -> str:
    """
    Join the public app URL with a path and query parameters.

    Parameters that are None are dropped. "/" stays unescaped so paths
    passed as values (e.g. redirectTo=/dashboard) remain readable.

    Example:
        build_app_url("https://logbook.app", "/login", error="auth_error")
        # "https://logbook.app/login?error=auth_error"
    """
    url = f"{base_url.rstrip('/')}/{path.lstrip('/')}"
    query = {key: value for key, value in params.items() if value is not None}
    if query:
        url += "?" + urlencode(query, safe="/")
    return url
