# =============================================================================
# core/guard.py - Route Guard Decisions
# =============================================================================
# Decides, for a page path and the caller's session state, whether to let
# the request through or where to send it instead.
#
# This module is pure: no I/O, no framework imports. The Starlette adapter
# lives in app/middleware.py and feeds it the session, role and profile it
# looked up for the request.
#
# Route classes (longest matching prefix wins, "/" matches exactly):
#   public         /
#   auth_page      /login, /signup, /join
#   admin          /admin
#   family         /gallery/upload, /help/manage
#   authenticated  /dashboard, /gallery, /help, /vault, /faq, anything else
# =============================================================================

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping

from core.models.roles import UserRole
from lib.utils import build_app_url

LOGIN_PATH = "/login"
HOME_PATH = "/dashboard"
PROFILE_MISSING_ERROR = "profile_missing"


class RouteClass(str, Enum):
    PUBLIC = "public"
    AUTH_PAGE = "auth_page"
    ADMIN = "admin"
    FAMILY = "family"
    AUTHENTICATED = "authenticated"


ROUTE_TABLE: Mapping[str, RouteClass] = MappingProxyType({
    "/": RouteClass.PUBLIC,
    "/login": RouteClass.AUTH_PAGE,
    "/signup": RouteClass.AUTH_PAGE,
    "/join": RouteClass.AUTH_PAGE,
    "/admin": RouteClass.ADMIN,
    "/gallery/upload": RouteClass.FAMILY,
    "/help/manage": RouteClass.FAMILY,
    "/dashboard": RouteClass.AUTHENTICATED,
    "/gallery": RouteClass.AUTHENTICATED,
    "/help": RouteClass.AUTHENTICATED,
    "/vault": RouteClass.AUTHENTICATED,
    "/faq": RouteClass.AUTHENTICATED,
})

# Prefixes only match whole segments, so try longer ones first
_PREFIXES_LONGEST_FIRST = sorted(ROUTE_TABLE, key=len, reverse=True)


@dataclass(frozen=True)
class GuardDecision:
    """
    Result of evaluating a route.

    Either `allow` is True, or `redirect_to` holds the path (with query)
    to send the browser to. Allowed decisions for signed-in users carry
    the identity so the adapter can annotate the request.
    """
    allow: bool
    redirect_to: str | None = None
    route_class: RouteClass = RouteClass.AUTHENTICATED
    user_id: str | None = None
    role: UserRole | None = None
    display_name: str | None = None

    @classmethod
    def allowed(cls, route_class: RouteClass, **identity: Any) -> "GuardDecision":
        return cls(allow=True, route_class=route_class, **identity)

    @classmethod
    def redirect(cls, location: str, route_class: RouteClass) -> "GuardDecision":
        return cls(allow=False, redirect_to=location, route_class=route_class)


def _normalize_path(path: str) -> str:
    path = "/" + path.strip().lstrip("/")
    if len(path) > 1:
        path = path.rstrip("/")
    return path


def classify(path: str) -> RouteClass:
    """
    Map a page path to its route class.

    Example:
        classify("/gallery/upload/new")  # RouteClass.FAMILY
        classify("/gallery/2024")        # RouteClass.AUTHENTICATED
        classify("/joinus")              # RouteClass.AUTHENTICATED
    """
    path = _normalize_path(path)
    for prefix in _PREFIXES_LONGEST_FIRST:
        if prefix == "/":
            if path == "/":
                return ROUTE_TABLE[prefix]
            continue
        if path == prefix or path.startswith(prefix + "/"):
            return ROUTE_TABLE[prefix]
    return RouteClass.AUTHENTICATED


def evaluate_route(
    path: str,
    session_present: bool,
    role: Any = None,
    profile_present: bool = False,
    user_id: str | None = None,
    display_name: str | None = None,
) -> GuardDecision:
    """
    Decide what happens to a page request.

    Rules are applied in order; the first that matches wins:
    1. public pages are always allowed
    2. no session, protected page: go to login, remembering the page
    3. no session, auth page: allowed
    4. signed in with a profile, auth page: go to the dashboard
    5. signed in without a profile: auth pages allowed (to show the
       error), anything else goes to login with error=profile_missing
    6. admin pages need role admin
    7. family pages need role admin or family
    8. allowed

    Args:
        path: Request path (no query string)
        session_present: Whether a verified session accompanies the request
        role: The profile's role (parsed; unknown values count as no role)
        profile_present: Whether the identity has a profile
        user_id, display_name: Carried onto allowed decisions

    Returns:
        GuardDecision
    """
    route_class = classify(path)

    if route_class is RouteClass.PUBLIC:
        return GuardDecision.allowed(route_class)

    if not session_present:
        if route_class is RouteClass.AUTH_PAGE:
            return GuardDecision.allowed(route_class)
        return GuardDecision.redirect(
            build_app_url("", LOGIN_PATH, redirectTo=_normalize_path(path)),
            route_class,
        )

    if not profile_present:
        if route_class is RouteClass.AUTH_PAGE:
            return GuardDecision.allowed(route_class, user_id=user_id)
        return GuardDecision.redirect(
            build_app_url("", LOGIN_PATH, error=PROFILE_MISSING_ERROR),
            route_class,
        )

    if route_class is RouteClass.AUTH_PAGE:
        return GuardDecision.redirect(HOME_PATH, route_class)

    parsed_role = UserRole.parse(role)

    if route_class is RouteClass.ADMIN and parsed_role is not UserRole.ADMIN:
        return GuardDecision.redirect(HOME_PATH, route_class)

    if route_class is RouteClass.FAMILY and parsed_role not in (UserRole.ADMIN, UserRole.FAMILY):
        return GuardDecision.redirect(HOME_PATH, route_class)

    return GuardDecision.allowed(
        route_class,
        user_id=user_id,
        role=parsed_role,
        display_name=display_name,
    )
