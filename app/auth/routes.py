# =============================================================================
# app/auth/routes.py - Authentication Routes
# =============================================================================
# API endpoints for signing in, signing up with an invite code, signing
# out and reading/updating the current user's profile.
#
# Sign in, sign up and refresh set the session cookies used by the route
# guard; sign out clears them.
# =============================================================================

import logging
from typing import Any

from fastapi import APIRouter, Depends, Request, Response

from app.auth.cookies import REFRESH_TOKEN_COOKIE, clear_session_cookies, set_session_cookies
from app.auth.dependencies import get_current_profile, get_current_user, get_current_user_optional
from app.auth.models import AuthUser, MeResponse
from app.dependencies import client_ip, get_limiter, rate_limited
from app.exceptions import error_for_kind
from core.models.auth import AuthResult, RefreshRequest, SignInRequest, SignUpRequest
from core.models.profile import Profile, ProfileResult, ProfileUpdate
from core.permissions import describe_permissions, role_display_name
from core.services.auth_service import AuthService
from core.services.profile_service import ProfileService

logger = logging.getLogger(__name__)

router = APIRouter()

SIGNUP_RATE_SCOPE = "signup"


def _raise_if_failed(result) -> None:
    if not result.success:
        raise error_for_kind(result.error_kind, result.error or "Request failed")


# =============================================================================
# Session Endpoints
# =============================================================================

@router.post("/signin", response_model=AuthResult)
async def sign_in(body: SignInRequest, response: Response) -> AuthResult:
    """
    Sign in with email and password.

    Returns:
        AuthResult with session tokens and profile; also sets cookies

    Raises:
        401: If the credentials are rejected
    """
    result = await AuthService.sign_in(body.email, body.password)
    _raise_if_failed(result)
    set_session_cookies(response, result.session)
    return result


@router.post(
    "/signup",
    response_model=AuthResult,
    dependencies=[Depends(rate_limited(SIGNUP_RATE_SCOPE))],
)
async def sign_up(body: SignUpRequest, request: Request, response: Response) -> AuthResult:
    """
    Create an account with an invite code.

    When email confirmation is enabled the account is not usable until the
    emailed link is followed; `confirmation_required` is then True.

    Raises:
        400: Invalid, expired, inactive or used-up invite code
        429: Too many attempts from this client
        502/504: The invite store could not be reached in time
    """
    result = await AuthService.sign_up_with_invite(
        body.email, body.password, body.display_name, body.invite_code
    )
    _raise_if_failed(result)

    await get_limiter().reset(SIGNUP_RATE_SCOPE, client_ip(request))
    if result.session:
        set_session_cookies(response, result.session)
    return result


@router.post("/signout")
async def sign_out(
    response: Response,
    user: AuthUser | None = Depends(get_current_user_optional),
) -> dict[str, Any]:
    """Revoke the session (if any) and clear the session cookies."""
    await AuthService.sign_out(user.token if user else None)
    clear_session_cookies(response)
    return {"success": True}


@router.post("/refresh", response_model=AuthResult)
async def refresh(
    request: Request,
    response: Response,
    body: RefreshRequest | None = None,
) -> AuthResult:
    """
    Trade a refresh token (body or cookie) for a new session.

    Raises:
        401: If the refresh token is missing or rejected
    """
    token = (body.refresh_token if body else None) or request.cookies.get(REFRESH_TOKEN_COOKIE)
    result = await AuthService.refresh_session(token)
    _raise_if_failed(result)
    set_session_cookies(response, result.session)
    return result


# =============================================================================
# Current User
# =============================================================================

@router.get("/me", response_model=MeResponse)
async def get_me(
    user: AuthUser = Depends(get_current_user),
    profile: Profile = Depends(get_current_profile),
) -> MeResponse:
    """
    Get the current user's profile.

    Raises:
        401: If not authenticated
        404: If the identity has no profile yet
    """
    return MeResponse(
        id=user.id,
        email=user.email,
        profile=profile,
        role_display_name=role_display_name(profile.role),
    )


@router.patch("/me", response_model=ProfileResult)
async def update_me(
    body: ProfileUpdate,
    profile: Profile = Depends(get_current_profile),
) -> ProfileResult:
    """Change your own display name and/or avatar."""
    result = ProfileResult.ok(profile=profile)
    if body.display_name is not None:
        result = await ProfileService.update_display_name(profile.id, body.display_name)
        _raise_if_failed(result)
    if "avatar_url" in body.model_fields_set:
        result = await ProfileService.update_avatar(profile.id, body.avatar_url)
        _raise_if_failed(result)
    return result


@router.get("/me/permissions")
async def get_my_permissions(profile: Profile = Depends(get_current_profile)) -> dict[str, Any]:
    """What the current user's role allows, for hiding UI controls."""
    return describe_permissions(profile.role)
