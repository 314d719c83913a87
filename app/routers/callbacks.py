# =============================================================================
# app/routers/callbacks.py - Auth Callback Endpoints
# =============================================================================
# Landing points for links emailed by Supabase Auth (signup confirmation,
# magic links). They exchange the one-time code for a session, make sure
# the identity has a profile, set the session cookies and send the browser
# on to the app.
#
# Failures never show an error page: the browser is redirected to
# /login?error=<marker> so the login page can explain what happened.
# =============================================================================

import logging

from fastapi import APIRouter, Request
from fastapi.responses import RedirectResponse

from app.auth.cookies import CODE_VERIFIER_COOKIE, set_session_cookies
from app.config import settings
from app.exceptions import LogbookException
from core.models.auth import AuthIdentity, SessionTokens
from core.services.auth_service import AuthService
from core.services.invite_token_service import InviteTokenService
from core.services.profile_service import ProfileService
from lib.utils import build_app_url, normalize_email

logger = logging.getLogger(__name__)

router = APIRouter()

LOGIN_PATH = "/login"
HOME_PATH = "/dashboard"


def _redirect(path: str, **params: str | None) -> RedirectResponse:
    # 303 so a POSTed callback turns into a GET of the target page
    return RedirectResponse(build_app_url(settings.app_base_url, path, **params), status_code=303)


async def _exchange(request: Request, code: str):
    """
    Exchange the code; returns (session, identity) or a redirect response.
    """
    try:
        session, user = await AuthService.exchange_code(code, request.cookies.get(CODE_VERIFIER_COOKIE))
    except LogbookException as e:
        logger.warning(f"Auth callback code exchange failed: {e.message}")
        return None, _redirect(LOGIN_PATH, error="auth_error")

    if user is None or not getattr(user, "email", None):
        logger.warning("Auth callback returned no usable user")
        return None, _redirect(LOGIN_PATH, error="user_error")

    return (session, AuthIdentity.from_user(user)), None


def _signed_in(session) -> RedirectResponse:
    response = _redirect(HOME_PATH)
    set_session_cookies(response, SessionTokens.from_session(session))
    response.delete_cookie(CODE_VERIFIER_COOKIE, path="/")
    return response


# =============================================================================
# Endpoints
# =============================================================================

@router.api_route("/callback", methods=["GET", "POST"])
async def auth_callback(request: Request, code: str | None = None) -> RedirectResponse:
    """
    Confirmation-link callback for invite-code signups.

    Redirects:
        /dashboard on success
        /login when there is no code
        /login?error=auth_error|user_error|profile_error on failure
    """
    if not code:
        return _redirect(LOGIN_PATH)

    exchanged, failure = await _exchange(request, code)
    if failure is not None:
        return failure
    session, identity = exchanged

    result = await ProfileService.ensure_profile(identity)
    if not result.success:
        logger.error(f"Profile creation failed in callback for {identity.id}: {result.error}")
        return _redirect(LOGIN_PATH, error="profile_error")

    logger.info(f"User {identity.id} signed in via callback")
    return _signed_in(session)


@router.api_route("/simple-callback", methods=["GET", "POST"])
async def simple_callback(
    request: Request,
    code: str | None = None,
    invite_token: str | None = None,
) -> RedirectResponse:
    """
    Magic-link callback, optionally carrying an invite token.

    A new profile takes its role and display name from the invite token
    when the token is valid and was issued to this user's email. The token
    is then used up. Existing profiles are left as they are and the token
    is not touched.

    Redirects:
        /dashboard on success
        /login when there is no code
        /login?error=auth_error|user_error|user_creation_failed on failure
    """
    if not code:
        return _redirect(LOGIN_PATH)

    exchanged, failure = await _exchange(request, code)
    if failure is not None:
        return failure
    session, identity = exchanged

    role_hint = None
    name_hint = None
    existing = await ProfileService.get_profile(identity.id)

    if existing is None and invite_token:
        invite = await InviteTokenService.verify(invite_token)
        if invite is None:
            logger.warning(f"Ignoring invalid invite token for {identity.id}")
        elif normalize_email(invite.email) != normalize_email(identity.email or ""):
            logger.warning(f"Ignoring invite token issued to another email for {identity.id}")
        elif await InviteTokenService.consume(invite_token):
            role_hint = invite.role
            name_hint = invite.display_name
        else:
            logger.warning(f"Invite token for {identity.id} was used concurrently")

    result = await ProfileService.ensure_profile(identity, role_hint=role_hint, display_name_hint=name_hint)
    if not result.success:
        logger.error(f"Profile creation failed in simple callback for {identity.id}: {result.error}")
        return _redirect(LOGIN_PATH, error="user_creation_failed")

    logger.info(f"User {identity.id} signed in via magic link")
    return _signed_in(session)
