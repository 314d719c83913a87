# =============================================================================
# app/routers/invite_tokens.py - Invite Token Endpoints
# =============================================================================
# Issue single-recipient invite links and look them up from the join page.
# =============================================================================

import logging

from fastapi import APIRouter, Depends, status

from app.auth.dependencies import get_current_profile, get_current_user, require_permission
from app.auth.models import AuthUser
from app.dependencies import rate_limited
from app.exceptions import NotFoundError, PermissionDeniedError, error_for_kind
from core.models.invite import InviteTokenCreate, InviteTokenIssued, InviteTokenPublic
from core.models.profile import Profile
from core.models.roles import Permission
from core.permissions import can_invite_role
from core.services.invite_token_service import InviteTokenService

logger = logging.getLogger(__name__)

router = APIRouter()

LOOKUP_RATE_SCOPE = "invite-token-lookup"


# =============================================================================
# Endpoints
# =============================================================================

@router.post(
    "",
    response_model=InviteTokenIssued,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permission(Permission.CAN_INVITE))],
)
async def create_invite_token(
    body: InviteTokenCreate,
    user: AuthUser = Depends(get_current_user),
    profile: Profile = Depends(get_current_profile),
) -> InviteTokenIssued:
    """
    Issue an invite link for one email address.

    With `send_email` the recipient also gets a magic sign-in link. If
    that email fails the token is still returned, with `email_sent` false
    and the error filled in.

    Raises:
        403: If the caller may not invite people with the requested role
    """
    if not can_invite_role(profile.role, body.role):
        raise PermissionDeniedError(
            f"You cannot invite people as {body.role.value}",
            suggestion="Choose a role you are allowed to grant",
        )

    issued = await InviteTokenService.issue(
        body.email,
        body.role,
        display_name=body.display_name,
        created_by_email=user.email,
        send_email=body.send_email,
    )
    if not issued.success:
        raise error_for_kind(issued.error_kind, issued.error)
    return issued


@router.get(
    "/{token}",
    response_model=InviteTokenPublic,
    dependencies=[Depends(rate_limited(LOOKUP_RATE_SCOPE))],
)
async def get_invite_token(token: str) -> InviteTokenPublic:
    """
    Look up an invite token for the join page.

    Raises:
        404: If the token is unknown, used or expired (indistinguishable)
    """
    data = await InviteTokenService.verify(token)
    if data is None:
        raise NotFoundError(
            "This invite link is invalid or has expired",
            code="INVITE_TOKEN_INVALID",
            suggestion="Ask whoever invited you for a new link",
        )
    return InviteTokenPublic(
        email=data.email,
        role=data.role,
        display_name=data.display_name,
        expires_at=data.expires_at,
    )
