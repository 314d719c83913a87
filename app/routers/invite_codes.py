# =============================================================================
# app/routers/invite_codes.py - Invite Code Endpoints
# =============================================================================
# Public validation (rate limited) and admin management of invite codes.
# =============================================================================

import logging

from fastapi import APIRouter, Depends, status

from app.auth.dependencies import require_role
from app.dependencies import rate_limited
from app.exceptions import error_for_kind
from core.models.invite import (
    InviteCodeCreate,
    InviteCodeList,
    InviteCodeToggle,
    InviteCodeValidateRequest,
    InviteValidation,
)
from core.models.profile import Profile
from core.models.results import OperationResult
from core.models.roles import UserRole
from core.services.invite_code_service import InviteCodeService

logger = logging.getLogger(__name__)

router = APIRouter()

VALIDATE_RATE_SCOPE = "invite-validate"


# =============================================================================
# Endpoints
# =============================================================================

@router.post(
    "/validate",
    response_model=InviteValidation,
    dependencies=[Depends(rate_limited(VALIDATE_RATE_SCOPE))],
)
async def validate_invite_code(body: InviteCodeValidateRequest) -> InviteValidation:
    """
    Check an invite code before showing the rest of the signup form.

    Always 200; `valid` says whether the code can be used. Calls are
    rate limited per client (429 with Retry-After).
    """
    return await InviteCodeService.validate(body.code)


@router.get("", response_model=InviteCodeList)
async def list_invite_codes(
    admin: Profile = Depends(require_role(UserRole.ADMIN)),
) -> InviteCodeList:
    """All invite codes, newest first. Admin only."""
    result = await InviteCodeService.list()
    if not result.success:
        raise error_for_kind(result.error_kind, result.error)
    return result


@router.post("", response_model=OperationResult, status_code=status.HTTP_201_CREATED)
async def create_invite_code(
    body: InviteCodeCreate,
    admin: Profile = Depends(require_role(UserRole.ADMIN)),
) -> OperationResult:
    """
    Create an invite code. Admin only.

    Raises:
        409: If the code already exists
    """
    result = await InviteCodeService.create(
        body.code,
        body.role,
        max_uses=body.max_uses,
        expires_at=body.expires_at,
        created_by=admin.id,
    )
    if not result.success:
        raise error_for_kind(result.error_kind, result.error)
    return result


@router.patch("/{code_id}", response_model=OperationResult)
async def toggle_invite_code(
    code_id: str,
    body: InviteCodeToggle,
    admin: Profile = Depends(require_role(UserRole.ADMIN)),
) -> OperationResult:
    """
    Activate or deactivate an invite code. Admin only.

    Raises:
        404: If no code has this id
    """
    result = await InviteCodeService.toggle(code_id, body.is_active)
    if not result.success:
        raise error_for_kind(result.error_kind, result.error)
    return result
