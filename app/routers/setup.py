# =============================================================================
# app/routers/setup.py - Admin Bootstrap Endpoints
# =============================================================================
# Promote an existing account to admin, gated by ADMIN_SETUP_KEY. Used once
# to create the first administrator; later admins are invited.
#
# Responses keep the {success, message} / {error} shape that the setup
# pages expect rather than the usual error envelope.
# =============================================================================

import hmac
import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from app.config import settings
from app.exceptions import ErrorKind
from core.services.user_service import UserService

logger = logging.getLogger(__name__)

router = APIRouter()


# =============================================================================
# Request/Response Models
# =============================================================================

class AdminSetupRequest(BaseModel):
    """
    Example:
        {"email": "me@example.com", "setupKey": "..."}
    """
    model_config = ConfigDict(populate_by_name=True)

    email: str = Field(..., min_length=3, max_length=320)
    setup_key: str = Field(..., alias="setupKey")


SIGNUP_FIRST_INSTRUCTIONS = [
    "1. Go to /signup (or /login) and create your account",
    "2. Confirm your email address if asked",
    "3. Then come back here to make yourself admin",
]


def _setup_key_matches(candidate: str) -> bool:
    expected = settings.ADMIN_SETUP_KEY
    if not expected:
        return False
    return hmac.compare_digest(candidate.encode("utf-8"), expected.encode("utf-8"))


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


# =============================================================================
# Endpoints
# =============================================================================

@router.post("/admin/setup")
async def admin_setup(body: AdminSetupRequest):
    """
    Make the account with this email an administrator.

    Returns:
        200 {success, message}
        403 {error} when the setup key is wrong or not configured
        404 {error} when nobody signed up with the email
        500 {error} when the promotion fails
    """
    if not _setup_key_matches(body.setup_key):
        logger.warning("Admin setup attempted with an invalid setup key")
        return _error(403, "Invalid setup key")

    result = await UserService.promote_by_email(body.email)
    if not result.success:
        if result.error_kind is ErrorKind.NOT_FOUND:
            return _error(404, "User not found. Make sure they have signed up first.")
        return _error(500, "Failed to update user role")

    return {"success": True, "message": f"Successfully made {body.email} an admin!"}


@router.post("/auth/simple-setup")
async def simple_setup(body: AdminSetupRequest):
    """
    Development-only variant of /api/admin/setup.

    Refused outside development and staging. A missing account is not an
    error here: the response explains how to sign up first.
    """
    if settings.is_production:
        return _error(403, "Not available in production")

    if not _setup_key_matches(body.setup_key):
        logger.warning("Simple setup attempted with an invalid setup key")
        return _error(403, "Invalid setup key")

    result = await UserService.promote_by_email(body.email)
    if not result.success:
        if result.error_kind is ErrorKind.NOT_FOUND:
            return {
                "success": False,
                "message": f"User {body.email} not found. Please sign up first, then run this setup.",
                "instructions": SIGNUP_FIRST_INSTRUCTIONS,
            }
        return _error(500, "Failed to update user role")

    return {"success": True, "message": f"Updated existing user {body.email} to admin"}
