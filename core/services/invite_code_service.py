# =============================================================================
# core/services/invite_code_service.py - Invite Code Store
# =============================================================================
# Validates, creates, lists, toggles and consumes invite codes.
#
# Consumption is a compare-and-swap on current_uses: the update only lands
# if the counter still holds the value we read. A signup that loses the
# race re-reads and tries again, so two signups can never both take the
# last use of a code.
#
# Every public method returns a result model; failures never raise.
# =============================================================================

import logging
from datetime import datetime
from typing import Any

from pydantic import ValidationError

from app.exceptions import ErrorKind, LogbookException, NotFoundError
from core.models.invite import (
    CODE_PATTERN,
    InviteCode,
    InviteCodeList,
    InviteValidation,
    normalize_code,
)
from core.models.results import OperationResult
from core.models.roles import UserRole
from lib.supabase_client import SupabaseClient
from lib.utils import utc_now

logger = logging.getLogger(__name__)

TABLE = "invite_codes"

# Attempts at the compare-and-swap before giving up on a busy code
MAX_CONSUME_ATTEMPTS = 5

INVALID_CODE_MESSAGE = "Invalid invite code"
BUSY_CODE_MESSAGE = "This invite code is busy, please try again"


class InviteCodeService:
    """
    Service for invite code operations.

    Admin-only operations (create, list, toggle) do not check the caller's
    role; routes enforce that with require_role().
    """

    @staticmethod
    async def _fetch(code: str) -> InviteCode | None:
        row = await SupabaseClient.fetch_one(TABLE, code=code)
        if row is None:
            return None
        try:
            return InviteCode.model_validate(row)
        except ValidationError as e:
            # A row with an unknown role is unusable, not a server error
            logger.warning(f"Ignoring malformed invite code row {row.get('id')}: {e}")
            return None

    @staticmethod
    async def validate(code: str) -> InviteValidation:
        """
        Check whether a code may be used for a new signup. Read-only.

        Args:
            code: Code as typed by the user (normalized here)

        Returns:
            InviteValidation with the bound role when valid

        Example:
            result = await InviteCodeService.validate("family2024")
            # InviteValidation(valid=True, role=UserRole.FAMILY, error=None)
        """
        normalized = normalize_code(code or "")
        if not CODE_PATTERN.match(normalized):
            return InviteValidation.rejected(INVALID_CODE_MESSAGE)

        try:
            invite = await InviteCodeService._fetch(normalized)
        except LogbookException as e:
            logger.error(f"Invite code lookup failed: {e}")
            return InviteValidation.rejected("Could not check the invite code, please try again", e.kind)

        if invite is None:
            return InviteValidation.rejected(INVALID_CODE_MESSAGE)

        reason = invite.invalid_reason()
        if reason:
            return InviteValidation.rejected(reason)

        return InviteValidation(valid=True, role=invite.role)

    @staticmethod
    async def create(
        code: str,
        role: UserRole,
        max_uses: int | None = None,
        expires_at: datetime | None = None,
        created_by: str | None = None,
    ) -> OperationResult:
        """
        Create a new, active, unused invite code.

        Args:
            code: Human-chosen code (normalized to uppercase)
            role: Role granted on signup
            max_uses: Optional use limit (>= 1)
            expires_at: Optional expiry
            created_by: Admin's identity id

        Returns:
            OperationResult; a duplicate code fails with kind "conflict"
        """
        normalized = normalize_code(code)
        if not CODE_PATTERN.match(normalized):
            return OperationResult.fail(
                "Invite codes must be 3-64 letters, digits, '-' or '_'",
                ErrorKind.VALIDATION,
            )
        if max_uses is not None and max_uses < 1:
            return OperationResult.fail("max_uses must be at least 1", ErrorKind.VALIDATION)

        row: dict[str, Any] = {
            "code": normalized,
            "role": UserRole(role).value,
            "is_active": True,
            "max_uses": max_uses,
            "current_uses": 0,
            "expires_at": expires_at.isoformat() if expires_at else None,
            "created_by": created_by,
        }

        try:
            client = await SupabaseClient.get_client()
            await SupabaseClient.execute(client.table(TABLE).insert(row), action="create invite code")
        except LogbookException as e:
            if e.kind is ErrorKind.CONFLICT:
                return OperationResult.fail("Invite code already exists", ErrorKind.CONFLICT)
            logger.error(f"Failed to create invite code: {e}")
            return OperationResult.from_exception(e)

        logger.info(f"Created invite code {normalized} for role {row['role']}")
        return OperationResult.ok()

    @staticmethod
    async def list() -> InviteCodeList:
        """All invite codes, newest first."""
        try:
            client = await SupabaseClient.get_client()
            response = await SupabaseClient.execute(
                client.table(TABLE).select("*").order("created_at", desc=True),
                action="list invite codes",
            )
        except LogbookException as e:
            logger.error(f"Failed to list invite codes: {e}")
            return InviteCodeList.from_exception(e)

        codes = []
        for row in response.data or []:
            try:
                codes.append(InviteCode.model_validate(row))
            except ValidationError as e:
                logger.warning(f"Skipping malformed invite code row {row.get('id')}: {e}")
        return InviteCodeList.ok(codes=codes)

    @staticmethod
    async def toggle(code_id: str, active: bool) -> OperationResult:
        """
        Activate or deactivate a code.

        Returns:
            OperationResult; an unknown id fails with kind "not_found"
        """
        try:
            client = await SupabaseClient.get_client()
            response = await SupabaseClient.execute(
                client.table(TABLE)
                .update({"is_active": active, "updated_at": utc_now().isoformat()})
                .eq("id", code_id),
                action="update invite code",
            )
            if not response.data:
                raise NotFoundError(f"Invite code not found: {code_id}", code="INVITE_CODE_NOT_FOUND")
        except LogbookException as e:
            if e.kind is not ErrorKind.NOT_FOUND:
                logger.error(f"Failed to toggle invite code {code_id}: {e}")
            return OperationResult.from_exception(e)

        logger.info(f"Invite code {code_id} {'activated' if active else 'deactivated'}")
        return OperationResult.ok()

    @staticmethod
    async def consume(code: str) -> InviteValidation:
        """
        Atomically take one use of a code.

        Reads the code, checks it is valid, then increments current_uses
        only if nobody else changed it in between. On a lost race the code
        is re-read (it may now be exhausted) and the swap retried.

        Returns:
            InviteValidation: valid with the role when a use was taken,
            otherwise the reason it could not be
        """
        normalized = normalize_code(code or "")
        if not CODE_PATTERN.match(normalized):
            return InviteValidation.rejected(INVALID_CODE_MESSAGE)

        try:
            client = await SupabaseClient.get_client()
            for attempt in range(MAX_CONSUME_ATTEMPTS):
                invite = await InviteCodeService._fetch(normalized)
                if invite is None:
                    return InviteValidation.rejected(INVALID_CODE_MESSAGE)

                reason = invite.invalid_reason()
                if reason:
                    return InviteValidation.rejected(reason)

                response = await SupabaseClient.execute(
                    client.table(TABLE)
                    .update({
                        "current_uses": invite.current_uses + 1,
                        "updated_at": utc_now().isoformat(),
                    })
                    .eq("id", invite.id)
                    .eq("current_uses", invite.current_uses),
                    action="consume invite code",
                )
                if response.data:
                    logger.info(f"Consumed invite code {normalized} ({invite.current_uses + 1} uses)")
                    return InviteValidation(valid=True, role=invite.role)

                logger.debug(f"Lost race consuming {normalized}, attempt {attempt + 1}")

        except LogbookException as e:
            logger.error(f"Failed to consume invite code {normalized}: {e}")
            return InviteValidation.rejected("Could not use the invite code, please try again", e.kind)

        logger.warning(f"Gave up consuming busy invite code {normalized}")
        return InviteValidation.rejected(BUSY_CODE_MESSAGE)

    @staticmethod
    async def release(code: str) -> OperationResult:
        """
        Give back one use of a code (never below zero).

        Undoes consume() when the identity could not be created, or when an
        abandoned signup is discarded.
        """
        normalized = normalize_code(code or "")
        try:
            client = await SupabaseClient.get_client()
            for _ in range(MAX_CONSUME_ATTEMPTS):
                invite = await InviteCodeService._fetch(normalized)
                if invite is None:
                    raise NotFoundError(f"Invite code not found: {normalized}", code="INVITE_CODE_NOT_FOUND")
                if invite.current_uses <= 0:
                    return OperationResult.ok()

                response = await SupabaseClient.execute(
                    client.table(TABLE)
                    .update({
                        "current_uses": invite.current_uses - 1,
                        "updated_at": utc_now().isoformat(),
                    })
                    .eq("id", invite.id)
                    .eq("current_uses", invite.current_uses),
                    action="release invite code",
                )
                if response.data:
                    logger.info(f"Released one use of invite code {normalized}")
                    return OperationResult.ok()

        except LogbookException as e:
            logger.error(f"Failed to release invite code {normalized}: {e}")
            return OperationResult.from_exception(e)

        return OperationResult.fail(BUSY_CODE_MESSAGE, ErrorKind.CONFLICT)
