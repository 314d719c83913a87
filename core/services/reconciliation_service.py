# =============================================================================
# core/services/reconciliation_service.py - Incomplete Signup Sweep
# =============================================================================
# Signup touches three things that cannot share a transaction: the invite
# code counter, the auth identity and the profile. When a flow stops
# halfway, an identity can exist without a profile. This sweep finishes
# or undoes those:
#
# - confirmed identity, no profile          -> create the profile (promote)
# - unconfirmed, no profile, older than the -> delete the identity and give
#   stale window                               the invite code use back
#                                              (discard)
# - everything else                          -> leave alone
#
# Run periodically by workers/tasks.py.
# =============================================================================

import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta

from app.config import settings
from app.exceptions import LogbookException
from core.models.auth import AuthIdentity
from core.services.invite_code_service import InviteCodeService
from core.services.profile_service import ProfileService
from lib.supabase_client import SupabaseClient
from lib.utils import parse_timestamp, utc_now

logger = logging.getLogger(__name__)


@dataclass
class SweepReport:
    """Counts from one sweep."""
    checked: int = 0
    promoted: int = 0
    discarded: int = 0
    failed: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


class ReconciliationService:
    """Promotes or discards identities left without a profile."""

    @staticmethod
    def is_stale(identity: AuthIdentity, now: datetime, stale_after: timedelta) -> bool:
        created = parse_timestamp(identity.created_at)
        return created is not None and now - created >= stale_after

    @staticmethod
    async def _discard(identity: AuthIdentity) -> None:
        client = await SupabaseClient.get_client()
        await SupabaseClient.run(client.auth.admin.delete_user(identity.id), action="delete abandoned user")

        # Only a code the signup saga stamped was really consumed
        if identity.invite_code:
            released = await InviteCodeService.release(identity.invite_code)
            if not released.success:
                logger.warning(f"Could not release invite code for discarded {identity.id}: {released.error}")

    @staticmethod
    async def sweep(now: datetime | None = None, stale_after_hours: int | None = None) -> SweepReport:
        """
        Walk every auth identity once.

        Args:
            now: Reference time (defaults to current UTC)
            stale_after_hours: Override RECONCILE_STALE_AFTER_HOURS

        Returns:
            SweepReport with checked/promoted/discarded/failed counts
        """
        now = now or utc_now()
        stale_after = timedelta(hours=stale_after_hours or settings.RECONCILE_STALE_AFTER_HOURS)
        report = SweepReport()

        try:
            # Deleting while paging would shift later users onto pages
            # already read, so take the whole listing first
            users = [user async for user in SupabaseClient.iter_users()]
        except LogbookException as e:
            logger.error(f"Reconciliation sweep aborted while listing users: {e}")
            report.failed += 1
            return report

        for user in users:
            identity = AuthIdentity.from_user(user)
            report.checked += 1

            try:
                if await ProfileService.get_profile(identity.id) is not None:
                    continue

                if identity.email_confirmed_at:
                    result = await ProfileService.ensure_profile(identity)
                    if result.success:
                        report.promoted += 1
                    else:
                        report.failed += 1
                    continue

                if ReconciliationService.is_stale(identity, now, stale_after):
                    await ReconciliationService._discard(identity)
                    logger.info(f"Discarded abandoned signup {identity.id}")
                    report.discarded += 1

            except LogbookException as e:
                logger.error(f"Reconciling {identity.id} failed: {e}")
                report.failed += 1

        logger.info(f"Reconciliation sweep: {report.to_dict()}")
        return report

