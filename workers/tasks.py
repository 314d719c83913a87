# =============================================================================
# workers/tasks.py - Celery Task Definitions
# =============================================================================
# Background tasks.
#
# Tasks:
# - reconcile_incomplete_signups: finish or undo signups that stopped
#   between creating the identity and creating the profile
# - healthcheck: verify a worker is consuming
# =============================================================================

import asyncio
import logging
from typing import Any

from celery import shared_task

from core.services.reconciliation_service import ReconciliationService
from lib.supabase_client import SupabaseClient

logger = logging.getLogger(__name__)


async def _run_sweep(stale_after_hours: int | None) -> dict[str, int]:
    try:
        report = await ReconciliationService.sweep(stale_after_hours=stale_after_hours)
        return report.to_dict()
    finally:
        # The client is bound to this event loop; the next run gets a new one
        SupabaseClient.reset()


@shared_task(bind=True, name="workers.tasks.reconcile_incomplete_signups")
def reconcile_incomplete_signups(self, stale_after_hours: int | None = None) -> dict[str, Any]:
    """
    Promote confirmed identities that have no profile, and discard stale
    unconfirmed ones (releasing their invite code use).

    Args:
        stale_after_hours: Override RECONCILE_STALE_AFTER_HOURS

    Returns:
        {"checked": n, "promoted": n, "discarded": n, "failed": n}
    """
    counts = asyncio.run(_run_sweep(stale_after_hours))
    if counts["failed"]:
        logger.warning(f"Reconciliation finished with {counts['failed']} failures")
    return counts


@shared_task(bind=True, name="workers.healthcheck")
def healthcheck(self):
    """
    Simple healthcheck task to verify worker is running.

    Usage:
        from workers.tasks import healthcheck
        result = healthcheck.delay()
        print(result.get(timeout=5))  # Should return "OK"
    """
    return "OK"
