# =============================================================================
# workers/ - Celery Background Task Workers
# =============================================================================
# This package contains the Celery configuration and task definitions for
# background maintenance of accounts.
#
# Components:
# - celery_app.py: Celery application configuration
# - tasks.py: Task definitions (reconciliation sweep)
# - config.py: Worker-specific settings and the beat schedule
#
# Usage:
#   # Start worker with beat
#   celery -A workers.celery_app worker --beat --loglevel=info
#
#   # Or use the script
#   python scripts/start_worker.py
#
#   # Run a sweep now
#   from workers.tasks import reconcile_incomplete_signups
#   reconcile_incomplete_signups.delay()
# =============================================================================

from .celery_app import celery_app
from . import tasks

__all__ = [
    "celery_app",
    "tasks",
]
