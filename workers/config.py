# =============================================================================
# workers/config.py - Celery Worker Configuration
# =============================================================================
# Settings specific to Celery workers, including the beat schedule for the
# reconciliation sweep.
# =============================================================================

from app.config import settings


class CeleryConfig:
    """
    Celery configuration settings.

    These are applied to the Celery app via app.config_from_object().
    """

    # -------------------------------------------------------------------------
    # Broker Settings (Redis)
    # -------------------------------------------------------------------------

    broker_url = settings.REDIS_URL
    result_backend = settings.REDIS_URL

    # -------------------------------------------------------------------------
    # Task Settings
    # -------------------------------------------------------------------------

    # Acknowledge tasks after they complete (not before)
    task_acks_late = True

    worker_prefetch_multiplier = 1

    # Task results expire after 1 hour
    result_expires = 3600

    # A sweep walks every auth user; allow 10 minutes
    task_time_limit = 600
    task_soft_time_limit = 540

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    task_serializer = "json"
    result_serializer = "json"
    accept_content = ["json"]

    # -------------------------------------------------------------------------
    # Periodic Tasks
    # -------------------------------------------------------------------------

    beat_schedule = {
        "reconcile-incomplete-signups": {
            "task": "workers.tasks.reconcile_incomplete_signups",
            "schedule": settings.RECONCILE_INTERVAL_MINUTES * 60.0,
            # A late sweep is replaced by the next one
            "options": {"expires": settings.RECONCILE_INTERVAL_MINUTES * 60},
        },
    }

    # -------------------------------------------------------------------------
    # Timezone
    # -------------------------------------------------------------------------

    timezone = "UTC"
    enable_utc = True
