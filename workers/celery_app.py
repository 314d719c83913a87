# =============================================================================
# workers/celery_app.py - Celery Application
# =============================================================================
# The worker runs one periodic job, the reconciliation sweep. Broker and
# result backend are the same Redis the API's rate limiter uses, read from
# app.config.settings like everything else.
#
# Usage:
#   # Worker with the beat scheduler embedded
#   celery -A workers.celery_app worker --beat --loglevel=info
#
#   # Check status
#   celery -A workers.celery_app status
# =============================================================================

import logging
from urllib.parse import urlsplit

from celery import Celery
from celery.signals import task_failure, task_postrun, task_prerun

from app.config import settings

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def broker_label(url: str) -> str:
    """
    Broker URL without credentials, for logs.

    Example:
        broker_label("redis://:secret@cache:6379/0")  # "redis://cache:6379/0"
    """
    parts = urlsplit(url)
    host = parts.hostname or ""
    if parts.port:
        host = f"{host}:{parts.port}"
    return f"{parts.scheme}://{host}{parts.path}"


def create_celery_app(broker_url: str | None = None) -> Celery:
    """
    Build the worker's Celery app.

    Args:
        broker_url: Overrides settings.REDIS_URL (broker and backend)
    """
    app = Celery("logbook_worker", include=["workers.tasks"])
    app.config_from_object("workers.config:CeleryConfig")

    if broker_url:
        app.conf.update(broker_url=broker_url, result_backend=broker_url)

    logger.info(f"Celery app using broker {broker_label(app.conf.broker_url or settings.REDIS_URL)}")
    return app


celery_app = create_celery_app()


# =============================================================================
# Task Lifecycle Logging
# =============================================================================

@task_prerun.connect
def task_prerun_handler(sender=None, task_id=None, task=None, **extra):
    logger.info(f"Task started: {task.name} [{task_id}]")


@task_postrun.connect
def task_postrun_handler(sender=None, task_id=None, task=None, retval=None, state=None, **extra):
    # Sweep counts are small dicts; worth having in the worker log
    summary = f" {retval}" if isinstance(retval, dict) else ""
    logger.info(f"Task finished: {task.name} [{task_id}] {state}{summary}")


@task_failure.connect
def task_failure_handler(sender=None, task_id=None, exception=None, **extra):
    logger.error(f"Task failed: {sender.name} [{task_id}] - {exception}")


if __name__ == "__main__":
    celery_app.start()
