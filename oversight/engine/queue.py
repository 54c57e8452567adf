"""Celery application and configuration.

Workers are started with: celery -A oversight.engine.queue worker --loglevel=info

The broker and result backend both point to Redis, the same instance that
holds the scan job records.
"""

from celery import Celery
from celery.signals import worker_process_init

from oversight.core.config import get_settings

settings = get_settings()

celery_app = Celery(
    "oversight",
    broker=settings.redis_url,
    backend=settings.redis_url,
)

# Headroom past the stage timeouts for store writes and the alert.
SCAN_SOFT_TIME_LIMIT = settings.scan_time_budget_seconds + 180
SCAN_TIME_LIMIT = SCAN_SOFT_TIME_LIMIT + 60

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    # Acknowledge tasks after they complete, not when received.
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    # Must exceed SCAN_TIME_LIMIT, or Redis re-delivers a scan that is
    # still running.
    broker_transport_options={"visibility_timeout": max(3600, SCAN_TIME_LIMIT + 600)},
    # configure_structlog owns the root logger in worker processes.
    worker_hijack_root_logger=False,
)

celery_app.autodiscover_tasks(["oversight.engine"])


@worker_process_init.connect
def _configure_worker_process(**kwargs):
    from oversight.core.logging import configure_structlog
    from oversight.core.sentry import init_sentry

    configure_structlog(debug=settings.debug)
    init_sentry(settings.sentry_dsn, environment=settings.environment)
