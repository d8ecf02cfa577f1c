"""
Celery Application Configuration

Configures Celery for outbound notification delivery with:
- Redis as message broker and result backend
- Task autodiscovery from talentpool.tasks module
- Late acknowledgement so a crashed worker does not lose an email

Usage:
    # Start worker:
    celery -A talentpool.celery worker --loglevel=info

    # Enqueue a delivery:
    from talentpool.tasks.notifications import deliver_notification
    deliver_notification.delay("outbox-row-id")
"""

from celery import Celery
from talentpool.config import get_settings

settings = get_settings()

celery_app = Celery(
    "talentpool",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
)

celery_app.conf.update(
    # Task settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    # Worker settings
    worker_prefetch_multiplier=1,
    worker_concurrency=4,

    # Result settings
    result_expires=3600,
    task_track_started=True,

    # Retry settings
    task_acks_late=True,  # Acknowledge after completion
    task_reject_on_worker_lost=True,

    # Rate limiting
    worker_disable_rate_limits=False,

    task_routes={
        "talentpool.tasks.notifications.deliver_notification": {"queue": "notifications"},
    },

    task_default_queue="default",
)

celery_app.autodiscover_tasks(["talentpool.tasks"])
