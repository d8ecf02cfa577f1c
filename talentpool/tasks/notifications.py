"""
Background Tasks for Notification Delivery

Celery task that drains the notification outbox:
- Loads the outbox row written by the invitation/sourcing managers
- Sends it through the configured email transport
- Marks it sent, or records the error and retries

The primary invitation/application row is never touched here.
"""

import logging
import time
from typing import Optional

from prometheus_client import Histogram, Counter

from talentpool.celery import celery_app
from talentpool.database import utcnow
from talentpool.middleware.metrics import NOTIFICATIONS_SENT, record_notification_failure
from talentpool.models.notification import OUTBOX_FAILED, OUTBOX_SENT
from talentpool.services.email import send_email

logger = logging.getLogger(__name__)

# ==================== Prometheus Metrics ====================

TASK_DURATION = Histogram(
    "celery_task_duration_seconds",
    "Time spent executing Celery tasks",
    ["task_name"]
)

TASK_FAILURES = Counter(
    "celery_task_failures_total",
    "Number of Celery task failures",
    ["task_name"]
)


# ==================== Helper Functions ====================

def get_outbox_entry(outbox_id: str):
    """Get outbox row by ID from database."""
    from talentpool.database import get_db_session
    from talentpool.models import NotificationOutbox

    session = get_db_session()
    try:
        return session.query(NotificationOutbox).filter(NotificationOutbox.id == outbox_id).first()
    finally:
        session.close()


def mark_sent(outbox_id: str) -> None:
    from talentpool.database import get_db_session
    from talentpool.models import NotificationOutbox

    session = get_db_session()
    try:
        entry = session.query(NotificationOutbox).filter(NotificationOutbox.id == outbox_id).first()
        if entry:
            entry.status = OUTBOX_SENT
            entry.attempts = (entry.attempts or 0) + 1
            entry.sent_at = utcnow()
            entry.last_error = None
            session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def record_delivery_failure(outbox_id: str, error: str, final: bool) -> None:
    """Count the attempt; a final failure moves the row out of "pending"."""
    from talentpool.database import get_db_session
    from talentpool.models import NotificationOutbox

    session = get_db_session()
    try:
        entry = session.query(NotificationOutbox).filter(NotificationOutbox.id == outbox_id).first()
        if entry:
            entry.attempts = (entry.attempts or 0) + 1
            entry.last_error = error[:2000]
            if final:
                entry.status = OUTBOX_FAILED
            else:
                # The retry is a fresh hand-off
                entry.dispatched_at = utcnow()
            session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


# ==================== Celery Tasks ====================

@celery_app.task(bind=True, max_retries=3, default_retry_delay=60)
def deliver_notification(self, outbox_id: str) -> Optional[bool]:
    """
    Deliver one outbox row.

    Args:
        outbox_id: NotificationOutbox UUID

    Returns:
        True when delivered (or already delivered), False when the row is
        missing or retries are exhausted
    """
    start_time = time.time()

    try:
        entry = get_outbox_entry(outbox_id)
        if not entry:
            logger.warning(f"Notification not found: {outbox_id}")
            return False

        if entry.status == OUTBOX_SENT:
            return True

        try:
            send_email(entry.recipient, entry.subject, entry.body)
        except Exception as exc:
            final = self.request.retries >= self.max_retries
            record_delivery_failure(outbox_id, str(exc), final)
            record_notification_failure(entry.kind)
            TASK_FAILURES.labels(task_name="deliver_notification").inc()
            if final:
                logger.error(f"Giving up on notification {outbox_id} after {self.request.retries} retries: {exc}")
                return False
            logger.warning(f"Notification {outbox_id} failed, retrying: {exc}")
            raise self.retry(exc=exc, countdown=60)

        mark_sent(outbox_id)
        NOTIFICATIONS_SENT.labels(kind=entry.kind).inc()
        logger.info(f"Delivered {entry.kind} notification {outbox_id} to {entry.recipient}")
        return True

    finally:
        duration = time.time() - start_time
        TASK_DURATION.labels(task_name="deliver_notification").observe(duration)
