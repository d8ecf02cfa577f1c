"""
Candidate Notifications - Outbox-backed, fire-and-forget email

The managers call ``send_job_invitation`` / ``send_sourced_to_pipeline_notification``
inside their own transaction; these only compose the message and add a
row to the notification outbox. Once the primary transaction commits,
``dispatch_notifications`` hands the row ids to the Celery worker.

Nothing here can fail the primary operation after commit:
    - a broker outage leaves the row "pending" for the periodic flush
    - an accepted hand-off is stamped on the row (dispatched_at) so the
      flush does not start a second delivery chain
    - a delivery error is retried by the worker and finally marked "failed"
"""

import logging
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from talentpool.config import get_settings
from talentpool.database import utcnow
from talentpool.middleware.metrics import record_notification_failure
from talentpool.models import Application, Job, JobInvitation, NotificationOutbox, User
from talentpool.models.notification import (
    KIND_JOB_INVITATION,
    KIND_SOURCED_TO_PIPELINE,
    OUTBOX_PENDING,
)

logger = logging.getLogger(__name__)


def invitation_url(token: str) -> str:
    settings = get_settings()
    return f"{settings.frontend_base_url.rstrip('/')}/invitations/{token}"


async def send_job_invitation(
    db: AsyncSession,
    invitation: JobInvitation,
    job: Job,
    candidate: User,
    invited_by_name: Optional[str] = None,
    subject: Optional[str] = None,
    content: Optional[str] = None,
) -> NotificationOutbox:
    """
    Queue the invitation email for a candidate.

    Template subject/content win over the defaults; the custom message and
    the link carrying the invitation token are always appended.
    """
    company_name = get_settings().site_name
    subject = subject or f"You're invited to apply for {job.title} at {company_name}"
    body = content or (
        f"Hi {candidate.name or 'there'},\n\n"
        f"You've been invited to apply for the {job.title} position at {company_name}."
    )

    parts = [body]
    if invitation.message:
        parts.append(f"Message from {invited_by_name or 'the hiring team'}:\n{invitation.message}")
    parts.append(f"View the invitation: {invitation_url(invitation.invitation_token)}")
    parts.append(f"This invitation expires on {invitation.expires_at:%B %d, %Y}.")

    entry = NotificationOutbox(
        kind=KIND_JOB_INVITATION,
        recipient=candidate.email,
        candidate_id=candidate.id,
        related_id=invitation.id,
        subject=subject,
        body="\n\n".join(parts),
        payload={
            "jobId": job.id,
            "jobTitle": job.title,
            "jobSlug": job.slug,
            "invitedBy": invited_by_name,
            "expiresAt": invitation.expires_at.isoformat(),
        },
    )
    db.add(entry)
    await db.flush()
    return entry


async def send_sourced_to_pipeline_notification(
    db: AsyncSession,
    application: Application,
    job: Job,
    candidate: User,
    sourced_by_name: Optional[str] = None,
) -> NotificationOutbox:
    company_name = get_settings().site_name
    entry = NotificationOutbox(
        kind=KIND_SOURCED_TO_PIPELINE,
        recipient=candidate.email,
        candidate_id=candidate.id,
        related_id=application.id,
        subject=f"You're being considered for {job.title} at {company_name}",
        body=(
            f"Hi {candidate.name or 'there'},\n\n"
            f"{sourced_by_name or 'A recruiter'} at {company_name} has added you to the "
            f"candidate pipeline for the {job.title} position. "
            f"We'll be in touch about next steps."
        ),
        payload={
            "jobId": job.id,
            "jobTitle": job.title,
            "applicationStatus": application.status,
            "sourcedBy": sourced_by_name,
        },
    )
    db.add(entry)
    await db.flush()
    return entry


def dispatch_notifications(outbox_ids: Iterable[str]) -> List[str]:
    """
    Enqueue delivery for committed outbox rows.

    Returns:
        Ids of the rows the broker accepted
    """
    # Import here to avoid circular import
    from talentpool.tasks.notifications import deliver_notification

    dispatched = []
    for outbox_id in outbox_ids:
        try:
            deliver_notification.delay(outbox_id)
            dispatched.append(outbox_id)
        except Exception as e:
            record_notification_failure("dispatch")
            logger.warning(f"Could not enqueue notification {outbox_id}, left pending: {e}")
    return dispatched


async def mark_dispatched(db: AsyncSession, outbox_ids: Iterable[str], now: Optional[datetime] = None) -> None:
    """Record the broker hand-off so the periodic flush leaves these rows alone."""
    outbox_ids = list(outbox_ids)
    if not outbox_ids:
        return
    try:
        await db.execute(
            update(NotificationOutbox)
            .where(
                NotificationOutbox.id.in_(outbox_ids),
                NotificationOutbox.status == OUTBOX_PENDING,
            )
            .values(dispatched_at=now or utcnow())
            .execution_options(synchronize_session="evaluate")
        )
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.warning(f"Could not record hand-off for notifications {outbox_ids}: {e}")


async def list_pending(db: AsyncSession, now: datetime) -> List[NotificationOutbox]:
    """
    Pending rows that no worker currently owns.

    Either the broker never accepted them (no hand-off, no attempt yet), or
    the last hand-off is older than ``outbox_redispatch_after_minutes``. Rows
    waiting out a retry countdown are skipped.
    """
    stale_after = timedelta(minutes=get_settings().outbox_redispatch_after_minutes)
    never_dispatched = and_(
        NotificationOutbox.dispatched_at.is_(None),
        NotificationOutbox.attempts == 0,
        NotificationOutbox.created_at <= now - timedelta(minutes=1),
    )
    stale = func.coalesce(NotificationOutbox.dispatched_at, NotificationOutbox.created_at) <= now - stale_after
    result = await db.execute(
        select(NotificationOutbox)
        .where(
            NotificationOutbox.status == OUTBOX_PENDING,
            or_(never_dispatched, stale),
        )
        .order_by(NotificationOutbox.created_at.asc())
    )
    return list(result.scalars().all())


async def flush_pending_notifications(db: AsyncSession, now: Optional[datetime] = None) -> int:
    """Re-dispatch pending rows the request path could not hand to the broker."""
    now = now or utcnow()
    pending = await list_pending(db, now)
    if not pending:
        return 0
    dispatched = dispatch_notifications([entry.id for entry in pending])
    await mark_dispatched(db, dispatched, now=now)
    logger.info(f"Re-dispatched {len(dispatched)}/{len(pending)} pending notifications")
    return len(dispatched)


async def list_for_candidate(db: AsyncSession, candidate_id: str, limit: int = 20) -> List[NotificationOutbox]:
    result = await db.execute(
        select(NotificationOutbox)
        .where(NotificationOutbox.candidate_id == candidate_id)
        .order_by(NotificationOutbox.created_at.desc())
        .limit(limit)
    )
    return list(result.scalars().all())
