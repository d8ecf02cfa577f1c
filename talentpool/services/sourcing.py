"""
Sourcing Manager

Places a talent pool candidate straight into a job pipeline, skipping the
invitation step. The created application is marked source_type="sourced"
and treated as applied at the moment of sourcing, so downstream pipeline
views see it like any other application.

Duplicate sourcing of the same (job, candidate) pair is rejected by the
pre-insert check and, under concurrency, by the applications unique
constraint; either way the loser gets InvalidState and writes no ledger
entry.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from talentpool.database import utcnow
from talentpool.middleware.metrics import CANDIDATES_SOURCED
from talentpool.models import Application
from talentpool.models.application import DEFAULT_SOURCED_STATUS, PIPELINE_STATUSES, SOURCE_SOURCED
from talentpool.models.interaction import SOURCED_TO_JOB
from talentpool.services.audit import log_audit_event
from talentpool.services.errors import InvalidState
from talentpool.services.guards import find_application, get_active_job, get_candidate
from talentpool.services.ledger import record_interaction
from talentpool.services.notifications import (
    dispatch_notifications,
    mark_dispatched,
    send_sourced_to_pipeline_notification,
)

logger = logging.getLogger(__name__)

ALREADY_SOURCED_MESSAGE = "Candidate already has an application for this job"


async def source_candidate(
    db: AsyncSession,
    job_id: str,
    candidate_id: str,
    actor_id: str,
    actor_name: Optional[str] = None,
    notes: Optional[str] = None,
    initial_status: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Application:
    """
    Source a candidate into a job pipeline.

    Args:
        db: Request session
        job_id: Target job (must be Active)
        candidate_id: Talent pool candidate (must not be an admin)
        actor_id: Recruiter doing the sourcing
        actor_name: Recruiter display name, used in the notification
        notes: Internal notes stored on the application and the ledger entry
        initial_status: Pipeline status to start in (defaults to "New")
        now: Timestamp override

    Returns:
        The created application

    Raises:
        NotFound: candidate or job missing
        InvalidState: unknown initial status, admin candidate, inactive job,
            or existing application
    """
    now = now or utcnow()

    if initial_status and initial_status not in PIPELINE_STATUSES:
        raise InvalidState(f"Invalid pipeline status: {initial_status}", "invalid_status")

    candidate = await get_candidate(db, candidate_id, action="source")
    job = await get_active_job(db, job_id, action="source")

    if await find_application(db, job_id, candidate_id):
        raise InvalidState(ALREADY_SOURCED_MESSAGE, "already_applied")

    application = Application(
        job_id=job.id,
        user_id=candidate.id,
        status=initial_status or DEFAULT_SOURCED_STATUS,
        source_type=SOURCE_SOURCED,
        sourced_by=actor_id,
        sourced_at=now,
        applied_at=now,
        internal_notes=notes or None,
    )
    db.add(application)
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        raise InvalidState(ALREADY_SOURCED_MESSAGE, "already_applied")

    await record_interaction(
        db,
        admin_id=actor_id,
        candidate_id=candidate.id,
        job_id=job.id,
        interaction_type=SOURCED_TO_JOB,
        notes=notes or None,
        metadata={
            "applicationId": application.id,
            "applicationStatus": application.status,
            "sourcedAt": now.isoformat(),
        },
        now=now,
    )

    outbox = await send_sourced_to_pipeline_notification(
        db, application, job, candidate, sourced_by_name=actor_name
    )

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise InvalidState(ALREADY_SOURCED_MESSAGE, "already_applied")

    CANDIDATES_SOURCED.inc()
    await mark_dispatched(db, dispatch_notifications([outbox.id]))

    log_audit_event(
        event_type="CREATE",
        category="TALENT_POOL",
        subcategory="SOURCE",
        entity_type="application",
        entity_id=application.id,
        entity_name=f"Sourced application for {job.title}",
        actor_id=actor_id,
        actor_name=actor_name,
        action="Source candidate to job",
        description=f"Added {candidate.display_name} to {job.title} pipeline as sourced candidate",
        metadata={
            "candidateId": candidate.id,
            "jobId": job.id,
            "applicationStatus": application.status,
        },
    )

    logger.info(f"Candidate {candidate.id} sourced to job {job.id} as {application.status}")
    return application
