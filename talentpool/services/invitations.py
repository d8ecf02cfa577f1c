"""
Invitation Lifecycle Manager

Owns creation, token resolution and status transitions of job invitations.

State machine:
    sent    --view-->    viewed
    sent    --decline--> declined            [terminal]
    viewed  --decline--> declined            [terminal]
    sent|viewed --accept / external apply--> applied  [terminal]
    sent|viewed --observed past expires_at--> expired [terminal]

Expiry is evaluated lazily whenever an invitation is read through this
module; the periodic sweep (``expire_stale_invitations``) only keeps
listings fresh and is not needed for correctness.

Transitions out of an open state are conditional UPDATEs
(``WHERE status IN (...)``), so two concurrent requests cannot both win
the same edge and the ledger never gets a duplicate entry for it. The
"one open invitation per (job, candidate)" rule is backed by a partial
unique index; a concurrent duplicate surfaces as ``InvalidState``.
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from sqlalchemy import select, update, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from talentpool.config import get_settings
from talentpool.database import utcnow
from talentpool.middleware.metrics import record_invitation_transition
from talentpool.models import Application, Job, JobInvitation, User
from talentpool.models.application import SOURCE_INVITATION
from talentpool.models.interaction import (
    DECLINED_INVITATION,
    SENT_INVITATION,
    VIEWED_INVITATION,
)
from talentpool.models.invitation import (
    ACTIONED_STATUSES,
    OPEN_STATUSES,
    STATUS_APPLIED,
    STATUS_DECLINED,
    STATUS_EXPIRED,
    STATUS_SENT,
    STATUS_VIEWED,
)
from talentpool.services.audit import log_audit_event
from talentpool.services.errors import AlreadyActioned, Expired, InvalidState, NotFound
from talentpool.services.guards import find_application, get_active_job, get_candidate
from talentpool.services.ledger import record_interaction
from talentpool.services.notifications import (
    dispatch_notifications,
    mark_dispatched,
    send_job_invitation,
)

logger = logging.getLogger(__name__)

DUPLICATE_INVITATION_MESSAGE = "An active invitation already exists for this candidate and job"
ALREADY_APPLIED_MESSAGE = "Candidate already has an application for this job"


def generate_invitation_token() -> str:
    """256-bit random token, hex encoded (64 chars)."""
    return secrets.token_hex(32)


@dataclass
class InvitationView:
    """Outcome of resolving an invitation token."""

    valid: bool
    reason: Optional[str] = None
    message: Optional[str] = None
    invitation: Optional[JobInvitation] = None
    job: Optional[Job] = None
    candidate: Optional[User] = None
    inviter: Optional[User] = None


async def get_invitation_by_token(db: AsyncSession, token: str) -> Optional[JobInvitation]:
    if not token:
        return None
    result = await db.execute(
        select(JobInvitation).where(JobInvitation.invitation_token == token)
    )
    return result.scalar_one_or_none()


async def find_open_invitation(db: AsyncSession, job_id: str, candidate_id: str) -> Optional[JobInvitation]:
    result = await db.execute(
        select(JobInvitation).where(
            JobInvitation.job_id == job_id,
            JobInvitation.candidate_id == candidate_id,
            JobInvitation.status.in_(OPEN_STATUSES),
        )
    )
    return result.scalars().first()


async def _transition(db: AsyncSession, invitation: JobInvitation, to_status: str, **values) -> bool:
    """
    Move an open invitation to ``to_status``.

    Returns:
        False when another request already moved it out of the open states
    """
    from_statuses = (STATUS_SENT,) if to_status == STATUS_VIEWED else OPEN_STATUSES
    result = await db.execute(
        update(JobInvitation)
        .where(
            JobInvitation.id == invitation.id,
            JobInvitation.status.in_(from_statuses),
        )
        .values(status=to_status, **values)
        .execution_options(synchronize_session="evaluate")
    )
    if result.rowcount != 1:
        await db.refresh(invitation)
        return False
    record_invitation_transition(to_status)
    return True


async def _expire(db: AsyncSession, invitation: JobInvitation) -> None:
    """Lazily record expiry observed on read, then commit."""
    if invitation.status in OPEN_STATUSES:
        if await _transition(db, invitation, STATUS_EXPIRED):
            logger.info(f"Invitation {invitation.id} expired (observed at read time)")
        await db.commit()


# ==================== Create ====================

async def create_invitation(
    db: AsyncSession,
    job_id: str,
    candidate_id: str,
    inviter_id: str,
    inviter_name: Optional[str] = None,
    message: Optional[str] = None,
    template_id: Optional[str] = None,
    subject: Optional[str] = None,
    content: Optional[str] = None,
    now: Optional[datetime] = None,
) -> JobInvitation:
    """
    Invite a talent pool candidate to apply to a job.

    Preconditions (checked before any write):
        - candidate exists and is not an admin
        - job exists and is Active
        - no application for (job, candidate)
        - no open (sent/viewed) invitation for (job, candidate); an open one
          already past its deadline is expired on the spot and does not block

    Side effects:
        - invitation row (token, expires_at = now + expiry days)
        - sent_invitation ledger entry
        - notification outbox row, dispatched after commit
        - audit event

    Raises:
        NotFound: candidate or job missing
        InvalidState: admin candidate, inactive job, existing application
            or existing open invitation
    """
    now = now or utcnow()
    settings = get_settings()

    candidate = await get_candidate(db, candidate_id, action="invite")
    job = await get_active_job(db, job_id, action="invite")

    if await find_application(db, job_id, candidate_id):
        raise InvalidState(ALREADY_APPLIED_MESSAGE, "already_applied")

    existing = await find_open_invitation(db, job_id, candidate_id)
    if existing:
        if not existing.is_expired(now):
            raise InvalidState(DUPLICATE_INVITATION_MESSAGE, "duplicate_invitation")
        await _expire(db, existing)

    token = generate_invitation_token()
    expires_at = now + timedelta(days=settings.invitation_expiry_days)

    invitation = JobInvitation(
        job_id=job.id,
        candidate_id=candidate.id,
        invited_by=inviter_id,
        invitation_token=token,
        message=message or None,
        status=STATUS_SENT,
        sent_at=now,
        expires_at=expires_at,
        extra={"templateId": template_id, "subject": subject, "content": content} if template_id else {},
    )
    db.add(invitation)
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        raise InvalidState(DUPLICATE_INVITATION_MESSAGE, "duplicate_invitation")

    await record_interaction(
        db,
        admin_id=inviter_id,
        candidate_id=candidate.id,
        job_id=job.id,
        interaction_type=SENT_INVITATION,
        notes=message or None,
        metadata={
            "invitationId": invitation.id,
            "expiresAt": expires_at.isoformat(),
            "templateId": template_id,
        },
        now=now,
    )

    outbox = await send_job_invitation(
        db,
        invitation,
        job,
        candidate,
        invited_by_name=inviter_name,
        subject=subject,
        content=content,
    )

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise InvalidState(DUPLICATE_INVITATION_MESSAGE, "duplicate_invitation")

    record_invitation_transition(STATUS_SENT)
    await mark_dispatched(db, dispatch_notifications([outbox.id]))

    log_audit_event(
        event_type="CREATE",
        category="TALENT_POOL",
        subcategory="INVITE",
        entity_type="job_invitation",
        entity_id=invitation.id,
        entity_name=f"Invitation to {job.title}",
        actor_id=inviter_id,
        actor_name=inviter_name,
        action="Send job invitation",
        description=f"Invited {candidate.display_name} to apply for {job.title}",
        metadata={
            "candidateId": candidate.id,
            "jobId": job.id,
            "expiresAt": expires_at.isoformat(),
            "hasCustomMessage": bool(message),
        },
    )

    logger.info(f"Invitation {invitation.id} sent to candidate {candidate.id} for job {job.id}")
    return invitation


# ==================== Resolve ====================

async def view_invitation(db: AsyncSession, token: str, now: Optional[datetime] = None) -> InvitationView:
    """
    Resolve an invitation token on behalf of the candidate.

    This is a command, not a query: the first successful resolution of a
    "sent" invitation marks it "viewed" and appends a viewed_invitation
    ledger entry. Every later resolution is read-only.

    Outcomes (in order):
        not_found     unknown token
        expired       past expires_at (status recorded if still open);
                      applied/declined stay sticky and are reported as such
        job_inactive  job closed since the invitation was sent
        applied/declined  already actioned
        valid         sent (now viewed) or viewed
    """
    now = now or utcnow()

    invitation = await get_invitation_by_token(db, token)
    if not invitation:
        return InvitationView(valid=False, reason="not_found", message="Invalid invitation token")

    job = await db.get(Job, invitation.job_id)

    def actioned() -> InvitationView:
        return InvitationView(
            valid=False,
            reason=invitation.status,
            message=f"This invitation has already been {invitation.status}",
            invitation=invitation,
            job=job,
        )

    def expired() -> InvitationView:
        return InvitationView(
            valid=False,
            reason="expired",
            message="This invitation has expired",
            invitation=invitation,
            job=job,
        )

    if invitation.is_expired(now) or invitation.status == STATUS_EXPIRED:
        if invitation.status in ACTIONED_STATUSES:
            return actioned()
        await _expire(db, invitation)
        return expired()

    if job is None or not job.is_active:
        return InvitationView(
            valid=False,
            reason="job_inactive",
            message="This job is no longer active",
            invitation=invitation,
            job=job,
        )

    if invitation.status in ACTIONED_STATUSES:
        return actioned()

    if invitation.status == STATUS_SENT:
        if await _transition(db, invitation, STATUS_VIEWED, viewed_at=now):
            await record_interaction(
                db,
                admin_id=invitation.invited_by,
                candidate_id=invitation.candidate_id,
                job_id=invitation.job_id,
                interaction_type=VIEWED_INVITATION,
                metadata={"invitationId": invitation.id, "viewedAt": now.isoformat()},
                now=now,
            )
            await db.commit()
            logger.info(f"Invitation {invitation.id} viewed")
        elif invitation.status in ACTIONED_STATUSES:
            # Another request moved it on between the read and the update
            return actioned()
        elif invitation.status == STATUS_EXPIRED:
            return expired()

    candidate = await db.get(User, invitation.candidate_id)
    inviter = await db.get(User, invitation.invited_by)
    return InvitationView(
        valid=True,
        invitation=invitation,
        job=job,
        candidate=candidate,
        inviter=inviter,
    )


# ==================== Respond ====================

async def _get_respondable(db: AsyncSession, token: str, now: datetime) -> JobInvitation:
    invitation = await get_invitation_by_token(db, token)
    if not invitation:
        raise NotFound("Invalid invitation token")

    if invitation.status in ACTIONED_STATUSES:
        raise AlreadyActioned(
            f"This invitation has already been {invitation.status}", invitation.status
        )

    if invitation.status == STATUS_EXPIRED or invitation.is_expired(now):
        await _expire(db, invitation)
        raise Expired("This invitation has expired")

    return invitation


async def decline_invitation(db: AsyncSession, token: str, now: Optional[datetime] = None) -> JobInvitation:
    """
    Decline an open invitation.

    Raises:
        NotFound: unknown token
        AlreadyActioned: invitation already applied or declined
        Expired: invitation past its deadline
    """
    now = now or utcnow()
    invitation = await _get_respondable(db, token, now)

    if not await _transition(db, invitation, STATUS_DECLINED, responded_at=now):
        await db.rollback()
        raise AlreadyActioned(
            f"This invitation has already been {invitation.status}", invitation.status
        )

    await record_interaction(
        db,
        admin_id=invitation.invited_by,
        candidate_id=invitation.candidate_id,
        job_id=invitation.job_id,
        interaction_type=DECLINED_INVITATION,
        metadata={"invitationId": invitation.id, "declinedAt": now.isoformat()},
        now=now,
    )
    await db.commit()

    logger.info(f"Invitation {invitation.id} declined")
    return invitation


async def accept_invitation(db: AsyncSession, token: str, now: Optional[datetime] = None) -> Application:
    """
    Accept an open invitation by creating the candidate's application.

    The application is recorded with source_type="invitation" and the
    invitation becomes "applied".

    Raises:
        NotFound: unknown token
        AlreadyActioned: invitation already applied or declined
        Expired: invitation past its deadline
        InvalidState: job no longer active, or an application already exists
    """
    now = now or utcnow()
    invitation = await _get_respondable(db, token, now)

    job = await db.get(Job, invitation.job_id)
    if job is None or not job.is_active:
        raise InvalidState("This job is no longer active", "job_inactive")

    if await find_application(db, invitation.job_id, invitation.candidate_id):
        raise InvalidState(ALREADY_APPLIED_MESSAGE, "already_applied")

    application = Application(
        job_id=invitation.job_id,
        user_id=invitation.candidate_id,
        status="Applied",
        applied_at=now,
        source_type=SOURCE_INVITATION,
    )
    db.add(application)
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        raise InvalidState(ALREADY_APPLIED_MESSAGE, "already_applied")

    if not await _transition(db, invitation, STATUS_APPLIED, responded_at=now):
        await db.rollback()
        raise AlreadyActioned(
            f"This invitation has already been {invitation.status}", invitation.status
        )

    await db.commit()
    logger.info(f"Invitation {invitation.id} accepted, application {application.id} created")
    return application


async def mark_applied(
    db: AsyncSession,
    job_id: str,
    candidate_id: str,
    now: Optional[datetime] = None,
) -> bool:
    """
    Record that the candidate applied through some other path.

    Returns:
        True when an open invitation for the pair was moved to "applied"
    """
    now = now or utcnow()
    invitation = await find_open_invitation(db, job_id, candidate_id)
    if not invitation or invitation.is_expired(now):
        return False

    applied = await _transition(db, invitation, STATUS_APPLIED, responded_at=now)
    await db.commit()
    return applied


# ==================== Maintenance & reads ====================

async def expire_stale_invitations(db: AsyncSession, now: Optional[datetime] = None) -> int:
    """
    Expire every open invitation past its deadline.

    Only keeps listings fresh; read paths apply the same rule lazily.
    """
    now = now or utcnow()
    result = await db.execute(
        update(JobInvitation)
        .where(
            JobInvitation.status.in_(OPEN_STATUSES),
            JobInvitation.expires_at < now,
        )
        .values(status=STATUS_EXPIRED)
        .execution_options(synchronize_session=False)
    )
    await db.commit()

    expired = result.rowcount or 0
    for _ in range(expired):
        record_invitation_transition(STATUS_EXPIRED)
    if expired:
        logger.info(f"Expired {expired} stale invitations")
    return expired


async def list_for_candidate(db: AsyncSession, candidate_id: str) -> List[JobInvitation]:
    result = await db.execute(
        select(JobInvitation)
        .where(JobInvitation.candidate_id == candidate_id)
        .order_by(JobInvitation.sent_at.desc())
    )
    return list(result.scalars().all())


async def count_active_by_candidate(
    db: AsyncSession,
    candidate_ids: List[str],
    now: Optional[datetime] = None,
) -> Dict[str, int]:
    """Open, unexpired invitations per candidate."""
    if not candidate_ids:
        return {}
    now = now or utcnow()
    result = await db.execute(
        select(JobInvitation.candidate_id, func.count(JobInvitation.id))
        .where(
            JobInvitation.candidate_id.in_(candidate_ids),
            JobInvitation.status.in_(OPEN_STATUSES),
            JobInvitation.expires_at > now,
        )
        .group_by(JobInvitation.candidate_id)
    )
    return {row[0]: row[1] for row in result.all()}
