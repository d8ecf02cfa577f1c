"""
Talent Pool Browsing - Search, profile detail, notes, recommendations, bulk actions

Read paths for the recruiter console plus the two writes that are not
owned by the invitation or sourcing managers (notes and profile views,
both plain ledger appends).

Performance:
    The listing computes per-candidate stats for a whole page with one
    GROUP BY per stat instead of one query per candidate.
"""

import logging
import time
from collections import defaultdict
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import String, cast, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from talentpool.config import get_settings
from talentpool.database import utcnow
from talentpool.middleware.metrics import record_match_score_latency
from talentpool.models import Application, Job, JobInvitation, NotificationOutbox, TalentPoolInteraction, User
from talentpool.models.interaction import ADDED_NOTE, VIEWED_PROFILE
from talentpool.models.invitation import OPEN_STATUSES, STATUS_APPLIED, STATUS_VIEWED
from talentpool.models.job import ACTIVE_STATUS
from talentpool.models.notification import KIND_JOB_INVITATION, OUTBOX_FAILED, OUTBOX_PENDING
from talentpool.models.user import ADMIN_ROLE
from talentpool.services import invitations as invitation_service
from talentpool.services import ledger
from talentpool.services import notifications as notification_service
from talentpool.services.analytics import rate
from talentpool.services.audit import log_audit_event
from talentpool.services.errors import InvalidState, NotFound, TalentPoolError, Unavailable
from talentpool.services.matcher import CandidateProfile, JobProfile, RankedJobs, rank_jobs
from talentpool.services.sourcing import source_candidate

logger = logging.getLogger(__name__)

RECENT_APPLICATIONS = 3
PREVIEW_CHARS = 200

# Bulk outcomes reported as "skipped" rather than "failed"
SKIP_REASONS = {"already_applied", "duplicate_invitation"}


# ==================== Serialization helpers ====================

def serialize_candidate(user: User) -> dict:
    return {
        "id": user.id,
        "name": user.display_name,
        "email": user.email,
        "bio": user.bio,
        "skills": list(user.skills or []),
        "years_experience": user.years_experience,
        "location": user.location,
        "current_title": user.current_title,
        "current_company": user.current_company,
        "linkedin_url": user.linkedin_url,
        "portfolio_url": user.portfolio_url,
        "available_for_opportunities": bool(user.available_for_opportunities),
        "last_profile_update": user.last_profile_update,
        "created_at": user.created_at,
    }


def serialize_job(job: Optional[Job]) -> Optional[dict]:
    if job is None:
        return None
    return {
        "id": job.id,
        "title": job.title,
        "status": job.status,
        "location": job.location,
        "department": job.department,
        "slug": job.slug,
    }


def serialize_person(user: Optional[User]) -> Optional[dict]:
    if user is None:
        return None
    return {"id": user.id, "name": user.display_name, "email": user.email}


def serialize_application(application: Application, job: Optional[Job], sourced_by: Optional[User] = None) -> dict:
    return {
        "id": application.id,
        "status": application.status,
        "applied_at": application.applied_at,
        "source_type": application.source_type,
        "sourced_at": application.sourced_at,
        "sourced_by": serialize_person(sourced_by),
        "job": serialize_job(job),
    }


def serialize_interaction(interaction: TalentPoolInteraction, admin: Optional[User], job: Optional[Job]) -> dict:
    return {
        "id": interaction.id,
        "interaction_type": interaction.interaction_type,
        "notes": interaction.notes,
        "metadata": interaction.extra or {},
        "created_at": interaction.created_at,
        "admin": serialize_person(admin),
        "job": serialize_job(job),
    }


def serialize_invitation(invitation: JobInvitation, job: Optional[Job], inviter: Optional[User], now: datetime) -> dict:
    status = invitation.status
    if invitation.is_open and invitation.is_expired(now):
        status = "expired"
    return {
        "id": invitation.id,
        "status": status,
        "message": invitation.message,
        "sent_at": invitation.sent_at,
        "viewed_at": invitation.viewed_at,
        "responded_at": invitation.responded_at,
        "expires_at": invitation.expires_at,
        "job": serialize_job(job),
        "invited_by": serialize_person(inviter),
    }


async def _load_by_id(db: AsyncSession, model, ids: Iterable[str]) -> Dict[str, object]:
    ids = {i for i in ids if i}
    if not ids:
        return {}
    result = await db.execute(select(model).where(model.id.in_(ids)))
    return {row.id: row for row in result.scalars().all()}


async def get_pool_candidate(db: AsyncSession, candidate_id: str) -> User:
    """Admins are not part of the talent pool and read as missing."""
    candidate = await db.get(User, candidate_id)
    if not candidate or candidate.role == ADMIN_ROLE:
        raise NotFound("Candidate not found")
    return candidate


# ==================== Search ====================

def _search_filters(
    search: Optional[str],
    skills: List[str],
    location: Optional[str],
    available_only: bool,
) -> list:
    filters = [User.role != ADMIN_ROLE]

    if search:
        pattern = f"%{search.strip()}%"
        filters.append(or_(
            User.name.ilike(pattern),
            User.email.ilike(pattern),
            User.bio.ilike(pattern),
            User.current_title.ilike(pattern),
            User.current_company.ilike(pattern),
        ))

    if skills:
        # Skills are a JSON array; match any quoted tag in its text form
        skills_text = func.lower(cast(User.skills, String))
        filters.append(or_(*[
            skills_text.contains(f'"{skill.lower()}"', autoescape=True)
            for skill in skills
        ]))

    if location:
        filters.append(User.location.ilike(f"%{location.strip()}%"))

    if available_only:
        filters.append(User.available_for_opportunities.is_(True))

    return filters


def parse_skills(raw: Optional[str]) -> List[str]:
    """Split the comma-separated skills query parameter."""
    if not raw:
        return []
    return [s.strip() for s in raw.split(",") if s.strip()]


def clamp_page(page: int, limit: Optional[int]) -> Tuple[int, int]:
    settings = get_settings()
    page = max(1, page or 1)
    limit = limit or settings.default_page_size
    limit = max(1, min(limit, settings.max_page_size))
    return page, limit


async def _recent_applications(db: AsyncSession, candidate_ids: List[str]) -> Dict[str, List[dict]]:
    result = await db.execute(
        select(Application, Job)
        .join(Job, Job.id == Application.job_id)
        .where(Application.user_id.in_(candidate_ids))
        .order_by(Application.applied_at.desc())
    )
    recent = defaultdict(list)
    for application, job in result.all():
        if len(recent[application.user_id]) < RECENT_APPLICATIONS:
            recent[application.user_id].append(serialize_application(application, job))
    return recent


async def search_candidates(
    db: AsyncSession,
    search: Optional[str] = None,
    skills: Optional[List[str]] = None,
    location: Optional[str] = None,
    available_only: bool = False,
    page: int = 1,
    limit: Optional[int] = None,
    now: Optional[datetime] = None,
) -> dict:
    """
    Browse the talent pool.

    Args:
        search: Case-insensitive text over name, email, bio, title and company
        skills: Candidates having any of these tags
        location: Substring of the candidate's location
        available_only: Only candidates open to opportunities
        page: 1-indexed page
        limit: Page size, capped at settings.max_page_size

    Returns:
        Dict with "candidates" (each with stats and recent applications)
        and "pagination"
    """
    now = now or utcnow()
    page, limit = clamp_page(page, limit)
    offset = (page - 1) * limit
    filters = _search_filters(search, skills or [], location, available_only)

    count_result = await db.execute(select(func.count(User.id)).where(*filters))
    total_count = count_result.scalar() or 0

    result = await db.execute(
        select(User)
        .where(*filters)
        .order_by(
            User.last_profile_update.desc().nulls_last(),
            User.created_at.desc(),
            User.id,
        )
        .offset(offset)
        .limit(limit)
    )
    candidates = list(result.scalars().all())
    candidate_ids = [c.id for c in candidates]

    application_counts = {}
    if candidate_ids:
        app_result = await db.execute(
            select(Application.user_id, func.count(Application.id))
            .where(Application.user_id.in_(candidate_ids))
            .group_by(Application.user_id)
        )
        application_counts = {row[0]: row[1] for row in app_result.all()}
    interaction_counts = await ledger.count_by_candidate(db, candidate_ids)
    invitation_counts = await invitation_service.count_active_by_candidate(db, candidate_ids, now)
    recent = await _recent_applications(db, candidate_ids) if candidate_ids else {}

    items = []
    for candidate in candidates:
        item = serialize_candidate(candidate)
        item["stats"] = {
            "total_applications": application_counts.get(candidate.id, 0),
            "interactions_count": interaction_counts.get(candidate.id, 0),
            "active_invitations_count": invitation_counts.get(candidate.id, 0),
        }
        item["recent_applications"] = recent.get(candidate.id, [])
        items.append(item)

    total_pages = (total_count + limit - 1) // limit
    return {
        "candidates": items,
        "pagination": {
            "page": page,
            "limit": limit,
            "total_count": total_count,
            "total_pages": total_pages,
            "has_more": offset + len(items) < total_count,
        },
    }


# ==================== Candidate detail ====================

async def get_candidate_detail(
    db: AsyncSession,
    candidate_id: str,
    viewer_id: str,
    viewer_name: Optional[str] = None,
    now: Optional[datetime] = None,
) -> dict:
    """
    Full profile with applications, ledger history and invitations.

    Viewing a profile is itself a touchpoint: a viewed_profile entry is
    appended on every call.
    """
    now = now or utcnow()
    candidate = await get_pool_candidate(db, candidate_id)

    app_result = await db.execute(
        select(Application)
        .where(Application.user_id == candidate.id)
        .order_by(Application.applied_at.desc())
    )
    applications = list(app_result.scalars().all())
    interactions = await ledger.list_for_candidate(db, candidate.id)
    invitations = await invitation_service.list_for_candidate(db, candidate.id)

    jobs = await _load_by_id(
        db, Job,
        [a.job_id for a in applications] + [i.job_id for i in interactions] + [i.job_id for i in invitations],
    )
    people = await _load_by_id(
        db, User,
        [a.sourced_by for a in applications] + [i.admin_id for i in interactions] + [i.invited_by for i in invitations],
    )

    # History is read before the append so this view does not list itself
    await ledger.record_interaction(
        db,
        admin_id=viewer_id,
        candidate_id=candidate.id,
        interaction_type=VIEWED_PROFILE,
        metadata={"viewedAt": now.isoformat(), "viewedBy": viewer_name},
        now=now,
    )
    await db.commit()

    log_audit_event(
        event_type="READ",
        category="TALENT_POOL",
        subcategory="VIEW_PROFILE",
        entity_type="user",
        entity_id=candidate.id,
        entity_name=candidate.display_name,
        actor_id=viewer_id,
        actor_name=viewer_name,
        action="View talent pool candidate profile",
        description=f"Viewed profile of {candidate.display_name}",
        metadata={"candidateId": candidate.id, "candidateEmail": candidate.email},
    )

    profile = serialize_candidate(candidate)
    profile["stats"] = {
        "total_applications": len(applications),
        "interactions_count": len(interactions),
        "invitations_count": len(invitations),
        "active_invitations_count": sum(
            1 for i in invitations if i.status in OPEN_STATUSES and not i.is_expired(now)
        ),
    }

    return {
        "candidate": profile,
        "applications": [
            serialize_application(a, jobs.get(a.job_id), people.get(a.sourced_by))
            for a in applications
        ],
        "interactions": [
            serialize_interaction(i, people.get(i.admin_id), jobs.get(i.job_id))
            for i in interactions
        ],
        "invitations": [
            serialize_invitation(i, jobs.get(i.job_id), people.get(i.invited_by), now)
            for i in invitations
        ],
    }


# ==================== Notes ====================

async def add_note(
    db: AsyncSession,
    candidate_id: str,
    admin_id: str,
    notes: Optional[str],
    job_id: Optional[str] = None,
    admin_name: Optional[str] = None,
    now: Optional[datetime] = None,
) -> TalentPoolInteraction:
    """
    Attach a recruiter note to a candidate, optionally about one job.

    Raises:
        InvalidState: blank notes
        NotFound: candidate or job missing
        Unavailable: the note could not be stored
    """
    now = now or utcnow()
    if not notes or not notes.strip():
        raise InvalidState("Notes are required", "notes_required")

    candidate = await get_pool_candidate(db, candidate_id)

    job = None
    if job_id:
        job = await db.get(Job, job_id)
        if not job:
            raise NotFound("Job not found")

    interaction = await ledger.record_interaction(
        db,
        admin_id=admin_id,
        candidate_id=candidate.id,
        job_id=job.id if job else None,
        interaction_type=ADDED_NOTE,
        notes=notes,
        metadata={"addedAt": now.isoformat(), "addedBy": admin_name},
        now=now,
    )
    if interaction is None:
        # A note exists only as its ledger entry
        raise Unavailable("Failed to save note")
    await db.commit()

    log_audit_event(
        event_type="CREATE",
        category="TALENT_POOL",
        subcategory="ADD_NOTE",
        entity_type="talent_pool_interaction",
        entity_id=interaction.id,
        entity_name=f"Note for {candidate.display_name}",
        actor_id=admin_id,
        actor_name=admin_name,
        action="Add note to candidate",
        description=f"Added note to {candidate.display_name}" + (f" regarding {job.title}" if job else ""),
        metadata={"candidateId": candidate.id, "jobId": job.id if job else None},
    )

    logger.info(f"Note added to candidate {candidate.id} by {admin_id}")
    return interaction


# ==================== Email history ====================

def _email_status(entry: NotificationOutbox, invitation: Optional[JobInvitation]) -> str:
    if entry.status in (OUTBOX_PENDING, OUTBOX_FAILED):
        return entry.status
    if invitation is not None:
        if invitation.status == STATUS_APPLIED:
            return "clicked"
        if invitation.viewed_at is not None or invitation.status == STATUS_VIEWED:
            return "opened"
    return "sent"


async def email_history(db: AsyncSession, candidate_id: str, limit: int = 20) -> dict:
    """
    Outbound email sent to a candidate, newest first.

    Delivery status comes from the notification outbox; for invitation
    emails, "opened"/"clicked" are inferred from the invitation having
    been viewed or applied to.
    """
    candidate = await get_pool_candidate(db, candidate_id)
    entries = await notification_service.list_for_candidate(db, candidate.id, limit=limit)

    invitations = await _load_by_id(
        db, JobInvitation,
        [e.related_id for e in entries if e.kind == KIND_JOB_INVITATION],
    )

    emails = []
    for entry in entries:
        invitation = invitations.get(entry.related_id) if entry.kind == KIND_JOB_INVITATION else None
        status = _email_status(entry, invitation)
        emails.append({
            "id": entry.id,
            "type": "invitation" if entry.kind == KIND_JOB_INVITATION else "sourced",
            "subject": entry.subject,
            "preview": entry.body[:PREVIEW_CHARS],
            "direction": "outbound",
            "to": entry.recipient,
            "status": status,
            "attempts": entry.attempts or 0,
            "created_at": entry.created_at,
            "sent_at": entry.sent_at,
            "opened_at": invitation.viewed_at if invitation is not None else None,
            "clicked_at": invitation.responded_at if status == "clicked" else None,
            "metadata": entry.payload or {},
        })

    delivered = [e for e in emails if e["status"] not in (OUTBOX_PENDING, OUTBOX_FAILED)]
    opened = [e for e in delivered if e["status"] in ("opened", "clicked")]
    clicked = [e for e in delivered if e["status"] == "clicked"]

    return {
        "emails": emails,
        "summary": {
            "total_sent": len(delivered),
            "total_received": 0,
            "pending": sum(1 for e in emails if e["status"] == OUTBOX_PENDING),
            "failed": sum(1 for e in emails if e["status"] == OUTBOX_FAILED),
            "opened_rate": rate(len(opened), len(delivered)),
            "clicked_rate": rate(len(clicked), len(delivered)),
        },
    }


# ==================== Recommendations ====================

async def recommend_jobs(db: AsyncSession, candidate_id: str) -> Tuple[User, RankedJobs]:
    """Rank every active job for a candidate with the configured weights."""
    candidate = await get_pool_candidate(db, candidate_id)

    job_result = await db.execute(
        select(Job).where(Job.status == ACTIVE_STATUS).order_by(Job.created_at.desc())
    )
    jobs = [JobProfile.from_job(job) for job in job_result.scalars().all()]

    applied_result = await db.execute(
        select(Application.job_id).where(Application.user_id == candidate.id)
    )
    applied_job_ids = {row[0] for row in applied_result.all()}

    start_time = time.perf_counter()
    ranked = rank_jobs(
        CandidateProfile.from_user(candidate),
        jobs,
        applied_job_ids=applied_job_ids,
        weights=get_settings().match_weights,
    )
    record_match_score_latency(time.perf_counter() - start_time)

    return candidate, ranked


# ==================== Bulk actions ====================

def _unique(ids: Iterable[str]) -> List[str]:
    seen = set()
    ordered = []
    for candidate_id in ids:
        if candidate_id and candidate_id not in seen:
            seen.add(candidate_id)
            ordered.append(candidate_id)
    return ordered


def _record_outcome(results: dict, candidate_id: str, error: TalentPoolError) -> None:
    bucket = "skipped" if error.reason in SKIP_REASONS else "failed"
    results[bucket].append({
        "candidate_id": candidate_id,
        "reason": error.reason,
        "error": error.message,
    })


async def bulk_invite(
    db: AsyncSession,
    candidate_ids: List[str],
    job_id: str,
    inviter_id: str,
    inviter_name: Optional[str] = None,
    message: Optional[str] = None,
    template_id: Optional[str] = None,
    subject: Optional[str] = None,
    content: Optional[str] = None,
) -> dict:
    """
    Invite many candidates to one job.

    Each candidate is handled independently with its own commit; a
    candidate who already applied or already holds an open invitation is
    skipped, any other rejection is reported as failed.
    """
    results = {"successful": [], "skipped": [], "failed": []}

    for candidate_id in _unique(candidate_ids):
        try:
            invitation = await invitation_service.create_invitation(
                db,
                job_id=job_id,
                candidate_id=candidate_id,
                inviter_id=inviter_id,
                inviter_name=inviter_name,
                message=message,
                template_id=template_id,
                subject=subject,
                content=content,
            )
        except TalentPoolError as e:
            _record_outcome(results, candidate_id, e)
            continue
        results["successful"].append({
            "candidate_id": candidate_id,
            "id": invitation.id,
            "message": "Invitation sent successfully",
        })

    logger.info(
        f"Bulk invite to job {job_id}: {len(results['successful'])} sent, "
        f"{len(results['skipped'])} skipped, {len(results['failed'])} failed"
    )
    return results


async def bulk_source(
    db: AsyncSession,
    candidate_ids: List[str],
    job_id: str,
    actor_id: str,
    actor_name: Optional[str] = None,
    notes: Optional[str] = None,
    initial_status: Optional[str] = None,
) -> dict:
    """Source many candidates into one job pipeline, one commit each."""
    results = {"successful": [], "skipped": [], "failed": []}

    for candidate_id in _unique(candidate_ids):
        try:
            application = await source_candidate(
                db,
                job_id=job_id,
                candidate_id=candidate_id,
                actor_id=actor_id,
                actor_name=actor_name,
                notes=notes,
                initial_status=initial_status,
            )
        except TalentPoolError as e:
            _record_outcome(results, candidate_id, e)
            continue
        results["successful"].append({
            "candidate_id": candidate_id,
            "id": application.id,
            "message": "Candidate sourced successfully",
        })

    logger.info(
        f"Bulk source to job {job_id}: {len(results['successful'])} sourced, "
        f"{len(results['skipped'])} skipped, {len(results['failed'])} failed"
    )
    return results
