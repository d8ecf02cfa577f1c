"""
Talent Pool Analytics - Funnel and activity rollups

Pull-based: every call reads the current tables for a time window and
returns plain dicts. Nothing is cached or written, so repeated calls at
the same ``now`` return the same numbers.

Windows:
    7d, 30d, 90d, 1y (365 days); anything else falls back to 30d.

Invitation counts use the *effective* status: an open (sent/viewed) row
whose deadline has passed counts as expired even if no read has
transitioned it yet.
"""

import logging
from collections import Counter
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from talentpool.database import utcnow
from talentpool.models import Application, JobInvitation, TalentPoolInteraction, User
from talentpool.models.application import HIRED_STATUS, PIPELINE_STATUSES, SOURCE_SOURCED
from talentpool.models.interaction import INTERACTION_TYPES
from talentpool.models.invitation import (
    INVITATION_STATUSES,
    OPEN_STATUSES,
    STATUS_APPLIED,
    STATUS_DECLINED,
    STATUS_EXPIRED,
)
from talentpool.models.user import ADMIN_ROLE

logger = logging.getLogger(__name__)

TIME_RANGES = {
    "7d": 7,
    "30d": 30,
    "90d": 90,
    "1y": 365,
}
DEFAULT_TIME_RANGE = "30d"

TOP_N = 5
TIMELINE_DAYS = 7
DAY_NAMES = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]


def resolve_time_range(range_key: Optional[str], now: datetime) -> Tuple[str, datetime]:
    """
    Map a range key to (effective key, window start).

    Unknown or missing keys use the 30 day window.
    """
    key = range_key if range_key in TIME_RANGES else DEFAULT_TIME_RANGE
    return key, now - timedelta(days=TIME_RANGES[key])


def rate(part: int, total: int) -> float:
    """Percentage rounded to 1 decimal, 0.0 when there is nothing to divide."""
    if not total:
        return 0.0
    return round(part / total * 100, 1)


def top_counts(counts: Counter, pool_size: int, limit: int = TOP_N) -> List[dict]:
    """Highest counts first, ties broken alphabetically."""
    ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))[:limit]
    return [
        {"name": name, "count": count, "percentage": rate(count, pool_size)}
        for name, count in ranked
    ]


def day_buckets(now: datetime, days: int = TIMELINE_DAYS) -> List[date]:
    """The trailing ``days`` UTC calendar days including today, oldest first."""
    today = now.date()
    return [today - timedelta(days=offset) for offset in range(days - 1, -1, -1)]


def _candidate_filter():
    return User.role != ADMIN_ROLE


# ==================== Sections ====================

async def _overview(db: AsyncSession, start: datetime, now: datetime) -> dict:
    total_result = await db.execute(select(func.count(User.id)).where(_candidate_filter()))
    total_candidates = total_result.scalar() or 0

    new_result = await db.execute(
        select(func.count(User.id)).where(
            _candidate_filter(),
            User.created_at >= start,
            User.created_at <= now,
        )
    )
    new_candidates = new_result.scalar() or 0

    active_result = await db.execute(
        select(func.count(JobInvitation.id)).where(
            JobInvitation.status.in_(OPEN_STATUSES),
            JobInvitation.expires_at > now,
        )
    )
    active_invitations = active_result.scalar() or 0

    return {
        "total_candidates": total_candidates,
        "new_candidates": new_candidates,
        "active_invitations": active_invitations,
    }


async def _invitation_funnel(db: AsyncSession, start: datetime, now: datetime) -> dict:
    status_query = (
        select(JobInvitation.status, JobInvitation.expires_at, func.count(JobInvitation.id))
        .where(JobInvitation.sent_at >= start, JobInvitation.sent_at <= now)
        .group_by(JobInvitation.status, JobInvitation.expires_at)
    )
    status_result = await db.execute(status_query)
    by_status = Counter()
    for status, expires_at, count in status_result.all():
        if status in OPEN_STATUSES and now > expires_at:
            status = STATUS_EXPIRED
        by_status[status] += count
    # Ensure all statuses are present with default 0
    for status in INVITATION_STATUSES:
        by_status.setdefault(status, 0)

    total = sum(by_status.values())
    responded = by_status[STATUS_APPLIED] + by_status[STATUS_DECLINED]

    response_times = await db.execute(
        select(JobInvitation.sent_at, JobInvitation.responded_at).where(
            JobInvitation.sent_at >= start,
            JobInvitation.sent_at <= now,
            JobInvitation.responded_at.is_not(None),
        )
    )
    durations = [
        (responded_at - sent_at).total_seconds()
        for sent_at, responded_at in response_times.all()
    ]
    average_days = round(sum(durations) / len(durations) / 86400, 1) if durations else None

    return {
        **{status: by_status[status] for status in INVITATION_STATUSES},
        "total": total,
        "response_rate": rate(responded, total),
        "average_response_time_days": average_days,
    }


async def _sourcing_funnel(db: AsyncSession, start: datetime, now: datetime) -> dict:
    status_query = (
        select(Application.status, func.count(Application.id))
        .where(
            Application.source_type == SOURCE_SOURCED,
            Application.sourced_at >= start,
            Application.sourced_at <= now,
        )
        .group_by(Application.status)
    )
    status_result = await db.execute(status_query)
    counts = {row[0]: row[1] for row in status_result.all()}

    by_status = {status: counts.get(status, 0) for status in PIPELINE_STATUSES}
    total = sum(counts.values())

    return {
        "total_sourced": total,
        "by_status": by_status,
        "conversion_rate": rate(by_status[HIRED_STATUS], total),
    }


async def _top_performers(db: AsyncSession, pool_size: int) -> dict:
    skills_result = await db.execute(select(User.skills).where(_candidate_filter()))
    skill_counts = Counter()
    for (skills,) in skills_result.all():
        if isinstance(skills, list):
            # A candidate listing a skill twice still counts once
            skill_counts.update({s for s in skills if isinstance(s, str) and s})

    location_result = await db.execute(
        select(User.location, func.count(User.id))
        .where(_candidate_filter(), User.location.is_not(None), User.location != "")
        .group_by(User.location)
    )
    location_counts = Counter({row[0]: row[1] for row in location_result.all()})

    return {
        "skills": top_counts(skill_counts, pool_size),
        "locations": top_counts(location_counts, pool_size),
    }


async def _activity_timeline(db: AsyncSession, now: datetime) -> List[dict]:
    days = day_buckets(now)
    window_start = datetime.combine(days[0], datetime.min.time())
    window_end = datetime.combine(days[-1] + timedelta(days=1), datetime.min.time())

    async def timestamps(column, *criteria) -> List[datetime]:
        result = await db.execute(
            select(column).where(column >= window_start, column < window_end, *criteria)
        )
        return [row[0] for row in result.all()]

    invitations = Counter(ts.date() for ts in await timestamps(JobInvitation.sent_at))
    sourcings = Counter(
        ts.date()
        for ts in await timestamps(
            Application.sourced_at, Application.source_type == SOURCE_SOURCED
        )
    )
    interactions = Counter(ts.date() for ts in await timestamps(TalentPoolInteraction.created_at))

    return [
        {
            "date": DAY_NAMES[day.weekday()],
            "day": day.isoformat(),
            "invitations": invitations[day],
            "sourcings": sourcings[day],
            "interactions": interactions[day],
        }
        for day in days
    ]


# ==================== Public API ====================

async def summarize(db: AsyncSession, range_key: Optional[str] = None, now: Optional[datetime] = None) -> dict:
    """
    Build the talent pool analytics report.

    Args:
        db: Database session (read only)
        range_key: "7d", "30d", "90d" or "1y"
        now: Reference time (naive UTC); defaults to the current time

    Returns:
        Dict with overview, invitation_metrics, sourcing_metrics,
        top_performers, activity_timeline and the effective time_range
    """
    now = now or utcnow()
    range_key, start = resolve_time_range(range_key, now)

    overview = await _overview(db, start, now)
    invitation_metrics = await _invitation_funnel(db, start, now)
    sourcing_metrics = await _sourcing_funnel(db, start, now)
    top_performers = await _top_performers(db, overview["total_candidates"])
    activity_timeline = await _activity_timeline(db, now)

    overview["sourced_candidates"] = sourcing_metrics["total_sourced"]
    overview["response_rate"] = invitation_metrics["response_rate"]

    return {
        "overview": overview,
        "invitation_metrics": invitation_metrics,
        "sourcing_metrics": sourcing_metrics,
        "top_performers": top_performers,
        "activity_timeline": activity_timeline,
        "time_range": range_key,
    }


async def recruiter_activity(
    db: AsyncSession,
    admin_id: str,
    range_key: Optional[str] = None,
    now: Optional[datetime] = None,
) -> dict:
    """Count one recruiter's ledger entries by interaction type for a window."""
    now = now or utcnow()
    range_key, start = resolve_time_range(range_key, now)

    type_query = (
        select(TalentPoolInteraction.interaction_type, func.count(TalentPoolInteraction.id))
        .where(
            TalentPoolInteraction.admin_id == admin_id,
            TalentPoolInteraction.created_at >= start,
            TalentPoolInteraction.created_at <= now,
        )
        .group_by(TalentPoolInteraction.interaction_type)
    )
    type_result = await db.execute(type_query)
    counts: Dict[str, int] = {row[0]: row[1] for row in type_result.all()}
    by_type = {interaction_type: counts.get(interaction_type, 0) for interaction_type in INTERACTION_TYPES}

    return {
        "admin_id": admin_id,
        "time_range": range_key,
        "total": sum(by_type.values()),
        "by_type": by_type,
    }
