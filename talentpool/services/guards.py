"""Precondition checks shared by the invitation and sourcing managers."""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from talentpool.models import Application, Job, User
from talentpool.services.errors import InvalidState, NotFound


async def get_candidate(db: AsyncSession, candidate_id: str, action: str) -> User:
    """Load a talent pool candidate, rejecting missing users and admins."""
    candidate = await db.get(User, candidate_id)
    if not candidate:
        raise NotFound("Candidate not found")
    if candidate.is_admin:
        raise InvalidState(f"Cannot {action} admin users", "admin_candidate")
    return candidate


async def get_active_job(db: AsyncSession, job_id: str, action: str) -> Job:
    job = await db.get(Job, job_id)
    if not job:
        raise NotFound("Job not found")
    if not job.is_active:
        raise InvalidState(f"Cannot {action} to inactive job", "job_inactive")
    return job


async def find_application(db: AsyncSession, job_id: str, candidate_id: str) -> Optional[Application]:
    result = await db.execute(
        select(Application).where(
            Application.job_id == job_id,
            Application.user_id == candidate_id,
        )
    )
    return result.scalars().first()
