"""
Interaction Ledger - Append-only record of talent pool touchpoints

Every other engagement component appends here as part of its own write
path. Appends run inside a SAVEPOINT: if the insert fails, only the
savepoint is rolled back and the caller's primary write (invitation,
application, status transition) still commits. The failure is logged at
ERROR and counted because it silently degrades analytics.

Read patterns:
    - by candidate (profile history), newest first
    - by admin + time window (recruiter productivity)
    - by time window (global analytics), oldest first
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from talentpool.database import utcnow
from talentpool.middleware.metrics import LEDGER_APPENDS, LEDGER_APPEND_FAILURES
from talentpool.models import TalentPoolInteraction
from talentpool.models.interaction import INTERACTION_TYPES

logger = logging.getLogger(__name__)


async def record_interaction(
    db: AsyncSession,
    admin_id: str,
    candidate_id: str,
    interaction_type: str,
    job_id: Optional[str] = None,
    notes: Optional[str] = None,
    metadata: Optional[dict] = None,
    now: Optional[datetime] = None,
) -> Optional[TalentPoolInteraction]:
    """
    Append one immutable interaction row.

    The row is flushed but not committed; the caller's transaction owns the
    commit.

    Args:
        db: Session holding the caller's primary write
        admin_id: Acting recruiter (or the inviter, for candidate-side events)
        candidate_id: Candidate the touchpoint concerns
        interaction_type: One of INTERACTION_TYPES
        job_id: Related job, if any
        notes: Free-text notes
        metadata: JSON-serialisable detail blob
        now: Timestamp override (defaults to current UTC time)

    Returns:
        The persisted interaction, or None when the append failed

    Raises:
        ValueError: interaction_type is not part of the closed set
    """
    if interaction_type not in INTERACTION_TYPES:
        raise ValueError(f"Unknown interaction type: {interaction_type}")

    interaction = TalentPoolInteraction(
        admin_id=admin_id,
        candidate_id=candidate_id,
        job_id=job_id,
        interaction_type=interaction_type,
        notes=notes,
        extra=metadata or {},
        created_at=now or utcnow(),
    )

    try:
        async with db.begin_nested():
            db.add(interaction)
    except SQLAlchemyError as e:
        LEDGER_APPEND_FAILURES.labels(interaction_type=interaction_type).inc()
        logger.error(
            f"Ledger append failed ({interaction_type}) for candidate {candidate_id}: {e}"
        )
        return None

    LEDGER_APPENDS.labels(interaction_type=interaction_type).inc()
    return interaction


async def list_for_candidate(db: AsyncSession, candidate_id: str) -> List[TalentPoolInteraction]:
    """Profile history, newest first."""
    result = await db.execute(
        select(TalentPoolInteraction)
        .where(TalentPoolInteraction.candidate_id == candidate_id)
        .order_by(TalentPoolInteraction.created_at.desc())
    )
    return list(result.scalars().all())


async def list_for_admin(
    db: AsyncSession,
    admin_id: str,
    start: datetime,
    end: datetime,
) -> List[TalentPoolInteraction]:
    result = await db.execute(
        select(TalentPoolInteraction)
        .where(
            TalentPoolInteraction.admin_id == admin_id,
            TalentPoolInteraction.created_at >= start,
            TalentPoolInteraction.created_at <= end,
        )
        .order_by(TalentPoolInteraction.created_at.asc())
    )
    return list(result.scalars().all())


async def list_in_window(db: AsyncSession, start: datetime, end: datetime) -> List[TalentPoolInteraction]:
    result = await db.execute(
        select(TalentPoolInteraction)
        .where(
            TalentPoolInteraction.created_at >= start,
            TalentPoolInteraction.created_at <= end,
        )
        .order_by(TalentPoolInteraction.created_at.asc())
    )
    return list(result.scalars().all())


async def count_by_candidate(db: AsyncSession, candidate_ids: List[str]) -> Dict[str, int]:
    """Interaction counts for a page of candidates in one GROUP BY query."""
    if not candidate_ids:
        return {}
    result = await db.execute(
        select(TalentPoolInteraction.candidate_id, func.count(TalentPoolInteraction.id))
        .where(TalentPoolInteraction.candidate_id.in_(candidate_ids))
        .group_by(TalentPoolInteraction.candidate_id)
    )
    return {row[0]: row[1] for row in result.all()}
