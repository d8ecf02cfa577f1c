"""
Talent Pool Interaction Model - Append-only engagement ledger

One row per recruiter↔candidate touchpoint. Rows are inserted and never
updated or deleted; corrections are new rows.
"""

from sqlalchemy import Column, String, Text, DateTime, ForeignKey, JSON
from talentpool.database import Base, utcnow
import uuid

VIEWED_PROFILE = "viewed_profile"
SENT_INVITATION = "sent_invitation"
VIEWED_INVITATION = "viewed_invitation"
DECLINED_INVITATION = "declined_invitation"
SOURCED_TO_JOB = "sourced_to_job"
ADDED_NOTE = "added_note"

INTERACTION_TYPES = (
    VIEWED_PROFILE,
    SENT_INVITATION,
    VIEWED_INVITATION,
    DECLINED_INVITATION,
    SOURCED_TO_JOB,
    ADDED_NOTE,
)


class TalentPoolInteraction(Base):
    __tablename__ = "talent_pool_interactions"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    admin_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    candidate_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    job_id = Column(String, ForeignKey("jobs.id"), nullable=True)
    interaction_type = Column(String(40), nullable=False, index=True)
    notes = Column(Text, nullable=True)
    extra = Column("metadata", JSON, nullable=False, default=dict)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
