"""
Application Model - A candidate's place in a job pipeline

Shared with formal applications. Rows created by the sourcing manager
carry source_type="sourced" plus who sourced the candidate and when;
rows created from an accepted invitation carry source_type="invitation".

Pipeline statuses:
    New → Applied → Reviewing → Interview → Hired/Rejected
"""

from sqlalchemy import Column, String, Text, DateTime, ForeignKey, UniqueConstraint
from talentpool.database import Base, utcnow
import uuid

PIPELINE_STATUSES = ["New", "Applied", "Reviewing", "Interview", "Hired", "Rejected"]
DEFAULT_SOURCED_STATUS = "New"
HIRED_STATUS = "Hired"

SOURCE_DIRECT = "direct"
SOURCE_INVITATION = "invitation"
SOURCE_SOURCED = "sourced"


class Application(Base):
    """
    Pipeline entry for one (job, candidate) pair.

    The unique constraint on (job_id, user_id) backs the "one application
    per pair" rule so a concurrent duplicate insert fails in the database
    even when both requests passed the pre-insert check.
    """

    __tablename__ = "applications"
    __table_args__ = (
        UniqueConstraint("job_id", "user_id", name="uq_applications_job_user"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    job_id = Column(String, ForeignKey("jobs.id"), nullable=False, index=True)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    status = Column(String(30), nullable=False, default="Applied", index=True)
    applied_at = Column(DateTime, nullable=False, default=utcnow)
    source_type = Column(String(20), nullable=False, default=SOURCE_DIRECT, index=True)
    sourced_by = Column(String, ForeignKey("users.id"), nullable=True)
    sourced_at = Column(DateTime, nullable=True, index=True)
    internal_notes = Column(Text, nullable=True)
