"""
Job Model - Open requisitions the talent pool is engaged against

Jobs are owned by the job posting surface; the engagement engine only
reads them. A job accepts invitations and sourced candidates while its
status is "Active".
"""

from sqlalchemy import Column, String, Integer, Text, DateTime, JSON
from talentpool.database import Base, utcnow
import uuid

ACTIVE_STATUS = "Active"


class Job(Base):
    """
    Job requisition.

    Attributes:
        status: "Active" when open; any other value is treated as inactive
        required_skills: JSON list of skill tags used by the match scorer
        min_experience/max_experience: Experience band in years (nullable)
        created_at: Posting time, breaks ties between equal match scores
    """

    __tablename__ = "jobs"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    title = Column(String(500), nullable=False)
    slug = Column(String(500), nullable=True)
    department = Column(String(255), nullable=True)
    location = Column(String(500), nullable=True)
    description = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default=ACTIVE_STATUS, index=True)
    required_skills = Column(JSON, nullable=False, default=list)
    min_experience = Column(Integer, nullable=True)
    max_experience = Column(Integer, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)

    @property
    def is_active(self) -> bool:
        return self.status == ACTIVE_STATUS
