"""
Job Invitation Model - Time-boxed, tokenized offer to apply

Status Flow:
    sent → viewed → applied | declined
    sent | viewed → expired (observed lazily once past expires_at)

Terminal states: applied, declined, expired. Rows are never deleted.
"""

from sqlalchemy import Column, String, Text, DateTime, ForeignKey, JSON, Index
from talentpool.database import Base, utcnow
import uuid

STATUS_SENT = "sent"
STATUS_VIEWED = "viewed"
STATUS_APPLIED = "applied"
STATUS_DECLINED = "declined"
STATUS_EXPIRED = "expired"

INVITATION_STATUSES = [STATUS_SENT, STATUS_VIEWED, STATUS_APPLIED, STATUS_DECLINED, STATUS_EXPIRED]
OPEN_STATUSES = (STATUS_SENT, STATUS_VIEWED)
ACTIONED_STATUSES = (STATUS_APPLIED, STATUS_DECLINED)


class JobInvitation(Base):
    """
    Invitation for one candidate to apply to one job.

    Attributes:
        invitation_token: 64 hex chars (256 bits), unique, looked up by exact match
        message: Optional custom message from the recruiter
        status: Lifecycle state (indexed)
        viewed_at: First time the candidate opened the invitation
        responded_at: When the candidate declined or applied
        expires_at: sent_at + invitation_expiry_days
        extra: Free-form metadata (template id, subject, content)
    """

    __tablename__ = "job_invitations"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    job_id = Column(String, ForeignKey("jobs.id"), nullable=False, index=True)
    candidate_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    invited_by = Column(String, ForeignKey("users.id"), nullable=False)
    invitation_token = Column(String(128), nullable=False, unique=True, index=True)
    message = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default=STATUS_SENT, index=True)
    sent_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    viewed_at = Column(DateTime, nullable=True)
    responded_at = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=False, index=True)
    extra = Column("metadata", JSON, nullable=False, default=dict)

    def is_expired(self, now) -> bool:
        return now > self.expires_at

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_STATUSES


# At most one open invitation per (job, candidate) pair
Index(
    "uq_job_invitations_open_pair",
    JobInvitation.job_id,
    JobInvitation.candidate_id,
    unique=True,
    sqlite_where=JobInvitation.status.in_(OPEN_STATUSES),
    postgresql_where=JobInvitation.status.in_(OPEN_STATUSES),
)
