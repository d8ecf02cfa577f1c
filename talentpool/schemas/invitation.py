from datetime import datetime
from typing import Optional

from pydantic import Field

from talentpool.schemas.common import CamelModel, JobSummary, PersonSummary


class InviteRequest(CamelModel):
    job_id: str = Field(min_length=1)
    custom_message: Optional[str] = None
    template_id: Optional[str] = None
    subject: Optional[str] = None
    content: Optional[str] = None


class InvitationResponse(CamelModel):
    id: str
    job_id: str
    candidate_id: str
    invited_by: str
    status: str
    message: Optional[str] = None
    sent_at: datetime
    expires_at: datetime
    viewed_at: Optional[datetime] = None
    responded_at: Optional[datetime] = None


class InviteResponse(CamelModel):
    success: bool = True
    message: str = "Invitation sent successfully"
    invitation: InvitationResponse
    token: str
    invitation_url: str


class InvitationDetails(CamelModel):
    """What the candidate sees when opening an invitation link."""

    id: str
    status: str
    message: Optional[str] = None
    sent_at: datetime
    expires_at: datetime
    job: Optional[JobSummary] = None
    candidate: Optional[PersonSummary] = None
    invited_by: Optional[str] = None


class InvitationViewResponse(CamelModel):
    valid: bool
    reason: Optional[str] = None
    error: Optional[str] = None
    invitation: Optional[InvitationDetails] = None


class InvitationActionResponse(CamelModel):
    success: bool = True
    message: str
    status: str
    job_title: Optional[str] = None
    application_id: Optional[str] = None
