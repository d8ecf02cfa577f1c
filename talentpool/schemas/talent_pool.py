from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import Field

from talentpool.schemas.common import (
    ApplicationSummary,
    CamelModel,
    JobSummary,
    Pagination,
    PersonSummary,
)


class CandidateStats(CamelModel):
    total_applications: int = 0
    interactions_count: int = 0
    active_invitations_count: int = 0
    invitations_count: Optional[int] = None


class CandidateResponse(CamelModel):
    id: str
    name: Optional[str] = None
    email: str
    bio: Optional[str] = None
    skills: List[str] = []
    years_experience: Optional[int] = None
    location: Optional[str] = None
    current_title: Optional[str] = None
    current_company: Optional[str] = None
    linkedin_url: Optional[str] = None
    portfolio_url: Optional[str] = None
    available_for_opportunities: bool = False
    last_profile_update: Optional[datetime] = None
    created_at: Optional[datetime] = None
    stats: Optional[CandidateStats] = None


class CandidateListItem(CandidateResponse):
    recent_applications: List[ApplicationSummary] = []


class TalentPoolListResponse(CamelModel):
    candidates: List[CandidateListItem]
    pagination: Pagination


class InteractionResponse(CamelModel):
    id: str
    interaction_type: str
    notes: Optional[str] = None
    metadata: Dict[str, Any] = {}
    created_at: datetime
    admin: Optional[PersonSummary] = None
    job: Optional[JobSummary] = None


class CandidateInvitation(CamelModel):
    id: str
    status: str
    message: Optional[str] = None
    sent_at: datetime
    viewed_at: Optional[datetime] = None
    responded_at: Optional[datetime] = None
    expires_at: datetime
    job: Optional[JobSummary] = None
    invited_by: Optional[PersonSummary] = None


class CandidateDetailResponse(CamelModel):
    candidate: CandidateResponse
    applications: List[ApplicationSummary]
    interactions: List[InteractionResponse]
    invitations: List[CandidateInvitation]


class NoteRequest(CamelModel):
    notes: Optional[str] = None
    job_id: Optional[str] = None


class NoteResponse(CamelModel):
    success: bool = True
    message: str = "Note added successfully"
    interaction: InteractionResponse


class SourceRequest(CamelModel):
    job_id: str = Field(min_length=1)
    notes: Optional[str] = None
    status: Optional[str] = None


class SourcedApplication(CamelModel):
    id: str
    job_id: str
    user_id: str
    status: str
    source_type: str
    sourced_by: Optional[str] = None
    sourced_at: Optional[datetime] = None
    applied_at: Optional[datetime] = None


class SourceResponse(CamelModel):
    success: bool = True
    message: str = "Candidate sourced successfully"
    application: SourcedApplication


class EmailHistoryItem(CamelModel):
    id: str
    type: str
    subject: str
    preview: str
    direction: str
    to: str
    status: str
    attempts: int = 0
    created_at: Optional[datetime] = None
    sent_at: Optional[datetime] = None
    opened_at: Optional[datetime] = None
    clicked_at: Optional[datetime] = None
    metadata: Dict[str, Any] = {}


class EmailHistorySummary(CamelModel):
    total_sent: int
    total_received: int
    pending: int
    failed: int
    opened_rate: float
    clicked_rate: float


class EmailHistoryResponse(CamelModel):
    success: bool = True
    emails: List[EmailHistoryItem]
    summary: EmailHistorySummary


class BulkInviteRequest(CamelModel):
    candidate_ids: List[str] = Field(min_length=1, max_length=100)
    job_id: str = Field(min_length=1)
    custom_message: Optional[str] = None
    template_id: Optional[str] = None
    subject: Optional[str] = None
    content: Optional[str] = None


class BulkSourceRequest(CamelModel):
    candidate_ids: List[str] = Field(min_length=1, max_length=100)
    job_id: str = Field(min_length=1)
    notes: Optional[str] = None
    status: Optional[str] = None


class BulkSuccess(CamelModel):
    candidate_id: str
    id: str
    message: str


class BulkProblem(CamelModel):
    candidate_id: str
    reason: Optional[str] = None
    error: str


class BulkResponse(CamelModel):
    successful: List[BulkSuccess]
    skipped: List[BulkProblem]
    failed: List[BulkProblem]


class RecruiterActivityResponse(CamelModel):
    admin_id: str
    time_range: str
    total: int
    by_type: Dict[str, int]
