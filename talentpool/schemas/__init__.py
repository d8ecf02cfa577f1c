from talentpool.schemas.common import Pagination, ErrorResponse
from talentpool.schemas.auth import LoginRequest, LoginResponse, SessionResponse
from talentpool.schemas.invitation import (
    InviteRequest,
    InviteResponse,
    InvitationResponse,
    InvitationViewResponse,
    InvitationActionResponse,
)
from talentpool.schemas.talent_pool import (
    TalentPoolListResponse,
    CandidateDetailResponse,
    NoteRequest,
    NoteResponse,
    SourceRequest,
    SourceResponse,
    EmailHistoryResponse,
    BulkInviteRequest,
    BulkSourceRequest,
    BulkResponse,
    RecruiterActivityResponse,
)
from talentpool.schemas.recommendation import RecommendationsResponse
from talentpool.schemas.analytics import AnalyticsResponse

__all__ = [
    "Pagination",
    "ErrorResponse",
    "LoginRequest",
    "LoginResponse",
    "SessionResponse",
    "InviteRequest",
    "InviteResponse",
    "InvitationResponse",
    "InvitationViewResponse",
    "InvitationActionResponse",
    "TalentPoolListResponse",
    "CandidateDetailResponse",
    "NoteRequest",
    "NoteResponse",
    "SourceRequest",
    "SourceResponse",
    "EmailHistoryResponse",
    "BulkInviteRequest",
    "BulkSourceRequest",
    "BulkResponse",
    "RecruiterActivityResponse",
    "RecommendationsResponse",
    "AnalyticsResponse",
]
