from typing import Dict, List, Optional

from talentpool.schemas.common import CamelModel


class AnalyticsOverview(CamelModel):
    total_candidates: int
    new_candidates: int
    active_invitations: int
    sourced_candidates: int
    response_rate: float


class InvitationMetrics(CamelModel):
    sent: int
    viewed: int
    applied: int
    declined: int
    expired: int
    total: int
    response_rate: float
    average_response_time_days: Optional[float] = None


class SourcingMetrics(CamelModel):
    total_sourced: int
    by_status: Dict[str, int]
    conversion_rate: float


class RankedCount(CamelModel):
    name: str
    count: int
    percentage: float


class TopPerformers(CamelModel):
    skills: List[RankedCount]
    locations: List[RankedCount]


class TimelineDay(CamelModel):
    date: str
    day: str
    invitations: int
    sourcings: int
    interactions: int


class AnalyticsResponse(CamelModel):
    overview: AnalyticsOverview
    invitation_metrics: InvitationMetrics
    sourcing_metrics: SourcingMetrics
    top_performers: TopPerformers
    activity_timeline: List[TimelineDay]
    time_range: str
