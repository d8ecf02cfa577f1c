from typing import Dict, List, Optional

from talentpool.schemas.common import CamelModel


class MatchScore(CamelModel):
    percentage: float
    level: str
    components: Dict[str, float]
    matched_skills: List[str]
    missing_skills: List[str]


class RecommendedJob(CamelModel):
    id: str
    title: str
    department: Optional[str] = None
    location: Optional[str] = None
    required_skills: List[str] = []
    min_experience: Optional[int] = None
    max_experience: Optional[int] = None
    has_applied: bool = False
    match_score: MatchScore


class RecommendationBuckets(CamelModel):
    top_matches: List[RecommendedJob]
    good_matches: List[RecommendedJob]
    other_matches: List[RecommendedJob]
    already_applied: List[RecommendedJob]


class RecommendationSummary(CamelModel):
    total_active_jobs: int
    total_recommended: int
    excellent_matches: int
    good_matches: int
    fair_matches: int
    poor_matches: int
    already_applied: int


class RecommendedCandidate(CamelModel):
    id: str
    name: Optional[str] = None
    skills: List[str] = []
    experience: Optional[int] = None
    location: Optional[str] = None


class RecommendationsResponse(CamelModel):
    success: bool = True
    candidate: RecommendedCandidate
    recommendations: RecommendationBuckets
    summary: RecommendationSummary
