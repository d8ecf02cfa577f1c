"""
Candidate-Job Matching Service - Talent Pool Recommendations

This module scores how well a talent pool candidate fits an open job and
ranks all active jobs for one candidate. Everything here is pure: no I/O,
no clock, no randomness, so the same inputs always produce the same
ranking.

Match Score Composition (default weights):
    - Skills (45%): share of the job's required skills the candidate has
    - Experience (25%): years of experience against the job's band
    - Location (20%): same place, same city, or remote on either side
    - Availability (10%): candidate is open to opportunities

Score Range: 0-100 where higher = better match

Tiers used by the recommendation surface:
    >= 80 excellent, >= 60 good, >= 40 fair, below 40 poor (not recommended)
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Set

DEFAULT_WEIGHTS = {
    "skills": 0.45,
    "experience": 0.25,
    "location": 0.20,
    "availability": 0.10,
}

EXCELLENT_THRESHOLD = 80
GOOD_THRESHOLD = 60
FAIR_THRESHOLD = 40

TOP_MATCHES = 5
GOOD_MATCHES = 5

# Canonical skill -> spellings that mean the same thing
SKILL_SYNONYMS = {
    "javascript": ["js", "ecmascript", "es6"],
    "typescript": ["ts"],
    "node.js": ["node", "nodejs", "node js"],
    "react": ["reactjs", "react.js"],
    "vue": ["vuejs", "vue.js"],
    "angular": ["angularjs"],
    "python": ["py", "python3"],
    "golang": ["go"],
    "csharp": ["c#", ".net", "dotnet"],
    "postgresql": ["postgres", "psql"],
    "kubernetes": ["k8s"],
    "aws": ["amazon web services"],
    "gcp": ["google cloud", "google cloud platform"],
    "machine learning": ["ml"],
    "sql": ["structured query language"],
}

_SYNONYM_INDEX = {
    alias: canonical
    for canonical, aliases in SKILL_SYNONYMS.items()
    for alias in [canonical] + aliases
}

OVERQUALIFIED_PENALTY_PER_YEAR = 0.1
OVERQUALIFIED_FLOOR = 0.5
SAME_CITY_SCORE = 0.75
UNKNOWN_LOCATION_SCORE = 0.5
UNAVAILABLE_SCORE = 0.5


@dataclass
class CandidateProfile:
    id: str
    skills: List[str] = field(default_factory=list)
    years_experience: Optional[int] = None
    location: Optional[str] = None
    available_for_opportunities: bool = False

    @classmethod
    def from_user(cls, user) -> "CandidateProfile":
        return cls(
            id=user.id,
            skills=list(user.skills or []),
            years_experience=user.years_experience,
            location=user.location,
            available_for_opportunities=bool(user.available_for_opportunities),
        )


@dataclass
class JobProfile:
    id: str
    title: str
    status: str = "Active"
    required_skills: List[str] = field(default_factory=list)
    min_experience: Optional[int] = None
    max_experience: Optional[int] = None
    location: Optional[str] = None
    department: Optional[str] = None
    posted_at: Optional[datetime] = None

    @classmethod
    def from_job(cls, job) -> "JobProfile":
        return cls(
            id=job.id,
            title=job.title,
            status=job.status,
            required_skills=list(job.required_skills or []),
            min_experience=job.min_experience,
            max_experience=job.max_experience,
            location=job.location,
            department=job.department,
            posted_at=job.created_at,
        )


@dataclass
class MatchResult:
    job: JobProfile
    percentage: float
    components: Dict[str, float]
    matched_skills: List[str]
    missing_skills: List[str]
    level: str


@dataclass
class RankedJobs:
    top: List[MatchResult]
    good: List[MatchResult]
    other: List[MatchResult]
    already_applied: List[MatchResult]
    summary: Dict[str, int]


def normalize_skill(skill: str) -> str:
    """Lower-case, collapse whitespace and map known synonyms to one name."""
    cleaned = re.sub(r"\s+", " ", (skill or "").strip().lower())
    return _SYNONYM_INDEX.get(cleaned, cleaned)


def normalize_skills(skills: Iterable[str]) -> Set[str]:
    return {normalize_skill(s) for s in skills or [] if s and s.strip()}


def match_skills(candidate_skills: Iterable[str], required_skills: Iterable[str]):
    """
    Calculate skill overlap (0-1).

    Returns:
        Tuple of (score, matched skills, missing skills), skills in canonical form
    """
    required = normalize_skills(required_skills)
    if not required:
        return 1.0, [], []  # Nothing required, full credit

    have = normalize_skills(candidate_skills)
    matched = sorted(required & have)
    missing = sorted(required - have)
    return len(matched) / len(required), matched, missing


def match_experience(years: Optional[int], min_years: Optional[int], max_years: Optional[int]) -> float:
    """
    Calculate experience fit (0-1).

    Inside the band scores 1.0. Below the minimum, credit is proportional to
    the years the candidate has. Above the maximum, each extra year costs
    0.1 down to a floor of 0.5.
    """
    years = years or 0

    if min_years and years < min_years:
        return max(0.0, years / min_years)

    if max_years is not None and years > max_years:
        overshoot = years - max_years
        return max(OVERQUALIFIED_FLOOR, 1.0 - overshoot * OVERQUALIFIED_PENALTY_PER_YEAR)

    return 1.0


def _city(location: str) -> str:
    return location.split(",")[0].strip()


def match_location(candidate_location: Optional[str], job_location: Optional[str]) -> float:
    """Calculate location compatibility (0-1)"""
    cand = (candidate_location or "").strip().lower()
    job = (job_location or "").strip().lower()

    if "remote" in job or "remote" in cand:
        return 1.0

    if not cand or not job:
        return UNKNOWN_LOCATION_SCORE

    if cand in job or job in cand:
        return 1.0

    if _city(cand) == _city(job):
        return SAME_CITY_SCORE

    return 0.0


def match_level(percentage: float) -> str:
    if percentage >= EXCELLENT_THRESHOLD:
        return "excellent"
    if percentage >= GOOD_THRESHOLD:
        return "good"
    if percentage >= FAIR_THRESHOLD:
        return "fair"
    return "poor"


def score_match(
    candidate: CandidateProfile,
    job: JobProfile,
    weights: Optional[Dict[str, float]] = None,
) -> MatchResult:
    """
    Calculate the composite match score for one (candidate, job) pair.

    Algorithm:
        1. Skills: |candidate ∩ required| / |required| (1.0 if none required)
        2. Experience: band fit, see match_experience
        3. Location: 1.0 same/remote, 0.75 same city, 0.5 unknown, 0.0 mismatch
        4. Availability: 1.0 available, 0.5 otherwise

    Args:
        candidate: Candidate attributes
        job: Job requirements
        weights: Dict with keys skills, experience, location, availability

    Returns:
        MatchResult with percentage in [0, 100] and per-factor components

    Example:
        >>> result = score_match(candidate, job)
        >>> result.percentage  # 86.5
        >>> result.level  # "excellent"
    """
    weights = weights or DEFAULT_WEIGHTS

    skills_score, matched, missing = match_skills(candidate.skills, job.required_skills)
    experience_score = match_experience(
        candidate.years_experience, job.min_experience, job.max_experience
    )
    location_score = match_location(candidate.location, job.location)
    availability_score = 1.0 if candidate.available_for_opportunities else UNAVAILABLE_SCORE

    components = {
        "skills": round(skills_score, 4),
        "experience": round(experience_score, 4),
        "location": round(location_score, 4),
        "availability": round(availability_score, 4),
    }

    composite = (
        skills_score * weights.get("skills", DEFAULT_WEIGHTS["skills"]) +
        experience_score * weights.get("experience", DEFAULT_WEIGHTS["experience"]) +
        location_score * weights.get("location", DEFAULT_WEIGHTS["location"]) +
        availability_score * weights.get("availability", DEFAULT_WEIGHTS["availability"])
    )

    percentage = round(min(100.0, max(0.0, composite * 100)), 1)

    return MatchResult(
        job=job,
        percentage=percentage,
        components=components,
        matched_skills=matched,
        missing_skills=missing,
        level=match_level(percentage),
    )


def _rank_key(result: MatchResult):
    posted = result.job.posted_at.timestamp() if result.job.posted_at else float("-inf")
    return (-result.percentage, -posted, result.job.id)


def rank_jobs(
    candidate: CandidateProfile,
    jobs: Iterable[JobProfile],
    applied_job_ids: Optional[Set[str]] = None,
    weights: Optional[Dict[str, float]] = None,
) -> RankedJobs:
    """
    Score every active job for a candidate and bucket the results.

    Ordering is by percentage, then most recently posted, then job id.
    Jobs the candidate already applied to go to ``already_applied`` whatever
    their score. The rest split into top (first 5), good (next 5) and other
    (remainder); jobs below the fair threshold are left out of all three
    lists and only counted as poor matches.
    """
    applied_job_ids = applied_job_ids or set()
    active_jobs = [job for job in jobs if job.status == "Active"]

    results = sorted(
        (score_match(candidate, job, weights) for job in active_jobs),
        key=_rank_key,
    )

    already_applied = [r for r in results if r.job.id in applied_job_ids]
    not_applied = [r for r in results if r.job.id not in applied_job_ids]
    recommended = [r for r in not_applied if r.percentage >= FAIR_THRESHOLD]

    summary = {
        "total_active_jobs": len(active_jobs),
        "total_recommended": len(recommended),
        "excellent_matches": sum(1 for r in not_applied if r.level == "excellent"),
        "good_matches": sum(1 for r in not_applied if r.level == "good"),
        "fair_matches": sum(1 for r in not_applied if r.level == "fair"),
        "poor_matches": sum(1 for r in not_applied if r.level == "poor"),
        "already_applied": len(already_applied),
    }

    return RankedJobs(
        top=recommended[:TOP_MATCHES],
        good=recommended[TOP_MATCHES:TOP_MATCHES + GOOD_MATCHES],
        other=recommended[TOP_MATCHES + GOOD_MATCHES:],
        already_applied=already_applied,
        summary=summary,
    )
