"""
Tests for candidate-job matching service.

Run with: pytest tests/test_matcher.py -v
"""
from datetime import datetime, timedelta

import pytest

from talentpool.services.matcher import (
    DEFAULT_WEIGHTS,
    CandidateProfile,
    JobProfile,
    match_experience,
    match_level,
    match_location,
    match_skills,
    normalize_skill,
    rank_jobs,
    score_match,
)

POSTED = datetime(2024, 6, 1, 9, 0, 0)


def make_candidate(**overrides):
    defaults = dict(
        id="cand-1",
        skills=["Python", "SQL"],
        years_experience=5,
        location="London, UK",
        available_for_opportunities=True,
    )
    defaults.update(overrides)
    return CandidateProfile(**defaults)


def make_job(job_id="job-1", **overrides):
    defaults = dict(
        id=job_id,
        title=f"Job {job_id}",
        status="Active",
        required_skills=["python", "sql"],
        min_experience=3,
        max_experience=7,
        location="London",
        posted_at=POSTED,
    )
    defaults.update(overrides)
    return JobProfile(**defaults)


class TestSkillNormalization:
    """Skills are compared in canonical form."""

    def test_case_and_whitespace_are_ignored(self):
        assert normalize_skill("  Machine   Learning ") == "machine learning"

    def test_synonyms_map_to_canonical_name(self):
        assert normalize_skill("NodeJS") == "node.js"
        assert normalize_skill("node") == "node.js"
        assert normalize_skill("k8s") == "kubernetes"
        assert normalize_skill("Postgres") == "postgresql"
        assert normalize_skill("JS") == "javascript"

    def test_unknown_skill_passes_through(self):
        assert normalize_skill("Terraform") == "terraform"


class TestSkillsScore:
    """Tests for skill overlap component."""

    def test_no_required_skills_gives_full_credit(self):
        score, matched, missing = match_skills(["python"], [])
        assert score == 1.0
        assert matched == []
        assert missing == []

    def test_partial_overlap(self):
        score, matched, missing = match_skills(["Python"], ["python", "sql"])
        assert score == 0.5
        assert matched == ["python"]
        assert missing == ["sql"]

    def test_synonym_counts_as_match(self):
        score, matched, _ = match_skills(["nodejs", "K8s"], ["Node.js", "kubernetes"])
        assert score == 1.0
        assert matched == ["kubernetes", "node.js"]

    def test_candidate_without_skills(self):
        score, matched, missing = match_skills([], ["python"])
        assert score == 0.0
        assert missing == ["python"]


class TestExperienceScore:
    """Tests for experience band component."""

    def test_inside_band(self):
        assert match_experience(5, 3, 7) == 1.0
        assert match_experience(3, 3, 7) == 1.0
        assert match_experience(7, 3, 7) == 1.0

    def test_below_minimum_is_proportional(self):
        assert match_experience(2, 4, 8) == 0.5

    def test_unknown_experience_with_minimum(self):
        assert match_experience(None, 3, 7) == 0.0

    def test_overqualified_loses_a_tenth_per_year(self):
        assert match_experience(10, 3, 7) == pytest.approx(0.7)

    def test_overqualified_floor(self):
        assert match_experience(30, 3, 7) == 0.5

    def test_no_band(self):
        assert match_experience(0, None, None) == 1.0
        assert match_experience(12, None, None) == 1.0


class TestLocationScore:
    """Tests for location component."""

    def test_remote_on_either_side(self):
        assert match_location("Berlin", "Remote") == 1.0
        assert match_location("Remote", "Berlin") == 1.0

    def test_containment(self):
        assert match_location("London, UK", "London") == 1.0

    def test_same_city_different_region(self):
        assert match_location("London, UK", "London, Ontario") == 0.75

    def test_unknown_location(self):
        assert match_location(None, "London") == 0.5
        assert match_location("London", "") == 0.5

    def test_mismatch(self):
        assert match_location("Manchester, UK", "London") == 0.0


class TestMatchLevel:
    """Tier boundaries."""

    @pytest.mark.parametrize("percentage,level", [
        (100, "excellent"),
        (80, "excellent"),
        (79.9, "good"),
        (60, "good"),
        (59.9, "fair"),
        (40, "fair"),
        (39.9, "poor"),
        (0, "poor"),
    ])
    def test_levels(self, percentage, level):
        assert match_level(percentage) == level


class TestScoreMatch:
    """Tests for composite score."""

    def test_perfect_match(self):
        result = score_match(make_candidate(), make_job())
        assert result.percentage == 100.0
        assert result.level == "excellent"
        assert result.components == {
            "skills": 1.0,
            "experience": 1.0,
            "location": 1.0,
            "availability": 1.0,
        }

    def test_weighted_sum(self):
        candidate = make_candidate(skills=["Python"], available_for_opportunities=False)
        result = score_match(candidate, make_job())
        # 0.5*0.45 + 1*0.25 + 1*0.20 + 0.5*0.10
        assert result.percentage == 72.5
        assert result.level == "good"
        assert result.missing_skills == ["sql"]

    def test_percentage_is_clamped(self):
        weights = {"skills": 2.0, "experience": 1.0, "location": 1.0, "availability": 1.0}
        result = score_match(make_candidate(), make_job(), weights)
        assert result.percentage == 100.0

    def test_percentage_never_negative(self):
        candidate = make_candidate(skills=[], years_experience=0, location="Paris")
        result = score_match(candidate, make_job(), {"skills": -1.0})
        assert 0.0 <= result.percentage <= 100.0

    def test_more_matching_skills_never_scores_lower(self):
        job = make_job(required_skills=["python", "sql", "aws", "docker"])
        skills = []
        previous = -1.0
        for skill in ["python", "sql", "aws", "docker"]:
            skills.append(skill)
            result = score_match(make_candidate(skills=list(skills)), job)
            assert result.percentage >= previous
            previous = result.percentage

    def test_missing_one_required_skill_scores_lower(self):
        job = make_job(required_skills=["React", "Node", "SQL"])
        partial = score_match(make_candidate(skills=["React", "Node"]), job)
        full = score_match(make_candidate(skills=["React", "Node", "SQL"]), job)
        assert partial.percentage < full.percentage
        assert partial.missing_skills == ["sql"]

    def test_default_weights_sum_to_one(self):
        assert sum(DEFAULT_WEIGHTS.values()) == pytest.approx(1.0)

    def test_deterministic(self):
        first = score_match(make_candidate(), make_job())
        second = score_match(make_candidate(), make_job())
        assert first == second


class TestRankJobs:
    """Tests for batch ranking and bucketing."""

    def test_only_active_jobs_are_scored(self):
        jobs = [make_job("open"), make_job("closed", status="Closed")]
        ranked = rank_jobs(make_candidate(), jobs)
        assert [r.job.id for r in ranked.top] == ["open"]
        assert ranked.summary["total_active_jobs"] == 1

    def test_buckets_of_five(self):
        jobs = [
            make_job(f"job-{i:02d}", required_skills=[], location="Remote",
                     min_experience=None, max_experience=None,
                     posted_at=POSTED - timedelta(hours=i))
            for i in range(12)
        ]
        ranked = rank_jobs(make_candidate(), jobs)

        assert [r.job.id for r in ranked.top] == [f"job-{i:02d}" for i in range(5)]
        assert [r.job.id for r in ranked.good] == [f"job-{i:02d}" for i in range(5, 10)]
        assert [r.job.id for r in ranked.other] == ["job-10", "job-11"]
        assert ranked.summary["total_recommended"] == 12

    def test_sorted_by_score_then_recency_then_id(self):
        jobs = [
            make_job("b-older", posted_at=POSTED - timedelta(days=1)),
            make_job("z-newer", posted_at=POSTED),
            make_job("a-newer", posted_at=POSTED),
            make_job("weaker", required_skills=["python", "go"]),
        ]
        ranked = rank_jobs(make_candidate(), jobs)
        assert [r.job.id for r in ranked.top] == ["a-newer", "z-newer", "b-older", "weaker"]

    def test_already_applied_bucket_regardless_of_score(self):
        jobs = [
            make_job("applied-strong"),
            make_job("applied-weak", required_skills=["rust"], location="Tokyo"),
            make_job("fresh"),
        ]
        ranked = rank_jobs(make_candidate(), jobs, applied_job_ids={"applied-strong", "applied-weak"})

        assert {r.job.id for r in ranked.already_applied} == {"applied-strong", "applied-weak"}
        assert [r.job.id for r in ranked.top] == ["fresh"]
        assert ranked.summary["already_applied"] == 2
        assert ranked.summary["total_recommended"] == 1

    def test_poor_matches_are_counted_not_listed(self):
        poor = make_job("poor", required_skills=["rust", "go"], location="Tokyo",
                        min_experience=10, max_experience=None)
        ranked = rank_jobs(make_candidate(available_for_opportunities=False), [poor, make_job("good")])

        listed = [r.job.id for r in ranked.top + ranked.good + ranked.other]
        assert listed == ["good"]
        assert ranked.summary["poor_matches"] == 1
        assert ranked.summary["excellent_matches"] == 1
        assert ranked.summary["total_active_jobs"] == 2

    def test_no_jobs(self):
        ranked = rank_jobs(make_candidate(), [])
        assert ranked.top == []
        assert ranked.summary["total_active_jobs"] == 0
        assert ranked.summary["total_recommended"] == 0
