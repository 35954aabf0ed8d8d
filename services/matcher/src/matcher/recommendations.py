"""Randomized job recommendations layered on the deterministic match score.

The relevance score adds preference bonuses and a small jitter term to
`score(...).overall`. Pass a seeded `random.Random` for reproducible output.
"""

from __future__ import annotations

import random
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from common.utils import clamp, parse_iso_datetime

from matcher.scoring import (
    CandidateProfile,
    JobPosting,
    MatchResult,
    find_matching_skill,
    parse_experience_level,
    score,
)

PREFERENCE_BONUS = 5
SALARY_TOLERANCE = 0.8
RECENT_POSTING_WINDOW = timedelta(days=7)
JITTER_RANGE = (-5, 4)
MIN_RELEVANCE = 10
MAX_RELEVANCE = 99
DEFAULT_LIMIT = 10
DEFAULT_REASONING = "Based on your profile and preferences"


@dataclass(frozen=True)
class RecommendationPreferences:
    location: str | None = None
    remote_work: bool = False
    expected_salary: float | None = None


@dataclass(frozen=True)
class Recommendation:
    job: JobPosting
    match: MatchResult
    relevance_score: int
    reasons: tuple[str, ...]

    @property
    def reasoning(self) -> str:
        return "; ".join(self.reasons) if self.reasons else DEFAULT_REASONING


def count_matching_skills(job: JobPosting, candidate: CandidateProfile) -> int:
    return sum(
        1
        for required_skill in job.required_skills
        if find_matching_skill(required_skill, candidate.extracted_skills) is not None
    )


def preference_reasons(
    job: JobPosting,
    preferences: RecommendationPreferences,
    *,
    now: datetime,
) -> list[str]:
    reasons: list[str] = []

    preferred_location = (preferences.location or "").strip().lower()
    job_location = (job.location or "").lower()
    location_hit = bool(preferred_location) and preferred_location in job_location
    if location_hit or (job.remote and (preferences.remote_work or bool(preferred_location))):
        reasons.append("Matches location preferences")

    if preferences.expected_salary and job.salary_max is not None:
        if job.salary_max >= preferences.expected_salary * SALARY_TOLERANCE:
            reasons.append("Salary aligns with expectations")

    posted_at = parse_iso_datetime(job.posted_at)
    if posted_at is not None and now - posted_at <= RECENT_POSTING_WINDOW:
        reasons.append("Recently posted position")

    return reasons


def recommend_jobs(
    candidate: CandidateProfile,
    jobs: Sequence[JobPosting],
    preferences: RecommendationPreferences | None = None,
    *,
    rng: random.Random | None = None,
    now: datetime | None = None,
    limit: int = DEFAULT_LIMIT,
) -> list[Recommendation]:
    resolved_preferences = preferences or RecommendationPreferences()
    resolved_rng = rng or random.Random()
    resolved_now = now or datetime.now(UTC)
    candidate_level = parse_experience_level(candidate.experience_level)

    recommendations: list[Recommendation] = []
    for job in jobs:
        match = score(job, candidate)
        reasons: list[str] = []

        matching_skills = count_matching_skills(job, candidate)
        if matching_skills:
            reasons.append(f"{matching_skills} matching skills found")
        if candidate_level is not None and candidate_level == parse_experience_level(
            job.experience_level
        ):
            reasons.append("Experience level matches")

        bonus_reasons = preference_reasons(job, resolved_preferences, now=resolved_now)
        reasons.extend(bonus_reasons)

        relevance = (
            match.overall
            + PREFERENCE_BONUS * len(bonus_reasons)
            + resolved_rng.randint(*JITTER_RANGE)
        )
        recommendations.append(
            Recommendation(
                job=job,
                match=match,
                relevance_score=int(clamp(relevance, MIN_RELEVANCE, MAX_RELEVANCE)),
                reasons=tuple(reasons),
            )
        )

    recommendations.sort(key=lambda item: item.relevance_score, reverse=True)
    return recommendations[: max(limit, 0)]
