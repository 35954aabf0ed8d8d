"""Deterministic job/candidate match scoring.

`score` is a pure function: identical inputs always produce the same
`MatchResult`, and incomplete inputs resolve to fixed fallback scores instead
of raising. Raw skill entries are normalized into `CandidateSkill` values by
`normalize_candidate_skills` before they reach the scorer.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from common.utils import clamp, normalize_whitespace

DEFAULT_SKILL_CONFIDENCE = 0.8
SKILLS_WEIGHT = 7
EXPERIENCE_WEIGHT = 3
NEUTRAL_EXPERIENCE_SCORE = 50
PARTIAL_SKILLS_SCORE = 50
EXPERIENCE_SCORE_BY_DISTANCE = (100, 80, 60)
FAR_EXPERIENCE_SCORE = 40


class ExperienceLevel(str, Enum):
    ENTRY = "entry"
    MID = "mid"
    SENIOR = "senior"
    LEAD = "lead"
    EXECUTIVE = "executive"

    @property
    def rank(self) -> int:
        return list(ExperienceLevel).index(self)


@dataclass(frozen=True)
class CandidateSkill:
    name: str
    confidence: float | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "confidence", coerce_confidence(self.confidence))

    @property
    def weight(self) -> float:
        if self.confidence is None:
            return DEFAULT_SKILL_CONFIDENCE
        return self.confidence


@dataclass(frozen=True)
class JobPosting:
    required_skills: tuple[str, ...] = ()
    experience_level: str | None = None
    id: str | None = None
    title: str | None = None
    company: str | None = None
    location: str | None = None
    remote: bool = False
    salary_min: float | None = None
    salary_max: float | None = None
    posted_at: str | None = None


@dataclass(frozen=True)
class CandidateProfile:
    extracted_skills: tuple[CandidateSkill, ...] = ()
    experience_level: str | None = None
    personality_scores: Mapping[str, int] = field(default_factory=dict)
    id: str | None = None


@dataclass(frozen=True)
class MatchResult:
    skills_match: int
    experience_match: int
    overall: int


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def parse_experience_level(value: Any) -> ExperienceLevel | None:
    if not isinstance(value, str):
        return None
    try:
        return ExperienceLevel(value.strip().lower())
    except ValueError:
        return None


def coerce_confidence(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return float(clamp(value, 0.0, 1.0))


def normalize_candidate_skills(raw_skills: Iterable[Any] | None) -> tuple[CandidateSkill, ...]:
    """Build `CandidateSkill` values from plain strings or ``{skill, confidence}`` objects.

    Entries without a usable name are dropped. `CandidateSkill` treats confidences
    that are not finite numbers as unset and clamps numeric ones to [0, 1].
    """
    skills: list[CandidateSkill] = []
    for entry in raw_skills or ():
        if isinstance(entry, CandidateSkill):
            name, confidence = entry.name, entry.confidence
        elif isinstance(entry, str):
            name, confidence = entry, None
        elif isinstance(entry, Mapping):
            name = entry.get("skill", entry.get("name"))
            confidence = entry.get("confidence")
        else:
            continue
        if not isinstance(name, str) or not name.strip():
            continue
        skills.append(CandidateSkill(name=normalize_whitespace(name), confidence=confidence))
    return tuple(skills)


def normalize_required_skills(raw_skills: Iterable[Any] | None) -> tuple[str, ...]:
    return tuple(
        normalize_whitespace(skill)
        for skill in raw_skills or ()
        if isinstance(skill, str) and skill.strip()
    )


def find_matching_skill(
    required_skill: str,
    candidate_skills: Sequence[CandidateSkill],
) -> CandidateSkill | None:
    required = required_skill.lower()
    for candidate_skill in candidate_skills:
        name = candidate_skill.name.lower()
        if required in name or name in required:
            return candidate_skill
    return None


def skills_match_score(
    required_skills: Sequence[str],
    candidate_skills: Sequence[CandidateSkill],
) -> int:
    if not required_skills or not candidate_skills:
        return PARTIAL_SKILLS_SCORE if candidate_skills else 0

    matched_weight = 0.0
    total_weight = 0
    for required_skill in required_skills:
        match = find_matching_skill(required_skill, candidate_skills)
        if match is not None:
            matched_weight += match.weight
        total_weight += 1

    if total_weight == 0:
        return 0
    return int(clamp(round_half_up(100 * matched_weight / total_weight), 0, 100))


def experience_match_score(job_level: Any, candidate_level: Any) -> int:
    if not job_level or not candidate_level:
        return NEUTRAL_EXPERIENCE_SCORE

    parsed_job_level = parse_experience_level(job_level)
    parsed_candidate_level = parse_experience_level(candidate_level)
    if parsed_job_level is None or parsed_candidate_level is None:
        return NEUTRAL_EXPERIENCE_SCORE

    level_diff = abs(parsed_job_level.rank - parsed_candidate_level.rank)
    if level_diff < len(EXPERIENCE_SCORE_BY_DISTANCE):
        return EXPERIENCE_SCORE_BY_DISTANCE[level_diff]
    return FAR_EXPERIENCE_SCORE


def combine_scores(skills_match: int, experience_match: int) -> int:
    # Integer arithmetic keeps half-up rounding exact for the 70/30 split.
    weighted = SKILLS_WEIGHT * skills_match + EXPERIENCE_WEIGHT * experience_match
    return (weighted + 5) // 10


def score(job: JobPosting, candidate: CandidateProfile) -> MatchResult:
    skills_match = skills_match_score(job.required_skills, candidate.extracted_skills)
    experience_match = experience_match_score(job.experience_level, candidate.experience_level)
    return MatchResult(
        skills_match=skills_match,
        experience_match=experience_match,
        overall=combine_scores(skills_match, experience_match),
    )
