"""Keyword-based skill and seniority extraction from free-form resume text."""

from __future__ import annotations

import re
from dataclasses import dataclass

from matcher.scoring import CandidateSkill, ExperienceLevel, round_half_up

MAX_EXTRACTED_SKILLS = 20
BASE_CONFIDENCE = 0.7
CONFIDENCE_PER_MENTION = 0.3
GENERAL_CATEGORY = "general"

SKILL_KEYWORDS = (
    "JavaScript", "TypeScript", "Python", "Java", "C++", "C#", "Ruby", "PHP", "Go", "Rust",
    "React", "Vue.js", "Angular", "Node.js", "Express", "Django", "Flask", "Spring",
    "HTML", "CSS", "SCSS", "Tailwind", "Bootstrap", "jQuery",
    "SQL", "MySQL", "PostgreSQL", "MongoDB", "Redis", "Elasticsearch",
    "AWS", "Azure", "GCP", "Docker", "Kubernetes", "Jenkins", "CI/CD",
    "Git", "GitHub", "GitLab", "Bitbucket", "Jira", "Confluence",
    "Machine Learning", "AI", "Data Science", "TensorFlow", "PyTorch",
    "REST API", "GraphQL", "Microservices", "Agile", "Scrum",
)

SKILL_CATEGORIES = {
    "frontend": (
        "React", "Vue.js", "Angular", "HTML", "CSS", "JavaScript", "TypeScript",
        "jQuery", "Bootstrap", "Tailwind",
    ),
    "backend": (
        "Node.js", "Express", "Python", "Django", "Flask", "Java", "Spring", "C#", "PHP", "Ruby",
    ),
    "database": ("SQL", "MySQL", "PostgreSQL", "MongoDB", "Redis", "Elasticsearch"),
    "cloud": ("AWS", "Azure", "GCP", "Docker", "Kubernetes"),
    "tools": ("Git", "GitHub", "GitLab", "Jenkins", "Jira", "CI/CD"),
    "data": ("Machine Learning", "AI", "Data Science", "TensorFlow", "PyTorch"),
    "api": ("REST API", "GraphQL", "Microservices"),
}

# Lookarounds instead of \b so keywords ending in symbols (C++, C#) still match.
_KEYWORD_PATTERNS = {
    keyword: re.compile(rf"(?<!\w){re.escape(keyword)}(?!\w)", re.IGNORECASE)
    for keyword in SKILL_KEYWORDS
}
_YEARS_PATTERN = re.compile(r"\b(\d+)\+?\s*years?\s*(?:of\s*)?experience", re.IGNORECASE)
_LEVEL_PATTERNS = (
    (
        ExperienceLevel.SENIOR,
        re.compile(r"\b(?:senior|lead|principal|architect|director)", re.IGNORECASE),
    ),
    (
        ExperienceLevel.MID,
        re.compile(r"\b(?:intermediate|mid[\s-]level)", re.IGNORECASE),
    ),
    (
        ExperienceLevel.ENTRY,
        re.compile(
            r"\b(?:junior|entry[\s-]level|intern(?:ship)?s?\b|graduate|new\s*grad)",
            re.IGNORECASE,
        ),
    ),
)


@dataclass(frozen=True)
class ExtractedSkill:
    skill: str
    confidence: float
    category: str

    def as_candidate_skill(self) -> CandidateSkill:
        return CandidateSkill(name=self.skill, confidence=self.confidence)


def categorize_skill(skill: str) -> str:
    for category, skills in SKILL_CATEGORIES.items():
        if skill in skills:
            return category
    return GENERAL_CATEGORY


def mention_confidence(mentions: int) -> float:
    confidence = min(mentions * CONFIDENCE_PER_MENTION + BASE_CONFIDENCE, 1.0)
    return round_half_up(confidence * 100) / 100


def extract_skills(resume_text: str, *, limit: int = MAX_EXTRACTED_SKILLS) -> list[ExtractedSkill]:
    """Find known skill keywords in `resume_text`.

    Matching is case-insensitive on whole words. Results keep keyword order
    within equal confidence and are capped at `limit`.
    """
    found: list[ExtractedSkill] = []
    for keyword, pattern in _KEYWORD_PATTERNS.items():
        mentions = len(pattern.findall(resume_text))
        if mentions:
            found.append(
                ExtractedSkill(
                    skill=keyword,
                    confidence=mention_confidence(mentions),
                    category=categorize_skill(keyword),
                )
            )
    found.sort(key=lambda item: item.confidence, reverse=True)
    return found[:limit]


def extract_experience_level(resume_text: str) -> ExperienceLevel:
    """Infer seniority from resume text, defaulting to mid.

    The first "N years experience" mention decides when present: 8 or more
    is senior, 3 to 7 is mid, fewer is entry. Otherwise title keywords are
    checked from senior down to entry.
    """
    years_match = _YEARS_PATTERN.search(resume_text)
    if years_match is not None:
        years = int(years_match.group(1))
        if years >= 8:
            return ExperienceLevel.SENIOR
        if years >= 3:
            return ExperienceLevel.MID
        return ExperienceLevel.ENTRY

    for level, pattern in _LEVEL_PATTERNS:
        if pattern.search(resume_text):
            return level
    return ExperienceLevel.MID
