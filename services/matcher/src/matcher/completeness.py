from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

CRITICAL_WEIGHT = 25.0
IMPORTANT_WEIGHT = 15.0
OPTIONAL_WEIGHT = 8.75

SkillLevel = Literal["beginner", "intermediate", "advanced", "expert"]


def text_or_blank(value: Any) -> Any:
    return "" if value is None else value


def entries_or_empty(value: Any) -> Any:
    if not isinstance(value, list):
        return []
    return [item for item in value if item is not None]


class ExperienceItem(BaseModel):
    company: str = ""
    title: str = ""
    start_date: str = ""
    end_date: str | None = None
    description: str | None = None
    current: bool = False

    @field_validator("company", "title", "start_date", mode="before")
    @classmethod
    def blank_missing_text(cls, value: Any) -> Any:
        return text_or_blank(value)

    @field_validator("current", mode="before")
    @classmethod
    def unset_current_is_false(cls, value: Any) -> Any:
        return False if value is None else value


class SkillItem(BaseModel):
    name: str = ""
    level: SkillLevel | None = None

    @field_validator("name", mode="before")
    @classmethod
    def blank_missing_name(cls, value: Any) -> Any:
        return text_or_blank(value)


class ProgrammingSkillItem(BaseModel):
    language: str = ""
    level: SkillLevel | None = None
    years_of_experience: float | None = Field(default=None, ge=0)

    @field_validator("language", mode="before")
    @classmethod
    def blank_missing_language(cls, value: Any) -> Any:
        return text_or_blank(value)


class LanguageSkillItem(BaseModel):
    language: str = ""
    proficiency: Literal["basic", "conversational", "fluent", "native"] | None = None

    @field_validator("language", mode="before")
    @classmethod
    def blank_missing_language(cls, value: Any) -> Any:
        return text_or_blank(value)


class SeekerProfile(BaseModel):
    id: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    professional_title: str | None = None
    professional_summary: str | None = None
    experience: list[ExperienceItem] = Field(default_factory=list)
    skills: list[SkillItem] = Field(default_factory=list)
    programming_skills: list[ProgrammingSkillItem] = Field(default_factory=list)
    language_skills: list[LanguageSkillItem] = Field(default_factory=list)

    @field_validator("experience", "skills", "programming_skills", "language_skills", mode="before")
    @classmethod
    def missing_lists_are_empty(cls, value: Any) -> Any:
        return entries_or_empty(value)


def is_meaningful(value: str | None) -> bool:
    return value is not None and bool(value.strip())


def has_full_name(profile: SeekerProfile) -> bool:
    return is_meaningful(profile.first_name) and is_meaningful(profile.last_name)


def has_valid_experience(profile: SeekerProfile) -> bool:
    return any(
        is_meaningful(item.company) and is_meaningful(item.title) and is_meaningful(item.start_date)
        for item in profile.experience
    )


def has_valid_skills(profile: SeekerProfile) -> bool:
    return any(is_meaningful(item.name) for item in profile.skills)


def has_valid_programming_skills(profile: SeekerProfile) -> bool:
    return any(is_meaningful(item.language) for item in profile.programming_skills)


def has_valid_language_skills(profile: SeekerProfile) -> bool:
    return any(
        is_meaningful(item.language) and item.proficiency is not None
        for item in profile.language_skills
    )


def profile_completeness(profile: SeekerProfile | None) -> int:
    """Weighted completeness percentage in [0, 100].

    Name and title weigh 25 each, the summary 15, and each of the four skill
    and experience lists 8.75.
    """
    if profile is None:
        return 0

    checks = [
        (CRITICAL_WEIGHT, has_full_name(profile)),
        (CRITICAL_WEIGHT, is_meaningful(profile.professional_title)),
        (IMPORTANT_WEIGHT, is_meaningful(profile.professional_summary)),
        (OPTIONAL_WEIGHT, has_valid_experience(profile)),
        (OPTIONAL_WEIGHT, has_valid_skills(profile)),
        (OPTIONAL_WEIGHT, has_valid_programming_skills(profile)),
        (OPTIONAL_WEIGHT, has_valid_language_skills(profile)),
    ]
    total_weight = sum(weight for weight, _ in checks)
    completed_weight = sum(weight for weight, completed in checks if completed)
    percentage = int(completed_weight / total_weight * 100 + 0.5)
    return max(0, min(100, percentage))


def completeness_description(percentage: int) -> str:
    if percentage == 100:
        return "Complete"
    if percentage >= 80:
        return "Nearly Complete"
    if percentage >= 60:
        return "Good Progress"
    if percentage >= 40:
        return "Basic Info Added"
    if percentage > 0:
        return "Getting Started"
    return "Not Started"


def completion_suggestions(profile: SeekerProfile | None) -> list[str]:
    if profile is None:
        return ["Complete your profile setup to get started"]

    suggestions: list[str] = []
    if not has_full_name(profile):
        suggestions.append("Add your full name")
    if not is_meaningful(profile.professional_title):
        suggestions.append("Add your professional title")
    if not is_meaningful(profile.professional_summary):
        suggestions.append("Write a professional summary")
    if not profile.experience:
        suggestions.append("Add your work experience")
    if not profile.skills:
        suggestions.append("List your skills")
    if not profile.programming_skills:
        suggestions.append("Add your programming skills")
    if not profile.language_skills:
        suggestions.append("Add your language skills")
    return suggestions
