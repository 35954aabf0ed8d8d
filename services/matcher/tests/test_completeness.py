from __future__ import annotations

import pytest
from matcher.completeness import (
    ExperienceItem,
    LanguageSkillItem,
    ProgrammingSkillItem,
    SeekerProfile,
    SkillItem,
    completeness_description,
    completion_suggestions,
    profile_completeness,
)

pytestmark = pytest.mark.unit


def full_profile() -> SeekerProfile:
    return SeekerProfile(
        first_name="Ada",
        last_name="Lovelace",
        professional_title="Backend Engineer",
        professional_summary="Builds data-heavy APIs.",
        experience=[ExperienceItem(company="Acme", title="Engineer", start_date="2021-01")],
        skills=[SkillItem(name="Python", level="expert")],
        programming_skills=[ProgrammingSkillItem(language="Python", years_of_experience=6)],
        language_skills=[LanguageSkillItem(language="English", proficiency="native")],
    )


def test_missing_profile_scores_zero() -> None:
    assert profile_completeness(None) == 0
    assert completion_suggestions(None) == ["Complete your profile setup to get started"]


def test_empty_profile_scores_zero_and_lists_every_suggestion() -> None:
    profile = SeekerProfile()

    assert profile_completeness(profile) == 0
    assert completion_suggestions(profile) == [
        "Add your full name",
        "Add your professional title",
        "Write a professional summary",
        "Add your work experience",
        "List your skills",
        "Add your programming skills",
        "Add your language skills",
    ]


def test_full_profile_is_complete() -> None:
    profile = full_profile()

    assert profile_completeness(profile) == 100
    assert completion_suggestions(profile) == []


def test_critical_fields_carry_most_weight() -> None:
    profile = SeekerProfile(first_name="Ada", last_name="Lovelace", professional_title="Engineer")
    assert profile_completeness(profile) == 50


def test_name_requires_both_parts() -> None:
    profile = SeekerProfile(first_name="Ada", last_name="  ", professional_title="Engineer")
    assert profile_completeness(profile) == 25
    assert "Add your full name" in completion_suggestions(profile)


def test_optional_lists_round_to_nearest_percent() -> None:
    profile = SeekerProfile(
        first_name="Ada",
        last_name="Lovelace",
        professional_title="Engineer",
        professional_summary="Summary",
        skills=[SkillItem(name="SQL")],
    )
    assert profile_completeness(profile) == 74


def test_incomplete_experience_entries_do_not_count() -> None:
    profile = full_profile().model_copy(
        update={"experience": [ExperienceItem(company="Acme", title="Engineer")]}
    )

    assert profile_completeness(profile) == 91
    assert "Add your work experience" not in completion_suggestions(profile)


def test_language_skill_requires_proficiency() -> None:
    profile = full_profile().model_copy(
        update={"language_skills": [LanguageSkillItem(language="German")]}
    )
    assert profile_completeness(profile) == 91


@pytest.mark.parametrize(
    ("percentage", "expected"),
    [
        (100, "Complete"),
        (85, "Nearly Complete"),
        (60, "Good Progress"),
        (45, "Basic Info Added"),
        (5, "Getting Started"),
        (0, "Not Started"),
    ],
)
def test_completeness_description_bands(percentage: int, expected: str) -> None:
    assert completeness_description(percentage) == expected


def test_profile_validation_treats_null_lists_and_text_as_missing() -> None:
    profile = SeekerProfile.model_validate(
        {
            "experience": None,
            "skills": [None, {"name": "SQL"}],
            "language_skills": {"language": "English"},
            "programming_skills": [{"language": None}],
        }
    )

    assert profile.experience == []
    assert profile.skills == [SkillItem(name="SQL")]
    assert profile.language_skills == []
    assert profile.programming_skills == [ProgrammingSkillItem(language="")]
    assert profile_completeness(profile) == 9


def test_experience_entry_with_null_fields_is_not_counted() -> None:
    profile = SeekerProfile.model_validate(
        {"experience": [{"company": None, "title": "Engineer", "start_date": None, "current": None}]}
    )

    assert profile.experience[0].company == ""
    assert profile.experience[0].current is False
    assert profile_completeness(profile) == 0
