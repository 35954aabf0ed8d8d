"""Free-text match explanations from an external generative text endpoint.

The explainer is a fallible collaborator layered on top of `scoring.score`:
every failure surfaces as `ExplainerError`, and callers substitute
`fallback_explanation` so the mechanical score is always served.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from typing import Any, Literal

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from matcher.scoring import CandidateProfile, JobPosting, MatchResult, round_half_up

DEFAULT_EXPLAINER_URL = (
    "https://generativelanguage.googleapis.com/v1beta/models/gemini-1.5-flash:generateContent"
)
DEFAULT_TIMEOUT_SECONDS = 15.0
DEFAULT_PERSONALITY_FIT = 75
LOGGER = logging.getLogger("jobmatch.matcher.explainer")

_JSON_OBJECT_PATTERN = re.compile(r"\{[\s\S]*\}")


class ExplainerError(Exception):
    """Raised when an explanation cannot be produced for any reason."""


class ExplanationModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SkillMatch(ExplanationModel):
    skill: str
    matched: bool
    relevance: float = Field(ge=0, le=100)
    weight: float = Field(ge=0, le=1)
    reasoning: str = ""


class ExperienceAssessment(ExplanationModel):
    required_level: str
    candidate_level: str
    match: Literal["under_qualified", "qualified", "over_qualified"]
    reasoning: str = ""


class PersonalityFit(ExplanationModel):
    score: float = Field(ge=0, le=100)
    reasoning: str = ""


class MatchExplanation(ExplanationModel):
    overall_match_percentage: float = Field(ge=0, le=100)
    skill_matches: list[SkillMatch] = Field(default_factory=list)
    experience_assessment: ExperienceAssessment
    personality_fit: PersonalityFit
    strengths: list[str] = Field(default_factory=list)
    concerns: list[str] = Field(default_factory=list)
    recommendation: str = ""


def personality_fit_score(candidate: CandidateProfile) -> int:
    values = [
        value
        for value in candidate.personality_scores.values()
        if isinstance(value, (int, float)) and not isinstance(value, bool)
    ]
    if not values:
        return DEFAULT_PERSONALITY_FIT
    return round_half_up(sum(values) / len(values))


def fallback_explanation(
    job: JobPosting,
    candidate: CandidateProfile,
    result: MatchResult,
) -> MatchExplanation:
    return MatchExplanation(
        overall_match_percentage=result.overall,
        skill_matches=[],
        experience_assessment=ExperienceAssessment(
            required_level=job.experience_level or "Not specified",
            candidate_level="To be determined",
            match="qualified",
            reasoning="Analysis requires manual review",
        ),
        personality_fit=PersonalityFit(
            score=personality_fit_score(candidate),
            reasoning="Based on personality assessment results",
        ),
        strengths=["Technical background", "Professional experience"],
        concerns=["Requires detailed evaluation"],
        recommendation="Review candidate profile and conduct interview to assess fit",
    )


def build_explanation_prompt(
    job: JobPosting,
    candidate: CandidateProfile,
    result: MatchResult,
) -> str:
    skills = ", ".join(skill.name for skill in candidate.extracted_skills) or "Not specified"
    required = ", ".join(job.required_skills) or "Not specified"
    personality = (
        json.dumps(dict(candidate.personality_scores), sort_keys=True)
        if candidate.personality_scores
        else "Not completed"
    )
    return f"""
You are an expert job matching analyst. Analyze the match between this candidate and job position.

CANDIDATE PROFILE:
- Skills: {skills}
- Experience Level: {candidate.experience_level or "Not specified"}
- Personality Test Results: {personality}

JOB REQUIREMENTS:
- Title: {job.title or "Not specified"}
- Company: {job.company or "Not specified"}
- Required Skills: {required}
- Experience Level: {job.experience_level or "Not specified"}
- Location: {job.location or "Not specified"}
- Remote Work: {"Yes" if job.remote else "No"}

MECHANICAL SCORE:
- Skills Match: {result.skills_match}
- Experience Match: {result.experience_match}
- Overall: {result.overall}

Respond ONLY with valid JSON in this format:
{{
  "overallMatchPercentage": <number 0-100>,
  "skillMatches": [
    {{"skill": "...", "matched": <bool>, "relevance": <0-100>, "weight": <0-1>, "reasoning": "..."}}
  ],
  "experienceAssessment": {{
    "requiredLevel": "...",
    "candidateLevel": "...",
    "match": "under_qualified|qualified|over_qualified",
    "reasoning": "..."
  }},
  "personalityFit": {{"score": <0-100>, "reasoning": "..."}},
  "strengths": ["..."],
  "concerns": ["..."],
  "recommendation": "..."
}}
""".strip()


def extract_response_text(payload: Any) -> str:
    try:
        text = payload["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError) as exc:
        raise ExplainerError("Explainer response has no text content.") from exc
    if not isinstance(text, str) or not text.strip():
        raise ExplainerError("Explainer response has no text content.")
    return text


def parse_explanation(text: str) -> MatchExplanation:
    match = _JSON_OBJECT_PATTERN.search(text)
    if match is None:
        raise ExplainerError("No JSON object found in explainer response.")
    try:
        return MatchExplanation.model_validate_json(match.group(0))
    except ValidationError as exc:
        raise ExplainerError(
            f"Explainer response failed validation ({exc.error_count()} errors)."
        ) from exc


class MatchExplainer:
    def __init__(
        self,
        *,
        api_key: str | None,
        url: str = DEFAULT_EXPLAINER_URL,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self._api_key = (api_key or "").strip() or None
        self.url = url
        self.timeout_seconds = timeout_seconds

    @property
    def enabled(self) -> bool:
        return self._api_key is not None

    async def explain(
        self,
        job: JobPosting,
        candidate: CandidateProfile,
        result: MatchResult,
    ) -> MatchExplanation:
        if not self.enabled:
            raise ExplainerError("Explainer API key is not configured.")

        prompt = build_explanation_prompt(job, candidate, result)
        try:
            payload = await asyncio.wait_for(
                self._generate(prompt),
                timeout=self.timeout_seconds,
            )
        except TimeoutError as exc:
            raise ExplainerError(
                f"Explainer timed out after {self.timeout_seconds:g} seconds."
            ) from exc

        explanation = parse_explanation(extract_response_text(payload))
        LOGGER.info(
            json.dumps(
                {
                    "event": "match_explanation_success",
                    "job_id": job.id,
                    "candidate_id": candidate.id,
                    "match_percentage": explanation.overall_match_percentage,
                }
            )
        )
        return explanation

    async def _generate(self, prompt: str) -> Any:
        body = {"contents": [{"parts": [{"text": prompt}]}]}
        headers = {"content-type": "application/json", "x-goog-api-key": self._api_key or ""}
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                response = await client.post(self.url, json=body, headers=headers)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise ExplainerError(f"Explainer request failed: {type(exc).__name__}") from None

        if response.status_code >= 400:
            raise ExplainerError(f"Explainer returned HTTP {response.status_code}.")
        try:
            return response.json()
        except ValueError as exc:
            raise ExplainerError("Explainer returned a non-JSON body.") from exc
