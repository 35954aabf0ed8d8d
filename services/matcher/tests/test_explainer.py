from __future__ import annotations

import asyncio
import json
from typing import Any

import httpx
import matcher.explainer as explainer_module
import pytest
from matcher.explainer import (
    ExplainerError,
    MatchExplainer,
    extract_response_text,
    fallback_explanation,
    parse_explanation,
)
from matcher.scoring import CandidateProfile, CandidateSkill, JobPosting, MatchResult, score

pytestmark = pytest.mark.unit

JOB = JobPosting(
    id="job-1",
    title="Frontend Engineer",
    required_skills=("React", "TypeScript"),
    experience_level="mid",
)
CANDIDATE = CandidateProfile(
    id="cand-1",
    extracted_skills=(CandidateSkill("React", 0.9),),
    experience_level="mid",
    personality_scores={"teamwork": 100, "creativity": 80},
)
RESULT = score(JOB, CANDIDATE)

EXPLANATION_JSON = {
    "overallMatchPercentage": 78,
    "skillMatches": [
        {
            "skill": "React",
            "matched": True,
            "relevance": 90,
            "weight": 0.6,
            "reasoning": "Daily React work",
        }
    ],
    "experienceAssessment": {
        "requiredLevel": "mid",
        "candidateLevel": "mid",
        "match": "qualified",
        "reasoning": "Levels align",
    },
    "personalityFit": {"score": 75, "reasoning": "Collaborative"},
    "strengths": ["React"],
    "concerns": ["No TypeScript listed"],
    "recommendation": "Interview",
}


def generated_payload(text: str) -> dict[str, Any]:
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


class StubResponse:
    def __init__(self, status_code: int, payload: Any) -> None:
        self.status_code = status_code
        self._payload = payload

    def json(self) -> Any:
        return self._payload


class StubAsyncClient:
    def __init__(self, response: StubResponse, capture: dict[str, Any], delay: float = 0) -> None:
        self.response = response
        self.capture = capture
        self.delay = delay

    async def __aenter__(self) -> StubAsyncClient:
        return self

    async def __aexit__(self, *_: object) -> bool:
        return False

    async def post(
        self,
        url: str,
        json: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> StubResponse:
        self.capture["url"] = url
        self.capture["json"] = json
        self.capture["headers"] = headers or {}
        if self.delay:
            await asyncio.sleep(self.delay)
        return self.response


class ErroringAsyncClient:
    async def __aenter__(self) -> ErroringAsyncClient:
        return self

    async def __aexit__(self, *_: object) -> bool:
        return False

    async def post(
        self,
        url: str,
        json: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> StubResponse:
        del json, headers
        request = httpx.Request("POST", url)
        raise httpx.ConnectError("connection failed", request=request)


def install_client(monkeypatch: pytest.MonkeyPatch, client: object) -> None:
    monkeypatch.setattr(explainer_module.httpx, "AsyncClient", lambda *_, **__: client)


@pytest.mark.asyncio
async def test_explain_parses_json_wrapped_in_markdown(monkeypatch: pytest.MonkeyPatch) -> None:
    capture: dict[str, Any] = {}
    text = f"```json\n{json.dumps(EXPLANATION_JSON)}\n```"
    install_client(monkeypatch, StubAsyncClient(StubResponse(200, generated_payload(text)), capture))
    explainer = MatchExplainer(api_key="secret-key", url="https://llm.example.test/generate")

    explanation = await explainer.explain(JOB, CANDIDATE, RESULT)

    assert explanation.overall_match_percentage == 78
    assert explanation.skill_matches[0].skill == "React"
    assert explanation.experience_assessment.match == "qualified"
    assert capture["url"] == "https://llm.example.test/generate"
    assert capture["headers"]["x-goog-api-key"] == "secret-key"
    prompt = capture["json"]["contents"][0]["parts"][0]["text"]
    assert "React, TypeScript" in prompt
    assert f"Overall: {RESULT.overall}" in prompt


@pytest.mark.asyncio
async def test_explain_raises_when_disabled() -> None:
    explainer = MatchExplainer(api_key="  ")

    assert explainer.enabled is False
    with pytest.raises(ExplainerError):
        await explainer.explain(JOB, CANDIDATE, RESULT)


@pytest.mark.asyncio
async def test_explain_raises_on_upstream_error_status(monkeypatch: pytest.MonkeyPatch) -> None:
    install_client(monkeypatch, StubAsyncClient(StubResponse(503, {"error": "overloaded"}), {}))
    explainer = MatchExplainer(api_key="secret-key")

    with pytest.raises(ExplainerError, match="HTTP 503"):
        await explainer.explain(JOB, CANDIDATE, RESULT)


@pytest.mark.asyncio
async def test_explain_wraps_transport_errors_without_leaking_key(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    install_client(monkeypatch, ErroringAsyncClient())
    explainer = MatchExplainer(api_key="secret-key")

    with pytest.raises(ExplainerError) as excinfo:
        await explainer.explain(JOB, CANDIDATE, RESULT)

    assert "ConnectError" in str(excinfo.value)
    assert "secret-key" not in str(excinfo.value)


@pytest.mark.asyncio
async def test_explain_is_bounded_by_timeout(monkeypatch: pytest.MonkeyPatch) -> None:
    response = StubResponse(200, generated_payload(json.dumps(EXPLANATION_JSON)))
    install_client(monkeypatch, StubAsyncClient(response, {}, delay=1.0))
    explainer = MatchExplainer(api_key="secret-key", timeout_seconds=0.01)

    with pytest.raises(ExplainerError, match="timed out"):
        await explainer.explain(JOB, CANDIDATE, RESULT)


def test_extract_response_text_rejects_missing_text() -> None:
    with pytest.raises(ExplainerError):
        extract_response_text({"candidates": []})
    with pytest.raises(ExplainerError):
        extract_response_text(generated_payload("   "))


def test_parse_explanation_rejects_text_without_json() -> None:
    with pytest.raises(ExplainerError, match="No JSON object"):
        parse_explanation("I cannot help with that.")


def test_parse_explanation_rejects_out_of_range_values() -> None:
    invalid = dict(EXPLANATION_JSON, overallMatchPercentage=140)
    with pytest.raises(ExplainerError, match="failed validation"):
        parse_explanation(json.dumps(invalid))


def test_fallback_explanation_uses_mechanical_score_and_trait_mean() -> None:
    explanation = fallback_explanation(JOB, CANDIDATE, RESULT)

    assert explanation.overall_match_percentage == RESULT.overall
    assert explanation.skill_matches == []
    assert explanation.experience_assessment.required_level == "mid"
    assert explanation.experience_assessment.candidate_level == "To be determined"
    assert explanation.personality_fit.score == 90
    assert explanation.recommendation.startswith("Review candidate profile")


def test_fallback_explanation_defaults_without_personality_or_level() -> None:
    result = MatchResult(skills_match=0, experience_match=50, overall=15)
    explanation = fallback_explanation(JobPosting(), CandidateProfile(), result)

    assert explanation.personality_fit.score == 75
    assert explanation.experience_assessment.required_level == "Not specified"
    assert explanation.model_dump(by_alias=True)["overallMatchPercentage"] == 15
