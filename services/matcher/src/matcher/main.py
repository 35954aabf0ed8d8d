from __future__ import annotations

import json
import logging
import math
import os
import random
import threading
import time
import uuid
from contextlib import asynccontextmanager
from typing import Any

from common.utils import clamp, new_error_id, now_utc_iso
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from starlette.routing import Match

from matcher.assessment import score_assessment
from matcher.completeness import (
    SeekerProfile,
    completeness_description,
    completion_suggestions,
    profile_completeness,
)
from matcher.explainer import (
    DEFAULT_EXPLAINER_URL,
    DEFAULT_TIMEOUT_SECONDS,
    ExplainerError,
    MatchExplainer,
    MatchExplanation,
    fallback_explanation,
)
from matcher.extraction import extract_experience_level, extract_skills
from matcher.recommendations import RecommendationPreferences, recommend_jobs
from matcher.scoring import (
    CandidateProfile,
    JobPosting,
    MatchResult,
    normalize_candidate_skills,
    normalize_required_skills,
    round_half_up,
    score,
)

LOGGER = logging.getLogger("jobmatch.matcher")
FALLBACK_WARNING = "Analysis completed with limited details"
UNMATCHED_ROUTE = "<unmatched>"


def parse_timeout_seconds(raw: str) -> float:
    value = float(raw)
    if not math.isfinite(value) or value <= 0:
        raise ValueError("MATCHER_EXPLAINER_TIMEOUT_SECONDS must be a positive number.")
    return value


def parse_seed(raw: str) -> int | None:
    raw = raw.strip()
    if not raw:
        return None
    return int(raw)


def coerce_personality_scores(raw: dict[str, Any]) -> dict[str, int]:
    scores: dict[str, int] = {}
    for trait, value in raw.items():
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            continue
        if not math.isfinite(value):
            continue
        scores[str(trait)] = int(clamp(round_half_up(value), 0, 100))
    return scores


def coerce_level(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def coerce_number(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value) if math.isfinite(value) else None


def coerce_identifier(value: Any) -> str | None:
    if isinstance(value, str):
        return value
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return None


def text_or_none(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def list_or_empty(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def mapping_or_empty(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def flag_or_false(value: Any) -> bool:
    return value if isinstance(value, bool) else False


class JobPayload(BaseModel):
    id: str | None = None
    title: str | None = None
    company: str | None = None
    location: str | None = None
    remote: bool = False
    salary_min: Any = None
    salary_max: Any = None
    posted_at: str | None = None
    required_skills: list[Any] = Field(default_factory=list)
    experience_level: Any = None

    @field_validator("id", mode="before")
    @classmethod
    def normalize_id(cls, value: Any) -> str | None:
        return coerce_identifier(value)

    @field_validator("title", "company", "location", "posted_at", mode="before")
    @classmethod
    def drop_non_text(cls, value: Any) -> str | None:
        return text_or_none(value)

    @field_validator("remote", mode="before")
    @classmethod
    def normalize_remote(cls, value: Any) -> bool:
        return flag_or_false(value)

    @field_validator("required_skills", mode="before")
    @classmethod
    def normalize_skill_list(cls, value: Any) -> list[Any]:
        return list_or_empty(value)

    def to_job_posting(self) -> JobPosting:
        return JobPosting(
            required_skills=normalize_required_skills(self.required_skills),
            experience_level=coerce_level(self.experience_level),
            id=self.id,
            title=self.title,
            company=self.company,
            location=self.location,
            remote=self.remote,
            salary_min=coerce_number(self.salary_min),
            salary_max=coerce_number(self.salary_max),
            posted_at=self.posted_at,
        )


class CandidatePayload(BaseModel):
    id: str | None = None
    extracted_skills: list[Any] = Field(default_factory=list)
    experience_level: Any = None
    personality_scores: dict[str, Any] = Field(default_factory=dict)

    @field_validator("id", mode="before")
    @classmethod
    def normalize_id(cls, value: Any) -> str | None:
        return coerce_identifier(value)

    @field_validator("extracted_skills", mode="before")
    @classmethod
    def normalize_skill_list(cls, value: Any) -> list[Any]:
        return list_or_empty(value)

    @field_validator("personality_scores", mode="before")
    @classmethod
    def normalize_personality_scores(cls, value: Any) -> dict[str, Any]:
        return mapping_or_empty(value)

    def to_candidate_profile(self) -> CandidateProfile:
        return CandidateProfile(
            extracted_skills=normalize_candidate_skills(self.extracted_skills),
            experience_level=coerce_level(self.experience_level),
            personality_scores=coerce_personality_scores(self.personality_scores),
            id=self.id,
        )


class PreferencesPayload(BaseModel):
    location: str | None = None
    remote_work: bool = False
    expected_salary: float | None = Field(default=None, ge=0)

    @field_validator("location", mode="before")
    @classmethod
    def drop_non_text(cls, value: Any) -> str | None:
        return text_or_none(value)

    @field_validator("remote_work", mode="before")
    @classmethod
    def normalize_remote_work(cls, value: Any) -> bool:
        return flag_or_false(value)

    @field_validator("expected_salary", mode="before")
    @classmethod
    def normalize_expected_salary(cls, value: Any) -> float | None:
        return coerce_number(value)

    def to_preferences(self) -> RecommendationPreferences:
        return RecommendationPreferences(
            location=self.location,
            remote_work=self.remote_work,
            expected_salary=self.expected_salary,
        )


class MatchRequest(BaseModel):
    job: JobPayload
    candidate: CandidatePayload


class RecommendationsRequest(BaseModel):
    candidate: CandidatePayload
    jobs: list[JobPayload] = Field(default_factory=list)
    preferences: PreferencesPayload = Field(default_factory=PreferencesPayload)
    limit: int = Field(default=10, ge=1, le=50)

    @field_validator("jobs", mode="before")
    @classmethod
    def keep_job_objects(cls, value: Any) -> list[Any]:
        return [job for job in list_or_empty(value) if isinstance(job, (dict, JobPayload))]

    @field_validator("preferences", mode="before")
    @classmethod
    def normalize_preferences(cls, value: Any) -> Any:
        return value if isinstance(value, (dict, PreferencesPayload)) else {}


class ProfileAnalysisRequest(BaseModel):
    resume_text: str

    @field_validator("resume_text")
    @classmethod
    def require_text(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Resume text is required")
        return value


class AssessmentRequest(BaseModel):
    answers: list[Any] = Field(default_factory=list)

    @field_validator("answers", mode="before")
    @classmethod
    def normalize_answers(cls, value: Any) -> list[Any]:
        return list_or_empty(value)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MatchBreakdown(CamelModel):
    skills_match: int
    experience_match: int


class MatchScoreResponse(CamelModel):
    job_id: str | None = None
    candidate_id: str | None = None
    match_score: int
    breakdown: MatchBreakdown


class MatchExplanationResponse(MatchScoreResponse):
    success: bool = True
    match_explanation: MatchExplanation
    warning: str | None = None
    error_id: str | None = None


class RecommendedJob(CamelModel):
    id: str | None = None
    title: str | None = None
    company: str | None = None
    location: str | None = None
    match_score: int
    relevance_score: int
    reasoning: str
    breakdown: MatchBreakdown


class RecommendationsResponse(CamelModel):
    generated_at: str
    total_analyzed: int
    recommendations: list[RecommendedJob]


class CompletenessResponse(CamelModel):
    completeness: int
    description: str
    suggestions: list[str]


class ExtractedSkillResponse(CamelModel):
    skill: str
    confidence: float
    category: str


class ProfileAnalysisResponse(CamelModel):
    analyzed_at: str
    experience_level: str
    total_skills: int
    extracted_skills: list[ExtractedSkillResponse]


class AssessmentResponse(CamelModel):
    success: bool = True
    scores: dict[str, int]
    overall_score: int


class MetricsSnapshot(BaseModel):
    generated_at: str
    totals: dict[str, int]
    routes: dict[str, dict[str, float | int]]


class RouteMetrics:
    __slots__ = ("count", "status_buckets", "latency_ms_sum", "latency_ms_max")

    def __init__(self) -> None:
        self.count = 0
        self.status_buckets = {"2xx": 0, "4xx": 0, "5xx": 0}
        self.latency_ms_sum = 0.0
        self.latency_ms_max = 0.0

    def as_dict(self) -> dict[str, float | int]:
        return {
            "count": self.count,
            **self.status_buckets,
            "latency_ms_avg": round(self.latency_ms_sum / self.count, 3) if self.count else 0.0,
            "latency_ms_max": round(self.latency_ms_max, 3),
        }


class MetricsStore:
    """Request counters keyed by ``"<METHOD> <route template>"``.

    Requests that match no route share the ``UNMATCHED_ROUTE`` key, so
    arbitrary paths cannot grow the store.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._totals = {"requests": 0, "errors": 0, "explanation_fallbacks": 0}
        self._routes: dict[str, RouteMetrics] = {}

    def observe(self, *, method: str, route: str, status_code: int, duration_ms: float) -> None:
        bucket = f"{status_code // 100}xx"
        with self._lock:
            self._totals["requests"] += 1
            if status_code >= 400:
                self._totals["errors"] += 1
            metrics = self._routes.setdefault(f"{method} {route}", RouteMetrics())
            metrics.count += 1
            if bucket in metrics.status_buckets:
                metrics.status_buckets[bucket] += 1
            metrics.latency_ms_sum += duration_ms
            metrics.latency_ms_max = max(metrics.latency_ms_max, duration_ms)

    def record_explanation_fallback(self) -> None:
        with self._lock:
            self._totals["explanation_fallbacks"] += 1

    def snapshot(self) -> MetricsSnapshot:
        with self._lock:
            return MetricsSnapshot(
                generated_at=now_utc_iso(),
                totals=dict(self._totals),
                routes={key: metrics.as_dict() for key, metrics in self._routes.items()},
            )


def route_template(request: Request) -> str:
    route = request.scope.get("route")
    if route is None:
        partial = None
        for candidate in request.app.router.routes:
            match, _ = candidate.matches(request.scope)
            if match is Match.FULL:
                route = candidate
                break
            if match is Match.PARTIAL and partial is None:
                partial = candidate
        route = route or partial
    return getattr(route, "path", None) or UNMATCHED_ROUTE


def build_breakdown(result: MatchResult) -> MatchBreakdown:
    return MatchBreakdown(
        skills_match=result.skills_match,
        experience_match=result.experience_match,
    )


def create_app(
    *,
    explainer: MatchExplainer | None = None,
    rng: random.Random | None = None,
) -> FastAPI:
    resolved_explainer = explainer or MatchExplainer(
        api_key=os.getenv("MATCHER_EXPLAINER_API_KEY", ""),
        url=os.getenv("MATCHER_EXPLAINER_URL", "").strip() or DEFAULT_EXPLAINER_URL,
        timeout_seconds=parse_timeout_seconds(
            os.getenv("MATCHER_EXPLAINER_TIMEOUT_SECONDS", str(DEFAULT_TIMEOUT_SECONDS))
        ),
    )
    resolved_rng = rng or random.Random(parse_seed(os.getenv("MATCHER_RECOMMENDATION_SEED", "")))

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.metrics = MetricsStore()
        app.state.explainer = resolved_explainer
        app.state.rng = resolved_rng
        if not resolved_explainer.enabled:
            LOGGER.warning(
                json.dumps(
                    {
                        "event": "explainer_disabled",
                        "detail": "MATCHER_EXPLAINER_API_KEY is not set; fallback explanations only",
                    }
                )
            )
        yield

    app = FastAPI(title="JobMatch Matcher", version="0.1.0", lifespan=lifespan)

    @app.middleware("http")
    async def observability_middleware(request: Request, call_next):
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = request_id
        started = time.perf_counter()

        def finish(status_code: int) -> dict[str, Any]:
            duration_ms = (time.perf_counter() - started) * 1000
            route = route_template(request)
            request.app.state.metrics.observe(
                method=request.method,
                route=route,
                status_code=status_code,
                duration_ms=duration_ms,
            )
            return {
                "event": "request_complete",
                "request_id": request_id,
                "method": request.method,
                "route": route,
                "path": request.url.path,
                "status_code": status_code,
                "duration_ms": round(duration_ms, 3),
                "source_ip": request.client.host if request.client else None,
            }

        try:
            response = await call_next(request)
        except Exception as exc:
            LOGGER.exception(json.dumps({**finish(500), "error": str(exc)}))
            return JSONResponse(
                status_code=500,
                content={"detail": "Internal Server Error", "request_id": request_id},
                headers={"x-request-id": request_id},
            )

        response.headers["x-request-id"] = request_id
        LOGGER.info(json.dumps(finish(response.status_code)))
        return response

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok", "service": "matcher"}

    @app.get("/metrics", response_model=MetricsSnapshot)
    async def metrics(request: Request) -> MetricsSnapshot:
        return request.app.state.metrics.snapshot()

    @app.post("/match-score", response_model=MatchScoreResponse)
    async def match_score(payload: MatchRequest) -> MatchScoreResponse:
        result = score(payload.job.to_job_posting(), payload.candidate.to_candidate_profile())
        return MatchScoreResponse(
            job_id=payload.job.id,
            candidate_id=payload.candidate.id,
            match_score=result.overall,
            breakdown=build_breakdown(result),
        )

    @app.post("/match-explanation", response_model=MatchExplanationResponse)
    async def match_explanation(
        payload: MatchRequest,
        request: Request,
    ) -> MatchExplanationResponse:
        job = payload.job.to_job_posting()
        candidate = payload.candidate.to_candidate_profile()
        result = score(job, candidate)

        warning: str | None = None
        error_id: str | None = None
        try:
            explanation = await request.app.state.explainer.explain(job, candidate, result)
        except ExplainerError as exc:
            error_id = new_error_id()
            warning = FALLBACK_WARNING
            explanation = fallback_explanation(job, candidate, result)
            request.app.state.metrics.record_explanation_fallback()
            LOGGER.warning(
                json.dumps(
                    {
                        "event": "match_explanation_fallback",
                        "error_id": error_id,
                        "request_id": getattr(request.state, "request_id", None),
                        "job_id": job.id,
                        "candidate_id": candidate.id,
                        "error": str(exc),
                    }
                )
            )

        return MatchExplanationResponse(
            job_id=job.id,
            candidate_id=candidate.id,
            match_score=result.overall,
            breakdown=build_breakdown(result),
            match_explanation=explanation,
            warning=warning,
            error_id=error_id,
        )

    @app.post("/recommendations", response_model=RecommendationsResponse)
    async def recommendations(
        payload: RecommendationsRequest,
        request: Request,
    ) -> RecommendationsResponse:
        ranked = recommend_jobs(
            payload.candidate.to_candidate_profile(),
            [job.to_job_posting() for job in payload.jobs],
            payload.preferences.to_preferences(),
            rng=request.app.state.rng,
            limit=payload.limit,
        )
        return RecommendationsResponse(
            generated_at=now_utc_iso(),
            total_analyzed=len(payload.jobs),
            recommendations=[
                RecommendedJob(
                    id=item.job.id,
                    title=item.job.title,
                    company=item.job.company,
                    location=item.job.location,
                    match_score=item.match.overall,
                    relevance_score=item.relevance_score,
                    reasoning=item.reasoning,
                    breakdown=build_breakdown(item.match),
                )
                for item in ranked
            ],
        )

    @app.post("/profile-completeness", response_model=CompletenessResponse)
    async def completeness(profile: SeekerProfile) -> CompletenessResponse:
        percentage = profile_completeness(profile)
        return CompletenessResponse(
            completeness=percentage,
            description=completeness_description(percentage),
            suggestions=completion_suggestions(profile),
        )

    @app.post("/profile-analysis", response_model=ProfileAnalysisResponse)
    async def profile_analysis(payload: ProfileAnalysisRequest) -> ProfileAnalysisResponse:
        skills = extract_skills(payload.resume_text)
        return ProfileAnalysisResponse(
            analyzed_at=now_utc_iso(),
            experience_level=extract_experience_level(payload.resume_text).value,
            total_skills=len(skills),
            extracted_skills=[
                ExtractedSkillResponse(
                    skill=item.skill,
                    confidence=item.confidence,
                    category=item.category,
                )
                for item in skills
            ],
        )

    @app.post("/assessment/score", response_model=AssessmentResponse)
    async def assessment_score(payload: AssessmentRequest) -> AssessmentResponse:
        result = score_assessment(payload.answers)
        return AssessmentResponse(scores=result.scores, overall_score=result.overall_score)

    return app


app = create_app()
