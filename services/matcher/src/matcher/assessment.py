from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from matcher.scoring import round_half_up

MAX_ANSWER = 5

# Trait -> zero-based indices of the questions that measure it.
TRAIT_QUESTIONS: Mapping[str, tuple[int, ...]] = {
    "analytical_thinking": (0, 2, 6, 8),
    "teamwork": (1, 5, 7),
    "creativity": (2, 3),
    "initiative": (3, 4),
    "adaptability": (4, 9),
    "empathy": (5, 6),
}


@dataclass(frozen=True)
class AssessmentResult:
    scores: dict[str, int]
    overall_score: int


def usable_answer(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value) or value <= 0:
        return None
    return float(min(value, MAX_ANSWER))


def trait_score(answers: Sequence[Any], question_indices: Sequence[int]) -> int:
    """Mean of the answered questions on the 1-5 scale, as a percentage.

    Unanswered, non-positive or non-numeric answers are skipped; a trait with
    no usable answers scores 0.
    """
    relevant: list[float] = []
    for index in question_indices:
        answer = usable_answer(answers[index]) if index < len(answers) else None
        if answer is not None:
            relevant.append(answer)
    if not relevant:
        return 0
    return round_half_up(sum(relevant) * 100 / (len(relevant) * MAX_ANSWER))


def score_assessment(answers: Sequence[Any] | None) -> AssessmentResult:
    answers = answers or ()
    scores = {trait: trait_score(answers, indices) for trait, indices in TRAIT_QUESTIONS.items()}
    overall = round_half_up(sum(scores.values()) / len(scores))
    return AssessmentResult(scores=scores, overall_score=overall)
