from __future__ import annotations

import difflib
from typing import Any

from pydantic import ValidationError as SchemaError

from ..schemas import QuestionnaireAnswer
from .grades import clamp_score, letter_grade

CATEGORY_WEIGHTS: dict[str, float] = {
    "values": 1.5,
    "lifestyle": 1.2,
    "personality": 1.0,
    "preferences": 0.8,
}
DEFAULT_CATEGORY_WEIGHT = 1.0


def parse_responses(raw: Any) -> list[QuestionnaireAnswer | None]:
    """Positional list of answers; unreadable entries keep their slot as None."""
    if not isinstance(raw, list):
        return []
    out: list[QuestionnaireAnswer | None] = []
    for item in raw:
        if isinstance(item, QuestionnaireAnswer):
            out.append(item)
            continue
        if isinstance(item, str):
            item = {"answer": item}
        if not isinstance(item, dict):
            out.append(None)
            continue
        try:
            out.append(QuestionnaireAnswer.model_validate(item))
        except SchemaError:
            out.append(None)
    return out


def answer_similarity(a: str, b: str) -> float:
    left = a.strip().lower()
    right = b.strip().lower()
    if not left or not right:
        return 0.0
    if left == right:
        return 1.0
    return difflib.SequenceMatcher(a=left, b=right).ratio()


def question_score(a: str, b: str) -> float:
    if a == b:
        return 100.0
    similarity = answer_similarity(a, b)
    if similarity > 0.7:
        return 80.0
    if similarity > 0.4:
        return 60.0
    return 30.0


def category_weight(category: str | None) -> float:
    return CATEGORY_WEIGHTS.get((category or "").lower(), DEFAULT_CATEGORY_WEIGHT)


def calculate_questionnaire_compatibility(raw_a: Any, raw_b: Any) -> dict[str, Any]:
    # TODO: pair by stable question id once responses carry one; positional pairing
    # misaligns reordered or partially answered questionnaires.
    answers_a = parse_responses(raw_a)
    answers_b = parse_responses(raw_b)

    weighted_total = 0.0
    total_weight = 0.0
    pairs_compared = 0
    by_category: dict[str, list[float]] = {}

    for entry_a, entry_b in zip(answers_a, answers_b):
        if entry_a is None or entry_b is None:
            continue
        if entry_a.answer is None or entry_b.answer is None:
            continue
        category = entry_a.category
        weight = category_weight(category)
        score = question_score(entry_a.answer, entry_b.answer)
        weighted_total += score * weight
        total_weight += weight
        pairs_compared += 1
        by_category.setdefault(category or "general", []).append(score)

    if total_weight <= 0:
        return {
            "score": 0.0,
            "grade": letter_grade(0.0),
            "pairs_compared": 0,
            "category_scores": {},
            "has_data": False,
        }

    overall = clamp_score(weighted_total / total_weight)
    return {
        "score": round(overall, 2),
        "grade": letter_grade(overall),
        "pairs_compared": pairs_compared,
        "category_scores": {k: round(sum(v) / len(v), 2) for k, v in sorted(by_category.items())},
        "has_data": True,
    }
