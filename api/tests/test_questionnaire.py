import pytest

from stellr.services.questionnaire import (
    answer_similarity,
    calculate_questionnaire_compatibility,
    parse_responses,
    question_score,
)


def _answers(*pairs):
    return [{"category": c, "answer": a} for c, a in pairs]


def test_identical_answers_score_100():
    a = _answers(("personality", "introvert"), ("personality", "dogs"), ("personality", "yes"))
    result = calculate_questionnaire_compatibility(a, list(a))
    assert result["score"] == 100
    assert result["grade"] == "A"
    assert result["pairs_compared"] == 3


def test_no_usable_pairs_scores_zero_without_data():
    for a, b in (([], []), (None, None), (_answers(("values", "x")), []), ([{"answer": None}], [{"answer": "y"}])):
        result = calculate_questionnaire_compatibility(a, b)
        assert result["score"] == 0
        assert result["has_data"] is False


def test_similarity_bands():
    assert question_score("same", "same") == 100
    assert question_score("outdoor hiking", "outdoor hikes") == 80
    assert question_score("morning", "evening") == 60
    assert question_score("yes", "no") == 30
    assert answer_similarity("Cats ", "cats") == 1.0


def test_category_weights_apply():
    a = _answers(("values", "yes"), ("lifestyle", "city"))
    b = _answers(("values", "no"), ("lifestyle", "city"))
    result = calculate_questionnaire_compatibility(a, b)
    assert result["score"] == pytest.approx((30 * 1.5 + 100 * 1.2) / 2.7, abs=0.01)
    assert result["category_scores"] == {"lifestyle": 100.0, "values": 30.0}


def test_pairs_positionally_up_to_shorter_length():
    a = _answers(("personality", "a"), ("personality", "b"), ("personality", "c"))
    b = _answers(("personality", "a"), ("personality", "b"))
    assert calculate_questionnaire_compatibility(a, b)["pairs_compared"] == 2


def test_category_comes_from_first_user_only():
    a = [{"answer": "yes"}, {"category": "values", "answer": "no"}]
    b = [{"category": "values", "answer": "yes"}, {"category": "hobbies", "answer": "no"}]
    result = calculate_questionnaire_compatibility(a, b)
    assert result["has_data"] is True
    assert result["pairs_compared"] == 2
    assert result["category_scores"] == {"general": 100.0, "values": 100.0}


def test_unlisted_and_blank_categories_weigh_one():
    answers = [{"category": "", "answer": "yes"}, {"category": "Religion", "answer": "dogs"}]
    result = calculate_questionnaire_compatibility(answers, [dict(a) for a in answers])
    assert result["score"] == 100
    assert result["pairs_compared"] == 2
    assert result["has_data"] is True

    a = _answers(("", "yes"), ("hobbies", "city"))
    b = _answers(("values", "no"), ("values", "city"))
    mixed = calculate_questionnaire_compatibility(a, b)
    assert mixed["score"] == pytest.approx((30 * 1.0 + 100 * 1.0) / 2.0, abs=0.01)
    assert mixed["category_scores"] == {"general": 30.0, "hobbies": 100.0}


def test_parse_keeps_positions_for_bad_entries():
    parsed = parse_responses(["plain", 42, {"category": "  Astral ", "answer": "x"}, {"answer": 7}])
    assert parsed[0].answer == "plain"
    assert parsed[1] is None
    assert parsed[2].category == "astral"
    assert parsed[3].answer == "7"
