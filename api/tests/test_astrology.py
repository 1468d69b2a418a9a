import random

from stellr.services.astrology import (
    CORE_BODIES,
    angular_separation,
    calculate_astrological_compatibility,
    find_aspect,
    pair_base_weight,
    parse_natal_chart,
)
from stellr.services.zodiac import ZODIAC_SIGNS


def _chart(**bodies):
    return {"placements": {name: {"sign": sign, "degree": deg} for name, (sign, deg) in bodies.items()}}


def _random_chart(rng: random.Random):
    return _chart(**{b: (rng.choice(ZODIAC_SIGNS), round(rng.uniform(0, 29.9), 2)) for b in CORE_BODIES})


def test_sun_trine_scenario():
    a = _chart(Sun=("Aries", 0))
    b = _chart(Sun=("Leo", 0))
    result = calculate_astrological_compatibility(a, b)
    assert result["has_data"] is True
    assert result["aspects_found"] == 1
    assert result["aspects"][0]["aspect"] == "trine"
    assert result["aspects"][0]["separation"] == 120.0
    assert 50 < result["score"] <= 75
    assert result["grade"] == "C"


def test_score_is_symmetric_for_random_charts():
    rng = random.Random(1234)
    for _ in range(200):
        a, b = _random_chart(rng), _random_chart(rng)
        forward = calculate_astrological_compatibility(a, b)
        backward = calculate_astrological_compatibility(b, a)
        assert forward["score"] == backward["score"]
        assert forward["aspects_found"] == backward["aspects_found"]
        assert 0 <= forward["score"] <= 100


def test_at_most_one_aspect_per_body_pair():
    rng = random.Random(99)
    for _ in range(50):
        result = calculate_astrological_compatibility(_random_chart(rng), _random_chart(rng))
        pairs = [tuple(sorted(a["bodies"])) for a in result["aspects"]]
        assert len(pairs) == len(set(pairs))
        assert len(pairs) <= 21


def test_missing_or_malformed_chart_is_neutral():
    good = _chart(Sun=("Aries", 0))
    for bad in (None, {}, "not a chart", _chart(Sun=("Ophiuchus", 3)), _chart(Sun=("Aries", 45))):
        result = calculate_astrological_compatibility(good, bad)
        assert result == {"score": 50.0, "grade": "F", "aspects_found": 0, "aspects": [], "has_data": False}


def test_no_aspects_scores_neutral_with_data():
    # 40 degrees apart matches nothing
    result = calculate_astrological_compatibility(_chart(Sun=("Aries", 0)), _chart(Sun=("Taurus", 10)))
    assert result["has_data"] is True
    assert result["aspects_found"] == 0
    assert result["score"] == 50.0


def test_tense_aspect_pulls_below_neutral():
    result = calculate_astrological_compatibility(_chart(Mars=("Aries", 0)), _chart(Mars=("Cancer", 0)))
    assert result["aspects"][0]["aspect"] == "square"
    assert result["score"] < 50


def test_separation_and_orb_ordering():
    assert angular_separation(10, 350) == 20
    assert angular_separation(0, 180) == 180
    assert angular_separation(359, 1) == 2
    aspect, deviation = find_aspect(148)
    assert aspect.name == "quincunx" and deviation == 2
    aspect, _ = find_aspect(125)
    assert aspect.name == "trine"
    assert find_aspect(40) is None


def test_pair_weights():
    assert pair_base_weight("Sun", "Moon") == 2.0
    assert pair_base_weight("Mars", "Venus") == 1.7
    assert pair_base_weight("Ascendant", "Mercury") == 1.5
    assert pair_base_weight("Mercury", "Venus") == 1.0


def test_alternate_payload_layouts():
    legacy = {"sun": {"sign": "Aries", "degree": 5}}
    planets = {"chartData": {"planets": [{"name": "Sun", "sign": "Leo", "degree": 5}]}}
    camel = {"corePlacements": {"Sun": {"Sign": "Aries", "Degree": 5}}}
    assert parse_natal_chart(legacy).placements["Sun"].absolute_degree == 5
    assert parse_natal_chart(planets).placements["Sun"].absolute_degree == 125
    assert parse_natal_chart(camel).placements["Sun"].sign == "Aries"
    assert calculate_astrological_compatibility(legacy, planets)["aspects"][0]["aspect"] == "trine"
