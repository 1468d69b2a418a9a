"""Synastry scoring over the six core natal placements.

Every unordered pair of core bodies is checked once for a major or minor aspect
between the two charts. Harmonious aspects (trine, sextile, conjunction) pull the
score above the neutral 50 and tense ones (square, opposition, quincunx) pull it
below, weighted by how personal the bodies are and how exact the aspect is.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from itertools import combinations_with_replacement
from typing import Any

from pydantic import ValidationError as SchemaError

from ..schemas import NatalChart
from .grades import clamp_score, letter_grade
from .zodiac import absolute_degree

logger = logging.getLogger(__name__)

CORE_BODIES = ("Sun", "Moon", "Ascendant", "Mercury", "Venus", "Mars")
LUMINARIES = {"Sun", "Moon", "Ascendant"}

NEUTRAL_SCORE = 50.0


@dataclass(frozen=True)
class AspectType:
    name: str
    angle: float
    orb: float
    harmony: float


# Ascending orb: the tightest tolerance is tried first.
ASPECT_TYPES: tuple[AspectType, ...] = tuple(
    sorted(
        (
            AspectType("conjunction", 0.0, 8.0, 0.3),
            AspectType("sextile", 60.0, 6.0, 0.7),
            AspectType("square", 90.0, 8.0, -0.7),
            AspectType("trine", 120.0, 8.0, 1.0),
            AspectType("opposition", 180.0, 8.0, -0.5),
            AspectType("quincunx", 150.0, 3.0, -0.3),
        ),
        key=lambda a: (a.orb, a.angle),
    )
)


def _placements_from_raw(raw: dict[str, Any]) -> dict[str, Any]:
    for key in ("placements", "corePlacements", "core_placements"):
        value = raw.get(key)
        if isinstance(value, dict) and value:
            return {name: _placement_fields(p) for name, p in value.items() if isinstance(p, dict)}
    capitalized = raw.get("CorePlacements")
    if isinstance(capitalized, dict) and capitalized:
        return {name: _placement_fields(p) for name, p in capitalized.items() if isinstance(p, dict)}
    planets = (raw.get("chartData") or {}).get("planets") if isinstance(raw.get("chartData"), dict) else None
    if isinstance(planets, list):
        return {str(p.get("name")): _placement_fields(p) for p in planets if isinstance(p, dict) and p.get("name")}
    # legacy flat layout: {"sun": {"sign": ..., "degree": ...}, ...}
    flat = {name: v for name, v in raw.items() if isinstance(v, dict) and str(name).capitalize() in CORE_BODIES}
    return {name: _placement_fields(p) for name, p in flat.items()}


def _placement_fields(p: dict[str, Any]) -> dict[str, Any]:
    return {
        "sign": p.get("sign", p.get("Sign")),
        "degree": p.get("degree", p.get("Degree", 0.0)),
        "absolute_degree": p.get("absolute_degree", p.get("absoluteDegree", p.get("AbsoluteDegree"))),
    }


def parse_natal_chart(raw: Any) -> NatalChart | None:
    """Validate a stored chart payload. Returns None for absent or malformed data."""
    if raw is None:
        return None
    if isinstance(raw, NatalChart):
        return raw
    if not isinstance(raw, dict):
        return None
    try:
        chart = NatalChart(placements=_placements_from_raw(raw))
    except SchemaError as exc:
        logger.info("[astro] malformed natal chart ignored: %s", exc.error_count())
        return None
    if not any(body in chart.placements for body in CORE_BODIES):
        return None
    return chart


def _longitude(chart: NatalChart, body: str) -> float | None:
    p = chart.placements.get(body)
    if p is None:
        return None
    if p.absolute_degree is not None:
        return p.absolute_degree
    return absolute_degree(p.sign, p.degree)


def angular_separation(deg_a: float, deg_b: float) -> float:
    diff = abs(deg_a - deg_b) % 360.0
    if diff > 180.0:
        diff = 360.0 - diff
    return diff


def find_aspect(separation: float) -> tuple[AspectType, float] | None:
    for aspect in ASPECT_TYPES:
        deviation = abs(separation - aspect.angle)
        if deviation <= aspect.orb:
            return aspect, deviation
    return None


def pair_base_weight(body_a: str, body_b: str) -> float:
    pair = {body_a, body_b}
    if pair == {"Sun", "Moon"}:
        return 2.0
    if pair == {"Venus", "Mars"}:
        return 1.7
    if pair & LUMINARIES:
        return 1.5
    return 1.0


def _best_orientation(chart_a: NatalChart, chart_b: NatalChart, body_x: str, body_y: str) -> dict[str, Any] | None:
    orientations = [(body_x, body_y)]
    if body_x != body_y:
        orientations.append((body_y, body_x))

    found: list[dict[str, Any]] = []
    for first, second in orientations:
        deg_a = _longitude(chart_a, first)
        deg_b = _longitude(chart_b, second)
        if deg_a is None or deg_b is None:
            continue
        separation = angular_separation(deg_a, deg_b)
        hit = find_aspect(separation)
        if hit is None:
            continue
        aspect, deviation = hit
        found.append(
            {
                "aspect": aspect,
                "deviation": deviation,
                "separation": separation,
            }
        )
    if not found:
        return None
    # Selection must not depend on which chart came first.
    return min(found, key=lambda f: (f["deviation"] / f["aspect"].orb, f["aspect"].name, f["separation"]))


def neutral_astro_result() -> dict[str, Any]:
    return {
        "score": NEUTRAL_SCORE,
        "grade": letter_grade(NEUTRAL_SCORE),
        "aspects_found": 0,
        "aspects": [],
        "has_data": False,
    }


def calculate_astrological_compatibility(raw_a: Any, raw_b: Any) -> dict[str, Any]:
    chart_a = parse_natal_chart(raw_a)
    chart_b = parse_natal_chart(raw_b)
    if chart_a is None or chart_b is None:
        return neutral_astro_result()

    weighted_harmony = 0.0
    total_weight = 0.0
    aspects: list[dict[str, Any]] = []

    for body_x, body_y in combinations_with_replacement(CORE_BODIES, 2):
        best = _best_orientation(chart_a, chart_b, body_x, body_y)
        if best is None:
            continue
        aspect: AspectType = best["aspect"]
        tightness = max(0.0, min(1.0, 1.0 - best["deviation"] / aspect.orb))
        weight = pair_base_weight(body_x, body_y) * (1.0 + 0.5 * tightness)
        weighted_harmony += aspect.harmony * weight
        total_weight += weight
        aspects.append(
            {
                "bodies": [body_x, body_y],
                "aspect": aspect.name,
                "separation": round(best["separation"], 4),
                "deviation": round(best["deviation"], 4),
                "harmony": aspect.harmony,
                "weight": round(weight, 4),
            }
        )

    score = NEUTRAL_SCORE
    if total_weight > 0:
        score = clamp_score(NEUTRAL_SCORE + 25.0 * (weighted_harmony / total_weight))

    return {
        "score": round(score, 2),
        "grade": letter_grade(score),
        "aspects_found": len(aspects),
        "aspects": aspects,
        "has_data": True,
    }
