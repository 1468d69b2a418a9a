"""Candidate discovery feed.

SQL narrows the pool to completed, non-excluded profiles; everything after that is
pure Python over plain dicts so each filter and the ranking can be exercised without
a database. Scores come only from the compatibility cache, never live computation.
"""

import logging
from datetime import date
from typing import Any

from geopy.distance import geodesic
from sqlalchemy import text

from .. import repo
from ..config import CANDIDATE_PAGE_DEFAULT, CANDIDATE_PAGE_MAX, DEFAULT_SCORING_CONFIG, PREMIUM_TIERS
from ..schemas import CandidateFilters
from .astrology import parse_natal_chart
from .compat_cache import get_cached_scores_for
from .exclusions import get_exclusions
from .zodiac import normalize_sign, sun_sign_for_date

logger = logging.getLogger(__name__)

WILDCARD_PREFERENCES = {"any", "both", "everyone", "all"}

_GENDER_ALIASES = {
    "male": "male",
    "males": "male",
    "man": "male",
    "men": "male",
    "female": "female",
    "females": "female",
    "woman": "female",
    "women": "female",
    "non-binary": "non-binary",
    "nonbinary": "non-binary",
    "non binary": "non-binary",
    "other": "non-binary",
}

TIER_PRIORITY = {tier: 0 for tier in PREMIUM_TIERS}


def _normalize_gender(value: Any) -> str | None:
    if value is None:
        return None
    v = str(value).strip().lower()
    if not v:
        return None
    return _GENDER_ALIASES.get(v, "non-binary")


def _parse_looking_for(values: Any) -> set[str] | None:
    """None means no stated preference."""
    if not isinstance(values, list):
        return None
    out: set[str] = set()
    for item in values:
        if item is None:
            continue
        v = str(item).strip().lower()
        if not v:
            continue
        out.add(v if v in WILDCARD_PREFERENCES else _GENDER_ALIASES.get(v, "non-binary"))
    return out or None


def accepts_gender(looking_for: Any, gender: Any) -> bool:
    wanted = _parse_looking_for(looking_for)
    g = _normalize_gender(gender)
    if wanted is None or g is None:
        return True
    if wanted & WILDCARD_PREFERENCES:
        return True
    return g in wanted


def mutual_gender_match(requester: dict[str, Any], candidate: dict[str, Any]) -> bool:
    return accepts_gender(requester.get("looking_for"), candidate.get("gender")) and accepts_gender(
        candidate.get("looking_for"), requester.get("gender")
    )


def _coords(profile: dict[str, Any]) -> tuple[float, float] | None:
    lat, lng = profile.get("latitude"), profile.get("longitude")
    if lat is None or lng is None:
        return None
    try:
        return float(lat), float(lng)
    except (TypeError, ValueError):
        return None


def distance_km(a: dict[str, Any], b: dict[str, Any]) -> float | None:
    ca, cb = _coords(a), _coords(b)
    if ca is None or cb is None:
        return None
    try:
        return float(geodesic(ca, cb).kilometers)
    except ValueError:
        return None


def candidate_sign(profile: dict[str, Any]) -> str | None:
    sign = normalize_sign(profile.get("zodiac_sign") or "")
    if sign:
        return sign
    chart = parse_natal_chart(profile.get("natal_chart"))
    if chart and "Sun" in chart.placements:
        return chart.placements["Sun"].sign
    birth_date = profile.get("birth_date")
    if isinstance(birth_date, date):
        return sun_sign_for_date(birth_date)
    return None


def passes_filters(candidate: dict[str, Any], filters: CandidateFilters, dist: float | None) -> bool:
    age = candidate.get("age")
    # profiles without an age are not excluded by an age range
    if age is not None:
        if filters.min_age is not None and age < filters.min_age:
            return False
        if filters.max_age is not None and age > filters.max_age:
            return False
    if filters.zodiac_sign is not None and candidate_sign(candidate) != filters.zodiac_sign:
        return False
    if filters.max_distance_km is not None and dist is not None and dist > filters.max_distance_km:
        return False
    if filters.activity_type is not None:
        activity = str(candidate.get("activity_preference") or "").strip().lower()
        if activity != filters.activity_type.lower():
            return False
    return True


def filter_candidates(
    requester: dict[str, Any],
    pool: list[dict[str, Any]],
    filters: CandidateFilters,
    excluded: set[str],
) -> list[dict[str, Any]]:
    out = []
    requester_id = str(requester["id"])
    for cand in pool:
        cid = str(cand["id"])
        if cid == requester_id or cid in excluded:
            continue
        if not mutual_gender_match(requester, cand):
            continue
        dist = distance_km(requester, cand)
        if not passes_filters(cand, filters, dist):
            continue
        out.append({**cand, "distance_km": None if dist is None else round(dist, 2)})
    return out


def _ranking_key(cand: dict[str, Any]):
    tier = TIER_PRIORITY.get(str(cand.get("subscription_status") or "free").lower(), 1)
    dist = cand.get("distance_km")
    last_active = cand.get("last_active_at") or cand.get("created_at")
    recency = last_active.timestamp() if last_active is not None else float("-inf")
    return (
        tier,
        -float(cand["compatibility_score"]),
        dist is None,
        dist if dist is not None else 0.0,
        -recency,
        str(cand["id"]),
    )


def rank_candidates(candidates: list[dict[str, Any]], scores: dict[str, float], neutral: float) -> list[dict[str, Any]]:
    scored = []
    for cand in candidates:
        cid = str(cand["id"])
        cached = scores.get(cid)
        scored.append({**cand, "compatibility_score": cached if cached is not None else neutral, "score_cached": cached is not None})
    return sorted(scored, key=_ranking_key)


def _public_view(cand: dict[str, Any]) -> dict[str, Any]:
    return {
        "candidate_id": str(cand["id"]),
        "display_name": cand.get("display_name"),
        "age": cand.get("age"),
        "gender": cand.get("gender"),
        "zodiac_sign": candidate_sign(cand),
        "activity_preference": cand.get("activity_preference"),
        "subscription_status": cand.get("subscription_status") or "free",
        "compatibility_score": cand["compatibility_score"],
        "score_cached": cand["score_cached"],
        "distance_km": cand.get("distance_km"),
    }


def paginate(ranked: list[dict[str, Any]], limit: int, offset: int) -> tuple[list[dict[str, Any]], int | None]:
    page = ranked[offset : offset + limit]
    next_cursor = offset + limit if len(ranked) > offset + limit else None
    return page, next_cursor


def fetch_candidate_pool(db, user_id: str, excluded: set[str]) -> list[dict[str, Any]]:
    rows = db.execute(
        text(
            f"""
            SELECT {repo.PROFILE_COLUMNS}
            FROM user_profile
            WHERE onboarding_completed = TRUE
              AND id <> CAST(:uid AS uuid)
              AND NOT (id = ANY(CAST(:excluded AS uuid[])))
            """
        ),
        {"uid": user_id, "excluded": sorted(excluded)},
    ).mappings().all()
    return [repo.normalize_profile(r) for r in rows]


def empty_page() -> dict[str, Any]:
    return {"candidates": [], "next_cursor": None}


def get_candidates(
    db,
    user_id: str,
    filters: CandidateFilters | None = None,
    limit: int = CANDIDATE_PAGE_DEFAULT,
    offset: int = 0,
) -> dict[str, Any]:
    filters = filters or CandidateFilters()
    limit = max(1, min(int(limit), CANDIDATE_PAGE_MAX))
    offset = max(0, int(offset))
    try:
        requester = repo.get_profile(db, user_id)
        if not requester:
            return empty_page()
        excluded = get_exclusions(db, user_id)
        pool = fetch_candidate_pool(db, user_id, excluded)
        eligible = filter_candidates(requester, pool, filters, excluded)
        scores = get_cached_scores_for(db, user_id, [str(c["id"]) for c in eligible])
        ranked = rank_candidates(eligible, scores, float(DEFAULT_SCORING_CONFIG.get("NEUTRAL_SCORE", 50.0)))
        page, next_cursor = paginate(ranked, limit, offset)
        return {"candidates": [_public_view(c) for c in page], "next_cursor": next_cursor}
    except Exception:
        logger.exception("[candidates] pipeline failed for %s, returning empty page", user_id)
        return empty_page()
