import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import text

from ..config import COMPAT_CACHE_TTL_DAYS

logger = logging.getLogger(__name__)


def canonical_pair(user_a: str, user_b: str) -> tuple[str, str]:
    low, high = sorted((str(user_a), str(user_b)))
    return low, high


def get_cached_score(db, user_a: str, user_b: str, now: datetime | None = None) -> dict[str, Any] | None:
    now = now or datetime.now(timezone.utc)
    low, high = canonical_pair(user_a, user_b)
    row = db.execute(
        text(
            """
            SELECT user1_id, user2_id, score, grade, astro_score, questionnaire_score, details, computed_at, expires_at
            FROM compatibility_score_cache
            WHERE user1_id = CAST(:low AS uuid)
              AND user2_id = CAST(:high AS uuid)
              AND expires_at > :now
            """
        ),
        {"low": low, "high": high, "now": now},
    ).mappings().first()
    return dict(row) if row else None


def get_cached_scores_for(db, user_id: str, other_ids: list[str], now: datetime | None = None) -> dict[str, float]:
    """Non-expired cached scores between user_id and each of other_ids, keyed by the other id."""
    if not other_ids:
        return {}
    now = now or datetime.now(timezone.utc)
    rows = db.execute(
        text(
            """
            SELECT user1_id, user2_id, score
            FROM compatibility_score_cache
            WHERE expires_at > :now
              AND (
                (user1_id = CAST(:uid AS uuid) AND user2_id = ANY(CAST(:ids AS uuid[])))
                OR (user2_id = CAST(:uid AS uuid) AND user1_id = ANY(CAST(:ids AS uuid[])))
              )
            """
        ),
        {"uid": user_id, "ids": list(other_ids), "now": now},
    ).mappings().all()
    out: dict[str, float] = {}
    for r in rows:
        u1, u2 = str(r["user1_id"]), str(r["user2_id"])
        other = u2 if u1 == str(user_id) else u1
        out[other] = float(r["score"])
    return out


def write_cached_score(
    db,
    user_a: str,
    user_b: str,
    result: dict[str, Any],
    now: datetime | None = None,
    ttl_days: int = COMPAT_CACHE_TTL_DAYS,
) -> None:
    now = now or datetime.now(timezone.utc)
    low, high = canonical_pair(user_a, user_b)
    components = result.get("components") or {}
    db.execute(
        text(
            """
            INSERT INTO compatibility_score_cache
              (user1_id, user2_id, score, grade, astro_score, questionnaire_score, details, computed_at, expires_at)
            VALUES
              (CAST(:low AS uuid), CAST(:high AS uuid), :score, :grade, :astro, :quest, CAST(:details AS jsonb), :now, :expires_at)
            ON CONFLICT (user1_id, user2_id) DO UPDATE
              SET score = EXCLUDED.score,
                  grade = EXCLUDED.grade,
                  astro_score = EXCLUDED.astro_score,
                  questionnaire_score = EXCLUDED.questionnaire_score,
                  details = EXCLUDED.details,
                  computed_at = EXCLUDED.computed_at,
                  expires_at = EXCLUDED.expires_at
            """
        ),
        {
            "low": low,
            "high": high,
            "score": result["overall_score"],
            "grade": result["grade"],
            "astro": components.get("astro"),
            "quest": components.get("questionnaire"),
            "details": json.dumps(
                {
                    "astro": result.get("astro_details") or {},
                    "questionnaire": result.get("questionnaire_details") or {},
                },
                default=str,
            ),
            "now": now,
            "expires_at": now + timedelta(days=ttl_days),
        },
    )


def invalidate_user(db, user_id: str) -> None:
    """Drop every cached pair involving user_id, e.g. after a chart or questionnaire edit."""
    db.execute(
        text(
            """
            DELETE FROM compatibility_score_cache
            WHERE user1_id = CAST(:uid AS uuid) OR user2_id = CAST(:uid AS uuid)
            """
        ),
        {"uid": user_id},
    )


def _from_cache_row(row: dict[str, Any], recommended_threshold: float) -> dict[str, Any]:
    details = row.get("details") or {}
    if isinstance(details, str):
        details = json.loads(details)
    score = float(row["score"])
    return {
        "overall_score": score,
        "grade": row["grade"],
        "recommended": score >= recommended_threshold,
        "components": {
            "astro": row.get("astro_score"),
            "questionnaire": row.get("questionnaire_score"),
        },
        "astro_details": details.get("astro") or {},
        "questionnaire_details": details.get("questionnaire") or {},
        "cached": True,
    }


def get_or_compute(db, user_a: str, user_b: str, compute, recommended_threshold: float = 70.0, now: datetime | None = None) -> dict[str, Any]:
    """Cache-aside read. A failed cache write never fails the read."""
    row = get_cached_score(db, user_a, user_b, now=now)
    if row:
        return _from_cache_row(row, recommended_threshold)

    result = dict(compute(db, user_a, user_b))
    result["cached"] = False
    if result["components"].get("astro") is None and result["components"].get("questionnaire") is None:
        return result
    try:
        write_cached_score(db, user_a, user_b, result, now=now)
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("[compat-cache] write failed for pair %s/%s", *canonical_pair(user_a, user_b))
    return result
