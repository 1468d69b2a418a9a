from typing import Any

from sqlalchemy import text

PROFILE_COLUMNS = """
    id,
    display_name,
    gender,
    age,
    birth_date,
    looking_for,
    latitude,
    longitude,
    subscription_status,
    zodiac_sign,
    activity_preference,
    onboarding_completed,
    natal_chart,
    questionnaire_responses,
    last_active_at,
    created_at
"""


def normalize_profile(row: Any) -> dict[str, Any]:
    out = dict(row)
    out["id"] = str(out["id"])
    if not isinstance(out.get("looking_for"), list):
        out["looking_for"] = []
    return out


def get_profile(db, user_id: str) -> dict[str, Any] | None:
    row = db.execute(
        text(f"SELECT {PROFILE_COLUMNS} FROM user_profile WHERE id = CAST(:id AS uuid)"),
        {"id": user_id},
    ).mappings().first()
    return normalize_profile(row) if row else None


def get_profiles(db, user_ids: list[str]) -> dict[str, dict[str, Any]]:
    if not user_ids:
        return {}
    rows = db.execute(
        text(f"SELECT {PROFILE_COLUMNS} FROM user_profile WHERE id = ANY(CAST(:ids AS uuid[]))"),
        {"ids": list(user_ids)},
    ).mappings().all()
    return {str(r["id"]): normalize_profile(r) for r in rows}


def user_exists(db, user_id: str) -> bool:
    row = db.execute(
        text("SELECT 1 FROM user_profile WHERE id = CAST(:id AS uuid)"),
        {"id": user_id},
    ).first()
    return bool(row)


def get_active_match(db, user_a: str, user_b: str) -> dict[str, Any] | None:
    low, high = sorted((str(user_a), str(user_b)))
    row = db.execute(
        text(
            """
            SELECT id, user1_id, user2_id, status, conversation_id, compatibility_score
            FROM match
            WHERE user1_id = CAST(:low AS uuid)
              AND user2_id = CAST(:high AS uuid)
              AND status = 'active'
            """
        ),
        {"low": low, "high": high},
    ).mappings().first()
    return dict(row) if row else None
