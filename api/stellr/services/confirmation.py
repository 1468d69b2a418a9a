"""Match confirmation and unmatch.

The durable part of a confirmation (conversation, match, fulfilled source request) is
written under a transaction-scoped advisory lock on the canonical pair and committed
together. Cache refresh, ledger points and notifications run afterwards as separate,
independently retryable units; their failure is logged and never undoes the match.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import text

from ..config import MATCH_BONUS_POINTS
from ..errors import NotFound, ValidationError
from .compat_cache import canonical_pair, get_cached_score, write_cached_score
from .compatibility import compute_compatibility
from .events import award_progress_points, enqueue_notification, log_deletion_audit
from .exclusions import invalidate_exclusions

logger = logging.getLogger(__name__)

DELETION_REASONS = {"user_unmatch", "user_block", "admin_action", "policy_violation", "account_deletion"}


def pair_lock_key(low: str, high: str) -> str:
    return f"{low}-{high}"


def _pair_compatibility(db, low: str, high: str) -> tuple[dict[str, Any] | None, float, str]:
    cached = get_cached_score(db, low, high)
    if cached:
        return None, float(cached["score"]), str(cached["grade"])
    result = compute_compatibility(db, low, high)
    return result, float(result["overall_score"]), str(result["grade"])


def confirm_match(db, user_a: str, user_b: str, source_request_id: str | None = None) -> dict[str, Any]:
    if str(user_a) == str(user_b):
        raise ValidationError("Cannot match a user with themselves")
    low, high = canonical_pair(user_a, user_b)

    fresh, score, grade = _pair_compatibility(db, low, high)

    db.execute(text("SELECT pg_advisory_xact_lock(hashtext(:key))"), {"key": pair_lock_key(low, high)})

    conversation = db.execute(
        text(
            """
            INSERT INTO conversation (id, participant1_id, participant2_id)
            VALUES (CAST(:id AS uuid), CAST(:low AS uuid), CAST(:high AS uuid))
            ON CONFLICT (participant1_id, participant2_id) DO UPDATE
              SET deleted_at = NULL,
                  deleted_by = NULL,
                  deletion_reason = NULL
            RETURNING id
            """
        ),
        {"id": str(uuid.uuid4()), "low": low, "high": high},
    ).mappings().first()
    conversation_id = str(conversation["id"])

    match = db.execute(
        text(
            """
            INSERT INTO match (id, user1_id, user2_id, status, compatibility_score, compatibility_grade, conversation_id)
            VALUES (CAST(:id AS uuid), CAST(:low AS uuid), CAST(:high AS uuid), 'active', :score, :grade, CAST(:conversation_id AS uuid))
            ON CONFLICT (user1_id, user2_id) DO UPDATE
              SET status = 'active',
                  conversation_id = EXCLUDED.conversation_id,
                  deleted_at = NULL,
                  deleted_by = NULL,
                  deletion_reason = NULL,
                  updated_at = NOW()
            RETURNING id, (xmax = 0) AS inserted
            """
        ),
        {
            "id": str(uuid.uuid4()),
            "low": low,
            "high": high,
            "score": score,
            "grade": grade,
            "conversation_id": conversation_id,
        },
    ).mappings().first()
    match_id = str(match["id"])
    created = bool(match["inserted"])

    db.execute(
        text("UPDATE conversation SET match_id = CAST(:match_id AS uuid) WHERE id = CAST(:conversation_id AS uuid)"),
        {"match_id": match_id, "conversation_id": conversation_id},
    )

    if source_request_id:
        db.execute(
            text(
                """
                UPDATE match_request
                SET status = 'fulfilled',
                    resulting_match_id = CAST(:match_id AS uuid),
                    updated_at = NOW()
                WHERE id = CAST(:request_id AS uuid)
                  AND status = 'confirmed'
                """
            ),
            {"match_id": match_id, "request_id": source_request_id},
        )

    db.commit()
    logger.info("[confirm] match %s for %s/%s created=%s", match_id, low, high, created)

    _after_confirm(db, low, high, match_id, conversation_id, fresh, created)

    return {
        "match_id": match_id,
        "conversation_id": conversation_id,
        "user1_id": low,
        "user2_id": high,
        "compatibility_score": score,
        "created": created,
    }


def _after_confirm(
    db,
    low: str,
    high: str,
    match_id: str,
    conversation_id: str,
    fresh: dict[str, Any] | None,
    created: bool,
) -> None:
    invalidate_exclusions(low, high)

    if fresh is not None and (fresh["components"].get("astro") is not None or fresh["components"].get("questionnaire") is not None):
        try:
            write_cached_score(db, low, high, fresh)
            db.commit()
        except Exception:
            db.rollback()
            logger.exception("[confirm] cache refresh failed for match %s", match_id)

    if not created:
        return

    try:
        for uid in (low, high):
            award_progress_points(db, uid, MATCH_BONUS_POINTS, "match_created", reference_id=match_id)
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("[confirm] ledger award failed for match %s", match_id)

    try:
        for uid, other in ((low, high), (high, low)):
            enqueue_notification(
                db,
                uid,
                "new_match",
                {"match_id": match_id, "conversation_id": conversation_id, "other_user_id": other},
            )
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("[confirm] notification enqueue failed for match %s", match_id)


def unmatch(db, user_id: str, other_user_id: str, reason: str = "user_unmatch") -> dict[str, Any]:
    if reason not in DELETION_REASONS:
        raise ValidationError(f"Unknown unmatch reason: {reason}")
    if str(user_id) == str(other_user_id):
        raise ValidationError("Cannot unmatch yourself")
    low, high = canonical_pair(user_id, other_user_id)

    row = db.execute(
        text(
            """
            SELECT id, conversation_id
            FROM match
            WHERE user1_id = CAST(:low AS uuid)
              AND user2_id = CAST(:high AS uuid)
              AND status = 'active'
            FOR UPDATE
            """
        ),
        {"low": low, "high": high},
    ).mappings().first()
    if not row:
        raise NotFound("No active match between these users")

    match_id = str(row["id"])
    conversation_id = str(row["conversation_id"]) if row["conversation_id"] else None
    now = datetime.now(timezone.utc)
    params = {"now": now, "by": user_id, "reason": reason}

    db.execute(
        text(
            """
            UPDATE match
            SET status = 'inactive',
                deleted_at = :now,
                deleted_by = CAST(:by AS uuid),
                deletion_reason = :reason,
                updated_at = :now
            WHERE id = CAST(:id AS uuid)
            """
        ),
        {**params, "id": match_id},
    )
    log_deletion_audit(
        db,
        entity_type="match",
        entity_id=match_id,
        deleted_by=user_id,
        deletion_reason=reason,
        metadata={"user1_id": low, "user2_id": high},
    )

    if conversation_id:
        db.execute(
            text(
                """
                UPDATE conversation
                SET deleted_at = :now,
                    deleted_by = CAST(:by AS uuid),
                    deletion_reason = :reason
                WHERE id = CAST(:id AS uuid)
                """
            ),
            {**params, "id": conversation_id},
        )
        log_deletion_audit(
            db,
            entity_type="conversation",
            entity_id=conversation_id,
            deleted_by=user_id,
            deletion_reason=reason,
            metadata={"match_id": match_id},
        )

    db.commit()
    invalidate_exclusions(low, high)
    logger.info("[unmatch] match %s disabled by %s reason=%s", match_id, user_id, reason)
    return {"success": True, "match_id": match_id, "conversation_id": conversation_id}
