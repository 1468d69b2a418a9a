import logging
from typing import Any

from sqlalchemy import text

from .. import repo
from ..errors import NotFound, ValidationError
from .confirmation import confirm_match, unmatch
from .exclusions import invalidate_exclusions

logger = logging.getLogger(__name__)

SWIPE_TYPES = {"like", "pass"}


def _has_liked(db, swiper_id: str, swiped_id: str) -> bool:
    row = db.execute(
        text(
            """
            SELECT 1 FROM swipe
            WHERE swiper_id = CAST(:swiper AS uuid)
              AND swiped_id = CAST(:swiped AS uuid)
              AND swipe_type = 'like'
            """
        ),
        {"swiper": swiper_id, "swiped": swiped_id},
    ).first()
    return bool(row)


def record_swipe(db, swiper_id: str, swiped_id: str, swipe_type: str) -> dict[str, Any]:
    """Swipes are write-once; a mutual like goes straight into confirmation."""
    swiper_id, swiped_id = str(swiper_id), str(swiped_id)
    if swipe_type not in SWIPE_TYPES:
        raise ValidationError(f"Unknown swipe type: {swipe_type}")
    if swiper_id == swiped_id:
        raise ValidationError("Cannot swipe on yourself")
    if not repo.user_exists(db, swiped_id):
        raise NotFound("User not found")

    inserted = db.execute(
        text(
            """
            INSERT INTO swipe (swiper_id, swiped_id, swipe_type)
            VALUES (CAST(:swiper AS uuid), CAST(:swiped AS uuid), :swipe_type)
            ON CONFLICT (swiper_id, swiped_id) DO NOTHING
            RETURNING swipe_type
            """
        ),
        {"swiper": swiper_id, "swiped": swiped_id, "swipe_type": swipe_type},
    ).mappings().first()

    effective = inserted["swipe_type"] if inserted else ("like" if _has_liked(db, swiper_id, swiped_id) else "pass")

    if effective == "like" and _has_liked(db, swiped_id, swiper_id):
        match = confirm_match(db, swiper_id, swiped_id)
        logger.info("[swipe] mutual like %s <-> %s", swiper_id, swiped_id)
        return {"recorded": bool(inserted), "matched": True, "match_id": match["match_id"], "conversation_id": match["conversation_id"]}

    db.commit()
    invalidate_exclusions(swiper_id)
    return {"recorded": bool(inserted), "matched": False, "match_id": None}


def block_user(db, blocking_id: str, blocked_id: str) -> dict[str, Any]:
    blocking_id, blocked_id = str(blocking_id), str(blocked_id)
    if blocking_id == blocked_id:
        raise ValidationError("Cannot block yourself")

    db.execute(
        text(
            """
            INSERT INTO user_block (blocking_id, blocked_id)
            VALUES (CAST(:blocking AS uuid), CAST(:blocked AS uuid))
            ON CONFLICT (blocking_id, blocked_id) DO NOTHING
            """
        ),
        {"blocking": blocking_id, "blocked": blocked_id},
    )
    withdrawn = db.execute(
        text(
            """
            UPDATE match_request
            SET status = 'rejected', responded_at = NOW(), updated_at = NOW()
            WHERE ((requester_id = CAST(:a AS uuid) AND matched_user_id = CAST(:b AS uuid))
                OR (requester_id = CAST(:b AS uuid) AND matched_user_id = CAST(:a AS uuid)))
              AND status = 'pending'
            RETURNING id
            """
        ),
        {"a": blocking_id, "b": blocked_id},
    ).mappings().all()
    db.commit()
    invalidate_exclusions(blocking_id, blocked_id)

    unmatched = False
    if repo.get_active_match(db, blocking_id, blocked_id):
        unmatch(db, blocking_id, blocked_id, reason="user_block")
        unmatched = True

    logger.info("[block] %s blocked %s (requests withdrawn=%s unmatched=%s)", blocking_id, blocked_id, len(withdrawn), unmatched)
    return {"success": True, "requests_withdrawn": len(withdrawn), "unmatched": unmatched}
