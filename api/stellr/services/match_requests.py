import json
import logging
import uuid
from datetime import date, datetime, timedelta, timezone
from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError

from .. import repo
from ..config import MATCH_REQUEST_EXPIRY_HOURS
from ..errors import Conflict, Forbidden, NotFound, ValidationError
from .compat_cache import canonical_pair, get_cached_score
from .compatibility import compute_compatibility
from .confirmation import confirm_match, pair_lock_key
from .events import enqueue_notification
from .exclusions import invalidate_exclusions
from .invites import consume_invite
from .state_machine import RESPONSE_ACTIONS, can_delete, transition_request

logger = logging.getLogger(__name__)


def _blocked_either_way(db, user_a: str, user_b: str) -> bool:
    row = db.execute(
        text(
            """
            SELECT 1 FROM user_block
            WHERE (blocking_id = CAST(:a AS uuid) AND blocked_id = CAST(:b AS uuid))
               OR (blocking_id = CAST(:b AS uuid) AND blocked_id = CAST(:a AS uuid))
            LIMIT 1
            """
        ),
        {"a": user_a, "b": user_b},
    ).first()
    return bool(row)


def _active_request_between(db, user_a: str, user_b: str) -> dict[str, Any] | None:
    row = db.execute(
        text(
            """
            SELECT id, requester_id, matched_user_id, status
            FROM match_request
            WHERE ((requester_id = CAST(:a AS uuid) AND matched_user_id = CAST(:b AS uuid))
                OR (requester_id = CAST(:b AS uuid) AND matched_user_id = CAST(:a AS uuid)))
              AND status IN ('pending', 'confirmed')
            LIMIT 1
            """
        ),
        {"a": user_a, "b": user_b},
    ).mappings().first()
    return dict(row) if row else None


def _pending_reverse_request(db, requester_id: str, target_id: str) -> dict[str, Any] | None:
    row = db.execute(
        text(
            """
            SELECT id, requester_id, matched_user_id, status
            FROM match_request
            WHERE requester_id = CAST(:target AS uuid)
              AND matched_user_id = CAST(:requester AS uuid)
              AND status = 'pending'
            FOR UPDATE
            """
        ),
        {"requester": requester_id, "target": target_id},
    ).mappings().first()
    return dict(row) if row else None


def _request_score(db, requester_id: str, target_id: str) -> tuple[float, dict[str, Any]]:
    cached = get_cached_score(db, requester_id, target_id)
    if cached:
        return float(cached["score"]), {"grade": cached["grade"], "cached": True}
    result = compute_compatibility(db, requester_id, target_id)
    return float(result["overall_score"]), {
        "grade": result["grade"],
        "components": result["components"],
        "cached": False,
    }


def create_match_request(db, requester_id: str, target_id: str, today: date | None = None) -> dict[str, Any]:
    """Validate, consume an invite, then either auto-match against a reverse pending
    request or insert a new pending request.

    Everything after the pair lock runs in one transaction: the invite decrement is
    committed together with the new request or the match, and dropped on any failure.
    Returns {"allowed": False, "remaining_today": 0} when the daily invite quota is spent.
    """
    requester_id, target_id = str(requester_id), str(target_id)
    if requester_id == target_id:
        raise ValidationError("Cannot send a match request to yourself")
    if not repo.user_exists(db, target_id):
        raise NotFound("User not found")
    if _blocked_either_way(db, requester_id, target_id):
        raise Forbidden("Cannot send a match request to this user")

    # A->B and B->A serialize here, so exactly one of them sees the other's request.
    low, high = canonical_pair(requester_id, target_id)
    db.execute(text("SELECT pg_advisory_xact_lock(hashtext(:key))"), {"key": pair_lock_key(low, high)})

    try:
        if repo.get_active_match(db, requester_id, target_id):
            raise Conflict("Already matched with this user")
        reverse = _pending_reverse_request(db, requester_id, target_id)
        if reverse is None and _active_request_between(db, requester_id, target_id):
            raise Conflict("An active match request already exists")

        invite = consume_invite(db, requester_id, today or datetime.now(timezone.utc).date(), commit=False)
        if not invite.allowed:
            # keeps a day rollover, releases the pair lock
            db.commit()
            return {"allowed": False, "remaining_today": 0}

        if reverse is not None:
            db.execute(
                text(
                    """
                    UPDATE match_request
                    SET status = :status, responded_at = NOW(), updated_at = NOW()
                    WHERE id = CAST(:id AS uuid)
                    """
                ),
                {"id": str(reverse["id"]), "status": transition_request(reverse["status"], "confirm")},
            )
            match = confirm_match(db, requester_id, target_id, source_request_id=str(reverse["id"]))
            logger.info("[match-request] auto-matched %s with %s via request %s", requester_id, target_id, reverse["id"])
            return {
                "allowed": True,
                "remaining_today": invite.remaining,
                "auto_matched": True,
                "request_id": str(reverse["id"]),
                "match_id": match["match_id"],
                "conversation_id": match["conversation_id"],
            }

        score, details = _request_score(db, requester_id, target_id)
        request_id = str(uuid.uuid4())
        db.execute(
            text(
                """
                INSERT INTO match_request (id, requester_id, matched_user_id, status, compatibility_score, compatibility_details)
                VALUES (CAST(:id AS uuid), CAST(:requester AS uuid), CAST(:target AS uuid), 'pending', :score, CAST(:details AS jsonb))
                """
            ),
            {
                "id": request_id,
                "requester": requester_id,
                "target": target_id,
                "score": score,
                "details": json.dumps(details),
            },
        )
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise Conflict("An active match request already exists") from exc
    except Exception:
        db.rollback()
        raise

    invalidate_exclusions(requester_id, target_id)
    try:
        enqueue_notification(db, target_id, "match_request", {"request_id": request_id, "requester_id": requester_id})
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("[match-request] notification enqueue failed for %s", request_id)

    return {
        "allowed": True,
        "remaining_today": invite.remaining,
        "auto_matched": False,
        "request_id": request_id,
        "status": "pending",
        "compatibility_score": score,
    }


def _lock_request(db, request_id: str) -> dict[str, Any]:
    row = db.execute(
        text(
            """
            SELECT id, requester_id, matched_user_id, status, resulting_match_id
            FROM match_request
            WHERE id = CAST(:id AS uuid)
            FOR UPDATE
            """
        ),
        {"id": request_id},
    ).mappings().first()
    if not row:
        raise NotFound("Match request not found")
    return dict(row)


def respond_to_match_request(db, request_id: str, responder_id: str, decision: str) -> dict[str, Any]:
    if decision not in RESPONSE_ACTIONS:
        raise ValidationError(f"Unknown decision: {decision}")

    req = _lock_request(db, request_id)
    requester_id = str(req["requester_id"])
    target_id = str(req["matched_user_id"])
    responder_id = str(responder_id)

    # the requester may only withdraw (reject) their own request
    allowed = responder_id == target_id or (responder_id == requester_id and decision == "reject")
    if not allowed:
        db.rollback()
        raise Forbidden("Not allowed to respond to this request")

    current = req["status"]
    resulting = str(req["resulting_match_id"]) if req["resulting_match_id"] else None
    new_status = transition_request(current, decision)

    if new_status == current:
        if current == "confirmed" and resulting is None:
            # a confirmation that never reached the match step; finish it
            match = confirm_match(db, requester_id, target_id, source_request_id=request_id)
            return {"request_id": request_id, "status": "fulfilled", "match_id": match["match_id"], "conversation_id": match["conversation_id"]}
        db.rollback()
        return {"request_id": request_id, "status": current, "match_id": resulting}

    db.execute(
        text(
            """
            UPDATE match_request
            SET status = :status, responded_at = NOW(), updated_at = NOW()
            WHERE id = CAST(:id AS uuid)
            """
        ),
        {"id": request_id, "status": new_status},
    )

    if new_status == "confirmed":
        match = confirm_match(db, requester_id, target_id, source_request_id=request_id)
        return {
            "request_id": request_id,
            "status": "fulfilled",
            "match_id": match["match_id"],
            "conversation_id": match["conversation_id"],
        }

    db.commit()
    invalidate_exclusions(requester_id, target_id)
    logger.info("[match-request] %s -> %s by %s", request_id, new_status, responder_id)
    return {"request_id": request_id, "status": new_status, "match_id": None}


def delete_match_request(db, request_id: str, user_id: str) -> dict[str, Any]:
    req = _lock_request(db, request_id)
    if str(req["requester_id"]) != str(user_id):
        db.rollback()
        raise Forbidden("Only the requester can delete a match request")
    if not can_delete(req["status"]):
        db.rollback()
        raise Conflict(f"Cannot delete a {req['status']} match request")

    db.execute(text("DELETE FROM match_request WHERE id = CAST(:id AS uuid)"), {"id": request_id})
    db.commit()
    invalidate_exclusions(str(req["requester_id"]), str(req["matched_user_id"]))
    return {"success": True, "request_id": request_id}


def expire_stale_requests(db, now: datetime | None = None, window_hours: int = MATCH_REQUEST_EXPIRY_HOURS) -> int:
    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(hours=window_hours)
    rows = db.execute(
        text(
            """
            UPDATE match_request
            SET status = 'expired', updated_at = :now
            WHERE status = 'pending'
              AND created_at < :cutoff
            RETURNING requester_id, matched_user_id
            """
        ),
        {"now": now, "cutoff": cutoff},
    ).mappings().all()
    db.commit()
    for r in rows:
        invalidate_exclusions(str(r["requester_id"]), str(r["matched_user_id"]))
    logger.info("[match-request] expired %s pending requests older than %s", len(rows), cutoff.isoformat())
    return len(rows)
