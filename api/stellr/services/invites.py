import logging
from dataclasses import dataclass
from datetime import date

from sqlalchemy import text

from ..config import FREE_DAILY_INVITES, PREMIUM_DAILY_INVITES, PREMIUM_TIERS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InviteDecision:
    allowed: bool
    remaining: int
    reset: bool = False


def daily_quota(subscription_status: str | None) -> int:
    if (subscription_status or "").lower() in PREMIUM_TIERS:
        return PREMIUM_DAILY_INVITES
    return FREE_DAILY_INVITES


def effective_remaining(remaining: int | None, last_reset: date | None, quota: int, today: date) -> tuple[int, bool]:
    if last_reset is None or last_reset < today or remaining is None:
        return quota, True
    return max(0, int(remaining)), False


def apply_invite_consumption(remaining: int | None, last_reset: date | None, quota: int, today: date) -> InviteDecision:
    current, reset = effective_remaining(remaining, last_reset, quota, today)
    if current <= 0:
        return InviteDecision(allowed=False, remaining=0, reset=reset)
    return InviteDecision(allowed=True, remaining=current - 1, reset=reset)


def consume_invite(db, user_id: str, today: date, commit: bool = True) -> InviteDecision:
    """Lock the profile row, reset on a new day, decrement if anything is left.

    With commit=False the decrement stays in the caller's transaction, so it is kept or
    rolled back together with whatever the invite was spent on.
    """
    row = db.execute(
        text(
            """
            SELECT daily_invites_remaining, last_invite_reset_date, subscription_status
            FROM user_profile
            WHERE id = CAST(:id AS uuid)
            FOR UPDATE
            """
        ),
        {"id": user_id},
    ).mappings().first()
    if not row:
        logger.info("[invites] unknown user %s", user_id)
        return InviteDecision(allowed=False, remaining=0)

    quota = daily_quota(row["subscription_status"])
    decision = apply_invite_consumption(row["daily_invites_remaining"], row["last_invite_reset_date"], quota, today)

    if decision.allowed or decision.reset:
        db.execute(
            text(
                """
                UPDATE user_profile
                SET daily_invites_remaining = :remaining,
                    last_invite_reset_date = :today
                WHERE id = CAST(:id AS uuid)
                """
            ),
            {"id": user_id, "remaining": decision.remaining, "today": today},
        )
    if commit:
        db.commit()
    if not decision.allowed:
        logger.info("[invites] quota exhausted for %s", user_id)
    return decision


def invites_status(db, user_id: str, today: date) -> dict:
    row = db.execute(
        text(
            """
            SELECT daily_invites_remaining, last_invite_reset_date, subscription_status
            FROM user_profile
            WHERE id = CAST(:id AS uuid)
            """
        ),
        {"id": user_id},
    ).mappings().first()
    if not row:
        return {"remaining_today": 0, "daily_quota": FREE_DAILY_INVITES, "subscription_status": "free"}
    quota = daily_quota(row["subscription_status"])
    remaining, _ = effective_remaining(row["daily_invites_remaining"], row["last_invite_reset_date"], quota, today)
    return {
        "remaining_today": remaining,
        "daily_quota": quota,
        "subscription_status": row["subscription_status"] or "free",
    }
