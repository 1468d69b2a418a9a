import logging
from typing import Any

from fastapi import APIRouter, Header

from ..config import ADMIN_TOKEN, MATCH_REQUEST_EXPIRY_HOURS
from ..database import SessionLocal
from ..deps import parse_user_id, validate_admin_token
from ..services.compat_cache import invalidate_user
from ..services.match_requests import expire_stale_requests

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/admin/match-requests/expire")
def admin_expire_match_requests(
    window_hours: int = MATCH_REQUEST_EXPIRY_HOURS,
    x_admin_token: str | None = Header(default=None, alias="X-Admin-Token"),
) -> dict[str, Any]:
    validate_admin_token(x_admin_token, ADMIN_TOKEN)
    with SessionLocal() as db:
        expired = expire_stale_requests(db, window_hours=max(1, window_hours))
    return {"expired": expired, "window_hours": max(1, window_hours)}


@router.post("/admin/users/{user_id}/compatibility/invalidate")
def admin_invalidate_compatibility(
    user_id: str,
    x_admin_token: str | None = Header(default=None, alias="X-Admin-Token"),
) -> dict[str, Any]:
    """Called by the profile service after a chart or questionnaire edit."""
    validate_admin_token(x_admin_token, ADMIN_TOKEN)
    uid = parse_user_id(user_id)
    with SessionLocal() as db:
        invalidate_user(db, uid)
        db.commit()
    logger.info("[admin] compatibility cache cleared for %s", uid)
    return {"success": True, "user_id": uid}
