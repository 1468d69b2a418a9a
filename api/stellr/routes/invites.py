from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends

from ..auth.deps import get_current_user
from ..database import SessionLocal
from ..schemas import InviteResponse
from ..services.invites import consume_invite, invites_status

router = APIRouter()


@router.post("/invites/consume", response_model=InviteResponse)
def post_consume_invite(current_user: dict[str, Any] = Depends(get_current_user)) -> InviteResponse:
    with SessionLocal() as db:
        decision = consume_invite(db, str(current_user["id"]), datetime.now(timezone.utc).date())
    return InviteResponse(allowed=decision.allowed, remaining_today=decision.remaining)


@router.get("/invites")
def get_invites(current_user: dict[str, Any] = Depends(get_current_user)) -> dict[str, Any]:
    with SessionLocal() as db:
        return invites_status(db, str(current_user["id"]), datetime.now(timezone.utc).date())
