from typing import Any

from fastapi import APIRouter, Depends

from ..auth.deps import get_current_user
from ..config import RL_SWIPE_LIMIT, RL_WINDOW_SECONDS
from ..database import SessionLocal
from ..deps import parse_user_id, raise_http
from ..errors import MatchCoreError
from ..schemas import BlockBody, SwipeBody
from ..services.rate_limit import rate_limit_dependency
from ..services.swipes import block_user, record_swipe

router = APIRouter()

RL_SWIPE = rate_limit_dependency("swipe", RL_SWIPE_LIMIT, RL_WINDOW_SECONDS)


@router.post("/swipes", dependencies=[RL_SWIPE])
def post_swipe(payload: SwipeBody, current_user: dict[str, Any] = Depends(get_current_user)) -> dict[str, Any]:
    swiped = parse_user_id(payload.swiped_id, "swiped_id")
    with SessionLocal() as db:
        try:
            return record_swipe(db, str(current_user["id"]), swiped, payload.swipe_type)
        except MatchCoreError as exc:
            raise_http(exc)


@router.post("/blocks")
def post_block(payload: BlockBody, current_user: dict[str, Any] = Depends(get_current_user)) -> dict[str, Any]:
    blocked = parse_user_id(payload.blocked_user_id, "blocked_user_id")
    with SessionLocal() as db:
        try:
            return block_user(db, str(current_user["id"]), blocked)
        except MatchCoreError as exc:
            raise_http(exc)
