from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, HTTPException

from ..auth.deps import get_current_user
from ..config import RL_MATCH_REQUEST_LIMIT, RL_MATCH_RESPOND_LIMIT, RL_UNMATCH_LIMIT, RL_WINDOW_SECONDS
from ..database import SessionLocal
from ..deps import parse_user_id, raise_http
from ..errors import MatchCoreError
from ..schemas import CreateMatchRequestBody, RespondMatchRequestBody, UnmatchBody
from ..services.confirmation import unmatch
from ..services.match_requests import create_match_request, delete_match_request, respond_to_match_request
from ..services.rate_limit import rate_limit_dependency

router = APIRouter()

RL_MATCH_REQUEST = rate_limit_dependency("match_request", RL_MATCH_REQUEST_LIMIT, RL_WINDOW_SECONDS)
RL_MATCH_RESPOND = rate_limit_dependency("match_respond", RL_MATCH_RESPOND_LIMIT, RL_WINDOW_SECONDS)
RL_UNMATCH = rate_limit_dependency("unmatch", RL_UNMATCH_LIMIT, RL_WINDOW_SECONDS)


@router.post("/match-requests", dependencies=[RL_MATCH_REQUEST])
def post_match_request(payload: CreateMatchRequestBody, current_user: dict[str, Any] = Depends(get_current_user)) -> dict[str, Any]:
    target = parse_user_id(payload.matched_user_id, "matched_user_id")
    with SessionLocal() as db:
        try:
            result = create_match_request(db, str(current_user["id"]), target, today=datetime.now(timezone.utc).date())
        except MatchCoreError as exc:
            raise_http(exc)
    if not result["allowed"]:
        raise HTTPException(status_code=429, detail={"message": "Daily invite limit reached", "remaining_today": 0})
    return result


@router.post("/match-requests/{request_id}/respond", dependencies=[RL_MATCH_RESPOND])
def post_match_request_response(
    request_id: str,
    payload: RespondMatchRequestBody,
    current_user: dict[str, Any] = Depends(get_current_user),
) -> dict[str, Any]:
    rid = parse_user_id(request_id, "request_id")
    with SessionLocal() as db:
        try:
            return respond_to_match_request(db, rid, str(current_user["id"]), payload.decision)
        except MatchCoreError as exc:
            raise_http(exc)


@router.delete("/match-requests/{request_id}")
def remove_match_request(request_id: str, current_user: dict[str, Any] = Depends(get_current_user)) -> dict[str, Any]:
    rid = parse_user_id(request_id, "request_id")
    with SessionLocal() as db:
        try:
            return delete_match_request(db, rid, str(current_user["id"]))
        except MatchCoreError as exc:
            raise_http(exc)


@router.post("/matches/unmatch", dependencies=[RL_UNMATCH])
def post_unmatch(payload: UnmatchBody, current_user: dict[str, Any] = Depends(get_current_user)) -> dict[str, Any]:
    other = parse_user_id(payload.other_user_id, "other_user_id")
    with SessionLocal() as db:
        try:
            return unmatch(db, str(current_user["id"]), other, payload.reason)
        except MatchCoreError as exc:
            raise_http(exc)
