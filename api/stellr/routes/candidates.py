from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import ValidationError as SchemaError

from .. import repo
from ..auth.deps import get_current_user
from ..config import CANDIDATE_PAGE_DEFAULT, CANDIDATE_PAGE_MAX, DEFAULT_SCORING_CONFIG
from ..database import SessionLocal
from ..deps import parse_user_id
from ..schemas import CandidateFilters
from ..services.candidates import get_candidates
from ..services.compat_cache import get_or_compute
from ..services.compatibility import compute_compatibility

router = APIRouter()


def _filters_from_query(**values: Any) -> CandidateFilters:
    try:
        return CandidateFilters(**values)
    except SchemaError as exc:
        raise HTTPException(
            status_code=422,
            detail=[{"loc": list(err["loc"]), "msg": err["msg"]} for err in exc.errors()],
        )


@router.get("/candidates")
def list_candidates(
    zodiac_sign: str | None = None,
    min_age: int | None = None,
    max_age: int | None = None,
    max_distance_km: float | None = None,
    activity_type: str | None = None,
    limit: int = Query(default=CANDIDATE_PAGE_DEFAULT, ge=1, le=CANDIDATE_PAGE_MAX),
    offset: int = Query(default=0, ge=0),
    current_user: dict[str, Any] = Depends(get_current_user),
) -> dict[str, Any]:
    filters = _filters_from_query(
        zodiac_sign=zodiac_sign,
        min_age=min_age,
        max_age=max_age,
        max_distance_km=max_distance_km,
        activity_type=activity_type,
    )
    with SessionLocal() as db:
        return get_candidates(db, str(current_user["id"]), filters, limit=limit, offset=offset)


@router.get("/compatibility/{other_user_id}")
def get_compatibility(other_user_id: str, current_user: dict[str, Any] = Depends(get_current_user)) -> dict[str, Any]:
    me = str(current_user["id"])
    other = parse_user_id(other_user_id, "other_user_id")
    if other == me:
        raise HTTPException(status_code=400, detail="Cannot score compatibility with yourself")
    with SessionLocal() as db:
        if not repo.user_exists(db, other):
            raise HTTPException(status_code=404, detail="User not found")
        return get_or_compute(
            db,
            me,
            other,
            compute_compatibility,
            recommended_threshold=float(DEFAULT_SCORING_CONFIG.get("RECOMMENDED_THRESHOLD", 70.0)),
        )
