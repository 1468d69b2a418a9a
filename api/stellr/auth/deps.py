"""
Authentication dependencies for FastAPI.

Identity is issued by an external auth service as an HS256 bearer token whose
`sub` claim is the user_profile id. This module only verifies it.
"""

import logging
import uuid
from typing import Any

from fastapi import Header, HTTPException

from stellr.auth.security import decode_access_token
from stellr.config import DEV_MODE

logger = logging.getLogger(__name__)


def _unauthorized(reason: str, trace_id: str, message: str = "unauthorized") -> HTTPException:
    logger.warning("[auth] failure reason=%s trace_id=%s", reason, trace_id)
    detail: dict[str, Any] = {"message": message, "trace_id": trace_id}
    if DEV_MODE:
        detail["reason"] = reason
    return HTTPException(status_code=401, detail=detail)


def _extract_bearer(authorization: str | None) -> str | None:
    if not authorization:
        return None
    parts = authorization.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1].strip():
        return None
    return parts[1].strip()


def get_current_user(authorization: str | None = Header(default=None, alias="Authorization")) -> dict[str, Any]:
    trace_id = str(uuid.uuid4())
    if not authorization:
        raise _unauthorized("missing_token", trace_id, "Authentication required")

    token = _extract_bearer(authorization)
    if not token:
        raise _unauthorized("malformed_token", trace_id)

    try:
        payload = decode_access_token(token)
    except HTTPException as e:
        if e.status_code != 401:
            raise
        reason = "token_expired" if "expired" in str(e.detail).lower() else "signature_invalid"
        raise _unauthorized(reason, trace_id)

    raw_sub = str(payload.get("sub") or "").strip()
    try:
        user_id = str(uuid.UUID(raw_sub))
    except ValueError:
        raise _unauthorized("token_missing_subject", trace_id)

    logger.debug("[auth] token valid, sub=%s", user_id)
    return {"id": user_id, "subscription_status": payload.get("subscription_status")}
