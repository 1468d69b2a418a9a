import uuid

from fastapi import HTTPException

from .errors import MatchCoreError, ValidationError, to_http


def validate_admin_token(token: str | None, admin_token: str | None) -> None:
    if not admin_token or not token or token != admin_token:
        raise HTTPException(status_code=401, detail="Invalid admin token")


def parse_user_id(raw: str | None, field: str = "user_id") -> str:
    value = (raw or "").strip()
    try:
        return str(uuid.UUID(value))
    except ValueError:
        raise to_http(ValidationError(f"{field} must be a valid UUID"))


def raise_http(exc: MatchCoreError) -> None:
    raise to_http(exc) from exc
