from fastapi import HTTPException


class MatchCoreError(Exception):
    status_code = 500

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(detail)


class ValidationError(MatchCoreError):
    """Rejected input: self-targeting, malformed filters, unknown decisions."""

    status_code = 400


class Forbidden(MatchCoreError):
    status_code = 403


class NotFound(MatchCoreError):
    status_code = 404


class Conflict(MatchCoreError):
    """An active request or match already exists for the pair."""

    status_code = 409


def to_http(exc: MatchCoreError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.detail)
