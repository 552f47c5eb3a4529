import hmac

from fastapi import Header, HTTPException

from .config import ADMIN_TOKEN
from .errors import (
    AlreadyPoolMember,
    DuplicateRoundError,
    ExclusionLimitReached,
    InvalidFrequency,
    InvalidMatchSize,
    InvalidStatusTransition,
    MatchNotFound,
    MemberLimitReached,
    NotEnoughMembers,
    NotMatchMember,
    NotPoolMember,
    PoolMatchError,
    PoolNotFound,
    RoundDeadlineExceeded,
)

_STATUS_BY_ERROR: list[tuple[type[PoolMatchError], int]] = [
    (PoolNotFound, 404),
    (MatchNotFound, 404),
    (NotPoolMember, 404),
    (NotEnoughMembers, 409),
    (DuplicateRoundError, 409),
    (AlreadyPoolMember, 409),
    (NotMatchMember, 403),
    (RoundDeadlineExceeded, 504),
    (InvalidMatchSize, 400),
    (InvalidFrequency, 400),
    (InvalidStatusTransition, 400),
    (MemberLimitReached, 400),
    (ExclusionLimitReached, 400),
]


def validate_admin_token(token: str | None, admin_token: str | None) -> None:
    if not admin_token or not token or not hmac.compare_digest(token.encode(), admin_token.encode()):
        raise HTTPException(status_code=401, detail="Invalid admin token")


def require_admin_token(x_admin_token: str | None = Header(default=None)) -> None:
    validate_admin_token(x_admin_token, ADMIN_TOKEN)


def http_error(exc: PoolMatchError) -> HTTPException:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))
