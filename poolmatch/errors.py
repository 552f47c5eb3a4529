class PoolMatchError(Exception):
    """Base class for pool and compatibility errors."""

    message = "pool matching error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)


class PoolNotFound(PoolMatchError):
    message = "pool not found"


class NotEnoughMembers(PoolMatchError):
    message = "not enough active members to create matches"


class InvalidMatchSize(PoolMatchError):
    message = "match size must be between 2 and 6"


class InvalidFrequency(PoolMatchError):
    message = "invalid frequency"


class AlreadyPoolMember(PoolMatchError):
    message = "already a member of this pool"


class NotPoolMember(PoolMatchError):
    message = "not a member of this pool"


class MemberLimitReached(PoolMatchError):
    message = "maximum members per pool reached"


class ExclusionLimitReached(PoolMatchError):
    message = "maximum exclusions reached"


class MatchNotFound(PoolMatchError):
    message = "match not found"


class NotMatchMember(PoolMatchError):
    message = "not a member of this match"


class InvalidStatusTransition(PoolMatchError):
    message = "invalid match status transition"


class DuplicateRoundError(PoolMatchError):
    message = "match result already recorded for this pool round"


class RoundDeadlineExceeded(PoolMatchError):
    message = "matching round exceeded its deadline"
