from ..domain import (
    MATCH_STATUS_CANCELLED,
    MATCH_STATUS_COMPLETED,
    MATCH_STATUS_PENDING,
    MATCH_STATUS_SCHEDULED,
    MATCH_STATUS_SKIPPED,
)
from ..errors import InvalidStatusTransition

TERMINAL_STATUSES = {MATCH_STATUS_COMPLETED, MATCH_STATUS_CANCELLED, MATCH_STATUS_SKIPPED}

_ALLOWED = {
    MATCH_STATUS_PENDING: {MATCH_STATUS_SCHEDULED, MATCH_STATUS_COMPLETED, MATCH_STATUS_CANCELLED, MATCH_STATUS_SKIPPED},
    MATCH_STATUS_SCHEDULED: {MATCH_STATUS_COMPLETED, MATCH_STATUS_CANCELLED, MATCH_STATUS_SKIPPED},
}


def transition_match_status(current: str, target: str) -> str:
    if current == target:
        return current

    if current in TERMINAL_STATUSES:
        raise InvalidStatusTransition(f"match is already {current}")

    if target not in _ALLOWED.get(current, set()):
        raise InvalidStatusTransition(f"cannot move match from {current} to {target}")

    return target
