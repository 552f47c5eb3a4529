from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable

from ..config import (
    DEFAULT_MATCH_SIZE,
    MAX_ACTIVITY_SUGG_LENGTH,
    MAX_EXCLUSIONS_PER_MEMBER,
    MAX_MATCH_SIZE,
    MAX_MEMBERS_PER_POOL,
    MAX_POOL_DESC_LENGTH,
    MAX_POOL_NAME_LENGTH,
    MIN_MATCH_SIZE,
)
from ..domain import MATCH_STATUS_SCHEDULED, MatchingPool, MatchResult, PoolMember
from ..errors import (
    AlreadyPoolMember,
    ExclusionLimitReached,
    InvalidFrequency,
    InvalidMatchSize,
    MatchNotFound,
    MemberLimitReached,
    NotMatchMember,
    NotPoolMember,
    PoolNotFound,
)
from .scheduling import is_valid_frequency, next_scheduled_date
from .state_machine import transition_match_status

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 20


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _truncate(value: str | None, limit: int) -> str | None:
    if value is None:
        return None
    return value[:limit]


def _validate_match_size(match_size: int) -> None:
    if not MIN_MATCH_SIZE <= int(match_size) <= MAX_MATCH_SIZE:
        raise InvalidMatchSize()


def _validate_frequency(frequency: str) -> None:
    if not is_valid_frequency(frequency):
        raise InvalidFrequency(f"invalid frequency: {frequency}")


def _clean_exclusions(excluded_members: list[str] | None, member_id: str) -> list[str]:
    out: list[str] = []
    for other in excluded_members or []:
        other = str(other)
        if other and other != member_id and other not in out:
            out.append(other)
    return out


class PoolService:
    """Pool, membership and match lifecycle on top of a pool store."""

    def __init__(self, store, clock: Callable[[], datetime] = _utcnow) -> None:
        self.store = store
        self.clock = clock

    def _pool(self, pool_id: str) -> MatchingPool:
        pool = self.store.get_pool(pool_id)
        if pool is None:
            raise PoolNotFound()
        return pool

    def create_pool(
        self,
        name: str,
        frequency: str,
        match_size: int = DEFAULT_MATCH_SIZE,
        description: str | None = None,
        activity_suggestion: str | None = None,
    ) -> MatchingPool:
        _validate_frequency(frequency)
        _validate_match_size(match_size)
        pool = MatchingPool(
            id="",
            name=_truncate(name, MAX_POOL_NAME_LENGTH) or "",
            frequency=frequency,
            match_size=int(match_size),
            next_match_on=next_scheduled_date(frequency, self.clock()),
            description=_truncate(description, MAX_POOL_DESC_LENGTH),
            activity_suggestion=_truncate(activity_suggestion, MAX_ACTIVITY_SUGG_LENGTH),
        )
        created = self.store.create_pool(pool)
        logger.info("[POOL] created pool=%s frequency=%s size=%s", created.id, frequency, match_size)
        return created

    def update_pool(
        self,
        pool_id: str,
        *,
        name: str | None = None,
        description: str | None = None,
        frequency: str | None = None,
        match_size: int | None = None,
        activity_suggestion: str | None = None,
        active: bool | None = None,
    ) -> MatchingPool:
        pool = self._pool(pool_id)
        fields: dict[str, Any] = {}
        if name is not None:
            fields["name"] = _truncate(name, MAX_POOL_NAME_LENGTH)
        if description is not None:
            fields["description"] = _truncate(description, MAX_POOL_DESC_LENGTH)
        if activity_suggestion is not None:
            fields["activity_suggestion"] = _truncate(activity_suggestion, MAX_ACTIVITY_SUGG_LENGTH)
        if match_size is not None:
            _validate_match_size(match_size)
            fields["match_size"] = int(match_size)
        if frequency is not None and frequency != pool.frequency:
            _validate_frequency(frequency)
            fields["frequency"] = frequency
            fields["next_match_on"] = next_scheduled_date(frequency, self.clock())
        if active is not None:
            fields["active"] = bool(active)
        if not fields:
            return pool
        return self.store.update_pool(pool_id, **fields)

    def join_pool(
        self,
        pool_id: str,
        member_id: str,
        user_id: str,
        excluded_members: list[str] | None = None,
    ) -> PoolMember:
        self._pool(pool_id)
        exclusions = _clean_exclusions(excluded_members, member_id)[:MAX_EXCLUSIONS_PER_MEMBER]

        existing = self.store.get_member(pool_id, member_id)
        if existing is not None:
            if existing.active:
                raise AlreadyPoolMember()
            return self.store.update_member(existing.id, active=True, excluded_members=exclusions)

        if self.store.count_pool_members(pool_id) >= MAX_MEMBERS_PER_POOL:
            raise MemberLimitReached()

        return self.store.add_member(
            PoolMember(
                id="",
                pool_id=pool_id,
                member_id=member_id,
                user_id=user_id,
                active=True,
                excluded_members=exclusions,
                joined_on=self.clock(),
            )
        )

    def _membership(self, pool_id: str, member_id: str) -> PoolMember:
        member = self.store.get_member(pool_id, member_id)
        if member is None:
            raise NotPoolMember()
        return member

    def leave_pool(self, pool_id: str, member_id: str) -> PoolMember:
        member = self._membership(pool_id, member_id)
        if not member.active:
            raise NotPoolMember()
        return self.store.update_member(member.id, active=False)

    def update_membership(
        self,
        pool_id: str,
        member_id: str,
        *,
        active: bool | None = None,
        excluded_members: list[str] | None = None,
    ) -> PoolMember:
        member = self._membership(pool_id, member_id)
        fields: dict[str, Any] = {}
        if active is not None:
            fields["active"] = bool(active)
        if excluded_members is not None:
            exclusions = _clean_exclusions(excluded_members, member_id)
            if len(exclusions) > MAX_EXCLUSIONS_PER_MEMBER:
                raise ExclusionLimitReached()
            fields["excluded_members"] = exclusions
        if not fields:
            return member
        return self.store.update_member(member.id, **fields)

    def update_match(
        self,
        match_id: str,
        user_id: str,
        *,
        status: str | None = None,
        scheduled_time: datetime | None = None,
    ) -> MatchResult:
        match = self.store.get_match_result(match_id)
        if match is None:
            raise MatchNotFound()
        if user_id not in match.member_user_ids:
            raise NotMatchMember()

        fields: dict[str, Any] = {}
        current = match.status
        if scheduled_time is not None:
            fields["scheduled_time"] = scheduled_time
            current = transition_match_status(current, MATCH_STATUS_SCHEDULED)
        if status is not None:
            current = transition_match_status(current, status)
        if current != match.status:
            fields["status"] = current
        if not fields:
            return match
        return self.store.update_match_result(match_id, **fields)

    def get_round_matches(self, pool_id: str, match_round: str) -> list[MatchResult]:
        self._pool(pool_id)
        return self.store.get_matches_by_round(pool_id, match_round)

    def get_match_history(self, pool_id: str, limit: int = DEFAULT_HISTORY_LIMIT) -> list[MatchResult]:
        self._pool(pool_id)
        if limit <= 0:
            limit = DEFAULT_HISTORY_LIMIT
        return self.store.get_matches_by_pool(pool_id, limit)
