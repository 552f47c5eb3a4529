from __future__ import annotations

import copy
import uuid
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Protocol

from .domain import Answer, MatchingPool, MatchResult, PoolMember, Question, SharedAnswers
from .errors import DuplicateRoundError


class AnswerStore(Protocol):
    def get_shared_answers(self, user_a_id: str, user_b_id: str) -> SharedAnswers: ...


class QuestionCatalog(Protocol):
    def get_all_questions(self) -> list[Question]: ...


class PoolStore(Protocol):
    def get_pool(self, pool_id: str) -> MatchingPool | None: ...

    def get_active_pool_members(self, pool_id: str) -> list[PoolMember]: ...

    def get_recent_matches_between(self, member_ids: list[str], days: int) -> list[MatchResult]: ...

    def create_match_result(self, result: MatchResult) -> None: ...

    def update_pool(self, pool_id: str, **fields: Any) -> MatchingPool | None: ...

    def get_pools_due_for_matching(self, now: datetime) -> list[MatchingPool]: ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryAnswerStore:
    def __init__(self) -> None:
        self._answers: dict[str, dict[str, Answer]] = {}
        self._questions: dict[str, Question] = {}

    def add_question(self, question: Question) -> None:
        self._questions[question.id] = question

    def get_all_questions(self) -> list[Question]:
        return list(self._questions.values())

    def submit_answer(self, user_id: str, question_id: str, answer: Answer) -> Answer:
        # A new submission supersedes the previous answer.
        stored = replace(answer, user_id=user_id, question_id=question_id)
        self._answers.setdefault(user_id, {})[question_id] = stored
        return stored

    def get_shared_answers(self, user_a_id: str, user_b_id: str) -> SharedAnswers:
        answers_a = self._answers.get(user_a_id, {})
        answers_b = self._answers.get(user_b_id, {})
        question_ids = set(answers_a) | set(answers_b)
        return {qid: (answers_a.get(qid), answers_b.get(qid)) for qid in sorted(question_ids)}


class InMemoryPoolStore:
    """Dict-backed pool store with the same duplicate-round rule as the SQL store."""

    def __init__(self, clock: Callable[[], datetime] = _utcnow) -> None:
        self.clock = clock
        self.pools: dict[str, MatchingPool] = {}
        self.members: dict[str, PoolMember] = {}
        self.matches: dict[str, MatchResult] = {}

    def create_pool(self, pool: MatchingPool) -> MatchingPool:
        if not pool.id:
            pool.id = str(uuid.uuid4())
        self.pools[pool.id] = pool
        return pool

    def get_pool(self, pool_id: str) -> MatchingPool | None:
        pool = self.pools.get(pool_id)
        return copy.deepcopy(pool) if pool else None

    def update_pool(self, pool_id: str, **fields: Any) -> MatchingPool | None:
        pool = self.pools.get(pool_id)
        if pool is None:
            return None
        for key, value in fields.items():
            setattr(pool, key, value)
        return copy.deepcopy(pool)

    def get_pools_due_for_matching(self, now: datetime) -> list[MatchingPool]:
        return [copy.deepcopy(p) for p in self.pools.values() if p.active and p.next_match_on <= now]

    def add_member(self, member: PoolMember) -> PoolMember:
        if not member.id:
            member.id = str(uuid.uuid4())
        if member.joined_on is None:
            member.joined_on = self.clock()
        self.members[member.id] = member
        return copy.deepcopy(member)

    def get_member(self, pool_id: str, member_id: str) -> PoolMember | None:
        for m in self.members.values():
            if m.pool_id == pool_id and m.member_id == member_id:
                return copy.deepcopy(m)
        return None

    def update_member(self, membership_id: str, **fields: Any) -> PoolMember | None:
        member = self.members.get(membership_id)
        if member is None:
            return None
        for key, value in fields.items():
            setattr(member, key, value)
        return copy.deepcopy(member)

    def get_pool_members(self, pool_id: str) -> list[PoolMember]:
        return [copy.deepcopy(m) for m in self.members.values() if m.pool_id == pool_id]

    def get_active_pool_members(self, pool_id: str) -> list[PoolMember]:
        return [m for m in self.get_pool_members(pool_id) if m.active]

    def count_pool_members(self, pool_id: str) -> int:
        return len(self.get_active_pool_members(pool_id))

    def create_match_result(self, result: MatchResult) -> None:
        for existing in self.matches.values():
            if (existing.pool_id, existing.match_round, existing.sequence) == (result.pool_id, result.match_round, result.sequence):
                raise DuplicateRoundError()
        if not result.id:
            result.id = str(uuid.uuid4())
        if result.created_on is None:
            result.created_on = self.clock()
        self.matches[result.id] = copy.deepcopy(result)

    def get_match_result(self, match_id: str) -> MatchResult | None:
        match = self.matches.get(match_id)
        return copy.deepcopy(match) if match else None

    def update_match_result(self, match_id: str, **fields: Any) -> MatchResult | None:
        match = self.matches.get(match_id)
        if match is None:
            return None
        for key, value in fields.items():
            setattr(match, key, value)
        return copy.deepcopy(match)

    def get_matches_by_round(self, pool_id: str, match_round: str) -> list[MatchResult]:
        rows = [m for m in self.matches.values() if m.pool_id == pool_id and m.match_round == match_round]
        return [copy.deepcopy(m) for m in sorted(rows, key=lambda m: m.sequence)]

    def get_matches_by_pool(self, pool_id: str, limit: int) -> list[MatchResult]:
        rows = [m for m in self.matches.values() if m.pool_id == pool_id]
        rows.sort(key=lambda m: m.created_on, reverse=True)
        return [copy.deepcopy(m) for m in rows[:limit]]

    def get_recent_matches_between(self, member_ids: list[str], days: int) -> list[MatchResult]:
        cutoff = self.clock() - timedelta(days=days)
        wanted = set(member_ids)
        return [
            copy.deepcopy(m)
            for m in self.matches.values()
            if m.created_on is not None and m.created_on > cutoff and wanted.issubset(m.members)
        ]
