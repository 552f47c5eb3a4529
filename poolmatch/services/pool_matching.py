from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable

from ..config import DEFAULT_MATCHING_CONFIG
from ..domain import MATCH_STATUS_PENDING, MatchingPool, MatchResult, MatchRoundInfo, PoolMember
from ..errors import NotEnoughMembers, PoolNotFound, RoundDeadlineExceeded
from .scheduling import new_round_id, next_scheduled_date

logger = logging.getLogger(__name__)

EXCLUDED = -1.0
BASE_SCORE = 100.0
RECENCY_PENALTY_POINTS = 20.0

LookupErrorHook = Callable[[str, PoolMember, PoolMember, Exception], None]
ScoringMatrix = dict[str, dict[str, float]]


@dataclass
class MatchingConfig:
    variety_weight: float = 0.6
    compatibility_weight: float = 0.4
    recency_days: int = 30

    @classmethod
    def from_mapping(cls, cfg: dict[str, Any] | None = None) -> "MatchingConfig":
        cfg = {**DEFAULT_MATCHING_CONFIG, **(cfg or {})}
        return cls(
            variety_weight=max(0.0, min(1.0, float(cfg.get("VARIETY_WEIGHT", 0.6)))),
            compatibility_weight=max(0.0, min(1.0, float(cfg.get("COMPATIBILITY_WEIGHT", 0.4)))),
            recency_days=int(cfg.get("RECENCY_DAYS", 30)),
        )


def _check_deadline(deadline: float | None) -> None:
    if deadline is not None and time.monotonic() >= deadline:
        raise RoundDeadlineExceeded()


def recency_penalty(recent_count: int, variety_weight: float) -> float:
    return recent_count * variety_weight * RECENCY_PENALTY_POINTS


def build_scoring_matrix(
    members: list[PoolMember],
    pool_store,
    config: MatchingConfig,
    compatibility=None,
    on_lookup_error: LookupErrorHook | None = None,
    deadline: float | None = None,
) -> ScoringMatrix:
    """Pairwise group-formation scores for one round.

    Excluded pairs (either direction) get the -1 sentinel. Otherwise the base
    score is blended with compatibility and reduced per recent match. Failed
    compatibility or recency lookups keep the score computed so far and are
    reported through ``on_lookup_error``.
    """
    scores: ScoringMatrix = {m.member_id: {} for m in members}
    exclusions = {m.member_id: set(m.excluded_members or []) for m in members}

    for i, a in enumerate(members):
        for b in members[i + 1:]:
            _check_deadline(deadline)

            if b.member_id in exclusions[a.member_id] or a.member_id in exclusions[b.member_id]:
                scores[a.member_id][b.member_id] = EXCLUDED
                scores[b.member_id][a.member_id] = EXCLUDED
                continue

            score = BASE_SCORE

            if compatibility is not None:
                try:
                    compat = compatibility.calculate_compatibility(a.user_id, b.user_id)
                except Exception as exc:
                    if on_lookup_error is not None:
                        on_lookup_error("compatibility", a, b, exc)
                else:
                    if compat is not None:
                        weight = config.compatibility_weight
                        score = weight * compat.score + (1 - weight) * score

            try:
                recent = pool_store.get_recent_matches_between([a.member_id, b.member_id], config.recency_days)
            except Exception as exc:
                if on_lookup_error is not None:
                    on_lookup_error("recency", a, b, exc)
            else:
                if recent:
                    score = max(0.0, score - recency_penalty(len(recent), config.variety_weight))

            scores[a.member_id][b.member_id] = score
            scores[b.member_id][a.member_id] = score

    return scores


def shuffle_members(members: list[PoolMember], rng: random.Random | None = None) -> list[PoolMember]:
    out = list(members)
    (rng or random.Random()).shuffle(out)
    return out


def _best_candidate(group: list[PoolMember], remaining: list[PoolMember], scores: ScoringMatrix) -> int:
    best_idx = -1
    best_score = -2.0
    for idx, candidate in enumerate(remaining):
        total = 0.0
        eligible = True
        for member in group:
            s = scores.get(member.member_id, {}).get(candidate.member_id, EXCLUDED)
            if s < 0:
                eligible = False
                break
            total += s
        if not eligible:
            continue
        avg = total / len(group)
        if avg > best_score:
            best_score = avg
            best_idx = idx
    return best_idx


def form_groups(
    members: list[PoolMember],
    scores: ScoringMatrix,
    group_size: int,
    rng: random.Random | None = None,
) -> list[list[PoolMember]]:
    """Greedy partition into groups of exactly ``group_size``.

    Seeds come from a shuffled order; each seed grows its group with the
    candidate of highest average score against the group, never taking a
    candidate with a -1 against any member. A group that cannot be completed
    is dissolved back into the pool. Leftovers are simply not returned.
    """
    if group_size <= 0:
        return []

    remaining = shuffle_members(members, rng)
    groups: list[list[PoolMember]] = []
    failed_seeds: set[str] = set()

    while len(remaining) >= group_size:
        seed_idx = next((i for i, m in enumerate(remaining) if m.member_id not in failed_seeds), -1)
        if seed_idx < 0:
            break
        group = [remaining.pop(seed_idx)]

        while len(group) < group_size and remaining:
            best_idx = _best_candidate(group, remaining, scores)
            if best_idx < 0:
                break
            group.append(remaining.pop(best_idx))

        if len(group) == group_size:
            groups.append(group)
            failed_seeds.clear()
        else:
            failed_seeds.add(group[0].member_id)
            remaining.extend(group)

    return groups


def log_lookup_failure(kind: str, a: PoolMember, b: PoolMember, exc: Exception) -> None:
    logger.warning(
        "[POOL_MATCH] %s lookup failed for members %s/%s, keeping base score: %s",
        kind,
        a.member_id,
        b.member_id,
        exc,
    )


class PoolMatchingEngine:
    """Runs one matching round for a pool against a pool store."""

    def __init__(
        self,
        pool_store,
        compatibility=None,
        config: MatchingConfig | None = None,
        on_lookup_error: LookupErrorHook | None = None,
        next_date: Callable[[str, datetime], datetime] = next_scheduled_date,
        round_id: Callable[[datetime], str] = new_round_id,
    ) -> None:
        self.pool_store = pool_store
        self.compatibility = compatibility
        self.config = config or MatchingConfig.from_mapping()
        self.on_lookup_error = on_lookup_error or log_lookup_failure
        self.next_date = next_date
        self.round_id = round_id

    def get_pool(self, pool_id: str) -> MatchingPool:
        pool = self.pool_store.get_pool(pool_id)
        if pool is None:
            raise PoolNotFound()
        return pool

    def run_matching(
        self,
        pool_id: str,
        *,
        now: datetime | None = None,
        deadline: float | None = None,
        rng: random.Random | None = None,
    ) -> MatchRoundInfo:
        pool = self.get_pool(pool_id)
        members = [m for m in self.pool_store.get_active_pool_members(pool_id) if m.active]
        if len(members) < pool.match_size:
            raise NotEnoughMembers()

        failures = 0

        def _on_lookup_error(kind: str, a: PoolMember, b: PoolMember, exc: Exception) -> None:
            nonlocal failures
            failures += 1
            self.on_lookup_error(kind, a, b, exc)

        scores = build_scoring_matrix(
            members,
            self.pool_store,
            self.config,
            compatibility=self.compatibility,
            on_lookup_error=_on_lookup_error,
            deadline=deadline,
        )
        groups = form_groups(members, scores, pool.match_size, rng=rng)

        now = now or datetime.now(timezone.utc)
        round_id = self.round_id(now)
        matches: list[MatchResult] = []
        for sequence, group in enumerate(groups):
            _check_deadline(deadline)
            match = MatchResult(
                pool_id=pool_id,
                members=[m.member_id for m in group],
                member_user_ids=[m.user_id for m in group],
                match_round=round_id,
                sequence=sequence,
                status=MATCH_STATUS_PENDING,
            )
            # Persistence errors abort the rest of the round.
            self.pool_store.create_match_result(match)
            matches.append(match)

        self.pool_store.update_pool(
            pool_id,
            next_match_on=self.next_date(pool.frequency, now),
            last_match_on=now,
        )

        grouped = {m.member_id for group in groups for m in group}
        unmatched = [m.member_id for m in members if m.member_id not in grouped]

        logger.info(
            "[POOL_MATCH] pool=%s round=%s members=%s groups=%s unmatched=%s lookup_failures=%s",
            pool_id,
            round_id,
            len(members),
            len(matches),
            len(unmatched),
            failures,
        )

        return MatchRoundInfo(
            pool_id=pool_id,
            pool_name=pool.name,
            round=round_id,
            ran_on=now,
            match_count=len(matches),
            matches=matches,
            unmatched_member_ids=unmatched,
            lookup_failures=failures,
        )
