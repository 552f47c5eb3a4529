from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

IMPORTANCE_IRRELEVANT = "irrelevant"
IMPORTANCE_LITTLE = "little"
IMPORTANCE_SOMEWHAT = "somewhat"
IMPORTANCE_VERY = "very"
IMPORTANCE_MANDATORY = "mandatory"

DEFAULT_ALIGNMENT_WEIGHT = 0.5
UNCATEGORIZED = "uncategorized"

MATCH_STATUS_PENDING = "pending"
MATCH_STATUS_SCHEDULED = "scheduled"
MATCH_STATUS_COMPLETED = "completed"
MATCH_STATUS_CANCELLED = "cancelled"
MATCH_STATUS_SKIPPED = "skipped"


@dataclass(frozen=True)
class Answer:
    selected_option: str
    acceptable_options: frozenset[str] = frozenset()
    importance: str = IMPORTANCE_SOMEWHAT
    is_dealbreaker: bool = False
    alignment_weight: float = DEFAULT_ALIGNMENT_WEIGHT
    yikes_options: frozenset[str] = frozenset()
    question_id: str = ""
    user_id: str = ""

    def __post_init__(self) -> None:
        # Lists from JSON columns or request payloads become sets.
        object.__setattr__(self, "acceptable_options", frozenset(self.acceptable_options or ()))
        object.__setattr__(self, "yikes_options", frozenset(self.yikes_options or ()))


SharedAnswers = dict[str, tuple[Answer | None, Answer | None]]


@dataclass
class Question:
    id: str
    text: str = ""
    category: str = UNCATEGORIZED


@dataclass
class CompatibilityScore:
    user_a_id: str
    user_b_id: str
    score: float = 0.0
    a_to_b: float = 0.0
    b_to_a: float = 0.0
    shared_count: int = 0
    deal_breaker: bool = False


@dataclass
class DealBreakerViolation:
    question_id: str
    question_text: str
    user_answer: str
    partner_answer: str


@dataclass
class CompatibilityBreakdown:
    compatibility: CompatibilityScore
    category_scores: dict[str, float] = field(default_factory=dict)
    deal_breakers: list[DealBreakerViolation] = field(default_factory=list)


@dataclass
class YikesSummary:
    has_yikes: bool = False
    yikes_count: int = 0
    categories: list[str] = field(default_factory=list)
    severity: str = ""


@dataclass
class MatchingPool:
    id: str
    name: str
    frequency: str
    match_size: int
    next_match_on: datetime
    last_match_on: datetime | None = None
    active: bool = True
    description: str | None = None
    activity_suggestion: str | None = None


@dataclass
class PoolMember:
    id: str
    pool_id: str
    member_id: str
    user_id: str
    active: bool = True
    excluded_members: list[str] = field(default_factory=list)
    joined_on: datetime | None = None


@dataclass
class MatchResult:
    pool_id: str
    members: list[str]
    match_round: str
    member_user_ids: list[str] = field(default_factory=list)
    sequence: int = 0
    status: str = MATCH_STATUS_PENDING
    id: str = ""
    scheduled_time: datetime | None = None
    created_on: datetime | None = None


@dataclass
class MatchRoundInfo:
    pool_id: str
    pool_name: str
    round: str
    ran_on: datetime
    match_count: int
    matches: list[MatchResult] = field(default_factory=list)
    unmatched_member_ids: list[str] = field(default_factory=list)
    lookup_failures: int = 0

    def as_dict(self) -> dict[str, Any]:
        return {
            "pool_id": self.pool_id,
            "pool_name": self.pool_name,
            "round": self.round,
            "ran_on": self.ran_on.isoformat(),
            "match_count": self.match_count,
            "matches": [
                {
                    "id": m.id,
                    "members": list(m.members),
                    "member_user_ids": list(m.member_user_ids),
                    "sequence": m.sequence,
                    "status": m.status,
                }
                for m in self.matches
            ],
            "unmatched_member_ids": list(self.unmatched_member_ids),
            "lookup_failures": self.lookup_failures,
        }
