from typing import Any

from pydantic import BaseModel, Field


class RunMatchingRequest(BaseModel):
    seed: int | None = None
    timeout_seconds: float | None = Field(default=None, gt=0)


class MatchSummary(BaseModel):
    id: str
    members: list[str]
    member_user_ids: list[str] = Field(default_factory=list)
    sequence: int
    status: str


class RunMatchingResponse(BaseModel):
    pool_id: str
    pool_name: str
    round: str
    ran_on: str
    match_count: int
    matches: list[MatchSummary] = Field(default_factory=list)
    unmatched_member_ids: list[str] = Field(default_factory=list)
    lookup_failures: int = 0


class CompatibilityResponse(BaseModel):
    compatibility: dict[str, Any]
    category_scores: dict[str, float] = Field(default_factory=dict)
    deal_breakers: list[dict[str, Any]] = Field(default_factory=list)
    yikes: dict[str, Any]
