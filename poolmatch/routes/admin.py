from __future__ import annotations

import random
import time
from dataclasses import asdict
from typing import Any

from fastapi import APIRouter, Body, Depends
from fastapi.encoders import jsonable_encoder

from ..config import DEFAULT_MATCHING_CONFIG
from ..deps import http_error, require_admin_token
from ..errors import PoolMatchError
from ..repo import SqlAnswerStore, SqlPoolStore
from ..schemas import CompatibilityResponse, RunMatchingRequest, RunMatchingResponse
from ..services.compatibility import CompatibilityScorer
from ..services.pool_matching import MatchingConfig, PoolMatchingEngine

router = APIRouter(dependencies=[Depends(require_admin_token)])


def get_scorer() -> CompatibilityScorer:
    answers = SqlAnswerStore()
    return CompatibilityScorer(answers, answers)


def get_engine() -> PoolMatchingEngine:
    return PoolMatchingEngine(
        SqlPoolStore(),
        compatibility=get_scorer(),
        config=MatchingConfig.from_mapping(DEFAULT_MATCHING_CONFIG),
    )


def _json(data: Any) -> Any:
    return jsonable_encoder(data)


@router.post("/pools/{pool_id}/run-matching", response_model=RunMatchingResponse)
def run_pool_matching(pool_id: str, payload: RunMatchingRequest | None = Body(default=None)) -> dict[str, Any]:
    payload = payload or RunMatchingRequest()
    rng = random.Random(payload.seed) if payload.seed is not None else None
    deadline = time.monotonic() + payload.timeout_seconds if payload.timeout_seconds else None
    try:
        info = get_engine().run_matching(pool_id, deadline=deadline, rng=rng)
    except PoolMatchError as exc:
        raise http_error(exc) from exc
    return info.as_dict()


@router.get("/compatibility/{user_a_id}/{user_b_id}", response_model=CompatibilityResponse)
def get_compatibility(user_a_id: str, user_b_id: str) -> dict[str, Any]:
    scorer = get_scorer()
    breakdown = scorer.calculate_breakdown(user_a_id, user_b_id)
    yikes = scorer.calculate_yikes_summary(user_a_id, user_b_id)
    return _json(
        {
            "compatibility": asdict(breakdown.compatibility),
            "category_scores": breakdown.category_scores,
            "deal_breakers": [asdict(v) for v in breakdown.deal_breakers],
            "yikes": asdict(yikes),
        }
    )
