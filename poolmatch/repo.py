from __future__ import annotations

import json
import uuid
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError

from .domain import Answer, MatchingPool, MatchResult, PoolMember, Question, SharedAnswers
from .errors import DuplicateRoundError

_POOL_COLUMNS = {"name", "description", "frequency", "match_size", "activity_suggestion", "next_match_on", "last_match_on", "active"}
_MEMBER_COLUMNS = {"active", "excluded_members"}
_MATCH_COLUMNS = {"status", "scheduled_time"}


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _ts(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    # Fixed-width UTC text so string comparison in SQLite orders correctly.
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _as_datetime(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    parsed = datetime.fromisoformat(str(value))
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _json_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            return []
    if not isinstance(value, list):
        return []
    return [str(v) for v in value]


def _db_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return _ts(value)
    if isinstance(value, (list, tuple, set, frozenset)):
        return json.dumps(list(value))
    return value


def _row_to_pool(row: dict[str, Any]) -> MatchingPool:
    return MatchingPool(
        id=str(row["id"]),
        name=str(row["name"]),
        frequency=str(row["frequency"]),
        match_size=int(row["match_size"]),
        next_match_on=_as_datetime(row["next_match_on"]),
        last_match_on=_as_datetime(row.get("last_match_on")),
        active=bool(row["active"]),
        description=row.get("description"),
        activity_suggestion=row.get("activity_suggestion"),
    )


def _row_to_member(row: dict[str, Any]) -> PoolMember:
    return PoolMember(
        id=str(row["id"]),
        pool_id=str(row["pool_id"]),
        member_id=str(row["member_id"]),
        user_id=str(row["user_id"]),
        active=bool(row["active"]),
        excluded_members=_json_list(row.get("excluded_members")),
        joined_on=_as_datetime(row.get("joined_on")),
    )


def _row_to_match(row: dict[str, Any]) -> MatchResult:
    return MatchResult(
        id=str(row["id"]),
        pool_id=str(row["pool_id"]),
        members=_json_list(row["members"]),
        member_user_ids=_json_list(row.get("member_user_ids")),
        match_round=str(row["match_round"]),
        sequence=int(row["sequence"] or 0),
        status=str(row["status"]),
        scheduled_time=_as_datetime(row.get("scheduled_time")),
        created_on=_as_datetime(row.get("created_on")),
    )


def _row_to_answer(row: dict[str, Any]) -> Answer:
    return Answer(
        selected_option=str(row["selected_option"]),
        acceptable_options=frozenset(_json_list(row.get("acceptable_options"))),
        importance=str(row.get("importance") or "somewhat"),
        is_dealbreaker=bool(row.get("is_dealbreaker")),
        alignment_weight=float(row["alignment_weight"]) if row.get("alignment_weight") is not None else 0.5,
        yikes_options=frozenset(_json_list(row.get("yikes_options"))),
        question_id=str(row["question_id"]),
        user_id=str(row["user_id"]),
    )


def _set_clause(fields: dict[str, Any], allowed: set[str]) -> tuple[str, dict[str, Any]]:
    params: dict[str, Any] = {}
    parts: list[str] = []
    for key in sorted(fields):
        if key not in allowed:
            raise ValueError(f"unknown column: {key}")
        parts.append(f"{key}=:{key}")
        params[key] = _db_value(fields[key])
    return ", ".join(parts), params


def _default_session_factory():
    from .database import SessionLocal

    return SessionLocal


class SqlAnswerStore:
    def __init__(self, session_factory=None) -> None:
        self.session_factory = session_factory or _default_session_factory()

    def add_question(self, question: Question) -> None:
        with self.session_factory() as db:
            db.execute(text("DELETE FROM question WHERE id=:id"), {"id": question.id})
            db.execute(
                text("INSERT INTO question (id, text, category, active) VALUES (:id, :text, :category, :active)"),
                {"id": question.id, "text": question.text, "category": question.category, "active": True},
            )
            db.commit()

    def get_shared_answers(self, user_a_id: str, user_b_id: str) -> SharedAnswers:
        with self.session_factory() as db:
            rows = db.execute(
                text(
                    """
                    SELECT user_id, question_id, selected_option, acceptable_options, importance,
                           is_dealbreaker, alignment_weight, yikes_options
                    FROM questionnaire_answer
                    WHERE user_id IN (:user_a_id, :user_b_id)
                    """
                ),
                {"user_a_id": user_a_id, "user_b_id": user_b_id},
            ).mappings().all()

        shared: dict[str, list[Answer | None]] = {}
        for row in rows:
            answer = _row_to_answer(dict(row))
            slot = shared.setdefault(answer.question_id, [None, None])
            if answer.user_id == user_a_id:
                slot[0] = answer
            if answer.user_id == user_b_id:
                slot[1] = answer
        return {qid: (pair[0], pair[1]) for qid, pair in sorted(shared.items())}

    def get_all_questions(self) -> list[Question]:
        with self.session_factory() as db:
            rows = db.execute(text("SELECT id, text, category FROM question WHERE active = :active"), {"active": True}).mappings().all()
        return [Question(id=str(r["id"]), text=str(r["text"] or ""), category=str(r["category"] or "uncategorized")) for r in rows]

    def submit_answer(self, user_id: str, question_id: str, answer: Answer) -> Answer:
        # Re-answering replaces the previous row for the same question.
        with self.session_factory() as db:
            db.execute(
                text("DELETE FROM questionnaire_answer WHERE user_id=:user_id AND question_id=:question_id"),
                {"user_id": user_id, "question_id": question_id},
            )
            db.execute(
                text(
                    """
                    INSERT INTO questionnaire_answer
                    (id, user_id, question_id, selected_option, acceptable_options, importance,
                     is_dealbreaker, alignment_weight, yikes_options, answered_at)
                    VALUES (:id, :user_id, :question_id, :selected_option, :acceptable_options, :importance,
                            :is_dealbreaker, :alignment_weight, :yikes_options, :answered_at)
                    """
                ),
                {
                    "id": str(uuid.uuid4()),
                    "user_id": user_id,
                    "question_id": question_id,
                    "selected_option": answer.selected_option,
                    "acceptable_options": json.dumps(sorted(answer.acceptable_options)),
                    "importance": answer.importance,
                    "is_dealbreaker": bool(answer.is_dealbreaker),
                    "alignment_weight": float(answer.alignment_weight),
                    "yikes_options": json.dumps(sorted(answer.yikes_options)),
                    "answered_at": _ts(_now_utc()),
                },
            )
            db.commit()
        return replace(answer, user_id=user_id, question_id=question_id)


class SqlPoolStore:
    def __init__(self, session_factory=None, clock=_now_utc) -> None:
        self.session_factory = session_factory or _default_session_factory()
        self.clock = clock

    def create_pool(self, pool: MatchingPool) -> MatchingPool:
        pool.id = pool.id or str(uuid.uuid4())
        with self.session_factory() as db:
            db.execute(
                text(
                    """
                    INSERT INTO matching_pool
                    (id, name, description, frequency, match_size, activity_suggestion, next_match_on, last_match_on, active, created_on)
                    VALUES (:id, :name, :description, :frequency, :match_size, :activity_suggestion, :next_match_on, :last_match_on, :active, :created_on)
                    """
                ),
                {
                    "id": pool.id,
                    "name": pool.name,
                    "description": pool.description,
                    "frequency": pool.frequency,
                    "match_size": pool.match_size,
                    "activity_suggestion": pool.activity_suggestion,
                    "next_match_on": _ts(pool.next_match_on),
                    "last_match_on": _ts(pool.last_match_on),
                    "active": bool(pool.active),
                    "created_on": _ts(self.clock()),
                },
            )
            db.commit()
        return pool

    def get_pool(self, pool_id: str) -> MatchingPool | None:
        with self.session_factory() as db:
            row = db.execute(text("SELECT * FROM matching_pool WHERE id=:id"), {"id": pool_id}).mappings().first()
        return _row_to_pool(dict(row)) if row else None

    def update_pool(self, pool_id: str, **fields: Any) -> MatchingPool | None:
        if fields:
            clause, params = _set_clause(fields, _POOL_COLUMNS)
            with self.session_factory() as db:
                db.execute(text(f"UPDATE matching_pool SET {clause} WHERE id=:pool_id"), {**params, "pool_id": pool_id})
                db.commit()
        return self.get_pool(pool_id)

    def get_pools_due_for_matching(self, now: datetime) -> list[MatchingPool]:
        with self.session_factory() as db:
            rows = db.execute(
                text(
                    """
                    SELECT *
                    FROM matching_pool
                    WHERE active = :active
                      AND next_match_on <= :now
                    ORDER BY next_match_on
                    """
                ),
                {"active": True, "now": _ts(now)},
            ).mappings().all()
        return [_row_to_pool(dict(r)) for r in rows]

    def add_member(self, member: PoolMember) -> PoolMember:
        member.id = member.id or str(uuid.uuid4())
        member.joined_on = member.joined_on or self.clock()
        with self.session_factory() as db:
            db.execute(
                text(
                    """
                    INSERT INTO pool_member (id, pool_id, member_id, user_id, active, excluded_members, joined_on)
                    VALUES (:id, :pool_id, :member_id, :user_id, :active, :excluded_members, :joined_on)
                    """
                ),
                {
                    "id": member.id,
                    "pool_id": member.pool_id,
                    "member_id": member.member_id,
                    "user_id": member.user_id,
                    "active": bool(member.active),
                    "excluded_members": json.dumps(list(member.excluded_members or [])),
                    "joined_on": _ts(member.joined_on),
                },
            )
            db.commit()
        return member

    def get_member(self, pool_id: str, member_id: str) -> PoolMember | None:
        with self.session_factory() as db:
            row = db.execute(
                text("SELECT * FROM pool_member WHERE pool_id=:pool_id AND member_id=:member_id"),
                {"pool_id": pool_id, "member_id": member_id},
            ).mappings().first()
        return _row_to_member(dict(row)) if row else None

    def update_member(self, membership_id: str, **fields: Any) -> PoolMember | None:
        if fields:
            clause, params = _set_clause(fields, _MEMBER_COLUMNS)
            with self.session_factory() as db:
                db.execute(text(f"UPDATE pool_member SET {clause} WHERE id=:membership_id"), {**params, "membership_id": membership_id})
                db.commit()
        with self.session_factory() as db:
            row = db.execute(text("SELECT * FROM pool_member WHERE id=:id"), {"id": membership_id}).mappings().first()
        return _row_to_member(dict(row)) if row else None

    def get_pool_members(self, pool_id: str) -> list[PoolMember]:
        with self.session_factory() as db:
            rows = db.execute(
                text("SELECT * FROM pool_member WHERE pool_id=:pool_id ORDER BY joined_on, member_id"),
                {"pool_id": pool_id},
            ).mappings().all()
        return [_row_to_member(dict(r)) for r in rows]

    def get_active_pool_members(self, pool_id: str) -> list[PoolMember]:
        return [m for m in self.get_pool_members(pool_id) if m.active]

    def count_pool_members(self, pool_id: str) -> int:
        with self.session_factory() as db:
            row = db.execute(
                text("SELECT COUNT(1) AS c FROM pool_member WHERE pool_id=:pool_id AND active = :active"),
                {"pool_id": pool_id, "active": True},
            ).mappings().first()
        return int((row or {}).get("c") or 0)

    def create_match_result(self, result: MatchResult) -> None:
        result.id = result.id or str(uuid.uuid4())
        result.created_on = result.created_on or self.clock()
        try:
            with self.session_factory() as db:
                db.execute(
                    text(
                        """
                        INSERT INTO match_result
                        (id, pool_id, members, member_user_ids, match_round, sequence, status, scheduled_time, created_on)
                        VALUES (:id, :pool_id, :members, :member_user_ids, :match_round, :sequence, :status, :scheduled_time, :created_on)
                        """
                    ),
                    {
                        "id": result.id,
                        "pool_id": result.pool_id,
                        "members": json.dumps(list(result.members)),
                        "member_user_ids": json.dumps(list(result.member_user_ids)),
                        "match_round": result.match_round,
                        "sequence": result.sequence,
                        "status": result.status,
                        "scheduled_time": _ts(result.scheduled_time),
                        "created_on": _ts(result.created_on),
                    },
                )
                db.commit()
        except IntegrityError as exc:
            raise DuplicateRoundError(f"pool {result.pool_id} round {result.match_round} group {result.sequence} already recorded") from exc

    def get_match_result(self, match_id: str) -> MatchResult | None:
        with self.session_factory() as db:
            row = db.execute(text("SELECT * FROM match_result WHERE id=:id"), {"id": match_id}).mappings().first()
        return _row_to_match(dict(row)) if row else None

    def update_match_result(self, match_id: str, **fields: Any) -> MatchResult | None:
        if fields:
            clause, params = _set_clause(fields, _MATCH_COLUMNS)
            with self.session_factory() as db:
                db.execute(text(f"UPDATE match_result SET {clause} WHERE id=:match_id"), {**params, "match_id": match_id})
                db.commit()
        return self.get_match_result(match_id)

    def get_matches_by_round(self, pool_id: str, match_round: str) -> list[MatchResult]:
        with self.session_factory() as db:
            rows = db.execute(
                text("SELECT * FROM match_result WHERE pool_id=:pool_id AND match_round=:match_round ORDER BY sequence"),
                {"pool_id": pool_id, "match_round": match_round},
            ).mappings().all()
        return [_row_to_match(dict(r)) for r in rows]

    def get_matches_by_pool(self, pool_id: str, limit: int) -> list[MatchResult]:
        with self.session_factory() as db:
            rows = db.execute(
                text("SELECT * FROM match_result WHERE pool_id=:pool_id ORDER BY created_on DESC LIMIT :limit"),
                {"pool_id": pool_id, "limit": int(limit)},
            ).mappings().all()
        return [_row_to_match(dict(r)) for r in rows]

    def get_recent_matches_between(self, member_ids: list[str], days: int) -> list[MatchResult]:
        since = self.clock() - timedelta(days=days)
        with self.session_factory() as db:
            rows = db.execute(
                text(
                    """
                    SELECT *
                    FROM match_result
                    WHERE created_on > :since
                    ORDER BY created_on DESC
                    """
                ),
                {"since": _ts(since)},
            ).mappings().all()
        wanted = set(member_ids)
        matches = [_row_to_match(dict(r)) for r in rows]
        return [m for m in matches if wanted.issubset(m.members)]
