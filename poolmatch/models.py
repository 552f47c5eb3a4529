import uuid

from sqlalchemy import JSON, Boolean, Column, DateTime, Float, ForeignKey, Index, Integer, String, Text, UniqueConstraint, func

from .database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class Question(Base):
    __tablename__ = "question"

    id = Column(String, primary_key=True, default=_uuid)
    text = Column(Text, nullable=False, default="")
    category = Column(String, nullable=False, default="uncategorized")
    active = Column(Boolean, nullable=False, default=True)


class QuestionnaireAnswer(Base):
    __tablename__ = "questionnaire_answer"

    id = Column(String, primary_key=True, default=_uuid)
    user_id = Column(String, nullable=False)
    question_id = Column(String, ForeignKey("question.id", ondelete="CASCADE"), nullable=False)
    selected_option = Column(String, nullable=False)
    acceptable_options = Column(JSON, nullable=False, default=list)
    importance = Column(String, nullable=False, default="somewhat")
    is_dealbreaker = Column(Boolean, nullable=False, default=False)
    alignment_weight = Column(Float, nullable=False, default=0.5)
    yikes_options = Column(JSON, nullable=False, default=list)
    answered_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "question_id", name="uq_answer_user_question"),
        Index("idx_questionnaire_answer_user_id", "user_id"),
    )


class MatchingPool(Base):
    __tablename__ = "matching_pool"

    id = Column(String, primary_key=True, default=_uuid)
    name = Column(String(100), nullable=False)
    description = Column(String(500), nullable=True)
    frequency = Column(String, nullable=False, default="weekly")
    match_size = Column(Integer, nullable=False, default=2)
    activity_suggestion = Column(String(200), nullable=True)
    next_match_on = Column(DateTime(timezone=True), nullable=False)
    last_match_on = Column(DateTime(timezone=True), nullable=True)
    active = Column(Boolean, nullable=False, default=True)
    created_on = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class PoolMember(Base):
    __tablename__ = "pool_member"

    id = Column(String, primary_key=True, default=_uuid)
    pool_id = Column(String, ForeignKey("matching_pool.id", ondelete="CASCADE"), nullable=False)
    member_id = Column(String, nullable=False)
    user_id = Column(String, nullable=False)
    active = Column(Boolean, nullable=False, default=True)
    excluded_members = Column(JSON, nullable=False, default=list)
    joined_on = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("pool_id", "member_id", name="uq_pool_member"),
        Index("idx_pool_member_pool_id", "pool_id"),
    )


class MatchResult(Base):
    __tablename__ = "match_result"

    id = Column(String, primary_key=True, default=_uuid)
    pool_id = Column(String, ForeignKey("matching_pool.id", ondelete="CASCADE"), nullable=False)
    members = Column(JSON, nullable=False)
    member_user_ids = Column(JSON, nullable=False, default=list)
    match_round = Column(String, nullable=False)
    sequence = Column(Integer, nullable=False, default=0)
    status = Column(String, nullable=False, default="pending")
    scheduled_time = Column(DateTime(timezone=True), nullable=True)
    created_on = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        # One row per group per round; a re-run of a persisted round collides here.
        UniqueConstraint("pool_id", "match_round", "sequence", name="uq_match_round_sequence"),
        Index("idx_match_result_pool_created", "pool_id", "created_on"),
    )
