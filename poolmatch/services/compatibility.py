from __future__ import annotations

import math
from typing import Any

from ..domain import (
    IMPORTANCE_IRRELEVANT,
    IMPORTANCE_LITTLE,
    IMPORTANCE_MANDATORY,
    IMPORTANCE_SOMEWHAT,
    IMPORTANCE_VERY,
    UNCATEGORIZED,
    Answer,
    CompatibilityBreakdown,
    CompatibilityScore,
    DealBreakerViolation,
    Question,
    SharedAnswers,
    YikesSummary,
)

IMPORTANCE_WEIGHTS: dict[str, int] = {
    IMPORTANCE_IRRELEVANT: 0,
    IMPORTANCE_LITTLE: 1,
    IMPORTANCE_SOMEWHAT: 10,
    IMPORTANCE_VERY: 50,
    IMPORTANCE_MANDATORY: 250,
}

YIKES_PENALTY = 0.25


def importance_weight(importance: Any) -> int:
    return IMPORTANCE_WEIGHTS.get(str(importance or "").strip().lower(), IMPORTANCE_WEIGHTS[IMPORTANCE_SOMEWHAT])


def yikes_severity(count: int) -> str:
    if count <= 0:
        return ""
    if count <= 2:
        return "mild"
    if count <= 4:
        return "moderate"
    return "severe"


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def _complete_pairs(shared: SharedAnswers) -> list[tuple[str, Answer, Answer]]:
    out: list[tuple[str, Answer, Answer]] = []
    for question_id, (answer_a, answer_b) in shared.items():
        if answer_a is None or answer_b is None:
            continue
        out.append((question_id, answer_a, answer_b))
    return out


def directional_score(pairs: list[tuple[str, Answer, Answer]], *, a_to_b: bool) -> tuple[float, bool]:
    """How well one side's answers satisfy the other's preferences.

    With ``a_to_b`` the first answer of each pair is the evaluator and the
    second is judged; otherwise the roles are swapped. Returns the 0-100
    score and whether the evaluator had a dealbreaker violated.
    """
    total_weight = 0.0
    earned = 0.0
    dealbreaker_violated = False

    for _, answer_a, answer_b in pairs:
        evaluator, evaluated = (answer_a, answer_b) if a_to_b else (answer_b, answer_a)
        weight = importance_weight(evaluator.importance) * (0.5 + 0.5 * float(evaluator.alignment_weight))
        total_weight += weight

        acceptable = evaluated.selected_option in evaluator.acceptable_options
        if acceptable:
            earned += weight
        elif evaluator.is_dealbreaker:
            dealbreaker_violated = True

        # Yikes stacks with acceptability; an answer can be both.
        if evaluated.selected_option in evaluator.yikes_options:
            earned -= weight * YIKES_PENALTY

    if total_weight == 0:
        return 0.0, dealbreaker_violated
    return _clamp(earned / total_weight * 100.0), dealbreaker_violated


def score_answers(shared: SharedAnswers, user_a_id: str = "", user_b_id: str = "") -> CompatibilityScore:
    pairs = _complete_pairs(shared or {})
    if not pairs:
        return CompatibilityScore(user_a_id=user_a_id, user_b_id=user_b_id)

    a_to_b, a_dealbreaker = directional_score(pairs, a_to_b=True)
    b_to_a, b_dealbreaker = directional_score(pairs, a_to_b=False)

    # Either side's dealbreaker zeroes the pair before the geometric mean.
    deal_breaker = a_dealbreaker or b_dealbreaker
    overall = 0.0 if deal_breaker else math.sqrt(a_to_b * b_to_a)

    return CompatibilityScore(
        user_a_id=user_a_id,
        user_b_id=user_b_id,
        score=overall,
        a_to_b=a_to_b,
        b_to_a=b_to_a,
        shared_count=len(pairs),
        deal_breaker=deal_breaker,
    )


def _category_of(questions: dict[str, Question], question_id: str) -> str:
    question = questions.get(question_id)
    if question is None or not question.category:
        return UNCATEGORIZED
    return question.category


def _question_text(questions: dict[str, Question], question_id: str) -> str:
    question = questions.get(question_id)
    return question.text if question is not None else ""


def breakdown_answers(
    shared: SharedAnswers,
    questions: dict[str, Question] | None = None,
    user_a_id: str = "",
    user_b_id: str = "",
) -> CompatibilityBreakdown:
    questions = questions or {}
    score = score_answers(shared, user_a_id, user_b_id)

    category_earned: dict[str, float] = {}
    category_weight: dict[str, float] = {}
    violations: list[DealBreakerViolation] = []

    for question_id, answer_a, answer_b in _complete_pairs(shared or {}):
        for holder, partner in ((answer_a, answer_b), (answer_b, answer_a)):
            if holder.is_dealbreaker and partner.selected_option not in holder.acceptable_options:
                violations.append(
                    DealBreakerViolation(
                        question_id=question_id,
                        question_text=_question_text(questions, question_id),
                        user_answer=holder.selected_option,
                        partner_answer=partner.selected_option,
                    )
                )

        weight_a = importance_weight(answer_a.importance)
        weight_b = importance_weight(answer_b.importance)
        earned = 0.0
        if answer_b.selected_option in answer_a.acceptable_options:
            earned += weight_a
        if answer_a.selected_option in answer_b.acceptable_options:
            earned += weight_b

        category = _category_of(questions, question_id)
        category_weight[category] = category_weight.get(category, 0.0) + weight_a + weight_b
        category_earned[category] = category_earned.get(category, 0.0) + earned

    category_scores: dict[str, float] = {}
    for category, weight in category_weight.items():
        category_scores[category] = (category_earned[category] / weight * 100.0) if weight > 0 else 0.0

    return CompatibilityBreakdown(compatibility=score, category_scores=category_scores, deal_breakers=violations)


def yikes_summary_answers(shared: SharedAnswers, questions: dict[str, Question] | None = None) -> YikesSummary:
    questions = questions or {}
    count = 0
    categories: set[str] = set()

    for question_id, answer_a, answer_b in _complete_pairs(shared or {}):
        # Mutual yikes on one question counts once per direction.
        for holder, partner in ((answer_a, answer_b), (answer_b, answer_a)):
            if partner.selected_option in holder.yikes_options:
                count += 1
                categories.add(_category_of(questions, question_id))

    return YikesSummary(
        has_yikes=count > 0,
        yikes_count=count,
        categories=sorted(categories),
        severity=yikes_severity(count),
    )


class CompatibilityScorer:
    """Scores two users from the answers they share.

    ``answer_store`` supplies ``get_shared_answers``; ``question_catalog`` is
    optional and only labels breakdown categories.
    """

    def __init__(self, answer_store, question_catalog=None) -> None:
        self.answer_store = answer_store
        self.question_catalog = question_catalog

    def _questions(self) -> dict[str, Question]:
        if self.question_catalog is None:
            return {}
        return {q.id: q for q in self.question_catalog.get_all_questions()}

    def calculate_compatibility(self, user_a_id: str, user_b_id: str) -> CompatibilityScore:
        shared = self.answer_store.get_shared_answers(user_a_id, user_b_id)
        return score_answers(shared, user_a_id, user_b_id)

    def calculate_breakdown(self, user_a_id: str, user_b_id: str) -> CompatibilityBreakdown:
        shared = self.answer_store.get_shared_answers(user_a_id, user_b_id)
        return breakdown_answers(shared, self._questions(), user_a_id, user_b_id)

    def calculate_yikes_summary(self, user_a_id: str, user_b_id: str) -> YikesSummary:
        shared = self.answer_store.get_shared_answers(user_a_id, user_b_id)
        return yikes_summary_answers(shared, self._questions())
