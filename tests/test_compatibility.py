import math
import random

import pytest

from poolmatch.domain import Answer, Question
from poolmatch.services.compatibility import (
    CompatibilityScorer,
    breakdown_answers,
    importance_weight,
    score_answers,
    yikes_severity,
    yikes_summary_answers,
)
from poolmatch.stores import InMemoryAnswerStore


def _answer(selected, acceptable=None, importance="somewhat", dealbreaker=False, alignment=0.5, yikes=None):
    return Answer(
        selected_option=selected,
        acceptable_options=frozenset(acceptable if acceptable is not None else [selected]),
        importance=importance,
        is_dealbreaker=dealbreaker,
        alignment_weight=alignment,
        yikes_options=frozenset(yikes or []),
    )


def _swap(shared):
    return {qid: (b, a) for qid, (a, b) in shared.items()}


def test_importance_weights():
    assert importance_weight("irrelevant") == 0
    assert importance_weight("little") == 1
    assert importance_weight("somewhat") == 10
    assert importance_weight("very") == 50
    assert importance_weight("mandatory") == 250
    assert importance_weight("extremely") == 10
    assert importance_weight(None) == 10


def test_perfect_match_is_100():
    shared = {
        "q1": (_answer("a"), _answer("a")),
        "q2": (_answer("x", importance="very"), _answer("x", importance="little")),
    }
    score = score_answers(shared, "u1", "u2")
    assert score.a_to_b == pytest.approx(100.0)
    assert score.b_to_a == pytest.approx(100.0)
    assert score.score == pytest.approx(100.0)
    assert score.shared_count == 2
    assert score.deal_breaker is False


def test_no_shared_answers_is_zero():
    score = score_answers({}, "u1", "u2")
    assert score.score == 0.0
    assert score.shared_count == 0


def test_one_sided_answers_do_not_count():
    shared = {
        "q1": (_answer("a"), None),
        "q2": (None, _answer("b")),
        "q3": (_answer("c"), _answer("c")),
    }
    score = score_answers(shared)
    assert score.shared_count == 1
    assert score.score == pytest.approx(100.0)


def test_only_irrelevant_questions_score_zero():
    shared = {"q1": (_answer("a", importance="irrelevant"), _answer("a", importance="irrelevant"))}
    assert score_answers(shared).score == 0.0


def test_geometric_mean_of_one_sided_interest_is_zero():
    # a accepts b's answer, b does not accept a's.
    shared = {"q1": (_answer("a", acceptable=["b"]), _answer("b", acceptable=["b"]))}
    score = score_answers(shared)
    assert score.a_to_b == pytest.approx(100.0)
    assert score.b_to_a == pytest.approx(0.0)
    assert score.score == 0.0


def test_dealbreaker_zeroes_overall_score():
    shared = {f"q{i}": (_answer("a"), _answer("a")) for i in range(10)}
    shared["q_db"] = (_answer("yes", acceptable=["yes"], importance="mandatory", dealbreaker=True), _answer("no"))
    score = score_answers(shared)
    assert score.deal_breaker is True
    assert score.score == 0.0
    assert score.a_to_b < 100.0
    assert score.b_to_a > 0.0


def test_alignment_weight_scales_importance():
    shared = {
        # weight 50 * (0.5 + 0.5 * 1.0) = 50, satisfied
        "q1": (_answer("a", importance="very", alignment=1.0), _answer("a")),
        # weight 10 * (0.5 + 0.5 * 0.0) = 5, not satisfied
        "q2": (_answer("a", acceptable=["a"], importance="somewhat", alignment=0.0), _answer("b", acceptable=["a", "b"])),
    }
    score = score_answers(shared)
    assert score.a_to_b == pytest.approx(50 / 55 * 100)
    assert score.b_to_a == pytest.approx(100.0)


def test_yikes_penalty_stacks_with_acceptable():
    shared = {"q1": (_answer("a", acceptable=["a", "b"], yikes=["b"]), _answer("b", acceptable=["a"]))}
    score = score_answers(shared)
    assert score.a_to_b == pytest.approx(75.0)
    assert score.b_to_a == pytest.approx(100.0)
    assert score.score == pytest.approx(math.sqrt(75.0 * 100.0))


def test_yikes_on_unacceptable_answer_clamps_at_zero():
    shared = {"q1": (_answer("a", acceptable=["a"], yikes=["b"]), _answer("b", acceptable=["a"]))}
    score = score_answers(shared)
    assert score.a_to_b == 0.0


def test_score_is_symmetric_over_random_answers():
    options = ["a", "b", "c", "d"]
    importances = ["irrelevant", "little", "somewhat", "very", "mandatory"]
    for seed in range(50):
        rng = random.Random(seed)
        shared = {}
        for q in range(rng.randint(0, 8)):
            pair = []
            for _ in range(2):
                pair.append(
                    Answer(
                        selected_option=rng.choice(options),
                        acceptable_options=frozenset(rng.sample(options, rng.randint(1, 4))),
                        importance=rng.choice(importances),
                        is_dealbreaker=rng.random() < 0.1,
                        alignment_weight=rng.random(),
                        yikes_options=frozenset(rng.sample(options, rng.randint(0, 2))),
                    )
                )
            shared[f"q{q}"] = tuple(pair)

        forward = score_answers(shared, "a", "b")
        backward = score_answers(_swap(shared), "b", "a")
        assert forward.score == pytest.approx(backward.score)
        assert forward.a_to_b == pytest.approx(backward.b_to_a)
        assert forward.b_to_a == pytest.approx(backward.a_to_b)
        assert forward.deal_breaker == backward.deal_breaker
        assert 0.0 <= forward.score <= 100.0


def test_breakdown_by_category():
    questions = {
        "q1": Question(id="q1", text="Morning person?", category="lifestyle"),
        "q2": Question(id="q2", text="Pets?", category="values"),
    }
    shared = {
        "q1": (_answer("a"), _answer("a")),
        # a accepts b; b does not accept a; both somewhat (10 + 10)
        "q2": (_answer("x", acceptable=["y"]), _answer("y", acceptable=["y"])),
        "q3": (_answer("m"), _answer("m")),
    }
    breakdown = breakdown_answers(shared, questions, "u1", "u2")
    assert breakdown.category_scores["lifestyle"] == pytest.approx(100.0)
    assert breakdown.category_scores["values"] == pytest.approx(50.0)
    assert breakdown.category_scores["uncategorized"] == pytest.approx(100.0)
    assert breakdown.compatibility.shared_count == 3
    assert breakdown.deal_breakers == []


def test_breakdown_lists_dealbreaker_violations():
    questions = {"q1": Question(id="q1", text="Smoke?", category="lifestyle")}
    shared = {"q1": (_answer("no", acceptable=["no"], dealbreaker=True), _answer("yes", acceptable=["yes", "no"]))}
    breakdown = breakdown_answers(shared, questions)
    assert breakdown.compatibility.deal_breaker is True
    assert len(breakdown.deal_breakers) == 1
    violation = breakdown.deal_breakers[0]
    assert violation.question_id == "q1"
    assert violation.question_text == "Smoke?"
    assert violation.user_answer == "no"
    assert violation.partner_answer == "yes"


def test_yikes_severity_thresholds():
    assert yikes_severity(0) == ""
    assert yikes_severity(1) == "mild"
    assert yikes_severity(2) == "mild"
    assert yikes_severity(3) == "moderate"
    assert yikes_severity(4) == "moderate"
    assert yikes_severity(5) == "severe"


def test_yikes_summary_counts_each_direction():
    questions = {"q1": Question(id="q1", category="values"), "q2": Question(id="q2", category="habits")}
    shared = {
        "q1": (_answer("a", yikes=["b"]), _answer("b", yikes=["a"])),
        "q2": (_answer("c", yikes=["d"]), _answer("d")),
        "q3": (_answer("e"), _answer("e")),
    }
    summary = yikes_summary_answers(shared, questions)
    assert summary.has_yikes is True
    assert summary.yikes_count == 3
    assert summary.categories == ["habits", "values"]
    assert summary.severity == "moderate"


def test_yikes_summary_empty():
    summary = yikes_summary_answers({"q1": (_answer("a"), _answer("a"))})
    assert summary.has_yikes is False
    assert summary.yikes_count == 0
    assert summary.severity == ""


class TestCompatibilityScorer:
    def _store(self):
        store = InMemoryAnswerStore()
        store.add_question(Question(id="q1", text="Coffee or tea?", category="lifestyle"))
        store.add_question(Question(id="q2", text="Early riser?", category="lifestyle"))
        store.submit_answer("u1", "q1", _answer("coffee", acceptable=["coffee", "tea"]))
        store.submit_answer("u2", "q1", _answer("tea", acceptable=["tea", "coffee"]))
        store.submit_answer("u1", "q2", _answer("yes"))
        return store

    def test_scores_from_store(self):
        store = self._store()
        scorer = CompatibilityScorer(store, store)
        score = scorer.calculate_compatibility("u1", "u2")
        assert score.user_a_id == "u1"
        assert score.user_b_id == "u2"
        assert score.shared_count == 1
        assert score.score == pytest.approx(100.0)

    def test_resubmission_supersedes(self):
        store = self._store()
        store.submit_answer("u2", "q1", _answer("water", acceptable=["water"]))
        score = CompatibilityScorer(store).calculate_compatibility("u1", "u2")
        assert score.score == 0.0

    def test_breakdown_and_yikes_use_catalog(self):
        store = self._store()
        store.submit_answer("u2", "q2", _answer("no", acceptable=["no"], yikes=["yes"]))
        scorer = CompatibilityScorer(store, store)
        breakdown = scorer.calculate_breakdown("u1", "u2")
        assert set(breakdown.category_scores) == {"lifestyle"}
        summary = scorer.calculate_yikes_summary("u1", "u2")
        assert summary.yikes_count == 1
        assert summary.categories == ["lifestyle"]
