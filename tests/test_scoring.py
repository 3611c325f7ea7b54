import pytest
from pydantic import ValidationError
from quizengine.models.domain import MultiChoice, Numeric, SingleChoice, Text
from quizengine.services.scoring import Grade, count_correct, grade_answer, regrade_attempts, score_attempt, score_breakdown
from conftest import make_attempt, make_quiz, question

def test_all_correct_scores_total_marks(quiz):
    answers = {"q1": SingleChoice(value="Paris"), "q2": MultiChoice(values={"2", "3", "5"}), "q3": Numeric(value="42")}
    assert score_attempt(quiz, answers) == quiz.total_marks == 10
    assert count_correct(quiz, answers) == 3

def test_single_correct_contributions(quiz):
    assert score_breakdown(quiz, {"q1": SingleChoice(value="Paris")}).raw == 4
    assert score_breakdown(quiz, {"q1": SingleChoice(value="Rome")}).raw == -1
    assert score_breakdown(quiz, {}).raw == 0

def test_empty_single_choice_is_unanswered(quiz):
    assert grade_answer(quiz.questions[0], SingleChoice(value="")) == Grade.UNANSWERED

def test_multi_correct_is_order_independent_exact_match():
    q = make_quiz(questions=[question("m", type="multi-correct", options=["A", "B", "C"], correct=["B", "A"], marks=3, penalty=1)])
    assert score_breakdown(q, {"m": MultiChoice(values={"A", "B"})}).raw == 3
    assert score_breakdown(q, {"m": MultiChoice(values={"A"})}).raw == -1
    assert score_breakdown(q, {"m": MultiChoice(values={"A", "B", "C"})}).raw == -1
    assert score_breakdown(q, {"m": MultiChoice(values=set())}).raw == 0

def test_numerical_parsing(quiz):
    q3 = quiz.questions[2]
    assert grade_answer(q3, Numeric(value="42")) == Grade.CORRECT
    assert grade_answer(q3, Numeric(value=" 42.0 ")) == Grade.CORRECT
    assert grade_answer(q3, Numeric(value=42)) == Grade.CORRECT
    assert grade_answer(q3, Numeric(value="abc")) == Grade.INCORRECT
    assert grade_answer(q3, Numeric(value="42.0001")) == Grade.INCORRECT
    assert grade_answer(q3, Numeric(value="  ")) == Grade.UNANSWERED
    assert score_breakdown(quiz, {"q3": Numeric(value="abc")}).raw == -0.5

def test_floor_applies_once_after_summing():
    q = make_quiz(questions=[
        question("a", marks=1, penalty=5),
        question("b", marks=1, penalty=5),
    ])
    result = score_breakdown(q, {"a": SingleChoice(value="Paris"), "b": SingleChoice(value="Rome")})
    assert result.raw == -4
    assert result.score == 0

def test_penalty_offsets_gain_before_floor(quiz):
    answers = {"q1": SingleChoice(value="Paris"), "q2": MultiChoice(values={"2"})}
    assert score_attempt(quiz, answers) == 2

def test_score_is_never_negative(quiz):
    answers = {"q1": SingleChoice(value="Rome"), "q2": MultiChoice(values={"4"}), "q3": Numeric(value="x")}
    assert score_attempt(quiz, answers) == 0

def test_scoring_is_idempotent(quiz):
    answers = {"q1": SingleChoice(value="Rome"), "q2": MultiChoice(values={"2", "3", "5"})}
    assert score_breakdown(quiz, answers) == score_breakdown(quiz, answers)

def test_subjective_is_excluded():
    q = make_quiz(questions=[question("s", type="subjective", correct="anything", marks=5), question("a", marks=2)])
    assert q.questions[0].correct_answer is None
    assert grade_answer(q.questions[0], Text(value="an essay")) == Grade.UNGRADED
    assert score_attempt(q, {"s": Text(value="an essay"), "a": SingleChoice(value="Paris")}) == 2

def test_wrong_answer_variant_is_incorrect(quiz):
    assert grade_answer(quiz.questions[0], Text(value="Paris")) == Grade.INCORRECT

def test_quiz_rejects_correct_answer_outside_options():
    with pytest.raises(ValidationError):
        make_quiz(questions=[question("a", correct="Madrid")])

def test_quiz_rejects_misaligned_languages():
    with pytest.raises(ValidationError):
        make_quiz(questions=[question("a", hindi=["पेरिस"])], supported_languages=["english", "hindi"])

def test_regrade_reports_only_mismatches(quiz):
    answers = {"q1": SingleChoice(value="Paris")}
    good = make_attempt(quiz.id, "s1", 4, answers=answers)
    stale = make_attempt(quiz.id, "s2", 9, answers=answers)
    diffs = regrade_attempts(quiz, [good, stale, make_attempt("other", "s3", 1)])
    assert [(d.attempt_id, d.frozen_score, d.recomputed_score) for d in diffs] == [(stale.id, 9, 4)]

def test_fractional_penalties_sum_to_decimal_value():
    q = make_quiz(questions=[
        question("a", marks=1, penalty=0.1),
        question("b", marks=1, penalty=1.1),
        question("c", marks=1),
        question("d", marks=1),
    ])
    x = score_attempt(q, {"a": SingleChoice(value="Rome"), "b": SingleChoice(value="Paris")})
    y = score_attempt(q, {"b": SingleChoice(value="Rome"), "c": SingleChoice(value="Paris"), "d": SingleChoice(value="Paris")})
    assert x == y == 0.9
