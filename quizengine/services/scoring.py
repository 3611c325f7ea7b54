"""Scoring engine for submitted answer mappings.

Functions:
- grade_answer: classify one answer as correct / incorrect / unanswered / ungraded.
- question_contribution: signed marks a single answer contributes before the floor.
- score_breakdown: per-question contributions plus raw and floored totals.
- score_attempt: the frozen score stored on submission.
- regrade_attempts: re-run scoring over stored attempts and report differences.

Everything here is pure; the same inputs always produce the same score.
"""
from typing import Iterable, List, Mapping, Optional
import enum

from pydantic import BaseModel

from quizengine.models.domain import (
    Answer, Attempt, MultiChoice, Numeric, Question, QuestionType, Quiz, RegradeDiff, SingleChoice,
)

class Grade(str, enum.Enum):
    CORRECT = "correct"
    INCORRECT = "incorrect"
    UNANSWERED = "unanswered"
    UNGRADED = "ungraded"  # subjective, graded by hand

class QuestionScore(BaseModel):
    question_id: str
    grade: Grade
    points: float

class ScoreBreakdown(BaseModel):
    raw: float
    score: float
    questions: List[QuestionScore]

def _is_empty(answer: Optional[Answer]) -> bool:
    return answer is None or answer.is_empty

def grade_answer(question: Question, answer: Optional[Answer]) -> Grade:
    """Return the grade of `answer` against `question`'s correct value."""
    if question.type == QuestionType.SUBJECTIVE:
        return Grade.UNGRADED
    if _is_empty(answer):
        return Grade.UNANSWERED
    if question.type == QuestionType.SINGLE_CORRECT:
        ok = isinstance(answer, SingleChoice) and answer.value == question.correct_answer
    elif question.type == QuestionType.MULTI_CORRECT:
        ok = isinstance(answer, MultiChoice) and answer.values == question.correct_set
    else:
        parsed = answer.parse() if isinstance(answer, Numeric) else None
        ok = parsed is not None and parsed == question.correct_answer
    return Grade.CORRECT if ok else Grade.INCORRECT

def question_contribution(question: Question, answer: Optional[Answer]) -> float:
    grade = grade_answer(question, answer)
    if grade == Grade.CORRECT:
        return float(question.marks)
    if grade == Grade.INCORRECT:
        return -float(question.penalty_marks)
    return 0.0

def score_breakdown(quiz: Quiz, answers: Mapping[str, Answer]) -> ScoreBreakdown:
    """Grade every question of `quiz`, then floor the summed total at zero.

    The floor is applied once to the sum, never per question, so a penalty on
    one question can cancel marks earned on another.
    """
    rows = []
    for q in quiz.questions:
        a = answers.get(q.id)
        grade = grade_answer(q, a)
        rows.append(QuestionScore(question_id=q.id, grade=grade, points=question_contribution(q, a)))
    # fractional penalties accumulate binary float error
    raw = round(sum(r.points for r in rows), 6)
    return ScoreBreakdown(raw=raw, score=max(0.0, raw), questions=rows)

def score_attempt(quiz: Quiz, answers: Mapping[str, Answer]) -> float:
    return score_breakdown(quiz, answers).score

def count_correct(quiz: Quiz, answers: Mapping[str, Answer]) -> int:
    return sum(1 for q in quiz.questions if grade_answer(q, answers.get(q.id)) == Grade.CORRECT)

def regrade_attempts(quiz: Quiz, attempts: Iterable[Attempt]) -> List[RegradeDiff]:
    """Recompute scores for the submitted attempts of `quiz`; return the ones that disagree."""
    diffs = []
    for a in attempts:
        if a.quiz_id != quiz.id or not a.is_submitted:
            continue
        recomputed = score_attempt(quiz, a.answers)
        if a.score is None or recomputed != a.score:
            diffs.append(RegradeDiff(attempt_id=a.id, student_id=a.student_id, frozen_score=a.score, recomputed_score=recomputed))
    return diffs
