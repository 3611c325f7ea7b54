from datetime import datetime, timedelta, timezone
from itertools import count
import pytest
from quizengine.models.domain import Attempt, Course, Quiz, User

T0 = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)
_seq = count(1)

def question(qid, type="single-correct", marks=4, penalty=1.0, correct="Paris", options=None, hindi=None, **extra):
    options = ["Paris", "London", "Rome", "Berlin"] if options is None and type in ("single-correct", "multi-correct") else options
    content = {"english": {"question_text": f"Question {qid}", "options": options}}
    if hindi is not None:
        content["hindi"] = {"question_text": f"प्रश्न {qid}", "options": hindi}
    return {"id": qid, "type": type, "content": content, "correct_answer": correct, "marks": marks, "penalty_marks": penalty, **extra}

def make_quiz(quiz_id="quiz-1", questions=None, duration=1, course_id=None, **extra) -> Quiz:
    questions = questions or [question("q1")]
    return Quiz.model_validate({"id": quiz_id, "title": f"Quiz {quiz_id}", "duration": duration,
                                "course_id": course_id, "questions": questions, **extra})

def make_attempt(quiz_id, student_id, score, answers=None, attempt_id=None, minutes=0, submitted=True) -> Attempt:
    n = next(_seq)
    started = T0 + timedelta(minutes=minutes)
    return Attempt(
        id=attempt_id or f"att-{n}",
        quiz_id=quiz_id,
        student_id=student_id,
        language="english",
        answers=answers or {},
        attempted_questions=frozenset((answers or {}).keys()),
        started_at=started,
        submitted_at=started + timedelta(minutes=1) if submitted else None,
        score=score if submitted else None,
    )

@pytest.fixture
def quiz() -> Quiz:
    """Three questions, ten marks, offered in english and hindi."""
    return make_quiz(
        questions=[
            question("q1", hindi=["पेरिस", "लंदन", "रोम", "बर्लिन"]),
            question("q2", type="multi-correct", penalty=2, options=["2", "3", "4", "5"], correct=["2", "3", "5"],
                     hindi=["दो", "तीन", "चार", "पाँच"], difficulty_level="hard", topic="primes"),
            question("q3", type="numerical", marks=2, penalty=0.5, correct=42, hindi=[], subject="arithmetic"),
        ],
        supported_languages=["english", "hindi"],
    )

@pytest.fixture
def users():
    return [
        User(id="s1", name="Asha", role="student"),
        User(id="s2", name="Bilal", role="student"),
        User(id="s3", name="Chen", role="student"),
        User(id="t1", name="Ms. Rao", role="teacher"),
    ]

@pytest.fixture
def course():
    return Course(id="c1", title="Geography", created_by="t1", quiz_ids=["qa", "qb"], enrolled_students=["s1", "s2"])
