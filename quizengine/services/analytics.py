"""
Analytics over submitted attempts: quiz reports, leaderboards, platform
rankings, certificate eligibility and per-student summaries.

All functions are read-only over the collections they are given. Attempts
that are still open are ignored everywhere; attempts whose quiz is missing are
skipped with a warning instead of failing the whole computation.
"""
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple
import logging
import math

from quizengine.models.domain import (
    Attempt, Course, CourseProgress, GroupAccuracy, LeaderboardRow, PerformancePoint, PerformanceSummary, QuestionAccuracy,
    Question, Quiz, QuizReport, RankingRow, ScoreBucket, StudentQuizResult, User,
)
from quizengine.services.scoring import Grade, count_correct, grade_answer

logger = logging.getLogger(__name__)

PASS_THRESHOLD_PCT = 40.0
CERTIFICATE_THRESHOLD_PCT = 50.0
DISTRIBUTION_LABELS = ("0-20%", "21-40%", "41-60%", "61-80%", "81-100%")
PERFORMANCE_BANDS = ("excellent", "good", "average", "needs_work")
UNGROUPED = "General"

# ============= Helpers =============

def percentage(score: float, total: float) -> float:
    """score / total * 100, or 0 when there is nothing to divide by."""
    if not total:
        return 0.0
    return score / total * 100.0

def submitted_attempts(attempts: Iterable[Attempt]) -> List[Attempt]:
    return [a for a in attempts if a.is_submitted]

def _index_quizzes(quizzes: Iterable[Quiz]) -> Dict[str, Quiz]:
    return {q.id: q for q in quizzes}

def _names(users: Iterable[User]) -> Dict[str, str]:
    return {u.id: u.name for u in users}

def _known_quiz_attempts(attempts: Iterable[Attempt], quizzes: Mapping[str, Quiz]) -> List[Attempt]:
    rows, skipped = [], 0
    for a in submitted_attempts(attempts):
        if a.quiz_id in quizzes:
            rows.append(a)
        else:
            skipped += 1
    if skipped:
        logger.warning(f"Skipped {skipped} attempt(s) referencing unknown quizzes")
    return rows

def bucket_index(ratio: float) -> int:
    """Index into DISTRIBUTION_LABELS for a score/total ratio."""
    if ratio <= 0.2:
        return 0
    if ratio <= 0.4:
        return 1
    if ratio <= 0.6:
        return 2
    if ratio <= 0.8:
        return 3
    return 4

def performance_band(pct: float) -> str:
    if pct > 80:
        return "excellent"
    if pct >= 60:
        return "good"
    if pct >= 40:
        return "average"
    return "needs_work"

def rank_by_score(attempts: Sequence[Attempt]) -> List[Attempt]:
    """Score descending; equal scores keep their original order."""
    return sorted(attempts, key=lambda a: a.score or 0.0, reverse=True)

# ============= Quiz Report =============

def score_distribution(quiz: Quiz, attempts: Sequence[Attempt]) -> List[ScoreBucket]:
    counts = [0] * len(DISTRIBUTION_LABELS)
    total = quiz.total_marks
    for a in attempts:
        counts[bucket_index(percentage(a.score or 0.0, total) / 100.0)] += 1
    return [ScoreBucket(label=label, count=c) for label, c in zip(DISTRIBUTION_LABELS, counts)]

def question_accuracy(quiz: Quiz, attempts: Sequence[Attempt]) -> List[QuestionAccuracy]:
    rows = []
    for number, q in enumerate(quiz.questions, start=1):
        tried = sum(1 for a in attempts if q.id in a.attempted_questions)
        correct = sum(1 for a in attempts if grade_answer(q, a.answers.get(q.id)) == Grade.CORRECT)
        accuracy = round(correct / tried * 100, 1) if tried else 0.0
        rows.append(QuestionAccuracy(
            question_id=q.id, question_number=number, attempts=tried, correct=correct,
            accuracy=accuracy, difficulty=q.difficulty_level,
        ))
    return rows

def group_accuracy(
    pairs: Iterable[Tuple[Quiz, Attempt]],
    key: Callable[[Question], Optional[str]],
) -> List[GroupAccuracy]:
    """Correct over attempted questions, grouped by `key` (e.g. topic or subject).

    Questions without a group value fall under "General". Groups appear in
    order of first occurrence.
    """
    tallies: Dict[str, List[int]] = {}
    for quiz, a in pairs:
        for q in quiz.questions:
            t = tallies.setdefault(key(q) or UNGROUPED, [0, 0])
            if q.id not in a.attempted_questions:
                continue
            t[0] += 1
            if grade_answer(q, a.answers.get(q.id)) == Grade.CORRECT:
                t[1] += 1
    return [
        GroupAccuracy(group=g, attempts=tried, correct=correct, accuracy=round(correct / tried * 100, 1) if tried else 0.0)
        for g, (tried, correct) in tallies.items()
    ]

def leaderboard(quiz: Quiz, attempts: Sequence[Attempt], users: Iterable[User] = (), top_n: int = 10) -> List[LeaderboardRow]:
    names = _names(users)
    ranked = rank_by_score([a for a in attempts if a.quiz_id == quiz.id and a.is_submitted])
    return [
        LeaderboardRow(
            position=i, attempt_id=a.id, student_id=a.student_id, student_name=names.get(a.student_id),
            score=a.score or 0.0, percentage=round(percentage(a.score or 0.0, quiz.total_marks), 2),
        )
        for i, a in enumerate(ranked[:top_n], start=1)
    ]

def quiz_report(
    quiz: Quiz,
    attempts: Iterable[Attempt],
    users: Iterable[User] = (),
    top_n: int = 10,
    pass_threshold: float = PASS_THRESHOLD_PCT,
) -> QuizReport:
    """Summarise every submitted attempt of `quiz`."""
    rows = [a for a in submitted_attempts(attempts) if a.quiz_id == quiz.id]
    total_marks = quiz.total_marks
    scores = [a.score or 0.0 for a in rows]
    n = len(rows)
    passed = sum(1 for s in scores if s >= total_marks * pass_threshold / 100.0)
    return QuizReport(
        quiz_id=quiz.id,
        title=quiz.title,
        total_marks=total_marks,
        total_attempts=n,
        average_score=round(sum(scores) / n, 2) if n else 0.0,
        max_score=max(scores, default=0.0),
        pass_rate=round(passed / n * 100, 1) if n else 0.0,
        distribution=score_distribution(quiz, rows),
        question_accuracy=question_accuracy(quiz, rows),
        topic_accuracy=group_accuracy(((quiz, a) for a in rows), lambda q: q.topic),
        subject_accuracy=group_accuracy(((quiz, a) for a in rows), lambda q: q.subject),
        top_performers=leaderboard(quiz, rows, users, top_n),
    )

# ============= Platform Ranking =============

def student_ranking(quizzes: Iterable[Quiz], attempts: Iterable[Attempt], users: Iterable[User] = ()) -> List[RankingRow]:
    """Rank students by total score over total possible marks across every quiz.

    Students whose percentages agree to two decimals share a rank; the next
    rank skips ahead by the number of students tied above it.
    """
    by_id = _index_quizzes(quizzes)
    names = _names(users)
    totals: Dict[str, List[float]] = {}
    for a in _known_quiz_attempts(attempts, by_id):
        t = totals.setdefault(a.student_id, [0.0, 0, 0])
        t[0] += a.score or 0.0
        t[1] += by_id[a.quiz_id].total_marks
        t[2] += 1
    stats = [(sid, score, possible, count, round(percentage(score, possible), 2)) for sid, (score, possible, count) in totals.items()]
    stats.sort(key=lambda s: s[4], reverse=True)
    rows = []
    rank = 0
    for i, (sid, score, possible, count, pct) in enumerate(stats):
        if i == 0 or pct < stats[i - 1][4]:
            rank = i + 1
        rows.append(RankingRow(
            rank=rank, student_id=sid, student_name=names.get(sid), total_score=round(score, 6),
            total_possible=int(possible), total_attempts=int(count), average_percentage=pct,
        ))
    return rows

# ============= Certificates =============

def course_quiz_ids(course: Course, quizzes: Mapping[str, Quiz]) -> List[str]:
    """Known quizzes of a course: its listed ids plus quizzes pointing back at it."""
    ids = [qid for qid in course.quiz_ids if qid in quizzes]
    ids += [qid for qid, q in quizzes.items() if q.course_id == course.id and qid not in ids]
    return ids

def course_progress(
    student_id: str,
    course: Course,
    quizzes: Mapping[str, Quiz],
    attempts: Sequence[Attempt],
    names: Mapping[str, str],
    threshold: float = CERTIFICATE_THRESHOLD_PCT,
) -> CourseProgress:
    q_ids = course_quiz_ids(course, quizzes)
    mine = [a for a in attempts if a.student_id == student_id and a.quiz_id in q_ids]
    completed = {a.quiz_id for a in mine}
    scored = sum(a.score or 0.0 for a in mine)
    possible = sum(quizzes[a.quiz_id].total_marks for a in mine)
    avg = percentage(scored, possible)
    return CourseProgress(
        course_id=course.id,
        course_title=course.title,
        instructor_name=names.get(course.created_by) if course.created_by else None,
        total_quizzes=len(q_ids),
        completed_quizzes=len(completed),
        average_percentage=round(avg, 2),
        # gate on the whole percent shown to students, halves rounding up
        eligible=bool(q_ids) and len(completed) >= len(q_ids) and math.floor(avg + 0.5) >= threshold,
    )

def certificate_eligibility(
    student_id: str,
    courses: Iterable[Course],
    quizzes: Iterable[Quiz],
    attempts: Iterable[Attempt],
    users: Iterable[User] = (),
    threshold: float = CERTIFICATE_THRESHOLD_PCT,
) -> List[CourseProgress]:
    """One progress row per course the student is enrolled in."""
    by_id = _index_quizzes(quizzes)
    names = _names(users)
    rows = _known_quiz_attempts(attempts, by_id)
    return [
        course_progress(student_id, c, by_id, rows, names, threshold)
        for c in courses if student_id in c.enrolled_students
    ]

# ============= Student Views =============

def student_quiz_result(
    quiz: Quiz,
    attempts: Iterable[Attempt],
    student_id: str,
    pass_threshold: float = PASS_THRESHOLD_PCT,
) -> Optional[StudentQuizResult]:
    """The student's best attempt on `quiz` and where it places among all attempts."""
    ranked = rank_by_score([a for a in submitted_attempts(attempts) if a.quiz_id == quiz.id])
    position, best = next(((i, a) for i, a in enumerate(ranked, start=1) if a.student_id == student_id), (0, None))
    if best is None:
        return None
    score = best.score or 0.0
    pct = percentage(score, quiz.total_marks)
    return StudentQuizResult(
        quiz_id=quiz.id,
        student_id=student_id,
        attempt_id=best.id,
        score=score,
        total_marks=quiz.total_marks,
        percentage=round(pct, 2),
        passed=pct >= pass_threshold,
        correct_answers=count_correct(quiz, best.answers),
        rank=position,
        total_attempts=len(ranked),
    )

def student_performance(
    student_id: str,
    quizzes: Iterable[Quiz],
    attempts: Iterable[Attempt],
    course_id: Optional[str] = None,
) -> PerformanceSummary:
    by_id = _index_quizzes(quizzes)
    mine = [
        a for a in _known_quiz_attempts(attempts, by_id)
        if a.student_id == student_id and (course_id is None or by_id[a.quiz_id].course_id == course_id)
    ]
    mine.sort(key=lambda a: a.submitted_at)
    pcts = [percentage(a.score or 0.0, by_id[a.quiz_id].total_marks) for a in mine]
    bands = {b: 0 for b in PERFORMANCE_BANDS}
    for p in pcts:
        bands[performance_band(p)] += 1
    progress = [
        PerformancePoint(label=f"Quiz {i}", quiz_id=a.quiz_id, percentage=round(p, 2), submitted_at=a.submitted_at)
        for i, (a, p) in enumerate(zip(mine, pcts), start=1)
    ]
    return PerformanceSummary(
        student_id=student_id,
        course_id=course_id,
        total_attempts=len(mine),
        average_percentage=round(sum(pcts) / len(pcts), 2) if pcts else 0.0,
        progress=progress,
        bands=bands,
        subjects=group_accuracy(((by_id[a.quiz_id], a) for a in mine), lambda q: q.subject),
    )
