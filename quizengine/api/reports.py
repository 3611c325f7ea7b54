from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from quizengine.core.auth import get_current_user, require_roles, TokenData
from quizengine.core.config import settings
from quizengine.core.errors import NotFound
from quizengine.api.deps import STAFF_ROLES, ensure_self_or_staff, get_store
from quizengine.models.domain import CourseProgress, PerformanceSummary, Quiz, QuizReport, RankingRow, StudentQuizResult
from quizengine.services import analytics
from quizengine.services.store import QuizStore

router = APIRouter()

def _quiz_or_404(store: QuizStore, quiz_id: str) -> Quiz:
    quiz = store.get_quiz_by_id(quiz_id)
    if quiz is None:
        raise NotFound(f"quiz {quiz_id} not found")
    return quiz

@router.get("/quizzes/{quiz_id}", response_model=QuizReport, dependencies=[Depends(require_roles(*STAFF_ROLES))])
def quiz_report(quiz_id: str, top_n: int = Query(default=settings.LEADERBOARD_SIZE, ge=1, le=100), store: QuizStore = Depends(get_store)):
    quiz = _quiz_or_404(store, quiz_id)
    return analytics.quiz_report(
        quiz, store.get_attempts(), store.get_all_users(), top_n=top_n, pass_threshold=settings.PASS_THRESHOLD_PCT,
    )

@router.get("/ranking", response_model=List[RankingRow], dependencies=[Depends(get_current_user)])
def ranking(store: QuizStore = Depends(get_store)):
    return analytics.student_ranking(store.get_quizzes(), store.get_attempts(), store.get_all_users())

@router.get("/certificates/{student_id}", response_model=List[CourseProgress])
def certificates(student_id: str, user: TokenData = Depends(get_current_user), store: QuizStore = Depends(get_store)):
    ensure_self_or_staff(user, student_id)
    return analytics.certificate_eligibility(
        student_id, store.get_courses(), store.get_quizzes(), store.get_attempts(), store.get_all_users(),
        threshold=settings.CERTIFICATE_THRESHOLD_PCT,
    )

@router.get("/quizzes/{quiz_id}/students/{student_id}", response_model=StudentQuizResult)
def student_result(quiz_id: str, student_id: str, user: TokenData = Depends(get_current_user), store: QuizStore = Depends(get_store)):
    ensure_self_or_staff(user, student_id)
    quiz = _quiz_or_404(store, quiz_id)
    result = analytics.student_quiz_result(quiz, store.get_attempts(), student_id, pass_threshold=settings.PASS_THRESHOLD_PCT)
    if result is None:
        raise NotFound(f"student {student_id} has no submitted attempt on quiz {quiz_id}")
    return result

@router.get("/students/{student_id}/performance", response_model=PerformanceSummary)
def performance(student_id: str, course_id: Optional[str] = None, user: TokenData = Depends(get_current_user), store: QuizStore = Depends(get_store)):
    ensure_self_or_staff(user, student_id)
    return analytics.student_performance(student_id, store.get_quizzes(), store.get_attempts(), course_id=course_id)
