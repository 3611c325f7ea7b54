"""
Attempt routes. Handlers are async so that a live session's countdown
task is created on the application's event loop; blocking store lookups
go through the threadpool.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Union
from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, Field
from quizengine.core.auth import TokenData, get_current_user
from quizengine.api.deps import get_owned_session, get_registry
from quizengine.models.domain import AttemptStage, QuestionStatus, QuestionType
from quizengine.services.attempts import AttemptSession
from quizengine.services.sessions import SessionRegistry

router = APIRouter()

class StartAttempt(BaseModel):
    quiz_id: str
    language: Optional[str] = None

class NavigateIn(BaseModel):
    index: int = Field(ge=0)

class AnswerIn(BaseModel):
    value: Union[List[str], str, float, None] = None

class QuestionView(BaseModel):
    id: str
    index: int
    type: QuestionType
    question_text: str
    options: Optional[List[str]] = None
    marks: int
    penalty_marks: float
    status: QuestionStatus

class AttemptView(BaseModel):
    attempt_id: str
    quiz_id: str
    student_id: str
    language: str
    stage: AttemptStage
    current_index: int
    time_remaining: int
    started_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None
    score: Optional[float] = None
    total_marks: int
    answers: Dict[str, Any]
    statuses: Dict[str, QuestionStatus]
    status_counts: Dict[str, int]
    current_question: QuestionView

class ReviewOut(BaseModel):
    question_id: str
    marked: bool
    status: QuestionStatus

class SubmitOut(BaseModel):
    attempt_id: str
    score: float
    total_marks: int
    submitted_at: datetime

def _display_value(session: AttemptSession, question_id: str, answer) -> Any:
    """Render a stored answer back in the language the student sees."""
    question = session.quiz.get_question(question_id)
    canonical = session.quiz.canonical_language
    shown = question.content_for(session.language, canonical).options or []
    options = question.content[canonical].options or []

    def local(v: str) -> str:
        return shown[options.index(v)] if v in options else v

    if question.type == QuestionType.MULTI_CORRECT:
        return sorted(local(v) for v in answer.values)
    if question.type == QuestionType.SINGLE_CORRECT:
        return local(answer.value) if answer.value else ""
    return answer.value

def attempt_view(session: AttemptSession) -> AttemptView:
    quiz = session.quiz
    q = quiz.questions[session.current_index]
    content = q.content_for(session.language, quiz.canonical_language)
    return AttemptView(
        attempt_id=session.id,
        quiz_id=quiz.id,
        student_id=session.student_id,
        language=session.language,
        stage=session.stage,
        current_index=session.current_index,
        time_remaining=session.time_remaining,
        started_at=session.started_at,
        submitted_at=session.submitted_at,
        score=session.score,
        total_marks=quiz.total_marks,
        answers={qid: _display_value(session, qid, a) for qid, a in session.answers.items()},
        statuses=session.statuses(),
        status_counts=session.status_counts(),
        current_question=QuestionView(
            id=q.id, index=session.current_index, type=q.type, question_text=content.question_text,
            options=content.options, marks=q.marks, penalty_marks=q.penalty_marks, status=session.status(q.id),
        ),
    )

@router.post("", response_model=AttemptView, status_code=201)
async def start_attempt(payload: StartAttempt, user: TokenData = Depends(get_current_user), registry: SessionRegistry = Depends(get_registry)):
    quiz = await run_in_threadpool(registry.lookup_quiz, payload.quiz_id)
    session = registry.open(quiz, user.sub, payload.language)
    return attempt_view(session)

@router.get("/{attempt_id}", response_model=AttemptView)
async def get_attempt(session: AttemptSession = Depends(get_owned_session)):
    return attempt_view(session)

@router.post("/{attempt_id}/navigate", response_model=AttemptView)
async def navigate(payload: NavigateIn, session: AttemptSession = Depends(get_owned_session)):
    session.navigate(payload.index)
    return attempt_view(session)

@router.put("/{attempt_id}/answers/{question_id}", response_model=AttemptView)
async def put_answer(question_id: str, payload: AnswerIn, session: AttemptSession = Depends(get_owned_session)):
    session.answer(question_id, payload.value)
    return attempt_view(session)

@router.delete("/{attempt_id}/answers/{question_id}", response_model=AttemptView)
async def clear_answer(question_id: str, session: AttemptSession = Depends(get_owned_session)):
    session.answer(question_id, None)
    return attempt_view(session)

@router.post("/{attempt_id}/review/{question_id}", response_model=ReviewOut)
async def toggle_review(question_id: str, session: AttemptSession = Depends(get_owned_session)):
    marked = session.toggle_review(question_id)
    return ReviewOut(question_id=question_id, marked=marked, status=session.status(question_id))

@router.post("/{attempt_id}/submit", response_model=SubmitOut)
async def submit(session: AttemptSession = Depends(get_owned_session), registry: SessionRegistry = Depends(get_registry)):
    score = session.submit()
    await registry.flush(session.id)
    return SubmitOut(attempt_id=session.id, score=score, total_marks=session.quiz.total_marks, submitted_at=session.submitted_at)
