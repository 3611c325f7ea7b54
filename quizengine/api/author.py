from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import uuid4
import logging
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field, ValidationError
from quizengine.core.auth import require_roles, TokenData
from quizengine.core.errors import InvalidQuiz, InvalidState, NotFound
from quizengine.api.deps import STAFF_ROLES, get_store
from quizengine.models.domain import DifficultyLevel, Question, QuestionType, Quiz
from quizengine.services.question_bank import search_questions
from quizengine.services.store import QuizStore

logger = logging.getLogger(__name__)

router = APIRouter()

class QuizCreate(BaseModel):
    id: Optional[str] = None
    title: str = Field(min_length=1)
    description: str = ""
    course_id: Optional[str] = None
    duration: int
    instructions: str = ""
    questions: List[Dict[str, Any]]
    supported_languages: Optional[List[str]] = None

@router.post("/quizzes", response_model=Quiz, status_code=201)
def create_quiz(payload: QuizCreate, user: TokenData = Depends(require_roles(*STAFF_ROLES)), store: QuizStore = Depends(get_store)):
    quiz_id = payload.id or str(uuid4())
    if store.get_quiz_by_id(quiz_id) is not None:
        raise InvalidState(f"quiz {quiz_id} is already published")
    data = payload.model_dump(exclude_none=True)
    data.update(id=quiz_id, created_by=user.sub, created_at=datetime.now(timezone.utc))
    try:
        quiz = Quiz.model_validate(data)
    except ValidationError as e:
        raise InvalidQuiz("; ".join(err["msg"] for err in e.errors()))
    store.add_quiz(quiz)
    logger.info(f"Quiz {quiz.id} published by {user.sub} with {len(quiz.questions)} questions")
    return quiz

@router.get("/quizzes/{quiz_id}", response_model=Quiz, dependencies=[Depends(require_roles(*STAFF_ROLES))])
def get_quiz(quiz_id: str, store: QuizStore = Depends(get_store)):
    quiz = store.get_quiz_by_id(quiz_id)
    if quiz is None:
        raise NotFound(f"quiz {quiz_id} not found")
    return quiz

@router.get("/questions", response_model=List[Question], dependencies=[Depends(require_roles(*STAFF_ROLES))])
def list_questions(
    q: Optional[str] = None,
    type: Optional[QuestionType] = None,
    difficulty: Optional[DifficultyLevel] = None,
    store: QuizStore = Depends(get_store),
):
    return search_questions(store.get_quizzes(), term=q, qtype=type, difficulty=difficulty)
