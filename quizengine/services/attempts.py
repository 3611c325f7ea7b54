"""
Attempt state machine: one student's timed pass through one quiz.

Stages run Instructions -> InProgress -> Submitted. The session owns the
mutable tracking state while open; submission scores the answers once,
freezes everything into an immutable ``Attempt`` and hands it to the store.
"""
from datetime import datetime, timezone
from typing import Any, Callable, Dict, FrozenSet, Optional, Protocol, Set
from uuid import uuid4
import logging

from pydantic import BaseModel

from quizengine.core.errors import InvalidAnswer, InvalidState, NotFound, UnsupportedLanguage
from quizengine.models.domain import (
    Answer, Attempt, AttemptStage, MultiChoice, Numeric, Question, QuestionStatus, QuestionType, Quiz,
    SingleChoice, Text,
)
from quizengine.services.scoring import score_attempt

logger = logging.getLogger(__name__)

class TickSource(Protocol):
    def start(self) -> None: ...
    def cancel(self) -> None: ...

TickerFactory = Callable[[Callable[[], None]], TickSource]

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

def question_status(question_id: str, visited: FrozenSet[str], attempted: FrozenSet[str], review: FrozenSet[str]) -> QuestionStatus:
    if question_id in attempted:
        return QuestionStatus.REVIEW if question_id in review else QuestionStatus.ATTEMPTED
    if question_id in visited:
        return QuestionStatus.VISITED
    return QuestionStatus.NOT_VISITED

def _canonical_option(question: Question, value: Any, language: str, canonical: str) -> str:
    if not isinstance(value, str):
        raise InvalidAnswer(f"question {question.id}: option must be a string")
    canonical_options = question.content[canonical].options or []
    shown = question.content_for(language, canonical).options or []
    if value in shown:
        return canonical_options[shown.index(value)]
    if value in canonical_options:
        return value
    raise InvalidAnswer(f"question {question.id}: {value!r} is not an option")

def coerce_answer(question: Question, value: Any, language: str, canonical: str) -> Answer:
    """Turn a raw submitted value into the answer variant `question` expects.

    Choice values given in a non-canonical language are mapped to the
    canonical option at the same position.
    """
    if isinstance(value, BaseModel):
        if getattr(value, "kind", None) != question.type.value:
            raise InvalidAnswer(f"question {question.id} expects a {question.type.value} answer")
        value = value.values if isinstance(value, MultiChoice) else value.value
    if question.type == QuestionType.SINGLE_CORRECT:
        if value == "":
            return SingleChoice(value="")
        return SingleChoice(value=_canonical_option(question, value, language, canonical))
    if question.type == QuestionType.MULTI_CORRECT:
        if isinstance(value, str) or not isinstance(value, (list, tuple, set, frozenset)):
            raise InvalidAnswer(f"question {question.id} expects a list of options")
        return MultiChoice(values=frozenset(_canonical_option(question, v, language, canonical) for v in value))
    if question.type == QuestionType.NUMERICAL:
        if isinstance(value, bool) or not isinstance(value, (str, int, float)):
            raise InvalidAnswer(f"question {question.id} expects a number")
        return Numeric(value=value)
    if not isinstance(value, str):
        raise InvalidAnswer(f"question {question.id} expects text")
    return Text(value=value)

class AttemptSession:
    """The single owner of one open attempt.

    Ticks come either from a ticker built by `ticker_factory` (live sessions)
    or from the caller invoking `tick()` directly.
    """

    def __init__(
        self,
        quiz: Quiz,
        student_id: str,
        language: Optional[str] = None,
        store=None,
        ticker_factory: Optional[TickerFactory] = None,
        clock: Callable[[], datetime] = utcnow,
        attempt_id: Optional[str] = None,
        on_submit: Optional[Callable[["AttemptSession"], None]] = None,
    ):
        language = language or quiz.canonical_language
        if language not in quiz.supported_languages:
            raise UnsupportedLanguage(f"quiz {quiz.id} is not offered in {language}")
        self.id = attempt_id or str(uuid4())
        self.quiz = quiz
        self.student_id = student_id
        self.language = language
        self.store = store
        self.stage = AttemptStage.INSTRUCTIONS
        self.current_index = 0
        self.time_remaining = quiz.duration * 60
        self.started_at: Optional[datetime] = None
        self._clock = clock
        self._ticker_factory = ticker_factory
        self._on_submit = on_submit
        self._ticker: Optional[TickSource] = None
        self._answers: Dict[str, Answer] = {}
        self._visited: Set[str] = set()
        self._attempted: Set[str] = set()
        self._review: Set[str] = set()
        self._attempt: Optional[Attempt] = None
        self._closed = False

    @classmethod
    def restore(cls, quiz: Quiz, attempt: Attempt) -> "AttemptSession":
        """Read-only session around an attempt that was already submitted."""
        session = cls(quiz, attempt.student_id, attempt.language, attempt_id=attempt.id)
        session.stage = AttemptStage.SUBMITTED
        session.started_at = attempt.started_at
        session.time_remaining = 0
        session._attempt = attempt
        return session

    # ---------- transitions ----------

    def start(self) -> "AttemptSession":
        if self._closed or self.stage != AttemptStage.INSTRUCTIONS:
            raise InvalidState(f"attempt {self.id} has already been started")
        self.stage = AttemptStage.IN_PROGRESS
        self.started_at = self._clock()
        self.time_remaining = self.quiz.duration * 60
        self.current_index = 0
        self._visited.add(self.quiz.questions[0].id)
        if self._ticker_factory is not None:
            self._ticker = self._ticker_factory(self.tick)
            self._ticker.start()
        logger.info(f"Attempt {self.id} started: quiz={self.quiz.id} student={self.student_id} language={self.language}")
        return self

    def tick(self) -> None:
        """Advance the countdown by one unit; submits when it reaches zero."""
        if self._closed or self.stage != AttemptStage.IN_PROGRESS:
            logger.debug(f"Ignoring tick for attempt {self.id} in stage {self.stage.value}")
            return
        self.time_remaining -= 1
        if self.time_remaining <= 0:
            self.time_remaining = 0
            self._finish("timeout")

    def submit(self) -> float:
        """Submit the attempt; a second call returns the frozen score."""
        if self.stage == AttemptStage.SUBMITTED:
            return self._attempt.score
        self._require_open()
        return self._finish("manual")

    def close(self) -> None:
        """Tear the session down; an open attempt is abandoned unsubmitted."""
        self._cancel_ticker()
        if not self._closed and self.stage == AttemptStage.IN_PROGRESS:
            logger.warning(f"Attempt {self.id} torn down before submission")
        self._closed = True

    def _finish(self, reason: str) -> float:
        self._cancel_ticker()
        score = score_attempt(self.quiz, self._answers)
        self._attempt = Attempt(
            id=self.id,
            quiz_id=self.quiz.id,
            student_id=self.student_id,
            language=self.language,
            answers=dict(self._answers),
            visited_questions=frozenset(self._visited),
            attempted_questions=frozenset(self._attempted),
            marked_for_review=frozenset(self._review),
            started_at=self.started_at,
            submitted_at=self._clock(),
            score=score,
        )
        self.stage = AttemptStage.SUBMITTED
        logger.info(f"Attempt {self.id} submitted ({reason}): score={score}/{self.quiz.total_marks}")
        if self.store is not None:
            self.store.add_attempt(self._attempt)
        if self._on_submit is not None:
            self._on_submit(self)
        return score

    def _cancel_ticker(self) -> None:
        if self._ticker is not None:
            self._ticker.cancel()
            self._ticker = None

    def _require_open(self) -> None:
        if self._closed:
            raise InvalidState(f"attempt {self.id} session is closed")
        if self.stage == AttemptStage.SUBMITTED:
            raise InvalidState(f"attempt {self.id} is already submitted")
        if self.stage != AttemptStage.IN_PROGRESS:
            raise InvalidState(f"attempt {self.id} has not been started")

    def _question(self, question_id: str) -> Question:
        q = self.quiz.get_question(question_id)
        if q is None:
            raise NotFound(f"question {question_id} is not part of quiz {self.quiz.id}")
        return q

    # ---------- in-progress operations ----------

    def navigate(self, index: int) -> Question:
        self._require_open()
        if not 0 <= index < len(self.quiz.questions):
            raise NotFound(f"question index {index} is out of range")
        self.current_index = index
        question = self.quiz.questions[index]
        self._visited.add(question.id)
        return question

    def answer(self, question_id: str, value: Any) -> None:
        """Store or overwrite the answer; `None` clears it. Attempted ids are never dropped."""
        self._require_open()
        question = self._question(question_id)
        if value is None:
            self._answers.pop(question_id, None)
        else:
            self._answers[question_id] = coerce_answer(question, value, self.language, self.quiz.canonical_language)
        self._attempted.add(question_id)

    def toggle_review(self, question_id: str) -> bool:
        self._require_open()
        self._question(question_id)
        if question_id in self._review:
            self._review.discard(question_id)
            return False
        self._review.add(question_id)
        return True

    # ---------- views ----------

    @property
    def attempt(self) -> Optional[Attempt]:
        """The frozen record, once submitted."""
        return self._attempt

    @property
    def score(self) -> Optional[float]:
        return self._attempt.score if self._attempt else None

    @property
    def submitted_at(self) -> Optional[datetime]:
        return self._attempt.submitted_at if self._attempt else None

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def answers(self) -> Dict[str, Answer]:
        return dict(self._attempt.answers if self._attempt else self._answers)

    @property
    def visited(self) -> FrozenSet[str]:
        return self._attempt.visited_questions if self._attempt else frozenset(self._visited)

    @property
    def attempted(self) -> FrozenSet[str]:
        return self._attempt.attempted_questions if self._attempt else frozenset(self._attempted)

    @property
    def marked_for_review(self) -> FrozenSet[str]:
        return self._attempt.marked_for_review if self._attempt else frozenset(self._review)

    def status(self, question_id: str) -> QuestionStatus:
        self._question(question_id)
        return question_status(question_id, self.visited, self.attempted, self.marked_for_review)

    def statuses(self) -> Dict[str, QuestionStatus]:
        visited, attempted, review = self.visited, self.attempted, self.marked_for_review
        return {qid: question_status(qid, visited, attempted, review) for qid in self.quiz.question_ids}

    def status_counts(self) -> Dict[str, int]:
        counts = {s.value: 0 for s in QuestionStatus}
        for s in self.statuses().values():
            counts[s.value] += 1
        return counts
