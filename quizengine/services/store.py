"""
Persistence collaborators for quizzes, attempts, courses and users.

Attempts are append-only: only submitted attempts are accepted, and an
attempt id can be appended once.
"""
from functools import lru_cache
from typing import Dict, Iterable, List, Optional, Protocol
import logging

from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

from quizengine.core.config import settings
from quizengine.core.errors import InvalidState
from quizengine.models.domain import Attempt, Course, Quiz, User
from quizengine.models.orm import AttemptRow, CourseRow, QuizRow, UserRow

logger = logging.getLogger(__name__)

class QuizStore(Protocol):
    def get_quiz_by_id(self, quiz_id: str) -> Optional[Quiz]: ...
    def get_quizzes(self) -> List[Quiz]: ...
    def add_quiz(self, quiz: Quiz) -> None: ...
    def get_attempts(self) -> List[Attempt]: ...
    def get_attempt_by_id(self, attempt_id: str) -> Optional[Attempt]: ...
    def add_attempt(self, attempt: Attempt) -> None: ...
    def get_courses(self) -> List[Course]: ...
    def add_course(self, course: Course) -> None: ...
    def get_all_users(self) -> List[User]: ...
    def add_user(self, user: User) -> None: ...

def _require_submitted(attempt: Attempt) -> None:
    if not attempt.is_submitted:
        raise InvalidState(f"attempt {attempt.id} is not submitted")

def _duplicate(attempt: Attempt) -> InvalidState:
    return InvalidState(f"attempt {attempt.id} has already been recorded")

# ============= In-memory =============

class MemoryStore:
    def __init__(
        self,
        quizzes: Iterable[Quiz] = (),
        attempts: Iterable[Attempt] = (),
        courses: Iterable[Course] = (),
        users: Iterable[User] = (),
    ):
        self._quizzes: Dict[str, Quiz] = {q.id: q for q in quizzes}
        self._attempts: List[Attempt] = []
        self._courses: Dict[str, Course] = {c.id: c for c in courses}
        self._users: Dict[str, User] = {u.id: u for u in users}
        for a in attempts:
            self.add_attempt(a)

    def get_quiz_by_id(self, quiz_id: str) -> Optional[Quiz]:
        return self._quizzes.get(quiz_id)

    def get_quizzes(self) -> List[Quiz]:
        return list(self._quizzes.values())

    def add_quiz(self, quiz: Quiz) -> None:
        self._quizzes[quiz.id] = quiz

    def get_attempts(self) -> List[Attempt]:
        return list(self._attempts)

    def get_attempt_by_id(self, attempt_id: str) -> Optional[Attempt]:
        return next((a for a in self._attempts if a.id == attempt_id), None)

    def add_attempt(self, attempt: Attempt) -> None:
        _require_submitted(attempt)
        if self.get_attempt_by_id(attempt.id) is not None:
            raise _duplicate(attempt)
        self._attempts.append(attempt)

    def get_courses(self) -> List[Course]:
        return list(self._courses.values())

    def add_course(self, course: Course) -> None:
        self._courses[course.id] = course

    def get_all_users(self) -> List[User]:
        return list(self._users.values())

    def add_user(self, user: User) -> None:
        self._users[user.id] = user

# ============= SQLAlchemy =============

class SqlStore:
    """Store backed by SQLAlchemy tables holding each record's JSON document."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def get_quiz_by_id(self, quiz_id: str) -> Optional[Quiz]:
        with self.session_factory() as db:
            row = db.get(QuizRow, quiz_id)
            return Quiz.model_validate(row.document) if row else None

    def get_quizzes(self) -> List[Quiz]:
        with self.session_factory() as db:
            rows = db.scalars(select(QuizRow).order_by(QuizRow.id)).all()
            return [Quiz.model_validate(r.document) for r in rows]

    def add_quiz(self, quiz: Quiz) -> None:
        with self.session_factory() as db:
            db.merge(QuizRow(id=quiz.id, course_id=quiz.course_id, title=quiz.title, document=quiz.model_dump(mode="json")))
            db.commit()

    def get_attempts(self) -> List[Attempt]:
        with self.session_factory() as db:
            rows = db.scalars(select(AttemptRow).order_by(AttemptRow.seq)).all()
            return [Attempt.model_validate(r.document) for r in rows]

    def get_attempt_by_id(self, attempt_id: str) -> Optional[Attempt]:
        with self.session_factory() as db:
            row = db.scalar(select(AttemptRow).where(AttemptRow.id == attempt_id))
            return Attempt.model_validate(row.document) if row else None

    def add_attempt(self, attempt: Attempt) -> None:
        _require_submitted(attempt)
        with self.session_factory() as db:
            if db.scalar(select(AttemptRow.seq).where(AttemptRow.id == attempt.id)) is not None:
                raise _duplicate(attempt)
            db.add(AttemptRow(
                id=attempt.id, quiz_id=attempt.quiz_id, student_id=attempt.student_id, score=attempt.score,
                submitted_at=attempt.submitted_at, document=attempt.model_dump(mode="json"),
            ))
            db.commit()

    def get_courses(self) -> List[Course]:
        with self.session_factory() as db:
            return [Course.model_validate(r.document) for r in db.scalars(select(CourseRow).order_by(CourseRow.id)).all()]

    def add_course(self, course: Course) -> None:
        with self.session_factory() as db:
            db.merge(CourseRow(id=course.id, title=course.title, document=course.model_dump(mode="json")))
            db.commit()

    def get_all_users(self) -> List[User]:
        with self.session_factory() as db:
            return [User.model_validate(r.document) for r in db.scalars(select(UserRow).order_by(UserRow.id)).all()]

    def add_user(self, user: User) -> None:
        with self.session_factory() as db:
            db.merge(UserRow(id=user.id, name=user.name, role=user.role.value, document=user.model_dump(mode="json")))
            db.commit()

# ============= Redis =============

class RedisStore:
    """Key-value layout: one hash per record kind, attempts in an append-only list."""

    def __init__(self, client, prefix: Optional[str] = None):
        self.client = client
        self.prefix = prefix or settings.REDIS_KEY_PREFIX

    def _k(self, name: str) -> str:
        return f"{self.prefix}:{name}"

    def get_quiz_by_id(self, quiz_id: str) -> Optional[Quiz]:
        raw = self.client.hget(self._k("quizzes"), quiz_id)
        return Quiz.model_validate_json(raw) if raw else None

    def get_quizzes(self) -> List[Quiz]:
        return [Quiz.model_validate_json(v) for v in self.client.hvals(self._k("quizzes"))]

    def add_quiz(self, quiz: Quiz) -> None:
        self.client.hset(self._k("quizzes"), quiz.id, quiz.model_dump_json())

    def get_attempts(self) -> List[Attempt]:
        return [Attempt.model_validate_json(v) for v in self.client.lrange(self._k("quiz_attempts"), 0, -1)]

    def get_attempt_by_id(self, attempt_id: str) -> Optional[Attempt]:
        return next((a for a in self.get_attempts() if a.id == attempt_id), None)

    def add_attempt(self, attempt: Attempt) -> None:
        _require_submitted(attempt)
        if not self.client.sadd(self._k("attempt_ids"), attempt.id):
            raise _duplicate(attempt)
        self.client.rpush(self._k("quiz_attempts"), attempt.model_dump_json())

    def get_courses(self) -> List[Course]:
        return [Course.model_validate_json(v) for v in self.client.hvals(self._k("courses"))]

    def add_course(self, course: Course) -> None:
        self.client.hset(self._k("courses"), course.id, course.model_dump_json())

    def get_all_users(self) -> List[User]:
        return [User.model_validate_json(v) for v in self.client.hvals(self._k("all_users"))]

    def add_user(self, user: User) -> None:
        self.client.hset(self._k("all_users"), user.id, user.model_dump_json())

@lru_cache()
def get_store() -> QuizStore:
    """Build the backend named by STORE_BACKEND once per process."""
    backend = settings.STORE_BACKEND
    logger.info(f"Using {backend} store")
    if backend == "sql":
        from quizengine.core.database import get_engine, get_sessionmaker, init_db
        engine = get_engine()
        init_db(engine)
        return SqlStore(get_sessionmaker(engine))
    if backend == "redis":
        from quizengine.core.cache import get_redis
        return RedisStore(get_redis())
    return MemoryStore()
