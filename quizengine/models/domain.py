"""
Value types for quizzes, questions, attempts and the derived report rows.

Quizzes and submitted attempts are frozen models: once a quiz is published or
an attempt is handed to the store no field can be reassigned.
"""
from datetime import datetime
from types import MappingProxyType
from typing import Annotated, Any, Dict, FrozenSet, List, Literal, Mapping, Optional, Union
import enum
import math

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator, model_validator

from quizengine.core.config import settings

# ========== Enumerations ==========

class QuestionType(str, enum.Enum):
    """Answer-type variant of a question."""
    SINGLE_CORRECT = "single-correct"
    MULTI_CORRECT = "multi-correct"
    NUMERICAL = "numerical"
    SUBJECTIVE = "subjective"

    @property
    def is_choice(self) -> bool:
        return self in (QuestionType.SINGLE_CORRECT, QuestionType.MULTI_CORRECT)

class DifficultyLevel(str, enum.Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"

class UserRole(str, enum.Enum):
    ADMIN = "admin"
    TEACHER = "teacher"
    STUDENT = "student"

class AttemptStage(str, enum.Enum):
    """Stages of one pass through a quiz."""
    INSTRUCTIONS = "instructions"
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"

class QuestionStatus(str, enum.Enum):
    """Palette label of a question inside an attempt."""
    ATTEMPTED = "attempted"
    REVIEW = "review"
    VISITED = "visited"
    NOT_VISITED = "not-visited"

# ========== Quiz Models ==========

class QuestionContent(BaseModel):
    """Question text and options in one language."""
    model_config = ConfigDict(frozen=True)

    question_text: str
    options: Optional[List[str]] = None

class Question(BaseModel):
    """One assessable unit of a quiz."""
    model_config = ConfigDict(frozen=True)

    id: str
    type: QuestionType
    content: Dict[str, QuestionContent]
    correct_answer: Union[float, str, List[str], None] = None
    marks: int = Field(gt=0)
    penalty_marks: float = Field(default=0.0, ge=0)
    difficulty_level: DifficultyLevel = DifficultyLevel.MEDIUM
    topic: Optional[str] = None
    subject: Optional[str] = None
    tags: List[str] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def normalize_correct_answer(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        qtype = data.get("type")
        value = data.get("correct_answer")
        qtype = qtype.value if isinstance(qtype, QuestionType) else qtype
        if qtype == QuestionType.SINGLE_CORRECT.value:
            if isinstance(value, (list, tuple)):
                value = value[0] if len(value) == 1 else value
        elif qtype == QuestionType.MULTI_CORRECT.value:
            if isinstance(value, str):
                value = [value]
            elif isinstance(value, (set, frozenset, tuple)):
                value = sorted(value)
        elif qtype == QuestionType.NUMERICAL.value:
            if isinstance(value, str) and value.strip():
                try:
                    value = float(value)
                except ValueError:
                    raise ValueError(f"numerical correct answer is not a number: {value!r}")
        elif qtype == QuestionType.SUBJECTIVE.value:
            value = None
        return {**data, "correct_answer": value}

    @model_validator(mode="after")
    def check_shape(self) -> "Question":
        if self.type == QuestionType.SINGLE_CORRECT and not isinstance(self.correct_answer, str):
            raise ValueError(f"question {self.id}: single-correct needs one option string")
        if self.type == QuestionType.MULTI_CORRECT:
            if not isinstance(self.correct_answer, list) or not self.correct_answer:
                raise ValueError(f"question {self.id}: multi-correct needs a non-empty set of options")
        if self.type == QuestionType.NUMERICAL:
            if isinstance(self.correct_answer, bool) or not isinstance(self.correct_answer, (int, float)):
                raise ValueError(f"question {self.id}: numerical needs a number")
            if not math.isfinite(self.correct_answer):
                raise ValueError(f"question {self.id}: numerical answer must be finite")
        if self.type.is_choice:
            lengths = {len(c.options or []) for c in self.content.values()}
            if 0 in lengths:
                raise ValueError(f"question {self.id}: choice questions need options in every language")
            if len(lengths) > 1:
                raise ValueError(f"question {self.id}: option lists are not aligned across languages")
        return self

    @property
    def correct_set(self) -> FrozenSet[str]:
        if self.type == QuestionType.MULTI_CORRECT:
            return frozenset(self.correct_answer or [])
        if self.type == QuestionType.SINGLE_CORRECT:
            return frozenset([self.correct_answer])
        return frozenset()

    def content_for(self, language: str, canonical: str) -> QuestionContent:
        return self.content.get(language) or self.content[canonical]

class Quiz(BaseModel):
    """An ordered, non-empty sequence of questions with a time limit."""
    model_config = ConfigDict(frozen=True)

    id: str
    title: str = ""
    description: str = ""
    course_id: Optional[str] = None
    duration: int = Field(gt=0)  # minutes
    instructions: str = ""
    questions: List[Question] = Field(min_length=1)
    supported_languages: List[str] = Field(default_factory=lambda: [settings.CANONICAL_LANGUAGE])
    canonical_language: str = Field(default_factory=lambda: settings.CANONICAL_LANGUAGE)
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None

    @model_validator(mode="after")
    def check_questions(self) -> "Quiz":
        if self.canonical_language not in self.supported_languages:
            raise ValueError(f"supported languages must include {self.canonical_language}")
        seen = set()
        for q in self.questions:
            if q.id in seen:
                raise ValueError(f"duplicate question id {q.id}")
            seen.add(q.id)
            canonical = q.content.get(self.canonical_language)
            if canonical is None:
                raise ValueError(f"question {q.id} has no {self.canonical_language} content")
            if q.type.is_choice and not q.correct_set.issubset(canonical.options or []):
                raise ValueError(f"question {q.id}: correct answer is not among the {self.canonical_language} options")
        return self

    @property
    def total_marks(self) -> int:
        return sum(q.marks for q in self.questions)

    @property
    def question_ids(self) -> List[str]:
        return [q.id for q in self.questions]

    def get_question(self, question_id: str) -> Optional[Question]:
        return next((q for q in self.questions if q.id == question_id), None)

# ========== Answer Models ==========

class SingleChoice(BaseModel):
    model_config = ConfigDict(frozen=True)
    kind: Literal["single-correct"] = "single-correct"
    value: str

    @property
    def is_empty(self) -> bool:
        return self.value == ""

class MultiChoice(BaseModel):
    model_config = ConfigDict(frozen=True)
    kind: Literal["multi-correct"] = "multi-correct"
    values: FrozenSet[str] = frozenset()

    @property
    def is_empty(self) -> bool:
        return not self.values

class Numeric(BaseModel):
    """Numerical answer kept as typed; parsed only when graded."""
    model_config = ConfigDict(frozen=True)
    kind: Literal["numerical"] = "numerical"
    value: str

    @field_validator("value", mode="before")
    @classmethod
    def stringify(cls, v: Any) -> Any:
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return repr(v)
        return v

    @property
    def is_empty(self) -> bool:
        return self.value.strip() == ""

    def parse(self) -> Optional[float]:
        try:
            return float(self.value.strip())
        except ValueError:
            return None

class Text(BaseModel):
    model_config = ConfigDict(frozen=True)
    kind: Literal["subjective"] = "subjective"
    value: str

    @property
    def is_empty(self) -> bool:
        return self.value.strip() == ""

Answer = Annotated[Union[SingleChoice, MultiChoice, Numeric, Text], Field(discriminator="kind")]

# ========== Attempt Models ==========

class Attempt(BaseModel):
    """One student's record of taking one quiz."""
    model_config = ConfigDict(frozen=True)

    id: str
    quiz_id: str
    student_id: str
    language: str
    answers: Dict[str, Answer] = Field(default_factory=dict, validate_default=True)
    visited_questions: FrozenSet[str] = frozenset()
    attempted_questions: FrozenSet[str] = frozenset()
    marked_for_review: FrozenSet[str] = frozenset()
    started_at: datetime
    submitted_at: Optional[datetime] = None
    score: Optional[float] = None

    @field_validator("answers", mode="after")
    @classmethod
    def freeze_answers(cls, v: Dict[str, Any]) -> Mapping[str, Any]:
        return MappingProxyType(dict(v))

    @field_serializer("answers")
    def dump_answers(self, v: Mapping[str, Any]) -> Dict[str, Answer]:
        return dict(v)

    @property
    def is_submitted(self) -> bool:
        return self.submitted_at is not None

# ========== Directory Models ==========

class User(BaseModel):
    id: str
    name: str
    email: str = ""
    role: UserRole = UserRole.STUDENT

class Course(BaseModel):
    id: str
    title: str
    description: str = ""
    created_by: Optional[str] = None
    quiz_ids: List[str] = Field(default_factory=list)
    enrolled_students: List[str] = Field(default_factory=list)

# ========== Report Models ==========

class ScoreBucket(BaseModel):
    label: str
    count: int

class QuestionAccuracy(BaseModel):
    question_id: str
    question_number: int
    attempts: int
    correct: int
    accuracy: float  # percent of attempts that were graded correct
    difficulty: DifficultyLevel

class GroupAccuracy(BaseModel):
    """Accuracy over the questions sharing one topic or subject."""
    group: str
    attempts: int
    correct: int
    accuracy: float

class LeaderboardRow(BaseModel):
    position: int
    attempt_id: str
    student_id: str
    student_name: Optional[str] = None
    score: float
    percentage: float

class QuizReport(BaseModel):
    quiz_id: str
    title: str
    total_marks: int
    total_attempts: int
    average_score: float
    max_score: float
    pass_rate: float  # percent of attempts at or above the pass threshold
    distribution: List[ScoreBucket]
    question_accuracy: List[QuestionAccuracy]
    topic_accuracy: List[GroupAccuracy]
    subject_accuracy: List[GroupAccuracy]
    top_performers: List[LeaderboardRow]

class RankingRow(BaseModel):
    rank: int
    student_id: str
    student_name: Optional[str] = None
    total_score: float
    total_possible: int
    total_attempts: int
    average_percentage: float

class CourseProgress(BaseModel):
    course_id: str
    course_title: str
    instructor_name: Optional[str] = None
    total_quizzes: int
    completed_quizzes: int
    average_percentage: float
    eligible: bool

class StudentQuizResult(BaseModel):
    quiz_id: str
    student_id: str
    attempt_id: str
    score: float
    total_marks: int
    percentage: float
    passed: bool
    correct_answers: int
    rank: int
    total_attempts: int

class PerformancePoint(BaseModel):
    label: str
    quiz_id: str
    percentage: float
    submitted_at: datetime

class PerformanceSummary(BaseModel):
    student_id: str
    course_id: Optional[str] = None
    total_attempts: int
    average_percentage: float
    progress: List[PerformancePoint]
    bands: Dict[str, int]
    subjects: List[GroupAccuracy]

class RegradeDiff(BaseModel):
    attempt_id: str
    student_id: str
    frozen_score: Optional[float]
    recomputed_score: float
