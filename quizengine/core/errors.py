"""
Exceptions raised by the assessment engine.

The API layer maps them onto HTTP status codes in ``quizengine.main``.
"""


class QuizEngineError(Exception):
    """Base class for engine errors."""

    status_code = 400
    error_type = "engine_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(QuizEngineError):
    """Unknown quiz, attempt, course or question id."""

    status_code = 404
    error_type = "not_found"


class InvalidState(QuizEngineError):
    """Operation not permitted in the attempt's current stage."""

    status_code = 409
    error_type = "invalid_state"


class InvalidAnswer(QuizEngineError, ValueError):
    """Answer value does not fit the question's variant."""

    status_code = 422
    error_type = "invalid_answer"


class InvalidQuiz(QuizEngineError, ValueError):
    status_code = 422
    error_type = "invalid_quiz"


class UnsupportedLanguage(QuizEngineError, ValueError):
    status_code = 422
    error_type = "unsupported_language"
