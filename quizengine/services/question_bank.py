from typing import Iterable, List, Optional

from quizengine.models.domain import DifficultyLevel, Question, QuestionType, Quiz

def search_questions(
    quizzes: Iterable[Quiz],
    term: Optional[str] = None,
    qtype: Optional[QuestionType] = None,
    difficulty: Optional[DifficultyLevel] = None,
) -> List[Question]:
    """Filter every quiz question by text/subject/topic search, variant and difficulty."""
    rows = []
    needle = (term or "").strip().lower()
    for quiz in quizzes:
        lang = quiz.canonical_language
        for q in quiz.questions:
            if qtype is not None and q.type != qtype:
                continue
            if difficulty is not None and q.difficulty_level != difficulty:
                continue
            if needle:
                content = q.content.get(lang)
                haystack = [content.question_text if content else "", q.subject or "", q.topic or ""]
                if not any(needle in h.lower() for h in haystack):
                    continue
            rows.append(q)
    return rows
