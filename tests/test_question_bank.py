from quizengine.models.domain import DifficultyLevel, QuestionType
from quizengine.services.question_bank import search_questions
from conftest import make_quiz, question

def test_search_reads_each_quiz_in_its_canonical_language(quiz):
    hindi_first = make_quiz(
        "quiz-hi",
        questions=[{
            "id": "h1", "type": "numerical", "correct_answer": 3, "marks": 1,
            "content": {"hindi": {"question_text": "त्रिभुज की भुजाएँ"}, "english": {"question_text": "Sides of a triangle"}},
        }],
        supported_languages=["hindi", "english"],
        canonical_language="hindi",
    )
    assert [q.id for q in search_questions([quiz, hindi_first], term="त्रिभुज")] == ["h1"]
    assert search_questions([quiz, hindi_first], term="triangle") == []
    assert [q.id for q in search_questions([quiz, hindi_first], term="question q1")] == ["q1"]

def test_search_filters_by_variant_and_difficulty(quiz):
    assert [q.id for q in search_questions([quiz], qtype=QuestionType.MULTI_CORRECT)] == ["q2"]
    assert [q.id for q in search_questions([quiz], difficulty=DifficultyLevel.MEDIUM)] == ["q1", "q3"]
    assert [q.id for q in search_questions([quiz], term="ARITH")] == ["q3"]
