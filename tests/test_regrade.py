import pytest
from quizengine.core.errors import NotFound
from quizengine.jobs.regrade_job import regrade_job
from quizengine.models.domain import SingleChoice
from quizengine.services.store import MemoryStore
from conftest import make_attempt

def test_regrade_job_reports_mismatches_without_rewriting(quiz):
    answers = {"q1": SingleChoice(value="Paris")}
    ok = make_attempt(quiz.id, "s1", 4, answers=answers)
    drifted = make_attempt(quiz.id, "s2", 7, answers=answers)
    store = MemoryStore(quizzes=[quiz], attempts=[ok, drifted, make_attempt("elsewhere", "s3", 1)])
    result = regrade_job(quiz.id, store=store)
    assert result["checked"] == 2
    assert result["mismatched"] == 1
    assert result["diffs"][0]["attempt_id"] == drifted.id
    assert store.get_attempt_by_id(drifted.id).score == 7

def test_regrade_job_unknown_quiz():
    with pytest.raises(NotFound):
        regrade_job("missing", store=MemoryStore())
