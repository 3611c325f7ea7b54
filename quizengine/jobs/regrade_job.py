"""
Offline re-grading: re-run the scoring engine over every submitted attempt of
a quiz and report the attempts whose recomputed score differs from the frozen
one. Stored attempts are never rewritten.

The worker reads through ``get_store()``, so it only sees attempts recorded by
the API when both run against a shared ``sql`` or ``redis`` backend.
"""
import logging
from rq import get_current_job
from quizengine.core.errors import NotFound
from quizengine.services.analytics import submitted_attempts
from quizengine.services.scoring import regrade_attempts
from quizengine.services.store import QuizStore, get_store

logger = logging.getLogger(__name__)

def _progress(job, **meta) -> None:
    if job is not None:
        job.meta.update(meta)
        job.save_meta()

def regrade_job(quiz_id: str, store: QuizStore | None = None) -> dict:
    job = get_current_job()
    store = store or get_store()
    _progress(job, state="running", checked=0, mismatched=0)
    quiz = store.get_quiz_by_id(quiz_id)
    if quiz is None:
        _progress(job, state="failed")
        raise NotFound(f"quiz {quiz_id} not found")
    attempts = [a for a in submitted_attempts(store.get_attempts()) if a.quiz_id == quiz_id]
    logger.info(f"Re-grading {len(attempts)} attempt(s) of quiz {quiz_id}")
    diffs = regrade_attempts(quiz, attempts)
    result = {
        "quiz_id": quiz_id,
        "checked": len(attempts),
        "mismatched": len(diffs),
        "diffs": [d.model_dump(mode="json") for d in diffs],
    }
    _progress(job, state="done", checked=len(attempts), mismatched=len(diffs))
    if diffs:
        logger.warning(f"Quiz {quiz_id}: {len(diffs)} attempt(s) disagree with their frozen score")
    else:
        logger.info(f"Quiz {quiz_id}: all frozen scores confirmed")
    return result
