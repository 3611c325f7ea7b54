from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from rq.exceptions import NoSuchJobError
from rq.job import Job, JobStatus
from quizengine.core.auth import require_roles
from quizengine.core.config import settings
from quizengine.core.errors import NotFound
from quizengine.api.deps import get_store
from quizengine.jobs.queue import get_queue
from quizengine.jobs.regrade_job import regrade_job
from quizengine.models.domain import RegradeDiff
from quizengine.services.analytics import submitted_attempts
from quizengine.services.scoring import regrade_attempts
from quizengine.services.store import QuizStore

router = APIRouter()

class RegradeStatus(BaseModel):
    job_id: str
    state: str
    checked: int = 0
    mismatched: int = 0
    result: Optional[dict] = None

@router.post("/regrade/{quiz_id}", dependencies=[Depends(require_roles("admin"))])
def start_regrade(quiz_id: str, store: QuizStore = Depends(get_store)):
    if store.get_quiz_by_id(quiz_id) is None:
        raise NotFound(f"quiz {quiz_id} not found")
    job = get_queue().enqueue(regrade_job, quiz_id, job_timeout=settings.RQ_JOB_TIMEOUT)
    return {"job_id": job.get_id(), "quiz_id": quiz_id}

@router.get("/regrade/status", response_model=RegradeStatus, dependencies=[Depends(require_roles("admin"))])
def regrade_status(job_id: str):
    try:
        job = Job.fetch(job_id, connection=get_queue().connection)
    except NoSuchJobError:
        raise HTTPException(status_code=404, detail=f"Unknown job {job_id}")
    meta = job.meta or {}
    state = meta.get("state") or JobStatus(job.get_status()).value
    return RegradeStatus(
        job_id=job_id,
        state=state,
        checked=int(meta.get("checked") or 0),
        mismatched=int(meta.get("mismatched") or 0),
        result=job.result if state == "done" else None,
    )

@router.get("/regrade/{quiz_id}/preview", response_model=List[RegradeDiff], dependencies=[Depends(require_roles("admin"))])
def preview_regrade(quiz_id: str, store: QuizStore = Depends(get_store)):
    quiz = store.get_quiz_by_id(quiz_id)
    if quiz is None:
        raise NotFound(f"quiz {quiz_id} not found")
    return regrade_attempts(quiz, [a for a in submitted_attempts(store.get_attempts()) if a.quiz_id == quiz_id])
