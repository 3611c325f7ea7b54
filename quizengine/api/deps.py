from fastapi import Depends, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from quizengine.core.auth import TokenData, get_current_user
from quizengine.services.attempts import AttemptSession
from quizengine.services.sessions import SessionRegistry
from quizengine.services.store import QuizStore

STAFF_ROLES = ("teacher", "admin")

def get_store(request: Request) -> QuizStore:
    return request.app.state.store

def get_registry(request: Request) -> SessionRegistry:
    return request.app.state.registry

async def get_owned_session(attempt_id: str, user: TokenData = Depends(get_current_user), registry: SessionRegistry = Depends(get_registry)) -> AttemptSession:
    session = registry.find(attempt_id)
    if session is None:
        session = await run_in_threadpool(registry.restore, attempt_id)
    if session.student_id != user.sub:
        raise HTTPException(status_code=403, detail="Attempt belongs to another student")
    return session

def ensure_self_or_staff(user: TokenData, student_id: str) -> None:
    if user.sub != student_id and not user.has_role(*STAFF_ROLES):
        raise HTTPException(status_code=403, detail="Insufficient role")
