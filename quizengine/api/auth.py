from fastapi import APIRouter
from pydantic import BaseModel, Field
from typing import List
from quizengine.core.auth import create_token
from quizengine.core.config import settings
from quizengine.models.domain import UserRole

router = APIRouter()

class MockLogin(BaseModel):
    user_id: str = Field(min_length=1)
    roles: List[UserRole]

@router.post("/mock-login")
def mock_login(payload: MockLogin):
    roles = [r.value for r in payload.roles]
    token = create_token(payload.user_id, roles)
    return {"access_token": token, "token_type": "bearer", "user_id": payload.user_id, "roles": roles,
            "expires_in": settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60}
