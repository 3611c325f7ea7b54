import pytest
from quizengine.services.sessions import SessionRegistry
from quizengine.services.store import MemoryStore

class FailingStore(MemoryStore):
    def add_attempt(self, attempt):
        raise RuntimeError("store offline")

@pytest.mark.asyncio
async def test_submission_is_recorded_off_the_loop(quiz):
    store = MemoryStore(quizzes=[quiz])
    registry = SessionRegistry(store)
    s = registry.start_attempt(quiz.id, "s1")
    s.answer("q1", "Paris")
    assert s.submit() == 4
    await registry.flush(s.id)
    assert store.get_attempt_by_id(s.id).score == 4
    assert len(registry) == 0

@pytest.mark.asyncio
async def test_store_failure_surfaces_and_keeps_session(quiz):
    registry = SessionRegistry(FailingStore(quizzes=[quiz]))
    s = registry.start_attempt(quiz.id, "s1")
    s.submit()
    with pytest.raises(RuntimeError):
        await registry.flush(s.id)
    assert registry.find(s.id) is s
    assert s.score == 0

@pytest.mark.asyncio
async def test_drain_waits_for_pending_records(quiz):
    store = MemoryStore(quizzes=[quiz])
    registry = SessionRegistry(store)
    for _ in range(3):
        registry.start_attempt(quiz.id, "s1").submit()
    await registry.drain()
    assert len(store.get_attempts()) == 3
    assert len(registry) == 0
