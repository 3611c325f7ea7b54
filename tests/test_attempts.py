from datetime import datetime, timezone
import pytest
from quizengine.core.errors import InvalidAnswer, InvalidState, NotFound, UnsupportedLanguage
from quizengine.models.domain import AttemptStage, MultiChoice, QuestionStatus, SingleChoice
from quizengine.services.attempts import AttemptSession
from quizengine.services.scoring import score_attempt
from quizengine.services.sessions import SessionRegistry
from quizengine.services.store import MemoryStore

class FakeTicker:
    def __init__(self, callback):
        self.callback = callback
        self.started = False
        self.cancelled = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

def fixed_clock():
    return datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)

@pytest.fixture
def store(quiz):
    return MemoryStore(quizzes=[quiz])

@pytest.fixture
def session(quiz, store):
    return AttemptSession(quiz, "s1", store=store, clock=fixed_clock).start()

def test_start_initialises_countdown_and_visits_first_question(quiz):
    s = AttemptSession(quiz, "s1")
    assert s.stage == AttemptStage.INSTRUCTIONS
    s.start()
    assert s.stage == AttemptStage.IN_PROGRESS
    assert s.time_remaining == 60
    assert s.visited == {"q1"}
    with pytest.raises(InvalidState):
        s.start()

def test_operations_before_start_are_rejected(quiz):
    s = AttemptSession(quiz, "s1")
    with pytest.raises(InvalidState):
        s.answer("q1", "Paris")
    with pytest.raises(InvalidState):
        s.submit()

def test_unsupported_language(quiz):
    with pytest.raises(UnsupportedLanguage):
        AttemptSession(quiz, "s1", language="french")

def test_navigate_is_non_linear_and_monotone(session):
    session.navigate(2)
    session.navigate(0)
    assert session.current_index == 0
    assert session.visited == {"q1", "q3"}
    with pytest.raises(NotFound):
        session.navigate(3)

def test_answer_overwrites_and_attempted_survives_clear(session):
    session.answer("q1", "Rome")
    session.answer("q1", "Paris")
    assert session.answers["q1"] == SingleChoice(value="Paris")
    session.answer("q1", None)
    assert "q1" not in session.answers
    assert "q1" in session.attempted

def test_answer_shape_is_checked(session):
    with pytest.raises(InvalidAnswer):
        session.answer("q2", "2")
    with pytest.raises(InvalidAnswer):
        session.answer("q1", "Madrid")
    with pytest.raises(InvalidAnswer):
        session.answer("q3", ["42"])
    with pytest.raises(NotFound):
        session.answer("nope", "Paris")
    assert session.attempted == frozenset()

def test_toggle_review_twice_cancels(session):
    assert session.toggle_review("q2") is True
    assert session.toggle_review("q2") is False
    assert session.marked_for_review == frozenset()

def test_status_labels_are_exclusive_and_exhaustive(session):
    session.navigate(1)
    session.answer("q1", "Paris")
    session.toggle_review("q1")
    session.toggle_review("q3")
    assert session.statuses() == {
        "q1": QuestionStatus.REVIEW,
        "q2": QuestionStatus.VISITED,
        "q3": QuestionStatus.NOT_VISITED,
    }
    counts = session.status_counts()
    assert sum(counts.values()) == 3
    assert counts == {"attempted": 0, "review": 1, "visited": 1, "not-visited": 1}

def test_manual_submit_freezes_and_appends(session, store, quiz):
    session.answer("q1", "Paris")
    session.answer("q2", ["5", "2", "3"])
    assert session.submit() == 8
    assert session.stage == AttemptStage.SUBMITTED
    assert session.submitted_at == fixed_clock()
    [stored] = store.get_attempts()
    assert stored.id == session.id
    assert stored.score == 8
    assert stored.answers["q2"] == MultiChoice(values={"2", "3", "5"})

def test_submit_is_idempotent(session, store):
    session.answer("q1", "Rome")
    first = session.submit()
    assert session.submit() == first
    assert len(store.get_attempts()) == 1

def test_mutation_after_submit_raises_and_changes_nothing(session):
    session.answer("q1", "Paris")
    session.submit()
    for op in (lambda: session.answer("q1", "Rome"), lambda: session.navigate(1), lambda: session.toggle_review("q1")):
        with pytest.raises(InvalidState):
            op()
    assert session.answers == {"q1": SingleChoice(value="Paris")}
    assert session.current_index == 0
    assert session.marked_for_review == frozenset()

def test_countdown_expiry_submits(quiz, store):
    s = AttemptSession(quiz, "s1", store=store).start()
    s.answer("q1", "Paris")
    s.answer("q3", "41")
    for _ in range(59):
        s.tick()
    assert s.stage == AttemptStage.IN_PROGRESS
    s.tick()
    assert s.stage == AttemptStage.SUBMITTED
    assert s.time_remaining == 0
    assert s.submitted_at is not None
    assert s.score == score_attempt(quiz, s.answers) == 3.5
    assert store.get_attempt_by_id(s.id).score == 3.5

def test_late_tick_is_a_no_op(session, store):
    session.submit()
    frozen = session.attempt
    session.tick()
    assert session.attempt is frozen
    assert len(store.get_attempts()) == 1

def test_ticker_cancelled_on_every_exit(quiz):
    tickers = []

    def factory(callback):
        tickers.append(FakeTicker(callback))
        return tickers[-1]

    manual = AttemptSession(quiz, "s1", ticker_factory=factory).start()
    manual.submit()
    timed = AttemptSession(quiz, "s2", ticker_factory=factory).start()
    for _ in range(60):
        tickers[1].callback()
    torn = AttemptSession(quiz, "s3", ticker_factory=factory).start()
    torn.close()
    assert all(t.started and t.cancelled for t in tickers)
    assert timed.stage == AttemptStage.SUBMITTED

def test_close_abandons_open_attempt(session, store):
    session.close()
    session.tick()
    assert session.is_closed
    assert session.stage == AttemptStage.IN_PROGRESS
    with pytest.raises(InvalidState):
        session.answer("q1", "Paris")
    assert store.get_attempts() == []

def test_non_canonical_choices_are_stored_canonically(quiz):
    s = AttemptSession(quiz, "s1", language="hindi").start()
    s.answer("q1", "पेरिस")
    s.answer("q2", ["दो", "तीन", "पाँच"])
    assert s.answers["q1"] == SingleChoice(value="Paris")
    assert s.submit() == 8

def test_registry_creates_nothing_for_unknown_quiz(store):
    registry = SessionRegistry(store)
    with pytest.raises(NotFound):
        registry.start_attempt("missing", "s1")
    assert len(registry) == 0

def test_registry_close_all(quiz, store):
    registry = SessionRegistry(store)
    s = registry.start_attempt(quiz.id, "s1")
    assert registry.get(s.id) is s
    registry.close_all()
    assert s.is_closed
    with pytest.raises(NotFound):
        registry.get(s.id)

def test_registry_releases_submitted_sessions(quiz, store):
    registry = SessionRegistry(store)
    ids = [registry.start_attempt(quiz.id, "s1").id for _ in range(5)]
    for attempt_id in ids:
        registry.get(attempt_id).submit()
    assert len(registry) == 0
    assert [a.id for a in store.get_attempts()] == ids

def test_registry_restores_submitted_attempt_from_store(quiz, store):
    registry = SessionRegistry(store)
    s = registry.start_attempt(quiz.id, "s1", language="hindi")
    s.answer("q1", "पेरिस")
    s.submit()
    restored = registry.get(s.id)
    assert restored is not s
    assert restored.stage == AttemptStage.SUBMITTED
    assert restored.language == "hindi"
    assert restored.submit() == 4
    with pytest.raises(InvalidState):
        restored.answer("q1", "रोम")
    assert len(store.get_attempts()) == 1

def test_timeout_releases_session(quiz, store):
    registry = SessionRegistry(store)
    s = registry.start_attempt(quiz.id, "s1")
    for _ in range(60):
        s.tick()
    assert len(registry) == 0
    assert store.get_attempt_by_id(s.id).score == 0

def test_submitted_answers_cannot_be_rewritten(session, store):
    session.answer("q1", "Rome")
    session.submit()
    with pytest.raises(TypeError):
        store.get_attempts()[0].answers["q1"] = SingleChoice(value="Paris")
    with pytest.raises(TypeError):
        session.attempt.answers["q1"] = SingleChoice(value="Paris")
    assert store.get_attempts()[0].answers["q1"] == SingleChoice(value="Rome")
    assert session.submit() == 0
