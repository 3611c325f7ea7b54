"""
In-process registry of open attempt sessions, keyed by attempt id.

A session leaves the registry once its attempt has been appended to the store;
later lookups rebuild a read-only session from the stored record. When the
registry runs on an event loop the append happens on a worker thread so a slow
store never stalls the countdown of other sessions.
"""
from typing import Dict, Optional
import asyncio
import logging

from quizengine.core.config import settings
from quizengine.core.errors import NotFound
from quizengine.models.domain import Attempt, Quiz
from quizengine.services.attempts import AttemptSession, TickerFactory
from quizengine.services.ticker import Ticker

logger = logging.getLogger(__name__)

def live_ticker_factory(callback) -> Ticker:
    return Ticker(settings.TICK_SECONDS, callback)

class SessionRegistry:
    def __init__(self, store, ticker_factory: Optional[TickerFactory] = None):
        self.store = store
        self.ticker_factory = ticker_factory
        self._sessions: Dict[str, AttemptSession] = {}
        self._pending: Dict[str, asyncio.Future] = {}

    # ---------- store lookups (blocking) ----------

    def lookup_quiz(self, quiz_id: str) -> Quiz:
        quiz = self.store.get_quiz_by_id(quiz_id)
        if quiz is None:
            raise NotFound(f"quiz {quiz_id} not found")
        return quiz

    def restore(self, attempt_id: str) -> AttemptSession:
        attempt = self.store.get_attempt_by_id(attempt_id)
        if attempt is None:
            raise NotFound(f"attempt {attempt_id} not found")
        return AttemptSession.restore(self.lookup_quiz(attempt.quiz_id), attempt)

    # ---------- session lifecycle ----------

    def open(self, quiz: Quiz, student_id: str, language: Optional[str] = None) -> AttemptSession:
        """Create and start an attempt on an already resolved quiz."""
        session = AttemptSession(
            quiz, student_id, language, ticker_factory=self.ticker_factory, on_submit=self._submitted,
        )
        session.start()
        self._sessions[session.id] = session
        return session

    def start_attempt(self, quiz_id: str, student_id: str, language: Optional[str] = None) -> AttemptSession:
        """Create and start an attempt; nothing is created for an unknown quiz."""
        return self.open(self.lookup_quiz(quiz_id), student_id, language)

    def find(self, attempt_id: str) -> Optional[AttemptSession]:
        return self._sessions.get(attempt_id)

    def get(self, attempt_id: str) -> AttemptSession:
        return self.find(attempt_id) or self.restore(attempt_id)

    def _submitted(self, session: AttemptSession) -> None:
        attempt = session.attempt
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.store.add_attempt(attempt)
            self._sessions.pop(attempt.id, None)
            return
        future = loop.run_in_executor(None, self.store.add_attempt, attempt)
        self._pending[attempt.id] = future
        future.add_done_callback(lambda f: self._persisted(attempt, f))

    def _persisted(self, attempt: Attempt, future: asyncio.Future) -> None:
        self._pending.pop(attempt.id, None)
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            # the session stays so the frozen score remains visible
            logger.error(f"Failed to record attempt {attempt.id}: {error}")
            return
        self._sessions.pop(attempt.id, None)

    async def flush(self, attempt_id: str) -> None:
        """Wait until a submitted attempt has reached the store; store errors propagate."""
        future = self._pending.get(attempt_id)
        if future is not None:
            await future

    async def drain(self) -> None:
        if self._pending:
            logger.info(f"Waiting for {len(self._pending)} attempt(s) to be recorded")
            await asyncio.gather(*self._pending.values(), return_exceptions=True)

    def discard(self, attempt_id: str) -> None:
        session = self._sessions.pop(attempt_id, None)
        if session is not None:
            session.close()

    def close_all(self) -> None:
        for attempt_id in list(self._sessions):
            self.discard(attempt_id)
        logger.info("All attempt sessions closed")

    def __len__(self) -> int:
        return len(self._sessions)
