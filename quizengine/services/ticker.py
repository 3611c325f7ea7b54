"""Cancellable fixed-interval tick driven by the running asyncio loop."""
import asyncio
import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)

class Ticker:
    """Calls `callback` every `interval` seconds until cancelled.

    The callback runs on the event loop thread, so it never interleaves with
    other coroutines touching the same session.
    """

    def __init__(self, interval: float, callback: Callable[[], None]):
        if interval <= 0:
            raise ValueError("tick interval must be positive")
        self.interval = interval
        self.callback = callback
        self._task: Optional[asyncio.Task] = None
        self._cancelled = False

    def start(self) -> None:
        if self._task is not None:
            raise RuntimeError("ticker already started")
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                self.callback()
            except Exception:
                logger.exception("Tick callback failed, stopping ticker")
                return

    def cancel(self) -> None:
        self._cancelled = True
        if self._task is not None and not self._task.done():
            self._task.cancel()

    @property
    def active(self) -> bool:
        return self._task is not None and not self._cancelled and not self._task.done()
