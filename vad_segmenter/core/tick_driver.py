"""
Fixed-interval tick thread
"""
import threading
import time
from typing import Callable, Optional

import structlog

logger = structlog.get_logger(__name__)


class TickDriver:
    """
    Calls a function every interval on a dedicated daemon thread

    Deadlines advance from the start time rather than from the previous call,
    so a slow tick delays the next one but does not shift the schedule. If the
    thread falls more than one full interval behind, missed ticks are skipped
    rather than replayed in a burst.
    """

    def __init__(
        self,
        callback: Callable[[], None],
        interval_ms: int = 100,
        name: str = "SegmenterTickThread"
    ):
        if interval_ms <= 0:
            raise ValueError("interval_ms must be > 0")

        self.callback = callback
        self.interval_s = interval_ms / 1000
        self.name = name

        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._ticks = 0
        self._skipped = 0

    def start(self):
        if self.is_running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()

        logger.debug("Tick driver started", interval_s=self.interval_s)

    def stop(self, timeout: float = 1.0):
        """Signal the thread and wait for it, unless called from the tick itself"""
        self._stop_event.set()

        thread = self._thread
        if thread and thread is not threading.current_thread():
            thread.join(timeout)
            if thread.is_alive():
                logger.warning("Tick thread did not stop in time", timeout=timeout)

        self._thread = None
        logger.debug("Tick driver stopped", ticks=self._ticks, skipped=self._skipped)

    def _run(self):
        next_deadline = time.monotonic() + self.interval_s

        while not self._stop_event.wait(max(0.0, next_deadline - time.monotonic())):
            try:
                self.callback()
            except Exception as e:
                logger.error("Tick callback failed", error=str(e), exc_info=True)
            self._ticks += 1

            next_deadline += self.interval_s
            now = time.monotonic()
            if now - next_deadline > self.interval_s:
                behind = int((now - next_deadline) // self.interval_s)
                self._skipped += behind
                next_deadline += behind * self.interval_s

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def ticks(self) -> int:
        return self._ticks
