"""
Purpose: The background "heartbeat" for housekeeping jobs.
What it does:
Runs a `run_cycle()` callable every `interval_seconds` on a daemon thread,
decoupled from any request/write path. Used for rider-position retention and
for waking scheduled rides.

Each job object only needs a `run_cycle(now=None)` method, so tests can drive
cycles directly without starting threads.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Optional

logger = logging.getLogger(__name__)


class PeriodicTask:
    def __init__(self, job: Any, interval_seconds: float, name: Optional[str] = None):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        self.job = job
        self.interval_seconds = interval_seconds
        self.name = name or type(job).__name__
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name=f"sweep-{self.name}", daemon=True)
        self._thread.start()
        logger.info("Started periodic task %s every %ss", self.name, self.interval_seconds)

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
        self._thread = None

    def _loop(self) -> None:
        # Event.wait doubles as an interruptible sleep.
        while not self._stop.wait(self.interval_seconds):
            try:
                self.job.run_cycle()
            except Exception:
                # A failed cycle must not kill the heartbeat; the next one retries.
                logger.exception("Periodic task %s failed", self.name)
