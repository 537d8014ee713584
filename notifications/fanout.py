"""
Purpose: Fire-and-forget wrapper around a NotificationDispatcher.
What it does:
Submits every dispatcher call to a thread pool and returns immediately.
A failing call is logged and dropped: it never reaches the caller, never
rolls back the upsert or transition that triggered it, and is never retried
here. Reliability belongs to the dispatcher.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Optional

from locations.models import Position
from .dispatcher import NotificationDispatcher

logger = logging.getLogger(__name__)


class NotificationFanout:

    def __init__(
        self,
        dispatcher: NotificationDispatcher,
        executor: Optional[Executor] = None,
        *,
        synchronous: bool = False,
        max_workers: int = 4,
    ):
        self.dispatcher = dispatcher
        # synchronous=True runs calls inline (still swallowing failures);
        # only meant for tests and scripts that want deterministic ordering
        self.synchronous = synchronous
        self._owns_executor = executor is None and not synchronous
        self._executor = executor if executor is not None else (
            None if synchronous else ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="notify")
        )
        self._pending: List[Future] = []
        self._pending_lock = threading.Lock()

    def _submit(self, name: str, call: Callable[..., None], *args: Any) -> None:
        if self.synchronous:
            self._run(name, call, *args)
            return
        try:
            future = self._executor.submit(self._run, name, call, *args)
        except RuntimeError:
            # executor already shut down; the event is lost, the caller is not
            logger.warning("Notification %s dropped: executor is shut down", name)
            return
        with self._pending_lock:
            self._pending = [pending for pending in self._pending if not pending.done()]
            self._pending.append(future)

    @staticmethod
    def _run(name: str, call: Callable[..., None], *args: Any) -> None:
        try:
            call(*args)
        except Exception:
            logger.exception("Notification %s failed", name)

    def notify_nearby_riders_of_driver_update(self, driver_id: str, position: Position) -> None:
        self._submit("nearby_riders", self.dispatcher.notify_nearby_riders_of_driver_update, driver_id, position)

    def notify_ride_subscribers_of_driver_location(self, driver_id: str, position: Position) -> None:
        self._submit("ride_subscribers", self.dispatcher.notify_ride_subscribers_of_driver_location, driver_id, position)

    def notify_ride_state_changed(self, ride_id: str, new_status: str, payload: Dict[str, Any]) -> None:
        self._submit("ride_state", self.dispatcher.notify_ride_state_changed, ride_id, new_status, payload)

    def notify_user(self, user_id: str, event_type: str, payload: Dict[str, Any]) -> None:
        self._submit(f"user:{event_type}", self.dispatcher.notify_user, user_id, event_type, payload)

    def flush(self, timeout: Optional[float] = None) -> None:
        """Wait for in-flight notifications (tests, shutdown)."""
        with self._pending_lock:
            pending, self._pending = self._pending, []
        for future in pending:
            future.result(timeout=timeout)

    def shutdown(self) -> None:
        if self._owns_executor and self._executor is not None:
            self._executor.shutdown(wait=True)
