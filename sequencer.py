"""Serialized execution of output actions on a single worker thread."""

from __future__ import annotations

import threading
from queue import Queue
from typing import Callable, Optional

import structlog

from errors import ActuatorError, DictationError
from interfaces import OutputActuator
from models import OutputAction

logger = structlog.get_logger()

_Item = tuple[int, OutputAction]


class OutputSequencer:
    """Runs actions strictly in submission order, one at a time.

    Each action is tagged with the session that produced it; an action whose
    session is no longer current when it reaches the front of the queue is
    discarded instead of executed.
    """

    def __init__(
        self,
        actuator: OutputActuator,
        is_current: Callable[[int], bool],
        on_error: Optional[Callable[[DictationError], None]] = None,
    ) -> None:
        self._actuator = actuator
        self._is_current = is_current
        self._on_error = on_error
        self._queue: Queue[_Item | None] = Queue()
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()
        self._idle = threading.Condition()
        self._pending = 0

    def submit(self, session_id: int, action: OutputAction) -> None:
        self._ensure_worker()
        with self._idle:
            self._pending += 1
        self._queue.put((session_id, action))

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until every submitted action has been executed or discarded."""
        with self._idle:
            return self._idle.wait_for(lambda: self._pending == 0, timeout=timeout)

    def shutdown(self, timeout: float = 1.0) -> None:
        with self._lock:
            thread = self._thread
            self._thread = None
        if thread is None:
            return
        self._queue.put(None)
        if thread is not threading.current_thread():
            thread.join(timeout=timeout)

    def _ensure_worker(self) -> None:
        with self._lock:
            if self._thread is not None and self._thread.is_alive():
                return
            self._thread = threading.Thread(target=self._worker, name="output-sequencer", daemon=True)
            self._thread.start()

    def _worker(self) -> None:
        while True:
            item = self._queue.get()
            if item is None:  # Sentinel
                return
            session_id, action = item
            try:
                self._run(session_id, action)
            finally:
                with self._idle:
                    self._pending -= 1
                    self._idle.notify_all()

    def _run(self, session_id: int, action: OutputAction) -> None:
        if not self._is_current(session_id):
            logger.debug("output_action_discarded", action=repr(action), session=session_id)
            return
        try:
            self._actuator.execute(action)
        except ActuatorError as exc:
            logger.error("output_action_failed", action=repr(action), error=exc.message)
            self._report(exc)
        except Exception as exc:
            logger.exception("output_action_failed", action=repr(action))
            self._report(ActuatorError(str(exc)))

    def _report(self, error: DictationError) -> None:
        if self._on_error is None:
            return
        try:
            self._on_error(error)
        except Exception:
            logger.exception("output_error_callback_failed")
