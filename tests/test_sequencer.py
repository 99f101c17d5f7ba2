"""Tests for OutputSequencer."""

from __future__ import annotations

import threading
import time

from errors import ActuatorError, DictationError
from models import PressKey, TypeText
from sequencer import OutputSequencer


class RecordingActuator:
    def __init__(self, delay_s: float = 0.0) -> None:
        self.delay_s = delay_s
        self.calls: list[tuple[str, object]] = []
        self._active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    def execute(self, action) -> None:  # noqa: ANN001
        with self._lock:
            self._active += 1
            self.max_active = max(self.max_active, self._active)
        self.calls.append(("begin", action))
        time.sleep(self.delay_s)
        self.calls.append(("end", action))
        with self._lock:
            self._active -= 1

    def set_typing_speed(self, ms_per_char: int) -> None:
        pass


def test_actions_run_in_order_one_at_a_time() -> None:
    actuator = RecordingActuator(delay_s=0.02)
    sequencer = OutputSequencer(actuator, is_current=lambda session: True)

    actions = [PressKey("enter"), TypeText("hello"), TypeText(" world")]
    for action in actions:
        sequencer.submit(1, action)

    assert sequencer.wait_idle(timeout=2.0) is True
    assert actuator.calls == [
        ("begin", actions[0]),
        ("end", actions[0]),
        ("begin", actions[1]),
        ("end", actions[1]),
        ("begin", actions[2]),
        ("end", actions[2]),
    ]
    assert actuator.max_active == 1
    sequencer.shutdown()


def test_stale_session_actions_are_discarded() -> None:
    actuator = RecordingActuator()
    current = {"session": 2}
    sequencer = OutputSequencer(actuator, is_current=lambda session: session == current["session"])

    sequencer.submit(1, TypeText("old"))
    sequencer.submit(2, TypeText("new"))

    assert sequencer.wait_idle(timeout=2.0) is True
    assert [action for kind, action in actuator.calls if kind == "begin"] == [TypeText("new")]
    sequencer.shutdown()


def test_actuator_error_is_reported_and_worker_continues() -> None:
    class FailingOnce(RecordingActuator):
        def execute(self, action) -> None:  # noqa: ANN001
            if action == PressKey("bogus"):
                raise ActuatorError("unknown key: 'bogus'")
            super().execute(action)

    actuator = FailingOnce()
    errors: list[DictationError] = []
    sequencer = OutputSequencer(actuator, is_current=lambda session: True, on_error=errors.append)

    sequencer.submit(1, PressKey("bogus"))
    sequencer.submit(1, TypeText("after"))

    assert sequencer.wait_idle(timeout=2.0) is True
    assert len(errors) == 1
    assert isinstance(errors[0], ActuatorError)
    assert ("end", TypeText("after")) in actuator.calls
    sequencer.shutdown()


def test_unexpected_exception_is_wrapped() -> None:
    class Exploding(RecordingActuator):
        def execute(self, action) -> None:  # noqa: ANN001
            raise OSError("display gone")

    errors: list[DictationError] = []
    sequencer = OutputSequencer(Exploding(), is_current=lambda session: True, on_error=errors.append)

    sequencer.submit(1, TypeText("x"))

    assert sequencer.wait_idle(timeout=2.0) is True
    assert isinstance(errors[0], ActuatorError)
    assert "display gone" in errors[0].message
    sequencer.shutdown()


def test_wait_idle_without_work_returns_immediately() -> None:
    sequencer = OutputSequencer(RecordingActuator(), is_current=lambda session: True)
    assert sequencer.wait_idle(timeout=0.1) is True


def test_shutdown_is_idempotent() -> None:
    sequencer = OutputSequencer(RecordingActuator(), is_current=lambda session: True)
    sequencer.submit(1, TypeText("x"))
    sequencer.wait_idle(timeout=2.0)

    sequencer.shutdown()
    sequencer.shutdown()
