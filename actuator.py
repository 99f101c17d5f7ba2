"""Keyboard output actuator for typed text, keys and chords."""

from __future__ import annotations

import sys
import time
from typing import Any, Callable, Optional

import structlog

from errors import ActuatorError
from models import OutputAction, PressChord, PressKey, TypeText

try:
    from pynput.keyboard import Controller, Key
except Exception:  # pragma: no cover
    Controller = None  # type: ignore
    Key = None  # type: ignore

logger = structlog.get_logger()

SETTLE_DELAY_S = 0.1
CHORD_HOLD_S = 0.05

# spoken/config key name -> pynput Key attribute
KEY_NAMES = {
    "enter": "enter",
    "backspace": "backspace",
    "tab": "tab",
    "space": "space",
    "ctrl": "ctrl",
    "control": "ctrl",
    "shift": "shift",
    "alt": "alt",
    "delete": "delete",
    "home": "home",
    "end": "end",
    "pageup": "page_up",
    "pagedown": "page_down",
    "escape": "esc",
    "esc": "esc",
    "up": "up",
    "down": "down",
    "left": "left",
    "right": "right",
    "cmd": "cmd",
    "super": "cmd",
    "commandorcontrol": "cmd" if sys.platform == "darwin" else "ctrl",
}
KEY_NAMES.update({f"f{n}": f"f{n}" for n in range(1, 13)})


def action_for_command(action: str) -> OutputAction:
    """Turn a command table action (``"enter"``, ``"ctrl+a"``) into an output action."""
    if len(action) > 1 and "+" in action:
        return PressChord(keys=tuple(part.strip() for part in action.split("+")))
    return PressKey(key=action.strip() or action)


class KeyboardActuator:
    def __init__(
        self,
        typing_speed_ms: int = 50,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._typing_speed_ms = typing_speed_ms
        self._sleep = sleep
        self._keyboard: Optional[Any] = None

    @property
    def typing_speed_ms(self) -> int:
        return self._typing_speed_ms

    def set_typing_speed(self, ms_per_char: int) -> None:
        self._typing_speed_ms = max(0, int(ms_per_char))

    def execute(self, action: OutputAction) -> None:
        if isinstance(action, TypeText):
            self.type_text(action.text)
        elif isinstance(action, PressKey):
            self.press_key(action.key)
        elif isinstance(action, PressChord):
            self.press_chord(action.keys)
        else:
            raise ActuatorError(f"unsupported action: {action!r}")

    def type_text(self, text: str) -> None:
        if not text:
            return
        keyboard = self._controller()
        self._sleep(SETTLE_DELAY_S)
        delay_s = self._typing_speed_ms / 1000.0
        try:
            for char in text:
                keyboard.type(char)
                if delay_s:
                    self._sleep(delay_s)
        except Exception as exc:
            raise ActuatorError(f"typing failed: {exc}") from exc

    def press_key(self, name: str) -> None:
        key = self.resolve_key(name)
        keyboard = self._controller()
        try:
            keyboard.press(key)
            keyboard.release(key)
        except Exception as exc:
            raise ActuatorError(f"key {name!r} failed: {exc}") from exc

    def press_chord(self, names: tuple[str, ...]) -> None:
        if not names:
            raise ActuatorError("empty key chord")
        keys = [self.resolve_key(name) for name in names]
        keyboard = self._controller()
        pressed: list[Any] = []
        try:
            for key in keys:
                keyboard.press(key)
                pressed.append(key)
            self._sleep(CHORD_HOLD_S)
        except Exception as exc:
            raise ActuatorError(f"chord {'+'.join(names)!r} failed: {exc}") from exc
        finally:
            for key in reversed(pressed):
                try:
                    keyboard.release(key)
                except Exception as exc:
                    logger.warning("key_release_failed", key=str(key), error=str(exc))

    def resolve_key(self, name: str) -> Any:
        normalized = name.strip().lower()
        attr = KEY_NAMES.get(normalized)
        if attr is not None:
            if Key is None:
                raise ActuatorError("pynput is not installed")
            return getattr(Key, attr)
        if len(name) == 1 and name.isprintable():
            return name
        if len(normalized) == 1 and normalized.isprintable():
            return normalized
        raise ActuatorError(f"unknown key: {name!r}")

    def _controller(self) -> Any:
        if self._keyboard is None:
            if Controller is None:
                raise ActuatorError("pynput is not installed")
            self._keyboard = Controller()
        return self._keyboard
