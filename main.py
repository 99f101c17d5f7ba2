"""Application entrypoint."""

from __future__ import annotations

import argparse
import threading
from pathlib import Path

import structlog

from actuator import KeyboardActuator
from config import JsonConfigStore
from errors import DictationError
from hotkey import GlobalHotkeyAdapter
from logging_setup import setup_logging
from models import Command, RecognitionState
from orchestrator import RecognitionOrchestrator
from recorder import SoundDeviceRecorder
from transcriber import DeepgramTranscriptionStream

logger = structlog.get_logger()


class App:
    def __init__(self, config_path: Path | None = None) -> None:
        self.config_store = JsonConfigStore(path=config_path)
        config = self.config = self.config_store.load()
        self.controller = RecognitionOrchestrator(
            source=SoundDeviceRecorder(),
            stream=DeepgramTranscriptionStream(),
            actuator=KeyboardActuator(typing_speed_ms=config.typing_speed_ms),
            config=config,
            on_state_change=self._on_state_change,
            on_interim=self._on_interim,
            on_text=self._on_text,
            on_command=self._on_command,
            on_error=self._on_error,
        )
        self.hotkey = GlobalHotkeyAdapter(hotkey=config.hotkey)
        self._quit = threading.Event()

    # ------------------------------------------------------------------
    # Callbacks (called from worker threads)
    # ------------------------------------------------------------------

    def _on_state_change(self, from_state: RecognitionState, to_state: RecognitionState) -> None:
        print(f"[{to_state.value}]", flush=True)

    def _on_interim(self, text: str) -> None:
        print(f"  ... {text}", flush=True)

    def _on_text(self, text: str) -> None:
        print(f"  >>> {text}", flush=True)

    def _on_command(self, command: Command) -> None:
        print(f"  [{command.action}] {command.original_text}", flush=True)

    def _on_error(self, error: DictationError) -> None:
        print(f"  ! {error.user_message} ({error.code}: {error.message})", flush=True)

    # ------------------------------------------------------------------
    # Hotkey handler
    # ------------------------------------------------------------------

    def _on_hotkey(self) -> None:
        # start() can wait on the network; keep the listener thread free
        threading.Thread(target=self.controller.toggle, daemon=True).start()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def run(self) -> int:
        config = self.config
        problems = config.validate()
        for problem in problems:
            print(f"Config: {problem} ({self.config_store.path})")
        try:
            self.hotkey.start(on_activate=self._on_hotkey)
        except Exception as exc:
            logger.error("hotkey_disabled", error=str(exc))
            return 1
        print(f"Press {config.hotkey} to start/stop dictation, Ctrl+C to quit.")
        try:
            while not self._quit.wait(0.5):
                pass
        except KeyboardInterrupt:
            pass
        self.quit()
        return 0

    def quit(self) -> None:
        self._quit.set()
        self.hotkey.stop()
        self.controller.shutdown()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Dictate into the focused window with Deepgram.")
    parser.add_argument("--config", type=Path, default=None, help="path to config.json")
    parser.add_argument("--dev", action="store_true", help="verbose console logging")
    args = parser.parse_args(argv)

    setup_logging("development" if args.dev else "production")
    app = App(config_path=args.config)
    return app.run()


if __name__ == "__main__":
    raise SystemExit(main())
