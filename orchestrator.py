"""State-machine based recognition orchestration.

The orchestrator owns one listening session at a time.  Lifecycle calls
(``start``/``stop``/``toggle``) are serialized on one lock; adapter events
are handled on the delivering thread under a second, short-held lock and
only dispatch work: keystrokes are handed to an ``OutputSequencer`` that
executes them in order on its own thread.

Every adapter callback is bound to the session id that was current when the
adapter was started.  ``stop()`` bumps the id first, so frames, transcripts
and queued actions from a finished session are dropped rather than leaking
into the next one.
"""

from __future__ import annotations

import threading
from functools import partial
from typing import Any, Callable, Optional

import structlog

from actuator import action_for_command
from command_matcher import CommandMatcher
from config import RecognitionConfig
from errors import ConfigError, DictationError, SourceError, StreamError
from interfaces import AudioSource, OutputActuator, TranscriptionStream
from models import (
    Command,
    RecognitionState,
    SourceEvent,
    SourceEventKind,
    StreamEvent,
    StreamEventKind,
    TranscriptEvent,
    TypeText,
)
from sequencer import OutputSequencer
from utterance_buffer import UtteranceBuffer

logger = structlog.get_logger()

StateCallback = Callable[[RecognitionState, RecognitionState], None]
LifecycleCallback = Callable[[], None]
TextCallback = Callable[[str], None]
CommandCallback = Callable[[Command], None]
ErrorCallback = Callable[[DictationError], None]


class RecognitionOrchestrator:
    def __init__(
        self,
        source: AudioSource,
        stream: TranscriptionStream,
        actuator: OutputActuator,
        config: RecognitionConfig,
        matcher: Optional[CommandMatcher] = None,
        on_state_change: Optional[StateCallback] = None,
        on_started: Optional[LifecycleCallback] = None,
        on_stopped: Optional[LifecycleCallback] = None,
        on_interim: Optional[TextCallback] = None,
        on_text: Optional[TextCallback] = None,
        on_command: Optional[CommandCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> None:
        self._source = source
        self._stream = stream
        self._actuator = actuator
        self._config = config
        self._matcher = matcher or CommandMatcher()

        self._on_state_change = on_state_change
        self._on_started = on_started
        self._on_stopped = on_stopped
        self._on_interim = on_interim
        self._on_text = on_text
        self._on_command = on_command
        self._on_error = on_error

        self._lifecycle_lock = threading.Lock()
        self._lock = threading.RLock()
        self._state = RecognitionState.IDLE
        self._session_id = 0
        self._buffer = UtteranceBuffer()
        self._last_interim = ""
        self._sequencer = OutputSequencer(actuator, self._is_current, on_error=self._emit_error)
        self._apply_settings(config, commands=matcher is None)

    @property
    def state(self) -> RecognitionState:
        return self._state

    def get_state(self) -> RecognitionState:
        return self._state

    @property
    def last_interim(self) -> str:
        return self._last_interim

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> bool:
        """Open the transcription stream, then the audio source.

        Returns True when a new session is listening.  Failures never raise;
        they are reported through ``on_error``.
        """
        with self._lifecycle_lock:
            with self._lock:
                if self._state is RecognitionState.LISTENING:
                    logger.warning("start_ignored", reason="already listening")
                    return False
                config = self._config
                recovering = self._state is RecognitionState.ERROR

            if recovering:
                self._teardown()

            problems = config.validate()
            if problems:
                self._emit_error(ConfigError("; ".join(problems)))
                return False

            with self._lock:
                self._session_id += 1
                session_id = self._session_id

            try:
                self._stream.open(config.stream_config(), partial(self._on_stream_event, session_id))
            except Exception as exc:
                self._safe_close_stream()
                self._fail(session_id, self._as_error(exc, StreamError))
                return False

            with self._lock:
                # The stream may already have reported a failure from inside open().
                failed = session_id != self._session_id or self._state is RecognitionState.ERROR
                if not failed:
                    self._buffer.reset()
                    self._last_interim = ""
                    self._transition(RecognitionState.LISTENING)
                    self._notify(self._on_started)
            if failed:
                self._safe_close_stream()
                return False

            try:
                self._source.start(partial(self._on_source_event, session_id))
            except Exception as exc:
                self._safe_close_stream()
                self._fail(session_id, self._as_error(exc, SourceError))
                return False

            with self._lock:
                if not self._accepting(session_id):
                    return False
            logger.info("recognition_started", session=session_id)
            return True

    def stop(self) -> bool:
        """Stop audio, close the stream and discard the utterance.

        Safe in any state; returns False when there was nothing to stop.
        """
        with self._lifecycle_lock:
            if self._state is RecognitionState.IDLE:
                logger.info("stop_ignored", reason="not listening")
                return False
            return self._teardown()

    def toggle(self) -> bool:
        """Stop when listening, start otherwise.

        The state is read before the lifecycle lock is taken, so the choice can
        be stale under concurrent calls; start/stop still reject the wrong one.
        """
        if self._state is RecognitionState.LISTENING:
            return self.stop()
        return self.start()

    def shutdown(self) -> None:
        self.stop()
        self._sequencer.shutdown()

    def wait_for_output(self, timeout: Optional[float] = None) -> bool:
        return self._sequencer.wait_idle(timeout=timeout)

    # ------------------------------------------------------------------
    # Configuration and commands
    # ------------------------------------------------------------------

    def update_config(self, config: RecognitionConfig) -> None:
        """Apply new settings; stream settings take effect on the next start()."""
        with self._lock:
            self._config = config
        self._apply_settings(config)

    def add_command(self, phrase: str, action: str) -> None:
        self._matcher.add(phrase, action)

    def remove_command(self, phrase: str) -> None:
        self._matcher.remove(phrase)

    def commands(self) -> dict[str, str]:
        return self._matcher.commands()

    # ------------------------------------------------------------------
    # Adapter events
    # ------------------------------------------------------------------

    def _on_source_event(self, session_id: int, event: SourceEvent) -> None:
        if event.kind is SourceEventKind.FRAME:
            with self._lock:
                if not self._accepting(session_id) or event.frame is None:
                    return
                if not self._stream.is_connected:
                    return
                # send() only enqueues; the upload runs on the stream's own thread.
                self._stream.send(event.frame)
        elif event.kind is SourceEventKind.ERROR:
            self._fail(session_id, event.error or SourceError())
        else:
            logger.debug("audio_source_event", kind=event.kind.value, session=session_id)

    def _on_stream_event(self, session_id: int, event: StreamEvent) -> None:
        if event.kind is StreamEventKind.TRANSCRIPT and event.transcript is not None:
            self._handle_transcript(session_id, event.transcript)
        elif event.kind is StreamEventKind.ERROR:
            self._fail(session_id, event.error or StreamError())
        elif event.kind is StreamEventKind.CLOSED:
            with self._lock:
                if not self._accepting(session_id):
                    return
            self._fail(session_id, StreamError("connection closed by remote"))

    def _handle_transcript(self, session_id: int, event: TranscriptEvent) -> None:
        with self._lock:
            if not self._accepting(session_id):
                return

            if not event.is_final:
                self._last_interim = event.text
                self._notify(self._on_interim, event.text)
                return

            self._last_interim = ""
            text = event.text
            if not text or not text.strip():
                return

            if self._config.voice_commands:
                parsed = self._matcher.classify(text)
                if isinstance(parsed, Command):
                    logger.info("voice_command", action=parsed.action, text=text)
                    self._sequencer.submit(session_id, action_for_command(parsed.action))
                    self._notify(self._on_command, parsed)
                    return

            spaced = self._buffer.append(text)
            self._sequencer.submit(session_id, TypeText(spaced))
            self._notify(self._on_text, text)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _accepting(self, session_id: int) -> bool:
        return session_id == self._session_id and self._state is RecognitionState.LISTENING

    def _is_current(self, session_id: int) -> bool:
        with self._lock:
            return self._accepting(session_id)

    def _fail(self, session_id: int, error: DictationError) -> None:
        with self._lock:
            if session_id != self._session_id:
                logger.debug("stale_error_ignored", code=error.code, message=error.message)
                return
            already_failed = self._state is RecognitionState.ERROR
            self._transition(RecognitionState.ERROR)
            self._emit_error(error)
        if already_failed:
            return
        threading.Thread(
            target=self._stop_after_error,
            args=(session_id,),
            name="recognition-cleanup",
            daemon=True,
        ).start()

    def _stop_after_error(self, session_id: int) -> None:
        try:
            with self._lifecycle_lock:
                self._teardown(session_id)
        except Exception:
            logger.exception("cleanup_after_error_failed")

    def _teardown(self, session_id: Optional[int] = None) -> bool:
        """Release the session's resources and return to IDLE.

        Must be called with the lifecycle lock held.  With ``session_id``
        given, nothing happens unless that session is still the current one.
        """
        with self._lock:
            if self._state is RecognitionState.IDLE:
                return False
            if session_id is not None and session_id != self._session_id:
                return False
            self._session_id += 1

        self._safe_stop_source()
        self._safe_close_stream()

        with self._lock:
            self._buffer.reset()
            self._last_interim = ""
            self._transition(RecognitionState.IDLE)
            self._notify(self._on_stopped)
        logger.info("recognition_stopped")
        return True

    def _apply_settings(self, config: RecognitionConfig, commands: bool = True) -> None:
        problems = config.type_problems()
        if problems:
            # start() reports these as a ConfigError.
            logger.warning("config_not_applied", problems=problems)
            return
        if commands:
            self._matcher.replace(config.custom_commands)
        self._actuator.set_typing_speed(config.typing_speed_ms)

    def _emit_error(self, error: DictationError) -> None:
        logger.error("recognition_error", code=error.code, message=error.message)
        self._notify(self._on_error, error)

    def _notify(self, callback: Optional[Callable[..., Any]], *args: Any) -> None:
        if callback is None:
            return
        try:
            callback(*args)
        except Exception:
            logger.exception("observer_callback_failed")

    def _safe_stop_source(self) -> None:
        try:
            self._source.stop()
        except Exception as exc:
            logger.warning("audio_source_stop_failed", error=str(exc))

    def _safe_close_stream(self) -> None:
        try:
            self._stream.close()
        except Exception as exc:
            logger.warning("transcription_close_failed", error=str(exc))

    def _transition(self, to_state: RecognitionState) -> None:
        from_state = self._state
        if from_state == to_state:
            return
        self._state = to_state
        logger.debug("state_change", old=from_state.value, new=to_state.value)
        self._notify(self._on_state_change, from_state, to_state)

    @staticmethod
    def _as_error(exc: Exception, fallback: type[DictationError]) -> DictationError:
        if isinstance(exc, DictationError):
            return exc
        return fallback(str(exc))
