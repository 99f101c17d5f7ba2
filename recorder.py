"""Microphone audio source adapter."""

from __future__ import annotations

import threading
import time
from typing import Any, Callable, Optional

import structlog

from errors import SourceError
from models import CHANNELS, SAMPLE_RATE, AudioFrame, SourceEvent, SourceEventKind

try:
    import numpy as np
except Exception:  # pragma: no cover
    np = None  # type: ignore

try:
    import sounddevice as sd
except Exception:  # pragma: no cover
    sd = None  # type: ignore

logger = structlog.get_logger()


class SoundDeviceRecorder:
    """Captures 16 kHz mono int16 PCM and pushes each block as a frame event."""

    def __init__(self, chunk_ms: int = 100, device: Optional[int | str] = None) -> None:
        self.sample_rate = SAMPLE_RATE
        self.channels = CHANNELS
        self.chunk_ms = chunk_ms
        self.device = device
        self._stream: Any = None
        self._running = False
        self._lock = threading.Lock()
        self._on_event: Optional[Callable[[SourceEvent], None]] = None

    @property
    def is_active(self) -> bool:
        return self._running

    def start(self, on_event: Callable[[SourceEvent], None]) -> None:
        with self._lock:
            if self._running:
                logger.warning("audio_source_already_active")
                return
            if sd is None:
                raise SourceError("sounddevice is not installed")
            self._on_event = on_event
            blocksize = int(self.sample_rate * (self.chunk_ms / 1000.0))
            try:
                self._stream = sd.InputStream(
                    samplerate=self.sample_rate,
                    channels=self.channels,
                    dtype="int16",
                    blocksize=blocksize,
                    device=self.device,
                    callback=self._on_audio,
                    finished_callback=self._on_finished,
                )
                self._running = True
                self._stream.start()
            except Exception as exc:
                self._running = False
                self._stream = None
                raise SourceError(f"microphone start failed: {exc}") from exc
        logger.info("audio_source_started", sample_rate=self.sample_rate, chunk_ms=self.chunk_ms)
        self._emit(SourceEvent(kind=SourceEventKind.STARTED))

    def stop(self) -> None:
        with self._lock:
            if not self._running:
                return
            self._running = False
            stream = self._stream
            self._stream = None
        if stream is not None:
            try:
                stream.stop()
                stream.close()
            except Exception as exc:
                logger.warning("audio_source_close_failed", error=str(exc))
        logger.info("audio_source_stopped")
        self._emit(SourceEvent(kind=SourceEventKind.STOPPED))

    def _on_audio(self, indata: Any, frames: int, time_info: Any, status: Any) -> None:
        if not self._running or np is None:
            return
        if status:
            logger.warning("audio_source_status", status=str(status))
        payload = np.asarray(indata, dtype=np.int16).tobytes()
        frame = AudioFrame(
            pcm16_bytes=payload,
            sample_rate=self.sample_rate,
            channels=self.channels,
            timestamp_ms=int(time.time() * 1000),
        )
        self._emit(SourceEvent(kind=SourceEventKind.FRAME, frame=frame))

    def _on_finished(self) -> None:
        # PortAudio ends the stream on its own only when the device fails.
        if not self._running:
            return
        self._running = False
        self._stream = None
        self._emit(
            SourceEvent(
                kind=SourceEventKind.ERROR,
                error=SourceError("audio stream ended unexpectedly"),
            )
        )

    def _emit(self, event: SourceEvent) -> None:
        on_event = self._on_event
        if on_event is not None:
            on_event(event)
