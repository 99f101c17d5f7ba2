"""Live transcription stream adapter for the Deepgram streaming API.

Audio goes up the websocket as raw linear16 frames, queued without blocking
the caller and drained by a sender thread.  A reader thread turns
``Results`` messages into ``TranscriptEvent`` values and reports transport
failures as typed stream events.  Opening the stream is a single blocking
call bounded by ``connect_timeout_s`` that either returns connected or
raises ``ConnectionTimeout``/``StreamError``.
"""

from __future__ import annotations

import json
import threading
import urllib.parse
from queue import Empty, Full, Queue
from typing import Any, Callable, Optional

import structlog
from websockets.exceptions import ConnectionClosed, ConnectionClosedOK, InvalidStatus
from websockets.sync.client import connect

from errors import AUTH_FAILED, ConnectionTimeout, StreamError
from models import AudioFrame, StreamConfig, StreamEvent, StreamEventKind, TranscriptEvent

logger = structlog.get_logger()

DEEPGRAM_WS_URL = "wss://api.deepgram.com/v1/listen"
CLOSE_STREAM_MESSAGE = json.dumps({"type": "CloseStream"})


def _flag(value: bool) -> str:
    return "true" if value else "false"


def build_listen_url(config: StreamConfig, base_url: str = DEEPGRAM_WS_URL) -> str:
    params = {
        "model": config.model,
        "language": config.language,
        "punctuate": _flag(config.punctuate),
        "interim_results": _flag(config.interim_results),
        "endpointing": str(config.endpointing_ms),
        "smart_format": _flag(config.smart_format),
        "encoding": config.encoding,
        "sample_rate": str(config.sample_rate),
        "channels": str(config.channels),
    }
    return base_url + "?" + urllib.parse.urlencode(params)


def parse_message(raw: str | bytes) -> Optional[TranscriptEvent]:
    """Extract a transcript from a Deepgram message, or None for anything else."""
    try:
        message = json.loads(raw)
    except (TypeError, ValueError):
        return None
    if not isinstance(message, dict):
        return None

    kind = message.get("type", "")
    if kind == "Metadata":
        logger.debug("transcription_metadata", request_id=message.get("request_id"))
        return None
    if kind != "Results":
        return None

    channel = message.get("channel") or {}
    alternatives = channel.get("alternatives") or [{}]
    transcript = str(alternatives[0].get("transcript") or "")
    if not transcript:
        return None
    # speech_final implies is_final
    is_final = bool(message.get("is_final", False)) or bool(message.get("speech_final", False))
    confidence = float(alternatives[0].get("confidence") or 0.0)
    return TranscriptEvent(text=transcript, is_final=is_final, confidence=confidence)


class DeepgramTranscriptionStream:
    def __init__(
        self,
        connect_timeout_s: float = 5.0,
        close_timeout_s: float = 1.0,
        base_url: str = DEEPGRAM_WS_URL,
        queue_maxsize: int = 50,
    ) -> None:
        self._connect_timeout_s = connect_timeout_s
        self._close_timeout_s = close_timeout_s
        self._base_url = base_url
        self._lock = threading.Lock()
        self._ws: Any = None
        self._connected = False
        self._reader_thread: Optional[threading.Thread] = None
        self._sender_thread: Optional[threading.Thread] = None
        self._queue_maxsize = queue_maxsize
        self._frames: Optional[Queue[bytes | None]] = None
        self.dropped_frames = 0

    @property
    def is_connected(self) -> bool:
        return self._connected and self._ws is not None

    def open(
        self,
        config: StreamConfig,
        on_event: Callable[[StreamEvent], None],
    ) -> None:
        with self._lock:
            if self._ws is not None:
                logger.warning("transcription_stream_already_open")
                return

        url = build_listen_url(config, self._base_url)
        try:
            ws = connect(
                url,
                additional_headers={"Authorization": f"Token {config.api_key}"},
                open_timeout=self._connect_timeout_s,
            )
        except TimeoutError as exc:
            raise ConnectionTimeout(
                f"connection not established within {self._connect_timeout_s:g}s"
            ) from exc
        except InvalidStatus as exc:
            status = exc.response.status_code
            if status in (401, 403):
                raise StreamError(f"HTTP {status}: credential rejected", code=AUTH_FAILED) from exc
            raise StreamError(f"HTTP {status}: handshake rejected") from exc
        except Exception as exc:
            raise StreamError(f"connection failed: {exc}") from exc

        frames: Queue[bytes | None] = Queue(maxsize=self._queue_maxsize)
        with self._lock:
            self._ws = ws
            self._connected = True
            self._frames = frames
            self.dropped_frames = 0
            self._sender_thread = threading.Thread(
                target=self._sender,
                args=(ws, frames),
                name="transcription-sender",
                daemon=True,
            )
            self._sender_thread.start()
            self._reader_thread = threading.Thread(
                target=self._reader,
                args=(ws, on_event),
                name="transcription-reader",
                daemon=True,
            )
            self._reader_thread.start()
        logger.info(
            "transcription_stream_opened",
            model=config.model,
            language=config.language,
            endpointing_ms=config.endpointing_ms,
        )

    def send(self, frame: AudioFrame) -> None:
        """Queue a frame for upload; never blocks.  Frames are dropped when the queue is full."""
        frames = self._frames
        if frames is None or not self._connected:
            logger.debug("transcription_send_skipped", reason="not connected")
            return
        try:
            frames.put_nowait(frame.pcm16_bytes)
        except Full:
            self.dropped_frames += 1
            logger.debug("transcription_frame_dropped", dropped=self.dropped_frames)

    def close(self) -> None:
        with self._lock:
            ws = self._ws
            if ws is None:
                return
            self._ws = None
            self._connected = False
            reader = self._reader_thread
            self._reader_thread = None
            sender = self._sender_thread
            self._sender_thread = None
            frames = self._frames
            self._frames = None

        if frames is not None and sender is not None:
            # Flush queued audio before signalling end of stream.
            try:
                frames.put(None, timeout=self._close_timeout_s)
            except Full:
                logger.warning("transcription_sender_backlogged", pending=frames.qsize())
            if sender is not threading.current_thread():
                sender.join(timeout=self._close_timeout_s)

        try:
            ws.send(CLOSE_STREAM_MESSAGE)
        except Exception as exc:
            logger.debug("transcription_close_stream_not_sent", error=str(exc))
        try:
            ws.close()
        except Exception as exc:
            logger.warning("transcription_close_failed", error=str(exc))
        if reader is not None and reader is not threading.current_thread():
            reader.join(timeout=self._close_timeout_s)
        logger.info("transcription_stream_closed")

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _sender(self, ws: Any, frames: Queue[bytes | None]) -> None:
        while True:
            try:
                payload = frames.get(timeout=0.5)
            except Empty:
                if self._frames is not frames:
                    return
                continue
            if payload is None:  # Sentinel
                return
            try:
                ws.send(payload)
            except ConnectionClosed:
                # The reader thread reports the loss.
                if self._ws is ws:
                    self._connected = False
                return
            except Exception as exc:
                logger.warning("transcription_send_failed", error=str(exc))

    def _reader(self, ws: Any, on_event: Callable[[StreamEvent], None]) -> None:
        failure: Optional[Exception] = None
        try:
            while True:
                raw = ws.recv()
                transcript = parse_message(raw)
                if transcript is not None:
                    on_event(StreamEvent(kind=StreamEventKind.TRANSCRIPT, transcript=transcript))
        except ConnectionClosedOK:
            pass
        except ConnectionClosed as exc:
            failure = exc
        except Exception as exc:
            logger.exception("transcription_reader_failed")
            failure = exc

        if self._ws is not ws:
            # Closed locally.
            return
        self._connected = False
        if failure is not None:
            on_event(
                StreamEvent(
                    kind=StreamEventKind.ERROR,
                    error=StreamError(f"connection lost: {failure}"),
                )
            )
        else:
            on_event(StreamEvent(kind=StreamEventKind.CLOSED))
