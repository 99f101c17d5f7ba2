"""Protocol interfaces used by the RecognitionOrchestrator."""

from __future__ import annotations

from typing import Callable, Protocol

from models import AudioFrame, OutputAction, SourceEvent, StreamConfig, StreamEvent


class AudioSource(Protocol):
    def start(self, on_event: Callable[[SourceEvent], None]) -> None: ...

    def stop(self) -> None: ...


class TranscriptionStream(Protocol):
    @property
    def is_connected(self) -> bool: ...

    def open(
        self,
        config: StreamConfig,
        on_event: Callable[[StreamEvent], None],
    ) -> None: ...

    def send(self, frame: AudioFrame) -> None:
        """Hand a frame to the stream without blocking; called from the audio thread."""
        ...

    def close(self) -> None: ...


class OutputActuator(Protocol):
    def execute(self, action: OutputAction) -> None: ...

    def set_typing_speed(self, ms_per_char: int) -> None: ...
