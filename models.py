"""Core data models for the dictation engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

from errors import DictationError

SAMPLE_RATE = 16000
CHANNELS = 1


class RecognitionState(str, Enum):
    IDLE = "IDLE"
    LISTENING = "LISTENING"
    ERROR = "ERROR"


@dataclass
class AudioFrame:
    pcm16_bytes: bytes
    sample_rate: int = SAMPLE_RATE
    channels: int = CHANNELS
    timestamp_ms: int = 0


@dataclass(frozen=True)
class TranscriptEvent:
    text: str
    is_final: bool
    confidence: float = 0.0


@dataclass(frozen=True)
class Command:
    action: str
    original_text: str


@dataclass(frozen=True)
class Text:
    value: str


ParsedUtterance = Union[Command, Text]


class SourceEventKind(str, Enum):
    FRAME = "frame"
    STARTED = "started"
    STOPPED = "stopped"
    ERROR = "error"


@dataclass
class SourceEvent:
    kind: SourceEventKind
    frame: Optional[AudioFrame] = None
    error: Optional[DictationError] = None


class StreamEventKind(str, Enum):
    TRANSCRIPT = "transcript"
    CLOSED = "closed"
    ERROR = "error"


@dataclass
class StreamEvent:
    kind: StreamEventKind
    transcript: Optional[TranscriptEvent] = None
    error: Optional[DictationError] = None


@dataclass(frozen=True)
class StreamConfig:
    api_key: str
    model: str = "nova-2"
    language: str = "en-US"
    punctuate: bool = True
    interim_results: bool = True
    endpointing_ms: int = 300
    encoding: str = "linear16"
    sample_rate: int = SAMPLE_RATE
    channels: int = CHANNELS
    smart_format: bool = True


@dataclass(frozen=True)
class TypeText:
    text: str


@dataclass(frozen=True)
class PressKey:
    key: str


@dataclass(frozen=True)
class PressChord:
    keys: tuple[str, ...] = field(default_factory=tuple)


OutputAction = Union[TypeText, PressKey, PressChord]
