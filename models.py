"""Core data models for the studio."""

from __future__ import annotations

import base64
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional

INPUT_SAMPLE_RATE = 16000
OUTPUT_SAMPLE_RATE = 24000


class SequenceStage(str, Enum):
    IDLE = "idle"
    INITIAL = "initial"
    EXTENDING_1 = "extending_1"
    EXTENDING_2 = "extending_2"
    EXTENDING_3 = "extending_3"
    FINALIZING = "finalizing"
    DONE = "done"
    FAILED = "failed"


class VoiceSessionState(str, Enum):
    DISCONNECTED = "DISCONNECTED"
    CONNECTING = "CONNECTING"
    ACTIVE = "ACTIVE"
    INTERRUPTED = "INTERRUPTED"


class Speaker(str, Enum):
    USER = "user"
    MODEL = "model"


@dataclass
class RemoteOperation:
    """Decoded view of a provider long-running operation.

    ``handle`` is the SDK object itself; it is only ever passed back to the
    provider to re-query status.
    """

    name: str
    done: bool = False
    video_uri: Optional[str] = None
    video: Any = None
    error: Optional[str] = None
    handle: Any = None


@dataclass
class ReferenceImage:
    data: bytes
    mime_type: str = "image/png"


@dataclass
class VideoProConfig:
    motion_bucket: int = 8
    temporal_consistency: str = "max"
    lock_object: str = "none"  # none | face | wrist | body
    transition: str = "orbit"  # none | match-cut | zoom-in | glitch | orbit
    frame_rate: int = 60
    reference_strength: float = 0.9
    object_tracking: bool = True
    upscaling: bool = True
    ai_label: bool = True
    hard_adherence: bool = True


@dataclass
class GenerationSequenceState:
    stage: SequenceStage = SequenceStage.IDLE
    status: str = "Ready to produce a 20s AI video"
    progress: int = 0
    issues: List[str] = field(default_factory=list)
    is_generating: bool = False
    failure: Optional[str] = None
    aspect_ratio: Optional[str] = None
    video_path: Optional[str] = None
    audio_path: Optional[str] = None


@dataclass
class AudioFrame:
    samples: Any  # float32 ndarray, mono
    sample_rate: int = INPUT_SAMPLE_RATE
    timestamp_ms: int = 0


@dataclass
class RealtimeAudioInput:
    pcm16_bytes: bytes
    sample_rate: int = INPUT_SAMPLE_RATE

    @property
    def mime_type(self) -> str:
        return f"audio/pcm;rate={self.sample_rate}"

    def to_base64(self) -> str:
        return base64.b64encode(self.pcm16_bytes).decode("ascii")


@dataclass
class LiveServerEvent:
    audio: Optional[bytes] = None
    input_transcription: str = ""
    output_transcription: str = ""
    interrupted: bool = False
    turn_complete: bool = False


@dataclass
class TranscriptEntry:
    speaker: Speaker
    text: str

    def __str__(self) -> str:
        prefix = "You" if self.speaker == Speaker.USER else "AI"
        return f"{prefix}: {self.text}"


@dataclass
class GeneratedMedia:
    data: bytes
    mime_type: str


@dataclass
class GroundingLink:
    title: str
    uri: str


@dataclass
class ChatReply:
    text: str
    thinking: Optional[str] = None
    grounding: List[GroundingLink] = field(default_factory=list)
