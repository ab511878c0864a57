"""16-bit PCM conversion helpers."""

from __future__ import annotations

import base64

import numpy as np

from models import AudioFrame, RealtimeAudioInput

PCM16_SCALE = 32768.0


def float_to_pcm16(samples: np.ndarray) -> bytes:
    """Scale float samples by 32768 and saturate to the int16 range."""
    scaled = np.asarray(samples, dtype=np.float32) * PCM16_SCALE
    return np.clip(scaled, -32768, 32767).astype("<i2").tobytes()


def pcm16_to_float(data: bytes) -> np.ndarray:
    """Little-endian int16 bytes to float32 in [-1, 1). A trailing odd byte is dropped."""
    usable = len(data) - (len(data) % 2)
    return np.frombuffer(data[:usable], dtype="<i2").astype(np.float32) / PCM16_SCALE


def encode_frame(frame: AudioFrame) -> RealtimeAudioInput:
    return RealtimeAudioInput(pcm16_bytes=float_to_pcm16(frame.samples), sample_rate=frame.sample_rate)


def as_bytes(data: bytes | str | None) -> bytes:
    """Inline payloads arrive as raw bytes from the SDK or base64 text on the wire."""
    if isinstance(data, str):
        return base64.b64decode(data)
    return bytes(data or b"")
