"""Local export of generated media."""

from __future__ import annotations

import io
import time
import wave
from pathlib import Path

from models import OUTPUT_SAMPLE_RATE

_EXTENSIONS = {
    "video/mp4": ".mp4",
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/webp": ".webp",
    "audio/wav": ".wav",
}


def pcm_to_wav(
    pcm: bytes,
    sample_rate: int = OUTPUT_SAMPLE_RATE,
    channels: int = 1,
    sample_width: int = 2,
) -> bytes:
    """Wrap raw little-endian PCM in a WAV container."""
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(sample_width)
        wf.setframerate(sample_rate)
        wf.writeframes(pcm)
    return buf.getvalue()


def timestamped_name(prefix: str, mime_type: str, now_ms: int | None = None) -> str:
    stamp = now_ms if now_ms is not None else int(time.time() * 1000)
    ext = _EXTENSIONS.get(mime_type.split(";")[0].strip(), ".bin")
    return f"{prefix}-{stamp}{ext}"


class ArtifactStore:
    def __init__(self, output_dir: str | Path) -> None:
        self._dir = Path(output_dir)

    @property
    def directory(self) -> Path:
        return self._dir

    def save(self, prefix: str, data: bytes, mime_type: str) -> Path:
        self._dir.mkdir(parents=True, exist_ok=True)
        base = self._dir / timestamped_name(prefix, mime_type)
        path = base
        counter = 1
        while path.exists():
            path = base.with_name(f"{base.stem}-{counter}{base.suffix}")
            counter += 1
        path.write_bytes(data)
        return path

    def save_pcm_as_wav(self, prefix: str, pcm: bytes, sample_rate: int = OUTPUT_SAMPLE_RATE) -> Path:
        return self.save(prefix, pcm_to_wav(pcm, sample_rate), "audio/wav")
