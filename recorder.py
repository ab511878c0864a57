"""Microphone recorder adapter."""

from __future__ import annotations

import asyncio
import threading
import time
from typing import Any, Optional

from models import INPUT_SAMPLE_RATE, AudioFrame

try:
    import numpy as np
except Exception:  # pragma: no cover
    np = None  # type: ignore

try:
    import sounddevice as sd
except Exception:  # pragma: no cover
    sd = None  # type: ignore

FRAME_SIZE = 4096


class SoundDeviceRecorder:
    """Captures float32 mono frames and hands them to the event loop's queue.

    The sounddevice callback runs on PortAudio's thread, so frames cross
    into the loop with ``call_soon_threadsafe``.
    """

    def __init__(
        self,
        sample_rate: int = INPUT_SAMPLE_RATE,
        channels: int = 1,
        frame_size: int = FRAME_SIZE,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        self.sample_rate = sample_rate
        self.channels = channels
        self.frame_size = frame_size
        self._loop = loop
        self._stream: Any = None
        self._running = False
        self._lock = threading.Lock()
        self.dropped_chunks = 0
        self._frame_queue: asyncio.Queue[AudioFrame | None] | None = None

    def start(self, frame_queue: asyncio.Queue[AudioFrame | None]) -> None:
        with self._lock:
            if self._running:
                return
            if sd is None:
                raise RuntimeError("sounddevice is not installed")
            if self._loop is None:
                self._loop = asyncio.get_running_loop()
            self._frame_queue = frame_queue
            self._stream = sd.InputStream(
                samplerate=self.sample_rate,
                channels=self.channels,
                dtype="float32",
                blocksize=self.frame_size,
                callback=self._on_audio,
            )
            self._stream.start()
            self._running = True

    def stop(self) -> None:
        with self._lock:
            if not self._running:
                return
            self._running = False
            if self._stream is not None:
                self._stream.stop()
                self._stream.close()
                self._stream = None
        self._dispatch(None)

    def _on_audio(self, indata: Any, frames: int, time_info: Any, status: Any) -> None:
        if not self._running or self._frame_queue is None:
            return
        if np is None:
            return
        samples = np.array(indata, dtype=np.float32, copy=True)
        if samples.ndim > 1:
            samples = samples[:, 0]
        frame = AudioFrame(
            samples=samples,
            sample_rate=self.sample_rate,
            timestamp_ms=int(time.time() * 1000),
        )
        self._dispatch(frame)

    def _dispatch(self, frame: AudioFrame | None) -> None:
        if self._loop is None or self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(self._put, frame)

    def _put(self, frame: AudioFrame | None) -> None:
        if self._frame_queue is None:
            return
        try:
            self._frame_queue.put_nowait(frame)
        except asyncio.QueueFull:
            self.dropped_chunks += 1
