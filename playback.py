"""Gapless scheduling of inbound model audio.

``PlaybackScheduler`` owns the "next start time" cursor and the set of
sources that are scheduled or playing. ``SoundDeviceOutput`` is the output
context: a single ``sounddevice`` stream whose clock is the number of frames
rendered so far, mixing whichever sources overlap each block.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Callable, List, Optional, Set

import numpy as np

from interfaces import AudioOutput, PlaybackHandle
from models import OUTPUT_SAMPLE_RATE
from pcm import pcm16_to_float

try:
    import sounddevice as sd
except Exception:  # pragma: no cover
    sd = None  # type: ignore

logger = logging.getLogger(__name__)


class PlaybackScheduler:
    def __init__(self, output: AudioOutput, sample_rate: int = OUTPUT_SAMPLE_RATE) -> None:
        self._output = output
        self._sample_rate = sample_rate
        self._cursor = 0.0
        self._active: Set[PlaybackHandle] = set()

    @property
    def cursor(self) -> float:
        return self._cursor

    @property
    def active(self) -> Set[PlaybackHandle]:
        return set(self._active)

    def enqueue(self, pcm: bytes) -> float:
        """Schedule one chunk right after the previous one; returns its start time."""
        samples = pcm16_to_float(pcm)
        start = max(self._output.current_time, self._cursor)
        if samples.size == 0:
            return start
        handle = self._output.schedule(samples, start, self._on_ended)
        self._active.add(handle)
        self._cursor = start + samples.size / self._sample_rate
        return start

    def interrupt(self) -> None:
        """Barge-in: drop everything queued and restart the schedule from zero."""
        self.stop_all()
        self._cursor = 0.0

    def stop_all(self) -> None:
        for handle in list(self._active):
            handle.stop()
        self._active.clear()

    def _on_ended(self, handle: PlaybackHandle) -> None:
        self._active.discard(handle)


class _Source:
    def __init__(
        self,
        samples: Any,
        start_frame: int,
        sample_rate: int,
        on_ended: Callable[[PlaybackHandle], None],
    ) -> None:
        self.samples = samples
        self.start_frame = start_frame
        self.duration = len(samples) / float(sample_rate)
        self.on_ended = on_ended
        self.stopped = False

    @property
    def end_frame(self) -> int:
        return self.start_frame + len(self.samples)

    def stop(self) -> None:
        self.stopped = True


class SoundDeviceOutput:
    def __init__(
        self,
        sample_rate: int = OUTPUT_SAMPLE_RATE,
        channels: int = 1,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        self.sample_rate = sample_rate
        self.channels = channels
        self._loop = loop
        self._stream: Any = None
        self._lock = threading.Lock()
        self._sources: List[_Source] = []
        self._frames_rendered = 0

    @property
    def current_time(self) -> float:
        with self._lock:
            return self._frames_rendered / float(self.sample_rate)

    def open(self) -> None:
        if self._stream is not None:
            return
        if sd is None:
            raise RuntimeError("sounddevice is not installed")
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        self._stream = sd.OutputStream(
            samplerate=self.sample_rate,
            channels=self.channels,
            dtype="float32",
            callback=self._on_audio,
        )
        self._stream.start()

    def schedule(
        self,
        samples: Any,
        start_time: float,
        on_ended: Callable[[PlaybackHandle], None],
    ) -> _Source:
        start_frame = int(round(start_time * self.sample_rate))
        with self._lock:
            # a block may have been rendered since start_time was read
            start_frame = max(start_frame, self._frames_rendered)
            source = _Source(samples, start_frame, self.sample_rate, on_ended)
            self._sources.append(source)
        return source

    def close(self) -> None:
        if self._stream is not None:
            self._stream.stop()
            self._stream.close()
            self._stream = None
        with self._lock:
            for source in self._sources:
                source.stop()
            self._sources.clear()
            self._frames_rendered = 0

    def _on_audio(self, outdata: Any, frames: int, time_info: Any, status: Any) -> None:
        if status:
            logger.debug(f"Output stream status: {status}")
        mix = np.zeros(frames, dtype=np.float32)
        finished: List[_Source] = []

        with self._lock:
            block_start = self._frames_rendered
            block_end = block_start + frames
            for source in list(self._sources):
                if source.stopped:
                    self._sources.remove(source)
                    continue
                lo = max(block_start, source.start_frame)
                hi = min(block_end, source.end_frame)
                if hi > lo:
                    mix[lo - block_start:hi - block_start] += source.samples[
                        lo - source.start_frame:hi - source.start_frame
                    ]
                if source.end_frame <= block_end:
                    self._sources.remove(source)
                    finished.append(source)
            self._frames_rendered = block_end

        outdata[:] = np.clip(mix, -1.0, 1.0).reshape(-1, 1).repeat(self.channels, axis=1)
        for source in finished:
            self._notify_ended(source)

    def _notify_ended(self, source: _Source) -> None:
        # Ended notifications touch scheduler state, which lives on the loop thread.
        if self._loop is not None and not self._loop.is_closed():
            self._loop.call_soon_threadsafe(source.on_ended, source)
        else:
            source.on_ended(source)
