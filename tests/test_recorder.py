"""Tests for SoundDeviceRecorder."""

from __future__ import annotations

import asyncio
from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from models import AudioFrame
from recorder import SoundDeviceRecorder


def _block(n_samples: int = 4096, value: float = 0.25, channels: int = 1) -> np.ndarray:
    """Shape sounddevice hands to the input callback: (frames, channels)."""
    return np.full((n_samples, channels), value, dtype=np.float32)


async def _drain_loop() -> None:
    # call_soon_threadsafe callbacks run on the next loop iteration
    await asyncio.sleep(0)


# ---------------------------------------------------------------
# Basic start / stop
# ---------------------------------------------------------------

@patch("recorder.sd")
def test_start_creates_stream_and_runs(mock_sd: MagicMock) -> None:
    mock_stream = MagicMock()
    mock_sd.InputStream.return_value = mock_stream

    async def scenario() -> AudioFrame | None:
        recorder = SoundDeviceRecorder()
        q: asyncio.Queue[AudioFrame | None] = asyncio.Queue()
        recorder.start(q)

        mock_sd.InputStream.assert_called_once()
        kwargs = mock_sd.InputStream.call_args.kwargs
        assert kwargs["samplerate"] == 16000
        assert kwargs["blocksize"] == 4096
        assert kwargs["dtype"] == "float32"
        mock_stream.start.assert_called_once()

        recorder.stop()
        await _drain_loop()
        return q.get_nowait()

    assert asyncio.run(scenario()) is None
    mock_stream.stop.assert_called_once()
    mock_stream.close.assert_called_once()


@patch("recorder.sd")
def test_start_is_idempotent(mock_sd: MagicMock) -> None:
    mock_sd.InputStream.return_value = MagicMock()

    async def scenario() -> None:
        recorder = SoundDeviceRecorder()
        q: asyncio.Queue[AudioFrame | None] = asyncio.Queue()
        recorder.start(q)
        recorder.start(q)  # second call should be no-op
        recorder.stop()

    asyncio.run(scenario())
    assert mock_sd.InputStream.call_count == 1


@patch("recorder.sd")
def test_stop_is_idempotent(mock_sd: MagicMock) -> None:
    mock_sd.InputStream.return_value = MagicMock()

    async def scenario() -> int:
        recorder = SoundDeviceRecorder()
        q: asyncio.Queue[AudioFrame | None] = asyncio.Queue()
        recorder.start(q)
        recorder.stop()
        recorder.stop()
        await _drain_loop()
        return q.qsize()

    # only the first stop emits the sentinel
    assert asyncio.run(scenario()) == 1


# ---------------------------------------------------------------
# Audio callback pushes frames to queue
# ---------------------------------------------------------------

@patch("recorder.sd")
def test_callback_pushes_audio_frames(mock_sd: MagicMock) -> None:
    mock_sd.InputStream.return_value = MagicMock()

    async def scenario() -> AudioFrame | None:
        recorder = SoundDeviceRecorder(sample_rate=16000, channels=1)
        q: asyncio.Queue[AudioFrame | None] = asyncio.Queue(maxsize=50)
        recorder.start(q)

        block = _block()
        recorder._on_audio(block, frames=4096, time_info=None, status=None)
        block[:] = 0.0  # the callback buffer is reused by PortAudio
        await _drain_loop()

        frame = q.get_nowait()
        recorder.stop()
        return frame

    frame = asyncio.run(scenario())
    assert isinstance(frame, AudioFrame)
    assert frame.sample_rate == 16000
    assert frame.samples.shape == (4096,)
    assert frame.samples.dtype == np.float32
    assert np.allclose(frame.samples, 0.25)


@patch("recorder.sd")
def test_callback_keeps_first_channel(mock_sd: MagicMock) -> None:
    mock_sd.InputStream.return_value = MagicMock()

    async def scenario() -> AudioFrame | None:
        recorder = SoundDeviceRecorder(channels=2)
        q: asyncio.Queue[AudioFrame | None] = asyncio.Queue()
        recorder.start(q)
        block = _block(8, channels=2)
        block[:, 1] = -1.0
        recorder._on_audio(block, frames=8, time_info=None, status=None)
        await _drain_loop()
        recorder.stop()
        return q.get_nowait()

    frame = asyncio.run(scenario())
    assert frame.samples.shape == (8,)
    assert np.allclose(frame.samples, 0.25)


# ---------------------------------------------------------------
# Queue full - dropped chunks counting
# ---------------------------------------------------------------

@patch("recorder.sd")
def test_queue_full_increments_dropped_chunks(mock_sd: MagicMock) -> None:
    mock_sd.InputStream.return_value = MagicMock()

    async def scenario() -> SoundDeviceRecorder:
        recorder = SoundDeviceRecorder()
        q: asyncio.Queue[AudioFrame | None] = asyncio.Queue(maxsize=1)
        recorder.start(q)

        recorder._on_audio(_block(), frames=4096, time_info=None, status=None)
        await _drain_loop()
        assert recorder.dropped_chunks == 0

        recorder._on_audio(_block(), frames=4096, time_info=None, status=None)
        await _drain_loop()
        assert recorder.dropped_chunks == 1

        recorder.stop()
        return recorder

    asyncio.run(scenario())


# ---------------------------------------------------------------
# No sounddevice installed
# ---------------------------------------------------------------

def test_start_raises_without_sounddevice(monkeypatch) -> None:  # noqa: ANN001
    import recorder as rec_mod
    monkeypatch.setattr(rec_mod, "sd", None)

    async def scenario() -> None:
        recorder = SoundDeviceRecorder()
        recorder.start(asyncio.Queue())

    with pytest.raises(RuntimeError, match="sounddevice is not installed"):
        asyncio.run(scenario())


# ---------------------------------------------------------------
# Callback after stop is a no-op
# ---------------------------------------------------------------

@patch("recorder.sd")
def test_callback_after_stop_is_noop(mock_sd: MagicMock) -> None:
    mock_sd.InputStream.return_value = MagicMock()

    async def scenario() -> bool:
        recorder = SoundDeviceRecorder()
        q: asyncio.Queue[AudioFrame | None] = asyncio.Queue()
        recorder.start(q)
        recorder.stop()
        await _drain_loop()
        q.get_nowait()  # sentinel

        recorder._on_audio(_block(), frames=4096, time_info=None, status=None)
        await _drain_loop()
        return q.empty()

    assert asyncio.run(scenario())
