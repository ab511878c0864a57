"""State-machine based realtime voice session.

One session owns the output context, the capture stream and the live
connection for its whole lifetime. Outbound frames go through a queue
drained by a dedicated send loop, so capture never waits on the network and
nothing is sent after the connection closes.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import AsyncExitStack
from typing import Callable, List, Optional

from errors import CONNECTIVITY_FAILURE, ERROR_MESSAGES
from interfaces import AudioOutput, LiveConnection, LiveConnector, Recorder
from models import AudioFrame, LiveServerEvent, Speaker, TranscriptEntry, VoiceSessionState
from pcm import encode_frame
from playback import PlaybackScheduler

logger = logging.getLogger(__name__)

StateCallback = Callable[[VoiceSessionState, VoiceSessionState], None]
TranscriptCallback = Callable[[TranscriptEntry], None]
ErrorCallback = Callable[[str, str], None]

STATUS_TEXT = {
    VoiceSessionState.DISCONNECTED: "Session ended",
    VoiceSessionState.CONNECTING: "Connecting to Native Audio Core...",
    VoiceSessionState.ACTIVE: "OmniGen Voice is listening...",
    VoiceSessionState.INTERRUPTED: "Interrupted",
}


class LiveVoiceSession:
    def __init__(
        self,
        connector: LiveConnector,
        recorder: Recorder,
        output: AudioOutput,
        queue_maxsize: int = 100,
        on_state_change: Optional[StateCallback] = None,
        on_transcript: Optional[TranscriptCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> None:
        self._connector = connector
        self._recorder = recorder
        self._output = output
        self._scheduler = PlaybackScheduler(output)
        self._queue_maxsize = queue_maxsize
        self._on_state_change = on_state_change
        self._on_transcript = on_transcript
        self._on_error = on_error

        self._state = VoiceSessionState.DISCONNECTED
        self._status = "Tap to begin voice interaction"
        self._transcript: List[TranscriptEntry] = []
        self._connection: Optional[LiveConnection] = None
        self._outbound: Optional[asyncio.Queue[AudioFrame | None]] = None
        self._task: Optional[asyncio.Task] = None
        self._stop_requested: Optional[asyncio.Event] = None
        self._settled: Optional[asyncio.Event] = None

    @property
    def state(self) -> VoiceSessionState:
        return self._state

    @property
    def status(self) -> str:
        return self._status

    @property
    def transcript(self) -> List[TranscriptEntry]:
        return list(self._transcript)

    @property
    def is_connected(self) -> bool:
        return self._connection is not None

    @property
    def scheduler(self) -> PlaybackScheduler:
        return self._scheduler

    async def start(self) -> None:
        """Connect and begin streaming; returns once active or failed."""
        if self._state != VoiceSessionState.DISCONNECTED:
            return
        self._transcript = []
        self._stop_requested = asyncio.Event()
        self._settled = asyncio.Event()
        self._transition(VoiceSessionState.CONNECTING)
        self._task = asyncio.create_task(self._run())
        await self._settled.wait()

    async def stop(self) -> None:
        if self._task is None:
            return
        if self._stop_requested is not None:
            self._stop_requested.set()
        await self.wait_closed()

    async def wait_closed(self) -> None:
        task = self._task
        if task is not None:
            await task

    async def _run(self) -> None:
        failure: Optional[str] = None
        try:
            async with AsyncExitStack() as stack:
                self._output.open()
                stack.callback(self._output.close)
                stack.callback(self._scheduler.stop_all)

                connection = await stack.enter_async_context(self._connector.connect())
                self._connection = connection
                self._outbound = asyncio.Queue(maxsize=self._queue_maxsize)
                self._recorder.start(self._outbound)
                stack.callback(self._recorder.stop)

                self._transition(VoiceSessionState.ACTIVE)
                self._settled.set()
                await self._serve(connection)
        except Exception as exc:
            logger.error(f"Live session failed: {exc}")
            failure = CONNECTIVITY_FAILURE
            self._emit_error(failure, str(exc))
        finally:
            self._connection = None
            self._outbound = None
            self._task = None
            self._transition(VoiceSessionState.DISCONNECTED)
            if failure:
                self._status = ERROR_MESSAGES[failure]
            self._settled.set()

    async def _serve(self, connection: LiveConnection) -> None:
        sender = asyncio.create_task(self._send_loop(connection))
        receiver = asyncio.create_task(self._receive_loop(connection))
        stopper = asyncio.create_task(self._stop_requested.wait())
        done, pending = await asyncio.wait(
            {sender, receiver, stopper}, return_when=asyncio.FIRST_COMPLETED
        )
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        for task in done:
            exc = task.exception()
            if exc is not None:
                raise exc
        if receiver in done:
            logger.info("Live session closed by remote")

    async def _send_loop(self, connection: LiveConnection) -> None:
        while True:
            frame = await self._outbound.get()
            if frame is None:
                return
            await connection.send_audio(encode_frame(frame))

    async def _receive_loop(self, connection: LiveConnection) -> None:
        async for event in connection.events():
            self.handle_event(event)

    def handle_event(self, event: LiveServerEvent) -> None:
        if event.output_transcription:
            self._append(Speaker.MODEL, event.output_transcription)
        if event.input_transcription:
            self._append(Speaker.USER, event.input_transcription)
        if event.audio:
            self._scheduler.enqueue(event.audio)
        if event.interrupted:
            self._transition(VoiceSessionState.INTERRUPTED)
            self._scheduler.interrupt()
            self._transition(VoiceSessionState.ACTIVE)

    def _append(self, speaker: Speaker, text: str) -> None:
        entry = TranscriptEntry(speaker=speaker, text=text)
        self._transcript.append(entry)
        if self._on_transcript:
            self._on_transcript(entry)

    def _emit_error(self, code: str, message: str) -> None:
        if self._on_error:
            self._on_error(code, message)

    def _transition(self, to_state: VoiceSessionState) -> None:
        from_state = self._state
        if from_state == to_state:
            return
        self._state = to_state
        self._status = STATUS_TEXT[to_state]
        if self._on_state_change:
            self._on_state_change(from_state, to_state)
