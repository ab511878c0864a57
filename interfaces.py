"""Protocol interfaces used by the orchestrator and the voice session."""

from __future__ import annotations

import asyncio
from typing import AsyncContextManager, AsyncIterator, Callable, Optional, Protocol, Sequence

from models import (
    AudioFrame,
    LiveServerEvent,
    RealtimeAudioInput,
    ReferenceImage,
    RemoteOperation,
)


class GenerationClient(Protocol):
    async def generate_initial_video(
        self, prompt: str, images: Sequence[ReferenceImage], fast: bool = False
    ) -> tuple[RemoteOperation, str]: ...

    async def extend_video(
        self, previous: RemoteOperation, prompt: str, aspect_ratio: str
    ) -> RemoteOperation: ...

    async def poll_operation(self, operation: RemoteOperation) -> RemoteOperation: ...

    async def generate_voiceover(self, text: str) -> Optional[bytes]: ...


class VideoFetcher(Protocol):
    async def fetch(self, uri: str) -> bytes: ...


class Recorder(Protocol):
    def start(self, frame_queue: asyncio.Queue[AudioFrame | None]) -> None: ...

    def stop(self) -> None: ...


class PlaybackHandle(Protocol):
    duration: float

    def stop(self) -> None: ...


class AudioOutput(Protocol):
    @property
    def current_time(self) -> float: ...

    def open(self) -> None: ...

    def schedule(
        self,
        samples: object,
        start_time: float,
        on_ended: Callable[[PlaybackHandle], None],
    ) -> PlaybackHandle: ...

    def close(self) -> None: ...


class LiveConnection(Protocol):
    async def send_audio(self, chunk: RealtimeAudioInput) -> None: ...

    def events(self) -> AsyncIterator[LiveServerEvent]: ...


class LiveConnector(Protocol):
    def connect(self) -> AsyncContextManager[LiveConnection]: ...


class ConfigStore(Protocol):
    def get_api_key(self) -> str: ...

    def set_api_key(self, key: str) -> None: ...

    def get_output_dir(self) -> str: ...

    def set_output_dir(self, path: str) -> None: ...

    def get_models(self) -> dict: ...

