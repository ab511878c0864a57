"""Realtime audio connection using the Gemini Live API.

``GeminiLiveConnector.connect()`` is an async context manager around
``client.aio.live.connect``; leaving it closes the websocket. Server
messages are decoded into ``LiveServerEvent`` so the voice session never
touches SDK types.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from google.genai import types

from config import DEFAULT_MODELS
from models import LiveServerEvent, RealtimeAudioInput
from pcm import as_bytes
from prompts import LIVE_SYSTEM_INSTRUCTION

logger = logging.getLogger(__name__)

LIVE_VOICE = "Zephyr"


def decode_server_message(message: Any) -> LiveServerEvent:
    content = getattr(message, "server_content", None)
    if content is None:
        return LiveServerEvent()

    audio = None
    model_turn = getattr(content, "model_turn", None)
    for part in getattr(model_turn, "parts", None) or []:
        inline = getattr(part, "inline_data", None)
        if inline is not None and getattr(inline, "data", None):
            audio = as_bytes(inline.data)
            break

    input_tr = getattr(content, "input_transcription", None)
    output_tr = getattr(content, "output_transcription", None)
    return LiveServerEvent(
        audio=audio,
        input_transcription=(getattr(input_tr, "text", None) or "") if input_tr else "",
        output_transcription=(getattr(output_tr, "text", None) or "") if output_tr else "",
        interrupted=bool(getattr(content, "interrupted", False)),
        turn_complete=bool(getattr(content, "turn_complete", False)),
    )


class GeminiLiveConnection:
    def __init__(self, session: Any) -> None:
        self._session = session

    async def send_audio(self, chunk: RealtimeAudioInput) -> None:
        await self._session.send_realtime_input(
            audio=types.Blob(data=chunk.pcm16_bytes, mime_type=chunk.mime_type)
        )

    async def events(self) -> AsyncIterator[LiveServerEvent]:
        # receive() stops at the end of each model turn; an empty turn means
        # the server closed the socket.
        while True:
            received = False
            async for message in self._session.receive():
                received = True
                yield decode_server_message(message)
            if not received:
                logger.info("Live session closed by server")
                return


class GeminiLiveConnector:
    def __init__(
        self,
        client: Any,
        model: str = DEFAULT_MODELS["live"],
        voice: str = LIVE_VOICE,
        system_instruction: str = LIVE_SYSTEM_INSTRUCTION,
    ) -> None:
        self._client = client
        self._model = model
        self._voice = voice
        self._system_instruction = system_instruction

    def build_config(self) -> types.LiveConnectConfig:
        return types.LiveConnectConfig(
            response_modalities=[types.Modality.AUDIO],
            speech_config=types.SpeechConfig(
                voice_config=types.VoiceConfig(
                    prebuilt_voice_config=types.PrebuiltVoiceConfig(voice_name=self._voice)
                )
            ),
            output_audio_transcription=types.AudioTranscriptionConfig(),
            input_audio_transcription=types.AudioTranscriptionConfig(),
            system_instruction=self._system_instruction,
        )

    @asynccontextmanager
    async def connect(self) -> AsyncIterator[GeminiLiveConnection]:
        logger.info(f"Connecting to live model {self._model}")
        async with self._client.aio.live.connect(model=self._model, config=self.build_config()) as session:
            yield GeminiLiveConnection(session)
