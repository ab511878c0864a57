"""Tests for the Gemini Live adapter."""

from __future__ import annotations

import asyncio
import base64
from contextlib import asynccontextmanager
from types import SimpleNamespace
from typing import Any, List
from unittest.mock import AsyncMock, MagicMock

from google.genai import types

from live_connection import GeminiLiveConnection, GeminiLiveConnector, decode_server_message
from models import RealtimeAudioInput


def _message(**content: Any) -> SimpleNamespace:
    return SimpleNamespace(server_content=SimpleNamespace(**content))


def test_decode_audio_and_transcriptions() -> None:
    part = SimpleNamespace(inline_data=SimpleNamespace(data=base64.b64encode(b"\x01\x02").decode()))
    event = decode_server_message(
        _message(
            model_turn=SimpleNamespace(parts=[SimpleNamespace(inline_data=None), part]),
            input_transcription=SimpleNamespace(text="hello"),
            output_transcription=SimpleNamespace(text="hi there"),
            interrupted=False,
            turn_complete=True,
        )
    )

    assert event.audio == b"\x01\x02"
    assert event.input_transcription == "hello"
    assert event.output_transcription == "hi there"
    assert event.turn_complete is True
    assert event.interrupted is False


def test_decode_interrupted_only() -> None:
    event = decode_server_message(_message(interrupted=True))

    assert event.interrupted is True
    assert event.audio is None
    assert event.input_transcription == ""


def test_decode_message_without_server_content() -> None:
    event = decode_server_message(SimpleNamespace(setup_complete=True))

    assert event.audio is None
    assert not event.interrupted


class FakeSdkSession:
    def __init__(self, turns: List[List[Any]]) -> None:
        self._turns = list(turns)
        self.send_realtime_input = AsyncMock()

    async def receive(self):  # noqa: ANN201
        messages = self._turns.pop(0) if self._turns else []
        for message in messages:
            yield message


def test_events_span_turns_until_remote_closes() -> None:
    session = FakeSdkSession(
        [
            [_message(output_transcription=SimpleNamespace(text="one"))],
            [_message(output_transcription=SimpleNamespace(text="two")), _message(turn_complete=True)],
        ]
    )

    async def scenario() -> list:
        return [e async for e in GeminiLiveConnection(session).events()]

    events = asyncio.run(scenario())
    assert [e.output_transcription for e in events] == ["one", "two", ""]
    assert events[-1].turn_complete


def test_send_audio_uses_realtime_blob() -> None:
    session = FakeSdkSession([])
    connection = GeminiLiveConnection(session)

    asyncio.run(connection.send_audio(RealtimeAudioInput(pcm16_bytes=b"\x00\x01")))

    blob = session.send_realtime_input.call_args.kwargs["audio"]
    assert isinstance(blob, types.Blob)
    assert blob.data == b"\x00\x01"
    assert blob.mime_type == "audio/pcm;rate=16000"


def test_connector_config_and_context() -> None:
    session = FakeSdkSession([])
    calls: list = []

    @asynccontextmanager
    async def fake_connect(model: str, config: Any):  # noqa: ANN202
        calls.append((model, config))
        yield session

    client = MagicMock()
    client.aio.live.connect = fake_connect
    connector = GeminiLiveConnector(client, model="live-model")

    async def scenario() -> Any:
        async with connector.connect() as connection:
            return connection

    connection = asyncio.run(scenario())
    assert isinstance(connection, GeminiLiveConnection)
    model, config = calls[0]
    assert model == "live-model"
    assert config.response_modalities == [types.Modality.AUDIO]
    assert config.speech_config.voice_config.prebuilt_voice_config.voice_name == "Zephyr"
    assert config.input_audio_transcription is not None
    assert config.output_audio_transcription is not None
