"""Thin async wrapper around the google-genai SDK.

Every call goes through the retry policy, and provider responses are decoded
into the dataclasses of ``models`` here so nothing else reads SDK objects.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Sequence

import httpx
from google import genai
from google.genai import types

from config import DEFAULT_MODELS
from errors import UNKNOWN, GenerationError
from models import (
    ChatReply,
    GeneratedMedia,
    GroundingLink,
    ReferenceImage,
    RemoteOperation,
)
from pcm import as_bytes
from prompts import VOICEOVER_INSTRUCTION
from retry import RetryPolicy

logger = logging.getLogger(__name__)

MAX_REFERENCE_IMAGES = 3
DEFAULT_ASPECT_RATIO = "9:16"
REFERENCE_ASPECT_RATIO = "16:9"
VIDEO_RESOLUTION = "720p"
TTS_VOICE = "Kore"
THINKING_BUDGET = 32768
IMAGE_ASPECT_RATIOS = ("1:1", "3:4", "4:3", "9:16", "16:9")
IMAGE_SIZES = ("1K", "2K", "4K")


def decode_operation(op: Any) -> RemoteOperation:
    """Build a RemoteOperation from an SDK ``GenerateVideosOperation``."""
    response = getattr(op, "response", None) or getattr(op, "result", None)
    videos = getattr(response, "generated_videos", None) or []
    video = getattr(videos[0], "video", None) if videos else None
    error = getattr(op, "error", None)
    return RemoteOperation(
        name=str(getattr(op, "name", "") or ""),
        done=bool(getattr(op, "done", False)),
        video_uri=getattr(video, "uri", None) if video is not None else None,
        video=video,
        error=str(error) if error else None,
        handle=op,
    )


def _first_parts(response: Any) -> list:
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return []
    content = getattr(candidates[0], "content", None)
    return list(getattr(content, "parts", None) or [])


def extract_inline_media(response: Any) -> Optional[GeneratedMedia]:
    for part in _first_parts(response):
        inline = getattr(part, "inline_data", None)
        if inline is not None and getattr(inline, "data", None):
            return GeneratedMedia(
                data=as_bytes(inline.data),
                mime_type=getattr(inline, "mime_type", None) or "application/octet-stream",
            )
    return None


def extract_chat_reply(response: Any) -> ChatReply:
    thinking = None
    for part in _first_parts(response):
        if getattr(part, "thought", False) and getattr(part, "text", None):
            thinking = part.text
            break

    links: List[GroundingLink] = []
    candidates = getattr(response, "candidates", None) or []
    metadata = getattr(candidates[0], "grounding_metadata", None) if candidates else None
    for chunk in getattr(metadata, "grounding_chunks", None) or []:
        source = getattr(chunk, "web", None) or getattr(chunk, "maps", None)
        links.append(
            GroundingLink(
                title=getattr(source, "title", None) or "Resource",
                uri=getattr(source, "uri", None) or "#",
            )
        )

    text = getattr(response, "text", None)
    return ChatReply(
        text=text or "I couldn't generate a response.",
        thinking=thinking,
        grounding=links,
    )


class GeminiClient:
    """Explicitly constructed provider client; pass it where it is needed."""

    def __init__(
        self,
        api_key: str,
        models: Optional[dict] = None,
        retry: Optional[RetryPolicy] = None,
        client: Any = None,
    ) -> None:
        if not api_key and client is None:
            raise RuntimeError("GEMINI_API_KEY is not set. Add it to the environment or the config file.")
        self.api_key = api_key
        self.models = dict(DEFAULT_MODELS, **(models or {}))
        self.retry = retry or RetryPolicy()
        self._client = client or genai.Client(api_key=api_key)

    @property
    def sdk(self) -> Any:
        return self._client

    # ------------------------------------------------------------------
    # Video
    # ------------------------------------------------------------------

    async def generate_initial_video(
        self, prompt: str, images: Sequence[ReferenceImage], fast: bool = False
    ) -> tuple[RemoteOperation, str]:
        """Submit the first clip; returns the operation and the aspect ratio used."""
        model = self.models["video_fast"] if fast else self.models["video"]
        config = types.GenerateVideosConfig(
            number_of_videos=1,
            resolution=VIDEO_RESOLUTION,
            aspect_ratio=DEFAULT_ASPECT_RATIO,
        )
        kwargs: dict = {"model": model, "prompt": prompt, "config": config}

        if len(images) == 1:
            kwargs["image"] = types.Image(image_bytes=images[0].data, mime_type=images[0].mime_type)
        elif len(images) > 1:
            config.reference_images = [
                types.VideoGenerationReferenceImage(
                    image=types.Image(image_bytes=img.data, mime_type=img.mime_type),
                    reference_type="asset",
                )
                for img in images[:MAX_REFERENCE_IMAGES]
            ]
            config.aspect_ratio = REFERENCE_ASPECT_RATIO

        async def _submit() -> Any:
            return await self._client.aio.models.generate_videos(**kwargs)

        op = await self.retry.call(_submit)
        logger.info(f"Submitted initial video ({model}, {config.aspect_ratio}, {len(images)} image(s))")
        return decode_operation(op), config.aspect_ratio

    async def extend_video(
        self, previous: RemoteOperation, prompt: str, aspect_ratio: str
    ) -> RemoteOperation:
        if previous.video is None:
            raise GenerationError(UNKNOWN, "No video data found to extend.")

        async def _submit() -> Any:
            return await self._client.aio.models.generate_videos(
                model=self.models["video"],
                prompt=prompt,
                video=previous.video,
                config=types.GenerateVideosConfig(
                    number_of_videos=1,
                    resolution=VIDEO_RESOLUTION,
                    aspect_ratio=aspect_ratio,
                ),
            )

        op = await self.retry.call(_submit)
        logger.info(f"Submitted extension of {previous.name}")
        return decode_operation(op)

    async def poll_operation(self, operation: RemoteOperation) -> RemoteOperation:
        """Single status query; the poller wraps this in the retry policy."""
        op = await self._client.aio.operations.get(operation.handle)
        return decode_operation(op)

    # ------------------------------------------------------------------
    # One-shot generation
    # ------------------------------------------------------------------

    async def generate_voiceover(self, text: str) -> Optional[bytes]:
        """Raw 24 kHz 16-bit PCM narration, or None if nothing came back."""

        async def _call() -> Any:
            return await self._client.aio.models.generate_content(
                model=self.models["tts"],
                contents=f"{VOICEOVER_INSTRUCTION}{text}",
                config=types.GenerateContentConfig(
                    response_modalities=["AUDIO"],
                    speech_config=types.SpeechConfig(
                        voice_config=types.VoiceConfig(
                            prebuilt_voice_config=types.PrebuiltVoiceConfig(voice_name=TTS_VOICE)
                        )
                    ),
                ),
            )

        media = extract_inline_media(await self.retry.call(_call))
        return media.data if media else None

    async def generate_image(
        self, prompt: str, aspect_ratio: str = "1:1", image_size: str = "1K"
    ) -> GeneratedMedia:
        if aspect_ratio not in IMAGE_ASPECT_RATIOS:
            raise ValueError(f"Unsupported aspect ratio: {aspect_ratio}")
        if image_size not in IMAGE_SIZES:
            raise ValueError(f"Unsupported image size: {image_size}")
        model = self.models["image_pro"] if image_size in ("2K", "4K") else self.models["image"]

        async def _call() -> GeneratedMedia:
            response = await self._client.aio.models.generate_content(
                model=model,
                contents=prompt,
                config=types.GenerateContentConfig(
                    image_config=types.ImageConfig(aspect_ratio=aspect_ratio, image_size=image_size)
                ),
            )
            media = extract_inline_media(response)
            if media is None:
                raise GenerationError(UNKNOWN, "Could not generate the image.")
            return media

        return await self.retry.call(_call)

    async def edit_image(self, image: ReferenceImage, prompt: str) -> GeneratedMedia:
        async def _call() -> GeneratedMedia:
            response = await self._client.aio.models.generate_content(
                model=self.models["image"],
                contents=[
                    types.Part.from_bytes(data=image.data, mime_type=image.mime_type),
                    prompt,
                ],
            )
            media = extract_inline_media(response)
            if media is None:
                raise GenerationError(UNKNOWN, "Could not edit the image.")
            return media

        return await self.retry.call(_call)

    async def analyze_media(self, prompt: str, data: bytes, mime_type: str) -> str:
        async def _call() -> Any:
            return await self._client.aio.models.generate_content(
                model=self.models["analyze"],
                contents=[types.Part.from_bytes(data=data, mime_type=mime_type), prompt],
            )

        response = await self.retry.call(_call)
        return response.text or "Analysis failed to produce text."

    async def chat(
        self, message: str, thinking: bool = True, search: bool = False, maps: bool = False
    ) -> ChatReply:
        tools = []
        if search:
            tools.append(types.Tool(google_search=types.GoogleSearch()))
        if maps:
            tools.append(types.Tool(google_maps=types.GoogleMaps()))

        if maps:
            model = self.models["chat_maps"]
        elif thinking:
            model = self.models["chat_thinking"]
        else:
            model = self.models["chat"]

        config = types.GenerateContentConfig(
            tools=tools or None,
            thinking_config=(
                types.ThinkingConfig(thinking_budget=THINKING_BUDGET, include_thoughts=True)
                if thinking
                else None
            ),
        )

        async def _call() -> Any:
            return await self._client.aio.models.generate_content(
                model=model, contents=message, config=config
            )

        return extract_chat_reply(await self.retry.call(_call))


class HttpVideoFetcher:
    """Downloads finished videos straight from their URI, outside the retry policy."""

    def __init__(
        self,
        api_key: str,
        timeout: float = 300.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._api_key = api_key
        self._timeout = timeout
        self._transport = transport

    async def fetch(self, uri: str) -> bytes:
        async with httpx.AsyncClient(
            timeout=httpx.Timeout(self._timeout, connect=10.0), transport=self._transport
        ) as client:
            # keep the URI's own query (alt=media) and add the key to it
            url = httpx.URL(uri).copy_merge_params({"key": self._api_key})
            resp = await client.get(url, follow_redirects=True)
            resp.raise_for_status()
            logger.info(f"Downloaded {len(resp.content)} bytes of video")
            return resp.content
