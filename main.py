"""Application entrypoint.

Usage:
    omnigen-studio video --prompt "studio product shot" [--image ref.png ...]
    omnigen-studio image --prompt "..." [--aspect-ratio 16:9] [--size 2K]
    omnigen-studio edit --image in.png --prompt "..."
    omnigen-studio analyze --file clip.mp4 [--prompt "..."]
    omnigen-studio chat --message "..." [--search] [--maps] [--no-thinking]
    omnigen-studio voice
    omnigen-studio config [--api-key KEY] [--output-dir DIR]

Environment Variables:
    GEMINI_API_KEY  - API key (takes precedence over the config file)
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import mimetypes
import sys
from pathlib import Path
from typing import List, Optional

from artifacts import ArtifactStore
from config import JsonConfigStore, StudioSettings
from gemini_client import IMAGE_ASPECT_RATIOS, IMAGE_SIZES, GeminiClient, HttpVideoFetcher
from live_connection import GeminiLiveConnector
from live_session import LiveVoiceSession
from models import (
    GenerationSequenceState,
    ReferenceImage,
    SequenceStage,
    TranscriptEntry,
    VideoProConfig,
    VoiceSessionState,
)
from playback import SoundDeviceOutput
from prompts import DEFAULT_ANALYSIS_PROMPT
from recorder import SoundDeviceRecorder
from retry import RetryPolicy
from video_sequence import VideoSequenceOrchestrator

logger = logging.getLogger("omnigen_studio")


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def guess_mime_type(path: Path, default: str = "application/octet-stream") -> str:
    mime, _ = mimetypes.guess_type(str(path))
    return mime or default


def load_reference_image(path: str) -> ReferenceImage:
    p = Path(path)
    return ReferenceImage(data=p.read_bytes(), mime_type=guess_mime_type(p, "image/png"))


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="omnigen-studio",
        description="Drive Gemini video, image, chat, analysis and live-voice endpoints.",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    parser.add_argument("--output-dir", default=None, help="Where generated files are written.")
    sub = parser.add_subparsers(dest="command", required=True)

    video = sub.add_parser("video", help="Produce a 20-second video (1 clip + 3 extensions).")
    video.add_argument("--prompt", default="", help="Text prompt.")
    video.add_argument(
        "--image",
        action="append",
        default=[],
        help="Reference image (repeatable, up to 3 are used).",
    )
    video.add_argument("--voice-script", default="", help="Optional narration script.")
    video.add_argument("--fast", action="store_true", help="Use the fast model for the first clip.")
    video.add_argument(
        "--lock-object",
        default="none",
        choices=["none", "face", "wrist", "body"],
        help="Anchor the reference object to part of the subject.",
    )
    video.add_argument(
        "--transition",
        default="orbit",
        choices=["none", "match-cut", "zoom-in", "glitch", "orbit"],
    )

    image = sub.add_parser("image", help="Generate an image.")
    image.add_argument("--prompt", required=True)
    image.add_argument("--aspect-ratio", default="1:1", choices=IMAGE_ASPECT_RATIOS)
    image.add_argument("--size", default="1K", choices=IMAGE_SIZES)

    edit = sub.add_parser("edit", help="Edit an existing image with a prompt.")
    edit.add_argument("--image", required=True)
    edit.add_argument("--prompt", required=True)

    analyze = sub.add_parser("analyze", help="Describe an image or video.")
    analyze.add_argument("--file", required=True)
    analyze.add_argument("--prompt", default=DEFAULT_ANALYSIS_PROMPT)

    chat = sub.add_parser("chat", help="Ask a question, optionally grounded in search or maps.")
    chat.add_argument("--message", required=True)
    chat.add_argument("--no-thinking", action="store_true")
    chat.add_argument("--search", action="store_true")
    chat.add_argument("--maps", action="store_true")

    sub.add_parser("voice", help="Start a live voice conversation (Ctrl+C to stop).")

    cfg = sub.add_parser("config", help="Store the API key or output directory.")
    cfg.add_argument("--api-key", default=None)
    cfg.add_argument("--output-dir", dest="store_output_dir", default=None)

    return parser.parse_args(argv)


def _print_progress(state: GenerationSequenceState) -> None:
    print(f"[{state.progress:3d}%] {state.status}")


async def run_video(args: argparse.Namespace, client: GeminiClient, store: ArtifactStore) -> int:
    settings = StudioSettings()
    orchestrator = VideoSequenceOrchestrator(
        client=client,
        fetcher=HttpVideoFetcher(client.api_key, timeout=settings.download_timeout),
        artifacts=store,
        settings=settings,
        pro_config=VideoProConfig(lock_object=args.lock_object, transition=args.transition),
        on_progress=_print_progress,
    )
    images = [load_reference_image(path) for path in args.image]
    state = await orchestrator.run(args.prompt, images, args.voice_script, args.fast)

    if state.stage == SequenceStage.FAILED:
        for issue in state.issues:
            print(f"  - {issue}")
        return 1
    print(f"Video: {state.video_path}")
    if state.audio_path:
        print(f"Voiceover: {state.audio_path}")
    return 0


async def run_voice(client: GeminiClient, models: dict) -> int:
    def _on_state(from_state: VoiceSessionState, to_state: VoiceSessionState) -> None:
        logger.info(f"Voice session: {from_state.value} -> {to_state.value}")

    def _on_transcript(entry: TranscriptEntry) -> None:
        print(entry)

    def _on_error(code: str, message: str) -> None:
        print(f"{code}: {message}", file=sys.stderr)

    session = LiveVoiceSession(
        connector=GeminiLiveConnector(client.sdk, model=models["live"]),
        recorder=SoundDeviceRecorder(),
        output=SoundDeviceOutput(),
        on_state_change=_on_state,
        on_transcript=_on_transcript,
        on_error=_on_error,
    )
    await session.start()
    if session.state != VoiceSessionState.ACTIVE:
        return 1
    print(session.status)
    try:
        await session.wait_closed()
    finally:
        await session.stop()
    return 0


async def run_command(args: argparse.Namespace, config_store: JsonConfigStore) -> int:
    models = config_store.get_models()
    settings = StudioSettings()
    client = GeminiClient(
        api_key=config_store.get_api_key(),
        models=models,
        retry=RetryPolicy(retries=settings.retries, initial_delay=settings.initial_retry_delay),
    )
    store = ArtifactStore(args.output_dir or config_store.get_output_dir())

    if args.command == "video":
        return await run_video(args, client, store)
    if args.command == "voice":
        return await run_voice(client, models)
    if args.command == "image":
        media = await client.generate_image(args.prompt, args.aspect_ratio, args.size)
        print(f"Image: {store.save('omnigen-image', media.data, media.mime_type)}")
        return 0
    if args.command == "edit":
        media = await client.edit_image(load_reference_image(args.image), args.prompt)
        print(f"Image: {store.save('omnigen-edit', media.data, media.mime_type)}")
        return 0
    if args.command == "analyze":
        path = Path(args.file)
        print(await client.analyze_media(args.prompt, path.read_bytes(), guess_mime_type(path)))
        return 0
    if args.command == "chat":
        reply = await client.chat(
            args.message, thinking=not args.no_thinking, search=args.search, maps=args.maps
        )
        if reply.thinking:
            print(f"[thinking] {reply.thinking}\n")
        print(reply.text)
        for link in reply.grounding:
            print(f"  - {link.title}: {link.uri}")
        return 0
    raise ValueError(f"Unknown command: {args.command}")


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(args.verbose)
    config_store = JsonConfigStore()

    if args.command == "config":
        if args.api_key is not None:
            config_store.set_api_key(args.api_key)
        if args.store_output_dir is not None:
            config_store.set_output_dir(args.store_output_dir)
        print("Configuration saved.")
        return 0

    try:
        return asyncio.run(run_command(args, config_store))
    except KeyboardInterrupt:
        return 130
    except RuntimeError as exc:
        print(str(exc), file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
